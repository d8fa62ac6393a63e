"""Utilities for loading the current log and its history archives."""
from __future__ import annotations

import io
import logging
import os
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Tuple

from .config import Settings, load_settings

logger = logging.getLogger(__name__)

_READ_ERRORS = (zipfile.BadZipFile, zlib.error, OSError, EOFError, RuntimeError, NotImplementedError)

PART_BEGIN = "===== BEGIN PART: {label} ====="
PART_END = "===== END PART: {label} ====="


class ArchiveError(Exception):
    """Raised when an explicitly requested archive cannot be read at all."""


@dataclass(frozen=True)
class RawPart:
    """A labelled chunk of log text taken from a file or an archive entry."""

    label: str
    content: str

    def wrapped(self) -> str:
        begin = PART_BEGIN.format(label=self.label)
        end = PART_END.format(label=self.label)
        return f"\n{begin}\n{self.content}\n{end}\n"


@dataclass
class CombineResult:
    content: str
    parts: List[RawPart]
    warnings: List[str] = field(default_factory=list)
    directory: Path | None = None

    @property
    def is_empty(self) -> bool:
        return not self.parts


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _history_number(name: str, settings: Settings) -> int:
    match = settings.history_pattern.match(name)
    return int(match.group(1)) if match else 0


def _sorted_history(names: List[str], settings: Settings) -> List[str]:
    # Largest number is the oldest history part, so it goes first.
    return sorted(names, key=lambda name: _history_number(name, settings), reverse=True)


def _read_history_zip(source, label: str, settings: Settings) -> RawPart:
    with zipfile.ZipFile(source) as archive:
        try:
            data = archive.read(settings.current_log)
        except KeyError:
            raise ArchiveError(f"{label} has no {settings.current_log} entry") from None
    return RawPart(label=f"{label}::{settings.current_log}", content=_decode(data))


def _iter_directory(directory: Path, settings: Settings, warnings: List[str]) -> Iterator[RawPart]:
    history = [
        child.name
        for child in directory.iterdir()
        if child.is_file() and settings.history_pattern.match(child.name)
    ]
    logger.info("Found %d history archive(s) in %s", len(history), directory)
    for name in _sorted_history(history, settings):
        try:
            part = _read_history_zip(directory / name, name, settings)
        except (ArchiveError,) + _READ_ERRORS as exc:
            message = f"Skipped {name}: {exc}"
            logger.warning("%s", message)
            warnings.append(message)
        else:
            yield part

    current = directory / settings.current_log
    if current.is_file():
        try:
            data = current.read_bytes()
        except _READ_ERRORS as exc:
            message = f"Skipped {settings.current_log}: {exc}"
            logger.warning("%s", message)
            warnings.append(message)
        else:
            yield RawPart(label=settings.current_log, content=_decode(data))
    else:
        logger.info("No %s in %s", settings.current_log, directory)


def _iter_archive(archive_path: Path, settings: Settings, warnings: List[str]) -> Iterator[RawPart]:
    try:
        archive = zipfile.ZipFile(archive_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ArchiveError(f"Cannot open archive {archive_path}: {exc}") from exc

    with archive:
        names = [info.filename for info in archive.infolist() if not info.is_dir()]
        history = [name for name in names if settings.history_pattern.match(name)]
        logger.info("Found %d nested history archive(s) in %s", len(history), archive_path.name)
        for name in _sorted_history(history, settings):
            try:
                part = _read_history_zip(io.BytesIO(archive.read(name)), name, settings)
            except (ArchiveError,) + _READ_ERRORS as exc:
                message = f"Skipped {archive_path.name}::{name}: {exc}"
                logger.warning("%s", message)
                warnings.append(message)
            else:
                yield part

        if settings.current_log in names:
            try:
                data = archive.read(settings.current_log)
            except _READ_ERRORS as exc:
                message = f"Skipped {archive_path.name}::{settings.current_log}: {exc}"
                logger.warning("%s", message)
                warnings.append(message)
            else:
                yield RawPart(label=settings.current_log, content=_decode(data))


def resolve_target(target: Path, archive: Path | None = None) -> Tuple[Path, Path | None]:
    """Return the search directory and the archive to expand, if any."""

    target = target.expanduser().resolve()
    if not target.exists():
        raise FileNotFoundError(f"Path not found: {target}")
    if archive is not None:
        archive = archive.expanduser().resolve()
        if not archive.is_file():
            raise FileNotFoundError(f"Archive not found: {archive}")
    elif target.is_file() and target.suffix.lower() == ".zip":
        archive = target
    directory = target if target.is_dir() else target.parent
    return directory, archive


def combine_parts(parts: List[RawPart]) -> str:
    return "\n".join(part.wrapped() for part in parts)


def combine_logs(target: Path, archive: Path | None = None, settings: Settings | None = None) -> CombineResult:
    """Read every log part under ``target`` and concatenate them.

    A ``.zip`` target, or an explicit ``archive``, switches to the
    archive-of-archives mode: the zip holds the current log plus nested
    history zips. Otherwise the directory of ``target`` is scanned for the
    current log and history archives. History parts come first, largest
    number first, and the current log comes last.
    """

    settings = settings or load_settings()
    directory, archive_path = resolve_target(Path(target), Path(archive) if archive else None)
    warnings: List[str] = []
    if archive_path is not None:
        parts = list(_iter_archive(archive_path, settings, warnings))
    else:
        parts = list(_iter_directory(directory, settings, warnings))

    content = combine_parts(parts)
    logger.info("Combined %d part(s), %d characters", len(parts), len(content))
    return CombineResult(content=content, parts=parts, warnings=warnings, directory=directory)


def replace_text(path: Path, content: str) -> None:
    """Stage ``content`` beside ``path``, then swap it in whole."""

    staging = path.with_name(f"{path.name}.tmp")
    staging.write_text(content, encoding="utf-8", newline="")
    os.replace(staging, path)


def write_combined(content: str, directory: Path, settings: Settings | None = None) -> Path:
    settings = settings or load_settings()
    out_path = Path(directory) / settings.output_name
    replace_text(out_path, content)
    logger.debug("Wrote %s", out_path)
    return out_path
