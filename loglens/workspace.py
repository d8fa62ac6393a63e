"""Run the combine, parse, filter and regenerate pipeline against one log folder."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from .channels import ChannelIndex, build_channel_index, has_unchanneled
from .config import Settings, load_settings
from .filters import FilterQuery, FilterResult, filter_messages, level_counts
from .navigation import ActiveLocation, find_channel_line, find_message_line, find_session_line, locate
from .parser import ParseResult, parse_combined, split_lines
from .reader import CombineResult, combine_logs, replace_text, write_combined
from .regenerate import regenerate
from .sessions import SessionIndex, extract_sessions

logger = logging.getLogger(__name__)


class WorkspaceError(Exception):
    """Raised when an operation needs combined logs that are not loaded."""


@dataclass
class Snapshot:
    """Everything derived from one combine; replaced as a whole, never patched."""

    combined: CombineResult
    parsed: ParseResult
    channels: ChannelIndex
    sessions: SessionIndex
    timestamps: Dict[str, List[int]] = field(default_factory=dict)
    output_path: Optional[Path] = None

    @property
    def original(self) -> str:
        return self.combined.content

    def level_counts(self) -> Dict[str, int]:
        return level_counts(self.parsed.messages)

    def channel_tree(self) -> dict:
        return self.channels.to_tree(include_no_channel=has_unchanneled(self.parsed.messages))

    def session_export(self) -> List[dict]:
        return self.sessions.to_export()

    def size_bytes(self) -> int:
        if self.output_path is not None and self.output_path.is_file():
            return self.output_path.stat().st_size
        return len(self.original.encode("utf-8"))


def build_snapshot(combined: CombineResult) -> Snapshot:
    parsed = parse_combined(combined.content)
    return Snapshot(
        combined=combined,
        parsed=parsed,
        channels=build_channel_index(parsed.messages),
        sessions=extract_sessions(parsed),
        timestamps=parsed.timestamp_index(),
    )


class LogWorkspace:
    """Holds the unfiltered combined text and the state derived from it.

    The combined file on disk is rewritten by every filter, while the
    original text stays in memory so each filter starts from scratch.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self._snapshot: Optional[Snapshot] = None
        self._allowed: Optional[Set[int]] = None
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> Snapshot:
        if self._snapshot is None:
            raise WorkspaceError("No logs combined yet")
        return self._snapshot

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def combine(self, target: Path, archive: Path | None = None, write: bool = True) -> Snapshot:
        with self._lock:
            combined = combine_logs(target, archive=archive, settings=self.settings)
            snapshot = build_snapshot(combined)
            if write and combined.directory is not None:
                snapshot.output_path = write_combined(combined.content, combined.directory, self.settings)
            self._snapshot = snapshot
            self._allowed = None
        logger.info(
            "Loaded %d message(s), %d session(s), %d channel path(s)",
            len(snapshot.parsed.messages),
            len(snapshot.sessions),
            len(snapshot.channels),
        )
        return snapshot

    def default_query(self, text: str = "") -> FilterQuery:
        snapshot = self.snapshot
        return FilterQuery.allow_all(snapshot.channels, snapshot.sessions, text=text)

    def apply_filters(self, query: FilterQuery) -> FilterResult:
        with self._lock:
            snapshot = self.snapshot
            result = filter_messages(snapshot.parsed.messages, snapshot.sessions, query)
            if snapshot.output_path is not None:
                replace_text(snapshot.output_path, regenerate(snapshot.original, result.allowed))
            self._allowed = result.allowed
        logger.info("Filter matched %d message(s)", result.count)
        return result

    def filtered_text(self, query: FilterQuery) -> str:
        with self._lock:
            snapshot = self.snapshot
        result = filter_messages(snapshot.parsed.messages, snapshot.sessions, query)
        return regenerate(snapshot.original, result.allowed)

    def level_counts(self) -> Dict[str, int]:
        return self.snapshot.level_counts()

    def channel_tree(self) -> dict:
        return self.snapshot.channel_tree()

    def session_export(self) -> List[dict]:
        return self.snapshot.session_export()

    def _document(self) -> List[str]:
        snapshot = self.snapshot
        if snapshot.output_path is not None and snapshot.output_path.is_file():
            return split_lines(snapshot.output_path.read_text(encoding="utf-8"))
        if self._allowed is None:
            return snapshot.parsed.lines
        return split_lines(regenerate(snapshot.original, self._allowed))

    def current_document(self) -> List[str]:
        with self._lock:
            return self._document()

    def locate(self, line_no: int) -> Optional[ActiveLocation]:
        with self._lock:
            snapshot = self.snapshot
            return locate(
                self._document(),
                line_no,
                snapshot.timestamps,
                snapshot.sessions,
                allowed=self._allowed,
            )

    def reveal(
        self,
        session: Optional[int] = None,
        message_index: Optional[int] = None,
        channel: Optional[str] = None,
    ) -> Optional[int]:
        """Line in the current document to jump to for a session, message or channel.

        Exactly one target must be given. ``None`` means the target is not
        visible in the document, for example because a filter hides it.
        """

        targets = [value for value in (session, message_index, channel) if value is not None]
        if len(targets) != 1:
            raise ValueError("give exactly one of session, messageIndex or channel")
        with self._lock:
            lines = self._document()
            if session is not None:
                return find_session_line(lines, session)
            if message_index is not None:
                return find_message_line(lines, message_index, allowed=self._allowed)
            return find_channel_line(lines, channel)

    def is_oversized(self, snapshot: Snapshot | None = None) -> bool:
        """True when the combined file is too large to hand to a viewer unprompted."""

        snapshot = snapshot or self.snapshot
        return snapshot.size_bytes() > self.settings.max_display_bytes
