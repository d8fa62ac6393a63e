import io
import zipfile
from pathlib import Path

import pytest

from loglens.parser import SESSION_BANNER

SAMPLE_LINES = [
    "[01-01 09:59:59.000][I] preamble before any banner",
    SESSION_BANNER,
    "Build version: 1.2.3",
    "[01-01 10:00:01.000][I](WorkingQueue:3) [App][Boot] starting",
    "  loading config",
    "[01-01 10:00:02.000][W] [Net][Http] slow response",
    "[01-01 10:00:03.000][I] [GameStateManager][GameStateChanged] From Menu to Gameplay",
    SESSION_BANNER,
    "[01-01 11:00:00.000][E] [Net] Error connecting",
    "[01-01 11:00:00.000][X] custom level message",
    "[01-01 11:00:01.000][D] [App] debug details",
]


@pytest.fixture
def sample_content() -> str:
    return "\n".join(SAMPLE_LINES)


def make_history_zip(text: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("log.txt", text)
    return buffer.getvalue()


def write_history_zip(path: Path, text: str) -> Path:
    path.write_bytes(make_history_zip(text))
    return path


@pytest.fixture
def log_folder(tmp_path: Path) -> Path:
    """A folder with the current log and two history archives."""

    (tmp_path / "log.txt").write_text(
        f"{SESSION_BANNER}\n[01-03 08:00:00.000][I] [App] current run\n", encoding="utf-8"
    )
    write_history_zip(tmp_path / "log.history1.txt.zip", "[01-02 08:00:00.000][I] [App] newer history")
    write_history_zip(tmp_path / "log.history2.txt.zip", "[01-01 08:00:00.000][I] [App] older history")
    return tmp_path


@pytest.fixture
def history_zip():
    """Factory building an in-memory history archive around a log text."""

    return make_history_zip
