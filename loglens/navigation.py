"""Map between line positions in a (possibly filtered) document and messages."""
from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, List, Optional

from .channels import PATH_SEPARATOR
from .parser import HEADER_RE, is_banner, parse_header
from .sessions import IMPLICIT_SESSION, SessionIndex


@dataclass(frozen=True)
class ActiveLocation:
    session_index: int
    message_index: int
    transition_message_index: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "sessionIndex": self.session_index,
            "messageIndex": self.message_index,
            "transitionMessageIndex": self.transition_message_index,
        }


def _header_line_above(lines: List[str], line_no: int) -> Optional[int]:
    for position in range(min(line_no, len(lines) - 1), -1, -1):
        if HEADER_RE.match(lines[position]):
            return position
    return None


def locate(
    lines: List[str],
    line_no: int,
    timestamps: Dict[str, List[int]],
    sessions: SessionIndex,
    allowed: Optional[AbstractSet[int]] = None,
) -> Optional[ActiveLocation]:
    """Find the message, session and latest transition under ``line_no``.

    ``timestamps`` maps a timestamp to every message index that carries it.
    Several messages can share one timestamp; the n-th header with that
    timestamp in the document is the n-th candidate still visible in it.
    Returns ``None`` when the line has no message above it.
    """

    if line_no < 0 or not lines:
        return None
    header_line = _header_line_above(lines, line_no)
    if header_line is None:
        return None
    timestamp = HEADER_RE.match(lines[header_line]).group(1)
    candidates = timestamps.get(timestamp, [])
    if allowed is not None:
        candidates = [index for index in candidates if index in allowed]
    if not candidates:
        return None

    occurrence = 0
    for line in lines[: header_line + 1]:
        match = HEADER_RE.match(line)
        if match and match.group(1) == timestamp:
            occurrence += 1
    message_index = candidates[max(0, min(len(candidates) - 1, occurrence - 1))]

    session_index = sessions.owning_session(message_index)
    transition_index = None
    session = sessions.get(session_index)
    if session is not None:
        for transition in reversed(session.transitions):
            if transition.message_index <= message_index:
                transition_index = transition.message_index
                break
    return ActiveLocation(
        session_index=session_index,
        message_index=message_index,
        transition_message_index=transition_index,
    )


def find_message_line(lines: List[str], message_index: int, allowed: Optional[AbstractSet[int]] = None) -> Optional[int]:
    """Line of a message's header; headers appear in index order, skipping filtered ones."""

    if allowed is not None:
        if message_index not in allowed:
            return None
        ordinal = sum(1 for index in allowed if index < message_index)
    else:
        ordinal = message_index
    seen = -1
    for line_no, line in enumerate(lines):
        if HEADER_RE.match(line):
            seen += 1
            if seen == ordinal:
                return line_no
    return None


def find_session_line(lines: List[str], session_index: int) -> Optional[int]:
    """Line of the banner that opens a session; banners survive every filter."""

    if session_index == IMPLICIT_SESSION:
        return _first_header(lines)
    seen = 0
    for line_no, line in enumerate(lines):
        if is_banner(line):
            seen += 1
            if seen == session_index:
                return line_no
    return None


def find_channel_line(lines: List[str], path: str) -> Optional[int]:
    """First header whose channel list starts with ``path``."""

    wanted = path.split(PATH_SEPARATOR)
    for line_no, line in enumerate(lines):
        header = parse_header(line)
        if header is not None and header[2][: len(wanted)] == wanted:
            return line_no
    return None


def _first_header(lines: List[str]) -> Optional[int]:
    for line_no, line in enumerate(lines):
        if HEADER_RE.match(line):
            return line_no
    return None
