"""Split the message stream into application runs and their state transitions."""
from __future__ import annotations

import bisect
import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

from .parser import ParseResult, is_banner

logger = logging.getLogger(__name__)

BUILD_VERSION_RE = re.compile(r"Build version:\s*(.+)")
TRANSITION_RE = re.compile(r"From\s+(.+?)\s+to\s+(.+)")
STATE_MANAGER_CHANNEL = "GameStateManager"
STATE_CHANGED_CHANNEL = "GameStateChanged"
IMPLICIT_SESSION = 0


@dataclass(frozen=True)
class StateTransition:
    message_index: int
    timestamp: str
    from_state: str
    to_state: str

    def to_dict(self) -> dict:
        return {
            "messageIndex": self.message_index,
            "timestamp": self.timestamp,
            "from": self.from_state,
            "to": self.to_state,
        }


@dataclass
class Session:
    index: int
    start_offset: int
    first_message_timestamp: Optional[str] = None
    build_version: Optional[str] = None
    transitions: List[StateTransition] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "firstMessageTimestamp": self.first_message_timestamp,
            "buildVersion": self.build_version,
            "transitions": [transition.to_dict() for transition in self.transitions],
        }


class SessionIndex:
    """Ordered sessions plus the owner lookup used by filters and navigation."""

    def __init__(self, sessions: List[Session]) -> None:
        self.sessions = sessions
        self._offsets = [session.start_offset for session in sessions]
        self._by_index = {session.index: session for session in sessions}

    def __iter__(self):
        return iter(self.sessions)

    def __len__(self) -> int:
        return len(self.sessions)

    def get(self, index: int) -> Optional[Session]:
        return self._by_index.get(index)

    def owning_session(self, message_index: int) -> int:
        """Index of the last session whose start offset is <= ``message_index``."""

        position = bisect.bisect_right(self._offsets, message_index)
        if position == 0:
            return IMPLICIT_SESSION
        return self.sessions[position - 1].index

    @property
    def indices(self) -> List[int]:
        return [session.index for session in self.sessions]

    @property
    def transition_indices(self) -> Set[int]:
        return {transition.message_index for session in self.sessions for transition in session.transitions}

    def to_export(self) -> List[dict]:
        return [session.to_dict() for session in self.sessions]


def find_build_version(lines: List[str], banner_line: int) -> Optional[str]:
    for line in itertools.islice(lines, banner_line + 1, None):
        if is_banner(line):
            return None
        match = BUILD_VERSION_RE.search(line)
        if match:
            return match.group(1).strip()
    return None


def match_transition(channels: List[str], text: str) -> Optional[tuple[str, str]]:
    if STATE_MANAGER_CHANNEL not in channels or STATE_CHANGED_CHANNEL not in channels:
        return None
    match = TRANSITION_RE.fullmatch(text)
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def extract_sessions(parsed: ParseResult) -> SessionIndex:
    messages = parsed.messages
    sessions: List[Session] = []
    if messages and (not parsed.banners or parsed.banners[0].start_offset > 0):
        sessions.append(Session(index=IMPLICIT_SESSION, start_offset=0))
    for number, banner in enumerate(parsed.banners, start=1):
        sessions.append(
            Session(
                index=number,
                start_offset=banner.start_offset,
                build_version=find_build_version(parsed.lines, banner.line_no),
            )
        )

    # A session owns messages up to the next session's start offset.
    for position, session in enumerate(sessions):
        end = sessions[position + 1].start_offset if position + 1 < len(sessions) else len(messages)
        if session.start_offset < end:
            session.first_message_timestamp = messages[session.start_offset].timestamp

    index = SessionIndex(sessions)
    for message in messages:
        states = match_transition(message.channels, message.text)
        if states is None:
            continue
        owner = index.get(index.owning_session(message.index))
        if owner is None:
            continue
        owner.transitions.append(
            StateTransition(
                message_index=message.index,
                timestamp=message.timestamp,
                from_state=states[0],
                to_state=states[1],
            )
        )
    logger.info(
        "Extracted %d session(s) with %d transition(s)",
        len(sessions),
        len(index.transition_indices),
    )
    return index
