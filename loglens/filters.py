"""Select the messages that pass level, channel, session and text predicates."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Set

from .channels import NO_CHANNEL, ChannelIndex, prefix_paths
from .parser import LogMessage
from .sessions import SessionIndex

logger = logging.getLogger(__name__)

# Blank is the level of messages written without a severity.
RECOGNIZED_LEVELS = ("!", "E", "W", "I", "D", "T", "F", " ")


def _session_number(value) -> int:
    # bool is an int subclass and 1.7 would truncate silently.
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError("sessions must be a list of integers")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError("sessions must be a list of integers") from None


@dataclass(frozen=True)
class FilterQuery:
    levels: FrozenSet[str] = frozenset()
    channels: FrozenSet[str] = frozenset()
    sessions: FrozenSet[int] = frozenset()
    text: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "FilterQuery":
        """Validate a ``{levels, channels, sessions, text}`` mapping."""

        if not isinstance(payload, dict):
            raise ValueError("filter payload must be an object")

        def _strings(name: str) -> FrozenSet[str]:
            values = payload.get(name) or []
            if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
                raise ValueError(f"{name} must be a list of strings")
            return frozenset(values)

        raw_sessions = payload.get("sessions") or []
        if not isinstance(raw_sessions, list):
            raise ValueError("sessions must be a list of integers")
        sessions = frozenset(_session_number(value) for value in raw_sessions)

        text = payload.get("text") or ""
        if not isinstance(text, str):
            raise ValueError("text must be a string")
        return cls(levels=_strings("levels"), channels=_strings("channels"), sessions=sessions, text=text)

    @classmethod
    def allow_all(cls, channels: ChannelIndex, sessions: SessionIndex, text: str = "") -> "FilterQuery":
        return cls(
            levels=frozenset(RECOGNIZED_LEVELS),
            channels=frozenset(channels.paths()) | {NO_CHANNEL},
            sessions=frozenset(sessions.indices) | {0},
            text=text,
        )


@dataclass
class FilterResult:
    allowed: Set[int]
    level_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.allowed)

    def to_dict(self) -> dict:
        return {"count": self.count, "levelCounts": dict(self.level_counts)}


def level_counts(messages: Iterable[LogMessage]) -> Dict[str, int]:
    """Per-level totals over the unfiltered messages.

    Every recognised level is present, zero or not. Levels outside the known
    set are counted under their own code so they can be reviewed.
    """

    counter = Counter(message.level for message in messages)
    counts = {level: counter.pop(level, 0) for level in RECOGNIZED_LEVELS}
    counts.update(sorted(counter.items()))
    return counts


def level_allowed(message: LogMessage, levels: FrozenSet[str]) -> bool:
    if message.level not in RECOGNIZED_LEVELS:
        return True
    return message.level in levels


def channels_allowed(message: LogMessage, channels: FrozenSet[str]) -> bool:
    if not message.channels:
        return NO_CHANNEL in channels
    return all(path in channels for path in prefix_paths(message.channels))


def text_matches(message: LogMessage, needle: str) -> bool:
    if not needle:
        return True
    return needle in message.text.lower() or needle in message.channel_path.lower()


def filter_messages(messages: List[LogMessage], sessions: SessionIndex, query: FilterQuery) -> FilterResult:
    needle = query.text.lower()
    allowed: Set[int] = set()
    for message in messages:
        if not level_allowed(message, query.levels):
            continue
        if not channels_allowed(message, query.channels):
            continue
        if sessions.owning_session(message.index) not in query.sessions:
            continue
        if not text_matches(message, needle):
            continue
        allowed.add(message.index)

    logger.debug("Filter kept %d of %d message(s)", len(allowed), len(messages))
    return FilterResult(allowed=allowed, level_counts=level_counts(messages))
