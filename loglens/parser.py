"""Tokenize combined log text into structured messages.

A message header looks like::

    [03-14 09:26:53.589][I](WorkingQueue:2) [Net][Http] GET /status -> 200

The parts are recognised by small named rules so each one can be exercised
on its own: timestamp and level, the optional worker queue tag, channel
tokens and the free text that follows them. Lines that are not headers are
continuation lines of the message above them.
"""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

SESSION_BANNER = "================== APP STARTED ================="

HEADER_RE = re.compile(r"^\[(\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3})\]\[(.)\]")
WORKER_TAG_RE = re.compile(r"^\(WorkingQueue:\d+\)")
PART_DELIMITER_RE = re.compile(r"^===== (BEGIN|END) PART:")
INVALID_CHANNEL_RE = re.compile(r"[\s'\"]")
LINE_BREAK_RE = re.compile(r"\r?\n")


@dataclass
class LogMessage:
    index: int
    timestamp: str
    level: str
    channels: List[str]
    text: str

    @property
    def channel_path(self) -> str:
        return ">".join(self.channels)


@dataclass(frozen=True)
class Banner:
    """A session banner: its line in the combined text and the next message index."""

    line_no: int
    start_offset: int


@dataclass
class ParseResult:
    messages: List[LogMessage] = field(default_factory=list)
    banners: List[Banner] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)

    def timestamp_index(self) -> Dict[str, List[int]]:
        """Map each timestamp to the indices of the messages that carry it."""

        index: Dict[str, List[int]] = defaultdict(list)
        for message in self.messages:
            index[message.timestamp].append(message.index)
        return dict(index)


def split_lines(content: str) -> List[str]:
    return LINE_BREAK_RE.split(content)


def is_banner(line: str) -> bool:
    return line.startswith(SESSION_BANNER)


def is_part_delimiter(line: str) -> bool:
    return PART_DELIMITER_RE.match(line) is not None


def is_part_end(line: str) -> bool:
    match = PART_DELIMITER_RE.match(line)
    return match is not None and match.group(1) == "END"


def is_delimiter(line: str) -> bool:
    return is_banner(line) or is_part_delimiter(line)


def match_timestamp_level(line: str) -> Optional[Tuple[str, str, str]]:
    """Return ``(timestamp, level, rest)`` for a header line, else ``None``."""

    match = HEADER_RE.match(line)
    if not match:
        return None
    return match.group(1), match.group(2), line[match.end():]


def skip_worker_tag(rest: str) -> str:
    rest = rest.lstrip()
    match = WORKER_TAG_RE.match(rest)
    if match:
        rest = rest[match.end():]
    return rest


def take_channel(rest: str) -> Optional[Tuple[str, str]]:
    """Consume one ``[channel]`` token from the left of ``rest``.

    Returns ``(channel, remainder)`` or ``None`` when the next token is not a
    valid channel, in which case ``rest`` belongs to the message text.
    """

    rest = rest.lstrip()
    if not rest.startswith("["):
        return None
    end = rest.find("]")
    if end <= 1:
        return None
    channel = rest[1:end]
    if INVALID_CHANNEL_RE.search(channel):
        return None
    return channel, rest[end + 1:]


def parse_channels(rest: str) -> Tuple[List[str], str]:
    channels: List[str] = []
    while True:
        token = take_channel(rest)
        if token is None:
            break
        channel, rest = token
        channels.append(channel)
    return channels, rest.lstrip()


def parse_header(line: str) -> Optional[Tuple[str, str, List[str], str]]:
    """Split a header line into ``(timestamp, level, channels, head_text)``."""

    head = match_timestamp_level(line)
    if head is None:
        return None
    timestamp, level, rest = head
    channels, text = parse_channels(skip_worker_tag(rest))
    return timestamp, level, channels, text


def iter_messages(lines: List[str], banners: List[Banner]) -> Iterator[LogMessage]:
    current: Optional[LogMessage] = None
    index = 0
    for line_no, line in enumerate(lines):
        if is_banner(line):
            banners.append(Banner(line_no=line_no, start_offset=index))
            continue
        if is_part_delimiter(line):
            # A message never runs on into the next part.
            if current is not None and is_part_end(line):
                current.text = current.text.rstrip("\n")
                yield current
                current = None
            continue
        header = parse_header(line)
        if header is not None:
            if current is not None:
                yield current
            timestamp, level, channels, text = header
            current = LogMessage(index=index, timestamp=timestamp, level=level, channels=channels, text=text)
            index += 1
        elif current is not None:
            current.text = f"{current.text}\n{line}" if current.text else line
    if current is not None:
        yield current


def parse_lines(lines: List[str]) -> ParseResult:
    banners: List[Banner] = []
    messages = list(iter_messages(lines, banners))
    logger.info("Parsed %d message(s) and %d session banner(s) from %d line(s)", len(messages), len(banners), len(lines))
    return ParseResult(messages=messages, banners=banners, lines=lines)


def parse_combined(content: str) -> ParseResult:
    return parse_lines(split_lines(content))
