"""Rebuild a filtered copy of the combined text from the unfiltered original."""
from __future__ import annotations

from typing import AbstractSet, Iterator, List

from .parser import HEADER_RE, is_delimiter, is_part_end, split_lines


def iter_kept_lines(lines: List[str], allowed: AbstractSet[int]) -> Iterator[str]:
    """Yield the lines of allowed messages plus every delimiter line.

    Messages are counted the same way the parser numbers them: every header
    line starts the next index. Lines before the first header, and lines
    after a part ends, have no owner and are kept as they are.
    """

    current = -1
    include = True
    for line in lines:
        if is_delimiter(line):
            if is_part_end(line):
                include = True
            yield line
            continue
        if HEADER_RE.match(line):
            current += 1
            include = current in allowed
        if include:
            yield line


def regenerate(original: str, allowed: AbstractSet[int]) -> str:
    return "\n".join(iter_kept_lines(split_lines(original), allowed))
