"""Hierarchical channel index built from message channel lists."""
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Set

from .parser import LogMessage

PATH_SEPARATOR = ">"
NO_CHANNEL = "(no channel)"


def join_path(channels: Sequence[str]) -> str:
    return PATH_SEPARATOR.join(channels)


def prefix_paths(channels: Sequence[str]) -> List[str]:
    """``["A", "B", "C"]`` -> ``["A", "A>B", "A>B>C"]``."""

    return [join_path(channels[: depth + 1]) for depth in range(len(channels))]


class ChannelIndex:
    """Maps every channel path to the names of its immediate children."""

    def __init__(self) -> None:
        self._children: Dict[str, Set[str]] = {}
        self._roots: Set[str] = set()

    def register(self, channels: Sequence[str]) -> None:
        if not channels:
            return
        self._roots.add(channels[0])
        for depth, path in enumerate(prefix_paths(channels)):
            children = self._children.setdefault(path, set())
            if depth + 1 < len(channels):
                children.add(channels[depth + 1])

    def __contains__(self, path: str) -> bool:
        return path in self._children

    def __len__(self) -> int:
        return len(self._children)

    def children(self, path: str) -> Set[str]:
        return set(self._children.get(path, ()))

    def roots(self) -> List[str]:
        return sorted(self._roots)

    def paths(self) -> List[str]:
        return sorted(self._children)

    def to_tree(self, include_no_channel: bool = False) -> dict:
        """Nested ``{name: {child: {...}}}`` mapping with sorted keys."""

        def build(path: str) -> dict:
            return {
                name: build(f"{path}{PATH_SEPARATOR}{name}")
                for name in sorted(self._children.get(path, ()))
            }

        tree = {}
        if include_no_channel:
            tree[NO_CHANNEL] = {}
        for root in self.roots():
            tree[root] = build(root)
        return tree


def build_channel_index(messages: Iterable[LogMessage]) -> ChannelIndex:
    index = ChannelIndex()
    for message in messages:
        index.register(message.channels)
    return index


def has_unchanneled(messages: Iterable[LogMessage]) -> bool:
    return any(not message.channels for message in messages)
