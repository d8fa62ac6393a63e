"""Command line interface for combining and filtering log archives."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Sequence

from .app import run_app
from .channels import NO_CHANNEL, PATH_SEPARATOR
from .config import load_settings
from .filters import FilterQuery, FilterResult, RECOGNIZED_LEVELS, level_counts
from .reader import ArchiveError
from .workspace import LogWorkspace, Snapshot


def _level_label(level: str) -> str:
    return repr(level) if level.strip() == "" else level


def format_report(snapshot: Snapshot) -> str:
    combined = snapshot.combined
    lines = []
    lines.append("Log archive report")
    lines.append("=" * 60)
    lines.append(f"Parts combined  : {len(combined.parts)}")
    for part in combined.parts:
        lines.append(f" - {part.label}")
    lines.append(f"Messages parsed : {len(snapshot.parsed.messages)}")
    lines.append(f"Channel paths   : {len(snapshot.channels)}")
    if snapshot.output_path is not None:
        lines.append(f"Combined file   : {snapshot.output_path}")

    counts = {level: count for level, count in level_counts(snapshot.parsed.messages).items() if count}
    if counts:
        lines.append("\nMessages by level:")
        for level, count in counts.items():
            lines.append(f" - {_level_label(level)}: {count}")
    if len(snapshot.sessions):
        lines.append("\nSessions:")
        for session in snapshot.sessions:
            started = session.first_message_timestamp or "no messages"
            build = f" build {session.build_version}" if session.build_version else ""
            lines.append(f" - #{session.index} at {started}{build}")
            for transition in session.transitions:
                lines.append(f"     {transition.timestamp} {transition.from_state} -> {transition.to_state}")
    if combined.warnings:
        lines.append("\nWarnings:")
        for warning in combined.warnings:
            lines.append(f" - {warning}")
    return "\n".join(lines)


def format_filter_result(result: FilterResult, snapshot: Snapshot) -> str:
    lines = [f"Matched {result.count} of {len(snapshot.parsed.messages)} message(s)"]
    if snapshot.output_path is not None:
        lines.append(f"Filtered log written to {snapshot.output_path}")
    return "\n".join(lines)


def _expand_channels(requested: Sequence[str], known: List[str]) -> set:
    """A requested path enables itself, its ancestors and its descendants."""

    enabled = set()
    for path in requested:
        if path == NO_CHANNEL:
            enabled.add(NO_CHANNEL)
            continue
        parts = path.split(PATH_SEPARATOR)
        for depth in range(1, len(parts) + 1):
            enabled.add(PATH_SEPARATOR.join(parts[:depth]))
        enabled.update(candidate for candidate in known if candidate.startswith(path + PATH_SEPARATOR))
    return enabled


def build_query(args: argparse.Namespace, workspace: LogWorkspace) -> FilterQuery:
    base = workspace.default_query(text=args.text or "")
    levels = frozenset(args.level) if args.level else base.levels
    channels = set(base.channels)
    if args.channel:
        channels = _expand_channels(args.channel, workspace.snapshot.channels.paths())
    for path in args.exclude_channel or []:
        channels.discard(path)
    sessions = frozenset(args.session) if args.session else base.sessions
    return FilterQuery(levels=levels, channels=frozenset(channels), sessions=sessions, text=base.text)


def has_filters(args: argparse.Namespace) -> bool:
    return bool(args.level or args.channel or args.exclude_channel or args.session or args.text)


def _positive_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError("must be positive")
    return value


def parse_args(argv: Sequence[str] | None = None):
    parser = argparse.ArgumentParser(description="Combine log archives and filter them by level, channel, session or text.")
    parser.add_argument("path", nargs="?", type=Path, help="Log folder, a file inside it, or a zip of logs")
    parser.add_argument("--archive", type=Path, help="Zip holding the current log and nested history zips")
    parser.add_argument(
        "--level",
        action="append",
        choices=list(RECOGNIZED_LEVELS),
        help="Keep messages of this level (repeatable)",
    )
    parser.add_argument("--channel", action="append", help="Keep this channel path, e.g. Net>Http (repeatable)")
    parser.add_argument("--exclude-channel", action="append", help="Hide this channel path and everything below it")
    parser.add_argument("--session", action="append", type=int, help="Keep messages of this session (repeatable)")
    parser.add_argument("--text", help="Case-insensitive text the message or its channel path must contain")
    parser.add_argument("--tree", action="store_true", help="Print the channel tree as JSON")
    parser.add_argument("--sessions", action="store_true", help="Print sessions and transitions as JSON")
    parser.add_argument("--no-write", action="store_true", help="Do not write the combined file")
    parser.add_argument("--current-log", help="Name of the current log file (default log.txt)")
    parser.add_argument("--output-name", help="Name of the combined file written beside the logs")
    parser.add_argument("--max-display-mb", type=_positive_float, help="Size above which the combined file is not opened")
    parser.add_argument("--app", action="store_true", help="Serve the JSON API for a log viewer")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind the API to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind the API to")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline progress")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None):
    args = parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from None
    settings = settings.with_overrides(
        current_log=args.current_log,
        output_name=args.output_name,
        max_display_mb=args.max_display_mb,
    )
    logging.basicConfig(
        level=logging.INFO if args.verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.app:
        run_app(host=args.host, port=args.port, settings=settings)
        return

    if not args.path:
        raise SystemExit("Path to a log folder, log file or zip archive is required unless --app is used.")

    workspace = LogWorkspace(settings)
    try:
        snapshot = workspace.combine(args.path, archive=args.archive, write=not args.no_write)
    except (FileNotFoundError, ArchiveError) as exc:
        raise SystemExit(str(exc)) from None

    if args.tree:
        print(json.dumps(workspace.channel_tree(), indent=2, ensure_ascii=False))
        return
    if args.sessions:
        print(json.dumps(workspace.session_export(), indent=2, ensure_ascii=False))
        return
    if has_filters(args):
        result = workspace.apply_filters(build_query(args, workspace))
        print(format_filter_result(result, snapshot))
        return

    print(format_report(snapshot))
    if workspace.is_oversized():
        print(f"\nCombined file exceeds {settings.max_display_mb:g} MB; open it manually if needed.")


if __name__ == "__main__":
    main()
