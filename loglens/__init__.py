"""Combine, parse and filter application log archives."""

from .filters import FilterQuery, FilterResult, filter_messages
from .parser import LogMessage, parse_combined
from .reader import CombineResult, RawPart, combine_logs
from .regenerate import regenerate
from .sessions import Session, StateTransition, extract_sessions
from .workspace import LogWorkspace

__all__ = [
    "combine_logs",
    "CombineResult",
    "RawPart",
    "parse_combined",
    "LogMessage",
    "extract_sessions",
    "Session",
    "StateTransition",
    "filter_messages",
    "FilterQuery",
    "FilterResult",
    "regenerate",
    "LogWorkspace",
]
