"""Environment driven settings for the log pipeline."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from typing import Mapping

CURRENT_LOG_ENV = "LOGLENS_CURRENT_LOG"
OUTPUT_NAME_ENV = "LOGLENS_OUTPUT_NAME"
MAX_DISPLAY_MB_ENV = "LOGLENS_MAX_DISPLAY_MB"
LOG_LEVEL_ENV = "LOGLENS_LOG_LEVEL"

DEFAULT_CURRENT_LOG = "log.txt"
DEFAULT_OUTPUT_NAME = "combined_logs.txt"
DEFAULT_MAX_DISPLAY_MB = 50
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    current_log: str = DEFAULT_CURRENT_LOG
    output_name: str = DEFAULT_OUTPUT_NAME
    max_display_mb: float = DEFAULT_MAX_DISPLAY_MB
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def max_display_bytes(self) -> int:
        return int(self.max_display_mb * 1024 * 1024)

    @property
    def history_pattern(self) -> re.Pattern[str]:
        """Pattern for history archives, ``log.history12.txt.zip`` for ``log.txt``."""

        stem, dot, suffix = self.current_log.rpartition(".")
        if not dot:
            stem, suffix = self.current_log, ""
        tail = re.escape(f".{suffix}") if suffix else ""
        return re.compile(rf"^{re.escape(stem)}\.history(\d+){tail}\.zip$")

    def with_overrides(self, **overrides) -> "Settings":
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **cleaned)


def _read_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from environment variables, falling back to defaults."""

    env = os.environ if environ is None else environ
    return Settings(
        current_log=env.get(CURRENT_LOG_ENV) or DEFAULT_CURRENT_LOG,
        output_name=env.get(OUTPUT_NAME_ENV) or DEFAULT_OUTPUT_NAME,
        max_display_mb=_read_float(env, MAX_DISPLAY_MB_ENV, DEFAULT_MAX_DISPLAY_MB),
        log_level=(env.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper(),
    )
