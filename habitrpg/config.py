"""Bot configuration utilities."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .constants import DEFAULT_DAY_START_HOUR, DEFAULT_TIMEZONE, SYNC_DEBOUNCE_SECONDS


def env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class BotConfig:
    token: str
    timezone: str = DEFAULT_TIMEZONE
    day_start_hour: int = DEFAULT_DAY_START_HOUR
    sync_debounce: float = SYNC_DEBOUNCE_SECONDS
    remote_sync: bool = True
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls) -> "BotConfig":
        token = env("DISCORD_TOKEN")
        timezone = os.getenv("HABITRPG_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
        day_start_hour = int(os.getenv("HABITRPG_DAY_START_HOUR", str(DEFAULT_DAY_START_HOUR)))
        day_start_hour = min(23, max(0, day_start_hour))
        sync_debounce = float(os.getenv("HABITRPG_SYNC_DEBOUNCE", str(SYNC_DEBOUNCE_SECONDS)))
        sync_debounce = max(0.0, sync_debounce)
        remote_sync = _env_flag("HABITRPG_REMOTE_SYNC", True)
        level_name = os.getenv("HABITRPG_LOG_LEVEL", "INFO").strip().upper()
        log_level = logging.getLevelName(level_name)
        if not isinstance(log_level, int):
            log_level = logging.INFO

        return cls(
            token=token,
            timezone=timezone,
            day_start_hour=day_start_hour,
            sync_debounce=sync_debounce,
            remote_sync=remote_sync,
            log_level=log_level,
        )


__all__ = ["BotConfig", "env"]
