"""Game-day and game-week helpers.

A *game day* is a calendar day in the player's timezone that starts at a
configurable hour instead of midnight, so a late-night check-in at 01:30 still
counts towards the previous day.  All helpers here are pure: identical inputs
always produce identical keys.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .constants import DAYS_PER_WEEK

log = logging.getLogger(__name__)

Timestamp = Union[float, int, datetime]


@lru_cache(maxsize=32)
def _resolve_zone(name: str) -> timezone | ZoneInfo:
    normalized = (name or "").strip()
    if not normalized or normalized.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Unknown timezone %r; falling back to UTC", name)
        return timezone.utc


def is_known_timezone(name: str) -> bool:
    normalized = (name or "").strip()
    if normalized.upper() == "UTC":
        return True
    try:
        ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def local_datetime(tz_name: str, now: Timestamp) -> datetime:
    """Return ``now`` expressed in ``tz_name``."""

    zone = _resolve_zone(tz_name)
    if isinstance(now, datetime):
        moment = now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)
        return moment.astimezone(zone)
    return datetime.fromtimestamp(float(now), tz=zone)


def game_date(tz_name: str, day_start_hour: int, now: Timestamp) -> str:
    """Return the ``YYYY-MM-DD`` game-day key for ``now``."""

    local = local_datetime(tz_name, now)
    day = local.date()
    if local.hour < int(day_start_hour):
        day -= timedelta(days=1)
    return day.isoformat()


def parse_date_key(key: str) -> date:
    return date.fromisoformat(str(key))


def days_between(start: str, end: str) -> int:
    return (parse_date_key(end) - parse_date_key(start)).days


def previous_day(key: str) -> str:
    return (parse_date_key(key) - timedelta(days=1)).isoformat()


def week_number(season_start: str, today: str) -> int:
    """Return the 1-based season week containing ``today``."""

    elapsed = days_between(season_start, today)
    if elapsed < 0:
        return 1
    return elapsed // DAYS_PER_WEEK + 1


__all__ = [
    "Timestamp",
    "days_between",
    "game_date",
    "is_known_timezone",
    "local_datetime",
    "parse_date_key",
    "previous_day",
    "week_number",
]
