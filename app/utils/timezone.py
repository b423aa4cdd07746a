"""
app/utils/timezone.py — UTC clock helpers and hourly window math
Rate-limit windows are wall-clock hours in UTC ("YYYY-MM-DDTHH").
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

import pytz

UTC = pytz.utc


def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def hour_bucket(now: Optional[datetime] = None) -> str:
    """Return the fixed window key for `now`, e.g. '2024-01-15T10'."""
    now = ensure_utc(now or utc_now())
    return now.strftime("%Y-%m-%dT%H")


def seconds_until_next_hour(now: Optional[datetime] = None) -> int:
    """
    Seconds remaining until the next hour boundary, rounded up.
    Always within (0, 3600]; exactly on the boundary waits a full hour.
    """
    now = ensure_utc(now or utc_now())
    next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    remaining = (next_hour - now).total_seconds()
    return max(1, math.ceil(remaining))


def epoch_seconds(now: Optional[datetime] = None) -> int:
    """Integer epoch seconds, used for counter expiry stamps."""
    now = ensure_utc(now or utc_now())
    return int(now.timestamp())


def iso_utc(dt: Optional[datetime] = None) -> str:
    """ISO-8601 UTC string with a trailing Z."""
    dt = ensure_utc(dt or utc_now())
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
