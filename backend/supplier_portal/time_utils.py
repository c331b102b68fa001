from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime read back from the database.

    SQLite drops tzinfo while other backends keep it; comparisons in the
    services always happen on UTC-naive values.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when expires_at is missing or not strictly in the future."""
    if expires_at is None:
        return True
    now = now or utcnow()
    return as_utc_naive(expires_at) <= now


def seconds_ago(seconds: int, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - timedelta(seconds=seconds)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
