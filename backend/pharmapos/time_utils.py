# Overview: UTC time helpers. Timestamps are stored UTC-naive and serialized with a trailing Z.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time, UTC-naive. Sale timestamps, session expiry and report windows all use this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    """Aware values are converted to UTC and stripped; naive values are already UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-05-19T10:00Z", "2026-05-19T11:00+01:00" or a naive
    "2026-05-19T10:00" (read as UTC) -> UTC-naive datetime.
    Blank input -> None. Malformed input raises ValueError.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc_naive(datetime.fromisoformat(text))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD"; None / "" -> None."""
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip())


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 with a trailing Z; naive values are taken as UTC."""
    if dt is None:
        return None
    return to_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"
