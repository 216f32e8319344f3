"""Timestamp helpers.

Timestamps are stored as ISO-8601 UTC strings with millisecond precision and a
trailing ``Z`` so that string comparison in SQL is chronological.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def iso_after_days(days: int, start: Optional[datetime] = None) -> str:
    """ISO timestamp ``days`` days after ``start`` (defaults to now)"""
    start = start or datetime.now(timezone.utc)
    return to_iso(start + timedelta(days=days))


def parse_iso(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
