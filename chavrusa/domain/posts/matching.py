"""Availability matching between a browser's day/time filter and a post's slots"""

from typing import Optional

from ...shared.validators import normalize, normalize_time


def time_to_minutes(value: str) -> Optional[int]:
    """Minutes since midnight for an ``HH:MM`` string, or None"""
    normalized = normalize_time(value)
    if not normalized:
        return None
    hours, minutes = normalized.split(":")
    return int(hours) * 60 + int(minutes)


def matches(post: dict, day: Optional[str] = None, time: Optional[str] = None) -> bool:
    """
    True when the post has availability that fits the filter.

    ``post`` is a public post mapping with ``openToOtherTimes`` and
    ``availabilitySlots``. Without filters every post matches, and
    ``openToOtherTimes`` matches any filter regardless of slots.
    """
    day = normalize(day)
    # An unparseable time is treated as no time filter
    time = normalize_time(time)
    if not day and not time:
        return True
    if post.get("openToOtherTimes"):
        return True

    slots = post.get("availabilitySlots") or []
    selected = time_to_minutes(time) if time else None

    for slot in slots:
        if day and slot.get("day") != day:
            continue
        if slot.get("flexible") or selected is None:
            return True
        start = time_to_minutes(slot.get("start", ""))
        end = time_to_minutes(slot.get("end", ""))
        if start is None or end is None:
            continue
        if start <= selected <= end:
            return True
    return False


def sort_by_availability(
    posts: list[dict], day: Optional[str] = None, time: Optional[str] = None
) -> list[dict]:
    """Matching posts first, newest first within each group"""
    newest_first = sorted(posts, key=lambda p: p.get("createdAt") or "", reverse=True)
    return sorted(newest_first, key=lambda p: 0 if matches(p, day, time) else 1)
