"""Shared normalization utilities"""

import json
import re
from typing import Any

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def normalize(value: Any) -> str:
    """Trim strings; anything that is not a string becomes empty"""
    if not isinstance(value, str):
        return ""
    return value.strip()


def normalize_time(value: Any) -> str:
    """Return a 24-hour ``HH:MM`` string or empty when invalid"""
    match = TIME_PATTERN.match(normalize(value))
    return f"{match.group(1)}:{match.group(2)}" if match else ""


def title_case_words(value: Any) -> str:
    """Capitalize each whitespace-delimited token for display"""
    return " ".join(part[0].upper() + part[1:].lower() for part in normalize(value).split())


def to_safe_bool(value: Any, fallback: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return fallback


def parse_availability_slots(value: Any) -> list[dict]:
    """
    Normalize raw availability slots.

    Accepts a list or a JSON-encoded string. Entries without a day, and
    non-flexible entries without a valid ``start < end`` pair, are dropped.
    """
    raw_slots = value
    if isinstance(raw_slots, str):
        try:
            raw_slots = json.loads(raw_slots)
        except ValueError:
            return []
    if not isinstance(raw_slots, list):
        return []

    slots = []
    for entry in raw_slots:
        if not isinstance(entry, dict):
            continue
        day = normalize(entry.get("day"))
        start = normalize_time(entry.get("start"))
        end = normalize_time(entry.get("end"))
        flexible = to_safe_bool(entry.get("flexible"), fallback=bool(entry.get("flexible")))
        if not day:
            continue
        # Zero-padded HH:MM strings order the same way as minutes
        if not flexible and (not start or not end or start >= end):
            continue
        slots.append(
            {
                "day": day,
                "start": "" if flexible else start,
                "end": "" if flexible else end,
                "flexible": flexible,
            }
        )
    return slots


def parse_slots_from_row(value: Any) -> list[dict]:
    """Stored slot JSON, re-normalized since imported rows were never cleaned"""
    if not isinstance(value, str):
        return []
    return parse_availability_slots(value or "[]")
