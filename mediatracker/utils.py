"""Utility helpers for the media tracker."""

from __future__ import annotations

import re
from typing import Any

_YEAR_RE = re.compile(r"(19|20|21)\d{2}")


def parse_year(value: Any) -> int | None:
    """Extract a plausible four digit year from a date-like value."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 1800 <= value <= 2200 else None
    if not value:
        return None
    match = _YEAR_RE.search(str(value))
    if not match:
        return None
    try:
        year = int(match.group(0))
    except ValueError:
        return None
    if 1900 <= year <= 2100:
        return year
    return None


def ensure_url(value: Any) -> str | None:
    if isinstance(value, str) and value.startswith("http"):
        return value
    return None


def coerce_int(value: Any) -> int | None:
    """Return ``value`` as an int when it is a finite whole number."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number)


def coerce_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def names_from(entries: Any, key: str = "name") -> list[str]:
    """Collect ``key`` from a list of provider objects, skipping blanks."""

    if not isinstance(entries, list):
        return []
    names: list[str] = []
    for entry in entries:
        if isinstance(entry, dict):
            value = entry.get(key)
        else:
            value = entry
        if isinstance(value, str) and value.strip():
            names.append(value.strip())
    return names
