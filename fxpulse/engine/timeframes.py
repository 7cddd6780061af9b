"""Timeframe string normalization and default footprint window sizes."""
from __future__ import annotations

import re
from typing import Any, Final

# "M15", "H4", "D1" (vendor/terminal style)
PREFIX_FORM: Final = re.compile(r"^([mhd])(\d+)$")

# "15m", "4h", "1d" after aliases are expanded
CANONICAL_FORM: Final = re.compile(r"^(\d+)([mhd])$")

# longest alias first so "minutes" doesn't become "m" + "utes"
UNIT_ALIASES: Final = (
    (re.compile(r"hours|hour|hrs|hr"), "h"),
    (re.compile(r"minutes|minute|mins|min"), "m"),
    (re.compile(r"days|day"), "d"),
)

WHITESPACE: Final = re.compile(r"\s+")

# bars of history to request per interval
DEFAULT_FOOTPRINT_POINTS: Final = {
    "1m": 360,  # ~6 hours
    "15m": 240,  # ~60 hours
    "1h": 240,  # ~10 days
    "4h": 240,  # ~40 days
    "1d": 180,  # ~6 months
}

FALLBACK_FOOTPRINT_POINTS: Final = 180


def normalizeTimeframe(value: Any) -> str | None:
    """Convert a loosely written timeframe into '<count><m|h|d>'.

    Returns None for anything unparseable. A zero count ("0m") is still
    syntactically valid and returned as-is; rejecting empty intervals is
    the caller's decision.
    """
    if not isinstance(value, str):
        return None

    raw = WHITESPACE.sub("", value.strip().lower())
    if not raw:
        return None

    if found := PREFIX_FORM.match(raw):
        unit, count = found.groups()
        return f"{int(count)}{unit}"

    for alias, unit in UNIT_ALIASES:
        raw = alias.sub(unit, raw)

    if not (found := CANONICAL_FORM.match(raw)):
        return None

    count, unit = found.groups()
    return f"{int(count)}{unit}"


def defaultPoints(interval: str | None) -> int:
    return DEFAULT_FOOTPRINT_POINTS.get(interval or "", FALLBACK_FOOTPRINT_POINTS)
