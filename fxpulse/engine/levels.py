"""Price levels pulled out of footprint signal data."""
from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Final

from fxpulse.engine.pairs import decimalsForPair

DEFAULT_MAX_LEVELS: Final = 12

# wide enough to quantize any finite float to pair precision
_ROUNDING: Final = Context(prec=400, rounding=ROUND_HALF_UP)

# (container under footprint.signals, fields read from each entry)
LEVEL_SOURCES: Final = (
    ("zones", ("start", "end")),
    ("imbalanceFVG", ("from", "to")),
)


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)

    return getattr(obj, key, None)


def _candidates(footprint: Any) -> Iterator[Any]:
    signals = _get(footprint, "signals") if footprint is not None else None
    if signals is None:
        return

    for container, fields in LEVEL_SOURCES:
        entries = _get(signals, container)

        # anything that isn't a list/tuple of entries is treated as empty
        if not isinstance(entries, (list, tuple)):
            continue

        for entry in entries:
            if entry is None:
                continue

            for field in fields:
                yield _get(entry, field)


def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None

    try:
        number = float(value)
    except (TypeError, ValueError):
        return None

    return number if math.isfinite(number) else None


def roundHalfUp(value: float, decimals: int) -> tuple[float, str]:
    """Round the exact binary value of 'value', ties away from zero.

    Returns the rounded float and its fixed-precision string; 150.0625 at
    3 decimals is 150.063, where round() would give 150.062.
    """
    quantized = Decimal(value).quantize(Decimal(1).scaleb(-decimals), context=_ROUNDING)
    return float(quantized), format(quantized, "f")


def _limit(maxLevels: Any) -> int:
    try:
        return max(0, int(maxLevels))
    except (TypeError, ValueError, OverflowError):
        return 0


def extractKeyLevels(
    footprint: Any, pair: str, maxLevels: Any = DEFAULT_MAX_LEVELS
) -> list[float]:
    """Zone bounds and FVG edges, rounded to pair precision, deduplicated, ascending.

    Deduplication uses the fixed-precision string of the rounded value, so
    1.10000 and 1.1 are the same level. Missing or malformed signal data
    just contributes nothing.
    """
    decimals = decimalsForPair(pair)
    seen: set[str] = set()
    levels: list[float] = []

    for candidate in _candidates(footprint):
        if (number := _finite(candidate)) is None:
            continue

        rounded, key = roundHalfUp(number, decimals)
        if key in seen:
            continue

        seen.add(key)
        levels.append(rounded)

    levels.sort()
    return levels[: _limit(maxLevels)]
