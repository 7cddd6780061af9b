"""USD pip value per standard lot."""
from __future__ import annotations

import math
from typing import Any, Final

from fxpulse.engine.pairs import splitPair

STANDARD_LOT: Final = 100_000

PIP_SIZE: Final = 0.0001
PIP_SIZE_JPY: Final = 0.01


def pipSize(quote: str) -> float:
    return PIP_SIZE_JPY if quote == "JPY" else PIP_SIZE


def _price(value: Any) -> float | None:
    if isinstance(value, bool):
        return None

    try:
        price = float(value)
    except (TypeError, ValueError):
        return None

    if not math.isfinite(price) or price <= 0:
        return None

    return price


def pipValuePerLot(pair: Any, price: Any, accountCurrency: str = "USD") -> float | None:
    """Value of one pip on 1.00 lot, in USD, or None when it can't be computed.

    Only USD accounts are supported, and only pairs with a USD leg:

        X/USD  pip value is already in USD (10 per pip)
        USD/X  quote-currency pip value divided by the USD/X price

    Cross pairs (neither leg USD) would need a third rate and return None.
    """
    if accountCurrency != "USD":
        return None

    if not (legs := splitPair(pair)):
        return None

    if (rate := _price(price)) is None:
        return None

    base, quote = legs
    pipValueInQuote = pipSize(quote) * STANDARD_LOT

    if quote == "USD":
        return pipValueInQuote

    if base == "USD":
        return pipValueInQuote / rate

    return None
