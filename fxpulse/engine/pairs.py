"""Currency pair parsing and the vendor symbol map."""
from __future__ import annotations

from typing import Any, Final

# vendor symbols are "FX:" + the pair without its slash
PAIR_TO_SYMBOL: Final = {
    "EUR/USD": "FX:EURUSD",
    "GBP/USD": "FX:GBPUSD",
    "USD/JPY": "FX:USDJPY",
    "USD/CHF": "FX:USDCHF",
    "AUD/USD": "FX:AUDUSD",
    "USD/CAD": "FX:USDCAD",
    "NZD/USD": "FX:NZDUSD",
    "EUR/GBP": "FX:EURGBP",
    "EUR/JPY": "FX:EURJPY",
    "GBP/JPY": "FX:GBPJPY",
    "EUR/CHF": "FX:EURCHF",
    "AUD/JPY": "FX:AUDJPY",
    "CAD/JPY": "FX:CADJPY",
    "CHF/JPY": "FX:CHFJPY",
    "AUD/CAD": "FX:AUDCAD",
    "NZD/JPY": "FX:NZDJPY",
    # metals only stream if the vendor plan includes them
    "XAU/USD": "FX:XAUUSD",
}

SYMBOL_TO_PAIR: Final = {symbol: pair for pair, symbol in PAIR_TO_SYMBOL.items()}

SUPPORTED_PAIRS: Final = tuple(PAIR_TO_SYMBOL)


def splitPair(pair: Any) -> tuple[str, str] | None:
    """Split 'BASE/QUOTE' into upper-cased legs, or None if it isn't one."""
    if not isinstance(pair, str) or pair.count("/") != 1:
        return None

    base, quote = (leg.strip().upper() for leg in pair.split("/"))
    if not (base and quote):
        return None

    return base, quote


def isJpyPair(pair: Any) -> bool:
    return isinstance(pair, str) and "JPY" in pair.upper()


def decimalsForPair(pair: Any) -> int:
    """Quote precision: JPY pairs carry 3 decimals, everything else 5."""
    return 3 if isJpyPair(pair) else 5


def symbolForPair(pair: str) -> str | None:
    if not (legs := splitPair(pair)):
        return None

    return PAIR_TO_SYMBOL.get("/".join(legs))


def pairForSymbol(symbol: str) -> str | None:
    return SYMBOL_TO_PAIR.get(symbol.strip().upper()) if isinstance(symbol, str) else None
