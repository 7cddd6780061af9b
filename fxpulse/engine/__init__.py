"""fxpulse engine layer — session rules, pair analytics, and the stream client.

All modules use ``from __future__ import annotations`` and modern Python
typing (``str | None``, ``@dataclass(slots=True)``, PEP 695 aliases).

Modules
-------
clock
    Market-timezone wall clock.
    - ``MarketClock``: ``read(instant) -> MarketClockReading`` in one configured IANA zone (never raises)
    - ``MarketClockReading``: weekday name, Sunday=0 weekday index (-1 unknown), hour, minute, second
    - ``FixedClock``: always returns one reading (deterministic tests)

session
    Weekly forex session rule.
    - ``MarketSessionEvaluator``: ``isOpen(instant)``, ``status(instant) -> MarketStatus``
    - ``MarketStatus``: isOpen, reason (open/weekend/closed), timezone, marketDay, marketTime
    - ``tradingSessionUtc``: ASIA / LONDON / NY label by UTC hour

pairs
    ``splitPair``, ``isJpyPair``, ``decimalsForPair``, and the ``PAIR_TO_SYMBOL`` vendor map

timeframes
    - ``normalizeTimeframe``: "M15" / "1hr" / " D1 " -> "15m" / "1h" / "1d" (None if unparseable)
    - ``defaultPoints``: bars of history to request per canonical interval

pips
    - ``pipValuePerLot``: USD pip value of 1.00 lot for X/USD and USD/X pairs (None otherwise)

levels
    - ``extractKeyLevels``: rounded, deduplicated, sorted, capped zone/FVG price levels

events
    Stream event values (``Connected``, ``Price``, ``Error``, ``Closed``, ``Failed``),
    ``ConnectionState``, and the ``StreamError`` exception family

feeds
    Vendor wire protocols: ``TokenSocketFeed`` (login -> token -> socket) and
    ``KeyJoinFeed`` (API key socket with per-symbol join messages)

stream
    - ``MarketDataStreamClient``: one transport, many subscriptions, bounded fixed-delay reconnect
"""

# Convenience re-exports for common usage:
# from fxpulse.engine import MarketSessionEvaluator, MarketDataStreamClient
from fxpulse.engine.clock import FixedClock, MarketClock, MarketClockReading
from fxpulse.engine.events import (
    AuthenticationError,
    ConnectionState,
    StreamConnectError,
    StreamError,
)
from fxpulse.engine.feeds import KeyJoinFeed, TokenSocketFeed
from fxpulse.engine.levels import extractKeyLevels
from fxpulse.engine.pips import pipValuePerLot
from fxpulse.engine.session import MarketSessionEvaluator, MarketStatus, tradingSessionUtc
from fxpulse.engine.stream import MarketDataStreamClient
from fxpulse.engine.timeframes import defaultPoints, normalizeTimeframe

__all__ = [
    "AuthenticationError",
    "ConnectionState",
    "FixedClock",
    "KeyJoinFeed",
    "MarketClock",
    "MarketClockReading",
    "MarketDataStreamClient",
    "MarketSessionEvaluator",
    "MarketStatus",
    "StreamConnectError",
    "StreamError",
    "TokenSocketFeed",
    "defaultPoints",
    "extractKeyLevels",
    "normalizeTimeframe",
    "pipValuePerLot",
    "tradingSessionUtc",
]
