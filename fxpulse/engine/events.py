"""Stream events and errors shared by the vendor feeds and the stream client.

Everything a MarketDataStreamClient has to say to its owner goes through a
single ordered channel of these event values:

    Connected   transport open and every subscription re-sent
    Price       one price update for a (symbol, timeframe)
    Error       vendor-reported error (fatal kinds end the client)
    Closed      transport closed (dropped, or by disconnect())
    Failed      terminal: reconnect attempts exhausted or auth rejected
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Final

# vendor error kinds that must end the client instead of reconnecting
FATAL_ERROR_KINDS: Final = frozenset({"authentication_failed"})


class ConnectionState(enum.Enum):
    Disconnected = "disconnected"
    Connecting = "connecting"
    Connected = "connected"
    Reconnecting = "reconnecting"
    Failed = "failed"


@dataclass(slots=True, frozen=True)
class Connected:
    url: str
    attempt: int = 0


@dataclass(slots=True, frozen=True)
class Price:
    symbol: str

    # None for feeds that key updates by symbol only
    timeframe: str | None
    data: Any


@dataclass(slots=True, frozen=True)
class Error:
    kind: str
    detail: Any = None

    @property
    def fatal(self) -> bool:
        return self.kind in FATAL_ERROR_KINDS


@dataclass(slots=True, frozen=True)
class Closed:
    code: int | None
    reason: str = ""


@dataclass(slots=True, frozen=True)
class Failed:
    reason: str


type StreamEvent = Connected | Price | Error | Closed | Failed


class StreamError(Exception):
    """Base for everything the stream client raises to its caller."""


class AuthenticationError(StreamError):
    """Credentials were rejected. Never retried automatically."""


class StreamConnectError(StreamError):
    """The initial connection handshake failed."""


class StreamCancelled(StreamError):
    """A pending connect() was cancelled by disconnect()."""
