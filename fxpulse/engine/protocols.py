"""Narrow protocols for the seams between engine modules.

These protocols define the minimal interfaces the session evaluator and the
stream client need from their collaborators, so tests can hand in fixed
clocks and fake sockets instead of real timezone data or a live vendor.
"""
from __future__ import annotations

from collections.abc import Hashable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from fxpulse.engine.clock import MarketClockReading
    from fxpulse.engine.events import StreamEvent


@runtime_checkable
class ClockReader(Protocol):
    """Timestamp to market-timezone wall clock."""

    def read(self, instant: Any = None) -> MarketClockReading: ...


@runtime_checkable
class Transport(Protocol):
    """One open streaming connection (a websockets client connection or a fake)."""

    async def send(self, message: str) -> None: ...
    async def recv(self) -> str | bytes: ...
    async def close(self, code: int = 1000, reason: str = "") -> None: ...


@runtime_checkable
class Feed(Protocol):
    """Vendor wire protocol spoken over a Transport."""

    name: str

    async def authenticate(self, credentials: Any = None, http: Any = None) -> str: ...
    def url(self, token: str) -> str: ...
    def remoteKey(self, symbol: str, timeframe: str) -> Hashable: ...
    def subscribeMessage(self, symbol: str, timeframe: str) -> dict: ...
    def unsubscribeMessage(self, symbol: str, timeframe: str) -> dict: ...
    def parse(self, raw: str | bytes) -> list[StreamEvent]: ...
