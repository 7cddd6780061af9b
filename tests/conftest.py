"""Shared test fixtures for the fxpulse test suite.

FakeTransport and FakeConnector stand in for a websockets connection so the
stream client can be driven headlessly, frame by frame, without a vendor.
"""

import asyncio
from typing import Any

import orjson
import pytest
import websockets
from websockets.frames import Close

from fxpulse.engine.clock import FixedClock, MarketClockReading
from fxpulse.engine.feeds import KeyJoinFeed, TokenSocketFeed
from fxpulse.engine.stream import MarketDataStreamClient


class FakeTransport:
    """Test double for a websockets ClientConnection.

    Inbound frames are fed with push()/drop(); outbound frames are decoded
    and recorded in .sent.
    """

    def __init__(self, *frames: Any):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False
        self.failSends = False

        for frame in frames:
            self.push(frame)

    # ── Test helpers ──

    def push(self, frame: Any) -> None:
        """Queue an inbound frame (dicts are JSON encoded)."""
        if isinstance(frame, dict):
            frame = orjson.dumps(frame).decode()

        self.incoming.put_nowait(frame)

    def drop(self, code: int = 1006, reason: str = "") -> None:
        """Simulate the server going away."""
        self.incoming.put_nowait(websockets.ConnectionClosed(Close(code, reason), None))

    # ── Transport ──

    async def send(self, message: str) -> None:
        if self.closed or self.failSends:
            raise websockets.ConnectionClosed(None, Close(1000, ""))

        self.sent.append(orjson.loads(message))

    async def recv(self) -> str | bytes:
        frame = await self.incoming.get()
        if isinstance(frame, BaseException):
            raise frame

        return frame

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self.closed:
            self.closed = True
            self.incoming.put_nowait(websockets.ConnectionClosed(None, Close(code, reason)))


class FakeConnector:
    """Scripted replacement for websockets.connect.

    Each call pops the next outcome: a FakeTransport is returned, an
    exception is raised. Once the script runs out, connection attempts
    fail with ConnectionRefusedError.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.urls: list[str] = []
        self.transports: list[FakeTransport] = []

    async def __call__(self, url: str) -> FakeTransport:
        self.urls.append(url)

        if not self.outcomes:
            raise ConnectionRefusedError("no more scripted connections")

        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome

        self.transports.append(outcome)
        return outcome


async def until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds."""

    async def spin():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(spin(), timeout)


async def drainEvents(client: MarketDataStreamClient) -> list:
    found = []
    while True:
        try:
            found.append(await client.nextEvent(timeout=0.01))
        except asyncio.TimeoutError:
            return found


def reading(weekdayIndex: int, hour: int, minute: int = 0, second: int = 0) -> MarketClockReading:
    names = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    weekday = names[weekdayIndex] if weekdayIndex >= 0 else ""
    return MarketClockReading(weekday, weekdayIndex, hour, minute, second)


# ── Fixtures ──


@pytest.fixture
def fixedClockAt():
    """Factory: fixedClockAt(weekdayIndex, hour) -> FixedClock."""

    def make(weekdayIndex: int, hour: int, minute: int = 0, second: int = 0) -> FixedClock:
        return FixedClock(reading(weekdayIndex, hour, minute, second))

    return make


@pytest.fixture
def keyFeed() -> KeyJoinFeed:
    return KeyJoinFeed("test_api_key_12345", "wss://stream.example/ws")


@pytest.fixture
def tokenFeed() -> TokenSocketFeed:
    return TokenSocketFeed("https://api.example")


@pytest.fixture
def makeClient(keyFeed):
    """Factory for clients wired to a FakeConnector with zero reconnect delay."""

    def make(*outcomes, feed=None, maxAttempts: int = 3, reconnectDelay: float = 0.0, **kwargs):
        connector = FakeConnector(*outcomes)
        client = MarketDataStreamClient(
            feed or keyFeed,
            maxAttempts=maxAttempts,
            reconnectDelay=reconnectDelay,
            connector=connector,
            **kwargs,
        )
        return client, connector

    return make
