"""Resilient market-data stream client.

One MarketDataStreamClient owns at most one live transport to a vendor feed
and multiplexes any number of (symbol, timeframe) subscriptions over it.

State machine:

    Disconnected --connect()--> Connecting
    Connecting   --handshake ok--> Connected
    Connecting   --handshake failed--> Failed
    Connected    --drop/error--> Reconnecting (attempts left) | Failed
    Reconnecting --delay elapsed--> Connecting
    any          --disconnect()--> Disconnected

Reconnects use a fixed delay and a bounded number of consecutive attempts.
On every (re)connect the full subscription table is re-sent before the
Connected event and before the first inbound frame is read, and control
messages queued by callers in the meantime are only sent after that replay.
"""
from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable, Hashable
from typing import TYPE_CHECKING, Any, Final

import httpx
import orjson
import websockets
from loguru import logger

from fxpulse.config import clampFloat, clampInt, maskKey
from fxpulse.engine.events import (
    AuthenticationError,
    Closed,
    Connected,
    ConnectionState,
    Error,
    Failed,
    Price,
    StreamCancelled,
    StreamConnectError,
    StreamEvent,
)
from fxpulse.engine.feeds import KeyJoinFeed
from fxpulse.engine.protocols import Feed, Transport

if TYPE_CHECKING:
    from fxpulse.config import Settings

type Listener = Callable[[Price], Any]
type Connector = Callable[[str], Awaitable[Transport]]
type SubscriptionKey = tuple[str, str]

DEFAULT_MAX_ATTEMPTS: Final = 10
DEFAULT_RECONNECT_DELAY: Final = 5.0

# oldest events are dropped once nobody has read this many
MAX_PENDING_EVENTS: Final = 10_000


async def websocketConnector(url: str) -> Transport:
    return await websockets.connect(
        url,
        ping_interval=20,
        ping_timeout=20,
        open_timeout=10,
        close_timeout=2,
        max_size=None,
        compression=None,
    )


def closeInfo(e: websockets.ConnectionClosed) -> tuple[int | None, str]:
    if e.rcvd is not None:
        return e.rcvd.code, e.rcvd.reason

    return None, "connection closed without close frame"


class MarketDataStreamClient:
    """Caller-owned streaming connection with per-symbol subscriptions.

    Parameters
    ----------
    feed:
        Vendor protocol (TokenSocketFeed, KeyJoinFeed, or anything matching
        the Feed protocol).
    maxAttempts:
        Consecutive reconnect attempts before giving up (0 = never reconnect).
    reconnectDelay:
        Fixed seconds between reconnect attempts.
    connector:
        ``async connector(url) -> Transport``; defaults to websockets.connect.
    http:
        Optional shared httpx.AsyncClient handed to feed.authenticate().
    """

    def __init__(
        self,
        feed: Feed,
        *,
        maxAttempts: int = DEFAULT_MAX_ATTEMPTS,
        reconnectDelay: float = DEFAULT_RECONNECT_DELAY,
        connector: Connector | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.feed = feed
        self.maxAttempts = clampInt(maxAttempts, 0, 1000, DEFAULT_MAX_ATTEMPTS)
        self.reconnectDelay = clampFloat(reconnectDelay, 0.0, 300.0, DEFAULT_RECONNECT_DELAY)

        self._connector: Connector = connector or websocketConnector
        self._http = http

        self._state = ConnectionState.Disconnected
        self._token: str | None = None
        self._transport: Transport | None = None
        self._url: str | None = None

        # local table: one listener per (symbol, timeframe)
        self._subscriptions: dict[SubscriptionKey, Listener | None] = {}

        # what the live transport is actually subscribed to (feed.remoteKey values)
        self._remote: set[Hashable] = set()

        self._outbox: asyncio.Queue[dict] = asyncio.Queue()
        self._events: asyncio.Queue[StreamEvent] = asyncio.Queue(maxsize=MAX_PENDING_EVENTS)

        self._attempts = 0
        self._pending: asyncio.Task | None = None
        self._runner: asyncio.Task | None = None

        # bumped by disconnect() so in-flight work can tell it was abandoned
        self._epoch = 0

        self._pricesReceived = 0

    @classmethod
    def fromSettings(cls, settings: Settings, feed: Feed | None = None, **kwargs) -> MarketDataStreamClient:
        return cls(
            feed or KeyJoinFeed(settings.apiKey, settings.wsUrl),
            maxAttempts=settings.maxReconnectAttempts,
            reconnectDelay=settings.reconnectDelay,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def subscriptions(self) -> dict[SubscriptionKey, Listener | None]:
        return dict(self._subscriptions)

    def stats(self) -> dict[str, Any]:
        return {
            "feed": self.feed.name,
            "state": self._state.value,
            "attempts": self._attempts,
            "url": self._maskedUrl(self._url),
            "subscriptions": sorted(self._subscriptions),
            "prices_received": self._pricesReceived,
        }

    # ------------------------------------------------------------------
    # Caller operations
    # ------------------------------------------------------------------

    async def authenticate(self, credentials: Any = None) -> str:
        """Exchange credentials for a token (one request, never retried).

        On a live client a new token is only used by the next (re)connect,
        and a rejection leaves the running connection alone.
        """
        live = self._state in {ConnectionState.Connected, ConnectionState.Reconnecting}

        try:
            self._token = await self.feed.authenticate(credentials, self._http)
        except AuthenticationError as e:
            logger.error("[{}] Authentication failed: {}", self.feed.name, e)
            if not live:
                self._fail(f"authentication failed: {e}")

            raise

        return self._token

    async def connect(self) -> None:
        """Open the transport with the last token and replay subscriptions.

        Resolves once the handshake completes. Raises AuthenticationError if
        credentials are rejected, StreamConnectError for any other handshake
        failure, and StreamCancelled if disconnect() is called meanwhile.
        """
        if self._state not in {ConnectionState.Disconnected, ConnectionState.Failed}:
            logger.warning("[{}] connect() while {}, ignoring", self.feed.name, self._state.value)
            return

        epoch = self._epoch
        self._attempts = 0
        self._setState(ConnectionState.Connecting)

        if self._token is None:
            # key based feeds can authenticate without caller credentials
            await self.authenticate()

            if epoch != self._epoch:
                raise StreamCancelled("connect() cancelled by disconnect()")

        pending = self._pending = asyncio.ensure_future(self._open(0, epoch))

        try:
            await pending
        except asyncio.CancelledError:
            if epoch != self._epoch:
                raise StreamCancelled("connect() cancelled by disconnect()") from None

            self._setState(ConnectionState.Disconnected)
            raise
        except StreamCancelled:
            raise
        except AuthenticationError as e:
            self._fail(f"authentication failed: {e}")
            raise
        except Exception as e:
            logger.error("[{}] Connection failed: {}", self.feed.name, e)
            self._fail(f"connection failed: {e}")
            raise StreamConnectError(str(e)) from e
        finally:
            # a later connect() may already own _pending
            if self._pending is pending:
                self._pending = None

        if epoch != self._epoch:
            raise StreamCancelled("connect() cancelled by disconnect()")

        self._runner = asyncio.create_task(
            self._run(epoch), name=f"fxpulse-stream-{self.feed.name}"
        )

    def subscribe(self, symbol: str, timeframe: str, listener: Listener | None = None) -> None:
        """Register 'listener' for (symbol, timeframe).

        Subscribing an existing key only replaces its listener; the vendor
        is never sent a duplicate subscribe.
        """
        key = (symbol, timeframe)

        if key in self._subscriptions:
            self._subscriptions[key] = listener
            logger.debug("[{}] Replaced listener for {} @ {}", self.feed.name, symbol, timeframe)
            return

        self._subscriptions[key] = listener
        remote = self.feed.remoteKey(symbol, timeframe)

        # while (re)connecting the replay picks new keys up from the table
        if self._state is ConnectionState.Connected and remote not in self._remote:
            self._remote.add(remote)
            self._outbox.put_nowait(self.feed.subscribeMessage(symbol, timeframe))

        logger.info("[{}] Subscribed {} @ {}", self.feed.name, symbol, timeframe)

    def unsubscribe(self, symbol: str, timeframe: str) -> None:
        key = (symbol, timeframe)
        if key not in self._subscriptions:
            return

        del self._subscriptions[key]
        remote = self.feed.remoteKey(symbol, timeframe)

        stillWanted = any(self.feed.remoteKey(*k) == remote for k in self._subscriptions)
        if remote in self._remote and not stillWanted:
            self._remote.discard(remote)
            self._outbox.put_nowait(self.feed.unsubscribeMessage(symbol, timeframe))

        logger.info("[{}] Unsubscribed {} @ {}", self.feed.name, symbol, timeframe)

    async def disconnect(self) -> None:
        """Close everything and forget all subscriptions. Safe from any state."""
        self._epoch += 1
        current = asyncio.current_task()

        if self._pending and not self._pending.done():
            self._pending.cancel()

        runner, self._runner = self._runner, None
        if runner and runner is not current and not runner.done():
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)

        transport, self._transport = self._transport, None
        if transport is not None:
            await self._closeTransport(transport)

        self._subscriptions.clear()
        self._remote.clear()
        self._drainOutbox()
        self._attempts = 0

        wasIdle = self._state is ConnectionState.Disconnected
        self._setState(ConnectionState.Disconnected)

        if not wasIdle:
            self._emit(Closed(1000, "client disconnect"))
            logger.info("[{}] Disconnected", self.feed.name)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Every event this client produces, in order."""
        while True:
            yield await self._events.get()

    async def nextEvent(self, timeout: float | None = None) -> StreamEvent:
        return await asyncio.wait_for(self._events.get(), timeout)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def _open(self, attempt: int, epoch: int) -> None:
        assert self._token is not None
        url = self.feed.url(self._token)

        logger.info("[{} :: {}] Connecting (attempt {})", self.feed.name, self._maskedUrl(url), attempt)
        transport = await self._connector(url)

        if epoch != self._epoch:
            await self._closeTransport(transport)
            raise StreamCancelled("connection opened after disconnect()")

        self._transport = transport
        self._remote.clear()

        # anything queued for the previous transport is covered by the replay
        self._drainOutbox()

        try:
            await self._replay(transport)
            if epoch != self._epoch:
                raise StreamCancelled("connection replayed after disconnect()")
        except BaseException:
            if self._transport is transport:
                self._transport = None
                self._remote.clear()

            await self._closeTransport(transport)
            raise

        self._url = url
        self._setState(ConnectionState.Connected)
        self._emit(Connected(url=self._maskedUrl(url), attempt=attempt))
        logger.info("[{} :: {}] Connected!", self.feed.name, self._maskedUrl(url))

    async def _replay(self, transport: Transport) -> None:
        """Send a subscribe for every registered key the transport lacks.

        Loops until the table is stable so subscribe() calls made while a
        send is in flight are covered too.
        """
        while pending := [
            key for key in self._subscriptions if self.feed.remoteKey(*key) not in self._remote
        ]:
            for symbol, timeframe in pending:
                remote = self.feed.remoteKey(symbol, timeframe)
                if (symbol, timeframe) not in self._subscriptions or remote in self._remote:
                    continue

                # marked before the send so an unsubscribe during it is queued
                self._remote.add(remote)
                await transport.send(self._encode(self.feed.subscribeMessage(symbol, timeframe)))
                logger.info("[{}] Joined {} @ {}", self.feed.name, symbol, timeframe)

    async def _run(self, epoch: int) -> None:
        while epoch == self._epoch:
            transport = self._transport
            if transport is None:
                return

            outcome = await self._pump(transport)
            if epoch != self._epoch:
                return

            self._transport = None
            self._remote.clear()
            await self._closeTransport(transport)

            if isinstance(outcome, Error) and outcome.fatal:
                logger.error("[{}] Fatal vendor error: {} {}", self.feed.name, outcome.kind, outcome.detail or "")
                self._fail(f"vendor error: {outcome.kind}")
                return

            if not await self._reconnect(epoch):
                return

    async def _pump(self, transport: Transport) -> Closed | Error:
        writer = asyncio.create_task(self._writer(transport))
        try:
            return await self._reader(transport)
        finally:
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    async def _reader(self, transport: Transport) -> Closed | Error:
        while True:
            # disconnect() from inside a listener detaches the transport
            if self._transport is not transport:
                return Closed(1000, "client disconnect")

            try:
                raw = await transport.recv()
            except websockets.ConnectionClosed as e:
                code, reason = closeInfo(e)
                logger.warning("[{}] Connection dropped ({}: {})", self.feed.name, code, reason or "none")
                closed = Closed(code, reason)
                self._emit(closed)
                return closed
            except Exception as e:
                logger.error("[{}] Transport error: {}", self.feed.name, e)
                closed = Closed(None, str(e))
                self._emit(closed)
                return closed

            for event in self.feed.parse(raw):
                if isinstance(event, Price):
                    await self._dispatch(event)
                    continue

                self._emit(event)

                if isinstance(event, Error):
                    if not event.fatal:
                        logger.error("[{}] Vendor error {}: {}", self.feed.name, event.kind, event.detail)

                    return event

    async def _writer(self, transport: Transport) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await transport.send(self._encode(message))
            except Exception as e:
                # the reader notices the broken transport and reconnects
                logger.error("[{}] Send failed: {}", self.feed.name, e)
                await self._closeTransport(transport)
                return

    async def _reconnect(self, epoch: int) -> bool:
        while epoch == self._epoch:
            if self._attempts >= self.maxAttempts:
                self._fail(f"gave up after {self._attempts} reconnect attempts")
                return False

            self._setState(ConnectionState.Reconnecting)
            logger.info(
                "[{}] Reconnecting in {:.2f}s (attempt {}/{})",
                self.feed.name,
                self.reconnectDelay,
                self._attempts + 1,
                self.maxAttempts,
            )
            await asyncio.sleep(self.reconnectDelay)

            if epoch != self._epoch:
                return False

            self._attempts += 1
            self._setState(ConnectionState.Connecting)

            try:
                await self._open(self._attempts, epoch)
            except StreamCancelled:
                return False
            except AuthenticationError as e:
                self._fail(f"authentication failed: {e}")
                return False
            except Exception as e:
                logger.warning(
                    "[{}] Reconnect attempt {}/{} failed: {}",
                    self.feed.name,
                    self._attempts,
                    self.maxAttempts,
                    e,
                )
                continue

            self._attempts = 0
            return True

        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _dispatch(self, price: Price) -> None:
        self._pricesReceived += 1
        self._emit(price)

        if price.timeframe is None:
            listeners = [
                listener
                for (symbol, _timeframe), listener in list(self._subscriptions.items())
                if symbol == price.symbol
            ]
        else:
            listeners = [self._subscriptions.get((price.symbol, price.timeframe))]

        for listener in listeners:
            if listener is None:
                continue

            try:
                result = listener(price)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("[{}] Listener for {} raised", self.feed.name, price.symbol)

    def _fail(self, reason: str) -> None:
        if self._state is ConnectionState.Failed:
            return

        self._setState(ConnectionState.Failed)
        self._remote.clear()
        self._emit(Failed(reason))
        logger.error("[{}] Stream failed: {}", self.feed.name, reason)

    def _setState(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("[{}] {} -> {}", self.feed.name, self._state.value, state.value)
            self._state = state

    def _emit(self, event: StreamEvent) -> None:
        if self._events.full():
            try:
                self._events.get_nowait()
            except asyncio.QueueEmpty:
                pass

        self._events.put_nowait(event)

    def _drainOutbox(self) -> None:
        while not self._outbox.empty():
            self._outbox.get_nowait()

    def _encode(self, message: dict) -> str:
        return orjson.dumps(message).decode()

    def _maskedUrl(self, url: str | None) -> str | None:
        if url and self._token:
            return url.replace(self._token, maskKey(self._token))

        return url

    async def _closeTransport(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.debug("[{}] Error while closing transport: {}", self.feed.name, e)
