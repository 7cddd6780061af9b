"""Stream client against a real local websockets server.

The server accepts key-join messages, answers each join with one price,
and closes the first connection with 1011 so the client has to reconnect
and replay its subscriptions on its own.
"""

import orjson
import pytest
from websockets.asyncio.server import serve

from fxpulse.engine.events import Closed, Connected, ConnectionState
from fxpulse.engine.feeds import KeyJoinFeed
from fxpulse.engine.stream import MarketDataStreamClient
from tests.conftest import drainEvents, until


@pytest.mark.asyncio
async def test_reconnects_and_replays_against_real_server():
    paths: list[str] = []
    joins: list[dict] = []

    async def handler(ws):
        paths.append(ws.request.path)
        async for message in ws:
            joins.append(orjson.loads(message))
            await ws.send(
                orjson.dumps(
                    {"type": "price", "symbol": "FX:EURUSD", "timeframe": "60", "prices": {"n": len(joins)}}
                ).decode()
            )

            if len(paths) == 1:
                await ws.close(1011, "restart")

    async with serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        feed = KeyJoinFeed("integration_key_0001", f"ws://127.0.0.1:{port}/ws")
        client = MarketDataStreamClient(feed, maxAttempts=2, reconnectDelay=0.05)

        got = []
        client.subscribe("FX:EURUSD", "60", got.append)
        await client.connect()

        try:
            await until(lambda: len(got) == 2, timeout=5.0)
        finally:
            await client.disconnect()

    assert [p.data["n"] for p in got] == [1, 2]
    assert len(paths) == 2
    assert all("access_key=integration_key_0001" in p for p in paths)
    assert joins == [{"type": "join_symbol", "symbol": "FX:EURUSD", "timeframe": "60"}] * 2

    assert client.state is ConnectionState.Disconnected
    events = await drainEvents(client)
    assert Closed(1011, "restart") in events
    assert [e.attempt for e in events if isinstance(e, Connected)] == [0, 1]
