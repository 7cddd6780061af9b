"""Vendor wire protocols for the market-data stream client.

Two vendor styles are supported:

TokenSocketFeed
    POST {base}/authenticate {login, password, type} -> {access_token},
    then a socket opened with ?access_token=...; subscriptions are
    {event: "subscribe", pairs: [...]} and price updates arrive as events
    named after the pair symbol. Updates carry no timeframe.

KeyJoinFeed
    Socket opened directly with an API key; one join message per
    (symbol, timeframe); inbound messages are typed envelopes:
    {type: "price", symbol, timeframe, prices},
    {type: "error", short, details?}, or informational.

Both send and receive JSON text frames.
"""
from __future__ import annotations

from collections.abc import Hashable, Mapping
from typing import Any, Final

import httpx
import orjson
from loguru import logger

from fxpulse.config import maskKey
from fxpulse.engine.events import AuthenticationError, Error, Price, StreamEvent

# token feed events that are status chatter, not prices
TOKEN_INFO_EVENTS: Final = frozenset(
    {"connect", "disconnect", "welcome", "subscribed", "unsubscribed", "ping", "pong"}
)


def decodeFrame(name: str, raw: str | bytes) -> dict | None:
    """Parse one JSON frame into a dict, or None (logged) if it isn't one."""
    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        logger.warning("[{}] Dropping non-JSON frame: {}", name, e)
        return None

    if not isinstance(payload, dict):
        logger.debug("[{}] Ignoring non-object frame: {!r}", name, payload)
        return None

    return payload


def withQuery(url: str, **params: str) -> str:
    return str(httpx.URL(url).copy_merge_params(params))


class TokenSocketFeed:
    """Token-then-socket vendor (login/password exchanged for an access token)."""

    name = "token"

    def __init__(
        self,
        baseUrl: str,
        wsUrl: str | None = None,
        accountType: str = "Demo",
        timeout: float = 10.0,
    ):
        self.baseUrl = baseUrl.rstrip("/")
        self.wsUrl = wsUrl or self.baseUrl.replace("https://", "wss://", 1).replace(
            "http://", "ws://", 1
        )
        self.accountType = accountType
        self.timeout = timeout

    async def authenticate(self, credentials: Any = None, http: httpx.AsyncClient | None = None) -> str:
        if not isinstance(credentials, Mapping) or not credentials.get("login"):
            raise AuthenticationError("login and password are required for token authentication")

        payload = dict(
            login=credentials["login"],
            password=credentials.get("password", ""),
            type=credentials.get("type", self.accountType),
        )

        logger.info("[{}] Authenticating {} at {}", self.name, payload["login"], self.baseUrl)

        try:
            if http is None:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    got = await client.post(f"{self.baseUrl}/authenticate", json=payload)
            else:
                got = await http.post(f"{self.baseUrl}/authenticate", json=payload)

            got.raise_for_status()
            found = got.json()
        except httpx.HTTPStatusError as e:
            raise AuthenticationError(
                f"authentication rejected: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise AuthenticationError(f"authentication request failed: {e}") from e

        token = found.get("access_token") if isinstance(found, dict) else None
        if not token or not isinstance(token, str):
            raise AuthenticationError("authentication response has no access_token")

        logger.info("[{}] Authenticated. Token: {}", self.name, maskKey(token))
        return token

    def url(self, token: str) -> str:
        return withQuery(self.wsUrl, access_token=token)

    def remoteKey(self, symbol: str, timeframe: str) -> Hashable:
        # the vendor subscribes pairs, not (pair, timeframe)
        return symbol

    def subscribeMessage(self, symbol: str, timeframe: str) -> dict:
        return dict(event="subscribe", pairs=[symbol])

    def unsubscribeMessage(self, symbol: str, timeframe: str) -> dict:
        return dict(event="unsubscribe", pairs=[symbol])

    def parse(self, raw: str | bytes) -> list[StreamEvent]:
        if (payload := decodeFrame(self.name, raw)) is None:
            return []

        event = payload.get("event")
        if not isinstance(event, str) or not event:
            logger.debug("[{}] Frame without event name: {!r}", self.name, payload)
            return []

        if event == "error":
            return [
                Error(
                    kind=str(payload.get("code") or "error"),
                    detail=payload.get("message") or payload.get("details"),
                )
            ]

        if event in TOKEN_INFO_EVENTS:
            logger.debug("[{}] {}: {!r}", self.name, event, payload)
            return []

        return [Price(symbol=event, timeframe=None, data=payload.get("data", payload))]


class KeyJoinFeed:
    """API-key vendor with per-(symbol, timeframe) join messages."""

    name = "key"

    def __init__(self, apiKey: str, wsUrl: str):
        self.apiKey = apiKey
        self.wsUrl = wsUrl

    async def authenticate(self, credentials: Any = None, http: Any = None) -> str:
        # nothing to exchange: the key itself is the credential
        key = credentials if isinstance(credentials, str) and credentials else self.apiKey
        if not key:
            raise AuthenticationError("no API key configured")

        logger.info("[{}] Using API key {}", self.name, maskKey(key))
        return key

    def url(self, token: str) -> str:
        return withQuery(self.wsUrl, access_key=token)

    def remoteKey(self, symbol: str, timeframe: str) -> Hashable:
        return (symbol, timeframe)

    def subscribeMessage(self, symbol: str, timeframe: str) -> dict:
        return dict(type="join_symbol", symbol=symbol, timeframe=timeframe)

    def unsubscribeMessage(self, symbol: str, timeframe: str) -> dict:
        return dict(type="leave_symbol", symbol=symbol, timeframe=timeframe)

    def parse(self, raw: str | bytes) -> list[StreamEvent]:
        if (payload := decodeFrame(self.name, raw)) is None:
            return []

        kind = payload.get("type")

        if kind == "price":
            symbol = payload.get("symbol")
            if not isinstance(symbol, str):
                logger.warning("[{}] Price frame without symbol: {!r}", self.name, payload)
                return []

            timeframe = payload.get("timeframe")
            return [
                Price(
                    symbol=symbol,
                    timeframe=None if timeframe is None else str(timeframe),
                    data=payload.get("prices"),
                )
            ]

        if kind == "error":
            return [Error(kind=str(payload.get("short") or "error"), detail=payload.get("details"))]

        logger.debug("[{}] Info: {!r}", self.name, payload)
        return []
