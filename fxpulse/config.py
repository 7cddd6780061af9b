"""Runtime settings read from the environment and an optional .env.fxpulse file.

Values are merged the same way at every entry point:

    {**DEFAULTS, **dotenv_values(".env.fxpulse"), **os.environ}

so a real environment variable always wins over the dotenv file. Numeric
values that are missing or unparseable fall back to their default, and
everything numeric is clamped into its valid range.
"""
from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from dotenv import dotenv_values

DOTENV_PATH: Final = ".env.fxpulse"

DEFAULTS: Final[dict[str, str]] = dict(
    FOREX_MARKET_TIMEZONE="America/New_York",
    FOREX_MARKET_OPEN_HOUR_SUNDAY_ET="17",
    FOREX_MARKET_CLOSE_HOUR_FRIDAY_ET="17",
    FCS_API_KEY="fcs_socket_demo",
    FCS_WS_URL="wss://ws-v4.fcsapi.com/ws",
    FCS_TIMEFRAME="60",
    FXCM_BASE_URL="https://api-demo.fxcm.com",
    FOREX_STREAM_MAX_ATTEMPTS="10",
    FOREX_STREAM_RECONNECT_DELAY="5",
    FXPULSE_LOG_LEVEL="INFO",
)


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None

    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None

    return parsed if math.isfinite(parsed) else None


def clampInt(value: Any, low: int, high: int, fallback: int) -> int:
    """Truncate 'value' to an int inside [low, high], or 'fallback' if it isn't a number."""
    parsed = _number(value)
    if parsed is None:
        return fallback

    return max(low, min(high, math.trunc(parsed)))


def clampFloat(value: Any, low: float, high: float, fallback: float) -> float:
    parsed = _number(value)
    if parsed is None:
        return fallback

    return max(low, min(high, parsed))


def maskKey(key: str | None) -> str:
    """Hide the middle of a secret for logging: 'abcd...wxyz'."""
    if not key:
        return "undefined"

    if len(key) <= 8:
        return key

    return f"{key[:4]}...{key[-4:]}"


@dataclass(slots=True)
class Settings:
    timezone: str = DEFAULTS["FOREX_MARKET_TIMEZONE"]
    openHourSunday: int = 17
    closeHourFriday: int = 17

    # key-join vendor (FCS style)
    apiKey: str = DEFAULTS["FCS_API_KEY"]
    wsUrl: str = DEFAULTS["FCS_WS_URL"]
    defaultTimeframe: str = DEFAULTS["FCS_TIMEFRAME"]

    # token-then-socket vendor (FXCM style)
    tokenBaseUrl: str = DEFAULTS["FXCM_BASE_URL"]

    maxReconnectAttempts: int = 10
    reconnectDelay: float = 5.0

    logLevel: str = DEFAULTS["FXPULSE_LOG_LEVEL"]
    logdir: str | None = None

    @classmethod
    def fromEnv(cls, env: Mapping[str, str | None] | None = None) -> Settings:
        """Build settings from 'env', or from .env.fxpulse + os.environ when not given."""
        if env is None:
            env = {**dotenv_values(DOTENV_PATH), **os.environ}

        config = {**DEFAULTS, **{k: v for k, v in env.items() if v is not None}}

        def text(key: str) -> str:
            return (config.get(key) or "").strip() or DEFAULTS[key]

        return cls(
            timezone=text("FOREX_MARKET_TIMEZONE"),
            openHourSunday=clampInt(config["FOREX_MARKET_OPEN_HOUR_SUNDAY_ET"], 0, 23, 17),
            closeHourFriday=clampInt(config["FOREX_MARKET_CLOSE_HOUR_FRIDAY_ET"], 0, 23, 17),
            apiKey=(config.get("FCS_API_KEY") or "").strip(),
            wsUrl=text("FCS_WS_URL"),
            defaultTimeframe=text("FCS_TIMEFRAME"),
            tokenBaseUrl=text("FXCM_BASE_URL").rstrip("/"),
            maxReconnectAttempts=clampInt(config["FOREX_STREAM_MAX_ATTEMPTS"], 0, 1000, 10),
            reconnectDelay=clampFloat(config["FOREX_STREAM_RECONNECT_DELAY"], 0.0, 300.0, 5.0),
            logLevel=text("FXPULSE_LOG_LEVEL").upper(),
            logdir=(config.get("FXPULSE_LOGDIR") or "").strip() or None,
        )
