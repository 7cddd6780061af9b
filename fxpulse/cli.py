#!/usr/bin/env python3
"""fxpulse command line.

    fxpulse status [--at WHEN]
        Print the forex market status (and UTC trading session) as JSON.

    fxpulse watch [SYMBOL ...] [--timeframe TF]
        Stream prices from the key-join vendor and log every update.
        Exits 1 if the vendor rejects the API key.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from typing import Final

import orjson
import whenever
from loguru import logger

from fxpulse.config import Settings, maskKey
from fxpulse.engine.events import AuthenticationError, Error, Failed, StreamError
from fxpulse.engine.pairs import PAIR_TO_SYMBOL, symbolForPair
from fxpulse.engine.session import MarketSessionEvaluator, tradingSessionUtc
from fxpulse.engine.stream import MarketDataStreamClient
from fxpulse.logs import setupLogging


# tried in order; each yields something with .timestamp()
ISO_PARSERS: Final = (
    whenever.Instant.parse_common_iso,
    whenever.OffsetDateTime.parse_common_iso,
    lambda value: whenever.PlainDateTime.parse_common_iso(value).assume_utc(),
)


def parseWhen(value: str) -> float:
    """Epoch seconds, or an ISO-8601 datetime (values without an offset are UTC)."""
    try:
        return float(value)
    except ValueError:
        pass

    failure: ValueError | None = None
    for parse in ISO_PARSERS:
        try:
            return float(parse(value).timestamp())
        except ValueError as e:
            failure = e

    raise argparse.ArgumentTypeError(f"not a timestamp or ISO datetime: {value!r}") from failure


def status(settings: Settings, at: float | None = None) -> dict:
    evaluator = MarketSessionEvaluator.fromSettings(settings)
    return evaluator.status(at).asdict() | {"session": tradingSessionUtc(at)}


def resolveSymbols(names: Sequence[str]) -> list[str]:
    """Accept vendor symbols ("FX:EURUSD") or pairs ("EUR/USD"); default to every known pair."""
    if not names:
        return list(PAIR_TO_SYMBOL.values())

    return [symbolForPair(name) or name for name in names]


async def watch(settings: Settings, symbols: Sequence[str], timeframe: str) -> int:
    client = MarketDataStreamClient.fromSettings(settings)

    def show(price) -> None:
        logger.info("{} [{}] => {}", price.symbol, price.timeframe, price.data)

    for symbol in symbols:
        client.subscribe(symbol, timeframe, show)

    try:
        await client.connect()
    except AuthenticationError as e:
        logger.error(
            "Authentication failed ({}): use a valid API key or test with FCS_API_KEY=fcs_socket_demo",
            maskKey(settings.apiKey),
        )
        logger.error("{}", e)
        return 1
    except StreamError as e:
        logger.error("Connection failed: {}", e)
        return 1

    try:
        async for event in client.events():
            if isinstance(event, Error) and event.fatal:
                logger.error(
                    "Authentication failed ({}): use a valid API key or test with FCS_API_KEY=fcs_socket_demo",
                    maskKey(settings.apiKey),
                )
                return 1

            if isinstance(event, Failed):
                logger.error("Stream gave up: {}", event.reason)
                return 1
    finally:
        await client.disconnect()

    return 0


def buildParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fxpulse", description=__doc__.split("\n")[0])
    sub = parser.add_subparsers(dest="command", required=True)

    st = sub.add_parser("status", help="print forex market status as JSON")
    st.add_argument("--at", type=parseWhen, default=None, help="epoch seconds or ISO datetime")

    wt = sub.add_parser("watch", help="stream live prices")
    wt.add_argument("symbols", nargs="*", help="pairs (EUR/USD) or vendor symbols (FX:EURUSD)")
    wt.add_argument("--timeframe", default=None, help="vendor timeframe (default FCS_TIMEFRAME)")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = buildParser().parse_args(argv)
    settings = Settings.fromEnv()
    setupLogging(settings.logLevel, settings.logdir, settings.timezone)

    if args.command == "status":
        sys.stdout.write(orjson.dumps(status(settings, args.at), option=orjson.OPT_INDENT_2).decode())
        sys.stdout.write("\n")
        return 0

    symbols = resolveSymbols(args.symbols)
    timeframe = args.timeframe or settings.defaultTimeframe

    try:
        return asyncio.run(watch(settings, symbols, timeframe))
    except KeyboardInterrupt:
        logger.info("Closing socket...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
