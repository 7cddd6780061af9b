"""loguru sinks for the fxpulse command line.

Library modules only ever ``from loguru import logger`` and log; sinks are
configured once here by whatever owns the process.
"""
from __future__ import annotations

import pathlib
import sys

import whenever
from loguru import logger

from fxpulse.engine.clock import DEFAULT_MARKET_TIMEZONE

_consoleHandlerId: int | None = None


def logFilePath(logdir: str | pathlib.Path, timezone: str = DEFAULT_MARKET_TIMEZONE) -> pathlib.Path:
    """<logdir>/<YYYY>/<MM>/fxpulse-<market time>.log, creating the directories."""
    now = whenever.ZonedDateTime.now(timezone)
    target = pathlib.Path(logdir) / f"{now.year}" / f"{now.month:02}"
    target.mkdir(exist_ok=True, parents=True)

    stamp = f"{now.year}{now.month:02}{now.day:02}-{now.hour:02}{now.minute:02}{now.second:02}"
    return target / f"fxpulse-{stamp}.log"


def setupLogging(
    level: str = "INFO",
    logdir: str | pathlib.Path | None = None,
    timezone: str = DEFAULT_MARKET_TIMEZONE,
) -> int:
    """Replace loguru's default sink with a console sink (and optional TRACE file sink).

    Returns the console handler id.
    """
    global _consoleHandlerId

    logger.remove()
    _consoleHandlerId = logger.add(sys.stderr, colorize=True, level=level)

    if logdir:
        path = logFilePath(logdir, timezone)

        # everything goes to the file, the console only gets 'level' and up
        logger.add(sink=str(path), level="TRACE", colorize=False)
        logger.info("Logging session to: {}", path)

    return _consoleHandlerId


def setConsoleLogLevel(level: str) -> int:
    """Change the console log level at runtime."""
    global _consoleHandlerId

    if _consoleHandlerId is not None:
        logger.remove(_consoleHandlerId)

    _consoleHandlerId = logger.add(sys.stderr, colorize=True, level=level)
    logger.info("Console log level set to {}", level)
    return _consoleHandlerId
