"""Market-timezone wall clock readings for session decisions."""
from __future__ import annotations

import dataclasses
import math
from typing import Any, Final

import whenever
from loguru import logger

DEFAULT_MARKET_TIMEZONE: Final = "America/New_York"

# whenever numbers weekdays ISO style (Monday=1 .. Sunday=7), we index Sunday=0
WEEKDAY_NAMES: Final = {
    1: "Mon",
    2: "Tue",
    3: "Wed",
    4: "Thu",
    5: "Fri",
    6: "Sat",
    7: "Sun",
}

WEEKDAY_TO_INDEX: Final = dict(Sun=0, Mon=1, Tue=2, Wed=3, Thu=4, Fri=5, Sat=6)


@dataclasses.dataclass(slots=True, frozen=True)
class MarketClockReading:
    """Weekday and time-of-day of one instant, seen from the market timezone.

    weekdayIndex is Sunday=0 .. Saturday=6, or -1 when the time could not
    be resolved (treated downstream as a closed market).
    """

    weekday: str
    weekdayIndex: int
    hour: int = 0
    minute: int = 0
    second: int = 0

    @classmethod
    def unknown(cls) -> MarketClockReading:
        return cls("", -1, 0, 0, 0)

    @property
    def known(self) -> bool:
        return self.weekdayIndex >= 0

    def hms(self) -> str:
        return f"{self.hour:02}:{self.minute:02}:{self.second:02}"


def timestampOf(instant: Any = None) -> float:
    """Return POSIX seconds for None (now), a number, or anything with .timestamp()."""
    if instant is None:
        return whenever.Instant.now().timestamp()

    if isinstance(instant, bool):
        raise TypeError("bool is not a timestamp")

    if isinstance(instant, (int, float)):
        return instant

    return instant.timestamp()


@dataclasses.dataclass(slots=True)
class MarketClock:
    """Reads instants in one configured market timezone.

    Never raises: an unknown zone, an out-of-range timestamp, or an input
    that isn't a time at all all produce MarketClockReading.unknown().
    """

    timezone: str = DEFAULT_MARKET_TIMEZONE

    def read(self, instant: Any = None) -> MarketClockReading:
        try:
            ts = timestampOf(instant)
            if not math.isfinite(ts):
                raise ValueError(f"non-finite timestamp: {ts}")

            # second resolution is all the session rule needs
            zdt = whenever.ZonedDateTime.from_timestamp(math.floor(ts), tz=self.timezone)
            dow = zdt.day_of_week().value
        except Exception as e:
            logger.warning(
                "[{}] Can't read market clock for {!r}: {}", self.timezone, instant, e
            )
            return MarketClockReading.unknown()

        weekday = WEEKDAY_NAMES[dow]
        return MarketClockReading(
            weekday=weekday,
            weekdayIndex=WEEKDAY_TO_INDEX[weekday],
            hour=zdt.hour,
            minute=zdt.minute,
            second=zdt.second,
        )


@dataclasses.dataclass(slots=True)
class FixedClock:
    """ClockReader that always returns the same reading, whatever the instant."""

    reading: MarketClockReading
    timezone: str = DEFAULT_MARKET_TIMEZONE

    def read(self, instant: Any = None) -> MarketClockReading:
        return self.reading
