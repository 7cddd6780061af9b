"""Forex trading-week session rules.

The market trades continuously from Sunday evening until Friday evening in
the market timezone (America/New_York unless configured otherwise):

    Sun  closed until openHourSunday, then open
    Mon-Thu  open all day
    Fri  open until closeHourFriday, then closed
    Sat  closed

Nothing is cached between calls, every answer is recomputed from the
instant, so there is no state to drift across the weekly boundaries.
"""
from __future__ import annotations

import dataclasses
import math
from typing import TYPE_CHECKING, Any, Final, Literal

import whenever

from fxpulse.config import clampInt
from fxpulse.engine.clock import (
    DEFAULT_MARKET_TIMEZONE,
    MarketClock,
    MarketClockReading,
    timestampOf,
)
from fxpulse.engine.protocols import ClockReader

if TYPE_CHECKING:
    from fxpulse.config import Settings

type SessionReason = Literal["open", "weekend", "closed"]
type SessionName = Literal["ASIA", "LONDON", "NY"]

DEFAULT_OPEN_HOUR_SUNDAY: Final = 17
DEFAULT_CLOSE_HOUR_FRIDAY: Final = 17

SUNDAY: Final = 0
FRIDAY: Final = 5
SATURDAY: Final = 6

# days a closed market is reported as "weekend" rather than plain "closed"
WEEKEND_DAYS: Final = frozenset({SUNDAY, FRIDAY, SATURDAY})


@dataclasses.dataclass(slots=True, frozen=True)
class MarketStatus:
    isOpen: bool
    reason: SessionReason
    timezone: str
    marketDay: str
    marketTime: str

    def asdict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


class MarketSessionEvaluator:
    """Open/closed decisions for the weekly forex session.

    Parameters
    ----------
    clock:
        Anything with ``read(instant) -> MarketClockReading``. Defaults to a
        MarketClock in ``timezone``.
    openHourSunday, closeHourFriday:
        Boundary hours in market time, clamped into 0..23.
    timezone:
        Zone of the clock built when none is given, and the zone reported
        by status(). Defaults to the clock's own ``timezone`` attribute if
        it has one.
    """

    def __init__(
        self,
        clock: ClockReader | None = None,
        openHourSunday: int = DEFAULT_OPEN_HOUR_SUNDAY,
        closeHourFriday: int = DEFAULT_CLOSE_HOUR_FRIDAY,
        timezone: str | None = None,
    ):
        self.clock: ClockReader = clock or MarketClock(timezone or DEFAULT_MARKET_TIMEZONE)
        self.timezone: str = (
            timezone or getattr(self.clock, "timezone", None) or DEFAULT_MARKET_TIMEZONE
        )
        self.openHourSunday = clampInt(openHourSunday, 0, 23, DEFAULT_OPEN_HOUR_SUNDAY)
        self.closeHourFriday = clampInt(closeHourFriday, 0, 23, DEFAULT_CLOSE_HOUR_FRIDAY)

    @classmethod
    def fromSettings(cls, settings: Settings) -> MarketSessionEvaluator:
        return cls(
            MarketClock(settings.timezone),
            openHourSunday=settings.openHourSunday,
            closeHourFriday=settings.closeHourFriday,
            timezone=settings.timezone,
        )

    def isOpenAt(self, reading: MarketClockReading) -> bool:
        day = reading.weekdayIndex

        if day < 0:
            return False

        if 1 <= day <= 4:
            return True

        if day == FRIDAY:
            return reading.hour < self.closeHourFriday

        if day == SUNDAY:
            return reading.hour >= self.openHourSunday

        return False

    def isOpen(self, instant: Any = None) -> bool:
        return self.isOpenAt(self.clock.read(instant))

    def status(self, instant: Any = None) -> MarketStatus:
        # one read so isOpen and reason can't straddle a boundary
        reading = self.clock.read(instant)
        isOpen = self.isOpenAt(reading)

        reason: SessionReason = "open"
        if not isOpen:
            reason = "weekend" if reading.weekdayIndex in WEEKEND_DAYS else "closed"

        return MarketStatus(
            isOpen=isOpen,
            reason=reason,
            timezone=self.timezone,
            marketDay=reading.weekday,
            marketTime=reading.hms(),
        )


def tradingSessionUtc(instant: Any = None) -> SessionName:
    """Rough institutional session for an instant by UTC hour.

    ASIA 22:00-07:00, LONDON 07:00-13:00, NY 13:00-22:00.
    """
    hour = whenever.ZonedDateTime.from_timestamp(
        math.floor(timestampOf(instant)), tz="UTC"
    ).hour

    if hour >= 22 or hour < 7:
        return "ASIA"

    if hour < 13:
        return "LONDON"

    return "NY"
