"""Tests for fxpulse.engine.session — weekly forex session rule."""

from unittest.mock import Mock

import pytest
import whenever

from fxpulse.config import Settings
from fxpulse.engine.clock import FixedClock, MarketClockReading
from fxpulse.engine.protocols import ClockReader
from fxpulse.engine.session import MarketSessionEvaluator, MarketStatus, tradingSessionUtc

SUN, MON, TUE, WED, THU, FRI, SAT = range(7)


def evaluatorAt(fixedClockAt, day, hour, **kwargs) -> MarketSessionEvaluator:
    return MarketSessionEvaluator(fixedClockAt(day, hour), **kwargs)


# -----------------------------------------------------------------------
# isOpen
# -----------------------------------------------------------------------


class TestIsOpen:
    @pytest.mark.parametrize("day", [MON, TUE, WED, THU])
    @pytest.mark.parametrize("hour", [0, 5, 12, 16, 17, 23])
    def test_midweek_always_open(self, fixedClockAt, day, hour):
        assert evaluatorAt(fixedClockAt, day, hour).isOpen()

    @pytest.mark.parametrize("hour", range(24))
    def test_saturday_always_closed(self, fixedClockAt, hour):
        assert not evaluatorAt(fixedClockAt, SAT, hour).isOpen()

    @pytest.mark.parametrize("hour", range(24))
    def test_sunday_opens_at_open_hour(self, fixedClockAt, hour):
        assert evaluatorAt(fixedClockAt, SUN, hour).isOpen() == (hour >= 17)

    @pytest.mark.parametrize("hour", range(24))
    def test_friday_closes_at_close_hour(self, fixedClockAt, hour):
        assert evaluatorAt(fixedClockAt, FRI, hour).isOpen() == (hour < 17)

    def test_sunday_boundary(self, fixedClockAt):
        assert not evaluatorAt(fixedClockAt, SUN, 16).isOpen()
        assert evaluatorAt(fixedClockAt, SUN, 17).isOpen()

    def test_friday_boundary(self, fixedClockAt):
        assert evaluatorAt(fixedClockAt, FRI, 16).isOpen()
        assert not evaluatorAt(fixedClockAt, FRI, 17).isOpen()

    def test_unknown_day_is_closed(self):
        assert not MarketSessionEvaluator(FixedClock(MarketClockReading.unknown())).isOpen()

    def test_custom_boundary_hours(self, fixedClockAt):
        assert evaluatorAt(fixedClockAt, SUN, 15, openHourSunday=15).isOpen()
        assert not evaluatorAt(fixedClockAt, FRI, 15, closeHourFriday=15).isOpen()

    @pytest.mark.parametrize("given,expected", [(-5, 0), (99, 23), ("abc", 17), (None, 17), (16.9, 16)])
    def test_boundary_hours_are_clamped(self, fixedClockAt, given, expected):
        ev = evaluatorAt(fixedClockAt, SUN, 0, openHourSunday=given, closeHourFriday=given)
        assert ev.openHourSunday == expected
        assert ev.closeHourFriday == expected


# -----------------------------------------------------------------------
# status
# -----------------------------------------------------------------------


class TestStatus:
    def test_open_status(self, fixedClockAt):
        st = MarketSessionEvaluator(fixedClockAt(WED, 9, 5, 7)).status()
        assert st == MarketStatus(
            isOpen=True,
            reason="open",
            timezone="America/New_York",
            marketDay="Wed",
            marketTime="09:05:07",
        )

    @pytest.mark.parametrize("day,hour", [(SAT, 0), (SAT, 23), (SUN, 3), (FRI, 17), (FRI, 23)])
    def test_closed_weekend_days_report_weekend(self, fixedClockAt, day, hour):
        st = evaluatorAt(fixedClockAt, day, hour).status()
        assert not st.isOpen
        assert st.reason == "weekend"

    def test_unknown_day_reports_closed(self):
        st = MarketSessionEvaluator(FixedClock(MarketClockReading.unknown())).status()
        assert st.isOpen is False
        assert st.reason == "closed"
        assert st.marketDay == ""
        assert st.marketTime == "00:00:00"

    def test_reason_is_open_iff_open(self, fixedClockAt):
        for day in range(7):
            for hour in range(24):
                st = evaluatorAt(fixedClockAt, day, hour).status()
                assert (st.reason == "open") == st.isOpen

    def test_asdict_is_json_ready(self, fixedClockAt):
        got = evaluatorAt(fixedClockAt, MON, 1).status().asdict()
        assert set(got) == {"isOpen", "reason", "timezone", "marketDay", "marketTime"}

    def test_status_reads_clock_once(self, fixedClockAt):
        clock = fixedClockAt(FRI, 16)
        spy = Mock(wraps=clock, timezone=clock.timezone)

        st = MarketSessionEvaluator(spy).status(123)

        spy.read.assert_called_once_with(123)
        assert st.isOpen
        assert st.marketTime == "16:00:00"


class ReadOnlyClock:
    """Clock exposing nothing but read()."""

    def read(self, instant=None):
        return MarketClockReading("Mon", 1, 10)


class TestClockWithoutTimezone:
    def test_status_uses_default_zone_label(self):
        ev = MarketSessionEvaluator(ReadOnlyClock())
        assert ev.isOpen()

        st = ev.status()
        assert st.isOpen
        assert st.timezone == "America/New_York"
        assert st.marketDay == "Mon"

    def test_explicit_zone_label(self):
        st = MarketSessionEvaluator(ReadOnlyClock(), timezone="Asia/Tokyo").status()
        assert st.timezone == "Asia/Tokyo"

    def test_read_only_clock_satisfies_protocol(self):
        assert isinstance(ReadOnlyClock(), ClockReader)


class TestRealClock:
    """End-to-end with real timezone data."""

    def test_friday_evening_new_york(self):
        ev = MarketSessionEvaluator()
        assert ev.isOpen(whenever.ZonedDateTime(2024, 1, 12, 16, 59, 59, tz="America/New_York"))
        assert not ev.isOpen(whenever.ZonedDateTime(2024, 1, 12, 17, 0, tz="America/New_York"))

    def test_sunday_evening_new_york(self):
        ev = MarketSessionEvaluator()
        assert not ev.isOpen(whenever.ZonedDateTime(2024, 1, 14, 16, 59, tz="America/New_York"))
        assert ev.isOpen(whenever.ZonedDateTime(2024, 1, 14, 17, 0, tz="America/New_York"))

    def test_bad_timezone_is_closed(self):
        st = MarketSessionEvaluator(timezone="Nowhere/Special").status(0)
        assert st.isOpen is False
        assert st.reason == "closed"
        assert st.timezone == "Nowhere/Special"

    def test_from_settings(self):
        settings = Settings(timezone="Europe/London", openHourSunday=22, closeHourFriday=21)
        ev = MarketSessionEvaluator.fromSettings(settings)
        assert ev.timezone == "Europe/London"
        assert ev.openHourSunday == 22
        assert ev.closeHourFriday == 21
        assert not ev.isOpen(whenever.ZonedDateTime(2024, 1, 12, 21, 30, tz="Europe/London"))


class TestTradingSessionUtc:
    @pytest.mark.parametrize(
        "hour,expected",
        [(0, "ASIA"), (6, "ASIA"), (7, "LONDON"), (12, "LONDON"), (13, "NY"), (21, "NY"), (22, "ASIA"), (23, "ASIA")],
    )
    def test_utc_hour_buckets(self, hour, expected):
        when = whenever.ZonedDateTime(2024, 1, 10, hour, 30, tz="UTC")
        assert tradingSessionUtc(when) == expected
