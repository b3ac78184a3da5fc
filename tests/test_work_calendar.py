"""Tests for working-day calendar arithmetic."""

from datetime import date, timedelta
from unittest.mock import Mock

import pytest

from buildcast.exceptions import ValidationError
from buildcast.models import DayReason, Holiday
from buildcast.work_calendar import CalendarOracle, HolidaySource, StaticHolidaySource

# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)
FRIDAY = date(2024, 1, 5)


class TestStaticHolidaySource:
    """Test the in-memory holiday table."""

    def test_filters_by_region_and_range(self):
        source = StaticHolidaySource([
            Holiday(region="AT", date=date(2024, 1, 6), name="Epiphany"),
            Holiday(region="AT", date=date(2024, 1, 1), name="New Year"),
            Holiday(region="DE", date=date(2024, 1, 3), name="Other"),
        ])

        result = source.holidays_for_region("AT", MONDAY, date(2024, 1, 31))
        assert [h.name for h in result] == ["New Year", "Epiphany"]
        assert source.holidays_for_region("AT", date(2024, 1, 2), date(2024, 1, 5)) == []
        assert source.holidays_for_region("CH", MONDAY, date(2024, 12, 31)) == []


class TestCalendarOracle:
    """Test weekend and holiday handling."""

    @pytest.fixture
    def holidays(self):
        return StaticHolidaySource([
            Holiday(region="AT", date=date(2024, 1, 3), name="Site Closure"),
            Holiday(region="AT", date=date(2024, 1, 6), name="Epiphany"),
        ])

    @pytest.fixture
    def oracle(self, holidays):
        return CalendarOracle(holidays)

    def test_weekends_only_without_region(self, oracle):
        days = oracle.non_working_days(MONDAY, date(2024, 1, 14))

        assert [d.date.day for d in days] == [6, 7, 13, 14]
        assert all(d.reason == DayReason.WEEKEND for d in days)

    def test_holidays_apply_with_region(self, oracle):
        days = oracle.non_working_days(MONDAY, date(2024, 1, 7), "AT")

        assert [d.date.day for d in days] == [3, 6, 7]
        assert days[0].reason == DayReason.HOLIDAY
        assert days[0].holiday_name == "Site Closure"
        # Epiphany 2024 falls on a Saturday and is reported once, as a weekend
        assert days[1].reason == DayReason.WEEKEND

    def test_empty_range(self, oracle):
        assert oracle.non_working_days(date(2024, 1, 10), MONDAY) == []

    def test_non_working_day_to_dict(self, oracle):
        day = oracle.non_working_days(date(2024, 1, 3), date(2024, 1, 3), "AT")[0]
        assert day.to_dict() == {
            'date': '2024-01-03', 'reason': 'holiday', 'holiday_name': 'Site Closure'
        }

    def test_is_working_day(self, oracle):
        assert oracle.is_working_day(MONDAY)
        assert not oracle.is_working_day(date(2024, 1, 6))
        assert oracle.is_working_day(date(2024, 1, 3))
        assert not oracle.is_working_day(date(2024, 1, 3), "AT")

    def test_working_days_between(self, oracle):
        assert oracle.working_days_between(MONDAY, FRIDAY) == 5
        assert oracle.working_days_between(MONDAY, date(2024, 1, 7)) == 5
        assert oracle.working_days_between(MONDAY, date(2024, 1, 7), "AT") == 4

    def test_working_days_between_single_day(self, oracle):
        assert oracle.working_days_between(MONDAY, MONDAY) == 1
        assert oracle.working_days_between(date(2024, 1, 6), date(2024, 1, 6)) == 0
        assert oracle.working_days_between(date(2024, 1, 3), date(2024, 1, 3), "AT") == 0

    def test_working_days_between_reversed_is_zero(self, oracle):
        assert oracle.working_days_between(FRIDAY, MONDAY) == 0

    def test_add_zero_returns_start(self, oracle):
        assert oracle.add_working_days(date(2024, 1, 6), 0, "AT") == date(2024, 1, 6)

    def test_add_negative_raises(self, oracle):
        with pytest.raises(ValidationError):
            oracle.add_working_days(MONDAY, -1)

    def test_friday_plus_one_is_monday(self, oracle):
        assert oracle.add_working_days(FRIDAY, 1) == date(2024, 1, 8)

    def test_start_day_not_counted(self, oracle):
        assert oracle.add_working_days(MONDAY, 5) == date(2024, 1, 8)

    def test_holiday_is_skipped(self, oracle):
        assert oracle.add_working_days(MONDAY, 5, "AT") == date(2024, 1, 9)

    def test_long_walk_without_holidays(self, oracle):
        assert oracle.add_working_days(MONDAY, 40) == date(2024, 2, 26)

    def test_walk_refetches_past_window(self):
        """Holidays beyond the first window are still honoured."""
        source = StaticHolidaySource([
            Holiday(region="AT", date=date(2024, 2, 20), name="Late Closure"),
        ])
        oracle = CalendarOracle(source, window_buffer=1.0)

        assert oracle.add_working_days(MONDAY, 40, "AT") == date(2024, 2, 27)

    def test_bulk_fetch_once_per_window(self):
        source = Mock(spec=HolidaySource)
        source.holidays_for_region.return_value = []
        oracle = CalendarOracle(source)

        oracle.add_working_days(MONDAY, 5, "AT")

        assert source.holidays_for_region.call_count == 1

    def test_result_never_lands_on_non_working_day(self, oracle):
        for start_offset in range(7):
            start = MONDAY + timedelta(days=start_offset)
            for n in range(1, 15):
                result = oracle.add_working_days(start, n, "AT")
                assert oracle.is_working_day(result, "AT")

    def test_no_region_skips_holiday_lookup(self):
        source = Mock(spec=HolidaySource)
        oracle = CalendarOracle(source)

        oracle.non_working_days(MONDAY, date(2024, 1, 31))

        source.holidays_for_region.assert_not_called()
