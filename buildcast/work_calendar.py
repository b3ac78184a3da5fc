"""Working-day calendar arithmetic over weekends and regional holidays."""

import math
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set

from .constants import WEEKEND_DAYS
from .exceptions import ValidationError
from .models import DayReason, Holiday, NonWorkingDay
from .utils import logger


class HolidaySource(ABC):
    """Anything that can list configured holidays for a region."""

    @abstractmethod
    def holidays_for_region(self, region: str, start: date, end: date) -> List[Holiday]:
        """Return holidays for ``region`` dated within ``[start, end]``."""


class StaticHolidaySource(HolidaySource):
    """In-memory holiday table keyed by region."""

    def __init__(self, holidays: Optional[Iterable[Holiday]] = None):
        self._holidays: Dict[str, List[Holiday]] = {}
        for holiday in holidays or []:
            self.add(holiday)

    def add(self, holiday: Holiday) -> None:
        self._holidays.setdefault(holiday.region, []).append(holiday)

    def holidays_for_region(self, region: str, start: date, end: date) -> List[Holiday]:
        return sorted(
            (h for h in self._holidays.get(region, []) if start <= h.date <= end),
            key=lambda h: h.date
        )


class CalendarOracle:
    """Answers working-day questions for a date range and optional region.

    Weekends are always Saturday and Sunday. Holidays come from the
    injected ``HolidaySource`` and only apply when a region is given.
    Lookups are done in bulk per range, never per day.
    """

    def __init__(self, holiday_source: Optional[HolidaySource] = None,
                 window_buffer: float = 1.4):
        """Initialize the calendar oracle.

        Args:
            holiday_source: Provider of regional holidays
            window_buffer: Calendar days fetched per requested working day
        """
        self.holiday_source = holiday_source or StaticHolidaySource()
        self.window_buffer = window_buffer

    def non_working_days(self, start: date, end: date,
                         region: Optional[str] = None) -> List[NonWorkingDay]:
        """Enumerate weekends and holidays within ``[start, end]``."""
        if end < start:
            return []

        holidays = {}
        if region:
            for holiday in self.holiday_source.holidays_for_region(region, start, end):
                holidays.setdefault(holiday.date, holiday)

        result = []
        current = start
        while current <= end:
            if current.weekday() in WEEKEND_DAYS:
                result.append(NonWorkingDay(current, DayReason.WEEKEND))
            elif current in holidays:
                result.append(NonWorkingDay(
                    current, DayReason.HOLIDAY, holidays[current].name
                ))
            current += timedelta(days=1)

        logger.debug(
            f"Found {len(result)} non-working days between "
            f"{start.isoformat()} and {end.isoformat()}"
        )
        return result

    def is_working_day(self, day: date, region: Optional[str] = None) -> bool:
        """Check whether a single date is a working day."""
        return not self.non_working_days(day, day, region)

    def working_days_between(self, start: date, end: date,
                             region: Optional[str] = None) -> int:
        """Count working days in ``[start, end]`` inclusive, floored at zero."""
        total_days = (end - start).days + 1
        non_working = self.non_working_days(start, end, region)
        return max(0, total_days - len(non_working))

    def add_working_days(self, start: date, working_days: int,
                         region: Optional[str] = None) -> date:
        """Advance ``start`` by ``working_days`` working days.

        The start date itself is not counted. Non-working days are
        fetched once for an estimated window; if the walk outruns it the
        next window is fetched the same way.
        """
        if working_days < 0:
            raise ValidationError("Working days must be non-negative")

        if working_days == 0:
            return start

        window_start = start
        window_end = start + timedelta(days=math.ceil(working_days * self.window_buffer))
        blocked = self._blocked_dates(window_start, window_end, region)

        current = start
        remaining = working_days
        while remaining > 0:
            current += timedelta(days=1)
            if current > window_end:
                window_start = current
                window_end = current + timedelta(
                    days=math.ceil(remaining * self.window_buffer)
                )
                blocked = self._blocked_dates(window_start, window_end, region)

            if current not in blocked:
                remaining -= 1

        return current

    def _blocked_dates(self, start: date, end: date, region: Optional[str]) -> Set[date]:
        return {day.date for day in self.non_working_days(start, end, region)}
