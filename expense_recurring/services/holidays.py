"""
Holiday calendars consulted for definitions with ``skip_holidays`` set.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Protocol, runtime_checkable


@runtime_checkable
class HolidayCalendar(Protocol):
    def is_holiday(self, day: date) -> bool:
        ...


class NoHolidays:
    """Calendar without holidays."""

    def is_holiday(self, day: date) -> bool:
        return False


class StaticHolidayCalendar:
    """Fixed set of holiday dates, typically loaded from settings."""

    def __init__(self, holidays: Iterable[date] = ()):
        self._holidays = frozenset(holidays)

    def is_holiday(self, day: date) -> bool:
        return day in self._holidays
