"""Per-year calendar facts derived from assembled months and solar terms."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from typing import List, Optional, Sequence

from .events import LI_CHUN, SolarTermEvent
from .months import LunarMonth
from .timescale import beijing_date, beijing_midnight, format_utc, jd_from_calendar

__all__ = ["CalendarError", "DerivationError", "AstronomicalCalendar", "CNY_FALLBACK_DAYS"]

# Heuristic window around 1 February used when no month 1 starts in January-March.
CNY_FALLBACK_DAYS = 35
# Two consecutive first months are never closer than this.
MIN_YEAR_DAYS = 100


class CalendarError(RuntimeError):
    """Base class for calendar construction failures."""


class DerivationError(CalendarError):
    """Raised when a single value for a single year cannot be derived."""


class AstronomicalCalendar:
    """Read-only view over one run's month timeline and solar terms."""

    def __init__(self, months: Sequence[LunarMonth], terms: Sequence[SolarTermEvent]) -> None:
        self.months = tuple(months)
        self.terms = tuple(terms)
        self._first_months: List[LunarMonth] = [m for m in self.months if m.number == 1 and not m.is_leap]
        self._first_starts = [m.start for m in self._first_months]
        self._leap_months: List[LunarMonth] = [m for m in self.months if m.is_leap]
        self._leap_starts = [m.start for m in self._leap_months]
        self._li_chun = sorted(t.jd_utc for t in self.terms if t.degree == LI_CHUN)

    def cny_month(self, year: int) -> LunarMonth:
        """Month 1 of the lunar year that begins in Gregorian *year*."""
        # Primary match: the first month 1 starting in January-March (UTC) of the year.
        index = bisect_left(self._first_starts, jd_from_calendar(year, 1, 1))
        if index < len(self._first_months) and self._first_starts[index] < jd_from_calendar(year, 4, 1):
            return self._first_months[index]

        anchor = jd_from_calendar(year, 2, 1)
        candidates = [m for m in self._first_months if abs(m.start - anchor) < CNY_FALLBACK_DAYS]
        if not candidates:
            raise DerivationError(f"No first lunar month found for {year}")
        return min(candidates, key=lambda m: abs(m.start - anchor))

    def next_cny_month(self, month: LunarMonth) -> LunarMonth:
        index = bisect_right(self._first_starts, month.start + MIN_YEAR_DAYS)
        if index >= len(self._first_months):
            raise DerivationError(f"No following first lunar month after {format_utc(month.start)}")
        return self._first_months[index]

    def cny_date(self, year: int) -> str:
        return beijing_date(self.cny_month(year).start)

    def new_moon_utc(self, year: int) -> str:
        return format_utc(self.cny_month(year).start)

    def year_length(self, year: int) -> int:
        current = self.cny_month(year)
        following = self.next_cny_month(current)
        return round(beijing_midnight(following.start) - beijing_midnight(current.start))

    def leap_month(self, year: int) -> Optional[int]:
        current = self.cny_month(year)
        following = self.next_cny_month(current)
        index = bisect_left(self._leap_starts, current.start)
        if index < len(self._leap_months) and self._leap_starts[index] < following.start:
            return self._leap_months[index].number
        return None

    def li_chun(self, year: int) -> str:
        index = bisect_left(self._li_chun, jd_from_calendar(year, 1, 1))
        if index < len(self._li_chun) and self._li_chun[index] < jd_from_calendar(year + 1, 1, 1):
            return beijing_date(self._li_chun[index])
        raise DerivationError(f"No Li Chun term found for {year}")
