"""Assembly of numbered lunar months between consecutive winter solstices."""

from __future__ import annotations

import json
import logging
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .events import WINTER_SOLSTICE, NewMoonEvent, SolarTermEvent
from .timescale import beijing_midnight, format_utc

__all__ = ["LunarMonth", "MonthCycle", "assemble_cycles", "assemble_months"]

LOGGER = logging.getLogger(__name__)

# The month containing the winter solstice is always the 11th.
SOLSTICE_MONTH = 11
ORDINARY_CYCLE = 12
LEAP_CYCLE = 13


@dataclass(frozen=True)
class LunarMonth:
    number: int
    is_leap: bool
    start: float
    end: float


@dataclass(frozen=True)
class MonthCycle:
    """Months from the one containing a winter solstice up to the next such month."""

    solstice: float
    months: Tuple[LunarMonth, ...]

    @property
    def is_leap_cycle(self) -> bool:
        return len(self.months) == LEAP_CYCLE


def _month_index(moon_days: Sequence[float], instant: float) -> Optional[int]:
    # Index of the last new moon whose Beijing day is on or before the day of instant,
    # provided a later one closes the month.
    index = bisect_right(moon_days, beijing_midnight(instant)) - 1
    if index < 0 or index + 1 >= len(moon_days):
        return None
    return index


def _has_principal_term(principal_days: Sequence[float], start_day: float, end_day: float) -> bool:
    position = bisect_left(principal_days, start_day)
    return position < len(principal_days) and principal_days[position] < end_day


def assemble_cycles(
    terms: Sequence[SolarTermEvent], new_moons: Sequence[NewMoonEvent]
) -> List[MonthCycle]:
    """Number the months of every complete winter-solstice cycle.

    In a 13-month cycle the first month whose Beijing civil-day span holds
    no principal term is the leap month and repeats the previous number.
    Cycles whose bounds cannot be placed, or whose month count is neither
    12 nor 13, are logged and skipped.
    """
    moons = [event.jd_utc for event in new_moons]
    moon_days = [beijing_midnight(jd) for jd in moons]
    principal_days = sorted(beijing_midnight(t.jd_utc) for t in terms if t.is_principal)
    solstices = [t.jd_utc for t in terms if t.degree == WINTER_SOLSTICE]

    cycles: List[MonthCycle] = []
    previous: Optional[LunarMonth] = None
    for ws_start, ws_end in zip(solstices, solstices[1:]):
        start_index = _month_index(moon_days, ws_start)
        end_index = _month_index(moon_days, ws_end)
        if start_index is None or end_index is None:
            LOGGER.warning(
                json.dumps(
                    {
                        "event": "month_cycle_skipped",
                        "solstice": format_utc(ws_start),
                        "reason": "new moons do not bracket both solstices",
                    }
                )
            )
            continue
        month_count = end_index - start_index
        if month_count not in (ORDINARY_CYCLE, LEAP_CYCLE):
            LOGGER.warning(
                json.dumps(
                    {
                        "event": "month_cycle_skipped",
                        "solstice": format_utc(ws_start),
                        "reason": f"{month_count} months between solstices",
                    }
                )
            )
            continue

        months: List[LunarMonth] = []
        number = SOLSTICE_MONTH
        leap_assigned = False
        for offset in range(month_count):
            start = moons[start_index + offset]
            end = moons[start_index + offset + 1]
            has_term = _has_principal_term(
                principal_days, moon_days[start_index + offset], moon_days[start_index + offset + 1]
            )
            if month_count == LEAP_CYCLE and not has_term and not leap_assigned:
                prior = months[-1] if months else previous
                month = LunarMonth(prior.number if prior else SOLSTICE_MONTH, True, start, end)
                leap_assigned = True
            else:
                month = LunarMonth(number, False, start, end)
                number = number % 12 + 1
            months.append(month)
        previous = months[-1]
        cycles.append(MonthCycle(ws_start, tuple(months)))
    return cycles


def assemble_months(
    terms: Sequence[SolarTermEvent], new_moons: Sequence[NewMoonEvent]
) -> List[LunarMonth]:
    """Flatten :func:`assemble_cycles` into one continuous month timeline."""
    return [month for cycle in assemble_cycles(terms, new_moons) for month in cycle.months]
