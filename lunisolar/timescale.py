"""Time-scale conversions and Beijing civil-day helpers.

Instants are carried as Julian Day numbers on the UTC scale. The supported
span (years 619-17190) is far outside what :class:`datetime.datetime` can
represent, so calendar conversions go through ERFA's proleptic Gregorian
routines instead.
"""

from __future__ import annotations

import math
from typing import Tuple

import erfa

__all__ = [
    "SEC_PER_DAY",
    "BEIJING_OFFSET_DAYS",
    "TimeScale",
    "jd_from_calendar",
    "calendar_from_jd",
    "beijing_midnight",
    "beijing_date",
    "format_utc",
    "utc_year",
]

SEC_PER_DAY = 86400.0
BEIJING_OFFSET_DAYS = 8.0 / 24.0
J2000_JD = 2451545.0


class TimeScale:
    """UTC -> TDB conversion: ERFA's leap seconds inside 1972-2025, Delta T elsewhere. TDB~TT."""

    # Years in which ERFA's built-in leap-second table defines TAI-UTC.
    LEAP_SECOND_YEARS = (1972.0, 2026.0)

    @staticmethod
    def delta_t_seconds(year: float) -> float:
        """Morrison & Stephenson long-term Delta T = TT - UT, in seconds."""
        t = (year - 1825.0) / 100.0
        return -150.568 + 31.4115 * t * t + 284.8436 * math.cos(2.0 * math.pi * (t + 0.75) / 14.0)

    @staticmethod
    def _utc_to_tt(jd_utc: float) -> float:
        tai1, tai2 = erfa.utctai(jd_utc, 0.0)
        tt1, tt2 = erfa.taitt(tai1, tai2)
        return float(tt1 + tt2)

    @classmethod
    def utc_to_tdb(cls, jd_utc: float) -> float:
        year = 2000.0 + (jd_utc - 2451544.5) / 365.2425
        first, last = cls.LEAP_SECOND_YEARS
        if first <= year < last:
            return cls._utc_to_tt(jd_utc)
        # Outside the leap-second era TT-UTC is approximated by Delta T.
        return jd_utc + cls.delta_t_seconds(year) / SEC_PER_DAY

    @staticmethod
    def et_from_jd_tdb(jd_tdb: float) -> float:
        """SPICE ephemeris time (TDB seconds past J2000)."""
        return (jd_tdb - J2000_JD) * SEC_PER_DAY


def jd_from_calendar(year: int, month: int, day: int) -> float:
    """Julian Day at 00:00 UTC of a proleptic Gregorian date."""
    djm0, djm = erfa.cal2jd(year, month, day)
    return float(djm0 + djm)


def calendar_from_jd(jd: float) -> Tuple[int, int, int]:
    iy, im, iday, _ = erfa.jd2cal(jd, 0.0)
    return int(iy), int(im), int(iday)


def utc_year(jd: float) -> int:
    return calendar_from_jd(jd)[0]


def _civil_day_number(jd: float, offset_days: float) -> int:
    # Integer day count whose boundaries fall on local midnight.
    return math.floor(jd + 0.5 + offset_days)


def beijing_midnight(jd: float) -> float:
    """Return the UTC instant of the UTC+8 midnight that starts the civil day containing *jd*."""
    return _civil_day_number(jd, BEIJING_OFFSET_DAYS) - 0.5 - BEIJING_OFFSET_DAYS


def beijing_date(jd: float) -> str:
    """Beijing (UTC+8) calendar date of *jd* as ``YYYY-MM-DD``."""
    day_number = _civil_day_number(jd, BEIJING_OFFSET_DAYS)
    y, m, d = calendar_from_jd(day_number - 0.5)
    return f"{y:04d}-{m:02d}-{d:02d}"


def format_utc(jd: float) -> str:
    """Format *jd* as ``YYYY-MM-DDTHH:MM:SSZ`` rounded to the nearest second."""
    total = round(jd * SEC_PER_DAY) + 43200
    day_number, second_of_day = divmod(total, 86400)
    y, m, d = calendar_from_jd(day_number - 0.5)
    hh, rem = divmod(second_of_day, 3600)
    mm, ss = divmod(rem, 60)
    return f"{y:04d}-{m:02d}-{d:02d}T{hh:02d}:{mm:02d}:{ss:02d}Z"
