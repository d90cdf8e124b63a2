from __future__ import annotations

import pytest

from lunisolar.timescale import SEC_PER_DAY, TimeScale, beijing_date, beijing_midnight, format_utc, jd_from_calendar


@pytest.mark.parametrize(
    "date, expected",
    [((1972, 3, 1), 42.184), ((2000, 1, 1), 64.184), ((2016, 12, 31), 68.184), ((2025, 6, 1), 69.184)],
)
def test_tt_minus_utc_follows_leap_seconds(date, expected: float) -> None:
    jd = jd_from_calendar(*date) + 0.5
    assert (TimeScale.utc_to_tdb(jd) - jd) * SEC_PER_DAY == pytest.approx(expected, abs=1e-3)


def test_delta_t_outside_leap_second_era() -> None:
    jd = jd_from_calendar(1500, 1, 1)
    offset = (TimeScale.utc_to_tdb(jd) - jd) * SEC_PER_DAY
    assert offset == pytest.approx(TimeScale.delta_t_seconds(1500.0), abs=1.0)
    assert offset > 100.0


def test_late_utc_evening_is_next_beijing_day() -> None:
    solstice = jd_from_calendar(2014, 12, 21) + (23 + 3 / 60) / 24
    new_moon = jd_from_calendar(2014, 12, 22) + (1 + 36 / 60) / 24

    assert beijing_date(solstice) == beijing_date(new_moon) == "2014-12-22"
    assert beijing_midnight(solstice) == beijing_midnight(new_moon)
    assert format_utc(beijing_midnight(solstice)) == "2014-12-21T16:00:00Z"
