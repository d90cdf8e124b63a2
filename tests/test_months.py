from __future__ import annotations

import pytest

from lunisolar.ephemeris import Body
from lunisolar.events import NewMoonEvent, SolarTermEvent, extract_new_moons, extract_solar_terms
from lunisolar.months import assemble_cycles, assemble_months
from lunisolar.timescale import beijing_date


@pytest.fixture(scope="module")
def cycles(static_ephemeris):
    sun = static_ephemeris._series[Body.SUN]
    moon = static_ephemeris._series[Body.MOON]
    return assemble_cycles(extract_solar_terms(sun), extract_new_moons(sun, moon))


def test_leap_invariant_per_cycle(cycles) -> None:
    assert len(cycles) >= 14
    for cycle in cycles:
        leap_count = sum(month.is_leap for month in cycle.months)
        assert len(cycle.months) in (12, 13)
        assert leap_count == (1 if cycle.is_leap_cycle else 0)


def test_months_are_contiguous_and_numbered(cycles) -> None:
    months = [month for cycle in cycles for month in cycle.months]
    for previous, current in zip(months, months[1:]):
        assert previous.end == current.start
        if current.is_leap:
            assert current.number == previous.number
        else:
            assert current.number == previous.number % 12 + 1
    assert all(cycle.months[0].number == 11 and not cycle.months[0].is_leap for cycle in cycles)


def test_2023_leap_second_month(cycles) -> None:
    leaps = [month for cycle in cycles for month in cycle.months if month.is_leap]
    by_start = {beijing_date(month.start): month.number for month in leaps}
    assert by_start["2023-03-22"] == 2
    assert by_start["2025-07-25"] == 6


def test_cycle_with_unexpected_month_count_is_skipped(caplog) -> None:
    # Two solstices 400 days apart with a new moon every 20 days: 20 months.
    terms = [SolarTermEvent(270, 2460000.0), SolarTermEvent(270, 2460400.0)]
    moons = [NewMoonEvent(2459990.0 + 20.0 * k) for k in range(25)]

    with caplog.at_level("WARNING"):
        assert assemble_cycles(terms, moons) == []
    assert "month_cycle_skipped" in caplog.text


def test_cycle_without_closing_new_moon_is_skipped() -> None:
    terms = [SolarTermEvent(270, 2460000.0), SolarTermEvent(270, 2460365.0)]
    moons = [NewMoonEvent(2459990.0 + 29.5 * k) for k in range(13)]
    assert assemble_months(terms, moons) == []
