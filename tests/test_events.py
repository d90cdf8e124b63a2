from __future__ import annotations

import numpy as np
import pytest

from lunisolar.ephemeris import EphemerisSeries
from lunisolar.events import extract_new_moons, extract_solar_terms

JD0 = 2460000.5
SUN_RATE = 0.9856
MOON_RATE = 13.1764


def _linear_series(start_longitude: float, rate: float, days: float) -> EphemerisSeries:
    jd = JD0 + 0.5 * np.arange(int(days * 2) + 1)
    return EphemerisSeries(jd, np.mod(start_longitude + rate * (jd - JD0), 360.0))


def test_solar_terms_on_linear_motion() -> None:
    terms = extract_solar_terms(_linear_series(265.0, SUN_RATE, 60))

    assert [term.degree for term in terms] == [270, 285, 300, 315]
    for term in terms:
        expected = JD0 + (term.degree - 265.0) / SUN_RATE
        assert term.jd_utc == pytest.approx(expected, abs=1e-6)
    assert [term.is_principal for term in terms] == [True, False, True, False]


def test_solar_terms_across_zero_longitude() -> None:
    terms = extract_solar_terms(_linear_series(350.0, SUN_RATE, 30))

    assert [term.degree for term in terms] == [0, 15]
    assert terms[0].jd_utc == pytest.approx(JD0 + 10.0 / SUN_RATE, abs=1e-6)


def test_new_moons_on_linear_motion() -> None:
    sun = _linear_series(100.0, SUN_RATE, 40)
    moon = _linear_series(70.0, MOON_RATE, 40)

    moons = extract_new_moons(sun, moon)

    synodic_rate = MOON_RATE - SUN_RATE
    first = JD0 + 30.0 / synodic_rate
    assert len(moons) == 2
    assert moons[0].jd_utc == pytest.approx(first, abs=1e-6)
    assert moons[1].jd_utc == pytest.approx(first + 360.0 / synodic_rate, abs=1e-6)


def test_new_moons_require_aligned_series() -> None:
    with pytest.raises(ValueError):
        extract_new_moons(_linear_series(0.0, SUN_RATE, 10), _linear_series(0.0, MOON_RATE, 9))


def test_short_series_yield_nothing() -> None:
    short = _linear_series(269.9, SUN_RATE, 1)
    assert extract_solar_terms(short) == []
    assert extract_new_moons(short, short) == []


def test_sampled_2025_events(static_ephemeris) -> None:
    from lunisolar.ephemeris import Body
    from lunisolar.timescale import beijing_date, format_utc, jd_from_calendar

    start, stop = jd_from_calendar(2024, 12, 1), jd_from_calendar(2025, 3, 1)
    sun = static_ephemeris.sample(Body.SUN, start, stop)
    moon = static_ephemeris.sample(Body.MOON, start, stop)

    li_chun = [term for term in extract_solar_terms(sun) if term.degree == 315]
    assert [beijing_date(term.jd_utc) for term in li_chun] == ["2025-02-03"]
    moons = [format_utc(event.jd_utc) for event in extract_new_moons(sun, moon)]
    assert any(stamp.startswith("2025-01-29T12:3") for stamp in moons)
