from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from lunisolar.astro import AnalyticEphemeris
from lunisolar.ephemeris import Body, StaticEphemeris, coverage_window
from lunisolar.secondary import LunarPythonCalendar

# Years whose full margins are covered by the shared sampled series.
FIRST_YEAR = 2022
LAST_YEAR = 2035


@pytest.fixture(scope="session")
def static_ephemeris() -> StaticEphemeris:
    provider = AnalyticEphemeris()
    start, stop = coverage_window(FIRST_YEAR, LAST_YEAR)
    sun = provider.sample(Body.SUN, start, stop)
    moon = provider.sample(Body.MOON, start, stop)
    return StaticEphemeris(sun, moon)


@pytest.fixture(scope="session")
def lunar_python() -> LunarPythonCalendar:
    return LunarPythonCalendar()
