"""Solar-term and new-moon extraction from sampled longitude series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

from .angles import find_crossing, normalize_angle
from .ephemeris import EphemerisSeries

__all__ = [
    "SolarTermEvent",
    "NewMoonEvent",
    "WINTER_SOLSTICE",
    "LI_CHUN",
    "extract_solar_terms",
    "extract_new_moons",
]

WINTER_SOLSTICE = 270
LI_CHUN = 315
TERM_SPACING = 15


@dataclass(frozen=True)
class SolarTermEvent:
    """The Sun reaching a multiple of 15 degrees of apparent longitude."""

    degree: int
    jd_utc: float

    @property
    def is_principal(self) -> bool:
        return self.degree % 30 == 0


@dataclass(frozen=True)
class NewMoonEvent:
    jd_utc: float


def _window(values: np.ndarray, index: int) -> List[float]:
    return [float(values[index + k]) for k in (-1, 0, 1, 2)]


def _instant(jd: np.ndarray, index: int, fraction: float) -> float:
    return float(jd[index] + fraction * (jd[index + 1] - jd[index]))


def extract_solar_terms(sun: EphemerisSeries) -> List[SolarTermEvent]:
    """Return every solar term crossed by the Sun series, in time order.

    Only pairs with one sample of margin on each side are examined, so the
    first and last samples never anchor a crossing.
    """
    n = len(sun)
    if n < 4:
        return []
    lon = sun.longitude
    l1 = lon[1 : n - 2]
    l2 = lon[2 : n - 1]
    p_term = (np.floor(l1 / TERM_SPACING) * TERM_SPACING + TERM_SPACING) % 360.0
    crossed = ((p_term == 0) & (l2 < l1)) | ((l1 < p_term) & (l2 >= p_term))

    events: List[SolarTermEvent] = []
    for offset in np.flatnonzero(crossed):
        index = int(offset) + 1
        target = float(p_term[offset])
        window = [normalize_angle(value - target) for value in _window(lon, index)]
        fraction = find_crossing(*window)
        events.append(SolarTermEvent(int(target), _instant(sun.jd, index, fraction)))
    return events


def extract_new_moons(sun: EphemerisSeries, moon: EphemerisSeries) -> List[NewMoonEvent]:
    """Return the conjunctions where Moon minus Sun longitude rises through zero."""
    n = len(sun)
    if len(moon) != n:
        raise ValueError("Sun and Moon series must be sample-aligned")
    if n < 4:
        return []
    elongation = (moon.longitude - sun.longitude + 180.0) % 360.0 - 180.0
    d1 = elongation[1 : n - 2]
    d2 = elongation[2 : n - 1]
    crossed = (d1 <= 0) & (d2 > 0)

    events: List[NewMoonEvent] = []
    for offset in np.flatnonzero(crossed):
        index = int(offset) + 1
        fraction = find_crossing(*_window(elongation, index))
        events.append(NewMoonEvent(_instant(moon.jd, index, fraction)))
    return events
