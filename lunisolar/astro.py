"""Local apparent-longitude providers backed by ERFA models and JPL DE kernels."""

from __future__ import annotations

import json
import logging
import warnings
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import List, Optional

import erfa
import numpy as np
import spiceypy as spice
from spiceypy.utils.exceptions import SpiceyError

from .ephemeris import Body, EphemerisAcquisitionError, EphemerisSeries, FetchCancelled
from .timescale import TimeScale

__all__ = [
    "EphemerisError",
    "AnalyticEphemeris",
    "SpiceEphemeris",
    "load_ephemeris",
    "unload_ephemeris",
    "ecliptic_longitudes",
    "sample_grid",
]

LOGGER = logging.getLogger(__name__)

# Annual aberration of the Sun at 1 au, in degrees.
SOLAR_ABERRATION_DEG = 20.4898 / 3600.0

_LOADED_FILES: Optional[List[str]] = None
_LOAD_LOCK = Lock()


class EphemerisError(EphemerisAcquisitionError):
    """Raised when ephemeris loading or computation fails."""


def load_ephemeris(bsp_path: str) -> List[str]:
    """Load SPK kernels with :mod:`spiceypy`.

    Parameters
    ----------
    bsp_path:
        A ``.bsp`` file or a directory containing one or more of them.

    Returns
    -------
    list[str]
        Sorted list of loaded kernel file names.

    Raises
    ------
    EphemerisError
        If the path is missing or holds no ``.bsp`` files.
    """

    global _LOADED_FILES

    if _LOADED_FILES is not None:
        return _LOADED_FILES

    path = Path(bsp_path).expanduser()
    if not path.exists():
        raise EphemerisError(f"Ephemeris path not found: {path}")

    with _LOAD_LOCK:
        if _LOADED_FILES is not None:
            return _LOADED_FILES

        if path.is_file():
            bsp_files = [path] if path.suffix.lower() == ".bsp" else []
        else:
            bsp_files = sorted(
                file for file in path.iterdir() if file.is_file() and file.suffix.lower() == ".bsp"
            )
        if not bsp_files:
            raise EphemerisError(f"No .bsp ephemeris files found at: {path}")

        loaded: List[str] = []
        try:
            for bsp_file in bsp_files:
                spice.furnsh(str(bsp_file))
                loaded.append(bsp_file.name)
        except SpiceyError as exc:
            spice.kclear()
            raise EphemerisError(f"Failed to load ephemeris file '{bsp_file}': {exc}") from exc

        _LOADED_FILES = loaded
        LOGGER.info(json.dumps({"event": "ephemeris_loaded", "files": loaded}))
        return loaded


def unload_ephemeris() -> None:
    """Forget every loaded kernel."""
    global _LOADED_FILES
    with _LOAD_LOCK:
        spice.kclear()
        _LOADED_FILES = None


def sample_grid(start_jd: float, stop_jd: float, step_hours: float) -> np.ndarray:
    """Evenly spaced UTC Julian Days from *start_jd* through *stop_jd* inclusive."""
    step = step_hours / 24.0
    count = int(np.floor((stop_jd - start_jd) / step + 1e-9)) + 1
    return start_jd + step * np.arange(count, dtype=float)


def _split(jd: np.ndarray):
    whole = np.floor(jd)
    return whole, jd - whole


def ecliptic_longitudes(positions: np.ndarray, jd_tt: np.ndarray) -> np.ndarray:
    """Apparent longitude of date for ICRS geocentric *positions* (shape ``(n, 3)``).

    Rotates into the IAU 2006 mean ecliptic and equinox of date, then adds
    the IAU 2000A nutation in longitude.
    """
    tt1, tt2 = _split(jd_tt)
    rotation = erfa.ecm06(tt1, tt2)
    ecliptic = np.einsum("nij,nj->ni", rotation, positions)
    longitude = np.degrees(np.arctan2(ecliptic[:, 1], ecliptic[:, 0]))
    dpsi, _ = erfa.nut06a(tt1, tt2)
    return np.mod(longitude + np.degrees(dpsi), 360.0)


def _tdb_grid(jd_utc: np.ndarray) -> np.ndarray:
    return np.array([TimeScale.utc_to_tdb(float(jd)) for jd in jd_utc], dtype=float)


class _GridProvider(ABC):
    """Shared chunked evaluation of a longitude model on a regular UTC grid."""

    name = "grid"

    def __init__(self, step_hours: float = 12.0, chunk_size: int = 50_000) -> None:
        if step_hours <= 0 or chunk_size <= 0:
            raise ValueError("step_hours and chunk_size must be positive")
        self.step_hours = step_hours
        self.chunk_size = chunk_size

    @abstractmethod
    def _longitudes(self, body: Body, jd_utc: np.ndarray, jd_tdb: np.ndarray) -> np.ndarray:
        """Apparent ecliptic-of-date longitudes in degrees for one chunk of the grid."""

    def sample(self, body, start_jd, stop_jd, *, progress=None, should_cancel=None):
        body = Body(body)
        grid = sample_grid(start_jd, stop_jd, self.step_hours)
        longitudes = np.empty_like(grid)
        chunks = range(0, len(grid), self.chunk_size)
        for count, offset in enumerate(chunks):
            if should_cancel is not None and should_cancel():
                raise FetchCancelled(f"{body.label} sampling cancelled")
            if progress is not None:
                progress(count / len(chunks), f"Computing {body.label} longitudes...")
            window = slice(offset, offset + self.chunk_size)
            jd_utc = grid[window]
            longitudes[window] = self._longitudes(body, jd_utc, _tdb_grid(jd_utc))
        if progress is not None:
            progress(1.0, None)
        return EphemerisSeries(grid, longitudes)


class AnalyticEphemeris(_GridProvider):
    """Offline longitudes from ERFA's ``epv00`` (Sun) and ``moon98`` (Moon) series.

    Accurate to a few arcseconds for the Sun and about ten arcseconds for
    the Moon near the present; the error grows away from 1900-2100.
    """

    name = "analytic"

    def _longitudes(self, body, jd_utc, jd_tdb):
        tt1, tt2 = _split(jd_tdb)
        with warnings.catch_warnings():
            # epv00 warns outside 1900-2100; callers accept the reduced accuracy.
            warnings.simplefilter("ignore", erfa.ErfaWarning)
            if body is Body.SUN:
                pvh, _ = erfa.epv00(tt1, tt2)
                positions = -np.asarray(pvh["p"])
            else:
                positions = np.asarray(erfa.moon98(tt1, tt2)["p"])
        longitude = ecliptic_longitudes(positions, jd_tdb)
        if body is Body.SUN:
            distance = np.linalg.norm(positions, axis=1)
            longitude = np.mod(longitude - SOLAR_ABERRATION_DEG / distance, 360.0)
        return longitude


class SpiceEphemeris(_GridProvider):
    """Apparent longitudes from JPL DE kernels (light time and stellar aberration)."""

    name = "spice"

    def __init__(self, bsp_path: str, step_hours: float = 12.0, chunk_size: int = 50_000) -> None:
        super().__init__(step_hours=step_hours, chunk_size=chunk_size)
        self.files = load_ephemeris(bsp_path)

    def _longitudes(self, body, jd_utc, jd_tdb):
        ets = TimeScale.et_from_jd_tdb(jd_tdb)
        try:
            positions, _ = spice.spkpos(body.value.upper(), ets, "J2000", "LT+S", "EARTH")
        except SpiceyError as exc:
            raise EphemerisError(f"SPICE query failed for {body.label}: {exc}") from exc
        return ecliptic_longitudes(np.atleast_2d(np.asarray(positions, dtype=float)), jd_tdb)
