"""Ephemeris sample model and the remote/static longitude providers."""

from __future__ import annotations

import json
import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Protocol, Sequence, Tuple

import httpx
import numpy as np

from .timescale import jd_from_calendar

__all__ = [
    "Body",
    "EphemerisSample",
    "EphemerisSeries",
    "EphemerisProvider",
    "EphemerisAcquisitionError",
    "FetchCancelled",
    "MemoryCache",
    "StaticEphemeris",
    "HorizonsEphemeris",
    "DEFAULT_HORIZONS_URL",
    "parse_horizons_table",
    "coverage_window",
    "ProgressCallback",
    "CancelCheck",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_HORIZONS_URL = "https://ssd.jpl.nasa.gov/api/horizons.api"
# Horizons chunks kept by a MemoryCache unless the caller says otherwise.
DEFAULT_CACHE_ENTRIES = 64

ProgressCallback = Callable[[float, Optional[str]], None]
CancelCheck = Callable[[], bool]


class EphemerisAcquisitionError(RuntimeError):
    """Raised when longitude samples cannot be obtained from a provider."""


class FetchCancelled(EphemerisAcquisitionError):
    """Raised when the caller cancelled a fetch between chunks."""


class Body(str, Enum):
    """Bodies whose apparent geocentric ecliptic longitude is sampled."""

    SUN = "sun"
    MOON = "moon"

    @property
    def horizons_command(self) -> str:
        return "10" if self is Body.SUN else "301"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class EphemerisSample:
    jd_utc: float
    longitude: float


@dataclass(frozen=True)
class EphemerisSeries:
    """Time-ordered longitude samples of one body.

    ``jd`` holds UTC Julian Days, ``longitude`` degrees in ``[0, 360)``.
    """

    jd: np.ndarray
    longitude: np.ndarray

    def __post_init__(self) -> None:
        jd = np.asarray(self.jd, dtype=float)
        longitude = np.asarray(self.longitude, dtype=float)
        if jd.shape != longitude.shape or jd.ndim != 1:
            raise ValueError("jd and longitude must be one-dimensional arrays of equal length")
        object.__setattr__(self, "jd", jd)
        object.__setattr__(self, "longitude", longitude)

    @classmethod
    def from_samples(cls, samples: Sequence[EphemerisSample]) -> "EphemerisSeries":
        return cls(
            np.array([s.jd_utc for s in samples], dtype=float),
            np.array([s.longitude for s in samples], dtype=float),
        )

    def __len__(self) -> int:
        return int(self.jd.shape[0])

    def __iter__(self) -> Iterator[EphemerisSample]:
        for jd, lon in zip(self.jd, self.longitude):
            yield EphemerisSample(float(jd), float(lon))

    def between(self, start_jd: float, stop_jd: float) -> "EphemerisSeries":
        mask = (self.jd >= start_jd) & (self.jd <= stop_jd)
        return EphemerisSeries(self.jd[mask], self.longitude[mask])

    def concat(self, other: "EphemerisSeries") -> "EphemerisSeries":
        """Append *other*, dropping its first sample when it repeats our last one."""
        if len(self) and len(other) and other.jd[0] == self.jd[-1]:
            other = EphemerisSeries(other.jd[1:], other.longitude[1:])
        return EphemerisSeries(
            np.concatenate([self.jd, other.jd]),
            np.concatenate([self.longitude, other.longitude]),
        )


class EphemerisProvider(Protocol):
    """Anything able to sample a body's apparent ecliptic longitude over a window."""

    name: str

    def sample(
        self,
        body: Body,
        start_jd: float,
        stop_jd: float,
        *,
        progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> EphemerisSeries:
        ...


def coverage_window(start_year: int, end_year: int) -> Tuple[float, float]:
    """Sampling window for ``[start_year, end_year]``.

    Covers the year before and after the range, plus January of the
    following year so the last year's next lunar new year is bounded by a
    winter-solstice cycle.
    """
    return jd_from_calendar(start_year - 1, 1, 1), jd_from_calendar(end_year + 2, 2, 1)


class MemoryCache:
    """In-memory LRU sample cache with an explicit lifetime owned by the caller.

    At most ``max_entries`` series and ``max_samples`` samples in total are
    held; the least recently used series are evicted first. A series larger
    than ``max_samples`` on its own is not stored.
    """

    def __init__(self, max_entries: int = DEFAULT_CACHE_ENTRIES, max_samples: Optional[int] = None) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        if max_samples is not None and max_samples < 1:
            raise ValueError("max_samples must be positive")
        self.max_entries = max_entries
        self.max_samples = max_samples
        self._entries: "OrderedDict[Hashable, EphemerisSeries]" = OrderedDict()
        self._samples = 0

    def get(self, key: Hashable) -> Optional[EphemerisSeries]:
        value = self._entries.get(key)
        if value is not None:
            self._entries.move_to_end(key)
        return value

    def put(self, key: Hashable, value: EphemerisSeries) -> None:
        previous = self._entries.pop(key, None)
        if previous is not None:
            self._samples -= len(previous)
        if self.max_samples is not None and len(value) > self.max_samples:
            return
        self._entries[key] = value
        self._samples += len(value)
        while self._over_limit():
            _, evicted = self._entries.popitem(last=False)
            self._samples -= len(evicted)

    def _over_limit(self) -> bool:
        if len(self._entries) > self.max_entries:
            return True
        return self.max_samples is not None and self._samples > self.max_samples

    @property
    def samples(self) -> int:
        return self._samples

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class StaticEphemeris:
    """Provider backed by series that were sampled ahead of time."""

    name = "static"

    def __init__(self, sun: EphemerisSeries, moon: EphemerisSeries) -> None:
        self._series = {Body.SUN: sun, Body.MOON: moon}

    def sample(self, body, start_jd, stop_jd, *, progress=None, should_cancel=None):
        series = self._series[Body(body)].between(start_jd, stop_jd)
        if len(series) < 4:
            raise EphemerisAcquisitionError(
                f"Static {Body(body).label} series does not cover JD {start_jd:.1f}-{stop_jd:.1f}"
            )
        if progress is not None:
            progress(1.0, None)
        return series


def _parse_float(token: str) -> Optional[float]:
    try:
        value = float(token)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_horizons_table(text: str) -> EphemerisSeries:
    """Parse a Horizons observer table requested with ``CAL_FORMAT='JD'`` and quantity 31.

    Each data row between ``$$SOE`` and ``$$EOE`` starts with the UTC Julian
    Day; the first numeric column after it (skipping solar/lunar presence
    markers) is the ecliptic longitude.
    """
    parts = text.split("$$SOE")
    if len(parts) < 2:
        return EphemerisSeries(np.empty(0), np.empty(0))
    body = parts[1].split("$$EOE")[0].strip()

    jds: List[float] = []
    longitudes: List[float] = []
    for line in body.splitlines():
        tokens = line.split()
        if len(tokens) < 2:
            continue
        jd = _parse_float(tokens[0])
        if jd is None:
            continue
        longitude = next(
            (value for value in map(_parse_float, tokens[1:]) if value is not None), None
        )
        if longitude is None:
            continue
        jds.append(jd)
        longitudes.append(longitude % 360.0)
    return EphemerisSeries(np.array(jds, dtype=float), np.array(longitudes, dtype=float))


class HorizonsEphemeris:
    """Chunked client for the JPL Horizons observer-table API."""

    name = "horizons"

    def __init__(
        self,
        base_url: str = DEFAULT_HORIZONS_URL,
        *,
        chunk_years: int = 100,
        step_hours: int = 12,
        cache: Optional[MemoryCache] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 120.0,
    ) -> None:
        if chunk_years <= 0 or step_hours <= 0:
            raise ValueError("chunk_years and step_hours must be positive")
        self.base_url = base_url
        self.chunk_years = chunk_years
        self.step_hours = step_hours
        self.cache = cache
        self._client = client
        self._timeout = httpx.Timeout(timeout, connect=30.0)

    def _chunks(self, start_jd: float, stop_jd: float) -> List[Tuple[float, float]]:
        # Chunk spans are whole multiples of the step so boundaries stay on the sample grid.
        step_days = self.step_hours / 24.0
        span = math.floor(self.chunk_years * 365.25 / step_days) * step_days
        chunks = []
        chunk_start = start_jd
        while chunk_start < stop_jd:
            chunk_stop = min(chunk_start + span, stop_jd)
            chunks.append((chunk_start, chunk_stop))
            chunk_start = chunk_stop
        return chunks

    def _params(self, body: Body, start_jd: float, stop_jd: float) -> Dict[str, str]:
        return {
            "format": "text",
            "COMMAND": f"'{body.horizons_command}'",
            "CENTER": "'500@399'",
            "MAKE_EPHEM": "'YES'",
            "EPHEM_TYPE": "'OBSERVER'",
            "START_TIME": f"'JD{start_jd:.5f}'",
            "STOP_TIME": f"'JD{stop_jd:.5f}'",
            "STEP_SIZE": f"'{self.step_hours} h'",
            "QUANTITIES": "'31'",
            "CAL_FORMAT": "'JD'",
            "CSV_FORMAT": "'NO'",
        }

    def _fetch_chunk(self, client: httpx.Client, body: Body, start_jd: float, stop_jd: float) -> EphemerisSeries:
        try:
            response = client.get(self.base_url, params=self._params(body, start_jd, stop_jd))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise EphemerisAcquisitionError(f"Horizons request failed for {body.label}: {exc}") from exc
        series = parse_horizons_table(response.text)
        if len(series) == 0:
            raise EphemerisAcquisitionError(
                f"Could not parse Horizons data for {body.label} (JD {start_jd:.1f}-{stop_jd:.1f})"
            )
        return series

    def sample(self, body, start_jd, stop_jd, *, progress=None, should_cancel=None):
        body = Body(body)
        key = (body.value, start_jd, stop_jd, self.step_hours)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                if progress is not None:
                    progress(1.0, f"Using cached {body.label} ephemerides")
                return cached

        chunks = self._chunks(start_jd, stop_jd)
        client = self._client or httpx.Client(timeout=self._timeout)
        series = EphemerisSeries(np.empty(0), np.empty(0))
        try:
            for index, (chunk_start, chunk_stop) in enumerate(chunks):
                if should_cancel is not None and should_cancel():
                    raise FetchCancelled(f"{body.label} fetch cancelled")
                if progress is not None:
                    progress(index / len(chunks), f"Fetching {body.label} ephemerides ({index + 1}/{len(chunks)})...")
                series = series.concat(self._fetch_chunk(client, body, chunk_start, chunk_stop))
        finally:
            if self._client is None:
                client.close()

        LOGGER.info(
            json.dumps(
                {
                    "event": "ephemeris_fetched",
                    "source": self.name,
                    "body": body.value,
                    "chunks": len(chunks),
                    "samples": len(series),
                }
            )
        )
        if progress is not None:
            progress(1.0, None)
        if self.cache is not None:
            self.cache.put(key, series)
        return series
