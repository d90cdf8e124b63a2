"""Environment-driven selection of the calendar data sources."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

import httpx

from .astro import AnalyticEphemeris, SpiceEphemeris
from .ephemeris import (
    DEFAULT_CACHE_ENTRIES,
    DEFAULT_HORIZONS_URL,
    EphemerisAcquisitionError,
    EphemerisProvider,
    HorizonsEphemeris,
    MemoryCache,
)
from .secondary import LunarPythonCalendar, SecondaryCalendar
from .table import PrecomputedTable

__all__ = [
    "DEFAULT_KERNEL_URL",
    "DEFAULT_KERNEL_FILENAME",
    "DEFAULT_CACHE_DIR",
    "resolve_kernel_path",
    "resolve_ephemeris_provider",
    "resolve_table",
    "resolve_secondary",
    "resolve_sample_cache",
]

LOGGER = logging.getLogger(__name__)

# DE440 spans 1550-2650; point LUNISOLAR_EPHEMERIS at DE441 kernels for the full range.
DEFAULT_KERNEL_URL = "https://naif.jpl.nasa.gov/pub/naif/generic_kernels/spk/planets/de440.bsp"
DEFAULT_KERNEL_FILENAME = "de440.bsp"
DEFAULT_CACHE_DIR = Path.home() / ".lunisolar" / "kernels"

_FALSE_VALUES = {"0", "false", "no", "off"}

# Roughly 2000 years of Sun and Moon samples at a 12 h step.
DEFAULT_CACHE_SAMPLES = 3_000_000


def _download_file(url: str, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.info(json.dumps({"event": "kernel_downloading", "url": url, "destination": str(destination)}))
    try:
        with httpx.stream("GET", url, timeout=httpx.Timeout(120.0, connect=30.0)) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length", "0")) or None
            received = 0
            with destination.open("wb") as handle:
                for chunk in response.iter_bytes(chunk_size=1 << 20):
                    handle.write(chunk)
                    received += len(chunk)
    except (httpx.HTTPError, OSError) as exc:  # pragma: no cover - network failures are not exercised in tests.
        if destination.exists():
            destination.unlink()
        raise EphemerisAcquisitionError(f"Failed to download kernel from {url}: {exc}") from exc
    LOGGER.info(
        json.dumps(
            {
                "event": "kernel_downloaded",
                "url": url,
                "destination": str(destination),
                "bytes": received,
                "total": total,
            }
        )
    )


def _ensure_kernel(path: Path) -> Path:
    """Ensure *path* is a ``.bsp`` file or a directory holding at least one."""

    if path.is_file():
        if path.suffix.lower() != ".bsp":
            raise EphemerisAcquisitionError(f"Kernel file must have .bsp extension: {path}")
        return path
    if path.exists() and not path.is_dir():
        raise EphemerisAcquisitionError(f"Kernel path is not a file or directory: {path}")

    if path.suffix.lower() == ".bsp":
        _download_file(DEFAULT_KERNEL_URL, path)
        return path

    path.mkdir(parents=True, exist_ok=True)
    if not any(path.glob("*.bsp")):
        _download_file(DEFAULT_KERNEL_URL, path / DEFAULT_KERNEL_FILENAME)
    return path


def resolve_kernel_path(value: Optional[str] = None) -> Path:
    """Return a usable kernel path, downloading the default kernel if necessary.

    ``value`` (or ``$LUNISOLAR_EPHEMERIS``) may name a file or directory;
    ``"kernel"`` selects ``$LUNISOLAR_KERNEL_CACHE_DIR``.
    """

    if value and value != "kernel":
        return _ensure_kernel(Path(value).expanduser())
    cache_root = Path(os.environ.get("LUNISOLAR_KERNEL_CACHE_DIR", str(DEFAULT_CACHE_DIR))).expanduser()
    return _ensure_kernel(cache_root / DEFAULT_KERNEL_FILENAME)


def resolve_ephemeris_provider(
    value: Optional[str] = None, *, cache: Optional[MemoryCache] = None
) -> EphemerisProvider:
    """Build the provider named by *value* or ``$LUNISOLAR_EPHEMERIS``.

    ``horizons`` (default) queries JPL Horizons, ``analytic`` uses ERFA's
    series, ``kernel`` or a filesystem path reads JPL DE kernels.
    """

    choice = (value or os.environ.get("LUNISOLAR_EPHEMERIS") or "horizons").strip()
    lowered = choice.lower()
    if lowered == "horizons":
        provider: EphemerisProvider = HorizonsEphemeris(
            os.environ.get("HORIZONS_API_URL", DEFAULT_HORIZONS_URL), cache=cache
        )
    elif lowered == "analytic":
        provider = AnalyticEphemeris()
    else:
        provider = SpiceEphemeris(str(resolve_kernel_path(choice)))
    LOGGER.info(json.dumps({"event": "ephemeris_provider_selected", "provider": provider.name}))
    return provider


def resolve_table(path: Optional[str] = None) -> Optional[PrecomputedTable]:
    """Load the precomputed table at *path* or ``$LUNISOLAR_TABLE``, if any."""

    source = path or os.environ.get("LUNISOLAR_TABLE")
    if not source:
        return None
    return PrecomputedTable.load(source)


def resolve_secondary(offline: Optional[bool] = None) -> Optional[SecondaryCalendar]:
    """Return the offline calendar unless disabled by *offline* or ``$LUNISOLAR_OFFLINE``."""

    if offline is None:
        offline = os.environ.get("LUNISOLAR_OFFLINE", "1").strip().lower() not in _FALSE_VALUES
    return LunarPythonCalendar() if offline else None


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def resolve_sample_cache() -> MemoryCache:
    """Bounded sample cache sized by ``$LUNISOLAR_CACHE_ENTRIES`` and ``$LUNISOLAR_CACHE_SAMPLES``."""

    return MemoryCache(
        max_entries=_positive_int("LUNISOLAR_CACHE_ENTRIES", DEFAULT_CACHE_ENTRIES),
        max_samples=_positive_int("LUNISOLAR_CACHE_SAMPLES", DEFAULT_CACHE_SAMPLES),
    )
