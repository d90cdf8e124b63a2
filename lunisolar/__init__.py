"""Chinese luni-solar calendar construction from ephemeris samples."""

from .engine import CalendarResult, CalendarUnavailableError, ProgressReporter, build_calendar
from .ephemeris import (
    Body,
    EphemerisAcquisitionError,
    EphemerisSeries,
    FetchCancelled,
    HorizonsEphemeris,
    MemoryCache,
    StaticEphemeris,
)
from .fields import Field, parse_fields
from .records import MISSING, YearRecord
from .table import PrecomputedTable
from .years import CalendarError, DerivationError

__all__ = [
    "build_calendar",
    "CalendarResult",
    "CalendarError",
    "CalendarUnavailableError",
    "DerivationError",
    "ProgressReporter",
    "Body",
    "EphemerisAcquisitionError",
    "EphemerisSeries",
    "FetchCancelled",
    "HorizonsEphemeris",
    "MemoryCache",
    "StaticEphemeris",
    "Field",
    "parse_fields",
    "MISSING",
    "YearRecord",
    "PrecomputedTable",
]
