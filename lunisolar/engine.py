"""Calendar construction: ephemeris sampling, derivation and the field availability policy."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Union

from .cycles import element_for_year, sexagenary_for_year, zodiac_for_year
from .ephemeris import (
    Body,
    CancelCheck,
    EphemerisAcquisitionError,
    EphemerisProvider,
    FetchCancelled,
    ProgressCallback,
    coverage_window,
)
from .events import extract_new_moons, extract_solar_terms
from .fields import ALL_FIELDS, ASTRONOMICAL_FIELDS, FIELD_RANGES, Field, parse_fields
from .months import assemble_months
from .records import APPROXIMATE_KEY, YearRecord
from .secondary import SecondaryCalendar
from .table import PrecomputedTable
from .years import AstronomicalCalendar, CalendarError, DerivationError

__all__ = [
    "CalendarResult",
    "CalendarUnavailableError",
    "ProgressReporter",
    "build_calendar",
    "PROGRESS_REPORT_EVERY",
]

LOGGER = logging.getLogger(__name__)

PROGRESS_REPORT_EVERY = 25

FieldRequest = Union[str, Iterable[Union[str, Field]], Dict[str, bool]]


class CalendarUnavailableError(CalendarError):
    """Raised when no data tier can produce any of the requested astronomical values."""


class ProgressReporter:
    """Forward progress to a callback, never letting the percentage go backwards."""

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self.percent = 0.0

    def __call__(self, percent: float, status: Optional[str] = None) -> None:
        self.percent = max(self.percent, min(float(percent), 100.0))
        if self._callback is not None:
            self._callback(self.percent, status)

    def span(self, start: float, stop: float) -> ProgressCallback:
        """Callback mapping a ``0..1`` fraction onto ``[start, stop]`` percent."""

        def report(fraction: float, status: Optional[str] = None) -> None:
            self(start + (stop - start) * fraction, status)

        return report


@dataclass
class CalendarResult:
    records: List[YearRecord]
    used_fallback: bool = False
    exceeds_coverage: bool = False
    warnings: List[str] = dataclass_field(default_factory=list)
    cancelled: bool = False
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [record.to_dict() for record in self.records],
            "usedFallback": self.used_fallback,
            "exceedsCoverage": self.exceeds_coverage,
            "warnings": list(self.warnings),
            "cancelled": self.cancelled,
            "source": self.source,
        }


def _validate_year(value: Any, name: str) -> int:
    # bool is an int subclass; True/False are not years.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer year, got {value!r}")
    return value


def _astronomical_value(calendar: AstronomicalCalendar, field: Field, year: int) -> Any:
    if field is Field.CNY_DATE:
        return calendar.cny_date(year)
    if field is Field.NEW_MOON_UTC:
        return calendar.new_moon_utc(year)
    if field is Field.LI_CHUN:
        return calendar.li_chun(year)
    if field is Field.YEAR_LENGTH:
        return calendar.year_length(year)
    if field is Field.LEAP_MONTH:
        return calendar.leap_month(year)
    raise ValueError(f"{field.value} is not an astronomical field")


def _secondary_value(secondary: SecondaryCalendar, field: Field, year: int) -> Any:
    if field in (Field.CNY_DATE, Field.NEW_MOON_UTC):
        return secondary.lunar_new_year(year)
    if field is Field.LI_CHUN:
        return secondary.li_chun(year)
    if field is Field.YEAR_LENGTH:
        return secondary.year_length(year)
    if field is Field.LEAP_MONTH:
        return secondary.leap_month(year)
    if field is Field.ZODIAC:
        return secondary.zodiac(year)
    if field is Field.ELEMENT:
        return secondary.element(year)
    return secondary.sexagenary(year)


_CYCLE_FORMULAS: Dict[Field, Callable[[int], str]] = {
    Field.ZODIAC: zodiac_for_year,
    Field.ELEMENT: element_for_year,
    Field.SEXAGENARY: sexagenary_for_year,
}


def _log_skip(year: int, field: Field, tier: str, exc: Exception) -> None:
    LOGGER.warning(
        json.dumps(
            {"event": "year_field_skipped", "year": year, "field": field.value, "tier": tier, "error": str(exc)}
        )
    )


def _needs_astronomy(
    years: Iterable[int], requested: FrozenSet[Field], table: Optional[PrecomputedTable]
) -> List[int]:
    pending = []
    for year in years:
        for field in requested & ASTRONOMICAL_FIELDS:
            if not FIELD_RANGES[field].contains(year):
                continue
            if table is not None and table.has(year, field):
                continue
            pending.append(year)
            break
    return pending


def _table_serves_any(
    years: Iterable[int], requested: FrozenSet[Field], table: Optional[PrecomputedTable]
) -> bool:
    if table is None:
        return False
    return any(table.has(year, field) for year in years for field in requested & ASTRONOMICAL_FIELDS)


def build_calendar(
    start_year: int,
    end_year: int,
    fields: FieldRequest = "all",
    *,
    ephemeris: Optional[EphemerisProvider] = None,
    table: Optional[PrecomputedTable] = None,
    secondary: Optional[SecondaryCalendar] = None,
    partial_coverage: bool = False,
    progress: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelCheck] = None,
) -> CalendarResult:
    """Build one record per Gregorian year in ``[start_year, end_year]``.

    Every requested field is served by the first tier able to provide it:
    the precomputed *table*, values derived from *ephemeris* samples, the
    *secondary* calendar library, and finally closed-form arithmetic for the
    zodiac, element and sexagenary cycles. Years outside a field's precision
    window omit the field, or set it to ``None`` when *partial_coverage* is
    true.

    Raises
    ------
    ValueError
        For non-integer years, ``start_year > end_year`` or unknown fields.
    CalendarUnavailableError
        When astronomical fields are needed and no tier can serve any of them.
    """

    start_year = _validate_year(start_year, "start_year")
    end_year = _validate_year(end_year, "end_year")
    if start_year > end_year:
        raise ValueError(f"start_year ({start_year}) must not be after end_year ({end_year})")
    requested = parse_fields(fields)

    reporter = ProgressReporter(progress)
    years = range(start_year, end_year + 1)
    result = CalendarResult(records=[])

    pending = _needs_astronomy(years, requested, table)
    calendar: Optional[AstronomicalCalendar] = None
    failure: Optional[Exception] = None
    if pending and ephemeris is not None:
        window = coverage_window(pending[0], pending[-1])
        try:
            sun = ephemeris.sample(
                Body.SUN, *window, progress=reporter.span(0.0, 40.0), should_cancel=should_cancel
            )
            moon = ephemeris.sample(
                Body.MOON, *window, progress=reporter.span(40.0, 80.0), should_cancel=should_cancel
            )
        except FetchCancelled:
            LOGGER.info(json.dumps({"event": "calendar_cancelled", "stage": "ephemeris", "records": 0}))
            result.cancelled = True
            return result
        except EphemerisAcquisitionError as exc:
            failure = exc
            LOGGER.warning(
                json.dumps({"event": "ephemeris_fallback", "source": ephemeris.name, "error": str(exc)})
            )
        else:
            reporter(80.0, "Extracting solar terms and new moons...")
            terms = extract_solar_terms(sun)
            months = assemble_months(terms, extract_new_moons(sun, moon))
            calendar = AstronomicalCalendar(months, terms)
            result.source = ephemeris.name

    if pending and calendar is None:
        # Precision data is missing for at least part of the range.
        result.used_fallback = True
        if secondary is None and not _table_serves_any(years, requested, table):
            reason = str(failure) if failure is not None else "no ephemeris provider configured"
            raise CalendarUnavailableError(
                f"No data source can provide calendar data for {start_year}-{end_year}: {reason}"
            ) from failure

    warn_years: Dict[Field, List[int]] = {}
    for count, year in enumerate(years, start=1):
        if should_cancel is not None and should_cancel():
            result.cancelled = True
            LOGGER.info(
                json.dumps({"event": "calendar_cancelled", "stage": "years", "records": len(result.records)})
            )
            break

        record = YearRecord(year)
        for field in ALL_FIELDS:
            if field not in requested:
                continue
            limits = FIELD_RANGES[field]
            if not limits.contains(year):
                result.exceeds_coverage = True
                result.used_fallback = True
                if partial_coverage:
                    record.set(field, None)
                continue
            if limits.warns(year):
                warn_years.setdefault(field, []).append(year)
            _fill_field(record, field, table, calendar, secondary, result)
        result.records.append(record)

        if count % PROGRESS_REPORT_EVERY == 0 or year == end_year:
            reporter(80.0 + 20.0 * count / len(years), f"Processed {count}/{len(years)} years")

    for field, flagged in warn_years.items():
        result.warnings.append(
            f"{field.value} is less certain after {FIELD_RANGES[field].warn_upper}: "
            f"{len(flagged)} year(s) from {flagged[0]} to {flagged[-1]} are affected"
        )
    if not result.cancelled:
        reporter(100.0, "Done")

    LOGGER.info(
        json.dumps(
            {
                "event": "calendar_built",
                "start_year": start_year,
                "end_year": end_year,
                "records": len(result.records),
                "source": result.source,
                "used_fallback": result.used_fallback,
                "cancelled": result.cancelled,
            }
        )
    )
    return result


def _fill_field(
    record: YearRecord,
    field: Field,
    table: Optional[PrecomputedTable],
    calendar: Optional[AstronomicalCalendar],
    secondary: Optional[SecondaryCalendar],
    result: CalendarResult,
) -> None:
    year = record.year

    if table is not None and table.has(year, field):
        record.set(field, table.lookup(year, field))
        if field is Field.NEW_MOON_UTC:
            record.new_moon_utc_approximate = bool(table.record(year).get(APPROXIMATE_KEY, False))
        return

    if calendar is not None and not field.is_cycle:
        try:
            record.set(field, _astronomical_value(calendar, field, year))
        except DerivationError as exc:
            _log_skip(year, field, "ephemeris", exc)
        else:
            if field is Field.NEW_MOON_UTC:
                record.new_moon_utc_approximate = False
            return

    if secondary is not None:
        try:
            value = _secondary_value(secondary, field, year)
        except DerivationError as exc:
            _log_skip(year, field, secondary.name, exc)
        else:
            if field is Field.NEW_MOON_UTC:
                # Only the civil date is known; midnight stands in for the instant.
                value = f"{value}T00:00:00Z"
                record.new_moon_utc_approximate = True
            record.set(field, value)
            if not field.is_cycle:
                result.used_fallback = True
            return

    formula = _CYCLE_FORMULAS.get(field)
    if formula is not None:
        record.set(field, formula(year))
