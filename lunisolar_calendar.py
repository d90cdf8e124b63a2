"""Command line front end for the luni-solar calendar builder.

Example::

    lunisolar-calendar 1900-2100 --fields cnyDate,leapMonth --format csv
    lunisolar-calendar 2025 --format md -o calendar.md
"""

from __future__ import annotations

import argparse
import csv
import io
import json
import logging
import re
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import yaml

from lunisolar.config import resolve_ephemeris_provider, resolve_secondary, resolve_table
from lunisolar.engine import CalendarResult, CalendarUnavailableError, build_calendar
from lunisolar.ephemeris import EphemerisAcquisitionError
from lunisolar.fields import Field, parse_fields
from lunisolar.records import OUTPUT_COLUMNS
from lunisolar.table import TableError

LOGGER = logging.getLogger("lunisolar-calendar")

_YEAR_RANGE = re.compile(r"^\s*(-?\d+)\s*(?:(?:-|\.\.|:)\s*(-?\d+))?\s*$")

SQL_TABLE = "lunisolar_calendar"
SQL_TYPES = {"year": "INTEGER", "yearLength": "INTEGER", "leapMonth": "INTEGER", "newMoonUtcApproximate": "BOOLEAN"}


def parse_year_range(arg: str) -> Tuple[int, int]:
    """Parse ``2025`` or ``1900-2100`` into an inclusive ``(start, end)`` pair."""

    match = _YEAR_RANGE.match(arg)
    if match is None:
        raise ValueError(f"'{arg}' is not a year or a year range such as 1900-2100")
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) is not None else start
    if end < start:
        raise ValueError(f"range {arg} ends before it starts")
    return start, end


def render_json(result: CalendarResult) -> str:
    return json.dumps(result.to_dict(), ensure_ascii=False, indent=2) + "\n"


def render_yaml(result: CalendarResult) -> str:
    return yaml.safe_dump(result.to_dict(), sort_keys=False, allow_unicode=True)


def _columns(records: Sequence[Dict[str, Any]]) -> List[str]:
    return [c for c in OUTPUT_COLUMNS if c == "year" or any(c in record for record in records)]


def _cell(record: Dict[str, Any], column: str) -> str:
    # Absent fields are empty, explicit nulls read "null".
    if column not in record:
        return ""
    value = record[column]
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_csv(result: CalendarResult) -> str:
    """One row per year; absent fields are empty cells, explicit nulls read ``null``."""

    records = [record.to_dict() for record in result.records]
    columns = _columns(records)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for record in records:
        writer.writerow([_cell(record, column) for column in columns])
    return buffer.getvalue()


def render_markdown(result: CalendarResult) -> str:
    records = [record.to_dict() for record in result.records]
    columns = _columns(records)
    lines = [
        "| " + " | ".join(columns) + " |",
        "|" + "|".join("---" for _ in columns) + "|",
    ]
    for record in records:
        lines.append("| " + " | ".join(_cell(record, column) for column in columns) + " |")
    return "\n".join(lines) + "\n"


def _sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def render_sql(result: CalendarResult, table: str = SQL_TABLE) -> str:
    """``CREATE TABLE`` plus one ``INSERT`` per year; absent and null values are ``NULL``."""

    records = [record.to_dict() for record in result.records]
    columns = _columns(records)
    quoted = ", ".join(f'"{column}"' for column in columns)
    definitions = ",\n".join(
        f'  "{column}" {SQL_TYPES.get(column, "TEXT")}' + (" PRIMARY KEY" if column == "year" else "")
        for column in columns
    )
    lines = [f"CREATE TABLE IF NOT EXISTS {table} (\n{definitions}\n);"]
    for record in records:
        values = ", ".join(_sql_literal(record.get(column)) for column in columns)
        lines.append(f"INSERT INTO {table} ({quoted}) VALUES ({values});")
    return "\n".join(lines) + "\n"


RENDERERS: Dict[str, Callable[[CalendarResult], str]] = {
    "json": render_json,
    "csv": render_csv,
    "yaml": render_yaml,
    "sql": render_sql,
    "md": render_markdown,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lunisolar-calendar",
        description="Derive Chinese New Year dates, Li Chun, leap months and cycle labels per Gregorian year.",
    )
    parser.add_argument("years", help="Year or inclusive range, e.g. 2025 or 1900-2100")
    parser.add_argument(
        "--fields",
        default="all",
        help="Comma-separated fields (%s) or 'all'" % ", ".join(field.value for field in Field),
    )
    parser.add_argument("--format", choices=tuple(RENDERERS), default="json", dest="output_format")
    parser.add_argument(
        "--partial",
        action="store_true",
        help="Emit out-of-coverage fields as null instead of omitting them",
    )
    parser.add_argument(
        "--ephemeris",
        default=None,
        help="horizons, analytic, kernel or a path to .bsp kernels (default: $LUNISOLAR_EPHEMERIS or horizons)",
    )
    parser.add_argument("--table", default=None, help="Precomputed JSON table (default: $LUNISOLAR_TABLE)")
    parser.add_argument(
        "--no-offline",
        action="store_true",
        help="Disable the lunar_python offline fallback",
    )
    parser.add_argument("--output", "-o", default=None, help="Write to FILE instead of stdout")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings")
    return parser


def _progress(percent: float, status: Optional[str]) -> None:
    if status:
        LOGGER.info(json.dumps({"event": "progress", "percent": round(percent, 1), "status": status}))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO, format="%(message)s")

    try:
        start, end = parse_year_range(args.years)
        fields = parse_fields(args.fields)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        table = resolve_table(args.table)
    except TableError as exc:
        parser.error(str(exc))
    secondary = None if args.no_offline else resolve_secondary()
    try:
        ephemeris = resolve_ephemeris_provider(args.ephemeris)
    except EphemerisAcquisitionError as exc:
        LOGGER.error(json.dumps({"event": "ephemeris_acquire_failed", "error": str(exc)}))
        ephemeris = None

    try:
        result = build_calendar(
            start,
            end,
            fields,
            ephemeris=ephemeris,
            table=table,
            secondary=secondary,
            partial_coverage=args.partial,
            progress=_progress,
        )
    except CalendarUnavailableError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    text = RENDERERS[args.output_format](result)
    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
    else:
        sys.stdout.write(text)

    if result.used_fallback:
        print("warning: some values have reduced precision (offline fallback or outside coverage)", file=sys.stderr)
    for message in result.warnings:
        print(f"warning: {message}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
