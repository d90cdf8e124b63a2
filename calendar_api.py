"""FastAPI application exposing the luni-solar calendar builder."""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from lunisolar.config import resolve_ephemeris_provider, resolve_sample_cache, resolve_secondary, resolve_table
from lunisolar.engine import CalendarUnavailableError, build_calendar
from lunisolar.ephemeris import EphemerisAcquisitionError, EphemerisProvider
from lunisolar.secondary import SecondaryCalendar
from lunisolar.table import PrecomputedTable, TableError
from models import CalendarQueryParams, CalendarResponse, ErrorResponse, HealthResponse

logging.basicConfig(level=logging.INFO, format="%(message)s")
LOGGER = logging.getLogger("calendar-api")

APP_DESCRIPTION = (
    "Chinese luni-solar calendar (new year, solar terms, leap months) derived from "
    "JPL ephemerides with offline fallbacks"
)

EPHEMERIS: Optional[EphemerisProvider] = None
TABLE: Optional[PrecomputedTable] = None
SECONDARY: Optional[SecondaryCalendar] = None
# Horizons samples are reused across requests; the cache is bounded by entries and samples.
SAMPLE_CACHE = resolve_sample_cache()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global EPHEMERIS, TABLE, SECONDARY
    try:
        EPHEMERIS = resolve_ephemeris_provider(cache=SAMPLE_CACHE)
    except EphemerisAcquisitionError as exc:
        # Requests are still served from the table and offline tiers.
        LOGGER.error(json.dumps({"event": "ephemeris_acquire_failed", "error": str(exc)}))
        EPHEMERIS = None
    try:
        TABLE = resolve_table()
    except TableError as exc:
        LOGGER.error(json.dumps({"event": "table_load_failed", "error": str(exc)}))
        TABLE = None
    SECONDARY = resolve_secondary()
    LOGGER.info(
        json.dumps(
            {
                "event": "startup",
                "ephemeris": EPHEMERIS.name if EPHEMERIS is not None else None,
                "table_years": len(TABLE) if TABLE is not None else 0,
                "offline_fallback": SECONDARY is not None,
            }
        )
    )
    yield


app = FastAPI(
    title="Lunisolar Calendar API",
    description=APP_DESCRIPTION,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    payload = ErrorResponse(code=code, error=message)
    LOGGER.error(json.dumps({"event": "error", "code": code, "message": message}))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = ", ".join(error["msg"] for error in exc.errors())
    return _error_response(422, "validation_error", messages)


@app.exception_handler(CalendarUnavailableError)
async def unavailable_exception_handler(request: Request, exc: CalendarUnavailableError) -> JSONResponse:
    return _error_response(503, "calendar_unavailable", str(exc))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("error") or detail.get("message") or str(detail)
    elif isinstance(detail, list):
        message = ", ".join(str(item) for item in detail)
    else:
        message = str(detail)
    return _error_response(exc.status_code, f"http_{exc.status_code}", message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled exception", exc_info=exc)
    return _error_response(500, "internal_error", "Unhandled server error")


def calendar_params(
    start: int = Query(..., description="First Gregorian year"),
    end: int = Query(..., description="Last Gregorian year (inclusive)"),
    fields: str = Query("all", description="Comma-separated field names or 'all'"),
    partial: bool = Query(False, description="Return out-of-coverage fields as null"),
) -> CalendarQueryParams:
    try:
        return CalendarQueryParams(start=start, end=end, fields=fields, partial=partial)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(
        ok=True,
        ephemeris=EPHEMERIS.name if EPHEMERIS is not None else None,
        table_years=len(TABLE) if TABLE is not None else 0,
        offline_fallback=SECONDARY is not None,
    )


@app.get(
    "/calendar",
    response_model=CalendarResponse,
    responses={
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
def calendar_endpoint(params: CalendarQueryParams = Depends(calendar_params)) -> CalendarResponse:
    start_time = time.perf_counter()
    result = build_calendar(
        params.start,
        params.end,
        params.fields,
        ephemeris=EPHEMERIS,
        table=TABLE,
        secondary=SECONDARY,
        partial_coverage=params.partial,
    )
    duration_ms = (time.perf_counter() - start_time) * 1000.0

    response = CalendarResponse(
        start=params.start,
        end=params.end,
        data=[record.to_dict() for record in result.records],
        used_fallback=result.used_fallback,
        exceeds_coverage=result.exceeds_coverage,
        warnings=result.warnings,
        source=result.source,
    )

    LOGGER.info(
        json.dumps(
            {
                "event": "calendar",
                "start": params.start,
                "end": params.end,
                "fields": params.fields,
                "partial": params.partial,
                "used_fallback": result.used_fallback,
                "duration_ms": round(duration_ms, 3),
            }
        )
    )
    return response
