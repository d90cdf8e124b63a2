"""Pydantic models for API requests and responses."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lunisolar.fields import parse_fields

MAX_SPAN_YEARS = 5000


class CalendarQueryParams(BaseModel):
    """Validated query parameters for the ``/calendar`` endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    start: int = Field(..., ge=-9999, le=99999, description="First Gregorian year")
    end: int = Field(..., ge=-9999, le=99999, description="Last Gregorian year (inclusive)")
    fields: str = Field(
        "all",
        description="Comma-separated field names (cnyDate, newMoonUtc, liChun, yearLength, "
        "leapMonth, zodiac, element, ganzhi) or 'all'",
    )
    partial: bool = Field(
        False,
        description="Return out-of-coverage fields as null instead of omitting them",
    )

    @field_validator("fields")
    def validate_fields(cls, value: str) -> str:
        parse_fields(value)
        return value

    @model_validator(mode="after")
    def validate_span(self) -> "CalendarQueryParams":
        if self.start > self.end:
            raise ValueError("start must not be after end")
        if self.end - self.start + 1 > MAX_SPAN_YEARS:
            raise ValueError(f"at most {MAX_SPAN_YEARS} years can be requested at once")
        return self


class CalendarResponse(BaseModel):
    """Successful calendar response payload."""

    ok: bool = True
    start: int = Field(..., description="First requested year")
    end: int = Field(..., description="Last requested year")
    data: List[Dict[str, Any]] = Field(..., description="One record per year, absent fields omitted")
    used_fallback: bool = Field(..., description="Whether any value has reduced precision")
    exceeds_coverage: bool = Field(
        ..., description="Whether part of the range lies outside full-precision coverage"
    )
    warnings: List[str] = Field(default_factory=list, description="Soft precision warnings")
    source: Optional[str] = Field(None, description="Ephemeris provider used for derived values")


class HealthResponse(BaseModel):
    """Health-check response."""

    ok: bool = True
    ephemeris: Optional[str]
    table_years: int
    offline_fallback: bool


class ErrorResponse(BaseModel):
    """Error payload."""

    ok: bool = False
    code: str
    error: str
