"""Per-year output record."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .fields import Field

__all__ = ["MISSING", "YearRecord", "OUTPUT_KEYS", "OUTPUT_COLUMNS", "APPROXIMATE_KEY"]


class _Missing(Enum):
    MISSING = "missing"

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing.MISSING
"""Sentinel for a field that is absent from the record (key omitted on output)."""

APPROXIMATE_KEY = "newMoonUtcApproximate"


def _output_keys() -> Tuple[Tuple[str, str], ...]:
    keys = []
    for field in Field:
        keys.append((field.attribute, field.output_key))
        if field is Field.NEW_MOON_UTC:
            keys.append(("new_moon_utc_approximate", APPROXIMATE_KEY))
    return tuple(keys)


# (YearRecord attribute, output key) in emission order.
OUTPUT_KEYS = _output_keys()
OUTPUT_COLUMNS = ("year",) + tuple(key for _, key in OUTPUT_KEYS)


@dataclass
class YearRecord:
    """Calendar facts for one Gregorian year.

    Each value is ``MISSING`` (not present), ``None`` (present with an
    explicit no-data marker) or a populated value. For ``leap_month`` a
    populated ``None`` means the lunar year has no leap month.
    """

    year: int
    cny_date: Union[str, None, _Missing] = MISSING
    new_moon_utc: Union[str, None, _Missing] = MISSING
    new_moon_utc_approximate: Union[bool, _Missing] = MISSING
    li_chun: Union[str, None, _Missing] = MISSING
    year_length: Union[int, None, _Missing] = MISSING
    leap_month: Union[int, None, _Missing] = MISSING
    zodiac: Union[str, None, _Missing] = MISSING
    element: Union[str, None, _Missing] = MISSING
    sexagenary: Union[str, None, _Missing] = MISSING

    def get(self, field: Field) -> Any:
        return getattr(self, field.attribute)

    def set(self, field: Field, value: Any) -> None:
        setattr(self, field.attribute, value)

    def has(self, field: Field) -> bool:
        return self.get(field) is not MISSING

    def to_dict(self) -> Dict[str, Optional[Any]]:
        """Plain mapping with camelCase keys; absent fields are omitted."""
        payload: Dict[str, Optional[Any]] = {"year": self.year}
        for attribute, key in OUTPUT_KEYS:
            value = getattr(self, attribute)
            if value is not MISSING:
                payload[key] = value
        return payload
