"""Output field identifiers and their precision windows."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Union

__all__ = [
    "Field",
    "FieldRange",
    "FIELD_RANGES",
    "ALL_FIELDS",
    "ASTRONOMICAL_FIELDS",
    "CYCLE_FIELDS",
    "PRECISION_LOWER_YEAR",
    "PRECISION_UPPER_YEAR",
    "parse_fields",
]

PRECISION_LOWER_YEAR = 619
PRECISION_UPPER_YEAR = 17190


class Field(str, Enum):
    """Enumeration of the per-year values a caller can request."""

    CNY_DATE = "cnyDate"
    NEW_MOON_UTC = "newMoonUtc"
    LI_CHUN = "liChun"
    YEAR_LENGTH = "yearLength"
    LEAP_MONTH = "leapMonth"
    ZODIAC = "zodiac"
    ELEMENT = "element"
    SEXAGENARY = "ganzhi"

    @property
    def attribute(self) -> str:
        """Name of the :class:`~lunisolar.records.YearRecord` attribute holding the value."""
        return _ATTRIBUTES[self]

    @property
    def output_key(self) -> str:
        """Key used for the value in emitted records and precomputed tables."""
        return _OUTPUT_KEYS.get(self, self.value)

    @property
    def is_cycle(self) -> bool:
        return self in CYCLE_FIELDS


_ATTRIBUTES: Dict[Field, str] = {
    Field.CNY_DATE: "cny_date",
    Field.NEW_MOON_UTC: "new_moon_utc",
    Field.LI_CHUN: "li_chun",
    Field.YEAR_LENGTH: "year_length",
    Field.LEAP_MONTH: "leap_month",
    Field.ZODIAC: "zodiac",
    Field.ELEMENT: "element",
    Field.SEXAGENARY: "sexagenary",
}

# Output keys that differ from the request name.
_OUTPUT_KEYS: Dict[Field, str] = {Field.CNY_DATE: "cny"}

CYCLE_FIELDS: FrozenSet[Field] = frozenset({Field.ZODIAC, Field.ELEMENT, Field.SEXAGENARY})
ASTRONOMICAL_FIELDS: FrozenSet[Field] = frozenset(Field) - CYCLE_FIELDS
ALL_FIELDS = tuple(Field)


@dataclass(frozen=True)
class FieldRange:
    """Inclusive Gregorian-year window inside which a field is trusted.

    ``None`` bounds are open. The soft ``warn_*`` bounds never remove data;
    they only flag values whose accuracy degrades.
    """

    hard_lower: Optional[int] = None
    hard_upper: Optional[int] = None
    warn_lower: Optional[int] = None
    warn_upper: Optional[int] = None

    def contains(self, year: int) -> bool:
        if self.hard_lower is not None and year < self.hard_lower:
            return False
        if self.hard_upper is not None and year > self.hard_upper:
            return False
        return True

    def warns(self, year: int) -> bool:
        if self.warn_lower is not None and year < self.warn_lower:
            return True
        if self.warn_upper is not None and year > self.warn_upper:
            return True
        return False


_PRECISION = FieldRange(PRECISION_LOWER_YEAR, PRECISION_UPPER_YEAR)

FIELD_RANGES: Dict[Field, FieldRange] = {
    # Delta T extrapolation makes exact instants increasingly uncertain after 2050.
    Field.NEW_MOON_UTC: FieldRange(PRECISION_LOWER_YEAR, PRECISION_UPPER_YEAR, warn_upper=2050),
    Field.LI_CHUN: _PRECISION,
    Field.CNY_DATE: _PRECISION,
    Field.LEAP_MONTH: _PRECISION,
    Field.YEAR_LENGTH: _PRECISION,
    Field.ZODIAC: FieldRange(),
    Field.SEXAGENARY: FieldRange(),
    Field.ELEMENT: FieldRange(),
}


def parse_fields(fields: Union[str, Iterable[Union[str, Field]], Dict[str, bool]]) -> FrozenSet[Field]:
    """Normalise a field request.

    Accepts ``"all"``, a comma-separated string, an iterable of names or
    :class:`Field` members, or a ``{name: bool}`` mapping.

    Raises
    ------
    ValueError
        If a name is not a known field.
    """

    if isinstance(fields, str):
        if fields.strip().lower() == "all":
            return frozenset(Field)
        names: Iterable[Union[str, Field]] = [part.strip() for part in fields.split(",") if part.strip()]
    elif isinstance(fields, dict):
        names = [name for name, wanted in fields.items() if wanted]
    else:
        names = fields

    selected = set()
    for name in names:
        try:
            selected.add(Field(name))
        except ValueError as exc:
            known = ", ".join(field.value for field in Field)
            raise ValueError(f"Unknown field '{name}' (expected one of: {known})") from exc
    return frozenset(selected)
