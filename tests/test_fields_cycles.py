from __future__ import annotations

import pytest

from lunisolar.cycles import element_for_year, sexagenary_for_year, zodiac_for_year
from lunisolar.fields import ALL_FIELDS, FIELD_RANGES, Field, parse_fields
from lunisolar.records import MISSING, OUTPUT_COLUMNS, YearRecord
from lunisolar.secondary import LunarPythonCalendar
from lunisolar.table import PrecomputedTable


@pytest.mark.parametrize(
    "year, zodiac, ganzhi, element",
    [
        (4, "Rat", "甲子", "Wood"),
        (1984, "Rat", "甲子", "Wood"),
        (2023, "Rabbit", "癸卯", "Water"),
        (2025, "Snake", "乙巳", "Wood"),
        (3, "Pig", "癸亥", "Water"),
        (-56, "Rat", "甲子", "Wood"),
    ],
)
def test_cycle_formulas(year: int, zodiac: str, ganzhi: str, element: str) -> None:
    assert zodiac_for_year(year) == zodiac
    assert sexagenary_for_year(year) == ganzhi
    assert element_for_year(year) == element


def test_sexagenary_matches_lunar_python(lunar_python) -> None:
    for year in range(1900, 2101):
        assert sexagenary_for_year(year) == lunar_python.sexagenary(year), year


def test_zodiac_and_element_match_lunar_python(lunar_python) -> None:
    for year in (1949, 2000, 2023, 2024, 2025, 2044):
        assert zodiac_for_year(year) == lunar_python.zodiac(year)
        assert element_for_year(year) == lunar_python.element(year)


def test_lunar_python_calendar_facts(lunar_python) -> None:
    assert lunar_python.lunar_new_year(2025) == "2025-01-29"
    assert lunar_python.li_chun(2025) == "2025-02-03"
    assert lunar_python.year_length(2025) == 384
    assert lunar_python.leap_month(2025) == 6
    assert lunar_python.leap_month(2024) is None
    assert lunar_python.leap_month(2023) == 2


def test_parse_fields_variants() -> None:
    assert parse_fields("all") == frozenset(ALL_FIELDS)
    assert parse_fields("cnyDate, leapMonth") == {Field.CNY_DATE, Field.LEAP_MONTH}
    assert parse_fields({"cnyDate": True, "zodiac": False}) == {Field.CNY_DATE}
    assert parse_fields([Field.ZODIAC, "ganzhi"]) == {Field.ZODIAC, Field.SEXAGENARY}
    with pytest.raises(ValueError):
        parse_fields("cnyDate,moonPhase")


def test_field_ranges() -> None:
    cny = FIELD_RANGES[Field.CNY_DATE]
    assert cny.contains(619) and cny.contains(17190)
    assert not cny.contains(618) and not cny.contains(17191)
    assert FIELD_RANGES[Field.ZODIAC].contains(-5000)
    assert FIELD_RANGES[Field.NEW_MOON_UTC].warns(2051)
    assert not FIELD_RANGES[Field.NEW_MOON_UTC].warns(2050)


def test_year_record_states() -> None:
    record = YearRecord(2025)
    record.set(Field.CNY_DATE, "2025-01-29")
    record.set(Field.LEAP_MONTH, None)

    assert record.has(Field.LEAP_MONTH)
    assert record.get(Field.ZODIAC) is MISSING
    assert record.to_dict() == {"year": 2025, "cny": "2025-01-29", "leapMonth": None}


@pytest.mark.parametrize("field", list(Field))
def test_output_key_is_shared_by_records_and_table(field: Field) -> None:
    record = YearRecord(2025)
    record.set(field, "value")
    (key,) = set(record.to_dict()) - {"year"}

    assert key == field.output_key
    assert key in OUTPUT_COLUMNS
    table = PrecomputedTable([{"year": 2025, key: "value"}])
    assert table.lookup(2025, field) == "value"


def test_lunar_python_year_cache_is_bounded() -> None:
    calendar = LunarPythonCalendar(max_years=3)
    for year in range(2020, 2026):
        calendar.zodiac(year)

    assert list(calendar._lunar) == [2023, 2024, 2025]
    calendar.zodiac(2023)
    calendar.zodiac(2019)
    assert list(calendar._lunar) == [2025, 2023, 2019]
