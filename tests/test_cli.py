from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest
import yaml

import lunisolar_calendar
from lunisolar.ephemeris import EphemerisAcquisitionError


@pytest.mark.parametrize(
    "arg, expected",
    [("2025", (2025, 2025)), ("1900-2100", (1900, 2100)), ("1900..1910", (1900, 1910)), ("-100--50", (-100, -50))],
)
def test_parse_year_range(arg: str, expected) -> None:
    assert lunisolar_calendar.parse_year_range(arg) == expected


@pytest.mark.parametrize("arg", ["", "abc", "2025-2020", "2025,2026"])
def test_parse_year_range_rejects(arg: str) -> None:
    with pytest.raises(ValueError):
        lunisolar_calendar.parse_year_range(arg)


def test_json_output(tmp_path: Path) -> None:
    output = tmp_path / "calendar.json"

    code = lunisolar_calendar.main(
        ["2024-2025", "--ephemeris", "analytic", "--fields", "cnyDate,yearLength", "--output", str(output)]
    )

    assert code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["data"] == [
        {"year": 2024, "cny": "2024-02-10", "yearLength": 354},
        {"year": 2025, "cny": "2025-01-29", "yearLength": 384},
    ]
    assert payload["usedFallback"] is False
    assert payload["source"] == "analytic"


def test_csv_output_with_partial_coverage(capsys: pytest.CaptureFixture) -> None:
    code = lunisolar_calendar.main(["99-100", "--fields", "cnyDate,zodiac", "--format", "csv", "--partial", "--no-offline"])

    assert code == 0
    captured = capsys.readouterr()
    rows = list(csv.reader(captured.out.splitlines()))
    assert rows == [["year", "cny", "zodiac"], ["99", "null", "Pig"], ["100", "null", "Rat"]]
    assert "reduced precision" in captured.err


def test_unavailable_data_exits_with_error(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    def unavailable(value=None, **kwargs):
        raise EphemerisAcquisitionError("kernel download failed")

    monkeypatch.setattr(lunisolar_calendar, "resolve_ephemeris_provider", unavailable)

    code = lunisolar_calendar.main(["2025", "--fields", "cnyDate", "--no-offline"])

    assert code == 2
    assert "error:" in capsys.readouterr().err


def test_invalid_fields_exit_via_parser() -> None:
    with pytest.raises(SystemExit) as excinfo:
        lunisolar_calendar.main(["2025", "--fields", "moonPhase"])
    assert excinfo.value.code == 2


def test_yaml_output(capsys: pytest.CaptureFixture) -> None:
    code = lunisolar_calendar.main(["2024-2025", "--fields", "zodiac,ganzhi", "--format", "yaml", "--no-offline"])

    assert code == 0
    payload = yaml.safe_load(capsys.readouterr().out)
    assert payload["data"] == [
        {"year": 2024, "zodiac": "Dragon", "ganzhi": "甲辰"},
        {"year": 2025, "zodiac": "Snake", "ganzhi": "乙巳"},
    ]
    assert payload["usedFallback"] is False


def test_markdown_output(capsys: pytest.CaptureFixture) -> None:
    code = lunisolar_calendar.main(["99-100", "--fields", "cnyDate,zodiac", "--format", "md", "--partial", "--no-offline"])

    assert code == 0
    assert capsys.readouterr().out.splitlines() == [
        "| year | cny | zodiac |",
        "|---|---|---|",
        "| 99 | null | Pig |",
        "| 100 | null | Rat |",
    ]


def test_sql_output(capsys: pytest.CaptureFixture) -> None:
    code = lunisolar_calendar.main(["99-100", "--fields", "cnyDate,zodiac", "--format", "sql", "--partial", "--no-offline"])

    assert code == 0
    out = capsys.readouterr().out
    assert out.startswith('CREATE TABLE IF NOT EXISTS lunisolar_calendar (\n  "year" INTEGER PRIMARY KEY,')
    assert '  "cny" TEXT,\n  "zodiac" TEXT\n);' in out
    assert out.splitlines()[-2:] == [
        'INSERT INTO lunisolar_calendar ("year", "cny", "zodiac") VALUES (99, NULL, \'Pig\');',
        'INSERT INTO lunisolar_calendar ("year", "cny", "zodiac") VALUES (100, NULL, \'Rat\');',
    ]


@pytest.mark.parametrize(
    "value, expected",
    [(None, "NULL"), (True, "TRUE"), (384, "384"), ("2025-01-29", "'2025-01-29'"), ("it's", "'it''s'")],
)
def test_sql_literals(value, expected: str) -> None:
    assert lunisolar_calendar._sql_literal(value) == expected
