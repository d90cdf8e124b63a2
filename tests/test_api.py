from __future__ import annotations

import os
from typing import Iterator

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="module")
def api_client() -> Iterator[TestClient]:
    previous = {key: os.environ.get(key) for key in ("LUNISOLAR_EPHEMERIS", "LUNISOLAR_OFFLINE", "LUNISOLAR_TABLE")}
    os.environ["LUNISOLAR_EPHEMERIS"] = "analytic"
    os.environ["LUNISOLAR_OFFLINE"] = "1"
    os.environ.pop("LUNISOLAR_TABLE", None)

    from calendar_api import app

    with TestClient(app) as client:
        yield client

    for key, value in previous.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


def test_health_endpoint(api_client: TestClient) -> None:
    response = api_client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["ephemeris"] == "analytic"
    assert payload["offline_fallback"] is True
    assert payload["table_years"] == 0


def test_calendar_endpoint(api_client: TestClient) -> None:
    response = api_client.get("/calendar", params={"start": 2025, "end": 2025, "fields": "cnyDate,leapMonth,ganzhi"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["source"] == "analytic"
    assert payload["used_fallback"] is False
    assert payload["data"] == [{"year": 2025, "cny": "2025-01-29", "leapMonth": 6, "ganzhi": "乙巳"}]


def test_partial_coverage(api_client: TestClient) -> None:
    response = api_client.get("/calendar", params={"start": 100, "end": 100, "fields": "cnyDate", "partial": "true"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["data"] == [{"year": 100, "cny": None}]
    assert payload["used_fallback"] is True
    assert payload["exceeds_coverage"] is True


@pytest.mark.parametrize(
    "params",
    [
        {"start": 2026, "end": 2025},
        {"start": 2025, "end": 2025, "fields": "moonPhase"},
        {"start": "abc", "end": 2025},
        {"start": 1000, "end": 9000},
    ],
)
def test_validation_error(api_client: TestClient, params) -> None:
    response = api_client.get("/calendar", params=params)
    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "validation_error"
    assert payload["ok"] is False


def test_calendar_unavailable(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    import calendar_api

    monkeypatch.setattr(calendar_api, "EPHEMERIS", None)
    monkeypatch.setattr(calendar_api, "SECONDARY", None)

    response = api_client.get("/calendar", params={"start": 2025, "end": 2025, "fields": "cnyDate"})
    assert response.status_code == 503
    payload = response.json()
    assert payload == {"ok": False, "code": "calendar_unavailable", "error": payload["error"]}
