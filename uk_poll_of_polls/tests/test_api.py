"""Tests for the UK Poll of Polls API endpoints."""

import json
from datetime import date

import pytest
from fastapi.testclient import TestClient

from uk_poll_of_polls import app as app_module
from uk_poll_of_polls.app import app
from uk_poll_of_polls.config import Settings
from uk_poll_of_polls.errors import FetchError
from uk_poll_of_polls.models import AggregateVector, NormalizedPoll
from uk_poll_of_polls.store import run_store

BASELINE = {
    "generatedAt": "2026-02-01T10:00:00Z",
    "baselineNational": {"Labour": 30, "Conservative": 25, "Reform": 15},
    "wards": [
        {
            "wardCode": "E05000001",
            "wardName": "Central",
            "ladCode": "E07000117",
            "ladName": "Burnley",
            "lastYear": 2024,
            "totalVotes": 2500,
            "nationalShares": {"Labour": 40, "Conservative": 20, "Reform": 10},
            "localShares": {"Burnley Independents": 30},
        },
        {
            "wardCode": "E05000003",
            "wardName": "Cliviger",
            "ladCode": "E07000120",
            "ladName": "Hyndburn",
            "lastYear": 2024,
            "totalVotes": 2100,
            "nationalShares": {"Labour": 25, "Conservative": 45, "Reform": 10},
            "localShares": {"Ind": 20},
        },
    ],
}

POLLS = [
    NormalizedPoll(
        poll_date=date(2026, 3, 10), pollster="YouGov", sample_size=2000,
        labour=20, conservative=18, reform=28, libdem=13, green=11,
    ),
    NormalizedPoll(
        poll_date=date(2026, 3, 16), pollster="Opinium", sample_size=1500,
        labour=21, conservative=17, reform=29, libdem=12, green=10,
    ),
]

AGGREGATE = AggregateVector(
    labour=20.5, conservative=17.5, reform=28.5, libdem=12.5, green=10.5,
    lead_party="Reform", lead_value=8.0,
)


@pytest.fixture(autouse=True)
def _load_run(tmp_path, monkeypatch):
    """Seed the store with one run and point the app at a baseline file."""
    run_store.clear()
    run_store.record_run(date(2026, 3, 20), "https://example.org", POLLS, AGGREGATE)

    path = tmp_path / "ward-baseline.json"
    path.write_text(json.dumps(BASELINE), encoding="utf-8")
    monkeypatch.setattr(app_module, "settings", Settings(baseline_path=str(path)))
    app_module._cached_baseline.cache_clear()
    yield
    run_store.clear()


client = TestClient(app, raise_server_exceptions=False)


class TestRoot:
    def test_root_returns_api_info(self):
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "UK Poll of Polls API"
        assert "endpoints" in data

    def test_docs_available(self):
        resp = client.get("/docs")
        assert resp.status_code == 200


class TestPolls:
    def test_sorted_newest_first(self):
        resp = client.get("/polls")
        assert resp.status_code == 200
        data = resp.json()
        assert [p["pollster"] for p in data] == ["Opinium", "YouGov"]

    def test_poll_has_expected_fields(self):
        poll = client.get("/polls").json()[0]
        for field in ("poll_date", "pollster", "sample_size", "area",
                      "labour", "conservative", "reform", "libdem",
                      "green", "snp", "pc", "others"):
            assert field in poll
        assert poll["snp"] is None

    def test_empty_store(self):
        run_store.clear()
        assert client.get("/polls").json() == []


class TestAggregate:
    def test_latest(self):
        resp = client.get("/aggregate/latest")
        assert resp.status_code == 200
        data = resp.json()
        assert data["aggregate_date"] == "2026-03-20"
        assert data["lead_party"] == "Reform"
        assert data["lead_value"] == 8.0

    def test_series(self):
        run_store.record_run(
            date(2026, 3, 21), "https://example.org", POLLS, AGGREGATE
        )
        data = client.get("/aggregate").json()
        assert [p["aggregate_date"] for p in data] == ["2026-03-21", "2026-03-20"]

    def test_series_limit_validated(self):
        assert client.get("/aggregate?limit=0").status_code == 422

    def test_latest_not_found(self):
        run_store.clear()
        assert client.get("/aggregate/latest").status_code == 404


class TestLocal:
    def test_projections(self):
        resp = client.get("/local/projections")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 2
        for ward in data:
            assert sum(ward["shares"].values()) == pytest.approx(100)
            assert ward["winner"] in ward["shares"]

    def test_projections_filtered_by_lad(self):
        data = client.get("/local/projections?lad=E07000120").json()
        assert [w["ward_name"] for w in data] == ["Cliviger"]

    def test_single_ward(self):
        resp = client.get("/local/projections/E05000001")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ward_name"] == "Central"
        assert data["shares"]["Reform"] == pytest.approx(23.5)

    def test_unknown_ward(self):
        assert client.get("/local/projections/E99999999").status_code == 404

    def test_summary(self):
        data = client.get("/local/summary").json()
        assert {s["lad_name"] for s in data} == {"Burnley", "Hyndburn"}
        assert all(s["ward_count"] == 1 for s in data)

    def test_no_aggregate(self):
        run_store.clear()
        assert client.get("/local/projections").status_code == 404

    def test_no_baseline_configured(self, monkeypatch):
        monkeypatch.setattr(app_module, "settings", Settings())
        assert client.get("/local/projections").status_code == 503

    def test_unreadable_baseline(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            app_module, "settings",
            Settings(baseline_path=str(tmp_path / "missing.json")),
        )
        resp = client.get("/local/summary")
        assert resp.status_code == 503
        assert "missing.json" in resp.json()["detail"]


class TestStatus:
    def test_status_fields(self):
        resp = client.get("/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_runs"] == 1
        assert data["poll_count"] == 2
        assert data["latest_run_date"] == "2026-03-20"
        assert data["latest_run_success"] is True


class TestRefresh:
    def test_manual_refresh(self, monkeypatch):
        def fake_cycle(store, settings):
            return store.record_run(
                date(2026, 3, 22), "https://example.org", POLLS[:1], AGGREGATE
            )

        monkeypatch.setattr(app_module, "run_poll_cycle", fake_cycle)
        resp = client.post("/polls/refresh")
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Refreshed 1 polls"
        assert data["source"] == "https://example.org"

    def test_failed_refresh(self, monkeypatch):
        def failing_cycle(store, settings):
            raise FetchError(settings.source_url, 500, "Server Error")

        monkeypatch.setattr(app_module, "run_poll_cycle", failing_cycle)
        resp = client.post("/polls/refresh")
        assert resp.status_code == 502
