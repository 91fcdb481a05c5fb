from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from audit_core.errors import FetchError
from audit_core.refresh import RefreshController
from audit_core.settings import Settings


@pytest.fixture()
def controller(sample_matrix):
    ctrl = RefreshController(lambda: sample_matrix)
    ctrl.refresh()
    return ctrl


@pytest.fixture()
def client(controller):
    app = create_app(controller, settings=Settings(), auto_refresh=False)
    with TestClient(app) as c:
        yield c


def test_meta_options(client):
    resp = client.get("/meta/options")
    assert resp.status_code == 200
    body = resp.json()
    assert body["locations"] == ["Alpha", "Beta", "Gamma"]
    assert body["statuses"] == ["On-Track", "Off-Track", "Other"]
    assert body["headers"][0] == "OFFICE"


def test_overview_unfiltered(client):
    body = client.post("/overview", json={}).json()
    assert body["filtered_records"] == 5
    assert body["source_records"] == 5
    assert body["kpis"]["on_track_rate"] == 40.0
    assert body["kpis"]["on_track_band"] == "danger"
    assert body["kpis"]["on_track_label"] == "Needs Work"
    assert body["kpis"]["average_rating"] == 7.5
    assert body["snapshot"]["monthly_trend"][0]["label"] == "Jan 2024"
    assert body["snapshot"]["status_breakdown"][0]["status"] == "On-Track"
    assert set(body["charts"]) == {"location_distribution", "status", "location_status", "monthly_trend"}
    assert body["active_filters"] == []


def test_overview_with_filters(client):
    body = client.post("/overview", json={"locations": ["Alpha"], "status": "On-Track"}).json()
    assert body["filtered_records"] == 1
    assert body["kpis"]["on_track_rate"] == 100.0
    assert body["active_filters"] == ["Office: Alpha", "Status: On-Track"]


def test_overview_with_no_matches_is_not_an_error(client):
    resp = client.post("/overview", json={"locations": ["Nowhere"]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["kpis"]["total_records"] == 0
    assert body["charts"] == {}


def test_table_page(client):
    resp = client.post(
        "/table",
        json={"view": {"sort_column": 7, "sort_direction": "desc", "visible_columns": [0, 7], "page_size": 2}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_rows"] == 5
    assert body["total_pages"] == 3
    assert body["headers"] == ["OFFICE", "CONCLUDE"]
    assert body["page_rows"] == [["Gamma", "11"], ["Beta", "9"]]
    assert body["page_window"] == [1, 2, 3]


def test_export_csv(client):
    resp = client.post("/export", json={"filters": {"status": "Off-Track"}, "view": {"visible_columns": [0, 4]}})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "wam_filtered_data_" in resp.headers["content-disposition"]
    assert resp.text.splitlines() == ['"OFFICE","ROCK REVIEW"', '"Alpha","Off Track"', '"Beta","off-track"']


def test_location_detail(client):
    body = client.get("/locations/Beta").json()
    assert body["total_records"] == 2
    assert body["headers"][1] == "PERSONNEL NAME"


def test_debug(client):
    body = client.get("/debug").json()
    assert body["row_counts"] == {"raw_rows": 10, "body_rows": 8, "classified_rows": 5}
    assert body["schema"]["columns"]["person"] == {"index": 1, "header": "PERSONNEL NAME"}
    assert body["cleaning_checks"]["excluded_rows"] == 3
    assert body["rows_without_date"] == 1


def test_refresh_endpoint(client):
    body = client.post("/refresh").json()
    assert body == {"status": "completed", "sync_status": "success", "records": 5, "error": None}


def test_no_data_returns_503():
    def loader():
        raise FetchError("No data found in the specified sheet range", source="sheets")

    app = create_app(RefreshController(loader), settings=Settings(), auto_refresh=False)
    with TestClient(app) as c:
        resp = c.post("/overview", json={})
        assert resp.status_code == 503
        assert resp.json()["sync_status"] == "error"
        refreshed = c.post("/refresh").json()
        assert refreshed["status"] == "failed"
        assert "No data found" in refreshed["error"]


def test_startup_refresh_runs_outside_the_event_loop(sample_matrix):
    seen = {}

    def loader():
        try:
            asyncio.get_running_loop()
            seen["in_loop"] = True
        except RuntimeError:
            seen["in_loop"] = False
        return sample_matrix

    controller = RefreshController(loader)
    app = create_app(controller, settings=Settings(), auto_refresh=False)
    with TestClient(app) as c:
        assert c.get("/meta/options").status_code == 200
    assert seen == {"in_loop": False}
