import json
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from warwatch.api.schemas import AISummary, ThreatLevel
from warwatch.main import create_app
from warwatch.services.pipeline import Pipeline

from conftest import OREF_URL, make_settings

ALERT_BODY = json.dumps({"id": "501", "title": "ירי רקטות וטילים", "data": ["תל אביב", "חיפה"]})
PUSHED = {"guid": "tg-77", "title": "Urgent: drone launched from Yemen", "link": "https://t.me/c/77"}


@pytest.fixture
def pipeline(store, http_client):
    return Pipeline.build(make_settings(), store=store, http_client=http_client)


@pytest.fixture
def client(pipeline):
    app = create_app(settings=make_settings(), pipeline=pipeline, autostart=False)
    with TestClient(app) as test_client:
        yield test_client


def test_feed_endpoints_start_empty(client):
    for path in ("/api/events", "/api/news", "/api/alerts"):
        resp = client.get(path)
        assert resp.status_code == 200
        assert resp.json() == []


def test_ai_summary_404_until_one_exists(client, store):
    resp = client.get("/api/ai-summary")
    assert resp.status_code == 404
    assert resp.json()["code"] == "RESOURCE_NOT_FOUND"

    store.insert_ai_summary(AISummary(
        summary="Quiet",
        threat_assessment=ThreatLevel.LOW,
        key_points=["No launches"],
        recommendation="Follow Home Front Command guidance",
        last_updated="2024-10-01T00:00:00.000Z",
    ))
    data = client.get("/api/ai-summary").json()
    for key in ["summary", "threatAssessment", "keyPoints", "recommendation", "lastUpdated"]:
        assert key in data


def test_webhook_json_contract(client):
    resp = client.post("/api/webhooks/telegram", json={"items": [PUSHED]})
    assert resp.status_code == 200
    assert resp.json() == {"ingested": 1}

    (item,) = client.get("/api/news").json()
    for key in ["id", "title", "source", "timestamp", "url", "category", "breaking"]:
        assert key in item
    assert item["breaking"] is True
    assert item["category"] == "telegram"


def test_webhook_form_body(client):
    resp = client.post(
        "/api/webhooks/telegram",
        content=urlencode({"payload": json.dumps([PUSHED])}),
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert resp.json() == {"ingested": 1}


def test_webhook_unrecognized_body_ingests_nothing(client):
    resp = client.post("/api/webhooks/telegram", content="hello", headers={"content-type": "text/plain"})
    assert resp.status_code == 200
    assert resp.json() == {"ingested": 0}


def test_webhook_store_failure_is_500_with_message(client, store, monkeypatch):
    def broken(items):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(store, "insert_news_batch", broken)
    resp = client.post("/api/webhooks/telegram", json=[PUSHED])

    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "INGESTION_ERROR"
    assert "database is locked" in body["message"]


def test_manual_run_creates_alerts_and_events(client, upstream):
    upstream.respond(OREF_URL, ALERT_BODY)

    resp = client.post("/api/admin/data-sources/oref-alerts/run")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"

    alerts = client.get("/api/alerts", params={"active": "true"}).json()
    assert len(alerts) == 2
    events = client.get("/api/events").json()
    assert len(events) == 2
    for key in ["id", "type", "title", "location", "country", "lat", "lng", "source", "timestamp", "threatLevel", "verified"]:
        assert key in events[0]
    assert {e["threatLevel"] for e in events} == {"critical"}


def test_manual_run_failure_is_reported_in_health(client, upstream):
    upstream.respond(OREF_URL, "blocked", status=403, content_type="text/plain")

    resp = client.post("/api/admin/data-sources/oref-alerts/run")
    assert resp.status_code == 200
    assert resp.json()["status"] == "error"
    assert "403" in resp.json()["lastError"]

    sources = {s["name"]: s for s in client.get("/api/admin/data-sources").json()["sources"]}
    assert sources["oref-alerts"]["errorCount"] == 1


def test_unknown_source_run_is_404(client):
    assert client.post("/api/admin/data-sources/nope/run").status_code == 404


def test_data_sources_contract(client):
    data = client.get("/api/admin/data-sources").json()
    assert data["running"] is False
    names = {s["name"] for s in data["sources"]}
    assert {"oref-alerts", "telegram-feeds", "telegram-webhook", "ai-summary", "alert-expiry"} <= names
    for source in data["sources"]:
        for key in ["name", "enabled", "intervalMs", "status", "lastRunAt", "lastSuccessAt", "lastError", "runCount", "errorCount"]:
            assert key in source


def test_recent_logs_endpoint(client, upstream):
    upstream.respond(OREF_URL, ALERT_BODY)
    client.post("/api/admin/data-sources/oref-alerts/run")

    entries = client.get("/api/admin/logs", params={"source": "warwatch.services.adapters", "level": "info"}).json()
    assert any("events ingested" in e["message"] for e in entries)
    assert all(e["level"] == "info" for e in entries)


def test_metrics_endpoint(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "warwatch_source_runs_total" in resp.text


def test_websocket_receives_new_events(client, upstream):
    upstream.respond(OREF_URL, ALERT_BODY)

    with client.websocket_connect("/ws") as ws:
        client.post("/api/admin/data-sources/oref-alerts/run")
        first = ws.receive_json()
        second = ws.receive_json()

    assert first["type"] == "new_event"
    assert {first["event"]["location"], second["event"]["location"]} == {"תל אביב", "חיפה"}
    assert first["event"]["threatLevel"] == "critical"


def test_statistics_contract(client, upstream):
    upstream.respond(OREF_URL, ALERT_BODY)
    client.post("/api/admin/data-sources/oref-alerts/run")

    data = client.get("/api/statistics").json()
    for key in [
        "totalMissilesLaunched",
        "totalIntercepted",
        "totalHits",
        "totalDronesLaunched",
        "totalDronesIntercepted",
        "interceptionRate",
        "byCountry",
        "activeAlerts",
        "last24hEvents",
    ]:
        assert key in data
    assert data["activeAlerts"] == 2
    assert data["last24hEvents"] == 2
    assert data["totalMissilesLaunched"] == 0


def test_error_body_carries_request_id_header(client):
    resp = client.get("/api/ai-summary", headers={"X-Request-ID": "req-4242"})
    assert resp.status_code == 404
    assert resp.json()["request_id"] == "req-4242"
    assert resp.headers["X-Request-ID"] == "req-4242"


def test_webhook_json_body_with_form_content_type(client):
    resp = client.post(
        "/api/webhooks/telegram",
        content=json.dumps({"items": [PUSHED]}),
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert resp.json() == {"ingested": 1}
