from warwatch.services.source_health import SourceHealthTracker, SourceStatus


def test_registered_source_starts_idle():
    tracker = SourceHealthTracker()
    tracker.register("oref-alerts", enabled=True, interval_ms=5000)

    record = tracker.get("oref-alerts")
    assert record.status == SourceStatus.IDLE
    assert record.run_count == 0


def test_disabled_source_reports_disabled():
    tracker = SourceHealthTracker()
    tracker.register("ai-summary", enabled=False, interval_ms=60000)
    assert tracker.get("ai-summary").status == SourceStatus.DISABLED


def test_counters_track_success_and_error():
    tracker = SourceHealthTracker()
    tracker.register("telegram-feeds", interval_ms=60000)

    tracker.record_error("telegram-feeds", "HTTP 503")
    record = tracker.get("telegram-feeds")
    assert record.status == SourceStatus.ERROR
    assert record.error_count == 1
    assert record.last_error == "HTTP 503"
    assert record.last_success_at is None

    tracker.record_success("telegram-feeds")
    record = tracker.get("telegram-feeds")
    assert record.status == SourceStatus.HEALTHY
    assert record.run_count == 2
    assert record.error_count == 1
    assert record.last_success_at is not None
    # Last error is kept for the operator after recovery
    assert record.last_error == "HTTP 503"


def test_snapshot_uses_camel_case_on_the_wire():
    tracker = SourceHealthTracker()
    tracker.register("telegram-webhook", interval_ms=None)
    tracker.record_success("telegram-webhook")

    (entry,) = tracker.snapshot()
    wire = entry.to_wire()
    assert wire["name"] == "telegram-webhook"
    assert wire["intervalMs"] is None
    assert wire["runCount"] == 1
    assert wire["status"] == "healthy"


def test_get_returns_a_copy():
    tracker = SourceHealthTracker()
    tracker.register("oref-alerts", interval_ms=5000)
    tracker.get("oref-alerts").run_count = 99
    assert tracker.get("oref-alerts").run_count == 0
