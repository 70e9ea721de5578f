from warwatch.api.schemas import AISummary, Alert, CanonicalEvent, CanonicalNewsItem, EventType, ThreatLevel
from warwatch.db import create_store_engine
from warwatch.services.store import Store


def _ts(i: int) -> str:
    # Strictly increasing UTC ISO timestamps, one second apart
    return f"2024-10-01T{i // 3600:02d}:{(i // 60) % 60:02d}:{i % 60:02d}.000Z"


def _event(i: int) -> CanonicalEvent:
    return CanonicalEvent(
        id=f"evt-{i}",
        type=EventType.MISSILE_LAUNCH,
        title=f"Launch {i}",
        location="Tel Aviv",
        country="Israel",
        lat=32.0853,
        lng=34.7818,
        source="test",
        timestamp=_ts(i),
        threat_level=ThreatLevel.HIGH,
    )


def _news(i: int) -> CanonicalNewsItem:
    return CanonicalNewsItem(id=f"news-{i}", title=f"Headline {i}", source="Channel", timestamp=_ts(i), category="telegram")


def test_insert_event_is_idempotent(store):
    assert store.insert_event(_event(1)) is True
    assert store.insert_event(_event(1)) is False
    assert store.count("events") == 1


def test_batch_insert_reports_only_new_rows(store):
    assert store.insert_news_batch([_news(1), _news(2)]) == 2
    assert store.insert_news_batch([_news(2), _news(3)]) == 1
    assert store.count("news") == 3


def test_event_retention_evicts_oldest_timestamp():
    """Writing the 501st event evicts exactly the oldest one."""
    store = Store(create_store_engine("sqlite://"), max_events=500)
    store.insert_events_batch([_event(i) for i in range(500)])
    assert store.count("events") == 500

    store.insert_event(_event(500))

    assert store.count("events") == 500
    ids = {e.id for e in store.get_recent_events(500)}
    assert "evt-0" not in ids
    assert "evt-1" in ids and "evt-500" in ids


def test_news_retention_cap_is_configurable():
    store = Store(create_store_engine("sqlite://"), max_news=3)
    store.insert_news_batch([_news(i) for i in range(5)])
    assert [n.id for n in store.get_recent_news(10)] == ["news-4", "news-3", "news-2"]


def test_recent_reads_are_newest_first(store):
    store.insert_events_batch([_event(3), _event(1), _event(2)])
    assert [e.id for e in store.get_recent_events(2)] == ["evt-3", "evt-2"]


def test_event_round_trips_wire_fields(store):
    store.insert_event(_event(7))
    (event,) = store.get_recent_events(1)
    wire = event.to_wire()
    assert wire["threatLevel"] == "high"
    assert wire["type"] == "missile_launch"
    assert wire["verified"] is False


def test_latest_summary_is_last_appended(store):
    assert store.get_latest_summary() is None
    for level in (ThreatLevel.LOW, ThreatLevel.CRITICAL):
        store.insert_ai_summary(AISummary(
            summary=f"{level.value} day",
            threat_assessment=level,
            key_points=["one", "two"],
            recommendation="Stay near shelters",
            last_updated=_ts(1),
        ))

    latest = store.get_latest_summary()
    assert latest.threat_assessment == ThreatLevel.CRITICAL
    assert latest.key_points == ["one", "two"]
    assert store.count("summaries") == 2


def test_expire_alerts_marks_only_older_alerts_inactive(store):
    store.insert_alerts_batch([
        Alert(id="old", area="חיפה", threat="Rockets", timestamp=_ts(10), lat=32.79, lng=34.99),
        Alert(id="new", area="חיפה", threat="Rockets", timestamp=_ts(100), lat=32.79, lng=34.99),
    ])

    assert store.expire_alerts(_ts(50)) == 1
    assert [a.id for a in store.get_recent_alerts(10, active_only=True)] == ["new"]
    # Already-inactive alerts are not counted again
    assert store.expire_alerts(_ts(50)) == 0


def test_statistics_tally_launches_interceptions_and_hits(store):
    def typed(i: int, event_type: EventType, country: str) -> CanonicalEvent:
        return _event(i).model_copy(update={"type": event_type, "country": country})

    store.insert_events_batch([
        typed(1, EventType.MISSILE_LAUNCH, "Iran"),
        typed(2, EventType.MISSILE_LAUNCH, "Iran"),
        typed(3, EventType.MISSILE_INTERCEPT, "Iran"),
        typed(4, EventType.MISSILE_HIT, "Iran"),
        typed(5, EventType.DRONE_LAUNCH, "Yemen"),
        typed(6, EventType.DRONE_INTERCEPT, "Yemen"),
        typed(7, EventType.AIR_RAID_ALERT, "Israel"),
    ])
    store.insert_alerts_batch([
        Alert(id="a1", area="Sderot", threat="Rockets", timestamp=_ts(7), lat=31.52, lng=34.59),
    ])

    stats = store.get_statistics(since=_ts(5))
    assert stats.total_missiles_launched == 2
    assert stats.total_intercepted == 1
    assert stats.total_hits == 1
    assert stats.total_drones_launched == 1
    assert stats.total_drones_intercepted == 1
    # 2 interceptions out of 3 launches
    assert stats.interception_rate == 66.7
    assert stats.by_country["Iran"].launched == 2
    assert stats.by_country["Iran"].hits == 1
    assert stats.by_country["Yemen"].intercepted == 1
    assert "Israel" not in stats.by_country
    assert stats.active_alerts == 1
    assert stats.last_24h_events == 3


def test_statistics_on_empty_store(store):
    stats = store.get_statistics()
    assert stats.interception_rate == 0.0
    assert stats.by_country == {}
    assert stats.last_24h_events == 0
