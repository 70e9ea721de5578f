import json

import httpx
import pytest

from warwatch.core.errors import SourceFetchError
from warwatch.services.adapters.feeds import FeedPollingAdapter
from warwatch.services.context import PipelineContext
from warwatch.services.proxy_fetch import ProxyFetchClient

from conftest import RSS_BASE, make_settings

FEEDS_URL = f"{RSS_BASE}/feeds"


def _feed(items):
    return json.dumps({"id": "f1", "title": "Channel One", "items": items})


def _item(guid, title="Interceptions over the north", **extra):
    return {"id": guid, "title": title, "url": f"https://t.me/c/{guid}", "date_published": "2024-10-01T18:30:00Z", **extra}


@pytest.mark.asyncio
async def test_no_credentials_is_a_silent_no_op(store, upstream, http_client):
    settings = make_settings(rss_app_api_key=None, rss_app_api_secret=None)
    ctx = PipelineContext(settings=settings, store=store, fetch_client=ProxyFetchClient.from_settings(settings, client=http_client))

    assert await FeedPollingAdapter(ctx).run() == 0
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_items_are_normalized_as_telegram_news(ctx, upstream):
    upstream.respond(FEEDS_URL, json.dumps({"data": [{"id": "f1", "title": "Channel One"}]}))
    upstream.respond(f"{FEEDS_URL}/f1", _feed([_item("g1"), _item("g2", title="BREAKING: sirens in Haifa")]))

    assert await FeedPollingAdapter(ctx).run() == 2

    news = {n.title: n for n in ctx.store.get_recent_news(10)}
    plain = news["Interceptions over the north"]
    assert plain.category == "telegram"
    assert plain.source == "Channel One"
    assert plain.breaking is False
    assert plain.timestamp == "2024-10-01T18:30:00.000Z"
    assert plain.url == "https://t.me/c/g1"
    assert news["BREAKING: sirens in Haifa"].breaking is True


@pytest.mark.asyncio
async def test_requests_are_direct_with_key_secret_bearer(ctx, upstream):
    upstream.respond(FEEDS_URL, json.dumps({"data": []}))
    await FeedPollingAdapter(ctx).run()

    sent = upstream.requests[-1]
    assert str(sent.url) == FEEDS_URL
    assert sent.headers["authorization"] == "Bearer key:secret"


@pytest.mark.asyncio
async def test_same_guid_twice_is_written_once(ctx, upstream):
    upstream.respond(FEEDS_URL, json.dumps({"data": [{"id": "f1", "title": "Channel One"}]}))
    upstream.respond(f"{FEEDS_URL}/f1", _feed([_item("g1")]))
    adapter = FeedPollingAdapter(ctx)

    assert await adapter.run() == 1
    assert await adapter.run() == 0
    assert ctx.store.count("news") == 1


@pytest.mark.asyncio
async def test_failing_feed_does_not_stop_the_others(ctx, upstream):
    upstream.respond(FEEDS_URL, json.dumps({"data": [{"id": "bad", "title": "Down"}, {"id": "f1", "title": "Channel One"}]}))
    upstream.fail(f"{FEEDS_URL}/bad", httpx.ConnectError("refused"))
    upstream.respond(f"{FEEDS_URL}/f1", _feed([_item("g1")]))

    assert await FeedPollingAdapter(ctx).run() == 1


@pytest.mark.asyncio
async def test_feed_list_failure_fails_the_run(ctx, upstream):
    upstream.respond(FEEDS_URL, "unauthorized", status=401, content_type="text/plain")
    with pytest.raises(SourceFetchError):
        await FeedPollingAdapter(ctx).run()


@pytest.mark.asyncio
async def test_dedup_key_falls_back_to_url_then_title(ctx, upstream):
    items = [
        {"title": "Same story", "url": "https://t.me/c/1"},
        {"title": "Same story, other link", "link": "https://t.me/c/1"},
        {"title": "Untitled report"},
        {"title": "Untitled report"},
    ]
    upstream.respond(FEEDS_URL, json.dumps({"data": [{"id": "f1", "title": "Channel One"}]}))
    upstream.respond(f"{FEEDS_URL}/f1", _feed(items))

    assert await FeedPollingAdapter(ctx).run() == 2


@pytest.mark.asyncio
async def test_store_failure_on_one_feed_is_isolated_and_retried(ctx, upstream, monkeypatch):
    upstream.respond(FEEDS_URL, json.dumps({"data": [{"id": "f1", "title": "Channel One"}, {"id": "f2", "title": "Channel Two"}]}))
    upstream.respond(f"{FEEDS_URL}/f1", _feed([_item("g1"), _item("g2", title="Sirens in Haifa")]))
    upstream.respond(f"{FEEDS_URL}/f2", _feed([_item("g3", title="Drone over Eilat")]))
    original = ctx.store.insert_news_batch
    calls = []

    def fail_first(items):
        calls.append(len(items))
        if len(calls) == 1:
            raise RuntimeError("database is locked")
        return original(items)

    monkeypatch.setattr(ctx.store, "insert_news_batch", fail_first)
    adapter = FeedPollingAdapter(ctx)

    assert await adapter.run() == 1
    assert upstream.hits(f"{FEEDS_URL}/f2") == 1
    assert [n.title for n in ctx.store.get_recent_news(10)] == ["Drone over Eilat"]

    # The failed feed's items were not consumed by the dedup cache
    assert await adapter.run() == 2
    assert ctx.store.count("news") == 3
