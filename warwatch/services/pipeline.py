"""
Ingestion Pipeline

Wires the shared context (store, dedup cache, health tracker, broadcaster,
fetch client) to the source adapters and the scheduler. One Pipeline exists
per process; the HTTP layer reaches it through ``app.state.pipeline``.
"""

import logging
from typing import List, Optional, Union

import httpx

from warwatch.api.schemas import CanonicalEvent, SourceHealthEntry
from warwatch.core.config import Settings
from warwatch.services.adapters.alerts import AlertPollingAdapter
from warwatch.services.adapters.expiry import AlertExpirySweep
from warwatch.services.adapters.feeds import FeedPollingAdapter
from warwatch.services.adapters.webhook import WebhookAdapter
from warwatch.services.ai_summary import AISummaryStep, SummaryClient
from warwatch.services.broadcaster import EventBroadcaster
from warwatch.services.context import PipelineContext
from warwatch.services.dedup import DedupCache
from warwatch.services.proxy_fetch import ProxyFetchClient
from warwatch.services.scheduler import Scheduler
from warwatch.services.source_health import SourceHealthTracker
from warwatch.services.store import Store

logger = logging.getLogger(__name__)


class Pipeline:
    def __init__(self, ctx: PipelineContext, summary_client: Optional[SummaryClient] = None) -> None:
        self.ctx = ctx
        settings = ctx.settings

        self.alerts = AlertPollingAdapter(ctx)
        self.feeds = FeedPollingAdapter(ctx)
        self.webhook = WebhookAdapter(ctx)
        self.expiry = AlertExpirySweep(ctx)
        if summary_client is not None:
            self.ai_summary = AISummaryStep(ctx.store, summary_client, settings.ai_recent_events, settings.ai_recent_news)
        else:
            self.ai_summary = AISummaryStep.from_settings(settings, ctx.store)

        self.scheduler = Scheduler(ctx.health)
        self.scheduler.register(self.alerts.name, settings.oref_poll_interval_ms, settings.oref_enabled, self.alerts.run)
        self.scheduler.register(self.feeds.name, settings.feed_poll_interval_ms, settings.feeds_enabled, self.feeds.run)
        self.scheduler.register(
            self.ai_summary.name, settings.ai_summary_interval_ms, settings.ai_summary_enabled, self.ai_summary.run
        )
        self.scheduler.register(self.expiry.name, settings.alert_expiry_interval_ms, True, self.expiry.run)

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: Optional[Store] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        summary_client: Optional[SummaryClient] = None,
    ) -> "Pipeline":
        ctx = PipelineContext(
            settings=settings,
            store=store or Store.from_settings(settings),
            fetch_client=ProxyFetchClient.from_settings(settings, client=http_client),
            dedup=DedupCache(settings.dedup_capacity),
            alert_dedup=DedupCache(settings.dedup_capacity),
            health=SourceHealthTracker(),
            broadcaster=EventBroadcaster(settings.subscriber_queue_size),
        )
        return cls(ctx, summary_client=summary_client)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Pipeline":
        return cls.build(settings)

    @property
    def store(self) -> Store:
        return self.ctx.store

    @property
    def broadcaster(self) -> EventBroadcaster:
        return self.ctx.broadcaster

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    def start(self) -> None:
        if self.scheduler.is_running:
            return
        proxy = self.ctx.fetch_client.proxy_base_url or "direct"
        logger.info(f"Starting ingestion pipeline (fetch mode: {proxy})")
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        logger.info("Ingestion pipeline stopped")

    async def close(self) -> None:
        await self.stop()
        await self.ctx.fetch_client.aclose()
        await self.ai_summary.aclose()

    def get_source_health(self) -> List[SourceHealthEntry]:
        return self.ctx.health.snapshot()

    async def run_source(self, name: str) -> bool:
        """Run one scheduled source now; False if no such source exists."""
        return await self.scheduler.trigger(name)

    async def ingest_webhook_payload(self, raw_body: Union[bytes, str], content_type: Optional[str] = None) -> int:
        return await self.webhook.ingest(raw_body, content_type)

    def notify_new_event(self, event: CanonicalEvent) -> int:
        return self.ctx.broadcaster.notify(event)
