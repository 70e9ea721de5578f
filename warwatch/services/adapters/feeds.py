"""
Feed-Polling Adapter

Pulls the Telegram/OSINT channels aggregated on RSS.app. The feed list is
fetched first, then the items of every feed; each new item is normalized into
a CanonicalNewsItem and written in one batch per feed.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from warwatch.api.schemas import CanonicalNewsItem
from warwatch.core.errors import PayloadFormatError
from warwatch.core.metrics import INGESTED_RECORDS
from warwatch.services.adapters.common import dedup_key, normalize_news_item
from warwatch.services.context import PipelineContext

logger = logging.getLogger(__name__)


def _decode(body: str, url: str) -> Any:
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise PayloadFormatError(f"{url} returned non-JSON body: {e}") from e


class FeedPollingAdapter:
    name = "telegram-feeds"

    def __init__(self, ctx: PipelineContext) -> None:
        self.ctx = ctx
        self.base_url = ctx.settings.rss_app_base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return self.ctx.settings.feed_credentials is not None

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.ctx.settings.feed_credentials}",
            "Accept": "application/json",
        }

    async def run(self) -> int:
        """One poll cycle; returns the number of news items written."""
        if not self.configured:
            logger.debug(f"[{self.name}] No API credentials configured; skipping")
            return 0

        feeds = await self.list_feeds()
        total = 0
        for feed in feeds:
            feed_id = feed.get("id")
            if not feed_id:
                continue
            try:
                total += await self.poll_feed(str(feed_id), feed.get("title"))
            except Exception as e:
                logger.warning(f"[{self.name}] Feed {feed_id} failed: {e}", exc_info=True)

        if total:
            logger.info(f"[{self.name}] Ingested {total} news items from {len(feeds)} feeds")
        return total

    async def list_feeds(self) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/feeds"
        response = await self.ctx.fetch_client.fetch_ok(url, headers=self._auth_headers(), via_proxy=False)
        decoded = _decode(response.body, url)
        feeds = decoded.get("data") if isinstance(decoded, dict) else decoded
        if not isinstance(feeds, list):
            raise PayloadFormatError(f"{url} returned no feed list")
        return [f for f in feeds if isinstance(f, dict)]

    async def poll_feed(self, feed_id: str, feed_title: Optional[str] = None) -> int:
        url = f"{self.base_url}/feeds/{feed_id}"
        response = await self.ctx.fetch_client.fetch_ok(url, headers=self._auth_headers(), via_proxy=False)
        decoded = _decode(response.body, url)
        if not isinstance(decoded, dict):
            raise PayloadFormatError(f"{url} returned a {type(decoded).__name__}, not a feed")

        source = feed_title or decoded.get("title") or "Telegram"
        items: List[CanonicalNewsItem] = []
        marked: List[str] = []
        for raw in decoded.get("items") or []:
            if not isinstance(raw, dict):
                continue
            key = dedup_key(raw)
            if not self.ctx.dedup.check_and_mark(key):
                continue
            marked.append(key)
            try:
                # Feed title wins over per-item fields for polled items
                items.append(normalize_news_item({**raw, "source": source}, key, source))
            except ValueError as e:
                logger.warning(f"[{self.name}] Skipping item {key!r} in feed {feed_id}: {e}")

        if not items:
            return 0
        try:
            written = await asyncio.to_thread(self.ctx.store.insert_news_batch, items)
        except Exception:
            self.ctx.dedup.discard(marked)
            raise
        INGESTED_RECORDS.labels(source=self.name, kind="news").inc(written)
        return written
