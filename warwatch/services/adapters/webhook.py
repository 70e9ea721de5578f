"""
Push Adapter

Receives RSS.app webhook deliveries for the same Telegram feed family the
feed poller reads. Bodies arrive as JSON, as JSON wrapped in text (a
double-encoded string or a text/plain body) or as a form post carrying the
JSON in one field. Items share the poller's Dedup Cache, so an item seen on
either path is ingested once.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs

from warwatch.api.schemas import CanonicalNewsItem
from warwatch.core.errors import PayloadFormatError
from warwatch.core.metrics import INGESTED_RECORDS, SOURCE_RUNS
from warwatch.services.adapters.common import dedup_key, normalize_news_item
from warwatch.services.context import PipelineContext

logger = logging.getLogger(__name__)

FORM_FIELDS = ("payload", "data", "items", "body")
DEFAULT_SOURCE = "Telegram"


def _extract_form_value(text: str) -> str:
    fields = parse_qs(text, keep_blank_values=True)
    for name in FORM_FIELDS:
        if fields.get(name):
            return fields[name][0]
    if len(fields) == 1:
        return next(iter(fields.values()))[0]
    raise PayloadFormatError(f"Form body has no payload field (fields: {sorted(fields)})")


def _loads(text: str) -> Any:
    try:
        decoded = json.loads(text)
        # Text-wrapped JSON: the body is a JSON string holding the real document
        if isinstance(decoded, str):
            decoded = json.loads(decoded)
    except json.JSONDecodeError as e:
        raise PayloadFormatError(f"Webhook body is not JSON: {e}") from e
    return decoded


def _items_from_shape(decoded: Any) -> List[Dict[str, Any]]:
    """Array, then object with an items/data list, then single object."""
    if isinstance(decoded, list):
        candidates = decoded
    elif isinstance(decoded, dict):
        for name in ("items", "data"):
            if isinstance(decoded.get(name), list):
                candidates = decoded[name]
                break
        else:
            candidates = [decoded]
    else:
        raise PayloadFormatError(f"Unsupported webhook payload type: {type(decoded).__name__}")

    items = [c for c in candidates if isinstance(c, dict)]
    skipped = len(candidates) - len(items)
    if skipped:
        logger.warning(f"Skipped {skipped} non-object webhook items")
    return items


def parse_webhook_body(raw: Union[bytes, str], content_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Normalize a raw webhook body of any supported encoding into item dicts."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else (raw or "")
    text = text.lstrip("\ufeff").strip()
    if not text:
        raise PayloadFormatError("Empty webhook body")

    if "application/x-www-form-urlencoded" in (content_type or "").lower():
        # Some senders label a raw JSON body as a form post
        try:
            return _items_from_shape(_loads(text))
        except PayloadFormatError:
            text = _extract_form_value(text).strip()

    return _items_from_shape(_loads(text))


class WebhookAdapter:
    name = "telegram-webhook"

    def __init__(self, ctx: PipelineContext) -> None:
        self.ctx = ctx
        ctx.health.register(self.name, enabled=True, interval_ms=None)

    async def ingest(self, raw: Union[bytes, str], content_type: Optional[str] = None) -> int:
        """Ingest one delivery; returns the number of newly written items.

        Payloads matching no known shape are logged and yield 0. Store
        failures propagate to the caller.
        """
        try:
            raw_items = parse_webhook_body(raw, content_type)
        except PayloadFormatError as e:
            logger.warning(f"[{self.name}] Rejected webhook body: {e}")
            self.ctx.health.record_error(self.name, str(e))
            SOURCE_RUNS.labels(source=self.name, outcome="rejected").inc()
            return 0

        items: List[CanonicalNewsItem] = []
        marked: List[str] = []
        for raw_item in raw_items:
            key = dedup_key(raw_item)
            if not self.ctx.dedup.check_and_mark(key):
                continue
            marked.append(key)
            try:
                items.append(normalize_news_item(raw_item, key, DEFAULT_SOURCE))
            except ValueError as e:
                logger.warning(f"[{self.name}] Skipping item {key!r}: {e}")

        try:
            written = await asyncio.to_thread(self.ctx.store.insert_news_batch, items) if items else 0
        except Exception as e:
            # A redelivery of the failed items must not be dropped as a duplicate
            self.ctx.dedup.discard(marked)
            self.ctx.health.record_error(self.name, str(e))
            SOURCE_RUNS.labels(source=self.name, outcome="error").inc()
            raise

        self.ctx.health.record_success(self.name)
        SOURCE_RUNS.labels(source=self.name, outcome="success").inc()
        if written:
            INGESTED_RECORDS.labels(source=self.name, kind="news").inc(written)
            logger.info(f"[{self.name}] Ingested {written} of {len(raw_items)} pushed items")
        return written
