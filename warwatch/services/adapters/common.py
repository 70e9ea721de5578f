"""Normalization rules shared by the feed-polling and webhook adapters."""

import hashlib
import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

from warwatch.api.schemas import CanonicalNewsItem
from warwatch.core.timestamps import to_utc_iso, utc_now_iso

logger = logging.getLogger(__name__)

TELEGRAM_CATEGORY = "telegram"

BREAKING_KEYWORDS = [
    "breaking",
    "urgent",
    "just in",
    "flash",
    "דחוף",
    "מבזק",
    "عاجل",
    "срочно",
]

_ID_FIELDS = ("id", "guid")
_URL_FIELDS = ("url", "link")
_TIME_FIELDS = ("date_published", "pubDate", "published", "timestamp", "date")


def _first(item: Dict[str, Any], fields) -> Optional[str]:
    for name in fields:
        value = item.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def dedup_key(item: Dict[str, Any]) -> Optional[str]:
    """Explicit id/guid, then URL, then title; None if the item has none."""
    return _first(item, _ID_FIELDS) or _first(item, _URL_FIELDS) or _first(item, ("title",))


def is_breaking(title: str) -> bool:
    text = (title or "").casefold()
    return any(keyword.casefold() in text for keyword in BREAKING_KEYWORDS)


def news_id_for(key: str) -> str:
    """Stable row id for a dedup key, so a re-ingest after restart is a no-op insert."""
    return hashlib.sha256(key.encode("utf-8", errors="ignore")).hexdigest()[:24]



def normalize_timestamp(value: Any) -> str:
    """ISO-8601 or RFC-822 input to UTC ISO; anything unparseable becomes now."""
    if isinstance(value, datetime):
        return to_utc_iso(value)
    if value:
        text = str(value).strip()
        try:
            return to_utc_iso(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        try:
            return to_utc_iso(parsedate_to_datetime(text))
        except (TypeError, ValueError, IndexError):
            logger.debug(f"Unparseable timestamp {text!r}; using now")
    return utc_now_iso()


def normalize_news_item(item: Dict[str, Any], key: str, default_source: str) -> CanonicalNewsItem:
    """Build the canonical news record for a raw feed/webhook item."""
    title = _first(item, ("title",)) or _first(item, ("description_text", "text", "content")) or ""
    if not title:
        raise ValueError("item has no title")

    source = _first(item, ("source", "feed_title", "channel")) or default_source

    return CanonicalNewsItem(
        id=news_id_for(key),
        title=title,
        source=source,
        timestamp=normalize_timestamp(_first(item, _TIME_FIELDS)),
        url=_first(item, _URL_FIELDS),
        category=TELEGRAM_CATEGORY,
        breaking=is_breaking(title),
    )
