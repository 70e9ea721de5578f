from dataclasses import dataclass, field

from warwatch.core.config import Settings
from warwatch.services.broadcaster import EventBroadcaster
from warwatch.services.dedup import DedupCache
from warwatch.services.proxy_fetch import ProxyFetchClient
from warwatch.services.source_health import SourceHealthTracker
from warwatch.services.store import Store


@dataclass
class PipelineContext:
    """State shared by every adapter of one running pipeline."""
    settings: Settings
    store: Store
    fetch_client: ProxyFetchClient
    dedup: DedupCache = field(default_factory=DedupCache)
    # (alert id, area) keys; kept apart from the feed cache
    alert_dedup: DedupCache = field(default_factory=DedupCache)
    health: SourceHealthTracker = field(default_factory=SourceHealthTracker)
    broadcaster: EventBroadcaster = field(default_factory=EventBroadcaster)
