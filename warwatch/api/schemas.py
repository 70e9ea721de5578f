from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    MISSILE_LAUNCH = "missile_launch"
    MISSILE_INTERCEPT = "missile_intercept"
    MISSILE_HIT = "missile_hit"
    DRONE_LAUNCH = "drone_launch"
    DRONE_INTERCEPT = "drone_intercept"
    AIR_RAID_ALERT = "air_raid_alert"
    CEASEFIRE = "ceasefire"
    MILITARY_OPERATION = "military_operation"
    EXPLOSION = "explosion"
    SIRENS = "sirens"


class ThreatLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialize with camelCase keys, as the dashboard expects."""
        return self.model_dump(mode="json", by_alias=True)


class CanonicalEvent(_WireModel):
    id: str
    type: EventType
    title: str
    description: str = ""
    location: str
    country: str
    lat: float
    lng: float
    source: str
    timestamp: str  # ISO string; leave as str to avoid coercion issues
    threat_level: ThreatLevel = Field(alias="threatLevel")
    verified: bool = False


class CanonicalNewsItem(_WireModel):
    id: str
    title: str
    source: str
    timestamp: str
    url: Optional[str] = None
    category: str
    breaking: bool = False
    sentiment: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class Alert(_WireModel):
    id: str
    area: str
    threat: str
    timestamp: str
    active: bool = True
    lat: float
    lng: float


class AISummary(_WireModel):
    summary: str
    threat_assessment: ThreatLevel = Field(alias="threatAssessment")
    key_points: List[str] = Field(alias="keyPoints")
    recommendation: str
    last_updated: str = Field(alias="lastUpdated")


class SourceHealthEntry(_WireModel):
    name: str
    enabled: bool
    interval_ms: Optional[int] = Field(default=None, alias="intervalMs")
    status: str
    last_run_at: Optional[str] = Field(default=None, alias="lastRunAt")
    last_success_at: Optional[str] = Field(default=None, alias="lastSuccessAt")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    run_count: int = Field(default=0, alias="runCount")
    error_count: int = Field(default=0, alias="errorCount")


class WebhookIngestResponse(BaseModel):
    ingested: int


class CountryBreakdown(BaseModel):
    launched: int = 0
    intercepted: int = 0
    hits: int = 0


class Statistics(_WireModel):
    """Launch/interception tallies over the events currently retained."""
    total_missiles_launched: int = Field(alias="totalMissilesLaunched")
    total_intercepted: int = Field(alias="totalIntercepted")
    total_hits: int = Field(alias="totalHits")
    total_drones_launched: int = Field(alias="totalDronesLaunched")
    total_drones_intercepted: int = Field(alias="totalDronesIntercepted")
    interception_rate: float = Field(alias="interceptionRate")
    by_country: Dict[str, CountryBreakdown] = Field(default_factory=dict, alias="byCountry")
    active_alerts: int = Field(alias="activeAlerts")
    last_24h_events: int = Field(alias="last24hEvents")
