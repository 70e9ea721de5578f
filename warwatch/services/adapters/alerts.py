"""
Alert-Polling Adapter

Polls the Home Front Command (Pikud HaOref) active-alert endpoint through the
forwarding proxy. Each affected area in an alert payload becomes one active
Alert and one verified, critical air_raid_alert event.
"""

import asyncio
import hashlib
import json
import logging
import uuid
from typing import Any, Dict, List, Set, Tuple

from warwatch.api.schemas import Alert, CanonicalEvent, EventType, ThreatLevel
from warwatch.core.errors import PayloadFormatError
from warwatch.core.metrics import INGESTED_RECORDS
from warwatch.core.timestamps import utc_now_iso
from warwatch.data.gazetteer import lookup_coordinates
from warwatch.services.context import PipelineContext

logger = logging.getLogger(__name__)

AUTHORITY_NAME = "Pikud HaOref"
DEFAULT_THREAT = "Rocket and missile fire"

# Headers the endpoint expects from a browser on oref.org.il; the proxy sets its own
OREF_HEADERS = {
    "Referer": "https://www.oref.org.il/",
    "X-Requested-With": "XMLHttpRequest",
    "Accept": "application/json",
}


def parse_alert_body(body: str) -> List[Dict[str, Any]]:
    """Decode an alert response into a list of payload objects.

    An empty body or ``[]`` means no active alerts.
    """
    text = (body or "").lstrip("\ufeff").strip()
    if not text or text == "[]":
        return []

    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as e:
        raise PayloadFormatError(f"Alert body is not JSON: {e}") from e

    if isinstance(decoded, dict):
        return [decoded]
    if isinstance(decoded, list):
        return decoded
    raise PayloadFormatError(f"Unexpected alert body type: {type(decoded).__name__}")


def _areas(payload: Dict[str, Any]) -> List[str]:
    areas = payload.get("data")
    if isinstance(areas, str):
        areas = [areas]
    if not isinstance(areas, list):
        raise PayloadFormatError("Alert payload has no area list")
    return [str(a).strip() for a in areas if str(a).strip()]


def _stable_id(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:24]


class AlertPollingAdapter:
    name = "oref-alerts"

    def __init__(self, ctx: PipelineContext) -> None:
        self.ctx = ctx
        self.url = ctx.settings.oref_alerts_url

    async def run(self) -> int:
        """One poll cycle; returns the number of events created.

        Alert keys are marked seen only after every write of the cycle has
        succeeded, so a failed cycle is retried in full on the next poll.
        """
        response = await self.ctx.fetch_client.fetch_ok(self.url, headers=OREF_HEADERS)
        payloads = parse_alert_body(response.body)
        if not payloads:
            return 0

        alerts: List[Alert] = []
        events: List[CanonicalEvent] = []
        pending: Set[str] = set()
        malformed = 0
        for payload in payloads:
            try:
                new_alerts, new_events = self._synthesize(payload, pending)
            except PayloadFormatError as e:
                malformed += 1
                logger.warning(f"[{self.name}] Skipping malformed alert payload: {e}")
                continue
            alerts.extend(new_alerts)
            events.extend(new_events)

        if malformed == len(payloads):
            raise PayloadFormatError(f"All {malformed} alert payloads were malformed")

        if alerts:
            written = await asyncio.to_thread(self.ctx.store.insert_alerts_batch, alerts)
            INGESTED_RECORDS.labels(source=self.name, kind="alert").inc(written)

        created = 0
        for event in events:
            # Ids are stable per (id, area); a retried cycle only fills in what is missing
            inserted = await asyncio.to_thread(self.ctx.store.insert_event, event)
            if inserted:
                created += 1
                self.ctx.broadcaster.notify(event)

        for key in pending:
            self.ctx.alert_dedup.mark_seen(key)

        if created:
            INGESTED_RECORDS.labels(source=self.name, kind="event").inc(created)
            logger.info(f"[{self.name}] {len(alerts)} alerts, {created} events ingested")

        return created

    def _synthesize(
        self, payload: Dict[str, Any], pending: Set[str]
    ) -> Tuple[List[Alert], List[CanonicalEvent]]:
        if not isinstance(payload, dict):
            raise PayloadFormatError(f"Alert payload is a {type(payload).__name__}, not an object")

        threat = str(payload.get("title") or DEFAULT_THREAT).strip()
        description = str(payload.get("desc") or threat).strip()
        alert_id = payload.get("id")
        timestamp = utc_now_iso()

        alerts: List[Alert] = []
        events: List[CanonicalEvent] = []
        for area in _areas(payload):
            if alert_id is not None:
                # A still-active alert is re-served on every poll; ingest each (id, area) once
                key = f"oref:{alert_id}:{area}"
                if key in pending or self.ctx.alert_dedup.seen(key):
                    continue
                pending.add(key)
                row_id = _stable_id(key)
                alert_row_id, event_row_id = f"alert-{row_id}", f"evt-{row_id}"
            else:
                alert_row_id, event_row_id = str(uuid.uuid4()), str(uuid.uuid4())

            lat, lng = lookup_coordinates(area)
            alerts.append(Alert(
                id=alert_row_id,
                area=area,
                threat=threat,
                timestamp=timestamp,
                active=True,
                lat=lat,
                lng=lng,
            ))
            events.append(CanonicalEvent(
                id=event_row_id,
                type=EventType.AIR_RAID_ALERT,
                title=f"{threat} - {area}",
                description=description,
                location=area,
                country="Israel",
                lat=lat,
                lng=lng,
                source=AUTHORITY_NAME,
                timestamp=timestamp,
                threat_level=ThreatLevel.CRITICAL,
                verified=True,
            ))
        return alerts, events
