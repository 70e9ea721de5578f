"""
Dashboard Feed API

Read endpoints backing the map, alert panel, news ticker and summary card.
Records are served newest first with camelCase keys.
"""

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from warwatch.api.deps import get_pipeline
from warwatch.core.errors import not_found_error
from warwatch.services.pipeline import Pipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["feed"])


@router.get("/events")
async def list_events(
    limit: int = Query(100, ge=1, le=500),
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[Dict[str, Any]]:
    events = await asyncio.to_thread(pipeline.store.get_recent_events, limit)
    return [e.to_wire() for e in events]


@router.get("/news")
async def list_news(
    limit: int = Query(100, ge=1, le=500),
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[Dict[str, Any]]:
    items = await asyncio.to_thread(pipeline.store.get_recent_news, limit)
    return [n.to_wire() for n in items]


@router.get("/alerts")
async def list_alerts(
    limit: int = Query(100, ge=1, le=200),
    active: bool = Query(False, description="Only alerts that have not expired"),
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[Dict[str, Any]]:
    alerts = await asyncio.to_thread(pipeline.store.get_recent_alerts, limit, active)
    return [a.to_wire() for a in alerts]


@router.get("/ai-summary")
async def latest_ai_summary(pipeline: Pipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    summary = await asyncio.to_thread(pipeline.store.get_latest_summary)
    if summary is None:
        raise not_found_error("AI summary")
    return summary.to_wire()


@router.get("/statistics")
async def event_statistics(pipeline: Pipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    stats = await asyncio.to_thread(pipeline.store.get_statistics)
    return stats.to_wire()
