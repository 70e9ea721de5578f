"""
Source Monitoring API

Operator view of the ingestion sources: per-source health counters, an
on-demand run trigger and the in-memory recent log buffer.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from warwatch.api.deps import get_pipeline
from warwatch.core.errors import not_found_error
from warwatch.core.logging_config import recent_logs
from warwatch.services.pipeline import Pipeline
from warwatch.core.timestamps import utc_now_iso

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["monitoring"])


@router.get("/data-sources")
def list_data_sources(pipeline: Pipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    return {
        "running": pipeline.is_running,
        "sources": [entry.to_wire() for entry in pipeline.get_source_health()],
        "retrieved_at": utc_now_iso(),
    }


@router.post("/data-sources/{name}/run")
async def run_data_source(name: str, pipeline: Pipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    """Run one scheduled source now. Failures land in its health record, not the response."""
    if not await pipeline.run_source(name):
        raise not_found_error("Data source", name)

    record = pipeline.ctx.health.get(name)
    logger.info(f"Manual run of {name} requested")
    return {
        "name": name,
        "status": record.status.value if record else "unknown",
        "lastError": record.last_error if record and record.last_run_failed else None,
        "ran_at": utc_now_iso(),
    }


@router.get("/logs")
def list_recent_logs(
    level: Optional[str] = Query(None, description="debug, info, warn or error"),
    source: Optional[str] = Query(None, description="Logger name prefix, e.g. warwatch.services"),
    limit: int = Query(100, ge=1, le=500),
) -> List[Dict[str, Any]]:
    return recent_logs.recent(level=level, source=source, limit=limit)
