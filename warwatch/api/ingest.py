import logging

from fastapi import APIRouter, Depends, Request

from warwatch.api.deps import get_pipeline
from warwatch.api.schemas import WebhookIngestResponse
from warwatch.core.errors import ingestion_error
from warwatch.services.pipeline import Pipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhooks", tags=["ingest"])


@router.post("/telegram", response_model=WebhookIngestResponse)
async def telegram_webhook(request: Request, pipeline: Pipeline = Depends(get_pipeline)) -> WebhookIngestResponse:
    """Push delivery from the feed aggregator. Accepts JSON, text-wrapped JSON or form bodies."""
    raw_body = await request.body()
    try:
        ingested = await pipeline.ingest_webhook_payload(raw_body, request.headers.get("content-type"))
    except Exception as e:
        logger.error(f"Webhook ingestion failed: {e}", exc_info=True)
        raise ingestion_error(f"Webhook ingestion failed: {e}")
    return WebhookIngestResponse(ingested=ingested)
