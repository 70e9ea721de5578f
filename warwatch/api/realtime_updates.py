"""
Real-time Updates

WebSocket stream of newly created events. Each connection gets its own
broadcaster subscription and receives ``{"type": "new_event", "event": ...}``
messages in creation order.
"""

import asyncio

import structlog
from fastapi import APIRouter, Depends, WebSocket

from warwatch.api.deps import get_ws_pipeline
from warwatch.services.broadcaster import Subscription
from warwatch.services.pipeline import Pipeline

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["realtime"])


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        event = await subscription.get()
        await websocket.send_json({"type": "new_event", "event": event.to_wire()})


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Client messages are ignored; only the close frame matters
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def event_stream(websocket: WebSocket, pipeline: Pipeline = Depends(get_ws_pipeline)) -> None:
    # Subscribe before accepting so no event created after the handshake is missed
    subscription = pipeline.broadcaster.subscribe()
    log = logger.bind(subscriber_id=subscription.id, client=str(websocket.client))

    await websocket.accept()
    log.info("WebSocket subscriber connected", live=pipeline.broadcaster.subscriber_count)

    sender = asyncio.create_task(_forward_events(websocket, subscription))
    receiver = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if sender in done and sender.exception() is not None:
            log.info("WebSocket send failed", error=str(sender.exception()))
    finally:
        sender.cancel()
        receiver.cancel()
        pipeline.broadcaster.unsubscribe(subscription)
        log.info("WebSocket subscriber disconnected", dropped=subscription.dropped)
