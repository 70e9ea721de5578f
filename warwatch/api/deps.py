from fastapi import Request, WebSocket

from warwatch.core.errors import ErrorCodes, WarWatchAPIError
from warwatch.services.pipeline import Pipeline


def _pipeline_from_state(state) -> Pipeline:
    pipeline = getattr(state, "pipeline", None)
    if pipeline is None:
        raise WarWatchAPIError(
            status_code=503,
            code=ErrorCodes.SERVICE_UNAVAILABLE,
            message="Ingestion pipeline is not initialized",
        )
    return pipeline


def get_pipeline(request: Request) -> Pipeline:
    """FastAPI dependency returning the process-wide pipeline."""
    return _pipeline_from_state(request.app.state)


def get_ws_pipeline(websocket: WebSocket) -> Pipeline:
    return _pipeline_from_state(websocket.app.state)
