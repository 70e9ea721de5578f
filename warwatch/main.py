import logging
import time
import uuid
from typing import Optional

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import ValidationError
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from warwatch.api import feed as feed_router
from warwatch.api import ingest as ingest_router
from warwatch.api import monitoring as monitoring_router
from warwatch.api import realtime_updates as realtime_router
from warwatch.core.config import Settings, get_settings
from warwatch.core.errors import (
    WarWatchAPIError,
    api_error_handler,
    general_exception_handler,
    validation_exception_handler,
)
from warwatch.core.logging_config import setup_logging
from warwatch.core.metrics import REQUEST_COUNT, REQUEST_LATENCY
from warwatch.services.pipeline import Pipeline

logger = logging.getLogger(__name__)


def _init_sentry(settings: Settings) -> None:
    # Error tracking is opt-in; without a DSN nothing is sent
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        attach_stacktrace=True,
        send_default_pii=False,
        max_breadcrumbs=50,
    )


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[Pipeline] = None,
    autostart: Optional[bool] = None,
) -> FastAPI:
    """Build the API app.

    An injected ``pipeline`` is used as-is; otherwise one is built from
    settings at startup. ``autostart`` overrides ``settings.pipeline_autostart``.
    """
    settings = settings or get_settings()
    setup_logging(settings)
    _init_sentry(settings)
    if autostart is None:
        autostart = settings.pipeline_autostart

    app = FastAPI(
        title="WarWatch Ingestion API",
        version="1.0.0",
        description="Real-time war situational awareness: alerts, events, news and AI summaries",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    # Register global error handlers
    app.add_exception_handler(WarWatchAPIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
    if settings.is_development:
        allowed_origins.extend(["http://localhost:5173", "http://127.0.0.1:5173"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept"],
    )

    @app.middleware("http")
    async def request_id_and_metrics(request: Request, call_next):
        """Attach request id and record metrics."""
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = req_id
        struct_logger = structlog.get_logger().bind(
            request_id=req_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        REQUEST_LATENCY.labels(request.method, request.url.path, response.status_code).observe(elapsed)
        REQUEST_COUNT.labels(request.method, request.url.path, response.status_code).inc()
        struct_logger.debug(
            "Request completed",
            status_code=response.status_code,
            response_time_ms=elapsed * 1000,
        )
        response.headers["X-Request-ID"] = req_id
        return response

    @app.on_event("startup")
    async def startup_event():
        if app.state.pipeline is None:
            app.state.pipeline = Pipeline.from_settings(settings)
            logger.info(f"Store ready at {settings.database_url.split('://')[0]}")
        if autostart:
            app.state.pipeline.start()
        else:
            logger.info("Pipeline autostart disabled; sources run only on demand")

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.pipeline is not None:
            await app.state.pipeline.close()

    @app.get("/health")
    def health_check():
        pipeline = app.state.pipeline
        return {
            "status": "healthy",
            "environment": settings.environment,
            "pipeline_running": bool(pipeline and pipeline.is_running),
        }

    if settings.enable_metrics:
        @app.get("/metrics")
        def metrics():
            """Prometheus metrics endpoint."""
            return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(feed_router.router)
    app.include_router(ingest_router.router)
    app.include_router(monitoring_router.router)
    app.include_router(realtime_router.router)
    return app


app = create_app()
