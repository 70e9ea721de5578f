"""
Forwarding Proxy

Small relay deployed inside Israel so geo-restricted sources (the Home Front
Command alert endpoint) see a local client. ``GET /proxy?url=<target>`` fetches
the target with browser-like headers and passes its status, content-type and
body back unchanged. When a token is configured every request must carry
``Authorization: Bearer <token>``.

Run with ``uvicorn warwatch.proxy_server:app --port 3128``.
"""

import logging
import secrets
from typing import Optional
from urllib.parse import urlparse

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from warwatch.core.config import Settings, get_settings
from warwatch.core.errors import ErrorCodes, WarWatchAPIError, api_error_handler
from warwatch.core.logging_config import setup_logging
from warwatch.core.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/html, */*",
    "Accept-Language": "he-IL,he;q=0.9,en-US;q=0.8,en;q=0.7",
}

# Caller headers some targets check before answering
RELAYED_HEADERS = ("Referer", "X-Requested-With")


def _target_url(url: Optional[str]) -> str:
    if not url:
        raise WarWatchAPIError(400, ErrorCodes.VALIDATION_ERROR, "Missing 'url' query parameter")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise WarWatchAPIError(400, ErrorCodes.INVALID_DATA_FORMAT, f"Invalid URL: {url}")
    return url


def create_proxy_app(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the relay app; the bearer token is ``settings.proxy_auth_token``."""
    settings = settings or get_settings()
    setup_logging(settings)
    auth_token = settings.proxy_auth_token
    timeout = settings.fetch_timeout_seconds
    if not auth_token:
        logger.warning("Forwarding proxy started without an auth token; any caller can use it")

    app = FastAPI(title="WarWatch Forwarding Proxy", version="1.0.0", docs_url=None, redoc_url=None)
    app.state.client = client
    app.add_exception_handler(WarWatchAPIError, api_error_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    def require_token(request: Request) -> None:
        if not auth_token:
            return
        supplied = request.headers.get("Authorization", "")
        if not secrets.compare_digest(supplied, f"Bearer {auth_token}"):
            raise WarWatchAPIError(401, ErrorCodes.AUTHENTICATION_REQUIRED, "Unauthorized")

    def outbound_client() -> httpx.AsyncClient:
        if app.state.client is None:
            app.state.client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
            app.state.owns_client = True
        return app.state.client

    @app.on_event("shutdown")
    async def shutdown_event():
        if getattr(app.state, "owns_client", False):
            await app.state.client.aclose()

    @app.get("/health", dependencies=[Depends(require_token)])
    def health_check():
        return {"status": "ok", "timestamp": utc_now_iso()}

    @app.get("/proxy", dependencies=[Depends(require_token)])
    async def forward(request: Request, url: Optional[str] = Query(None)) -> Response:
        target = _target_url(url)
        headers = dict(BROWSER_HEADERS)
        for name in RELAYED_HEADERS:
            if name in request.headers:
                headers[name] = request.headers[name]

        try:
            upstream = await outbound_client().get(target, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            logger.warning(f"[proxy] Timed out fetching {target}: {e}")
            raise WarWatchAPIError(504, ErrorCodes.DATA_SOURCE_TIMEOUT, "Request to target URL timed out")
        except httpx.HTTPError as e:
            logger.warning(f"[proxy] Error fetching {target}: {e}")
            raise WarWatchAPIError(502, ErrorCodes.DATA_SOURCE_ERROR, f"Failed to fetch target URL: {e}")

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers={
                "Content-Type": upstream.headers.get("content-type", "application/octet-stream"),
                "X-Proxied-From": urlparse(target).hostname or "",
            },
        )

    return app


app = create_proxy_app()
