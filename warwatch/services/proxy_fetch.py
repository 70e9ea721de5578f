"""
Outbound HTTP fetch with optional forwarding proxy.

Geo-restricted sources are requested through ``{proxy_base_url}/proxy?url=...``
with a bearer token so they see a local client; everything else, and all
sources when no proxy is configured, is fetched directly.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from warwatch.core.config import Settings
from warwatch.core.errors import SourceFetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class ProxyFetchClient:
    """Async fetcher shared by all adapters of one pipeline."""

    def __init__(
        self,
        proxy_base_url: Optional[str] = None,
        proxy_auth_token: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.proxy_base_url = proxy_base_url.rstrip("/") if proxy_base_url else None
        self.proxy_auth_token = proxy_auth_token
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "ProxyFetchClient":
        return cls(
            proxy_base_url=settings.proxy_base_url,
            proxy_auth_token=settings.proxy_auth_token,
            timeout=settings.fetch_timeout_seconds,
            client=client,
        )

    @property
    def proxied(self) -> bool:
        return bool(self.proxy_base_url)

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        via_proxy: bool = True,
    ) -> FetchResponse:
        """GET ``url`` and return status, headers and decoded body.

        Non-2xx responses are returned, not raised; transport failures and
        timeouts raise SourceFetchError.
        """
        if via_proxy and self.proxy_base_url:
            request_url = f"{self.proxy_base_url}/proxy"
            params = {"url": url}
            # The proxy relays Referer and X-Requested-With to the target
            request_headers = dict(headers or {})
            if self.proxy_auth_token:
                request_headers["Authorization"] = f"Bearer {self.proxy_auth_token}"
        else:
            request_url = url
            params = None
            request_headers = dict(headers or {})

        try:
            response = await self._client.get(
                request_url,
                params=params,
                headers=request_headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise SourceFetchError(url, f"Timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise SourceFetchError(url, f"Request failed: {e}") from e

        return FetchResponse(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=response.text,
        )

    async def fetch_ok(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        via_proxy: bool = True,
    ) -> FetchResponse:
        """Like fetch, but a non-2xx status raises SourceFetchError."""
        response = await self.fetch(url, headers=headers, via_proxy=via_proxy)
        if not response.ok:
            raise SourceFetchError(url, f"HTTP {response.status}: {response.body[:100]}", status=response.status)
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
