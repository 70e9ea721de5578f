from typing import Dict, List, Tuple, Union

import httpx
import pytest

from warwatch.core.config import Settings
from warwatch.db import create_store_engine
from warwatch.services.context import PipelineContext
from warwatch.services.proxy_fetch import ProxyFetchClient
from warwatch.services.store import Store

PROXY_BASE = "http://proxy.test"
OREF_URL = "https://www.oref.org.il/WarningMessages/alert/alerts.json"
RSS_BASE = "https://api.rss.app/v1"

Route = Union[Tuple[int, str, str], Exception]


class FakeUpstream:
    """httpx MockTransport handler serving canned bodies per target URL.

    Requests routed through the forwarding proxy are matched on their
    ``url`` query parameter, direct requests on the full URL.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def respond(self, url: str, body: str, status: int = 200, content_type: str = "application/json") -> None:
        self.routes[url] = (status, body, content_type)

    def fail(self, url: str, error: Exception) -> None:
        self.routes[url] = error

    def hits(self, url: str) -> int:
        return sum(1 for r in self.requests if self._target(r) == url)

    @staticmethod
    def _target(request: httpx.Request) -> str:
        if request.url.host == "proxy.test" and request.url.path == "/proxy":
            return request.url.params.get("url", "")
        return str(request.url)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(self._target(request))
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        status, body, content_type = route
        return httpx.Response(status, text=body, headers={"content-type": content_type})


def make_settings(**overrides) -> Settings:
    values = dict(
        environment="test",
        database_url="sqlite://",
        proxy_base_url=PROXY_BASE,
        proxy_auth_token="proxy-secret",
        rss_app_base_url=RSS_BASE,
        rss_app_api_key="key",
        rss_app_api_secret="secret",
        openai_api_key=None,
        pipeline_autostart=False,
        sentry_dsn=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> Store:
    return Store(create_store_engine("sqlite://"))


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def http_client(upstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))


@pytest.fixture
def ctx(settings, store, http_client) -> PipelineContext:
    return PipelineContext(
        settings=settings,
        store=store,
        fetch_client=ProxyFetchClient.from_settings(settings, client=http_client),
    )
