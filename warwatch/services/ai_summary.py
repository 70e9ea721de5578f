"""
AI Summarization Step

Periodically asks an OpenAI-compatible chat model for a situation summary
over the most recent events and news, validates the JSON it returns and
appends it to the Store as the new latest summary.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from warwatch.api.schemas import AISummary, CanonicalEvent, CanonicalNewsItem, ThreatLevel
from warwatch.core.config import Settings
from warwatch.core.errors import SourceFetchError, SummaryValidationError
from warwatch.core.metrics import INGESTED_RECORDS
from warwatch.core.timestamps import utc_now_iso
from warwatch.services.store import Store

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a military intelligence analyst for a real-time war dashboard covering "
    "Israel and the surrounding region. Summarize the current situation from the "
    "provided events and news only. Respond with a single JSON object with exactly "
    'these keys: "summary" (string, one paragraph), "threatAssessment" (one of '
    '"critical", "high", "medium", "low"), "keyPoints" (array of short strings) and '
    '"recommendation" (string, guidance for civilians).'
)


class SummaryClient(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


class ChatCompletionsClient:
    """Minimal async client for a ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise SourceFetchError(url, "Timed out waiting for completion") from e
        except httpx.HTTPError as e:
            raise SourceFetchError(url, f"Request failed: {e}") from e

        if response.status_code != 200:
            raise SourceFetchError(url, f"HTTP {response.status_code}: {response.text[:200]}", status=response.status_code)

        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise SummaryValidationError(f"Unexpected completion response shape: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class _SummaryDraft(BaseModel):
    """The model's JSON before it becomes an AISummary."""
    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(min_length=1)
    threat_assessment: ThreatLevel = Field(alias="threatAssessment")
    key_points: List[str] = Field(alias="keyPoints")
    recommendation: str = Field(min_length=1)

    @field_validator("threat_assessment", mode="before")
    @classmethod
    def coerce_threat(cls, value: Any) -> Any:
        normalized = str(value).strip().lower() if value is not None else ""
        if normalized not in {level.value for level in ThreatLevel}:
            logger.warning(f"Invalid threatAssessment {value!r}; using medium")
            return ThreatLevel.MEDIUM
        return normalized

    @field_validator("key_points", mode="before")
    @classmethod
    def stringify_points(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


def build_user_prompt(events: List[CanonicalEvent], news: List[CanonicalNewsItem]) -> str:
    event_lines = [
        f"- [{e.timestamp}] {e.type.value} ({e.threat_level.value}) {e.title} @ {e.location}, {e.country}"
        for e in events
    ]
    news_lines = [
        f"- [{n.timestamp}] {'BREAKING ' if n.breaking else ''}{n.title} ({n.source})"
        for n in news
    ]
    return (
        f"Recent events ({len(events)}):\n" + ("\n".join(event_lines) or "- none") +
        f"\n\nRecent news ({len(news)}):\n" + ("\n".join(news_lines) or "- none") +
        "\n\nReturn the JSON summary now."
    )


def parse_summary(content: str, now: Optional[datetime] = None) -> AISummary:
    """Validate a model response into an AISummary; raises SummaryValidationError."""
    try:
        decoded: Dict[str, Any] = json.loads(content)
    except json.JSONDecodeError as e:
        raise SummaryValidationError(f"Summary is not JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise SummaryValidationError(f"Summary is a {type(decoded).__name__}, not an object")

    try:
        draft = _SummaryDraft.model_validate(decoded)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise SummaryValidationError(f"Summary failed validation on: {', '.join(missing)}") from e

    return AISummary(
        summary=draft.summary,
        threat_assessment=draft.threat_assessment,
        key_points=draft.key_points,
        recommendation=draft.recommendation,
        last_updated=utc_now_iso(now),
    )


class AISummaryStep:
    name = "ai-summary"

    def __init__(
        self,
        store: Store,
        client: Optional[SummaryClient],
        recent_events: int = 30,
        recent_news: int = 30,
    ) -> None:
        self.store = store
        self.client = client
        self.recent_events = recent_events
        self.recent_news = recent_news

    @classmethod
    def from_settings(cls, settings: Settings, store: Store) -> "AISummaryStep":
        client = None
        if settings.openai_api_key:
            client = ChatCompletionsClient(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                model=settings.ai_model,
            )
        return cls(store, client, settings.ai_recent_events, settings.ai_recent_news)

    async def run(self) -> Optional[AISummary]:
        if self.client is None:
            logger.debug(f"[{self.name}] No API key configured; skipping")
            return None

        events = await asyncio.to_thread(self.store.get_recent_events, self.recent_events)
        news = await asyncio.to_thread(self.store.get_recent_news, self.recent_news)

        content = await self.client.complete(SYSTEM_PROMPT, build_user_prompt(events, news))
        summary = parse_summary(content)

        await asyncio.to_thread(self.store.insert_ai_summary, summary)
        INGESTED_RECORDS.labels(source=self.name, kind="summary").inc()
        logger.info(f"[{self.name}] New summary ({summary.threat_assessment.value}) from "
                    f"{len(events)} events and {len(news)} news items")
        return summary

    async def aclose(self) -> None:
        close = getattr(self.client, "aclose", None)
        if close is not None:
            await close()
