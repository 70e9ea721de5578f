import json

import httpx
import pytest

from warwatch.api.schemas import ThreatLevel
from warwatch.core.errors import SummaryValidationError
from warwatch.services.ai_summary import AISummaryStep, ChatCompletionsClient, parse_summary

VALID = {
    "summary": "Rocket fire on the north, interceptions over Haifa.",
    "threatAssessment": "high",
    "keyPoints": ["Sirens in Haifa", "No casualties reported"],
    "recommendation": "Stay close to protected spaces.",
}


class StaticClient:
    def __init__(self, content: str) -> None:
        self.content = content
        self.prompts = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append(user_prompt)
        return self.content


def test_parse_valid_summary():
    summary = parse_summary(json.dumps(VALID))
    assert summary.threat_assessment == ThreatLevel.HIGH
    assert summary.key_points == VALID["keyPoints"]
    assert summary.last_updated.endswith("Z")


def test_invalid_threat_is_coerced_to_medium():
    summary = parse_summary(json.dumps({**VALID, "threatAssessment": "extreme"}))
    assert summary.threat_assessment == ThreatLevel.MEDIUM


@pytest.mark.parametrize("missing", ["summary", "threatAssessment", "keyPoints", "recommendation"])
def test_missing_field_is_rejected(missing):
    payload = {k: v for k, v in VALID.items() if k != missing}
    with pytest.raises(SummaryValidationError, match=missing):
        parse_summary(json.dumps(payload))


def test_non_json_is_rejected():
    with pytest.raises(SummaryValidationError):
        parse_summary("The situation is tense.")


@pytest.mark.asyncio
async def test_step_writes_a_new_summary(store):
    client = StaticClient(json.dumps(VALID))
    step = AISummaryStep(store, client)

    await step.run()

    assert store.get_latest_summary().summary == VALID["summary"]
    assert "Recent events (0)" in client.prompts[0]


@pytest.mark.asyncio
async def test_missing_recommendation_keeps_previous_summary(store):
    client = StaticClient(json.dumps(VALID))
    step = AISummaryStep(store, client)
    await step.run()
    previous = store.get_latest_summary()

    client.content = json.dumps({k: v for k, v in VALID.items() if k != "recommendation"})
    with pytest.raises(SummaryValidationError):
        await step.run()

    assert store.count("summaries") == 1
    assert store.get_latest_summary() == previous
    assert store.get_latest_summary().recommendation == VALID["recommendation"]


@pytest.mark.asyncio
async def test_no_client_is_a_no_op(store):
    assert await AISummaryStep(store, None).run() is None
    assert store.count("summaries") == 0


@pytest.mark.asyncio
async def test_chat_completions_request_shape():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": json.dumps(VALID)}}]})

    client = ChatCompletionsClient(
        api_key="sk-test",
        base_url="https://llm.test/v1/",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    content = await client.complete("system", "user")

    assert json.loads(content) == VALID
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert seen["body"]["model"] == "gpt-4o-mini"
