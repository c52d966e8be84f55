import asyncio

import httpx
import pytest

from vocabquest.errors import GenerationQuotaExhausted, GenerationRateLimited, UpstreamGenerationError
from vocabquest.gemini_client import GeminiClient


def _client(handler) -> GeminiClient:
    return GeminiClient(api_key="test-key", base_url="https://gemini.test/generate", transport=httpx.MockTransport(handler))


def _run(client: GeminiClient, prompt: str = "hello"):
    async def _go():
        try:
            return await client.generate(prompt, system="be brief")
        finally:
            await client.aclose()

    return asyncio.run(_go())


def test_generate_returns_candidate_text() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.url.params.get("key")
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "[]"}]}}]})

    assert _run(_client(handler)) == "[]"
    assert seen["key"] == "test-key"


@pytest.mark.parametrize(
    "status, error",
    [(429, GenerationRateLimited), (402, GenerationQuotaExhausted), (500, UpstreamGenerationError)],
)
def test_gateway_errors_are_mapped(status, error) -> None:
    client = _client(lambda request: httpx.Response(status, json={"error": "nope"}))
    with pytest.raises(error):
        _run(client)


def test_malformed_reply_is_upstream_error() -> None:
    client = _client(lambda request: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(UpstreamGenerationError):
        _run(client)


def test_missing_api_key_is_upstream_error(monkeypatch) -> None:
    from vocabquest import gemini_client

    monkeypatch.setattr(gemini_client.settings, "gemini_api_key", None)
    with pytest.raises(UpstreamGenerationError):
        GeminiClient()


def test_fallback_answers_when_gemini_is_rate_limited(monkeypatch) -> None:
    from vocabquest import gemini_client

    monkeypatch.setattr(gemini_client.settings, "openrouter_api_key", "router-key")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "gemini.test":
            return httpx.Response(429)
        assert request.headers["authorization"] == "Bearer router-key"
        return httpx.Response(200, json={"choices": [{"message": {"content": "from fallback"}}]})

    assert _run(_client(handler)) == "from fallback"
