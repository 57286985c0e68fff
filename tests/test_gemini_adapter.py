import json
from typing import Any, Dict

import httpx
import pytest

# Ensure import path includes src
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from providers.base import ProviderUpstreamError, compose_prompt
from providers.gemini import GeminiAdapter
from gateway.schemas import GenerationRequest

GENERATE_PATH = "POST /v1beta/models/gemini-1.5-flash:generateContent"


class _MockTransport(httpx.AsyncBaseTransport):
    def __init__(self, handlers: Dict[str, Any]):
        self.handlers = handlers

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        key = f"{request.method} {request.url.path}"
        handler = self.handlers.get(key)
        if handler is None:
            return httpx.Response(404, request=request, json={"error": "not found"})
        return await handler(request)


def _client(handlers: Dict[str, Any]) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url="https://generativelanguage.googleapis.com/v1beta",
        transport=_MockTransport(handlers),
    )


@pytest.mark.asyncio
async def test_gemini_generate_mapping():
    seen: Dict[str, Any] = {}

    async def generate_handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["payload"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "candidates": [
                    {"content": {"role": "model", "parts": [{"text": "Hello "}, {"text": "there"}]}, "finishReason": "STOP"}
                ]
            },
        )

    client = _client({GENERATE_PATH: generate_handler})
    adapter = GeminiAdapter(api_key="test-key", client=client)

    req = GenerationRequest(system_prompt="Be brief.", user_prompt="Say hi", max_tokens=64)
    resp = await adapter.generate(req)

    assert seen["key"] == "test-key"
    assert seen["payload"]["contents"][0]["parts"][0]["text"] == "Be brief.\n\nUser: Say hi"
    assert seen["payload"]["generationConfig"] == {"maxOutputTokens": 64, "temperature": 0.7}

    assert resp.answer == "Hello there"
    assert resp.provider == "Google Gemini"
    assert resp.model == "gemini-1.5-flash"
    prompt = compose_prompt(req)
    assert resp.usage.prompt_tokens == len(prompt) / 4
    assert resp.usage.completion_tokens == len("Hello there") / 4
    assert resp.usage.total_tokens == (len(prompt) + len("Hello there")) / 4
    assert resp.timestamp.endswith("Z")

    await client.aclose()


@pytest.mark.asyncio
async def test_gemini_upstream_error_message_preserved():
    async def error_handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"error": {"code": 400, "message": "API key not valid. Please pass a valid API key.", "status": "INVALID_ARGUMENT"}},
        )

    client = _client({GENERATE_PATH: error_handler})
    adapter = GeminiAdapter(api_key="bad-key", client=client)

    with pytest.raises(ProviderUpstreamError) as exc:
        await adapter.generate(GenerationRequest(user_prompt="hi"))
    assert exc.value.status_code == 400
    assert exc.value.provider == "gemini"
    assert "API key not valid" in exc.value.message

    await client.aclose()


@pytest.mark.asyncio
async def test_gemini_network_failure():
    async def broken_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client({GENERATE_PATH: broken_handler})
    adapter = GeminiAdapter(api_key="test-key", client=client)

    with pytest.raises(ProviderUpstreamError) as exc:
        await adapter.generate(GenerationRequest(user_prompt="hi"))
    assert exc.value.message == "connection refused"
    assert exc.value.status_code is None

    await client.aclose()


@pytest.mark.asyncio
async def test_gemini_blocked_prompt():
    async def blocked_handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    client = _client({GENERATE_PATH: blocked_handler})
    adapter = GeminiAdapter(api_key="test-key", client=client)

    with pytest.raises(ProviderUpstreamError) as exc:
        await adapter.generate(GenerationRequest(user_prompt="hi"))
    assert "SAFETY" in exc.value.message

    await client.aclose()


def test_gemini_configured_flag():
    assert GeminiAdapter(api_key="  ").configured is False
    assert GeminiAdapter(api_key="k").configured is True
