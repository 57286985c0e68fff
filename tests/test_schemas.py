import os
import sys

import pytest
from pydantic import ValidationError

# Ensure 'src' is on the import path for tests
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from gateway.schemas import ErrorResponse, GenerationRequest, GenerationResponse, TokenUsage


def test_generation_request_defaults_and_camel_case():
    req = GenerationRequest.model_validate({"systemPrompt": "sys", "userPrompt": "hello"})
    assert req.system_prompt == "sys"
    assert req.max_tokens == 1000
    assert req.temperature == 0.7


def test_generation_request_requires_user_prompt():
    with pytest.raises(ValidationError):
        GenerationRequest.model_validate({"systemPrompt": "sys"})


def test_generation_request_bounds():
    with pytest.raises(ValidationError):
        GenerationRequest(user_prompt="x", max_tokens=0)
    with pytest.raises(ValidationError):
        GenerationRequest(user_prompt="x", temperature=3)


def test_generation_response_serializes_with_aliases():
    resp = GenerationResponse(
        answer="ok",
        provider="Google Gemini",
        model="gemini-1.5-flash",
        usage=TokenUsage(prompt_tokens=2.5, completion_tokens=0.5, total_tokens=3),
        timestamp="2026-01-01T00:00:00.000Z",
    )
    data = resp.model_dump(by_alias=True)
    assert data["usage"] == {"promptTokens": 2.5, "completionTokens": 0.5, "totalTokens": 3}


def test_error_response_drops_empty_fields():
    assert ErrorResponse(error="Endpoint not found").to_content() == {"error": "Endpoint not found"}
