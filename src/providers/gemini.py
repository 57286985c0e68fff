import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from gateway.schemas import GenerationRequest, GenerationResponse, TokenUsage
from .base import (
    ProviderAdapter,
    ProviderName,
    ProviderUpstreamError,
    compose_prompt,
    estimate_tokens,
)

logger = logging.getLogger(__name__)


class GeminiAdapter(ProviderAdapter):
    """Google Gemini adapter using the ``generateContent`` REST endpoint.

    Authentication:
    - API key sent as the ``x-goog-api-key`` header (GEMINI_API_KEY)

    The system and user prompts are flattened into a single user turn, and
    token usage is estimated from text length rather than taken from the
    upstream ``usageMetadata``.
    """

    name = ProviderName.GEMINI
    label = "Google Gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(api_key=api_key)
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client  # may be injected for tests
        self._owns_client = client is None

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._client

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        client = self._get_client()
        prompt = compose_prompt(request)

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": request.max_tokens,
                "temperature": request.temperature,
            },
        }

        try:
            resp = await client.post(
                f"/models/{self._model}:generateContent",
                headers=self._headers(),
                json=payload,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _upstream_message(e.response)
            logger.error("Gemini API error (%s): %s", e.response.status_code, message)
            raise ProviderUpstreamError(self.name.value, message, e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("Gemini request failed: %r", e)
            raise ProviderUpstreamError(self.name.value, str(e) or e.__class__.__name__) from e

        text = _extract_text(resp.json())
        return GenerationResponse(
            answer=text,
            provider=self.label,
            model=self._model,
            usage=TokenUsage(
                prompt_tokens=estimate_tokens(prompt),
                completion_tokens=estimate_tokens(text),
                total_tokens=estimate_tokens(prompt + text),
            ),
            timestamp=_iso_now(),
        )

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _extract_text(data: Dict[str, Any]) -> str:
    candidates: List[Dict[str, Any]] = data.get("candidates") or []
    if not candidates:
        reason = (data.get("promptFeedback") or {}).get("blockReason")
        if reason:
            raise ProviderUpstreamError(ProviderName.GEMINI.value, f"Prompt blocked by Gemini: {reason}")
        raise ProviderUpstreamError(ProviderName.GEMINI.value, "Gemini returned no candidates")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
    if not texts:
        reason = candidates[0].get("finishReason", "unknown")
        raise ProviderUpstreamError(ProviderName.GEMINI.value, f"Gemini returned no text (finishReason={reason})")
    return "".join(texts)


def _upstream_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
    return resp.text or f"HTTP {resp.status_code}"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
