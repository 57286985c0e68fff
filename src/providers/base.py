from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from gateway.schemas import GenerationRequest, GenerationResponse


class ProviderName(str, Enum):
    GEMINI = "gemini"
    GROQ = "groq"
    HUGGINGFACE = "huggingface"


class ProviderError(Exception):
    """Base class for failures surfaced to the client as a 500 with details."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider
        self.message = message


class ProviderNotConfigured(ProviderError):
    def __init__(self, provider: str) -> None:
        super().__init__(provider, f"Provider {provider} not configured or not supported")


class ProviderNotImplemented(ProviderError):
    def __init__(self, provider: str, label: str) -> None:
        super().__init__(provider, f"{label} provider not implemented yet")


class ProviderUpstreamError(ProviderError):
    def __init__(self, provider: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(provider, message)
        self.status_code = status_code


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Constructors must not perform I/O. ``generate`` is the only call that
    touches the network.
    """

    name: ProviderName
    label: str = "provider"
    implemented: bool = True

    def __init__(self, api_key: Optional[str] = None) -> None:
        self._api_key = (api_key or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Execute a single generation and return the normalized response."""

    async def aclose(self) -> None:
        return None


class UnimplementedAdapter(ProviderAdapter):
    """Placeholder for a provider whose integration does not exist yet."""

    implemented = False

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        raise ProviderNotImplemented(self.name.value, self.label)


def compose_prompt(request: GenerationRequest) -> str:
    return f"{request.system_prompt}\n\nUser: {request.user_prompt}"


def estimate_tokens(text: str) -> float:
    # Very rough heuristic: ~4 characters per token
    return len(text) / 4
