import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from gateway.config import Settings
from providers.base import ProviderAdapter, ProviderName

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    api_key_present: bool
    implemented: bool


class ProviderRegistry:
    """Registry of provider adapters keyed by ProviderName.

    Every known provider is registered, configured or not, so status
    endpoints can report on all of them.
    """

    def __init__(self) -> None:
        self._providers: Dict[ProviderName, ProviderAdapter] = {}

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "ProviderRegistry":
        from providers.gemini import GeminiAdapter  # local import
        from providers.groq import GroqAdapter
        from providers.huggingface import HuggingFaceAdapter

        registry = cls()
        registry.register_provider(
            GeminiAdapter(
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                base_url=settings.gemini_base_url,
                client=client,
                timeout=settings.upstream_timeout,
            )
        )
        registry.register_provider(GroqAdapter(api_key=settings.groq_api_key))
        registry.register_provider(HuggingFaceAdapter(api_key=settings.huggingface_api_key))
        return registry

    def register_provider(self, provider: ProviderAdapter) -> None:
        self._providers[provider.name] = provider
        logger.info(
            "Registered provider: %s (%s)",
            provider.name.value,
            "configured" if provider.configured else "not configured",
        )

    def get_providers(self) -> List[ProviderAdapter]:
        return list(self._providers.values())

    def get_provider(self, name: ProviderName) -> Optional[ProviderAdapter]:
        return self._providers.get(ProviderName(name))

    def configs(self) -> List[ProviderConfig]:
        return [
            ProviderConfig(name=p.name.value, api_key_present=p.configured, implemented=p.implemented)
            for p in self.get_providers()
        ]

    def configured_flags(self) -> Dict[str, bool]:
        return {c.name: c.api_key_present for c in self.configs()}

    async def aclose(self) -> None:
        for provider in self.get_providers():
            try:
                await provider.aclose()
            except Exception as e:  # pragma: no cover
                logger.warning("Failed to close provider %s: %s", provider.name.value, e)
