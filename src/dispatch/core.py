import logging

from gateway.schemas import GenerationRequest, GenerationResponse
from providers.base import (
    ProviderError,
    ProviderName,
    ProviderNotConfigured,
    ProviderNotImplemented,
    ProviderUpstreamError,
)
from state.usage import UsageTracker
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """Forwards a request to exactly one provider; no retry, no failover."""

    def __init__(self, registry: ProviderRegistry, usage: UsageTracker) -> None:
        self._registry = registry
        self._usage = usage

    async def dispatch(self, provider: ProviderName, request: GenerationRequest) -> GenerationResponse:
        name = ProviderName(provider)
        try:
            adapter = self._registry.get_provider(name)
            if adapter is None or not adapter.configured:
                raise ProviderNotConfigured(name.value)
            if not adapter.implemented:
                raise ProviderNotImplemented(name.value, adapter.label)

            logger.info("Dispatching to %s", name.value)
            return await adapter.generate(request)
        except ProviderError:
            self._usage.record_error()
            raise
        except Exception as e:
            self._usage.record_error()
            logger.exception("Unexpected error from provider %s: %s", name.value, e)
            raise ProviderUpstreamError(name.value, str(e) or e.__class__.__name__) from e
