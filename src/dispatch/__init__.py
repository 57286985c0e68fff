from .registry import ProviderConfig, ProviderRegistry
from .core import Dispatcher

__all__ = [
    "ProviderConfig",
    "ProviderRegistry",
    "Dispatcher",
]
