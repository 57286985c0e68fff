from typing import Optional

from .base import ProviderName, UnimplementedAdapter


class GroqAdapter(UnimplementedAdapter):
    """Groq credentials are accepted and reported, but calls are not wired up."""

    name = ProviderName.GROQ
    label = "Groq"

    def __init__(self, api_key: Optional[str] = None) -> None:
        super().__init__(api_key=api_key)
