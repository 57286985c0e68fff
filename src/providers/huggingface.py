from typing import Optional

from .base import ProviderName, UnimplementedAdapter


class HuggingFaceAdapter(UnimplementedAdapter):
    """Hugging Face Inference placeholder; see GroqAdapter."""

    name = ProviderName.HUGGINGFACE
    label = "Hugging Face"

    def __init__(self, api_key: Optional[str] = None) -> None:
        super().__init__(api_key=api_key)
