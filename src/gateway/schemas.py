from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerationRequest(_CamelModel):
    system_prompt: str = ""
    user_prompt: str
    max_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.7, ge=0, le=2)


class TokenUsage(_CamelModel):
    # Estimates (characters / 4), not upstream billing figures
    prompt_tokens: float = 0
    completion_tokens: float = 0
    total_tokens: float = 0


class GenerationResponse(_CamelModel):
    answer: str
    provider: str
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
    provider: Optional[str] = None

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
