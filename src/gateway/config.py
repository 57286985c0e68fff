import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS: Tuple[str, ...] = ("http://localhost:3000", "https://localhost:3000")
DEFAULT_RATE_LIMITS_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "config", "rate_limits.yaml"
)


class RateLimitPolicy(BaseModel):
    """A fixed window: at most ``max_requests`` per ``window_seconds`` per client."""

    model_config = ConfigDict(frozen=True)

    window_seconds: float = Field(gt=0)
    max_requests: int = Field(gt=0)
    message: str

    def describe(self) -> str:
        seconds = int(self.window_seconds)
        if seconds == 60:
            span = "minute"
        elif seconds == 3600:
            span = "hour"
        elif seconds % 3600 == 0:
            span = f"{seconds // 3600} hours"
        elif seconds % 60 == 0:
            span = f"{seconds // 60} minutes"
        else:
            span = f"{self.window_seconds:g} seconds"
        return f"{self.max_requests} requests per {span}"


def _default_global_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        window_seconds=15 * 60,
        max_requests=100,
        message="Too many requests, please try again later.",
    )


def _default_ai_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        window_seconds=60,
        max_requests=15,
        message="AI rate limit exceeded, please wait.",
    )


class Settings(BaseModel):
    """Process configuration, read once at startup and never mutated."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3001
    allowed_origins: Tuple[str, ...] = DEFAULT_ORIGINS

    gemini_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    huggingface_api_key: Optional[str] = None

    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    upstream_timeout: float = 30.0

    max_body_bytes: int = 10 * 1024 * 1024
    global_rate_limit: RateLimitPolicy = Field(default_factory=_default_global_policy)
    ai_rate_limit: RateLimitPolicy = Field(default_factory=_default_ai_policy)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file)

        origins: List[str] = list(DEFAULT_ORIGINS)
        for extra in [os.getenv("FRONTEND_URL", "")] + os.getenv("ALLOWED_ORIGINS", "").split(","):
            extra = extra.strip().rstrip("/")
            if extra and extra not in origins:
                origins.append(extra)

        limits = load_rate_limits(os.getenv("RATE_LIMITS_PATH"))

        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3001")),
            allowed_origins=tuple(origins),
            gemini_api_key=_secret("GEMINI_API_KEY"),
            groq_api_key=_secret("GROQ_API_KEY"),
            huggingface_api_key=_secret("HUGGINGFACE_API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            upstream_timeout=float(os.getenv("UPSTREAM_TIMEOUT", "30")),
            max_body_bytes=int(os.getenv("MAX_BODY_BYTES", str(10 * 1024 * 1024))),
            global_rate_limit=_merge_policy(_default_global_policy(), limits.get("global")),
            ai_rate_limit=_merge_policy(_default_ai_policy(), limits.get("ai")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def load_rate_limits(path: Optional[str] = None) -> Dict[str, Any]:
    """Load optional rate-limit overrides.

    Expected shape::

        global: {window_seconds: 900, max_requests: 100}
        ai: {window_seconds: 60, max_requests: 15}
    """
    path = path or DEFAULT_RATE_LIMITS_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.info("Rate limit config not found at %s; using defaults", path)
        return {}
    except Exception as e:
        logger.warning("Failed to load rate limit config: %s", e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Rate limit config at %s is not a mapping; using defaults", path)
        return {}
    return data


def _merge_policy(default: RateLimitPolicy, override: Optional[Dict[str, Any]]) -> RateLimitPolicy:
    if not isinstance(override, dict):
        return default
    try:
        return RateLimitPolicy(**{**default.model_dump(), **override})
    except Exception as e:
        logger.warning("Ignoring invalid rate limit override %r: %s", override, e)
        return default


def _secret(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None
