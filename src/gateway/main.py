import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, FastAPI
from fastapi import Request as FastAPIRequest
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dispatch import Dispatcher, ProviderRegistry
from gateway.config import Settings
from gateway.middleware import BodySizeLimitMiddleware, OriginGuardMiddleware, SecurityHeadersMiddleware
from gateway.schemas import ErrorResponse, GenerationRequest, GenerationResponse
from providers.base import ProviderError, ProviderName
from state.ratelimit import AI_SCOPE, GLOBAL_SCOPE, RateLimitExceeded, RateLimiter
from state.usage import UsageTracker

logger = logging.getLogger(__name__)

AI_ROUTE_PREFIX = "/api/ai/"


def client_id(request: FastAPIRequest) -> str:
    return request.client.host if request.client else "unknown"


async def enforce_rate_limits(request: FastAPIRequest) -> None:
    limiter: RateLimiter = request.app.state.limiter
    key = client_id(request)
    limiter.enforce(GLOBAL_SCOPE, key)
    limiter.enforce(AI_SCOPE, key)


async def track_usage(request: FastAPIRequest) -> None:
    usage: UsageTracker = request.app.state.usage
    usage.record(client_id(request))


router = APIRouter()


@router.get("/health", tags=["health"])
async def health(request: FastAPIRequest):
    snap = request.app.state.usage.snapshot()
    return {
        "status": "healthy",
        "uptime": f"{snap.uptime_seconds // 60} minutes",
        "uptimeSeconds": snap.uptime_seconds,
        "usage": snap.usage_dict(),
        "providers": snap.providers_dict(),
    }


@router.get("/api/stats", tags=["health"])
async def stats(request: FastAPIRequest):
    snap = request.app.state.usage.snapshot()
    settings: Settings = request.app.state.settings
    return {
        "usage": snap.usage_dict(),
        "rateLimit": {
            "global": settings.global_rate_limit.describe(),
            "ai": settings.ai_rate_limit.describe(),
        },
        "providers": snap.providers_dict(),
    }


def _generation_endpoint(provider: ProviderName) -> Callable[..., Any]:
    async def generate(payload: GenerationRequest, request: FastAPIRequest):
        dispatcher: Dispatcher = request.app.state.dispatcher
        try:
            return await dispatcher.dispatch(provider, payload)
        except ProviderError as e:
            logger.error("%s API error: %s", provider.value, e.message)
            body = ErrorResponse(
                error="AI service temporarily unavailable",
                details=e.message,
                provider=provider.value,
            )
            return JSONResponse(status_code=500, content=body.to_content())

    generate.__name__ = f"generate_{provider.value}"
    return generate


for _provider in ProviderName:
    router.add_api_route(
        f"{AI_ROUTE_PREFIX}{_provider.value}",
        _generation_endpoint(_provider),
        methods=["POST"],
        response_model=GenerationResponse,
        dependencies=[Depends(enforce_rate_limits), Depends(track_usage)],
        tags=["ai"],
    )


async def _rate_limit_handler(request: FastAPIRequest, exc: RateLimitExceeded) -> JSONResponse:
    request.app.state.usage.record_error()
    return JSONResponse(status_code=429, content={"error": exc.message}, headers=exc.headers())


async def _validation_handler(request: FastAPIRequest, exc: RequestValidationError) -> JSONResponse:
    request.app.state.usage.record_error()
    provider = None
    if request.url.path.startswith(AI_ROUTE_PREFIX):
        provider = request.url.path[len(AI_ROUTE_PREFIX):]
    body = ErrorResponse(
        error="Invalid request body",
        details=[{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()],
        provider=provider,
    )
    return JSONResponse(status_code=422, content=body.to_content())


async def _http_error_handler(request: FastAPIRequest, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and wrong methods both read as a missing endpoint
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
    request.app.state.usage.record_error()
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


async def _unhandled_error_handler(request: FastAPIRequest, exc: Exception) -> JSONResponse:
    request.app.state.usage.record_error()
    logger.exception("Server error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    registry = registry or ProviderRegistry.from_settings(settings)

    app = FastAPI(title="AI Relay Gateway", version="0.1.0")

    # Process-wide state; lives until shutdown and is never persisted
    clock_kwargs = {"clock": clock} if clock is not None else {}
    usage = UsageTracker(providers=registry.configured_flags(), **clock_kwargs)
    limiter = RateLimiter(
        {GLOBAL_SCOPE: settings.global_rate_limit, AI_SCOPE: settings.ai_rate_limit},
        **clock_kwargs,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.usage = usage
    app.state.limiter = limiter
    app.state.dispatcher = Dispatcher(registry, usage)

    # Last added runs first; the origin guard must see requests before CORS does
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(OriginGuardMiddleware, allowed_origins=settings.allowed_origins)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(router)

    @app.on_event("startup")
    async def startup_event() -> None:
        configured = [c.name for c in registry.configs() if c.api_key_present]
        logger.info("AI relay listening on port %d", settings.port)
        logger.info(
            "Rate limits: global=%s, ai=%s",
            settings.global_rate_limit.describe(),
            settings.ai_rate_limit.describe(),
        )
        logger.info("Configured AI providers: %s", ", ".join(configured) or "None")

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await registry.aclose()

    return app


app = create_app()
