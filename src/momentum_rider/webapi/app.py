"""FastAPI application for momentum scoring with a tiered cache."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from .. import __version__
from ..cache import CacheService
from ..config.logging import bind_request_context, clear_request_context, get_logger
from ..config.settings import Settings, get_settings
from ..ratelimit import RateLimiter
from ..scheduler import add_cache_health_job, add_cache_warm_job, create_scheduler
from ..services import MomentumService, PriceHistoryFetcher
from .exceptions import setup_exception_handlers
from .health import router as health_router
from .routers import router as api_router

logger = get_logger(__name__)


def init_services(app: FastAPI, settings: Settings) -> None:
    """Construct the per-process services once and attach them to app state."""
    cache = CacheService.from_settings(settings)
    fetcher = PriceHistoryFetcher.from_settings(settings)
    app.state.settings = settings
    app.state.cache = cache
    app.state.limiter = RateLimiter.from_settings(settings)
    app.state.fetcher = fetcher
    app.state.momentum = MomentumService.from_settings(settings, cache, fetcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services, check the cache, warm hot tickers and start background jobs."""
    settings = app.state.settings
    logger.info("Starting Momentum Rider API", environment=settings.environment)

    if not hasattr(app.state, "cache"):
        init_services(app, settings)
    cache: CacheService = app.state.cache
    momentum: MomentumService = app.state.momentum

    report = await cache.health_check()
    logger.info("Initial cache health", **report.to_dict())

    if settings.cache_warm_on_startup:
        summary = await momentum.warm()
        logger.info("Startup warm-up finished", **summary)

    scheduler = create_scheduler()
    if settings.health_check_interval_seconds:
        add_cache_health_job(scheduler, cache, settings.health_check_interval_seconds)
    if settings.cache_warm_interval_minutes:
        add_cache_warm_job(scheduler, momentum, settings.cache_warm_interval_minutes)
    scheduler.start()
    app.state.scheduler = scheduler

    logger.info("Momentum Rider API started successfully", cache_mode=cache.mode.value)

    yield

    logger.info("Shutting down Momentum Rider API")
    scheduler.shutdown(wait=False)
    await cache.close()
    logger.info("Momentum Rider API shutdown completed")


async def add_request_id_middleware(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    clear_request_context()
    bind_request_context(request_id=request_id)

    logger.info(
        "Request started",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        query_params=str(request.query_params),
        user_agent=request.headers.get("user-agent"),
        remote_addr=request.client.host if request.client else None,
    )

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    logger.info(
        "Request completed",
        request_id=request_id,
        status_code=response.status_code,
        method=request.method,
        path=request.url.path,
    )

    return response


def create_app(settings: Settings = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Momentum Rider API",
        description="""
        Momentum scores for a fixed universe of ETFs.

        ## Features

        * **Momentum**: Per-horizon returns and a composite score per ticker
        * **Tiered Cache**: Redis with an in-process fallback and warm-up
        * **Rate Limiting**: Combined global and per-endpoint quotas per client
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        debug=settings.debug,
    )
    app.state.settings = settings

    # Add middleware for request tracking
    app.middleware("http")(add_request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router, tags=["Health & Status"])
    app.include_router(api_router, prefix="/api")

    logger.info("FastAPI application created")
    return app
