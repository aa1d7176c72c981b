"""Cache health and administration endpoints."""

from fastapi import APIRouter, Depends, Request

from ...cache import CacheService
from ...config.logging import get_logger
from ...core.validation import (
    CACHE_INVALIDATE_BODY_SCHEMA,
    CACHE_KEYS_QUERY_SCHEMA,
    CACHE_WARM_BODY_SCHEMA,
)
from ...ratelimit import EndpointClass, RateLimiter
from ...services import MomentumService, RequestContext, build_pipeline
from ..dependencies import (
    build_context,
    get_cache_service,
    get_momentum_service,
    get_rate_limiter,
    run_pipeline,
)
from ..models import (
    ERROR_RESPONSES,
    CacheHealthResponse,
    CacheInvalidateResponse,
    CacheKeysResponse,
    CacheWarmResponse,
)

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=CacheHealthResponse,
    responses=ERROR_RESPONSES,
    summary="Cache Health",
    description="Probe the distributed tier; reports fallback-only mode when it is absent",
)
async def cache_health(
    request: Request,
    cache: CacheService = Depends(get_cache_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    async def _handle(ctx: RequestContext):
        report = await cache.health_check()
        return report.to_dict()

    pipeline = build_pipeline(limiter, _handle)
    ctx = await build_context(request, EndpointClass.READ)
    return await run_pipeline(request, pipeline, ctx)


@router.get("/stats", responses=ERROR_RESPONSES, summary="Cache Statistics")
async def cache_stats(
    request: Request,
    cache: CacheService = Depends(get_cache_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    async def _handle(ctx: RequestContext):
        return cache.stats()

    pipeline = build_pipeline(limiter, _handle)
    ctx = await build_context(request, EndpointClass.READ)
    return await run_pipeline(request, pipeline, ctx)


@router.get(
    "/keys",
    response_model=CacheKeysResponse,
    responses=ERROR_RESPONSES,
    summary="List Cache Keys",
    description="List live keys matching a glob pattern (default `*`)",
)
async def cache_keys(
    request: Request,
    cache: CacheService = Depends(get_cache_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    async def _handle(ctx: RequestContext):
        pattern = ctx.validated["pattern"] or "*"
        keys = await cache.keys(pattern)
        return {"pattern": pattern, "count": len(keys), "keys": keys}

    pipeline = build_pipeline(limiter, _handle, query=CACHE_KEYS_QUERY_SCHEMA)
    ctx = await build_context(request, EndpointClass.READ)
    return await run_pipeline(request, pipeline, ctx)


@router.post(
    "/warm",
    response_model=CacheWarmResponse,
    responses=ERROR_RESPONSES,
    summary="Warm Cache",
    description="Recompute scores for the given tickers, or the hot set when omitted",
)
async def cache_warm(
    request: Request,
    momentum: MomentumService = Depends(get_momentum_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    async def _handle(ctx: RequestContext):
        tickers = ctx.validated.get("tickers")
        summary = await momentum.warm(tickers)
        logger.info("Cache warm requested", request_id=ctx.request_id, **summary)
        return summary

    pipeline = build_pipeline(limiter, _handle, body=CACHE_WARM_BODY_SCHEMA)
    ctx = await build_context(request, EndpointClass.ADMIN, with_body=True)
    return await run_pipeline(request, pipeline, ctx)


@router.post(
    "/invalidate",
    response_model=CacheInvalidateResponse,
    responses=ERROR_RESPONSES,
    summary="Invalidate Cache Pattern",
)
async def cache_invalidate(
    request: Request,
    cache: CacheService = Depends(get_cache_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    async def _handle(ctx: RequestContext):
        pattern = ctx.validated["pattern"]
        removed = await cache.invalidate(pattern)
        return {"pattern": pattern, "removed": removed}

    pipeline = build_pipeline(limiter, _handle, body=CACHE_INVALIDATE_BODY_SCHEMA)
    ctx = await build_context(request, EndpointClass.ADMIN, with_body=True)
    return await run_pipeline(request, pipeline, ctx)


@router.delete("/{key}", responses=ERROR_RESPONSES, summary="Delete Cache Key")
async def cache_delete_key(
    key: str,
    request: Request,
    cache: CacheService = Depends(get_cache_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    async def _handle(ctx: RequestContext):
        return {"key": key, "removed": await cache.delete(key)}

    pipeline = build_pipeline(limiter, _handle)
    ctx = await build_context(request, EndpointClass.ADMIN)
    return await run_pipeline(request, pipeline, ctx)


@router.delete("", responses=ERROR_RESPONSES, summary="Clear Cache")
async def cache_clear(
    request: Request,
    cache: CacheService = Depends(get_cache_service),
    momentum: MomentumService = Depends(get_momentum_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    async def _handle(ctx: RequestContext):
        cleared = await cache.clear(prefix=f"{momentum.key_prefix}:")
        logger.info("Cache cleared", cleared=cleared, request_id=ctx.request_id)
        return {"cleared": cleared}

    pipeline = build_pipeline(limiter, _handle)
    ctx = await build_context(request, EndpointClass.ADMIN)
    return await run_pipeline(request, pipeline, ctx)
