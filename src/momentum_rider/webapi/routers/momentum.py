"""Momentum score endpoints."""

from fastapi import APIRouter, Depends, Request

from ...config.logging import get_logger
from ...core.validation import (
    MOMENTUM_BODY_SCHEMA,
    MOMENTUM_PARAMS_SCHEMA,
    MOMENTUM_QUERY_SCHEMA,
)
from ...ratelimit import EndpointClass, RateLimiter
from ...services import MomentumService, RequestContext, build_pipeline
from ..dependencies import (
    build_context,
    get_momentum_service,
    get_rate_limiter,
    run_pipeline,
)
from ..models import ERROR_RESPONSES, ErrorResponse, MomentumResponse

logger = get_logger(__name__)

router = APIRouter()

MOMENTUM_RESPONSES = {
    **ERROR_RESPONSES,
    404: {"model": ErrorResponse, "description": "Unknown ticker"},
}


def _momentum_handler(momentum: MomentumService):
    async def _handle(ctx: RequestContext):
        params = ctx.validated
        logger.info(
            "Momentum requested",
            ticker=params["ticker"],
            include_name=params.get("includeName"),
            refresh=params.get("refresh"),
            request_id=ctx.request_id,
        )
        return await momentum.get_momentum(
            params["ticker"],
            include_name=bool(params.get("includeName")),
            refresh=bool(params.get("refresh")),
        )

    return _handle


@router.get(
    "/{ticker}",
    response_model=MomentumResponse,
    responses=MOMENTUM_RESPONSES,
    summary="Get Momentum",
    description="Get per-horizon returns and the composite momentum score for a ticker",
)
async def get_momentum(
    ticker: str,
    request: Request,
    momentum: MomentumService = Depends(get_momentum_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Get momentum for a ticker.

    - **ticker**: Instrument symbol (e.g., SPY, QQQ)
    - **includeName**: Include the instrument display name
    - **refresh**: Recompute instead of serving a cached score
    """
    pipeline = build_pipeline(
        limiter,
        _momentum_handler(momentum),
        params=MOMENTUM_PARAMS_SCHEMA,
        query=MOMENTUM_QUERY_SCHEMA,
    )
    ctx = await build_context(request, EndpointClass.READ, params={"ticker": ticker})
    return await run_pipeline(request, pipeline, ctx)


@router.post(
    "/{ticker}",
    response_model=MomentumResponse,
    responses=MOMENTUM_RESPONSES,
    summary="Compute Momentum",
    description="Same as GET; a ticker in the JSON body overrides the path",
)
async def post_momentum(
    ticker: str,
    request: Request,
    momentum: MomentumService = Depends(get_momentum_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    pipeline = build_pipeline(
        limiter,
        _momentum_handler(momentum),
        params=MOMENTUM_PARAMS_SCHEMA,
        query=MOMENTUM_QUERY_SCHEMA,
        body=MOMENTUM_BODY_SCHEMA,
    )
    ctx = await build_context(
        request, EndpointClass.COMPUTE, params={"ticker": ticker}, with_body=True
    )
    return await run_pipeline(request, pipeline, ctx)


@router.post(
    "",
    response_model=MomentumResponse,
    responses=MOMENTUM_RESPONSES,
    summary="Compute Momentum (body)",
    description="Compute momentum for the ticker given in the JSON body",
)
async def post_momentum_body(
    request: Request,
    momentum: MomentumService = Depends(get_momentum_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    pipeline = build_pipeline(
        limiter,
        _momentum_handler(momentum),
        query=MOMENTUM_QUERY_SCHEMA,
        body=MOMENTUM_BODY_SCHEMA,
        required=("ticker",),
    )
    ctx = await build_context(request, EndpointClass.COMPUTE, with_body=True)
    return await run_pipeline(request, pipeline, ctx)
