"""Request helpers shared by the routers: service lookup and pipeline execution."""

import json
from typing import Any, Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from ..cache import CacheService
from ..core.errors import OperationalError, Result, is_error
from ..ratelimit import EndpointClass, RateLimiter, client_key_for
from ..services import MomentumService, RequestContext, RequestPipeline
from .exceptions import operational_error_response

USER_ID_HEADER = "x-user-id"


# Service dependencies
def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.limiter


def get_momentum_service(request: Request) -> MomentumService:
    return request.app.state.momentum


def client_key(request: Request) -> str:
    """Rate-limit identity: the user header when present, else the peer address."""
    remote_addr = request.client.host if request.client else None
    return client_key_for(request.headers.get(USER_ID_HEADER), remote_addr)


async def read_json_body(request: Request) -> Result[Optional[Any]]:
    """Parse the request body; an empty body is None."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return OperationalError.validation(
            "Request body must be valid JSON",
            field_errors={"_": "malformed JSON"},
        )


async def build_context(
    request: Request,
    endpoint_class: EndpointClass,
    params: Optional[Mapping[str, Any]] = None,
    with_body: bool = False,
) -> Result[RequestContext]:
    body = None
    if with_body:
        body = await read_json_body(request)
        if is_error(body):
            return body

    return RequestContext(
        client_key=client_key(request),
        endpoint_class=endpoint_class,
        params=dict(params or {}),
        query=dict(request.query_params),
        body=body,
        request_id=getattr(request.state, "request_id", None),
    )


async def run_pipeline(
    request: Request, pipeline: RequestPipeline, ctx: Result[RequestContext]
) -> JSONResponse:
    """Run a pipeline and render its value or error with admission headers."""
    if is_error(ctx):
        return operational_error_response(request, ctx)

    result = await pipeline.run(ctx)
    headers = ctx.decision.headers() if ctx.decision is not None else None
    if is_error(result):
        return operational_error_response(request, result, headers=headers)
    return JSONResponse(content=result, headers=headers)
