"""Request pipeline: validate, admit, then cache-or-compute."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from ..config.logging import get_logger
from ..core.errors import OperationalError, Result, is_error
from ..core.validation import Schema, validate
from ..ratelimit import AdmissionDecision, EndpointClass, RateLimiter

logger = get_logger(__name__)


@dataclass
class RequestContext:
    """Everything one request carries through the pipeline."""

    client_key: str
    endpoint_class: EndpointClass
    params: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Optional[Any] = None
    request_id: Optional[str] = None
    validated: Dict[str, Any] = field(default_factory=dict)
    decision: Optional[AdmissionDecision] = None
    result: Any = None


Stage = Callable[[RequestContext], Awaitable[Result[RequestContext]]]
Handler = Callable[[RequestContext], Awaitable[Any]]


def validation_stage(
    params: Optional[Schema] = None,
    query: Optional[Schema] = None,
    body: Optional[Schema] = None,
    required: Sequence[str] = (),
) -> Stage:
    """
    Validate path parameters, query and body, in that order.

    Validated fields are merged into ``ctx.validated`` with later parts
    overriding earlier ones, so a body ticker overrides the path ticker.
    Body fields left unset do not override. Fields in ``required`` must be
    present after merging.
    """
    parts = [
        (schema, attr)
        for schema, attr in ((params, "params"), (query, "query"), (body, "body"))
        if schema is not None
    ]

    async def _validate(ctx: RequestContext) -> Result[RequestContext]:
        merged: Dict[str, Any] = {}
        for schema, attr in parts:
            result = validate(schema, getattr(ctx, attr))
            if is_error(result):
                return result
            if attr == "body":
                result = {k: v for k, v in result.items() if v is not None}
            merged.update(result)

        missing = {
            name: f"{name} is required"
            for name in required
            if merged.get(name) is None
        }
        if missing:
            return OperationalError.validation(
                "Request validation failed: " + ", ".join(missing.values()),
                field_errors=missing,
            )
        ctx.validated = merged
        return ctx

    return _validate


def admission_stage(limiter: RateLimiter) -> Stage:
    """Consume one request from the client's quotas or stop with a 429."""

    async def _admit(ctx: RequestContext) -> Result[RequestContext]:
        decision = limiter.admit(ctx.client_key, ctx.endpoint_class)
        ctx.decision = decision
        if not decision.allowed:
            return OperationalError.rate_limited(
                ctx.endpoint_class.value, decision.retry_after_seconds
            )
        return ctx

    return _admit


def handler_stage(handler: Handler) -> Stage:
    """Run the endpoint handler; a raised operational error ends the request."""

    async def _handle(ctx: RequestContext) -> Result[RequestContext]:
        try:
            ctx.result = await handler(ctx)
        except OperationalError as e:
            return e
        return ctx

    return _handle


class RequestPipeline:
    """An ordered list of stages; the first error stops the chain."""

    def __init__(self, stages: Sequence[Stage]):
        self.stages: List[Stage] = list(stages)

    async def run(self, ctx: RequestContext) -> Result[Any]:
        current: Result[RequestContext] = ctx
        for stage in self.stages:
            current = await stage(current)
            if is_error(current):
                logger.debug(
                    "Request stopped in pipeline",
                    stage=getattr(stage, "__name__", repr(stage)),
                    code=current.code,
                    request_id=ctx.request_id,
                )
                return current
        return current.result


def build_pipeline(
    limiter: RateLimiter,
    handler: Handler,
    params: Optional[Schema] = None,
    query: Optional[Schema] = None,
    body: Optional[Schema] = None,
    required: Sequence[str] = (),
) -> RequestPipeline:
    return RequestPipeline(
        [
            validation_stage(params=params, query=query, body=body, required=required),
            admission_stage(limiter),
            handler_stage(handler),
        ]
    )
