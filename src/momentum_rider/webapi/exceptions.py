"""Error rendering and exception handlers for the Momentum Rider API."""

from typing import Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config.logging import get_logger
from ..core.errors import GENERIC_INTERNAL_MESSAGE, ErrorKind, OperationalError

logger = get_logger(__name__)

_KIND_BY_STATUS = {
    kind.http_status: kind for kind in ErrorKind if kind is not ErrorKind.CACHE_TIER
}


def _include_detail(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings is not None and settings.is_development())


def operational_error_response(
    request: Request,
    exc: OperationalError,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Render an operational error as ``{error, message, fieldErrors?}``."""
    request_id = getattr(request.state, "request_id", None)
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        "Operational error",
        kind=exc.kind.name,
        code=exc.code,
        message=exc.message,
        status_code=exc.http_status,
        request_id=request_id,
        path=request.url.path,
        method=request.method,
    )

    response_headers = dict(headers or {})
    if exc.retry_after_seconds is not None:
        response_headers["Retry-After"] = str(exc.retry_after_seconds)

    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_body(include_detail=_include_detail(request)),
        headers=response_headers or None,
    )


async def operational_exception_handler(
    request: Request, exc: OperationalError
) -> JSONResponse:
    """Handle operational errors raised outside the request pipeline."""
    return operational_error_response(request, exc)


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle framework-level request validation failures."""
    field_errors = {}
    for error in exc.errors():
        field_path = ".".join(
            str(loc) for loc in error["loc"] if loc not in ("path", "query", "body")
        )
        field_errors[field_path or "_"] = error["msg"]

    return operational_error_response(
        request,
        OperationalError.validation("Request validation failed", field_errors=field_errors),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle routing errors (unknown path, wrong method) in the same body shape."""
    request_id = getattr(request.state, "request_id", None)
    kind = _KIND_BY_STATUS.get(exc.status_code)
    code = kind.default_code if kind is not None else f"ERR_HTTP_{exc.status_code}"

    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        "Unexpected exception occurred",
        exception_type=type(exc).__name__,
        message=str(exc),
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    message = str(exc) if _include_detail(request) else GENERIC_INTERNAL_MESSAGE
    return JSONResponse(
        status_code=500,
        content={"error": ErrorKind.INTERNAL.default_code, "message": message},
    )


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
