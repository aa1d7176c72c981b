"""Operational error vocabulary shared by validation, admission, cache and compute."""

from enum import Enum
from typing import Any, Dict, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(Enum):
    """Error kinds with their HTTP status and default stable code."""

    VALIDATION = (400, "ERR_VALIDATION")
    UNAUTHORIZED = (401, "ERR_UNAUTHORIZED")
    FORBIDDEN = (403, "ERR_FORBIDDEN")
    NOT_FOUND = (404, "ERR_NOT_FOUND")
    RATE_LIMIT_EXCEEDED = (429, "ERR_RATE_LIMIT")
    CACHE_TIER = (500, "ERR_CACHE_TIER")
    INTERNAL = (500, "ERR_INTERNAL")

    def __init__(self, http_status: int, default_code: str):
        self.http_status = http_status
        self.default_code = default_code


GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred"


class OperationalError(Exception):
    """
    A single operational failure, tagged by kind.

    Instances are values: pipeline stages return them instead of raising,
    while collaborators may still raise one to abort a computation. Both
    paths end up rendered by the same boundary handler.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        code: Optional[str] = None,
        field_errors: Optional[Dict[str, str]] = None,
        retry_after_seconds: Optional[int] = None,
    ):
        super().__init__(message)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "code", code or kind.default_code)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "field_errors", dict(field_errors or {}))
        object.__setattr__(self, "retry_after_seconds", retry_after_seconds)

    def __setattr__(self, name: str, value: Any) -> None:
        # Interpreter-managed attributes (traceback, notes) stay writable
        if name.startswith("__"):
            super().__setattr__(name, value)
            return
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        return f"OperationalError(kind={self.kind.name}, code={self.code!r}, message={self.message!r})"

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def to_body(self, include_detail: bool = False) -> Dict[str, Any]:
        """
        Render the wire error body ``{error, message, fieldErrors?}``.

        Internal messages are replaced with a generic one unless
        ``include_detail`` is set (development only).
        """
        message = self.message
        if self.kind in (ErrorKind.INTERNAL, ErrorKind.CACHE_TIER) and not include_detail:
            message = GENERIC_INTERNAL_MESSAGE

        body: Dict[str, Any] = {"error": self.code, "message": message}
        if self.field_errors:
            body["fieldErrors"] = dict(self.field_errors)
        if self.retry_after_seconds is not None:
            body["retryAfterSeconds"] = self.retry_after_seconds
        return body

    # Constructors for each kind

    @classmethod
    def validation(
        cls, message: str, field_errors: Optional[Dict[str, str]] = None
    ) -> "OperationalError":
        return cls(ErrorKind.VALIDATION, message, field_errors=field_errors)

    @classmethod
    def not_found(cls, resource: str, identifier: str) -> "OperationalError":
        return cls(
            ErrorKind.NOT_FOUND,
            f"{resource} with identifier '{identifier}' not found",
        )

    @classmethod
    def rate_limited(
        cls, endpoint_class: str, retry_after_seconds: int
    ) -> "OperationalError":
        return cls(
            ErrorKind.RATE_LIMIT_EXCEEDED,
            f"Rate limit exceeded for {endpoint_class} requests. "
            f"Retry after {retry_after_seconds} seconds.",
            retry_after_seconds=retry_after_seconds,
        )

    @classmethod
    def cache_tier(cls, tier: str, operation: str, reason: str) -> "OperationalError":
        return cls(
            ErrorKind.CACHE_TIER,
            f"Cache tier '{tier}' failed during {operation}: {reason}",
        )

    @classmethod
    def internal(cls, message: str, code: Optional[str] = None) -> "OperationalError":
        return cls(ErrorKind.INTERNAL, message, code=code)


# A stage result: either the continuation value or a terminal error.
Result = Union[T, OperationalError]


def is_error(result: Any) -> bool:
    """Check whether a stage result is a terminal error."""
    return isinstance(result, OperationalError)
