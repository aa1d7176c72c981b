"""Declarative request schemas and a generic validator."""

from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Mapping, Optional, Tuple

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    StringConstraints,
    ValidationError,
    create_model,
)

from .errors import OperationalError, Result


def _normalize_ticker(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


# Normalization runs before the pattern and length checks
Ticker = Annotated[
    str,
    StringConstraints(pattern=r"^[A-Z0-9.\-]+$", min_length=1, max_length=10),
    BeforeValidator(_normalize_ticker),
]

TICKER_MESSAGES = {
    "string_pattern_mismatch": "Ticker must contain only letters, numbers, dots, and hyphens",
    "string_too_long": "Ticker must be at most 10 characters",
    "string_too_short": "Ticker is required",
    "missing": "Ticker is required",
}


@dataclass(frozen=True)
class FieldSpec:
    """One field of a schema: type, default and optionality."""

    name: str
    type: Any
    required: bool = False
    default: Any = None
    messages: Mapping[str, str] = field(default_factory=dict)


class Schema:
    """A named set of field specs; unknown fields are rejected."""

    def __init__(
        self,
        name: str,
        fields: List[FieldSpec],
        unknown_message: str = "unknown field",
    ):
        self.name = name
        self.fields = {spec.name: spec for spec in fields}
        self.unknown_message = unknown_message
        self._model = self._build_model()

    def _build_model(self) -> type:
        definitions: Dict[str, Tuple[Any, Any]] = {}
        for spec in self.fields.values():
            if spec.required:
                definitions[spec.name] = (spec.type, ...)
            else:
                definitions[spec.name] = (Optional[spec.type], spec.default)
        return create_model(
            self.name.title().replace(" ", "") + "Model",
            __config__=ConfigDict(extra="forbid"),
            **definitions,
        )

    def message_for(self, field_name: str, error_type: str, default: str) -> str:
        if error_type == "extra_forbidden":
            return self.unknown_message
        spec = self.fields.get(field_name)
        if spec is not None and error_type in spec.messages:
            return spec.messages[error_type]
        return default


def validate(schema: Schema, payload: Optional[Mapping[str, Any]]) -> Result[Dict[str, Any]]:
    """
    Validate a payload against a schema.

    Returns a new dict with declared defaults applied, or an
    ``OperationalError`` of kind VALIDATION listing every field error.
    The input payload is never modified.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        return OperationalError.validation(
            f"{schema.name} must be an object",
            field_errors={"_": "expected an object"},
        )

    try:
        model: BaseModel = schema._model.model_validate(dict(payload))
    except ValidationError as e:
        field_errors: Dict[str, str] = {}
        for error in e.errors():
            field_name = ".".join(str(loc) for loc in error["loc"]) or "_"
            top_level = str(error["loc"][0]) if error["loc"] else field_name
            field_errors.setdefault(
                field_name, schema.message_for(top_level, error["type"], error["msg"])
            )
        message = ", ".join(f"{name}: {msg}" for name, msg in field_errors.items())
        return OperationalError.validation(
            f"{schema.name} validation failed: {message}", field_errors=field_errors
        )

    return model.model_dump()


# Momentum request schemas

MOMENTUM_PARAMS_SCHEMA = Schema(
    "Path parameters",
    [FieldSpec("ticker", Ticker, required=True, messages=TICKER_MESSAGES)],
    unknown_message="Unknown parameter",
)

MOMENTUM_QUERY_SCHEMA = Schema(
    "Query parameters",
    [
        FieldSpec("includeName", bool, default=False),
        FieldSpec("refresh", bool, default=False),
    ],
    unknown_message="Unknown query parameter",
)

MOMENTUM_BODY_SCHEMA = Schema(
    "Request body",
    [FieldSpec("ticker", Ticker, messages=TICKER_MESSAGES)],
    unknown_message="Unknown field in request body",
)

# Cache administration schemas

CACHE_WARM_BODY_SCHEMA = Schema(
    "Request body",
    [FieldSpec("tickers", List[Ticker])],
    unknown_message="Unknown field in request body",
)

CACHE_INVALIDATE_BODY_SCHEMA = Schema(
    "Request body",
    [
        FieldSpec(
            "pattern",
            Annotated[str, StringConstraints(min_length=1, max_length=200)],
            required=True,
            messages={"missing": "pattern is required"},
        )
    ],
    unknown_message="Unknown field in request body",
)

CACHE_KEYS_QUERY_SCHEMA = Schema(
    "Query parameters",
    [FieldSpec("pattern", str, default="*")],
    unknown_message="Unknown query parameter",
)
