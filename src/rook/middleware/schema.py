"""Schema validation hook.

Handlers declare a schema with ``@route(..., schema=...)``; the schema
object is opaque to rook. ``schema_validation`` calls a pluggable
validator with the schema and the request parameters before the handler
runs, and hands the validated mapping to the handler as ``params``.

Routes without a schema pass through untouched. The compiler adds this
middleware with ``DispatchConfig.validator`` to every route that has a
schema and whose chain does not validate already.
"""

from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from rook._internal.types import Handler, Middleware, MiddlewareRef
from rook.errors import ValidationFailed
from rook.http.request import Request

# (schema, params) -> validated params; raises ValidationFailed to reject
type Validator = Callable[[Any, Mapping[str, Any]], Mapping[str, Any]]

# Marks middleware built by schema_validation()
_VALIDATES_ATTR = "__rook_validates_schema__"


def schema_validation(validator: Validator) -> Middleware:
    """Middleware that validates request parameters against the route schema."""

    def middleware(handler: Handler) -> Handler:
        def wrapped(request: Request) -> Any:
            schema = request.schema
            if schema is None:
                return handler(request)
            validated = validator(schema, request.params)
            return handler(replace(request, validated_params=validated))

        return wrapped

    setattr(middleware, _VALIDATES_ATTR, True)
    return middleware


def validates_schema(middleware: MiddlewareRef | None) -> bool:
    """Whether a middleware reference includes ``schema_validation``."""
    if middleware is None:
        return False
    chain = (middleware,) if callable(middleware) else tuple(middleware)
    return any(getattr(mw, _VALIDATES_ATTR, False) for mw in chain)


def validate_mapping(schema: Mapping[str, Callable[[Any], Any]], params: Mapping[str, Any]) -> Mapping[str, Any]:
    """A minimal validator: *schema* maps required keys to converters.

    Each converter (``int``, ``str``, a custom function) is applied to the
    parameter value. Keys not named by the schema pass through.
    """
    validated = dict(params)
    for key, convert in schema.items():
        if key not in params:
            raise ValidationFailed(f"Missing required parameter {key!r}")
        try:
            validated[key] = convert(params[key])
        except (TypeError, ValueError) as exc:
            raise ValidationFailed(f"Invalid value for {key!r}: {exc}") from exc
    return validated
