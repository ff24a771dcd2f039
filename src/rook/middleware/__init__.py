"""Middleware: functions from the next handler to a wrapped handler.

Built-in middleware:
    schema_validation -- Validate params against the route's schema
    with_arg_resolvers -- Overlay argument resolvers on the request
"""

from rook.middleware.protocol import Around, Next, around, compose, identity
from rook.middleware.resolvers import with_arg_resolvers
from rook.middleware.schema import Validator, schema_validation, validate_mapping, validates_schema

__all__ = [
    "Around",
    "Next",
    "Validator",
    "around",
    "compose",
    "identity",
    "schema_validation",
    "validate_mapping",
    "validates_schema",
    "with_arg_resolvers",
]
