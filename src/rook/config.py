"""Dispatch configuration.

DispatchConfig is a frozen dataclass: immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from rook._internal.types import MiddlewareRef, Resolver
from rook.middleware.schema import Validator, validate_mapping
from rook.routing.resolvers import DEFAULT_RESOLVERS


@dataclass(frozen=True, slots=True)
class DispatchConfig:
    """Options for ``compile_dispatch_table``. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = DispatchConfig(asynchronous=False, default_middleware=audit)
    """

    # Pipeline: True builds coroutine handlers, False plain callables
    asynchronous: bool = True

    # Process-wide argument resolvers, shadowed by declaration resolvers
    arg_resolvers: Mapping[str, Resolver] = field(default_factory=lambda: DEFAULT_RESOLVERS)

    # Middleware for routes whose declarations name none
    default_middleware: MiddlewareRef | None = None

    # Validates routes with a schema; None makes a schema a configuration error
    validator: Validator | None = validate_mapping
