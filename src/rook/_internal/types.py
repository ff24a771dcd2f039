"""Shared type aliases used across rook modules."""

from collections.abc import Callable, Sequence
from typing import Any, TypeAlias

# Handler after argument binding: receives the request, returns a response
# (or an awaitable of one in the async pipeline)
Handler: TypeAlias = Callable[..., Any]

# Middleware: wraps the next handler, returns the wrapped handler
Middleware: TypeAlias = Callable[[Handler], Handler]

# A middleware reference in a declaration: one middleware or an ordered chain
MiddlewareRef: TypeAlias = Middleware | Sequence[Middleware]

# Argument resolver: (parameter name, request) -> value or UNRESOLVED
Resolver: TypeAlias = Callable[[str, Any], Any]
