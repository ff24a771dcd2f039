"""Handler argument resolution.

Every handler parameter is bound by name, from one of two places:

1. a path variable of the matched route (the decoded segment string);
2. an argument resolver looked up by parameter name in
   ``request.arg_resolvers``, the process-wide registry overlaid with
   the declaration's and the handler's own resolvers.

The plan for each route is fixed at compile time. A parameter that
can be bound from neither place, and has no default value, is a
configuration error then, not a surprise on the first request.

Resolution priority for each handler parameter:

1. Path variables
2. Resolvers (declaration and handler resolvers shadow the defaults)
3. The parameter's default value, when the resolver returns ``UNRESOLVED``
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from rook._internal.types import Resolver
from rook.errors import ArgumentResolutionError, UnresolvableParameterError

if TYPE_CHECKING:
    from rook.http.request import Request
    from rook.routing.declarations import HandlerDescriptor


class _Unresolved:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED: Final = _Unresolved()
"""Returned by a resolver that cannot supply a value for this request."""


_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(key: str) -> str:
    """Rewrite a camelCase or kebab-case key as snake_case.

    ``"hotelId"`` -> ``"hotel_id"``, ``"check-in"`` -> ``"check_in"``.
    """
    return _CAMEL_BOUNDARY_RE.sub("_", key).replace("-", "_").lower()


# -- Built-in resolvers --


def resolve_request(name: str, request: Request) -> Any:
    return request


def resolve_params(name: str, request: Request) -> Any:
    """Query, form, and body parameters merged, later sources winning."""
    return request.params


def resolve_native_params(name: str, request: Request) -> Any:
    """Like ``params``, with keys rewritten to snake_case."""
    return {snake_case(key): value for key, value in request.params.items()}


def resolve_headers(name: str, request: Request) -> Any:
    return request.headers


def resolve_route_params(name: str, request: Request) -> Any:
    return request.route_params


DEFAULT_RESOLVERS: Mapping[str, Resolver] = MappingProxyType(
    {
        "request": resolve_request,
        "params": resolve_params,
        "native_params": resolve_native_params,
        "headers": resolve_headers,
        "route_params": resolve_route_params,
    }
)


def static_resolvers(**values: Any) -> dict[str, Resolver]:
    """Resolvers that always supply the given values.

    Handy for injecting services::

        context("hotels", ..., arg_resolvers=static_resolvers(db=database))
    """

    def make(value: Any) -> Resolver:
        return lambda name, request: value

    return {name: make(value) for name, value in values.items()}


# -- Compile-time planning --


@dataclass(frozen=True, slots=True)
class ArgumentPlan:
    """How to bind the arguments of one handler on one route."""

    handler_name: str
    from_route: tuple[str, ...]
    from_resolvers: tuple[tuple[str, Any], ...]

    def bind(self, request: Request) -> dict[str, Any]:
        """Build keyword arguments for the handler.

        Either every required argument is bound or an exception is
        raised; the handler is never called with a partial binding.
        """
        path_params = request.route_params
        kwargs: dict[str, Any] = {name: path_params[name] for name in self.from_route}
        registry = request.arg_resolvers
        for name, default in self.from_resolvers:
            resolver = registry.get(name)
            value = UNRESOLVED if resolver is None else resolver(name, request)
            if value is UNRESOLVED:
                if default is inspect.Parameter.empty:
                    raise ArgumentResolutionError(name, self.handler_name)
                continue
            kwargs[name] = value
        return kwargs


def plan_arguments(
    descriptor: HandlerDescriptor,
    variables: Collection[str],
    resolver_names: Collection[str],
    source: str,
) -> ArgumentPlan:
    """Classify the handler's parameters for a route.

    Raises ``UnresolvableParameterError`` for a parameter that is not a
    route variable, has no resolver in *resolver_names*, and no default.
    """
    from_route: list[str] = []
    from_resolvers: list[tuple[str, Any]] = []
    for param in descriptor.parameters:
        if param.name in variables:
            from_route.append(param.name)
        elif param.name in resolver_names or param.default is not inspect.Parameter.empty:
            from_resolvers.append((param.name, param.default))
        else:
            raise UnresolvableParameterError(param.name, source)
    return ArgumentPlan(
        handler_name=descriptor.name,
        from_route=tuple(from_route),
        from_resolvers=tuple(from_resolvers),
    )
