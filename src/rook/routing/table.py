"""Table normalizer: nested declarations to a flat route list.

Walks the declaration forest depth first. Each node extends the
inherited context with its own path fragment, replaces the inherited
middleware if it names one, and overlays its argument resolvers on the
inherited ones. Every ``RouteDeclaration`` emits one ``NormalizedRoute``;
its children are nested under the route's full path.

The flat list is checked before anything is compiled: two routes with
the same method and the same matching shape are rejected, even when
their variable names differ, since the second could never be reached.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from rook._internal.types import MiddlewareRef, Resolver
from rook.errors import DuplicateRouteError, MalformedDeclarationError
from rook.routing.declarations import (
    ContextDeclaration,
    Declaration,
    HandlerDescriptor,
    RouteDeclaration,
)
from rook.routing.route import Method, PathSegment, RoutePattern, join_segments


@dataclass(frozen=True, slots=True)
class NormalizedRoute:
    """One flat route: full pattern plus everything it inherited."""

    pattern: RoutePattern
    handler: HandlerDescriptor
    middleware: MiddlewareRef | None
    arg_resolvers: Mapping[str, Resolver]
    source: str


def normalize(
    declarations: Declaration | Iterable[Declaration],
    *,
    default_middleware: MiddlewareRef | None = None,
) -> list[NormalizedRoute]:
    """Flatten a declaration forest into routes, in declaration order.

    Raises ``MalformedDeclarationError`` for nodes of an unsupported
    shape and ``DuplicateRouteError`` for colliding routes.
    """
    if isinstance(declarations, (RouteDeclaration, ContextDeclaration)):
        declarations = (declarations,)
    elif not isinstance(declarations, Iterable) or isinstance(declarations, (str, bytes)):
        msg = f"Expected a declaration or an iterable of declarations, not {declarations!r}"
        raise MalformedDeclarationError(msg)

    routes: list[NormalizedRoute] = []
    for declaration in declarations:
        _walk(
            declaration,
            context=(),
            middleware=default_middleware,
            resolvers={},
            routes=routes,
        )
    _check_unique(routes)
    return routes


def _walk(
    node: object,
    *,
    context: tuple[PathSegment, ...],
    middleware: MiddlewareRef | None,
    resolvers: Mapping[str, Resolver],
    routes: list[NormalizedRoute],
) -> None:
    if isinstance(node, ContextDeclaration):
        inner = join_segments(context, node.path)
        effective_mw = node.middleware if node.middleware is not None else middleware
        effective_resolvers = {**resolvers, **node.arg_resolvers}
        for entry in node.entries:
            _walk(
                entry,
                context=inner,
                middleware=effective_mw,
                resolvers=effective_resolvers,
                routes=routes,
            )
        return

    if not isinstance(node, RouteDeclaration):
        where = "/" + "/".join(str(s) for s in context)
        msg = f"Unsupported declaration {node!r} under {where!r}"
        raise MalformedDeclarationError(msg)

    if not isinstance(node.method, Method):
        msg = f"Route method {node.method!r} is not a Method; use endpoint() to build routes"
        raise MalformedDeclarationError(msg)
    if not isinstance(node.handler, HandlerDescriptor):
        msg = f"Route handler {node.handler!r} is not a HandlerDescriptor"
        raise MalformedDeclarationError(msg)

    full = join_segments(context, node.path)
    pattern = RoutePattern(node.method, full)
    source = f"{pattern} -> {node.handler.name}"
    _check_variables(pattern, source)

    effective_mw = node.middleware if node.middleware is not None else middleware
    effective_resolvers = {**resolvers, **node.arg_resolvers}
    routes.append(
        NormalizedRoute(
            pattern=pattern,
            handler=node.handler,
            middleware=effective_mw,
            arg_resolvers={**effective_resolvers, **node.handler.arg_resolvers},
            source=source,
        )
    )
    for child in node.children:
        _walk(
            child,
            context=full,
            middleware=effective_mw,
            resolvers=effective_resolvers,
            routes=routes,
        )


def _check_variables(pattern: RoutePattern, source: str) -> None:
    seen: set[str] = set()
    for name in pattern.variables:
        if name in seen:
            msg = f"Path variable {name!r} appears more than once in {source}"
            raise MalformedDeclarationError(msg)
        seen.add(name)


def _check_unique(routes: list[NormalizedRoute]) -> None:
    # Shape, not segments: /a/{x} and /a/{y} match the same paths
    seen: dict[tuple[Method, tuple[str | None, ...]], NormalizedRoute] = {}
    for route in routes:
        key = (route.pattern.method, route.pattern.shape)
        previous = seen.get(key)
        if previous is not None:
            raise DuplicateRouteError(str(route.pattern), previous.source, route.source)
        seen[key] = route
