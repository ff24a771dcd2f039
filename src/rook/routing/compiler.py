"""Dispatch compiler: declarations to a single request dispatcher.

Compilation runs once at startup:

1. normalize the declaration forest and sort it (``routing.table``,
   ``routing.ordering``);
2. compose each distinct middleware reference once;
3. build one wrapped handler per distinct (handler, middleware,
   resolvers, route variables) combination: argument binding with the
   calling-convention adaptation innermost, then the resolver-merging
   layer, then schema validation for routes with a schema (unless the
   chain already validates), then the middleware;
4. load the routes into a ``Router`` and freeze it.

The ``Dispatcher`` it returns holds only immutable state and can be
shared across threads and tasks without locking.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from dataclasses import replace
from types import MappingProxyType
from typing import Any

from rook._internal.invoke import invoke, invoke_blocking, invoke_in_thread
from rook._internal.types import Handler, Middleware, MiddlewareRef, Resolver
from rook.config import DispatchConfig
from rook.errors import ConfigurationError
from rook.http.request import Request
from rook.middleware.protocol import compose
from rook.middleware.resolvers import with_arg_resolvers
from rook.middleware.schema import Validator, schema_validation, validates_schema
from rook.routing.declarations import Declaration, HandlerDescriptor
from rook.routing.ordering import sort_routes
from rook.routing.resolvers import ArgumentPlan, plan_arguments
from rook.routing.route import CompiledRoute, RouteMatch
from rook.routing.router import Router, split_path
from rook.routing.table import NormalizedRoute, normalize

logger = logging.getLogger("rook.dispatcher")


class Dispatcher:
    """A compiled dispatch table.

    ``match(method, path)`` finds the route without running it.
    Calling the dispatcher with a ``Request`` runs the matched handler;
    in the async pipeline the call returns an awaitable. Either way an
    unmatched request yields ``None``.

    Usage::

        dispatcher = compile_dispatch_table(declarations)
        response = await dispatcher(Request.build("GET", "/hotels/42"))
    """

    __slots__ = ("_resolvers", "_router", "asynchronous", "routes")

    def __init__(
        self,
        routes: tuple[CompiledRoute, ...],
        router: Router,
        resolvers: MappingProxyType[str, Resolver],
        asynchronous: bool,
    ) -> None:
        self.routes = routes
        self.asynchronous = asynchronous
        self._router = router
        self._resolvers = resolvers

    def match(self, method: str, path: str) -> RouteMatch | None:
        """Match a method and raw path; ``None`` when no route matches."""
        return self._router.match(method, split_path(path))

    def __call__(self, request: Request) -> Any:
        if self.asynchronous:
            return self._dispatch_async(request)
        return self._dispatch_sync(request)

    def describe(self) -> list[str]:
        """One ``METHOD /path -> handler`` line per route, in table order."""
        return [str(route) for route in self.routes]

    def _prepare(self, request: Request) -> tuple[CompiledRoute, Request] | None:
        match = self.match(request.method, request.path)
        if match is None:
            return None
        prepared = replace(
            request,
            route_params=match.path_params,
            route=match.route,
            arg_resolvers=self._resolvers,
        )
        return match.route, prepared

    async def _dispatch_async(self, request: Request) -> Any:
        prepared = self._prepare(request)
        if prepared is None:
            return None
        route, request = prepared
        return await invoke(route.handler, request)

    def _dispatch_sync(self, request: Request) -> Any:
        prepared = self._prepare(request)
        if prepared is None:
            return None
        route, request = prepared
        return route.handler(request)


def compile_dispatch_table(
    declarations: Declaration | Iterable[Declaration],
    config: DispatchConfig | None = None,
) -> Dispatcher:
    """Compile a declaration forest into a ``Dispatcher``.

    Raises ``ConfigurationError`` (or a subclass) for duplicate routes,
    malformed declarations, and handler parameters nothing can bind.
    """
    config = config or DispatchConfig()
    table = sort_routes(normalize(declarations, default_middleware=config.default_middleware))
    resolvers = MappingProxyType(dict(config.arg_resolvers))

    middleware_cache: dict[Hashable, Middleware] = {}
    handler_cache: dict[Hashable, Handler] = {}
    router = Router()
    compiled: list[CompiledRoute] = []

    for entry in table:
        mw_key = _identity_key(entry.middleware)
        middleware = middleware_cache.get(mw_key)
        if middleware is None:
            middleware = compose(entry.middleware)
            middleware_cache[mw_key] = middleware

        handler_key = (
            entry.handler.func,
            mw_key,
            tuple(sorted((name, id(fn)) for name, fn in entry.arg_resolvers.items())),
            entry.pattern.variables,
        )
        handler = handler_cache.get(handler_key)
        if handler is None:
            handler = _wrap(entry, middleware, resolvers, config)
            handler_cache[handler_key] = handler

        route = CompiledRoute(
            pattern=entry.pattern,
            handler=handler,
            descriptor=entry.handler,
            middleware=entry.middleware,
        )
        router.add(route)
        compiled.append(route)

    router.compile()
    logger.debug(
        "Compiled %d routes (%d handlers, %d middleware chains, %s pipeline)",
        len(compiled),
        len(handler_cache),
        len(middleware_cache),
        "async" if config.asynchronous else "sync",
    )
    return Dispatcher(tuple(compiled), router, resolvers, config.asynchronous)


def _identity_key(middleware: MiddlewareRef | None) -> Hashable:
    # Equal references share one composed chain; unhashable ones fall back to identity
    try:
        hash(middleware)
    except TypeError:
        return ("id", id(middleware))
    return middleware


def _wrap(
    entry: NormalizedRoute,
    middleware: Middleware,
    defaults: MappingProxyType[str, Resolver],
    config: DispatchConfig,
) -> Handler:
    names = set(defaults) | set(entry.arg_resolvers)
    plan = plan_arguments(entry.handler, entry.pattern.variables, names, entry.source)
    handler = _bind(plan, entry.handler, config.asynchronous)
    if entry.arg_resolvers:
        handler = with_arg_resolvers(entry.arg_resolvers)(handler)
    if entry.handler.schema is not None and not validates_schema(entry.middleware):
        handler = schema_validation(_require_validator(config.validator, entry))(handler)
    return middleware(handler)


def _require_validator(validator: Validator | None, entry: NormalizedRoute) -> Validator:
    if validator is None:
        msg = (
            f"Route {entry.source} declares a schema but no validator is configured; "
            "set DispatchConfig.validator or add schema_validation() to its middleware"
        )
        raise ConfigurationError(msg)
    return validator


def _bind(plan: ArgumentPlan, descriptor: HandlerDescriptor, asynchronous: bool) -> Handler:
    """The innermost handler: bind arguments, then call in the right convention."""
    func = descriptor.func

    if asynchronous and descriptor.sync:

        async def bound_in_thread(request: Request) -> Any:
            return await invoke_in_thread(func, **plan.bind(request))

        return bound_in_thread

    if asynchronous:

        async def bound_async(request: Request) -> Any:
            return await invoke(func, **plan.bind(request))

        return bound_async

    if descriptor.sync is False:

        def bound_blocking(request: Request) -> Any:
            return invoke_blocking(func, **plan.bind(request))

        return bound_blocking

    def bound(request: Request) -> Any:
        return func(**plan.bind(request))

    return bound
