"""Route declarations and handler descriptors.

A declaration forest is plain data: ``RouteDeclaration`` nodes that carry
a handler, and ``ContextDeclaration`` nodes that only contribute a path
prefix, middleware, and argument resolvers to their entries. The table
normalizer flattens it; nothing here touches requests.

Handlers are ordinary functions. Route metadata is attached with the
``@route`` decorator; modules can supply defaults for every handler they
define through a ``__rook_metadata__`` mapping::

    # hotels.py
    __rook_metadata__ = {"arg_resolvers": static_resolvers(db=DB)}

    def index(db): ...                      # GET    (by convention)

    def show(id, db): ...                   # GET    {id}

    @route("POST", "{id}/archive", sync=True)
    def archive(id, db): ...

    # app.py
    table = [namespace("hotels", hotels,
                       namespace("{hotel_id}/rooms", rooms))]
"""

from __future__ import annotations

import importlib
import inspect
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType, ModuleType
from typing import Any

from rook._internal.types import MiddlewareRef, Resolver
from rook.errors import ConfigurationError, MalformedDeclarationError
from rook.routing.route import Method, PathSegment, parse_path

# Attribute that the decorators attach to handler functions
_META_ATTR = "__rook__"

# Module attribute holding defaults for every handler in the module
MODULE_METADATA_ATTR = "__rook_metadata__"

# Naming convention used by namespace() for functions without @route
CONVENTIONS: Mapping[str, tuple[Method, tuple[PathSegment, ...]]] = MappingProxyType(
    {
        "index": (Method.GET, parse_path("")),
        "new": (Method.GET, parse_path("new")),
        "create": (Method.POST, parse_path("")),
        "show": (Method.GET, parse_path("{id}")),
        "edit": (Method.GET, parse_path("{id}/edit")),
        "update": (Method.PUT, parse_path("{id}")),
        "patch": (Method.PATCH, parse_path("{id}")),
        "destroy": (Method.DELETE, parse_path("{id}")),
    }
)

_BINDABLE_KINDS = (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)


@dataclass(frozen=True, slots=True)
class HandlerDescriptor:
    """A handler function plus the metadata the compiler needs.

    ``parameters`` lists the keyword-bindable parameters in declaration
    order. ``route`` is the explicit ``(method, path)`` from ``@route``,
    or ``None`` when the function carries no route metadata. ``sync`` is
    the declared calling convention: True for blocking handlers, False
    for coroutine functions, None when undeclared.
    """

    name: str
    func: Callable[..., Any]
    parameters: tuple[inspect.Parameter, ...]
    route: tuple[Method, tuple[PathSegment, ...]] | None = None
    sync: bool | None = None
    schema: Any = None
    arg_resolvers: Mapping[str, Resolver] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)


def route(
    method: str | Method,
    path: str | Sequence[Any] | None = None,
    *,
    sync: bool | None = None,
    schema: Any = None,
    arg_resolvers: Mapping[str, Resolver] | None = None,
    **metadata: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Attach an explicit route to a handler.

    Args:
        method: HTTP method, or ``"*"`` for any method.
        path: Path relative to the enclosing context, e.g. ``"{id}/edit"``.
        sync: True if the handler blocks and returns its result directly,
            False if it is a coroutine function. Left undeclared, the
            handler is called in whatever pipeline it is mounted in.
        schema: Opaque schema object read by validation middleware.
        arg_resolvers: Resolvers for this handler only, keyed by parameter name.
        **metadata: Free-form metadata kept on the descriptor.
    """
    resolved = (Method.coerce(method), parse_path(path))

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        meta = _attach(func, sync=sync, schema=schema, arg_resolvers=arg_resolvers, **metadata)
        meta["route"] = resolved
        return func

    return decorator


def handler_options(
    *,
    sync: bool | None = None,
    schema: Any = None,
    arg_resolvers: Mapping[str, Resolver] | None = None,
    **metadata: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Attach handler metadata without declaring a route.

    Useful for convention-named functions (``show``, ``create``, ...)
    that still need ``sync``, a schema, or their own resolvers.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        _attach(func, sync=sync, schema=schema, arg_resolvers=arg_resolvers, **metadata)
        return func

    return decorator


def _attach(
    func: Callable[..., Any],
    *,
    sync: bool | None,
    schema: Any,
    arg_resolvers: Mapping[str, Resolver] | None,
    **metadata: Any,
) -> dict[str, Any]:
    meta = dict(getattr(func, _META_ATTR, {}))
    if sync is not None:
        meta["sync"] = sync
    if schema is not None:
        meta["schema"] = schema
    if arg_resolvers:
        meta["arg_resolvers"] = {**meta.get("arg_resolvers", {}), **arg_resolvers}
    meta.update(metadata)
    setattr(func, _META_ATTR, meta)
    return meta


def describe_handler(handler: Callable[..., Any] | HandlerDescriptor) -> HandlerDescriptor:
    """Build the descriptor for *handler*.

    Function metadata is merged over the defining module's
    ``__rook_metadata__``; argument resolvers merge key by key.
    """
    if isinstance(handler, HandlerDescriptor):
        return handler
    if not callable(handler):
        msg = f"Handler {handler!r} is not callable"
        raise MalformedDeclarationError(msg)

    module_name = getattr(handler, "__module__", None)
    module = sys.modules.get(module_name) if module_name else None
    module_meta: Mapping[str, Any] = getattr(module, MODULE_METADATA_ATTR, None) or {}
    func_meta: Mapping[str, Any] = getattr(handler, _META_ATTR, None) or {}

    meta = {**module_meta, **func_meta}
    resolvers = {**module_meta.get("arg_resolvers", {}), **func_meta.get("arg_resolvers", {})}
    declared_route = meta.pop("route", None)
    sync = meta.pop("sync", None)
    schema = meta.pop("schema", None)
    meta.pop("arg_resolvers", None)

    qualname = getattr(handler, "__qualname__", None) or repr(handler)
    name = f"{module_name}.{qualname}" if module_name else qualname

    return HandlerDescriptor(
        name=name,
        func=handler,
        parameters=_bindable_parameters(handler, name),
        route=declared_route,
        sync=sync,
        schema=schema,
        arg_resolvers=resolvers,
        metadata=meta,
    )


def _bindable_parameters(func: Callable[..., Any], name: str) -> tuple[inspect.Parameter, ...]:
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError) as exc:
        msg = f"Cannot read the signature of handler {name}: {exc}"
        raise MalformedDeclarationError(msg) from exc

    params: list[inspect.Parameter] = []
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            msg = (
                f"Handler {name} has positional-only parameter {param.name!r}; "
                "handler arguments are bound by name"
            )
            raise MalformedDeclarationError(msg)
        if param.kind in _BINDABLE_KINDS:
            params.append(param)
    return tuple(params)


# -- Declarations --


@dataclass(frozen=True, slots=True)
class RouteDeclaration:
    """A route, optionally with nested declarations under its full path."""

    method: Method
    path: tuple[PathSegment, ...]
    handler: HandlerDescriptor
    middleware: MiddlewareRef | None = None
    arg_resolvers: Mapping[str, Resolver] = field(default_factory=dict)
    children: tuple[Declaration, ...] = ()


@dataclass(frozen=True, slots=True)
class ContextDeclaration:
    """A path prefix with default middleware and resolvers for its entries."""

    path: tuple[PathSegment, ...]
    entries: tuple[Declaration, ...]
    middleware: MiddlewareRef | None = None
    arg_resolvers: Mapping[str, Resolver] = field(default_factory=dict)


type Declaration = RouteDeclaration | ContextDeclaration


def endpoint(
    method: str | Method,
    path: str | Sequence[Any] | None,
    handler: Callable[..., Any] | HandlerDescriptor,
    *children: Declaration,
    middleware: MiddlewareRef | None = None,
    arg_resolvers: Mapping[str, Resolver] | None = None,
) -> RouteDeclaration:
    """Declare a single route.

    The declared *method* and *path* take precedence over any ``@route``
    metadata on the handler.
    """
    return RouteDeclaration(
        method=Method.coerce(method),
        path=parse_path(path),
        handler=describe_handler(handler),
        middleware=_freeze_middleware(middleware),
        arg_resolvers=dict(arg_resolvers or {}),
        children=tuple(children),
    )


def context(
    path: str | Sequence[Any] | None,
    *entries: Declaration,
    middleware: MiddlewareRef | None = None,
    arg_resolvers: Mapping[str, Resolver] | None = None,
) -> ContextDeclaration:
    """Group declarations under a shared path prefix."""
    return ContextDeclaration(
        path=parse_path(path),
        entries=tuple(entries),
        middleware=_freeze_middleware(middleware),
        arg_resolvers=dict(arg_resolvers or {}),
    )


def namespace(
    path: str | Sequence[Any] | None,
    module: ModuleType | str,
    *children: Declaration,
    middleware: MiddlewareRef | None = None,
    arg_resolvers: Mapping[str, Resolver] | None = None,
) -> ContextDeclaration:
    """Declare every routable function of *module* under *path*.

    A public function defined in *module* is routable when it carries
    ``@route`` metadata or its name is in ``CONVENTIONS``. Other
    functions are skipped. *children* are nested under *path* as well.
    """
    if isinstance(module, str):
        try:
            module = importlib.import_module(module)
        except ImportError as exc:
            msg = f"Cannot import namespace module {module!r} for context {path!r}"
            raise ConfigurationError(msg) from exc

    entries: list[Declaration] = []
    for name, value in sorted(vars(module).items()):
        if name.startswith("_") or not inspect.isfunction(value):
            continue
        if value.__module__ != module.__name__:
            continue
        if "route" not in getattr(value, _META_ATTR, {}) and name not in CONVENTIONS:
            continue
        descriptor = describe_handler(value)
        method, fragment = descriptor.route or CONVENTIONS[name]
        entries.append(RouteDeclaration(method=method, path=fragment, handler=descriptor))

    return ContextDeclaration(
        path=parse_path(path),
        entries=(*entries, *children),
        middleware=_freeze_middleware(middleware),
        arg_resolvers=dict(arg_resolvers or {}),
    )


def _freeze_middleware(middleware: MiddlewareRef | None) -> MiddlewareRef | None:
    # Chains are compared and hashed when the compiler deduplicates them
    if middleware is None or callable(middleware):
        return middleware
    if isinstance(middleware, (list, tuple)):
        return tuple(middleware)
    msg = f"Middleware must be a callable or a sequence of callables, not {middleware!r}"
    raise MalformedDeclarationError(msg)
