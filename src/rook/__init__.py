"""Rook: a dispatch-table compiler for request handlers.

Routes are declared as plain data, nested in contexts that pass down a
path prefix, middleware, and argument resolvers. The whole table is
compiled once into a single dispatcher.

Basic usage::

    from rook import Request, compile_dispatch_table, context, endpoint, namespace

    def show(id, params):
        return {"id": id, "q": params.get("q")}

    dispatcher = compile_dispatch_table([
        context("api",
                endpoint("GET", "hotels/{id}", show),
                namespace("rooms", "myapp.rooms")),
    ])

    response = await dispatcher(Request.build("GET", "/api/hotels/42"))

Serving it over ASGI::

    from rook import RookApp
    app = RookApp(dispatcher)
"""

__version__ = "0.1.0-dev"
__all__ = [
    "UNRESOLVED",
    "ArgumentResolutionError",
    "ConfigurationError",
    "DispatchConfig",
    "Dispatcher",
    "DuplicateRouteError",
    "HTTPError",
    "MalformedDeclarationError",
    "Method",
    "NotFound",
    "Request",
    "Response",
    "RookApp",
    "RookError",
    "UnresolvableParameterError",
    "ValidationFailed",
    "compile_dispatch_table",
    "context",
    "endpoint",
    "handler_options",
    "namespace",
    "route",
    "static_resolvers",
    "var",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import rook`` fast while providing a clean top-level API.
    """
    if name in ("Dispatcher", "compile_dispatch_table"):
        from rook.routing import compiler as _compiler

        return getattr(_compiler, name)

    if name == "DispatchConfig":
        from rook.config import DispatchConfig

        return DispatchConfig

    if name in ("context", "endpoint", "handler_options", "namespace", "route"):
        from rook.routing import declarations as _decl

        return getattr(_decl, name)

    if name in ("Method", "var"):
        from rook.routing import route as _route

        return getattr(_route, name)

    if name in ("UNRESOLVED", "static_resolvers"):
        from rook.routing import resolvers as _resolvers

        return getattr(_resolvers, name)

    if name == "Request":
        from rook.http.request import Request

        return Request

    if name == "Response":
        from rook.http.response import Response

        return Response

    if name == "RookApp":
        from rook.server.asgi import RookApp

        return RookApp

    if name in (
        "ArgumentResolutionError",
        "ConfigurationError",
        "DuplicateRouteError",
        "HTTPError",
        "MalformedDeclarationError",
        "NotFound",
        "RookError",
        "UnresolvableParameterError",
        "ValidationFailed",
    ):
        from rook import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
