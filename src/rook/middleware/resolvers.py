"""Resolver-merging middleware.

Overlays extra argument resolvers on the request's registry for every
handler it wraps. The compiler places it innermost, just outside the
argument binding, for routes whose declarations carry resolvers; it can
also be used in a chain like any other middleware.
"""

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from rook._internal.types import Handler, Middleware, Resolver
from rook.http.request import Request


def with_arg_resolvers(resolvers: Mapping[str, Resolver]) -> Middleware:
    """Middleware that adds *resolvers*, shadowing same-named ones."""
    overlay = dict(resolvers)

    def middleware(handler: Handler) -> Handler:
        def wrapped(request: Request) -> Any:
            merged = {**request.arg_resolvers, **overlay}
            return handler(replace(request, arg_resolvers=merged))

        return wrapped

    return middleware
