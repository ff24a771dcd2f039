"""Middleware protocol and composition.

A middleware is any callable that takes the next handler and returns a
wrapped handler::

    def timing(handler: Handler) -> Handler:
        async def wrapped(request: Request) -> Any:
            start = time.monotonic()
            response = await handler(request)
            log.info("%s took %.3fs", request.path, time.monotonic() - start)
            return response
        return wrapped

Declarations name either one middleware or an ordered chain of them.
Chains are folded right to left, so the first middleware in a chain is
the outermost one and sees the request first.

Middleware written as ``async def mw(request, next)`` can be used
through ``around()``.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from rook._internal.types import Handler, Middleware, MiddlewareRef
from rook.http.request import Request

# The next handler as seen by an around-style middleware
type Next = Callable[[Request], Awaitable[Any]]


class Around(Protocol):
    """Protocol for request/next style middleware.

    Accepts both functions and callable objects::

        async def require_json(request: Request, next: Next) -> Any:
            if request.content_type != "application/json":
                raise HTTPError(415)
            return await next(request)
    """

    async def __call__(self, request: Request, next: Next) -> Any: ...


def identity(handler: Handler) -> Handler:
    """The empty middleware chain."""
    return handler


def compose(middleware: MiddlewareRef | None) -> Middleware:
    """Fold a middleware reference into a single middleware."""
    if middleware is None:
        return identity
    if callable(middleware):
        return middleware
    chain = tuple(middleware)
    if not chain:
        return identity

    def composed(handler: Handler) -> Handler:
        for mw in reversed(chain):
            handler = mw(handler)
        return handler

    return composed


def around(fn: Around) -> Middleware:
    """Adapt a request/next middleware to the wrapping form.

    Only meaningful in the async pipeline, where handlers return
    awaitables.
    """

    def middleware(handler: Handler) -> Handler:
        async def wrapped(request: Request) -> Any:
            return await fn(request, handler)

        return wrapped

    return middleware
