"""Invoke helpers: call sync or async handlers uniformly.

Handlers declare whether they are synchronous (``sync=True``) or
asynchronous. The compiler picks one of these helpers per route so the
calling convention is fixed at compile time, not sniffed per request.

Usage::

    from rook._internal.invoke import invoke

    result = await invoke(handler, *args, **kwargs)
"""

import inspect
from functools import partial
from typing import Any

import anyio
import anyio.to_thread


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's a coroutine."""
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def invoke_in_thread(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Run a blocking handler in a worker thread.

    Keeps synchronous handlers off the event loop when they are mounted
    in the async pipeline.
    """
    return await anyio.to_thread.run_sync(partial(handler, *args, **kwargs))


def invoke_blocking(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Drive an async handler to completion from synchronous code.

    Used when a handler declared async is mounted in the sync pipeline.
    Blocks the calling thread until the result is available.
    """
    return anyio.run(partial(invoke, handler, *args, **kwargs))
