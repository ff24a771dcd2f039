"""ASGI adapter: translates ASGI scope/messages to rook types.

The only component that touches raw ASGI directly. Reads the request
body, builds an immutable ``Request``, runs it through a compiled
``Dispatcher``, and sends the result back through ASGI ``send()``.

No-match is an ordinary outcome of dispatch; this adapter is where it
becomes a 404.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, quote

import anyio.to_thread

from rook._internal.asgi import Receive, Scope, Send
from rook._internal.invoke import invoke
from rook.errors import HTTPError
from rook.http.request import Request
from rook.http.response import Response
from rook.routing.compiler import Dispatcher

logger = logging.getLogger("rook.server")


class RookApp:
    """ASGI 3 application around a compiled dispatcher.

    Usage::

        dispatcher = compile_dispatch_table(declarations)
        app = RookApp(dispatcher)
        # uvicorn module:app, pounce module:app, ...
    """

    __slots__ = ("debug", "dispatcher")

    def __init__(self, dispatcher: Dispatcher, *, debug: bool = False) -> None:
        self.dispatcher = dispatcher
        self.debug = debug

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        try:
            request = await read_request(scope, receive)
            result = await self._dispatch(request)
            if result is None:
                response = Response(body="Not Found", status=404)
            else:
                response = to_response(result)
        except HTTPError as exc:
            logger.debug("%d %s %s: %s", exc.status, scope["method"], scope["path"], exc.detail)
            response = _error_response(exc)
        except Exception as exc:
            logger.exception("500 %s %s", scope["method"], scope["path"])
            body = f"Internal Server Error\n\n{exc!r}" if self.debug else "Internal Server Error"
            response = Response(body=body, status=500)

        await send_response(response, send)

    async def _dispatch(self, request: Request) -> Any:
        if self.dispatcher.asynchronous:
            return await invoke(self.dispatcher, request)
        # Sync pipeline: keep blocking handlers off the event loop
        return await anyio.to_thread.run_sync(self.dispatcher, request)


async def _handle_lifespan(receive: Receive, send: Send) -> None:
    # Nothing to set up: the dispatch table is compiled before the app exists
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return


async def read_request(scope: Scope, receive: Receive) -> Request:
    """Build a ``Request`` from an ASGI HTTP scope, reading the whole body.

    ``application/x-www-form-urlencoded`` bodies fill ``form``; JSON
    object bodies fill ``body``. Raises ``HTTPError(400)`` for a JSON
    body that does not parse to an object.
    """
    headers = {
        name.decode("latin-1").lower(): value.decode("latin-1")
        for name, value in scope.get("headers", [])
    }
    raw = await _read_body(receive)

    form: dict[str, str] = {}
    body: dict[str, Any] = {}
    content_type = headers.get("content-type", "").split(";")[0].strip().lower()
    if raw and content_type == "application/x-www-form-urlencoded":
        form = dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))
    elif raw and content_type == "application/json":
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            raise HTTPError(400, "Malformed JSON body") from exc
        if not isinstance(parsed, dict):
            raise HTTPError(400, "JSON body must be an object")
        body = parsed

    query_string = scope.get("query_string", b"").decode("latin-1")
    return Request(
        method=scope["method"].upper(),
        path=_raw_path(scope),
        query=dict(parse_qsl(query_string, keep_blank_values=True)),
        form=form,
        body=body,
        headers=headers,
    )


def _raw_path(scope: Scope) -> str:
    """The still-encoded request path; the router decodes each segment itself.

    ``scope["path"]`` is already percent-decoded, so an encoded ``/``
    would split a segment. Servers that omit ``raw_path`` get the
    decoded path re-quoted.
    """
    raw = scope.get("raw_path")
    if raw:
        return raw.decode("latin-1").partition("?")[0] or "/"
    return quote(scope["path"], encoding="utf-8") or "/"


async def _read_body(receive: Receive) -> bytes:
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def to_response(result: Any) -> Response:
    """Convert a handler's return value into a ``Response``.

    Supported: ``Response`` (as is), ``str`` and ``bytes`` (200 bodies),
    mappings and lists (JSON).
    """
    if isinstance(result, Response):
        return result
    if isinstance(result, str):
        return Response(body=result)
    if isinstance(result, bytes):
        return Response(body=result, content_type="application/octet-stream")
    if isinstance(result, (Mapping, list)):
        return Response.json(dict(result) if isinstance(result, Mapping) else result)
    msg = f"Cannot convert handler result of type {type(result).__name__} to a response"
    raise TypeError(msg)


def _error_response(exc: HTTPError) -> Response:
    resp = Response(body=exc.detail or f"Error {exc.status}", status=exc.status)
    for name, value in exc.headers:
        resp = resp.with_header(name, value)
    return resp


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(response: Response, send: Send) -> None:
    """Translate a Response into ASGI send() calls."""
    raw_headers: list[tuple[bytes, bytes]] = [
        (b"content-type", response.content_type.encode("latin-1")),
    ]
    for name, value in response.headers:
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

    body = response.body_bytes if _body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )
