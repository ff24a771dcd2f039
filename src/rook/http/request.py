"""Immutable request record.

The dispatcher reads ``method`` and ``path``. Everything else is read by
argument resolvers and middleware. Dispatch never mutates a request; it
derives a new one with ``dataclasses.replace``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

from rook._internal.types import Resolver

if TYPE_CHECKING:
    from rook.routing.route import CompiledRoute


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``query``, ``form`` and ``body`` hold already-decoded parameters;
    decoding wire formats is the server adapter's job. The last four
    fields are filled in by the dispatcher for the matched route.
    """

    method: str
    path: str
    query: Mapping[str, Any] = field(default_factory=dict)
    form: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    route_params: Mapping[str, str] = field(default_factory=dict)
    route: CompiledRoute | None = field(default=None, repr=False)
    arg_resolvers: Mapping[str, Resolver] = field(default_factory=dict, repr=False)
    validated_params: Mapping[str, Any] | None = None

    @classmethod
    def build(
        cls,
        method: str,
        uri: str,
        *,
        query: Mapping[str, Any] | None = None,
        form: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Request:
        """Build a request from a method and a URI.

        A query string in *uri* is parsed (last value wins) and merged
        under any explicit *query* mapping. Header names are lowercased.
        """
        path, _, query_string = uri.partition("?")
        parsed = dict(parse_qsl(query_string, keep_blank_values=True))
        return cls(
            method=method.upper(),
            path=path or "/",
            query={**parsed, **(query or {})},
            form=dict(form or {}),
            body=dict(body or {}),
            headers={k.lower(): v for k, v in (headers or {}).items()},
        )

    @property
    def params(self) -> Mapping[str, Any]:
        """All request parameters: query, then form, then body.

        Later sources win on key collisions. After schema validation
        this is the validated mapping instead.
        """
        if self.validated_params is not None:
            return self.validated_params
        return {**self.query, **self.form, **self.body}

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def schema(self) -> Any:
        """The schema declared by the matched handler, if any."""
        if self.route is None:
            return None
        return self.route.schema
