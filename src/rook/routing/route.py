"""Path pattern model: methods, segments, and route patterns.

Patterns are structural. A path string like ``/hotels/{id}`` is parsed
once into ``Literal`` and ``Variable`` segments; comparisons and matching
never look at the raw string again.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from rook._internal.types import Handler, MiddlewareRef
from rook.errors import MalformedDeclarationError

if TYPE_CHECKING:
    from rook.routing.declarations import HandlerDescriptor


class Method(StrEnum):
    """HTTP methods a route can be declared for.

    ``ANY`` is the wildcard: it matches every method that has no
    specific route at the same path.
    """

    ANY = "*"
    DELETE = "DELETE"
    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    POST = "POST"
    PUT = "PUT"

    @classmethod
    def coerce(cls, value: str | Method) -> Method:
        """Return the member for *value*, case-insensitively.

        Raises ``MalformedDeclarationError`` for unknown methods.
        """
        if isinstance(value, Method):
            return value
        name = str(value).upper()
        if name in ("ALL", "ANY"):
            return cls.ANY
        try:
            return cls(name)
        except ValueError:
            msg = f"Unsupported HTTP method {value!r}"
            raise MalformedDeclarationError(msg) from None


@dataclass(frozen=True, slots=True)
class Literal:
    """A path segment that must match exactly."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Variable:
    """A path segment that matches any single segment and binds it to *name*."""

    name: str

    def __str__(self) -> str:
        return "{" + self.name + "}"


type PathSegment = Literal | Variable


@dataclass(frozen=True, slots=True)
class RoutePattern:
    """A method plus a full sequence of path segments.

    Two patterns are the same route only when the method and every
    segment (kind and value) are identical.
    """

    method: Method
    segments: tuple[PathSegment, ...]

    @property
    def path(self) -> str:
        """The pattern rendered as a path, e.g. ``/hotels/{id}``."""
        return "/" + "/".join(str(s) for s in self.segments)

    @property
    def variables(self) -> tuple[str, ...]:
        """Variable names in path order."""
        return tuple(s.name for s in self.segments if isinstance(s, Variable))

    @property
    def shape(self) -> tuple[str | None, ...]:
        """Segments with variable names erased.

        Patterns with the same shape match exactly the same paths.
        """
        return tuple(s.value if isinstance(s, Literal) else None for s in self.segments)

    def __str__(self) -> str:
        return f"{self.method.value} {self.path}"


_PLACEHOLDER_RE = re.compile(r"^\{([^{}/]+)\}$")


def var(name: str) -> Variable:
    """Build a variable segment, e.g. ``["hotels", var("id")]``."""
    return Variable(name)


def parse_path(raw: str | Sequence[str | PathSegment] | None) -> tuple[PathSegment, ...]:
    """Parse a declared path into segments.

    Examples::

        "/hotels"                    -> (Literal("hotels"),)
        "hotels"                     -> (Literal("hotels"),)
        "/hotels/{id}"               -> (Literal("hotels"), Variable("id"))
        ["hotels", "{id}", "rooms"]  -> (Literal("hotels"), Variable("id"), Literal("rooms"))
        ["hotels", var("id")]        -> (Literal("hotels"), Variable("id"))
        "/" or None                  -> ()
    """
    if raw is None:
        return ()
    tokens: Iterable[str | PathSegment]
    if isinstance(raw, str):
        tokens = raw.split("/")
    else:
        tokens = raw

    segments: list[PathSegment] = []
    for token in tokens:
        if isinstance(token, (Literal, Variable)):
            segments.append(token)
            continue
        if not isinstance(token, str):
            msg = f"Path token {token!r} in {raw!r} is neither a string nor a segment"
            raise MalformedDeclarationError(msg)
        for part in token.split("/"):
            if not part:
                continue
            segments.append(_parse_token(part, raw))
    return tuple(segments)


def _parse_token(part: str, raw: object) -> PathSegment:
    if "{" not in part and "}" not in part:
        return Literal(part)
    match = _PLACEHOLDER_RE.match(part)
    if match is None:
        msg = f"Malformed path variable {part!r} in {raw!r}; expected '{{name}}'"
        raise MalformedDeclarationError(msg)
    name = match.group(1).strip()
    if not name:
        msg = f"Empty path variable name in {raw!r}"
        raise MalformedDeclarationError(msg)
    return Variable(name)


def join_segments(*parts: Iterable[PathSegment]) -> tuple[PathSegment, ...]:
    """Concatenate segment sequences, root to leaf."""
    result: list[PathSegment] = []
    for part in parts:
        result.extend(part)
    return tuple(result)


@dataclass(frozen=True, slots=True)
class CompiledRoute:
    """A route in the compiled table.

    ``handler`` is the fully wrapped callable (argument binding, resolver
    layer, middleware). It takes the request and returns the response.
    """

    pattern: RoutePattern
    handler: Handler
    descriptor: HandlerDescriptor
    middleware: MiddlewareRef | None = None

    @property
    def method(self) -> Method:
        return self.pattern.method

    @property
    def path(self) -> str:
        return self.pattern.path

    @property
    def variables(self) -> tuple[str, ...]:
        return self.pattern.variables

    @property
    def schema(self) -> Any:
        """Schema attached to the handler, read by validation middleware."""
        return self.descriptor.schema

    def __str__(self) -> str:
        return f"{self.pattern} -> {self.descriptor.name}"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: CompiledRoute
    path_params: dict[str, str]
