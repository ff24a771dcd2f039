"""Rook exception hierarchy.

Shared across the table normalizer, compiler, middleware, and the ASGI
adapter so every module raises and catches the same types.
"""

from dataclasses import dataclass


class RookError(Exception):
    """Base for all rook-specific errors."""


class ConfigurationError(RookError):
    """Raised when the dispatch table is invalid.

    Always raised while compiling, never while dispatching a request.
    """


class MalformedDeclarationError(ConfigurationError):
    """A declaration has an unsupported shape or an invalid value."""


class DuplicateRouteError(ConfigurationError):
    """Two declarations resolve to the same method and path pattern."""

    def __init__(self, pattern: str, first: str, second: str) -> None:
        self.pattern = pattern
        self.first = first
        self.second = second
        super().__init__(
            f"Route {pattern} is declared more than once: {first!r} and {second!r}"
        )


class UnresolvableParameterError(ConfigurationError):
    """A handler parameter has no route variable, resolver, or default."""

    def __init__(self, parameter: str, source: str) -> None:
        self.parameter = parameter
        self.source = source
        super().__init__(
            f"Parameter {parameter!r} of {source} matches no route variable "
            "and no argument resolver is registered for it"
        )


class ArgumentResolutionError(RookError):
    """A resolver could not supply a value for a required parameter."""

    def __init__(self, parameter: str, handler: str) -> None:
        self.parameter = parameter
        self.handler = handler
        super().__init__(f"Could not resolve argument {parameter!r} for {handler}")


@dataclass(frozen=True, slots=True)
class HTTPError(RookError):
    """An error that maps directly to an HTTP status code.

    Raised by middleware or handlers. The ASGI adapter catches these
    and turns them into responses; the dispatcher lets them propagate.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: no route matched the request."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class ValidationFailed(HTTPError):  # noqa: N818
    """400: request parameters were rejected by schema validation."""

    def __init__(self, detail: str = "Invalid request parameters") -> None:
        super().__init__(status=400, detail=detail)
