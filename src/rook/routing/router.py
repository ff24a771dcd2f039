"""Compiled router with trie-based path matching.

Routes are grouped by segment count first, so a pattern never matches a
path of a different length. Within a group, each trie level holds the
literal children of that position plus at most one variable child; the
variable names live on the routes, not on the trie, so ``/hotels/{id}``
and ``/hotels/{hotel_id}/rooms`` share the variable edge.

Matching explores literal children before the variable child and
backtracks. At a terminal node a route for the exact method wins over
an ``ANY`` route for the same pattern. That is the one place the trie
departs from table order, where ``*`` sorts ahead of every method.
"""

from urllib.parse import unquote_plus

from rook.routing.route import CompiledRoute, Literal, Method, RouteMatch


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("children", "routes_by_method", "variable_child")

    def __init__(self) -> None:
        # Literal segment children: "hotels" -> node
        self.children: dict[str, _TrieNode] = {}
        # Single variable child; names are per route
        self.variable_child: _TrieNode | None = None
        # Routes ending at this node, keyed by method (Method.ANY included)
        self.routes_by_method: dict[Method, CompiledRoute] = {}


def split_path(path: str) -> list[str]:
    """Split a request path into URL-decoded segments.

    The leading slash and any trailing slashes are dropped; inner empty
    segments are kept, so ``//a`` has two segments. Decoding assumes
    UTF-8 and turns ``+`` into a space.
    """
    parts = path.split("/")
    if parts and parts[0] == "":
        parts = parts[1:]
    while parts and parts[-1] == "":
        parts.pop()
    return [unquote_plus(p, encoding="utf-8", errors="replace") for p in parts]


class Router:
    """Compiled router with trie-based path matching.

    Usage::

        router = Router()
        router.add(compiled_route)
        router.compile()
        match = router.match("GET", ["hotels", "42"])
    """

    __slots__ = ("_compiled", "_roots")

    def __init__(self) -> None:
        self._roots: dict[int, _TrieNode] = {}
        self._compiled = False

    def add(self, route: CompiledRoute) -> None:
        """Add a route to the router. Must be called before compile().

        Duplicate detection happens in the table normalizer; a second
        route for the same method and shape here is a programming error.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        segments = route.pattern.segments
        node = self._roots.setdefault(len(segments), _TrieNode())
        for seg in segments:
            if isinstance(seg, Literal):
                node = node.children.setdefault(seg.value, _TrieNode())
            else:
                if node.variable_child is None:
                    node.variable_child = _TrieNode()
                node = node.variable_child

        if route.method in node.routes_by_method:
            msg = f"Route {route} collides with {node.routes_by_method[route.method]}"
            raise RuntimeError(msg)
        node.routes_by_method[route.method] = route

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, parts: list[str]) -> RouteMatch | None:
        """Match a method and split path against the routes.

        Returns ``None`` when nothing matches; that is an ordinary
        outcome, not an error.
        """
        root = self._roots.get(len(parts))
        if root is None:
            return None
        route = self._match_node(root, method.upper(), parts, 0)
        if route is None:
            return None
        values = iter(
            part
            for part, seg in zip(parts, route.pattern.segments, strict=True)
            if not isinstance(seg, Literal)
        )
        return RouteMatch(
            route=route,
            path_params={name: next(values) for name in route.variables},
        )

    def _match_node(
        self,
        node: _TrieNode,
        method: str,
        parts: list[str],
        index: int,
    ) -> CompiledRoute | None:
        """Recursively match path parts against the trie."""
        if index == len(parts):
            routes = node.routes_by_method
            return routes.get(method) or routes.get(Method.ANY)

        part = parts[index]

        # 1. Literal child first (exact match)
        child = node.children.get(part)
        if child is not None:
            result = self._match_node(child, method, parts, index + 1)
            if result is not None:
                return result

        # 2. Then the variable child
        if node.variable_child is not None:
            return self._match_node(node.variable_child, method, parts, index + 1)

        return None
