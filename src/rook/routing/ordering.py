"""Deterministic ordering of route patterns.

The order decides which of two overlapping routes is tried first and
how the route table is displayed. Segment by segment, left to right:

- a literal sorts before a variable at the same position;
- literals compare by value, variables by binding name;
- a pattern that is a strict prefix of another sorts first;
- identical segment sequences fall back to the method (``*`` first).

The order is expressed as a sort key, so it is total and transitive by
construction. ``compare_routes`` gives the same order as a three-way
comparison for callers that want one.
"""

from collections.abc import Iterable
from typing import Protocol

from rook.routing.route import Literal, PathSegment, RoutePattern

type SegmentKey = tuple[int, str]
type PatternKey = tuple[tuple[SegmentKey, ...], str]


class _HasPattern(Protocol):
    @property
    def pattern(self) -> RoutePattern: ...


def segment_key(segment: PathSegment) -> SegmentKey:
    if isinstance(segment, Literal):
        return (0, segment.value)
    return (1, segment.name)


def pattern_key(pattern: RoutePattern) -> PatternKey:
    """Sort key for a pattern: segment keys, then the method."""
    return (tuple(segment_key(s) for s in pattern.segments), pattern.method.value)


def compare_segments(a: Iterable[PathSegment], b: Iterable[PathSegment]) -> int:
    """Three-way comparison of two segment sequences."""
    ka = tuple(segment_key(s) for s in a)
    kb = tuple(segment_key(s) for s in b)
    return (ka > kb) - (ka < kb)


def compare_routes(a: RoutePattern, b: RoutePattern) -> int:
    """Three-way comparison of two patterns, method as the tie-break."""
    ka = pattern_key(a)
    kb = pattern_key(b)
    return (ka > kb) - (ka < kb)


def sort_routes[R: _HasPattern](routes: Iterable[R]) -> list[R]:
    """Return *routes* sorted by their ``pattern``."""
    return sorted(routes, key=lambda r: pattern_key(r.pattern))
