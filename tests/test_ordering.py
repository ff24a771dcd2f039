"""Tests for rook.routing.ordering: the total order over route patterns."""

import itertools
from dataclasses import dataclass

from rook.routing.ordering import compare_routes, compare_segments, pattern_key, sort_routes
from rook.routing.route import Method, RoutePattern, parse_path


def _p(method: str, path: str) -> RoutePattern:
    return RoutePattern(Method.coerce(method), parse_path(path))


@dataclass(frozen=True)
class _Entry:
    pattern: RoutePattern


class TestCompareSegments:
    def test_literal_before_variable(self) -> None:
        assert compare_segments(parse_path("hotels/new"), parse_path("hotels/{id}")) < 0
        assert compare_segments(parse_path("hotels/{id}"), parse_path("hotels/new")) > 0

    def test_literals_by_value(self) -> None:
        assert compare_segments(parse_path("a"), parse_path("b")) < 0

    def test_variables_by_name(self) -> None:
        assert compare_segments(parse_path("{a}"), parse_path("{b}")) < 0

    def test_prefix_first(self) -> None:
        assert compare_segments(parse_path("hotels"), parse_path("hotels/{id}")) < 0

    def test_equal(self) -> None:
        assert compare_segments(parse_path("hotels/{id}"), parse_path("hotels/{id}")) == 0


class TestCompareRoutes:
    def test_method_breaks_ties(self) -> None:
        assert compare_routes(_p("GET", "hotels"), _p("POST", "hotels")) < 0

    def test_wildcard_method_first(self) -> None:
        assert compare_routes(_p("*", "hotels"), _p("DELETE", "hotels")) < 0

    def test_path_before_method(self) -> None:
        assert compare_routes(_p("PUT", "a"), _p("GET", "b")) < 0

    def test_antisymmetric(self) -> None:
        a, b = _p("GET", "hotels/{id}"), _p("GET", "hotels/new")
        assert compare_routes(a, b) == -compare_routes(b, a)


class TestSortRoutes:
    PATTERNS = [
        _p("GET", "hotels/{id}"),
        _p("GET", "hotels"),
        _p("*", "hotels"),
        _p("GET", "hotels/new"),
        _p("GET", "hotels/{id}/rooms"),
        _p("POST", "hotels"),
        _p("GET", "/"),
    ]

    def test_expected_order(self) -> None:
        ordered = [str(e.pattern) for e in sort_routes(_Entry(p) for p in self.PATTERNS)]
        assert ordered == [
            "GET /",
            "* /hotels",
            "GET /hotels",
            "POST /hotels",
            "GET /hotels/new",
            "GET /hotels/{id}",
            "GET /hotels/{id}/rooms",
        ]

    def test_independent_of_input_order(self) -> None:
        expected = sort_routes(_Entry(p) for p in self.PATTERNS)
        for perm in itertools.islice(itertools.permutations(self.PATTERNS), 200):
            assert sort_routes(_Entry(p) for p in perm) == expected

    def test_transitive(self) -> None:
        for a, b, c in itertools.permutations(self.PATTERNS, 3):
            if compare_routes(a, b) < 0 and compare_routes(b, c) < 0:
                assert compare_routes(a, c) < 0

    def test_key_matches_comparison(self) -> None:
        for a, b in itertools.permutations(self.PATTERNS, 2):
            assert (pattern_key(a) < pattern_key(b)) == (compare_routes(a, b) < 0)
