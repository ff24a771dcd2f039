"""Tests for rook.routing.compiler: compiling and running dispatch tables."""

import threading

import pytest

import hotels_handlers
import rooms_handlers
from rook.config import DispatchConfig
from rook.errors import (
    ArgumentResolutionError,
    ConfigurationError,
    DuplicateRouteError,
    UnresolvableParameterError,
    ValidationFailed,
)
from rook.http.request import Request
from rook.middleware import schema_validation
from rook.routing.compiler import compile_dispatch_table
from rook.routing.declarations import context, endpoint, handler_options, namespace, route
from rook.routing.resolvers import UNRESOLVED, static_resolvers


def list_hotels():
    return "all hotels"


def show_hotel(id):
    return {"hotel": id}


def show_room(hotel_id, id):
    return {"hotel": hotel_id, "room": id}


def search(params):
    return params


def anything(request):
    return f"any {request.method}"


def _get(path: str, **kwargs) -> Request:
    return Request.build("GET", path, **kwargs)


class TestScenarios:
    @pytest.mark.anyio
    async def test_list_and_show(self) -> None:
        dispatcher = compile_dispatch_table(
            [endpoint("GET", "hotels", list_hotels), endpoint("GET", "hotels/{id}", show_hotel)]
        )
        assert await dispatcher(_get("/hotels/42")) == {"hotel": "42"}
        assert await dispatcher(_get("/hotels")) == "all hotels"

    @pytest.mark.anyio
    async def test_nested_context(self) -> None:
        dispatcher = compile_dispatch_table(
            context(["hotels", "{hotel_id}", "rooms"], endpoint("GET", "{id}", show_room))
        )
        assert [str(r.pattern) for r in dispatcher.routes] == ["GET /hotels/{hotel_id}/rooms/{id}"]
        assert await dispatcher(_get("/hotels/7/rooms/3")) == {"hotel": "7", "room": "3"}

    def test_duplicate_is_compile_error(self) -> None:
        with pytest.raises(DuplicateRouteError):
            compile_dispatch_table(
                [endpoint("GET", "hotels/{id}", show_hotel), endpoint("GET", "hotels/{id}", list_hotels)]
            )

    @pytest.mark.anyio
    async def test_params_without_declared_resolver(self) -> None:
        dispatcher = compile_dispatch_table(endpoint("POST", "search", search))
        request = Request.build(
            "POST",
            "/search?a=query&b=query&c=query",
            form={"b": "form", "c": "form"},
            body={"c": "body"},
        )
        assert await dispatcher(request) == {"a": "query", "b": "form", "c": "body"}

    @pytest.mark.anyio
    async def test_no_match_is_none(self) -> None:
        dispatcher = compile_dispatch_table(endpoint("GET", "hotels", list_hotels))
        assert await dispatcher(Request.build("DELETE", "/unknown")) is None
        assert dispatcher.match("DELETE", "/unknown") is None


class TestMatching:
    @pytest.mark.anyio
    async def test_literal_before_variable(self) -> None:
        def new_hotel():
            return "form"

        dispatcher = compile_dispatch_table(
            [endpoint("GET", "hotels/{id}", show_hotel), endpoint("GET", "hotels/new", new_hotel)]
        )
        assert await dispatcher(_get("/hotels/new")) == "form"
        assert await dispatcher(_get("/hotels/9")) == {"hotel": "9"}

    @pytest.mark.anyio
    async def test_any_method_fallback(self) -> None:
        dispatcher = compile_dispatch_table(
            [endpoint("*", "hotels/{id}", anything), endpoint("GET", "hotels/{id}", show_hotel)]
        )
        assert await dispatcher(_get("/hotels/1")) == {"hotel": "1"}
        assert await dispatcher(Request.build("DELETE", "/hotels/1")) == "any DELETE"

    @pytest.mark.anyio
    async def test_decoded_path_params(self) -> None:
        dispatcher = compile_dispatch_table(endpoint("GET", "cities/{id}", show_hotel))
        assert await dispatcher(_get("/cities/S%C3%A3o+Paulo")) == {"hotel": "São Paulo"}

    def test_match_exposes_route(self) -> None:
        dispatcher = compile_dispatch_table(endpoint("GET", "hotels/{id}", show_hotel))
        match = dispatcher.match("GET", "/hotels/5")
        assert match is not None
        assert match.route.descriptor.func is show_hotel
        assert match.path_params == {"id": "5"}

    @pytest.mark.anyio
    async def test_request_carries_route(self) -> None:
        def inspect_request(request):
            return (request.route.path, dict(request.route_params))

        dispatcher = compile_dispatch_table(endpoint("GET", "hotels/{id}", inspect_request))
        assert await dispatcher(_get("/hotels/3")) == ("/hotels/{id}", {"id": "3"})


class TestNamespaces:
    @pytest.mark.anyio
    async def test_resourceful_routes(self) -> None:
        dispatcher = compile_dispatch_table(
            namespace("hotels", hotels_handlers, namespace("{hotel_id}/rooms", rooms_handlers))
        )
        assert await dispatcher(_get("/hotels")) == ["Grand", "Plaza"]
        assert await dispatcher(_get("/hotels/1")) == {"id": "1", "name": "Grand"}
        assert await dispatcher(_get("/hotels/1/edit")) == "editing 1"
        assert await dispatcher(Request.build("DELETE", "/hotels/2")) == "deleted 2"
        assert await dispatcher(Request.build("POST", "/hotels/2/archive")) == "archived 2"
        assert await dispatcher(Request.build("POST", "/hotels", body={"name": "Ritz"})) == {
            "created": "Ritz"
        }
        assert await dispatcher(_get("/hotels/1/rooms")) == "rooms of hotel 1"
        assert await dispatcher(_get("/hotels/1/rooms/12")) == {"hotel": "1", "room": "12"}


class TestResolvers:
    @pytest.mark.anyio
    async def test_context_resolvers(self) -> None:
        def show(id, db):
            return db[id]

        dispatcher = compile_dispatch_table(
            context("hotels", endpoint("GET", "{id}", show), arg_resolvers=static_resolvers(db={"1": "Grand"}))
        )
        assert await dispatcher(_get("/hotels/1")) == "Grand"

    @pytest.mark.anyio
    async def test_inner_overrides_outer(self) -> None:
        def show(db):
            return db

        dispatcher = compile_dispatch_table(
            context(
                "",
                context("a", endpoint("GET", "", show), arg_resolvers=static_resolvers(db="inner")),
                endpoint("GET", "b", show),
                arg_resolvers=static_resolvers(db="outer"),
            )
        )
        assert await dispatcher(_get("/a")) == "inner"
        assert await dispatcher(_get("/b")) == "outer"

    @pytest.mark.anyio
    async def test_declared_resolver_shadows_default(self) -> None:
        dispatcher = compile_dispatch_table(
            endpoint("GET", "search", search, arg_resolvers=static_resolvers(params={"fixed": "1"}))
        )
        assert await dispatcher(_get("/search?q=x")) == {"fixed": "1"}

    @pytest.mark.anyio
    async def test_handler_resolvers_win(self) -> None:
        @route("GET", "x", arg_resolvers=static_resolvers(db="handler"))
        def show(db):
            return db

        dispatcher = compile_dispatch_table(
            context("", endpoint("GET", "x", show), arg_resolvers=static_resolvers(db="context"))
        )
        assert await dispatcher(_get("/x")) == "handler"

    @pytest.mark.anyio
    async def test_config_resolvers(self) -> None:
        def show(user):
            return user

        config = DispatchConfig(arg_resolvers=static_resolvers(user="alice"))
        dispatcher = compile_dispatch_table(endpoint("GET", "me", show), config)
        assert await dispatcher(_get("/me")) == "alice"

    def test_unresolvable_parameter(self) -> None:
        def show(id, database):
            return id

        with pytest.raises(UnresolvableParameterError, match="database"):
            compile_dispatch_table(endpoint("GET", "hotels/{id}", show))

    @pytest.mark.anyio
    async def test_resolution_failure_propagates(self) -> None:
        def show(user):
            return user

        dispatcher = compile_dispatch_table(
            endpoint("GET", "me", show, arg_resolvers={"user": lambda name, request: UNRESOLVED})
        )
        with pytest.raises(ArgumentResolutionError):
            await dispatcher(_get("/me"))

    @pytest.mark.anyio
    async def test_handler_exception_propagates(self) -> None:
        def broken():
            raise LookupError("no such hotel")

        dispatcher = compile_dispatch_table(endpoint("GET", "x", broken))
        with pytest.raises(LookupError, match="no such hotel"):
            await dispatcher(_get("/x"))


class TestMiddleware:
    @pytest.mark.anyio
    async def test_chain_order(self) -> None:
        calls: list[str] = []

        def tracing(tag):
            def middleware(handler):
                async def wrapped(request):
                    calls.append(f"{tag}>")
                    result = await handler(request)
                    calls.append(f"<{tag}")
                    return result

                return wrapped

            return middleware

        dispatcher = compile_dispatch_table(
            context("hotels", endpoint("GET", "", list_hotels), middleware=[tracing("a"), tracing("b")])
        )
        assert await dispatcher(_get("/hotels")) == "all hotels"
        assert calls == ["a>", "b>", "<b", "<a"]

    @pytest.mark.anyio
    async def test_default_middleware(self) -> None:
        def shout(handler):
            async def wrapped(request):
                return (await handler(request)).upper()

            return wrapped

        dispatcher = compile_dispatch_table(
            endpoint("GET", "hotels", list_hotels), DispatchConfig(default_middleware=shout)
        )
        assert await dispatcher(_get("/hotels")) == "ALL HOTELS"

    @pytest.mark.anyio
    async def test_middleware_wraps_resolver_layer(self) -> None:
        seen = []

        def spy(handler):
            async def wrapped(request):
                seen.append(request.route.path)
                return await handler(request)

            return wrapped

        def show(id, db):
            return db

        dispatcher = compile_dispatch_table(
            context("h", endpoint("GET", "{id}", show), middleware=spy, arg_resolvers=static_resolvers(db="d"))
        )
        assert await dispatcher(_get("/h/1")) == "d"
        assert seen == ["/h/{id}"]

    def test_shared_middleware_wraps_once(self) -> None:
        wrapped_count = 0

        def counting(handler):
            nonlocal wrapped_count
            wrapped_count += 1
            return handler

        def handle(id):
            return id

        dispatcher = compile_dispatch_table(
            context(
                "hotels",
                endpoint("GET", "{id}", handle),
                endpoint("PUT", "{id}", handle),
                endpoint("DELETE", "{id}", handle),
                middleware=counting,
            )
        )
        assert wrapped_count == 1
        handlers = {route.handler for route in dispatcher.routes}
        assert len(handlers) == 1

    def test_distinct_variables_get_distinct_handlers(self) -> None:
        def handle(request):
            return request

        dispatcher = compile_dispatch_table(
            [endpoint("GET", "a/{x}", handle), endpoint("GET", "b/{y}", handle)]
        )
        assert dispatcher.routes[0].handler is not dispatcher.routes[1].handler


class TestSchemas:
    ROOMS = namespace("hotels/{hotel_id}/rooms", rooms_handlers)

    @pytest.mark.anyio
    async def test_schema_validated_by_default(self) -> None:
        dispatcher = compile_dispatch_table(self.ROOMS)
        request = Request.build("POST", "/hotels/1/rooms", body={"beds": "2"})
        assert await dispatcher(request) == {"hotel": "1", "beds": 2}

    @pytest.mark.anyio
    async def test_missing_schema_key_rejected(self) -> None:
        dispatcher = compile_dispatch_table(self.ROOMS)
        with pytest.raises(ValidationFailed, match="beds"):
            await dispatcher(Request.build("POST", "/hotels/1/rooms", body={"name": "x"}))

    @pytest.mark.anyio
    async def test_configured_validator(self) -> None:
        def stamp(schema, params):
            return {**params, "checked": sorted(schema)}

        dispatcher = compile_dispatch_table(self.ROOMS, DispatchConfig(validator=stamp))
        request = Request.build("POST", "/hotels/1/rooms", body={"beds": "2"})
        assert await dispatcher(request) == {"hotel": "1", "beds": "2", "checked": ["beds"]}

    @pytest.mark.anyio
    async def test_chain_validation_not_repeated(self) -> None:
        calls = []

        def passthrough(schema, params):
            calls.append(schema)
            return params

        dispatcher = compile_dispatch_table(
            namespace("hotels/{hotel_id}/rooms", rooms_handlers, middleware=schema_validation(passthrough))
        )
        request = Request.build("POST", "/hotels/1/rooms", body={"beds": "2"})
        assert await dispatcher(request) == {"hotel": "1", "beds": "2"}
        assert calls == [{"beds": int}]

    def test_schema_without_validator_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="schema"):
            compile_dispatch_table(self.ROOMS, DispatchConfig(validator=None))

    @pytest.mark.anyio
    async def test_no_validator_needed_without_schemas(self) -> None:
        dispatcher = compile_dispatch_table(
            endpoint("GET", "hotels/{hotel_id}/rooms", rooms_handlers.index), DispatchConfig(validator=None)
        )
        assert await dispatcher(_get("/hotels/1/rooms")) == "rooms of hotel 1"


class TestCallingConventions:
    @pytest.mark.anyio
    async def test_async_handler(self) -> None:
        async def show(id):
            return {"async": id}

        dispatcher = compile_dispatch_table(endpoint("GET", "x/{id}", show))
        assert await dispatcher(_get("/x/1")) == {"async": "1"}

    @pytest.mark.anyio
    async def test_blocking_handler_runs_in_worker_thread(self) -> None:
        @handler_options(sync=True)
        def blocking():
            return threading.get_ident()

        dispatcher = compile_dispatch_table(endpoint("GET", "x", blocking))
        assert await dispatcher(_get("/x")) != threading.get_ident()

    @pytest.mark.anyio
    async def test_undeclared_plain_handler_called_inline(self) -> None:
        def inline():
            return threading.get_ident()

        dispatcher = compile_dispatch_table(endpoint("GET", "x", inline))
        assert await dispatcher(_get("/x")) == threading.get_ident()

    def test_sync_pipeline(self) -> None:
        dispatcher = compile_dispatch_table(
            [endpoint("GET", "hotels/{id}", show_hotel)], DispatchConfig(asynchronous=False)
        )
        assert dispatcher.asynchronous is False
        assert dispatcher(_get("/hotels/3")) == {"hotel": "3"}
        assert dispatcher(_get("/nowhere")) is None

    def test_async_handler_in_sync_pipeline(self) -> None:
        @handler_options(sync=False)
        async def show(id):
            return {"driven": id}

        dispatcher = compile_dispatch_table(
            endpoint("GET", "x/{id}", show), DispatchConfig(asynchronous=False)
        )
        assert dispatcher(_get("/x/8")) == {"driven": "8"}


class TestCompilation:
    def test_idempotent(self) -> None:
        declarations = [
            namespace("hotels", hotels_handlers),
            endpoint("GET", "search", search),
            endpoint("GET", "hotels/featured", list_hotels),
            endpoint("*", "hotels", anything),
        ]
        first = compile_dispatch_table(declarations)
        second = compile_dispatch_table(declarations)
        assert first.describe() == second.describe()
        assert [r.pattern for r in first.routes] == [r.pattern for r in second.routes]
        cases = [
            ("GET", "/hotels/1"),
            ("GET", "/hotels/featured"),
            ("GET", "/hotels/new"),
            ("POST", "/hotels/1/archive"),
            ("DELETE", "/hotels/1"),
            ("PUT", "/hotels"),
            ("GET", "/hotels"),
            ("GET", "/nowhere"),
            ("PATCH", "/hotels/1"),
        ]
        for method, path in cases:
            a, b = first.match(method, path), second.match(method, path)
            if a is None:
                assert b is None, (method, path)
                continue
            assert b is not None, (method, path)
            assert a.route.pattern == b.route.pattern
            assert a.route.descriptor.func is b.route.descriptor.func
            assert a.path_params == b.path_params

    def test_routes_in_table_order(self) -> None:
        dispatcher = compile_dispatch_table(
            [
                endpoint("GET", "hotels/{id}", show_hotel),
                endpoint("GET", "hotels", list_hotels),
                endpoint("*", "hotels", anything),
            ]
        )
        assert [str(r.pattern) for r in dispatcher.routes] == [
            "* /hotels",
            "GET /hotels",
            "GET /hotels/{id}",
        ]

    def test_describe(self) -> None:
        dispatcher = compile_dispatch_table(endpoint("GET", "hotels/{id}", show_hotel))
        [line] = dispatcher.describe()
        assert line.startswith("GET /hotels/{id} -> ")
        assert line.endswith("show_hotel")

    def test_empty_table(self) -> None:
        dispatcher = compile_dispatch_table([])
        assert dispatcher.routes == ()
        assert dispatcher.match("GET", "/") is None

    def test_logs_summary(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("DEBUG", logger="rook.dispatcher"):
            compile_dispatch_table(endpoint("GET", "hotels", list_hotels))
        assert "Compiled 1 routes" in caplog.text
