"""
Tests for RouteTraceMiddleware and route resolution from request state.
"""

import logging
from types import SimpleNamespace

import pytest

from routetracer.middleware import RouteTraceMiddleware, resolve_route
from routetracer.recorder import TraceRecorder
from routetracer.snapshot import ModuleSnapshotter

from tests.conftest import app_path


class CheckoutController:
    pass


def make_request(path="/checkout", query_string="", method="POST", **state):
    return SimpleNamespace(path=path, query_string=query_string, method=method, state=dict(state))


def controller_match(handler_name="store", controller_class=CheckoutController):
    route = SimpleNamespace(
        route_metadata=SimpleNamespace(handler_name=handler_name),
        controller_class=controller_class,
    )
    return SimpleNamespace(route=route)


class TestResolveRoute:

    def test_explicit_state(self):
        request = make_request(route_name="checkout.store", controller="CheckoutController@store")
        assert resolve_route(request) == ("checkout.store", "CheckoutController@store")

    def test_from_controller_match(self):
        request = make_request(_controller_match=controller_match())
        assert resolve_route(request) == (
            "store",
            f"{__name__}:CheckoutController.store",
        )

    def test_explicit_name_wins_over_match(self):
        request = make_request(route_name="checkout.store", _controller_match=controller_match())
        route_name, controller = resolve_route(request)
        assert route_name == "checkout.store"
        assert controller == f"{__name__}:CheckoutController.store"

    def test_unmatched_request(self):
        assert resolve_route(make_request()) == (None, None)

    def test_request_without_state(self):
        assert resolve_route(SimpleNamespace(path="/")) == (None, None)


class TestRouteTraceMiddleware:

    @pytest.mark.asyncio
    async def test_untraced_request_passes_through(self, recorder, store):
        middleware = RouteTraceMiddleware(recorder)
        response = object()

        async def handler(request, ctx):
            return response

        assert await middleware(make_request(), None, handler) is response
        assert store.list() == []

    @pytest.mark.asyncio
    async def test_traced_request(self, recorder, gate, loaded, store):
        gate.enable_for_routes(["checkout.store"])
        middleware = RouteTraceMiddleware(recorder)
        request = make_request(query_string=b"step=2", route_name="checkout.store")

        async def handler(req, ctx):
            loaded.load(app_path("app/Http/Controllers/CheckoutController.py"))
            return {"status": 201}

        assert await middleware(request, None, handler) == {"status": 201}

        record = store.load(store.list()[0])
        assert record.route == "checkout.store"
        assert record.uri == "/checkout?step=2"
        assert record.method == "POST"
        assert record.files_loaded == {
            "controllers": ("app/Http/Controllers/CheckoutController.py",),
        }

    @pytest.mark.asyncio
    async def test_exception_recorded_and_reraised(self, recorder, gate, store):
        gate.enable()
        middleware = RouteTraceMiddleware(recorder)

        async def handler(req, ctx):
            raise PermissionError("denied")

        with pytest.raises(PermissionError, match="denied"):
            await middleware(make_request(path="/admin", method="GET"), None, handler)

        record = store.load(store.list()[0])
        assert record.route == "unnamed"
        assert record.uri == "/admin"
        assert record.exception.message == "denied"
        assert record.exception.file == __file__

    @pytest.mark.asyncio
    async def test_broken_snapshot_source_does_not_fail_request(self, gate, store, config, caplog):
        def unavailable():
            raise RuntimeError("registry unavailable")

        recorder = TraceRecorder(gate, store, config, snapshotter=ModuleSnapshotter(source=unavailable))
        gate.enable_for_routes(["checkout.store"])
        middleware = RouteTraceMiddleware(recorder)

        async def handler(req, ctx):
            return "ok"

        with caplog.at_level(logging.WARNING, logger="routetracer"):
            result = await middleware(make_request(route_name="checkout.store"), None, handler)

        assert result == "ok"
        assert "Route trace start failed" in caplog.text
        assert store.list() == []

    @pytest.mark.asyncio
    async def test_before_request_hook_runs_first(self, recorder):
        calls = []
        middleware = RouteTraceMiddleware(recorder, before_request=lambda: calls.append("poll"))

        async def handler(req, ctx):
            calls.append("handler")

        await middleware(make_request(), None, handler)
        assert calls == ["poll", "handler"]
