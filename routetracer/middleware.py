"""
RouteTraceMiddleware — plugs the recorder into an async request pipeline.

Follows the async middleware signature::

    async def __call__(self, request, ctx, next) -> Response

Route metadata is read from ``request.state``:

- ``route_name`` / ``controller`` when the host sets them explicitly;
- otherwise the matched controller route stored under
  ``_controller_match`` (``route.route_metadata.handler_name`` and
  ``route.controller_class``).
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Tuple

from .recorder import TraceRecorder

__all__ = ["RouteTraceMiddleware", "resolve_route"]

Handler = Callable[[Any, Any], Awaitable[Any]]


class RouteTraceMiddleware:
    """Traces admitted requests; responses and exceptions pass through untouched."""

    def __init__(self, recorder: TraceRecorder, before_request: Optional[Callable[[], Any]] = None):
        self.recorder = recorder
        self.before_request = before_request

    async def __call__(self, request: Any, ctx: Any, next: Handler) -> Any:
        if self.before_request is not None:
            self.before_request()
        route_name, controller = resolve_route(request)
        trace_ctx = self.recorder.on_request_start(
            route_name, _request_uri(request), getattr(request, "method", "GET"), controller,
        )
        if trace_ctx is None:
            return await next(request, ctx)

        try:
            response = await next(request, ctx)
        except BaseException as exc:
            self.recorder.on_request_end(trace_ctx, exc)
            raise
        self.recorder.on_request_end(trace_ctx)
        return response


def resolve_route(request: Any) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(route_name, controller)`` for a request, ``None`` where unknown."""
    state = getattr(request, "state", None)
    if not isinstance(state, dict):
        state = {}

    route_name = state.get("route_name")
    controller = state.get("controller")

    match = state.get("_controller_match")
    route = getattr(match, "route", None)
    if route is not None:
        handler_name = getattr(getattr(route, "route_metadata", None), "handler_name", None)
        if route_name is None:
            route_name = handler_name
        if controller is None:
            controller = _controller_label(getattr(route, "controller_class", None), handler_name)

    return route_name, controller


def _controller_label(controller_class: Any, handler_name: Optional[str]) -> Optional[str]:
    if controller_class is None:
        return None
    label = f"{controller_class.__module__}:{controller_class.__qualname__}"
    if handler_name:
        label += f".{handler_name}"
    return label


def _request_uri(request: Any) -> str:
    path = getattr(request, "path", "") or "/"
    query = getattr(request, "query_string", "")
    if isinstance(query, bytes):
        query = query.decode("latin-1")
    return f"{path}?{query}" if query else path
