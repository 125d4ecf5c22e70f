"""
RouteTracer — wires gate, recorder, store and middleware from one config.

Usage::

    from routetracer import RouteTracer, TracerConfigLoader

    config = TracerConfigLoader.load(paths=["route_tracer.yaml"]).to_config()
    tracer = RouteTracer.from_config(config)
    tracer.boot()                                  # trace dir + control file
    middleware_stack.add(tracer.middleware(), scope="global", name="route-trace")

    # `rtrace enable` only writes the control file.  A running app picks it
    # up on `tracer.refresh()`, or by itself when `control_poll_seconds` > 0.

    tracer.enable_for_routes(["checkout.store"])
    for ref in tracer.list(route="checkout", latest=True):
        print(tracer.load(ref).files_loaded)
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, List, Optional

from .config import TracerConfig
from .control import GateControl
from .gate import TraceGate
from .middleware import RouteTraceMiddleware
from .record import TraceRecord
from .recorder import TraceRecorder
from .snapshot import ModuleSnapshotter
from .store import StoredTraceRef, TraceStore

__all__ = ["RouteTracer"]

logger = logging.getLogger("routetracer")


class RouteTracer:
    """Application-level entry point for route tracing."""

    def __init__(
        self,
        config: TracerConfig,
        *,
        gate: Optional[TraceGate] = None,
        store: Optional[TraceStore] = None,
        recorder: Optional[TraceRecorder] = None,
        snapshotter: Optional[ModuleSnapshotter] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.clock = clock
        self._last_refresh: Optional[float] = None
        self.snapshotter = snapshotter or ModuleSnapshotter()
        self.gate = gate or TraceGate(self.snapshotter)
        self.store = store or TraceStore(config.traces_path, default_format=config.output_format)
        self.recorder = recorder or TraceRecorder(
            self.gate, self.store, config, snapshotter=self.snapshotter,
        )
        self.control = GateControl.in_dir(self.store.root)

    @classmethod
    def from_config(cls, config: Optional[TracerConfig] = None) -> "RouteTracer":
        return cls(config or TracerConfig())

    # ── Lifecycle ────────────────────────────────────────────────────

    def boot(self) -> None:
        """Create the trace directory and apply any pending control file."""
        self.store.ensure_dir()
        self.refresh()

    def refresh(self) -> bool:
        """Re-apply the control file written by the CLI. Never raises."""
        try:
            return self.control.apply(self.gate)
        except Exception as exc:
            logger.warning("Gate control not applied (non-fatal): %s", exc)
            return False

    def refresh_if_due(self) -> bool:
        """
        ``refresh()`` at most once per ``control_poll_seconds``.

        Returns ``True`` if the control file was applied on this call.
        """
        interval = self.config.control_poll_seconds
        if interval <= 0:
            return False
        now = self.clock()
        if self._last_refresh is not None and now - self._last_refresh < interval:
            return False
        self._last_refresh = now
        return self.refresh()

    def middleware(self) -> RouteTraceMiddleware:
        """Request middleware; polls the control file when ``control_poll_seconds`` is set."""
        poll = self.refresh_if_due if self.config.control_poll_seconds > 0 else None
        return RouteTraceMiddleware(self.recorder, before_request=poll)

    # ── Admin ────────────────────────────────────────────────────────

    def enable(self) -> None:
        self.gate.enable()

    def disable(self) -> None:
        self.gate.disable()

    def enable_for_routes(self, names: Iterable[str]) -> None:
        self.gate.enable_for_routes(names)

    def is_enabled(self) -> bool:
        return self.gate.is_enabled()

    # ── Query ────────────────────────────────────────────────────────

    def list(self, route: Optional[str] = None, latest: bool = False) -> List[StoredTraceRef]:
        return self.store.list(route=route, latest=latest)

    def load(self, ref: StoredTraceRef) -> TraceRecord:
        return self.store.load(ref)
