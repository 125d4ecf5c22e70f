"""
TraceGate — per-request admission control.

Concurrency model:
    Mutations (``enable``, ``disable``, ``enable_for_routes``) are serialized
    by a lock and publish new immutable values by reference swap.  Readers
    never lock: ``should_trace`` and ``state`` read one reference each, so a
    request always sees a consistent ``(enabled, baseline)`` pair.  That pair
    may be stale: a request admitted just before ``disable()`` keeps using
    the old baseline for its own diff.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

from .snapshot import ModuleSnapshotter

__all__ = ["TraceGate", "GateState"]

logger = logging.getLogger("routetracer.gate")


@dataclass(frozen=True)
class GateState:
    """Global tracing flag and the baseline captured when it was armed."""
    enabled: bool = False
    baseline: Tuple[str, ...] = ()


_DISABLED = GateState()


class TraceGate:
    """
    Process-wide tracing switch.

    Construct one per application and inject it where needed; tests build
    isolated instances.
    """

    __slots__ = ("_snapshotter", "_state", "_routes", "_lock")

    def __init__(self, snapshotter: Optional[ModuleSnapshotter] = None) -> None:
        self._snapshotter = snapshotter or ModuleSnapshotter()
        self._state: GateState = _DISABLED
        self._routes: FrozenSet[str] = frozenset()
        self._lock = threading.Lock()

    # ── Admin ────────────────────────────────────────────────────────

    def enable(self) -> None:
        """Arm tracing globally and capture the baseline snapshot."""
        with self._lock:
            state = GateState(enabled=True, baseline=self._snapshotter.snapshot())
            self._state = state
        logger.info("Route tracing enabled (baseline: %d files)", len(state.baseline))

    def disable(self) -> None:
        with self._lock:
            self._state = _DISABLED
        logger.info("Route tracing disabled")

    def enable_for_routes(self, names: Iterable[str]) -> None:
        """Trace the named routes even while the global flag is off."""
        names = [name for name in names if name]
        if not names:
            return
        with self._lock:
            self._routes = self._routes.union(names)
        logger.info("Route tracing enabled for: %s", ", ".join(names))

    def is_enabled(self) -> bool:
        return self._state.enabled

    # ── Read side ────────────────────────────────────────────────────

    def state(self) -> GateState:
        return self._state

    def routes(self) -> FrozenSet[str]:
        return self._routes

    def should_trace(self, route_name: Optional[str], config_default: bool = False) -> bool:
        """Admission check, run on every request."""
        if self._state.enabled or config_default:
            return True
        return route_name is not None and route_name in self._routes
