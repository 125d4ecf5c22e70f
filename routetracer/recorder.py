"""
TraceRecorder — captures one request's footprint between two hooks.

Hook contract (driven by the host request pipeline)::

    ctx = recorder.on_request_start(route_name, uri, method, controller)
    try:
        response = await handler(...)
    except BaseException as exc:
        recorder.on_request_end(ctx, exc)
        raise
    recorder.on_request_end(ctx)

``on_request_start`` returns ``None`` for untraced requests and nothing is
captured for them.  Neither hook raises: failures of the tracing
machinery are logged and dropped, and the request runs untraced.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, FrozenSet, Iterator, Optional

from .classifier import FileClassifier
from .config import TracerConfig
from .gate import TraceGate
from .record import TraceException, TraceRecord, UNKNOWN_CONTROLLER, UNNAMED_ROUTE
from .snapshot import ModuleSnapshotter, current_memory, real_path
from .store import TraceStore

__all__ = ["TraceRecorder", "TraceContext"]

logger = logging.getLogger("routetracer")

_BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class TraceContext:
    """State captured when a traced request starts."""
    route_name: Optional[str]
    uri: str
    method: str
    controller: Optional[str]
    initial_files: FrozenSet[str]
    initial_memory: int
    started_at: float


class TraceRecorder:
    """Orchestrates capture, classification and persistence of one trace."""

    def __init__(
        self,
        gate: TraceGate,
        store: TraceStore,
        config: Optional[TracerConfig] = None,
        *,
        snapshotter: Optional[ModuleSnapshotter] = None,
        classifier: Optional[FileClassifier] = None,
        memory_reader: Callable[[], int] = current_memory,
        clock: Callable[[], float] = time.perf_counter,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.gate = gate
        self.store = store
        self.config = config or TracerConfig()
        self.snapshotter = snapshotter or ModuleSnapshotter()
        self.classifier = classifier or FileClassifier(self.config.category_rules)
        self.memory_reader = memory_reader
        self.clock = clock
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.summary_logger = logging.getLogger(self.config.log_channel)

    # ── Hooks ────────────────────────────────────────────────────────

    def on_request_start(
        self,
        route_name: Optional[str],
        uri: str,
        method: str,
        controller: Optional[str] = None,
    ) -> Optional[TraceContext]:
        if not self.gate.should_trace(route_name, self.config.enabled):
            return None

        try:
            baseline = self.gate.state().baseline
            initial_files = baseline or self.snapshotter.snapshot()
            return TraceContext(
                route_name=route_name,
                uri=uri,
                method=method,
                controller=controller,
                initial_files=frozenset(initial_files),
                initial_memory=self.memory_reader(),
                started_at=self.clock(),
            )
        except Exception:
            logger.warning("Route trace start failed (non-fatal)", exc_info=True)
            return None

    def on_request_end(
        self,
        ctx: Optional[TraceContext],
        error: Optional[BaseException] = None,
    ) -> Optional[TraceRecord]:
        """Assemble and persist the trace. Returns the record, or ``None`` if none was made."""
        if ctx is None:
            return None

        try:
            record = self._assemble(ctx, error)
        except Exception:
            logger.warning("Route trace capture failed (non-fatal)", exc_info=True)
            return None

        try:
            self.store.save(record, self.config.output_format)
        except Exception as exc:
            logger.warning("Route trace for %s not saved (non-fatal): %s", record.route, exc)

        self._log_summary(record)
        return record

    # ── Convenience wrappers ─────────────────────────────────────────

    @contextmanager
    def trace(
        self,
        route_name: Optional[str] = None,
        uri: str = "",
        method: str = "GET",
        controller: Optional[str] = None,
    ) -> Iterator[Optional[TraceContext]]:
        """Trace the body of a ``with`` block; exceptions propagate unchanged."""
        ctx = self.on_request_start(route_name, uri, method, controller)
        try:
            yield ctx
        except BaseException as exc:
            self.on_request_end(ctx, exc)
            raise
        self.on_request_end(ctx)

    async def run(
        self,
        handler: Callable[..., Awaitable[Any]],
        *args: Any,
        route_name: Optional[str] = None,
        uri: str = "",
        method: str = "GET",
        controller: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """Await ``handler`` under a trace and return its result unchanged."""
        with self.trace(route_name, uri, method, controller):
            return await handler(*args, **kwargs)

    # ── Internals ────────────────────────────────────────────────────

    def _assemble(self, ctx: TraceContext, error: Optional[BaseException]) -> TraceRecord:
        final_files = self.snapshotter.snapshot()
        new_files = set(final_files) - ctx.initial_files

        base_dir = real_path(str(self.config.base_dir))
        in_scope = self.classifier.filter(new_files, base_dir, self.config.exclude_patterns)
        categorized = self.classifier.classify(in_scope, base_dir)

        elapsed_ms = (self.clock() - ctx.started_at) * 1000
        memory_mb = (self.memory_reader() - ctx.initial_memory) / _BYTES_PER_MB

        return TraceRecord(
            route=ctx.route_name or UNNAMED_ROUTE,
            uri=ctx.uri,
            method=ctx.method,
            controller=ctx.controller or UNKNOWN_CONTROLLER,
            files_loaded=categorized,
            memory_used_mb=round(memory_mb, 2),
            execution_time_ms=round(max(elapsed_ms, 0.0), 2),
            timestamp=self.now().isoformat(timespec="seconds"),
            exception=TraceException.from_exception(error) if error is not None else None,
        )

    def _log_summary(self, record: TraceRecord) -> None:
        if not self.summary_logger.isEnabledFor(logging.DEBUG):
            return
        self.summary_logger.debug(
            "Route trace completed: route=%s files=%d memory_mb=%.2f time_ms=%.2f",
            record.route,
            record.files_loaded_count,
            record.memory_used_mb,
            record.execution_time_ms,
            extra={"route_trace": {
                "route": record.route,
                "files_count": record.files_loaded_count,
                "memory_mb": record.memory_used_mb,
                "time_ms": record.execution_time_ms,
            }},
        )
