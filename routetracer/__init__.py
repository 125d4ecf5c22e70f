"""
routetracer — request-scoped dependency tracing for async web apps.

For the routes you select, records which source files were loaded while a
request was handled, how much memory and time it took, and stores one
report per request under ``logs/traces/``.

Core exports:
- RouteTracer: wires everything from a TracerConfig
- TraceGate: admission control (global flag, per-route switches)
- TraceRecorder: start/end hooks around a request
- TraceStore: persist, list and load traces
- RouteTraceMiddleware: async middleware adapter
"""

__version__ = "0.3.0"

from .classifier import FileClassifier, DEFAULT_CATEGORY_RULES
from .config import TracerConfig, TracerConfigLoader
from .control import GateControl
from .faults import (
    TracerFault,
    PersistenceFault,
    CorruptRecordFault,
    ConfigInvalidFault,
)
from .gate import TraceGate, GateState
from .middleware import RouteTraceMiddleware
from .record import OutputFormat, TraceException, TraceRecord
from .recorder import TraceContext, TraceRecorder
from .snapshot import ModuleSnapshotter, current_memory
from .store import StoredTraceRef, TraceStore
from .tracer import RouteTracer

__all__ = [
    "__version__",
    # Facade
    "RouteTracer",
    # Engine
    "TraceGate",
    "GateState",
    "TraceRecorder",
    "TraceContext",
    "TraceStore",
    "StoredTraceRef",
    "FileClassifier",
    "DEFAULT_CATEGORY_RULES",
    "ModuleSnapshotter",
    "current_memory",
    # Data model
    "TraceRecord",
    "TraceException",
    "OutputFormat",
    # Integration
    "RouteTraceMiddleware",
    "GateControl",
    "TracerConfig",
    "TracerConfigLoader",
    # Faults
    "TracerFault",
    "PersistenceFault",
    "CorruptRecordFault",
    "ConfigInvalidFault",
]
