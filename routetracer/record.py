"""
Trace data model.

A ``TraceRecord`` is immutable once assembled.  ``to_dict`` produces the
structured wire shape (snake_case keys, fixed order) and ``from_dict``
parses it back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

__all__ = ["OutputFormat", "TraceException", "TraceRecord"]

UNNAMED_ROUTE = "unnamed"
UNKNOWN_CONTROLLER = "unknown"


class OutputFormat(str, Enum):
    """Serialization format of a stored trace."""
    STRUCTURED = "structured"
    READABLE = "readable"

    @property
    def extension(self) -> str:
        return "json" if self is OutputFormat.STRUCTURED else "md"

    @classmethod
    def parse(cls, value: Any) -> "OutputFormat":
        """Accept enum members, canonical names and the ``json``/``markdown`` aliases."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            "structured": cls.STRUCTURED,
            "json": cls.STRUCTURED,
            "readable": cls.READABLE,
            "markdown": cls.READABLE,
            "md": cls.READABLE,
        }
        if key not in aliases:
            raise ValueError(f"unknown output format {value!r}")
        return aliases[key]

    @classmethod
    def from_extension(cls, ext: str) -> "OutputFormat":
        return cls.STRUCTURED if ext.lstrip(".").lower() == "json" else cls.READABLE


@dataclass(frozen=True)
class TraceException:
    """Failure raised by the traced request."""
    message: str
    file: str
    line: int

    @classmethod
    def from_exception(cls, exc: BaseException) -> "TraceException":
        """Locate the frame that raised ``exc`` (innermost traceback entry)."""
        tb = exc.__traceback__
        if tb is None:
            return cls(message=str(exc), file="unknown", line=0)
        while tb.tb_next is not None:
            tb = tb.tb_next
        return cls(
            message=str(exc),
            file=tb.tb_frame.f_code.co_filename,
            line=tb.tb_lineno,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "file": self.file, "line": self.line}


@dataclass(frozen=True)
class TraceRecord:
    """
    One request's file-loading, memory and timing footprint.

    ``files_loaded`` is a read-only mapping of category to path tuples, so
    the record cannot be changed after assembly.
    """

    route: str
    uri: str
    method: str
    controller: str
    files_loaded: Mapping[str, Tuple[str, ...]] = field(default_factory=dict, hash=False)
    memory_used_mb: float = 0.0
    execution_time_ms: float = 0.0
    timestamp: str = ""
    exception: Optional[TraceException] = None

    def __post_init__(self) -> None:
        frozen = {category: tuple(paths) for category, paths in self.files_loaded.items() if paths}
        object.__setattr__(self, "files_loaded", MappingProxyType(frozen))
        object.__setattr__(self, "route", self.route or UNNAMED_ROUTE)
        object.__setattr__(self, "controller", self.controller or UNKNOWN_CONTROLLER)

    @property
    def files_loaded_count(self) -> int:
        return sum(len(paths) for paths in self.files_loaded.values())

    # ── Serialization ────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route,
            "uri": self.uri,
            "controller": self.controller,
            "method": self.method,
            "files_loaded_count": self.files_loaded_count,
            "files_loaded": {category: list(paths) for category, paths in self.files_loaded.items()},
            "memory_used_mb": self.memory_used_mb,
            "execution_time_ms": self.execution_time_ms,
            "timestamp": self.timestamp,
            "exception": self.exception.to_dict() if self.exception else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TraceRecord":
        """
        Parse the structured shape.

        Raises ``KeyError``/``TypeError``/``ValueError`` when the data does not
        have that shape; the store turns these into ``CorruptRecordFault``.
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")

        files = data["files_loaded"]
        if isinstance(files, list) and not files:
            files = {}
        if not isinstance(files, dict):
            raise TypeError("files_loaded must be an object")
        for category, paths in files.items():
            if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
                raise TypeError(f"files_loaded[{category!r}] must be a list of strings")

        exc = data.get("exception")
        exception = None
        if exc is not None:
            exception = TraceException(
                message=str(exc["message"]),
                file=str(exc["file"]),
                line=int(exc["line"]),
            )

        record = cls(
            route=str(data["route"]),
            uri=str(data["uri"]),
            method=str(data["method"]),
            controller=str(data["controller"]),
            files_loaded={category: tuple(paths) for category, paths in files.items()},
            memory_used_mb=float(data["memory_used_mb"]),
            execution_time_ms=float(data["execution_time_ms"]),
            timestamp=str(data["timestamp"]),
            exception=exception,
        )
        count = data.get("files_loaded_count")
        if count is not None and int(count) != record.files_loaded_count:
            raise ValueError(
                f"files_loaded_count {count} does not match {record.files_loaded_count} listed files"
            )
        return record
