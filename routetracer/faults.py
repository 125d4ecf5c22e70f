"""
Route tracer faults - typed fault taxonomy.

Defines:
- FaultDomain (functional area of a fault)
- Severity levels
- TracerFault base class (structured fault objects)
- Concrete faults for persistence, stored records and configuration

"No traces found" is never a fault: the store reports it as an empty
result and callers decide how to present it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    """Fault severity levels."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.IO = FaultDomain("io", "I/O operations")
FaultDomain.TRACE = FaultDomain("trace", "Stored trace records")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.IO: {"severity": Severity.WARN, "retryable": True},
    FaultDomain.TRACE: {"severity": Severity.ERROR, "retryable": False},
}


class TracerFault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "TRACE_PERSIST_FAILED")
        message: Human-readable summary
        severity: Fault severity
        domain: Fault domain
        retryable: Whether the operation can be retried
        public: Whether safe to expose to a client
        metadata: Additional context data
    """

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        defaults = DOMAIN_DEFAULTS.get(self.domain, {"severity": Severity.ERROR, "retryable": False})
        self.severity = severity or defaults["severity"]
        self.retryable = retryable if retryable is not None else defaults["retryable"]
        self.public = public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault to a dictionary suitable for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }


# ============================================================================
# IO Faults
# ============================================================================

class PersistenceFault(TracerFault):
    """A trace could not be written to (or read from) its destination."""

    def __init__(self, path: str, reason: str, **kwargs):
        super().__init__(
            code="TRACE_PERSIST_FAILED",
            message=f"Cannot write trace '{path}': {reason}",
            domain=FaultDomain.IO,
            metadata={"path": path, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# TRACE Faults
# ============================================================================

class CorruptRecordFault(TracerFault):
    """A stored trace cannot be parsed into a TraceRecord."""

    def __init__(self, path: str, reason: str, **kwargs):
        super().__init__(
            code="TRACE_RECORD_CORRUPT",
            message=f"Stored trace '{path}' is unreadable: {reason}",
            domain=FaultDomain.TRACE,
            metadata={"path": path, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigInvalidFault(TracerFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            domain=FaultDomain.CONFIG,
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )
