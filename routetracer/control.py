"""
GateControl — a JSON control file through which the CLI arms the gate of
a running application.

The CLI runs in its own process, so it cannot touch the server's
``TraceGate`` directly.  It records the desired state in
``<trace_dir>/control.json``; the application applies it with
``RouteTracer.boot()`` or ``RouteTracer.refresh()``::

    {"enabled": true, "routes": ["checkout.store"], "updated_at": "..."}
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from .faults import CorruptRecordFault, PersistenceFault
from .gate import TraceGate

__all__ = ["GateControl"]

logger = logging.getLogger("routetracer.gate")

CONTROL_FILENAME = "control.json"


class GateControl:
    """Reads and writes the gate control file."""

    __slots__ = ("_path",)

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @classmethod
    def in_dir(cls, trace_dir: Union[str, Path]) -> "GateControl":
        return cls(Path(trace_dir) / CONTROL_FILENAME)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    # ── Read ─────────────────────────────────────────────────────────

    def read(self) -> Dict[str, Any]:
        """Current control state; defaults when the file does not exist."""
        if not self._path.exists():
            return {"enabled": False, "routes": []}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CorruptRecordFault(str(self._path), str(exc)) from exc
        if not isinstance(data, dict):
            raise CorruptRecordFault(str(self._path), "control file must contain an object")
        return {
            "enabled": bool(data.get("enabled", False)),
            "routes": [str(r) for r in data.get("routes", [])],
            "updated_at": data.get("updated_at"),
        }

    # ── Write ────────────────────────────────────────────────────────

    def arm(self) -> Dict[str, Any]:
        """Request global tracing."""
        state = self.read()
        state["enabled"] = True
        return self._write(state)

    def disarm(self) -> Dict[str, Any]:
        """Turn global tracing off; route entries are kept."""
        state = self.read()
        state["enabled"] = False
        return self._write(state)

    def add_routes(self, names: Iterable[str]) -> Dict[str, Any]:
        state = self.read()
        routes = list(state["routes"])
        for name in names:
            if name and name not in routes:
                routes.append(name)
        state["routes"] = routes
        return self._write(state)

    def _write(self, state: Dict[str, Any]) -> Dict[str, Any]:
        state["updated_at"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(state, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise PersistenceFault(str(self._path), exc.strerror or str(exc)) from exc
        return state

    # ── Apply ────────────────────────────────────────────────────────

    def apply(self, gate: TraceGate) -> bool:
        """
        Bring ``gate`` in line with the control file.

        Arming re-captures the baseline only when the gate was off, so a
        periodic ``apply`` does not keep moving it.  Returns ``True`` if
        the file existed.
        """
        if not self.exists():
            return False
        state = self.read()
        if state["enabled"] and not gate.is_enabled():
            gate.enable()
        elif not state["enabled"] and gate.is_enabled():
            gate.disable()
        gate.enable_for_routes(state["routes"])
        logger.debug("Applied gate control from %s", self._path)
        return True
