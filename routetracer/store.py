"""
TraceStore — persists trace records and reads them back.

Directory layout::

    logs/traces/
    ├── route-trace-checkout-store-2026-10-19-142501.json
    ├── route-trace-cart-show-2026-10-19-142533.md
    └── control.json            # gate control file (see control.py)

File names are ``route-trace-<route, dots and slashes as dashes>-<YYYY-MM-DD-HHMMSS>.<ext>``.
Two traces of the same route finishing within the same second share a
name; the later write replaces the earlier one.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from .faults import CorruptRecordFault, PersistenceFault
from .record import OutputFormat, TraceRecord
from .render import ReportRenderer

__all__ = ["TraceStore", "StoredTraceRef", "trace_filename", "route_slug"]

logger = logging.getLogger("routetracer.store")

_PREFIX = "route-trace-"
_SUFFIXES = (".json", ".md")
_UNSAFE_CHARS = re.compile(r"[./\\\x00]")


@dataclass(frozen=True)
class StoredTraceRef:
    """Handle on a persisted trace file."""
    path: Path
    format: OutputFormat
    modified_at: float

    @property
    def name(self) -> str:
        return self.path.name


def route_slug(route: str) -> str:
    """Route name as used in file names: dots and path separators become dashes."""
    return _UNSAFE_CHARS.sub("-", route)


def trace_filename(record: TraceRecord, fmt: OutputFormat) -> str:
    captured = _parse_timestamp(record.timestamp)
    return "{}{}-{}.{}".format(
        _PREFIX,
        route_slug(record.route),
        captured.strftime("%Y-%m-%d-%H%M%S"),
        fmt.extension,
    )


class TraceStore:
    """
    File-backed trace storage.

    The directory is created on first write and can be deleted at any
    time.
    """

    __slots__ = ("_root", "default_format", "renderer")

    def __init__(
        self,
        root: Union[str, Path],
        *,
        default_format: OutputFormat = OutputFormat.STRUCTURED,
        renderer: Optional[ReportRenderer] = None,
    ) -> None:
        self._root = Path(root)
        self.default_format = default_format
        self.renderer = renderer or ReportRenderer()

    @property
    def root(self) -> Path:
        return self._root

    def ensure_dir(self) -> Path:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceFault(str(self._root), exc.strerror or str(exc)) from exc
        return self._root

    # ── Write ────────────────────────────────────────────────────────

    def save(self, record: TraceRecord, fmt: Optional[OutputFormat] = None) -> StoredTraceRef:
        """Write ``record`` atomically; raises ``PersistenceFault`` on I/O errors."""
        fmt = OutputFormat.parse(fmt) if fmt is not None else self.default_format
        if fmt is OutputFormat.STRUCTURED:
            content = json.dumps(record.to_dict(), indent=4, ensure_ascii=False)
        else:
            content = self.renderer.render(record)

        path = self._root / trace_filename(record, fmt)
        self.ensure_dir()
        try:
            _write_text(path, content)
            modified_at = path.stat().st_mtime
        except OSError as exc:
            raise PersistenceFault(str(path), exc.strerror or str(exc)) from exc

        logger.debug("Trace saved to %s", path)
        return StoredTraceRef(path=path, format=fmt, modified_at=modified_at)

    # ── Read-back ────────────────────────────────────────────────────

    def list(self, route: Optional[str] = None, latest: bool = False) -> List[StoredTraceRef]:
        """
        Stored traces, newest first.

        Args:
            route: Keep only files whose name contains this substring; dotted
                route names match their dashed file-name form.
            latest: Return at most one entry.

        An empty list means nothing was found.
        """
        if not self._root.is_dir():
            return []

        refs = []
        for path in self._root.iterdir():
            if not _is_trace_file(path):
                continue
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            refs.append(StoredTraceRef(
                path=path,
                format=OutputFormat.from_extension(path.suffix),
                modified_at=mtime,
            ))

        refs.sort(key=lambda ref: (ref.modified_at, ref.name), reverse=True)
        if route:
            needle = route_slug(route)
            refs = [ref for ref in refs if needle in ref.name]
        if latest:
            refs = refs[:1]
        return refs

    def read_text(self, ref: StoredTraceRef) -> str:
        try:
            return ref.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptRecordFault(str(ref.path), "not valid UTF-8") from exc
        except OSError as exc:
            raise PersistenceFault(str(ref.path), exc.strerror or str(exc)) from exc

    def load(self, ref: StoredTraceRef) -> TraceRecord:
        """Parse a structured trace; raises ``CorruptRecordFault`` if it cannot."""
        if ref.format is not OutputFormat.STRUCTURED:
            raise CorruptRecordFault(str(ref.path), "readable reports cannot be parsed")

        content = self.read_text(ref)
        try:
            return TraceRecord.from_dict(json.loads(content))
        except json.JSONDecodeError as exc:
            raise CorruptRecordFault(str(ref.path), f"invalid JSON ({exc.msg})") from exc
        except KeyError as exc:
            raise CorruptRecordFault(str(ref.path), f"missing field {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise CorruptRecordFault(str(ref.path), str(exc)) from exc

    def clean(self) -> int:
        """Delete all stored traces. Returns count."""
        count = 0
        for ref in self.list():
            try:
                ref.path.unlink()
            except FileNotFoundError:
                continue
            count += 1
        return count


# ── Helpers ──────────────────────────────────────────────────────────────


def _is_trace_file(path: Path) -> bool:
    return path.name.startswith(_PREFIX) and path.suffix in _SUFFIXES and path.is_file()


def _write_text(path: Path, content: str) -> None:
    """Atomic write (write-to-tmp then rename)."""
    tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
    finally:
        if tmp.exists():
            tmp.unlink()


def _parse_timestamp(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
