"""
Process introspection: loaded source files and current memory usage.

Both are pure queries over process state and never raise.
"""

from __future__ import annotations

import os
import sys
from functools import lru_cache
from typing import Callable, Iterable, Optional, Tuple

__all__ = ["ModuleSnapshotter", "current_memory", "real_path"]

SnapshotSource = Callable[[], Iterable[str]]


class ModuleSnapshotter:
    """
    Captures the source files currently loaded into the interpreter.

    ``sys.modules`` preserves insertion order, so iterating it yields the
    files in load order.  Hosts with their own module/resource registry
    can pass a ``source`` callable instead.
    """

    __slots__ = ("_source",)

    def __init__(self, source: Optional[SnapshotSource] = None) -> None:
        self._source = source

    def snapshot(self) -> Tuple[str, ...]:
        """Return absolute paths of loaded source files, in load order."""
        if self._source is not None:
            paths: Iterable[str] = self._source()
        else:
            paths = _loaded_module_files()

        seen = set()
        ordered = []
        for path in paths:
            if path and path not in seen:
                seen.add(path)
                ordered.append(path)
        return tuple(ordered)


def _loaded_module_files() -> Iterable[str]:
    # Copy first: imports on other threads may mutate sys.modules.
    for module in list(sys.modules.values()):
        path = getattr(module, "__file__", None)
        if isinstance(path, str):
            yield real_path(path)


@lru_cache(maxsize=8192)
def real_path(path: str) -> str:
    """Absolute path with symlinks resolved; loaded files and ``base_dir`` both go through it."""
    return os.path.realpath(path)


def current_memory() -> int:
    """
    Memory currently used by the process, in bytes.

    Prefers ``tracemalloc`` when it is tracing, then the resident set size
    from ``/proc/self/statm``, then peak RSS from ``resource``.
    """
    import tracemalloc

    if tracemalloc.is_tracing():
        return tracemalloc.get_traced_memory()[0]

    try:
        with open("/proc/self/statm") as fp:
            resident_pages = int(fp.read().split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError, AttributeError):
        pass

    try:
        import resource

        usage = resource.getrusage(resource.RUSAGE_SELF)
        # ru_maxrss is KiB on Linux, bytes on macOS
        if sys.platform == "darwin":
            return int(usage.ru_maxrss)
        return int(usage.ru_maxrss) * 1024
    except (ImportError, OSError):
        return 0
