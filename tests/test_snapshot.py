"""
Tests for process introspection (loaded-file snapshot and memory).
"""

import os
import tracemalloc

from routetracer.snapshot import ModuleSnapshotter, current_memory

from tests.conftest import LoadedFiles


class TestModuleSnapshotter:

    def test_real_snapshot_contains_loaded_modules(self):
        files = ModuleSnapshotter().snapshot()
        assert os.path.realpath(__file__) in files
        assert os.path.realpath(os.__file__) in files
        assert all(os.path.isabs(path) for path in files)

    def test_no_duplicates(self):
        files = ModuleSnapshotter().snapshot()
        assert len(files) == len(set(files))

    def test_source_hook_keeps_order_and_deduplicates(self):
        source = LoadedFiles(["/b.py", "/a.py", "/b.py", "", "/c.py"])
        assert ModuleSnapshotter(source=source).snapshot() == ("/b.py", "/a.py", "/c.py")
        assert source.calls == 1

    def test_snapshot_is_a_copy(self):
        source = LoadedFiles(["/a.py"])
        snapshotter = ModuleSnapshotter(source=source)
        first = snapshotter.snapshot()
        source.load("/b.py")
        assert first == ("/a.py",)
        assert snapshotter.snapshot() == ("/a.py", "/b.py")


class TestCurrentMemory:

    def test_positive(self):
        assert current_memory() > 0

    def test_uses_tracemalloc_when_tracing(self):
        tracemalloc.start()
        try:
            before = current_memory()
            blob = bytearray(4 * 1024 * 1024)
            after = current_memory()
            assert after - before >= len(blob)
        finally:
            tracemalloc.stop()
