"""
Shared test fixtures and helpers for the routetracer test suite.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List

import pytest

from routetracer.config import TracerConfig
from routetracer.gate import TraceGate
from routetracer.record import TraceException, TraceRecord
from routetracer.recorder import TraceRecorder
from routetracer.snapshot import ModuleSnapshotter
from routetracer.store import TraceStore

BASE_DIR = "/srv/shop"
MB = 1024 * 1024
FIXED_NOW = datetime(2026, 10, 19, 14, 25, 1, tzinfo=timezone.utc)


# ============================================================================
# Helpers
# ============================================================================


class LoadedFiles:
    """Mutable stand-in for the interpreter's loaded-module list."""

    def __init__(self, initial: Iterable[str] = ()):
        self.files: List[str] = list(initial)
        self.calls = 0

    def load(self, *paths: str) -> None:
        self.files.extend(paths)

    def __call__(self) -> List[str]:
        self.calls += 1
        return list(self.files)


def scripted(*values):
    """Return a callable yielding ``values`` in order, repeating the last one."""
    items = list(values)

    def _next():
        if len(items) > 1:
            return items.pop(0)
        return items[0]

    return _next


def app_path(relative: str) -> str:
    return f"{BASE_DIR}/{relative}"


def make_record(**overrides) -> TraceRecord:
    data = dict(
        route="checkout.store",
        uri="/checkout?step=2",
        method="POST",
        controller="shop.http:CheckoutController.store",
        files_loaded={
            "controllers": ("app/Http/Controllers/CheckoutController.py",),
            "models": ("app/Models/Cart.py", "app/Models/Order.py"),
        },
        memory_used_mb=1.5,
        execution_time_ms=12.5,
        timestamp="2026-10-19T14:25:01+00:00",
        exception=None,
    )
    data.update(overrides)
    return TraceRecord(**data)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def loaded():
    return LoadedFiles([
        "/usr/lib/python3.12/json/__init__.py",
        app_path("app/bootstrap.py"),
    ])


@pytest.fixture
def snapshotter(loaded):
    return ModuleSnapshotter(source=loaded)


@pytest.fixture
def gate(snapshotter):
    return TraceGate(snapshotter)


@pytest.fixture
def config(tmp_path):
    return TracerConfig(
        base_dir=Path(BASE_DIR),
        trace_dir=tmp_path / "traces",
        exclude_patterns=("/vendor/", "/.venv/"),
    )


@pytest.fixture
def store(config):
    return TraceStore(config.traces_path, default_format=config.output_format)


@pytest.fixture
def recorder(gate, store, config, snapshotter):
    return TraceRecorder(
        gate,
        store,
        config,
        snapshotter=snapshotter,
        memory_reader=scripted(10 * MB, int(12.5 * MB)),
        clock=scripted(1.0, 1.0125),
        now=lambda: FIXED_NOW,
    )


@pytest.fixture
def sample_record():
    return make_record()


@pytest.fixture
def failed_record():
    return make_record(
        route="cart.show",
        uri="/cart",
        method="GET",
        files_loaded={},
        exception=TraceException(message="boom", file="/srv/shop/app/cart.py", line=42),
    )
