"""
Tests for TraceStore (persistence, enumeration, loading) and the
readable report renderer.
"""

import json
import os

import pytest

from routetracer.faults import CorruptRecordFault, PersistenceFault
from routetracer.record import OutputFormat
from routetracer.render import ReportRenderer
from routetracer.store import StoredTraceRef, TraceStore, route_slug, trace_filename

from tests.conftest import make_record


def _save_at(store, record, mtime):
    ref = store.save(record)
    os.utime(ref.path, (mtime, mtime))
    return ref


class TestFilenames:

    def test_route_dots_become_dashes(self, sample_record):
        assert trace_filename(sample_record, OutputFormat.STRUCTURED) == (
            "route-trace-checkout-store-2026-10-19-142501.json"
        )

    def test_readable_extension(self, sample_record):
        assert trace_filename(sample_record, OutputFormat.READABLE).endswith(".md")

    def test_unnamed_route(self):
        record = make_record(route=None)
        assert trace_filename(record, OutputFormat.STRUCTURED).startswith("route-trace-unnamed-")

    @pytest.mark.parametrize("route,slug", [
        ("api/v1.users", "api-v1-users"),
        ("../../etc/passwd", "------etc-passwd"),
        ("admin\\reports", "admin-reports"),
    ])
    def test_separators_in_route_name(self, route, slug):
        assert route_slug(route) == slug
        name = trace_filename(make_record(route=route), OutputFormat.STRUCTURED)
        assert name == f"route-trace-{slug}-2026-10-19-142501.json"


class TestSave:

    def test_creates_directory(self, store, sample_record):
        assert not store.root.exists()
        ref = store.save(sample_record)
        assert store.root.is_dir()
        assert ref.path.parent == store.root
        assert ref.format is OutputFormat.STRUCTURED

    def test_structured_content(self, store, sample_record):
        ref = store.save(sample_record)
        raw = ref.path.read_text(encoding="utf-8")
        assert json.loads(raw) == sample_record.to_dict()
        # Slashes are written as-is
        assert "app/Models/Cart.py" in raw
        assert "\\/" not in raw

    def test_utf8_unescaped(self, store):
        record = make_record(uri="/produits/café")
        ref = store.save(record)
        assert "/produits/café" in ref.path.read_text(encoding="utf-8")

    def test_round_trip(self, store, sample_record, failed_record):
        for record in (sample_record, failed_record):
            assert store.load(store.save(record)) == record

    def test_same_route_same_second_overwrites(self, store, sample_record):
        store.save(sample_record)
        store.save(make_record(uri="/checkout?step=3"))
        refs = store.list()
        assert len(refs) == 1
        assert store.load(refs[0]).uri == "/checkout?step=3"

    def test_no_temp_files_left(self, store, sample_record):
        store.save(sample_record)
        assert [p.name for p in store.root.iterdir()] == [
            "route-trace-checkout-store-2026-10-19-142501.json"
        ]

    def test_unwritable_destination(self, tmp_path, sample_record):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = TraceStore(blocker / "traces")
        with pytest.raises(PersistenceFault) as info:
            store.save(sample_record)
        assert info.value.code == "TRACE_PERSIST_FAILED"

    def test_readable_format(self, store, sample_record):
        ref = store.save(sample_record, OutputFormat.READABLE)
        assert ref.path.suffix == ".md"
        assert ref.path.read_text(encoding="utf-8").startswith("# Route Trace: checkout.store")

    def test_format_alias(self, store, sample_record):
        assert store.save(sample_record, "markdown").format is OutputFormat.READABLE

    def test_route_with_separators_stays_in_root(self, store):
        for route in ("api/v1.users", "../../outside"):
            ref = store.save(make_record(route=route))
            assert ref.path.parent == store.root
            assert store.load(ref).route == route


class TestList:

    def test_missing_directory_is_empty(self, store):
        assert store.list() == []

    def test_newest_first(self, store):
        older = _save_at(store, make_record(route="checkout", timestamp="2026-10-19T10:00:00+00:00"), 1_000)
        newer = _save_at(store, make_record(route="cart", timestamp="2026-10-19T10:00:05+00:00"), 2_000)
        assert [r.path for r in store.list()] == [newer.path, older.path]

    def test_filter_and_latest(self, store):
        _save_at(store, make_record(route="checkout", timestamp="2026-10-19T10:00:00+00:00"), 1_000)
        latest_checkout = _save_at(
            store, make_record(route="checkout", timestamp="2026-10-19T10:00:01+00:00"), 2_000,
        )
        _save_at(store, make_record(route="cart", timestamp="2026-10-19T10:00:02+00:00"), 3_000)

        refs = store.list(route="checkout", latest=True)
        assert len(refs) == 1
        assert refs[0].path == latest_checkout.path

    def test_filter_by_dotted_route_name(self, store, sample_record):
        store.save(sample_record)
        refs = store.list(route="checkout.store")
        assert [ref.name for ref in refs] == ["route-trace-checkout-store-2026-10-19-142501.json"]

    def test_filter_without_match(self, store, sample_record):
        store.save(sample_record)
        assert store.list(route="wishlist") == []

    def test_ignores_unrelated_files(self, store, sample_record):
        store.save(sample_record)
        (store.root / "control.json").write_text("{}")
        (store.root / "notes.txt").write_text("x")
        assert len(store.list()) == 1

    def test_lists_both_formats(self, store, sample_record):
        store.save(sample_record, OutputFormat.STRUCTURED)
        store.save(sample_record, OutputFormat.READABLE)
        assert {ref.format for ref in store.list()} == {OutputFormat.STRUCTURED, OutputFormat.READABLE}


class TestLoad:

    def test_invalid_json(self, store):
        store.ensure_dir()
        path = store.root / "route-trace-x-2026-10-19-000000.json"
        path.write_text("{not json")
        with pytest.raises(CorruptRecordFault) as info:
            store.load(store.list()[0])
        assert info.value.code == "TRACE_RECORD_CORRUPT"

    def test_wrong_shape(self, store):
        store.ensure_dir()
        (store.root / "route-trace-x-2026-10-19-000000.json").write_text('{"route": "x"}')
        with pytest.raises(CorruptRecordFault):
            store.load(store.list()[0])

    def test_readable_reports_cannot_be_loaded(self, store, sample_record):
        ref = store.save(sample_record, OutputFormat.READABLE)
        with pytest.raises(CorruptRecordFault):
            store.load(ref)
        assert "# Route Trace" in store.read_text(ref)

    def test_missing_file(self, store, tmp_path):
        ref = StoredTraceRef(path=tmp_path / "route-trace-gone.json", format=OutputFormat.STRUCTURED, modified_at=0)
        with pytest.raises(PersistenceFault):
            store.load(ref)


class TestClean:

    def test_removes_trace_files_only(self, store, sample_record, failed_record):
        store.save(sample_record)
        store.save(failed_record)
        (store.root / "control.json").write_text("{}")
        assert store.clean() == 2
        assert store.list() == []
        assert (store.root / "control.json").exists()

    def test_empty(self, store):
        assert store.clean() == 0


class TestReportRenderer:

    def test_full_report(self, sample_record):
        expected = (
            "# Route Trace: checkout.store\n"
            "\n"
            "**URI:** `/checkout?step=2`\n"
            "**Method:** `POST`\n"
            "**Controller:** `shop.http:CheckoutController.store`\n"
            "**Execution Time:** 12.5ms\n"
            "**Memory Used:** 1.5MB\n"
            "**Timestamp:** 2026-10-19T14:25:01+00:00\n"
            "\n"
            "## Files Loaded (3)\n"
            "\n"
            "### Controllers (1)\n"
            "\n"
            "- `app/Http/Controllers/CheckoutController.py`\n"
            "\n"
            "### Models (2)\n"
            "\n"
            "- `app/Models/Cart.py`\n"
            "- `app/Models/Order.py`\n"
            "\n"
        )
        assert ReportRenderer().render(sample_record) == expected

    def test_exception_section(self, failed_record):
        text = ReportRenderer().render(failed_record)
        assert "## Exception\n\n**Message:** boom\n**File:** /srv/shop/app/cart.py:42\n\n" in text
        assert text.index("**Timestamp:**") < text.index("## Exception") < text.index("## Files Loaded (0)")
        assert "###" not in text

    def test_no_exception_section_on_success(self, sample_record):
        assert "## Exception" not in ReportRenderer().render(sample_record)
