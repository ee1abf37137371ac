"""Tests for pending evaluation collection."""

from conftest import FakeSource

from app.models.common import Marker
from app.models.refresh import RefreshScope
from app.services.functions import FunctionEvaluator
from refresh import PendingEvaluationCollector, needs_refresh

SHEETS = {
    "Sheet1": {
        "A1": ('=CC.Qty("a", 2023)', "#REFRESH"),
        "A2": ("=CC.Qty(B1, 2023)", "#N/A"),
        "A3": ('=CC.Qty("c", 2023)', 42.0),
        "A4": ("=SUM(1,2)", "#REFRESH"),
        "A5": ('=CC.Qty("a","b","c")', "#REFRESH"),
        "A6": ("=CC.Qty(Missing, 2023)", "#REFRESH"),
    },
    "Sheet2": {
        "C1": ("=CC.AmtNet(B2:B4, 2024, 2024)", Marker.REFRESH),
        "C2": ("=CC.Headcount()", "#REFRESH"),
    },
}

REFERENCES = {"B1": "b", "B2:B4": [["x"], [None], ["Y"]]}


def collector(registry, key_builder, cache, sheets=SHEETS):
    return PendingEvaluationCollector(FakeSource(sheets, REFERENCES), registry, key_builder, cache)


class TestNeedsRefresh:
    def test_markers(self):
        assert needs_refresh("#REFRESH")
        assert needs_refresh("#N/A")
        assert needs_refresh(Marker.REFRESH)

    def test_values(self):
        assert not needs_refresh(12.0)
        assert not needs_refresh("#NULL")
        assert not needs_refresh(Marker.NULL)


class TestCollect:
    def test_sheet_scope(self, registry, key_builder, cache):
        items, skipped = collector(registry, key_builder, cache).collect(RefreshScope.for_sheet("Sheet1"))

        assert [i.cache_key for i in items] == ["CC.QTY|A|2023", "CC.QTY|B|2023", "CC.QTY|MISSING|2023"]
        assert skipped == 1

    def test_workbook_scope(self, registry, key_builder, cache):
        items, _ = collector(registry, key_builder, cache).collect(RefreshScope.workbook())
        keys = [i.cache_key for i in items]

        assert "CC.AMTNET|X,Y|2024-01-01|2024-12-31" in keys
        assert "CC.HEADCOUNT" in keys
        assert len(keys) == 5

    def test_force_collects_everything(self, registry, key_builder, cache):
        items, _ = collector(registry, key_builder, cache).collect(RefreshScope.for_sheet("Sheet1"), force=True)
        assert "CC.QTY|C|2023" in [i.cache_key for i in items]
        assert len(items) == 4

    def test_item_fields(self, registry, key_builder, cache):
        items, _ = collector(registry, key_builder, cache).collect(RefreshScope.for_sheet("Sheet1"))
        item = items[1]

        assert item.function is registry.get("CC.QTY")
        assert item.raw_values == ("b", "2023")
        assert item.canonical_values == ("B", "2023")
        assert item.signature == "=CC.Qty(B1, 2023)"
        assert item.cell == ("Sheet1", "A2")

    def test_unknown_display_checks_cache(self, registry, key_builder, cache):
        sheets = {"S": {"A1": ('=CC.Qty("d", 2023)', None), "A2": ('=CC.Qty("e", 2023)', None)}}
        cache.upsert("CC.QTY|D|2023", 5.0, "")

        items, _ = collector(registry, key_builder, cache, sheets).collect(RefreshScope.workbook())
        assert [i.cache_key for i in items] == ["CC.QTY|E|2023"]

    def test_same_key_as_live_lookup(self, registry, key_builder, cache):
        items, _ = collector(registry, key_builder, cache).collect(RefreshScope.for_sheet("Sheet1"))
        evaluator = FunctionEvaluator(registry, key_builder, cache)

        assert items[0].cache_key == evaluator.cache_key("cc.qty", ["a", 2023.0])
