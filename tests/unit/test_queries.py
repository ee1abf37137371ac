"""Tests for DAX query building and batch packing."""

import pytest
from conftest import AMT_NET, HEADCOUNT, QTY, FakeExecutor

from app.errors import FragmentRenderError
from app.models.functions import DataType, FilterKind, FunctionDescriptor, ParameterDescriptor
from app.models.refresh import PendingEvaluation, Pool, QueryFragment
from app.services.keys import CacheKeyBuilder
from app.services.pooling import PoolAnalyzer
from app.services.queries import DaxQueryBuilder, measure_ref, wrap

BUILDER = CacheKeyBuilder()


def pending(function, *raw) -> PendingEvaluation:
    canonical = BUILDER.canonicalize_all(list(raw), function.parameters)
    return PendingEvaluation(
        cache_key=BUILDER.build_canonical(function.name, canonical),
        function=function,
        raw_values=tuple(raw),
        canonical_values=tuple(canonical),
        signature="",
    )


def pool_of(items) -> Pool:
    result = PoolAnalyzer().analyze(items, min_pool_size=2)
    assert len(result.pools) == 1
    return result.pools[0]


class TestLiterals:
    def setup_method(self):
        self.builder = DaxQueryBuilder(BUILDER)

    def test_text_quotes_doubled(self):
        assert self.builder.format_literal('A"B', QTY.parameters[0]) == '"A""B"'

    def test_number(self):
        assert self.builder.format_literal("2023", QTY.parameters[1]) == "2023"

    def test_bad_number(self):
        with pytest.raises(FragmentRenderError):
            self.builder.format_literal("abc", QTY.parameters[1])

    def test_date(self):
        assert self.builder.format_literal("2024-03-05", AMT_NET.parameters[1]) == "DATE(2024,3,5)"

    def test_year_follows_filter_kind(self):
        assert self.builder.format_literal("2024", AMT_NET.parameters[1]) == "DATE(2024,1,1)"
        assert self.builder.format_literal("2024", AMT_NET.parameters[2]) == "DATE(2024,12,31)"

    def test_bad_date(self):
        with pytest.raises(FragmentRenderError):
            self.builder.format_literal("next year", AMT_NET.parameters[1])


class TestFilters:
    def setup_method(self):
        self.builder = DaxQueryBuilder(BUILDER)

    def test_single_value(self):
        assert self.builder.build_filter(QTY.parameters[0], "A") == "'Product'[SKU]=\"A\""

    def test_list(self):
        assert self.builder.build_filter(QTY.parameters[0], "A,B") == "'Product'[SKU] IN {\"A\",\"B\"}"

    def test_range_start_takes_min(self):
        expr = self.builder.build_filter(AMT_NET.parameters[1], "2024-03-01,2023-01-01")
        assert expr == "'Calendar'[Date]>=DATE(2023,1,1)"

    def test_range_end_takes_max(self):
        expr = self.builder.build_filter(AMT_NET.parameters[2], "2023-12-31,2024-12-31")
        assert expr == "'Calendar'[Date]<=DATE(2024,12,31)"

    def test_numeric_range_with_bad_element(self):
        param = ParameterDescriptor("min", 1, "Fact", "Qty", DataType.NUMBER, FilterKind.RANGE_START)
        with pytest.raises(FragmentRenderError):
            self.builder.build_filter(param, "5,n/a")

    def test_numeric_range_takes_min(self):
        param = ParameterDescriptor("min", 1, "Fact", "Qty", DataType.NUMBER, FilterKind.RANGE_START)
        assert self.builder.build_filter(param, "10,5,7.5") == "'Fact'[Qty]>=5"

    def test_empty(self):
        assert self.builder.build_filter(QTY.parameters[0], "") is None

    def test_field_ref_escaping(self):
        param = ParameterDescriptor("x", 0, "Bob's Table", "Col]X")
        assert param.field_ref == "'Bob''s Table'[Col]]X]"


class TestMeasureRef:
    def test_bare(self):
        assert measure_ref("AmtNet") == "[AmtNet]"

    def test_bracketed(self):
        assert measure_ref(" [AmtNet] ") == "[AmtNet]"
        assert measure_ref("[[AmtNet]]") == "[AmtNet]"

    def test_table_qualified(self):
        assert measure_ref("'Sales'[Amount]") == "'Sales'[Amount]"


class TestFragments:
    def setup_method(self):
        self.builder = DaxQueryBuilder(BUILDER)

    def test_orphan(self):
        fragment = self.builder.render_orphan(pending(QTY, "a", 2023.0))
        assert fragment.text == (
            'ROW("CacheKey","CC.QTY|A|2023","Result",'
            "CALCULATE([Quantity],'Product'[SKU]=\"A\",'Calendar'[Year]=2023))"
        )
        assert fragment.keys == ("CC.QTY|A|2023",)
        assert fragment.dataset_id == "ds-finance"

    def test_orphan_without_parameters(self):
        fragment = self.builder.render_orphan(pending(HEADCOUNT))
        assert fragment.text == 'ROW("CacheKey","CC.HEADCOUNT","Result",[Headcount])'

    def test_text_pool_set_fragment(self):
        pool = pool_of([pending(QTY, "a", "2023"), pending(QTY, "b", "2023")])
        fragments = self.builder.render_pool(pool)

        assert len(fragments) == 1
        assert fragments[0].text == (
            "SELECTCOLUMNS(FILTER(VALUES('Product'[SKU]),'Product'[SKU] IN {\"A\",\"B\"}),"
            '"CacheKey",SWITCH(UPPER(\'Product\'[SKU]),"A","CC.QTY|A|2023","B","CC.QTY|B|2023"),'
            "\"Result\",CALCULATE([Quantity],'Calendar'[Year]=2023))"
        )
        assert fragments[0].keys == ("CC.QTY|A|2023", "CC.QTY|B|2023")

    def test_number_pool_matches_field_directly(self):
        pool = pool_of([pending(QTY, "z", year) for year in ["2020", "2021"]])
        text = self.builder.render_pool(pool)[0].text
        assert "SWITCH('Calendar'[Year],2020,\"CC.QTY|Z|2020\",2021,\"CC.QTY|Z|2021\")" in text
        assert "'Calendar'[Year] IN {2020,2021}" in text
        assert "CALCULATE([Quantity],'Product'[SKU]=\"Z\")" in text

    def test_keys_match_member_keys(self):
        items = [pending(AMT_NET, acc, "2024", "2024") for acc in ["a1", "a2", "a3"]]
        fragments = self.builder.render_pool(pool_of(items))
        assert sorted(k for f in fragments for k in f.keys) == sorted(i.cache_key for i in items)

    def test_range_pool_uses_rows(self):
        items = [pending(AMT_NET, "a", start, "2024") for start in ["2021", "2022"]]
        fragments = self.builder.render_pool(pool_of(items))

        assert len(fragments) == 2
        assert fragments[0].text == (
            'ROW("CacheKey","CC.AMTNET|A|2021-01-01|2024-12-31","Result",'
            "CALCULATE([AmtNet],'Account'[AccountID]=\"A\","
            "'Calendar'[Date]>=DATE(2021,1,1),'Calendar'[Date]<=DATE(2024,12,31)))"
        )

    def test_empty_and_multi_values_use_rows(self):
        pool = pool_of([pending(QTY, sku, "2023") for sku in ["", "a,b", "c"]])
        fragments = self.builder.render_pool(pool)

        assert len(fragments) == 3
        assert fragments[0].text.startswith("SELECTCOLUMNS(")
        assert fragments[0].keys == ("CC.QTY|C|2023",)
        assert fragments[1].keys == ("CC.QTY||2023",)
        assert "'Product'[SKU] IN {\"A\",\"B\"}" in fragments[2].text

    def test_fixed_filter_on_same_field_uses_rows(self):
        function = FunctionDescriptor(
            name="CC.Pair",
            measure="[M]",
            parameters=(
                ParameterDescriptor("a", 0, "T", "F"),
                ParameterDescriptor("b", 1, "T", "F"),
            ),
        )
        pool = pool_of([pending(function, v, "x") for v in ["p", "q"]])
        assert all(f.text.startswith("ROW(") for f in self.builder.render_pool(pool))

    def test_unrenderable_pool(self):
        pool = pool_of([pending(QTY, "z", year) for year in ["2020", "later"]])
        with pytest.raises(FragmentRenderError):
            self.builder.render_pool(pool)

    def test_set_fragment_split_over_budget(self):
        items = [pending(QTY, f"sku{i:03}", "2023") for i in range(40)]
        pool = pool_of(items)
        whole = DaxQueryBuilder(BUILDER).render_pool(pool)[0]

        max_length = len(whole) // 2
        fragments = DaxQueryBuilder(BUILDER, max_length).render_pool(pool)

        assert len(fragments) >= 2
        assert all(len(f) + len("EVALUATE UNION(") + len(")") <= max_length for f in fragments)
        assert [k for f in fragments for k in f.keys] == list(whole.keys)


class TestPacking:
    def setup_method(self):
        self.builder = DaxQueryBuilder(BUILDER)

    def test_wrap(self):
        a = QueryFragment("A", ("k1",))
        b = QueryFragment("B", ("k2",))
        assert wrap([a]) == "EVALUATE A"
        assert wrap([a, b]) == "EVALUATE UNION(A,B)"

    def test_greedy_exact_length(self):
        fragments = [QueryFragment(c * 10, (c,)) for c in "abc"]
        max_length = len("EVALUATE UNION(") + 21 + len(")")
        batches = self.builder.pack(fragments, max_length)

        assert [len(b.fragments) for b in batches] == [2, 1]
        assert len(batches[0].text) == max_length
        assert batches[0].text == "EVALUATE UNION(" + "a" * 10 + "," + "b" * 10 + ")"
        assert batches[1].text == "EVALUATE " + "c" * 10

    def test_oversized_fragment_alone(self):
        fragments = [QueryFragment("s", ("s",)), QueryFragment("x" * 100, ("x",)), QueryFragment("t", ("t",))]
        batches = self.builder.pack(fragments, 50)
        assert [b.keys for b in batches] == [["s"], ["x"], ["t"]]

    def test_per_dataset(self):
        fragments = [
            QueryFragment("a", ("a",), "ds1"),
            QueryFragment("b", ("b",), "ds2"),
            QueryFragment("c", ("c",), "ds1"),
        ]
        batches = self.builder.pack(fragments, 1000)
        assert [(b.dataset_id, b.keys) for b in batches] == [("ds1", ["a", "c"]), ("ds2", ["b"])]


    def test_empty(self):
        assert self.builder.pack([], 100) == []

    def test_split_pool_batches_cover_same_rows(self):
        items = [pending(QTY, f"sku{i:03}", "2023") for i in range(60)]
        pool = pool_of(items)

        unsplit = DaxQueryBuilder(BUILDER).pack(DaxQueryBuilder(BUILDER).render_pool(pool))
        assert len(unsplit) == 1

        small = DaxQueryBuilder(BUILDER, len(unsplit[0].text) // 2)
        batches = small.pack(small.render_pool(pool))
        assert len(batches) >= 2

        executor = FakeExecutor()
        whole_rows = set(executor.execute(unsplit[0].text, unsplit[0].dataset_id))
        split_rows = set()
        for batch in batches:
            assert len(batch.text) <= small._max_query_length
            split_rows.update(executor.execute(batch.text, batch.dataset_id))
        assert split_rows == whole_rows
        assert len(whole_rows) == 60


class TestCalculateQuery:
    def test_single_call(self):
        query = DaxQueryBuilder(BUILDER).build_calculate_query(QTY, ["a", 2023.0])
        assert query == "EVALUATE { CALCULATE([Quantity],'Product'[SKU]=\"A\",'Calendar'[Year]=2023) }"
