"""
Per-program aggregation tests: overhead formulas, rounding, coverage and
the totals-equal-category-sums guarantee.
"""

import pytest

from capmetrics import compare_listings
from capmetrics.categories import Category, Variant
from capmetrics.classifier import InstructionRecord, classify_listing
from capmetrics.listing import parse_listing
from capmetrics.metrics import (
    AggregationError,
    EmptyListingError,
    aggregate,
    coverage_pct,
    overhead_pct,
    tally,
)
from conftest import (
    CHERI_BUFFER_OVERFLOW,
    CHERI_FULLY_PROTECTED,
    CHERI_NO_MEMORY_OPS,
    RISCV_BUFFER_OVERFLOW,
    RISCV_SMALL,
)


def _records(variant, *categories):
    return [InstructionRecord("nop", "", variant, c) for c in categories]


def _stream(text, variant):
    return classify_listing(parse_listing(text), variant)


# ─── Formulas ─────────────────────────────

class TestOverhead:
    def test_size_shrink(self):
        assert overhead_pct(18280, 8368) == -54.22

    def test_instruction_growth(self):
        assert overhead_pct(127, 179) == 40.94

    def test_no_change(self):
        assert overhead_pct(500, 500) == 0.0

    def test_zero_denominator_is_none(self):
        assert overhead_pct(0, 100) is None
        assert overhead_pct(0, 0) is None

    def test_half_rounds_away_from_zero(self):
        assert overhead_pct(800, 801) == 0.13
        assert overhead_pct(800, 799) == -0.13


class TestCoverage:
    def test_fully_protected(self):
        counts = {Category.CAPABILITY_LOAD: 2, Category.CAPABILITY_STORE: 1,
                  Category.BOUNDS_SET: 1}
        assert coverage_pct(counts) == 100.0

    def test_unchecked_helpers_lower_coverage(self):
        counts = {Category.CAPABILITY_LOAD: 3, Category.UNCHECKED_LOAD: 1}
        assert coverage_pct(counts) == 75.0

    def test_nothing_relevant_is_none(self):
        assert coverage_pct({Category.UNCLASSIFIED: 5}) is None
        assert coverage_pct({}) is None

    def test_stack_ops_do_not_count(self):
        counts = {Category.CAPABILITY_STORE: 1, Category.UNCHECKED_STACK_OP: 9}
        assert coverage_pct(counts) == 100.0


# ─── Tallies ──────────────────────────────

class TestTally:
    def test_every_category_present(self):
        t = tally(_records(Variant.PROTECTED, Category.BOUNDS_SET), Variant.PROTECTED, 10)
        assert set(t.counts) == set(Category)
        assert t.count(Category.UNCLASSIFIED) == 0

    def test_total_equals_sum_of_counts(self):
        records = _stream(RISCV_BUFFER_OVERFLOW, Variant.UNPROTECTED)
        t = tally(records, Variant.UNPROTECTED, 0)
        assert t.total == sum(t.counts.values()) == len(records)

    def test_counts_are_read_only(self):
        t = tally([], Variant.UNPROTECTED, 0)
        with pytest.raises(TypeError):
            t.counts[Category.UNCHECKED_LOAD] = 1

    def test_memory_ops(self):
        t = tally(_stream(CHERI_BUFFER_OVERFLOW, Variant.PROTECTED), Variant.PROTECTED, 0)
        assert t.memory_ops == 4 + 6 + 1


# ─── aggregate() ──────────────────────────

class TestAggregate:
    def test_buffer_overflow(self):
        m = aggregate(
            "buffer_overflow",
            _stream(RISCV_BUFFER_OVERFLOW, Variant.UNPROTECTED),
            _stream(CHERI_BUFFER_OVERFLOW, Variant.PROTECTED),
            18280, 8368,
        )
        assert m.program == "buffer_overflow"
        assert m.size_overhead_pct == -54.22
        assert m.instruction_overhead_pct == -13.04
        assert m.protection_coverage == 93.75
        assert m.unprotected.total == 23
        assert m.protected.total == 20
        assert m.unprotected.size == 18280
        assert m.protected.size == 8368

    def test_full_coverage(self):
        m = aggregate(
            "use_after_free",
            _stream(RISCV_SMALL, Variant.UNPROTECTED),
            _stream(CHERI_FULLY_PROTECTED, Variant.PROTECTED),
            1000, 1200,
        )
        assert m.protection_coverage == 100.0
        assert m.size_overhead_pct == 20.0
        assert m.instruction_overhead_pct == 40.0

    def test_no_memory_ops_gives_na_coverage(self):
        m = aggregate(
            "trivial",
            _stream(RISCV_SMALL, Variant.UNPROTECTED),
            _stream(CHERI_NO_MEMORY_OPS, Variant.PROTECTED),
            100, 100,
        )
        assert m.protection_coverage is None

    def test_zero_size_gives_na_size_overhead(self):
        m = aggregate(
            "nosize",
            _stream(RISCV_SMALL, Variant.UNPROTECTED),
            _stream(CHERI_FULLY_PROTECTED, Variant.PROTECTED),
            0, 1200,
        )
        assert m.size_overhead_pct is None
        assert m.instruction_overhead_pct == 40.0

    def test_tally_by_variant(self):
        m = aggregate("p", _records(Variant.UNPROTECTED, Category.UNCHECKED_LOAD),
                      _records(Variant.PROTECTED, Category.CAPABILITY_LOAD), 1, 1)
        assert m.tally(Variant.UNPROTECTED).count(Category.UNCHECKED_LOAD) == 1
        assert m.tally(Variant.PROTECTED).count(Category.CAPABILITY_LOAD) == 1

    @pytest.mark.parametrize("empty_side", [Variant.UNPROTECTED, Variant.PROTECTED])
    def test_empty_stream_raises(self, empty_side):
        u = [] if empty_side is Variant.UNPROTECTED else _records(Variant.UNPROTECTED, Category.UNCLASSIFIED)
        p = [] if empty_side is Variant.PROTECTED else _records(Variant.PROTECTED, Category.UNCLASSIFIED)
        with pytest.raises(EmptyListingError) as exc_info:
            aggregate("prog", u, p, 10, 10)
        assert exc_info.value.variant is empty_side
        assert exc_info.value.program == "prog"
        assert isinstance(exc_info.value, AggregationError)

    def test_to_dict(self):
        m = aggregate("p", _records(Variant.UNPROTECTED, Category.UNCHECKED_STORE),
                      _records(Variant.PROTECTED, Category.CAPABILITY_STORE), 100, 150)
        d = m.to_dict()
        assert d["program"] == "p"
        assert d["size_overhead_pct"] == 50.0
        assert d["variants"]["unprotected"]["counts"]["unchecked_store"] == 1
        assert d["variants"]["protected"]["size"] == 150


class TestCompareListings:
    def test_one_call(self):
        m = compare_listings("buffer_overflow", RISCV_BUFFER_OVERFLOW, CHERI_BUFFER_OVERFLOW,
                             18280, 8368)
        assert m.size_overhead_pct == -54.22
        assert m.protection_coverage == 93.75
        assert m.unprotected.count(Category.POINTER_ARITHMETIC) == 2
