"""
Pipeline tests: input discovery, skip handling, thread-pool fan-out/fan-in.
"""

import logging

import pytest

from capmetrics.categories import Variant
from capmetrics.config import ComparisonConfig
from capmetrics.pipeline import (
    MissingInputError,
    NoProgramsError,
    SkipReason,
    analyze_program,
    binary_size,
    load_listing,
    run_comparison,
)
from conftest import CHERI_FULLY_PROTECTED, RISCV_SMALL, write_platform


# ─── Inputs ───────────────────────────────

class TestInputs:
    def test_binary_size_from_disk(self, config):
        assert binary_size(config, "buffer_overflow", Variant.UNPROTECTED) == 18280
        assert binary_size(config, "buffer_overflow", Variant.PROTECTED) == 8368

    def test_binary_size_override(self, platform):
        cfg = ComparisonConfig(base_dir=platform,
                               sizes={"buffer_overflow": {"protected": 42}})
        assert binary_size(cfg, "buffer_overflow", Variant.PROTECTED) == 42
        assert binary_size(cfg, "buffer_overflow", Variant.UNPROTECTED) == 18280

    def test_missing_binary(self, config):
        with pytest.raises(MissingInputError) as exc_info:
            binary_size(config, "nonexistent", Variant.PROTECTED)
        assert exc_info.value.variant is Variant.PROTECTED
        assert "binary" in str(exc_info.value)

    def test_missing_listing(self, config):
        with pytest.raises(MissingInputError, match="protected listing not found"):
            load_listing(config, "pointer_arithmetic", Variant.PROTECTED)

    def test_load_listing(self, config):
        assert len(load_listing(config, "buffer_overflow", Variant.UNPROTECTED)) == 23


# ─── Single program ───────────────────────

class TestAnalyzeProgram:
    def test_metrics(self, config):
        outcome = analyze_program(config, "buffer_overflow")
        assert outcome.skipped is None
        assert outcome.metrics.size_overhead_pct == -54.22
        assert outcome.metrics.instruction_overhead_pct == -13.04
        assert outcome.metrics.protection_coverage == 93.75

    def test_excerpts(self, platform):
        cfg = ComparisonConfig(base_dir=platform, excerpt_lines=3)
        outcome = analyze_program(cfg, "buffer_overflow")
        assert outcome.excerpts[Variant.UNPROTECTED] == [
            "addi sp,sp,-48", "sd ra,40(sp)", "sd s0,32(sp)",
        ]
        assert len(outcome.excerpts[Variant.PROTECTED]) == 3

    def test_missing_listing_skips(self, config, caplog):
        with caplog.at_level(logging.WARNING, logger="capmetrics.pipeline"):
            outcome = analyze_program(config, "pointer_arithmetic")
        assert outcome.metrics is None
        assert outcome.skipped.reason is SkipReason.MISSING
        assert "pointer_arithmetic" in caplog.text

    def test_empty_listing_skips(self, tmp_path):
        write_platform(tmp_path, {"blank": ("\t.text\n", CHERI_FULLY_PROTECTED)})
        outcome = analyze_program(ComparisonConfig(base_dir=tmp_path), "blank")
        assert outcome.skipped.reason is SkipReason.EMPTY
        assert "unprotected" in outcome.skipped.detail


# ─── Whole run ────────────────────────────

class TestRunComparison:
    def test_skips_and_processes(self, config):
        result = run_comparison(config)
        assert [m.program for m in result.metrics] == ["buffer_overflow", "use_after_free"]
        assert len(result.skipped) == 1
        assert result.skipped[0].program == "pointer_arithmetic"
        assert result.summary.program_count == 2
        assert result.warnings == [str(result.skipped[0])]
        assert result.warnings[0].startswith("pointer_arithmetic skipped (missing)")

    def test_summary(self, config):
        result = run_comparison(config)
        # -54.22 and 20.00; -13.04 and 40.00; 93.75 and 100.00
        assert result.summary.mean_size_overhead_pct == -17.11
        assert result.summary.mean_instruction_overhead_pct == 13.48
        assert result.summary.mean_protection_coverage == 96.88

    def test_program_subset(self, config):
        result = run_comparison(config, programs=["use_after_free"])
        assert [m.program for m in result.metrics] == ["use_after_free"]
        assert result.skipped == []

    def test_no_programs_processed(self, config):
        with pytest.raises(NoProgramsError) as exc_info:
            run_comparison(config, programs=["pointer_arithmetic", "ghost"])
        assert [s.program for s in exc_info.value.skipped] == ["pointer_arithmetic", "ghost"]

    def test_empty_program_list(self, config):
        with pytest.raises(NoProgramsError):
            run_comparison(config, programs=[])

    def test_thread_pool_preserves_order(self, tmp_path):
        names = [f"prog{i:02d}" for i in range(12)]
        write_platform(tmp_path, {n: (RISCV_SMALL, CHERI_FULLY_PROTECTED) for n in names})
        cfg = ComparisonConfig(base_dir=tmp_path, programs=names, max_workers=4)
        result = run_comparison(cfg)
        assert [m.program for m in result.metrics] == names

    def test_parallel_matches_sequential(self, platform):
        sequential = run_comparison(ComparisonConfig(base_dir=platform, max_workers=1))
        parallel = run_comparison(ComparisonConfig(base_dir=platform, max_workers=3))
        assert parallel.metrics == sequential.metrics
        assert parallel.summary == sequential.summary
        assert parallel.skipped == sequential.skipped

    def test_excerpts_only_for_processed(self, config):
        result = run_comparison(config)
        assert set(result.excerpts) == {"buffer_overflow", "use_after_free"}
