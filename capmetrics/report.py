"""
Artifact Emitter.

Renders finished ProgramMetrics / ComparisonSummary values into the
output artifacts:

  metrics.csv               one row per program
  metrics.json              records + summary + warnings
  comparison.md             mechanisms, comparison tables, summary, warnings
  assembly_comparison.md    per-program excerpts of both listings

Nothing here computes new numbers; values are only formatted. None
renders as "N/A".
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, List, Optional

from .categories import (
    Category,
    DESCRIPTIONS,
    PROTECTED_CATEGORIES,
    UNCHECKED_CATEGORIES,
    Variant,
)
from .metrics import ProgramMetrics
from .output import OutputManager
from .pipeline import ComparisonResult

NA = "N/A"

CSV_FILE = "metrics.csv"
JSON_FILE = "metrics.json"
COMPARISON_FILE = "comparison.md"
ASSEMBLY_FILE = "assembly_comparison.md"

BASE_COLUMNS = [
    "program",
    "unprotected_size",
    "protected_size",
    "size_overhead_pct",
    "unprotected_instr_count",
    "protected_instr_count",
    "instruction_overhead_pct",
    "protection_coverage",
]
CSV_COLUMNS = BASE_COLUMNS + [
    f"{v.value}_{c.value}" for v in Variant for c in Category
]

VARIANT_TITLES = {
    Variant.UNPROTECTED: "Standard RISC-V",
    Variant.PROTECTED: "CHERI",
}


def fmt_pct(value: Optional[float], suffix: str = "") -> str:
    if value is None:
        return NA
    return f"{value:.2f}{suffix}"


# ──────────────────────────────────────────────
# Tabular
# ──────────────────────────────────────────────

def metrics_row(m: ProgramMetrics) -> Dict[str, object]:
    row: Dict[str, object] = {
        "program": m.program,
        "unprotected_size": m.unprotected.size,
        "protected_size": m.protected.size,
        "size_overhead_pct": fmt_pct(m.size_overhead_pct),
        "unprotected_instr_count": m.unprotected.total,
        "protected_instr_count": m.protected.total,
        "instruction_overhead_pct": fmt_pct(m.instruction_overhead_pct),
        "protection_coverage": fmt_pct(m.protection_coverage),
    }
    for variant in Variant:
        tally = m.tally(variant)
        for category in Category:
            row[f"{variant.value}_{category.value}"] = tally.count(category)
    return row


def metrics_rows(metrics: List[ProgramMetrics]) -> List[Dict[str, object]]:
    return [metrics_row(m) for m in metrics]


def json_payload(result: ComparisonResult) -> Dict:
    return {
        "format_version": 1,
        "programs": [m.to_dict() for m in result.metrics],
        "summary": result.summary.to_dict(),
        "warnings": result.warnings,
    }


# ──────────────────────────────────────────────
# Narrative
# ──────────────────────────────────────────────

def _mechanism_section(m: ProgramMetrics) -> List[str]:
    base, cheri = m.unprotected, m.protected
    lines = [f"### {m.program}", "", f"**{VARIANT_TITLES[Variant.UNPROTECTED]} vulnerability indicators:**", ""]
    for category in UNCHECKED_CATEGORIES:
        lines.append(f"- {DESCRIPTIONS[category]}: {base.count(category)}")
    lines += ["", f"**{VARIANT_TITLES[Variant.PROTECTED]} protection mechanisms:**", ""]
    for category in PROTECTED_CATEGORIES:
        lines.append(f"- {DESCRIPTIONS[category]}: {cheri.count(category)}")
    for category in (Category.UNCHECKED_LOAD, Category.UNCHECKED_STORE):
        if cheri.count(category):
            lines.append(f"- {DESCRIPTIONS[category]} left in protected build: {cheri.count(category)}")
    lines.append(f"- **Protection coverage: {fmt_pct(m.protection_coverage, '%')}**")
    lines.append("")
    return lines


def _comparison_section(m: ProgramMetrics) -> List[str]:
    base, cheri = m.unprotected, m.protected
    return [
        f"### {m.program}",
        "",
        f"| Metric | {VARIANT_TITLES[Variant.UNPROTECTED]} | {VARIANT_TITLES[Variant.PROTECTED]} |",
        "|--------|----------------|-------|",
        f"| Total memory operations | {base.memory_ops} | {cheri.memory_ops} |",
        f"| Bounds checking coverage | 0.00% | {fmt_pct(m.protection_coverage, '%')} |",
        f"| Binary size (bytes) | {base.size} | {cheri.size} |",
        f"| Instructions | {base.total} | {cheri.total} |",
        f"| Size overhead | | {fmt_pct(m.size_overhead_pct, '%')} |",
        f"| Instruction overhead | | {fmt_pct(m.instruction_overhead_pct, '%')} |",
        "",
    ]


def _discussion(result: ComparisonResult) -> List[str]:
    s = result.summary
    lines = []
    if s.mean_protection_coverage is None:
        lines.append("- No memory-relevant instructions were found in the protected builds, "
                     "so bounds-checking coverage could not be measured.")
    elif s.mean_protection_coverage >= 100.0:
        lines.append(f"- Every memory-relevant operation in the protected builds is bounds-checked "
                     f"(mean coverage {fmt_pct(s.mean_protection_coverage, '%')}).")
    else:
        lines.append(f"- Protected builds bounds-check {fmt_pct(s.mean_protection_coverage, '%')} of "
                     f"memory-relevant operations on average; the remainder are plain loads/stores "
                     f"in unconverted code.")

    if s.mean_size_overhead_pct is None:
        lines.append("- Binary size overhead is not available.")
    elif s.mean_size_overhead_pct < 0:
        lines.append(f"- Protected binaries are smaller on average ({fmt_pct(s.mean_size_overhead_pct, '%')}), "
                     f"so capability code generation did not cost binary size here.")
    else:
        lines.append(f"- Capability code generation grows binaries by "
                     f"{fmt_pct(s.mean_size_overhead_pct, '%')} on average.")

    if s.mean_instruction_overhead_pct is None:
        lines.append("- Instruction count overhead is not available.")
    elif s.mean_instruction_overhead_pct > 0:
        lines.append(f"- The protected listings carry "
                     f"{fmt_pct(s.mean_instruction_overhead_pct, '%')} more instructions on average, "
                     f"the cost of bounds setting and capability offset management.")
    else:
        lines.append(f"- Instruction counts did not grow "
                     f"({fmt_pct(s.mean_instruction_overhead_pct, '%')} on average).")
    return lines


def render_comparison(result: ComparisonResult) -> str:
    s = result.summary
    lines = [
        "# Capability Protection Comparison",
        "",
        f"Programs analysed: {s.program_count}",
        "",
        "## Protection Mechanisms",
        "",
    ]
    for m in result.metrics:
        lines += _mechanism_section(m)

    lines += ["## Protection Comparison", ""]
    for m in result.metrics:
        lines += _comparison_section(m)

    lines += [
        "## Summary",
        "",
        "| Program | Size Overhead | Instruction Overhead | Coverage |",
        "|---------|---------------|----------------------|----------|",
    ]
    for m in result.metrics:
        lines.append(f"| {m.program} | {fmt_pct(m.size_overhead_pct, '%')} | "
                     f"{fmt_pct(m.instruction_overhead_pct, '%')} | {fmt_pct(m.protection_coverage, '%')} |")
    lines += [
        "",
        f"**Average size overhead: {fmt_pct(s.mean_size_overhead_pct, '%')}** "
        f"({s.size_overhead_samples} of {s.program_count} programs)",
        "",
        f"**Average instruction overhead: {fmt_pct(s.mean_instruction_overhead_pct, '%')}** "
        f"({s.instruction_overhead_samples} of {s.program_count} programs)",
        "",
        f"**Average protection coverage: {fmt_pct(s.mean_protection_coverage, '%')}** "
        f"({s.coverage_samples} of {s.program_count} programs)",
        "",
        "### Category Totals",
        "",
        f"| Category | {VARIANT_TITLES[Variant.UNPROTECTED]} | {VARIANT_TITLES[Variant.PROTECTED]} |",
        "|----------|----------------|-------|",
    ]
    for category in Category:
        lines.append(f"| {category.value} | {s.total(Variant.UNPROTECTED, category)} | "
                     f"{s.total(Variant.PROTECTED, category)} |")
    lines += ["", "### Security vs Performance Trade-off", ""]
    lines += _discussion(result)
    lines.append("")

    if result.skipped:
        lines += ["## Warnings", ""]
        lines += [f"- {w}" for w in result.warnings]
        lines.append("")
    return "\n".join(lines)


def render_assembly(result: ComparisonResult) -> str:
    lines = ["# Assembly Comparison", ""]
    for m in result.metrics:
        excerpts = result.excerpts.get(m.program, {})
        lines += [f"## {m.program}", ""]
        for variant in Variant:
            lines += [f"### {VARIANT_TITLES[variant]}", "", "```assembly"]
            lines += excerpts.get(variant, [])
            lines += ["```", ""]
        lines += [
            "### Key Differences",
            "",
            f"- {VARIANT_TITLES[Variant.UNPROTECTED]} loads: {m.unprotected.count(Category.UNCHECKED_LOAD)}",
            f"- {VARIANT_TITLES[Variant.UNPROTECTED]} stores: {m.unprotected.count(Category.UNCHECKED_STORE)}",
            f"- Capability loads: {m.protected.count(Category.CAPABILITY_LOAD)}",
            f"- Capability stores: {m.protected.count(Category.CAPABILITY_STORE)}",
            f"- Bounds setting operations: {m.protected.count(Category.BOUNDS_SET)}",
            f"- Offset operations: {m.protected.count(Category.BOUNDS_PRESERVING_OFFSET)}",
            "",
        ]
    return "\n".join(lines)


# ──────────────────────────────────────────────
# Writing
# ──────────────────────────────────────────────

def emit_artifacts(result: ComparisonResult, output_dir: Path) -> List[Path]:
    """Write every artifact into output_dir and return their paths."""
    out = OutputManager(output_dir)
    out.write_csv(metrics_rows(result.metrics), CSV_FILE, fieldnames=CSV_COLUMNS)
    out.write_json(json_payload(result), JSON_FILE)
    out.write_markdown(render_comparison(result), COMPARISON_FILE)
    out.write_markdown(render_assembly(result), ASSEMBLY_FILE)
    return list(out.written)
