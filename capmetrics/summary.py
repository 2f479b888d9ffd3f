"""
Cross-Program Summary Reducer.

Folds ProgramMetrics records into one ComparisonSummary. Means are taken
over the records whose field is defined; a field that is N/A everywhere
stays N/A. Category totals are raw counts and include every record.

Sums are exact (Decimal / int), so the result does not depend on the
order the records arrive in.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .categories import Category, Variant
from .metrics import ProgramMetrics, round_pct


@dataclass(frozen=True)
class ComparisonSummary:
    program_count: int
    mean_size_overhead_pct: Optional[float]
    mean_instruction_overhead_pct: Optional[float]
    mean_protection_coverage: Optional[float]
    size_overhead_samples: int
    instruction_overhead_samples: int
    coverage_samples: int
    category_totals: Mapping[Variant, Mapping[Category, int]]
    instruction_totals: Mapping[Variant, int]

    def total(self, variant: Variant, category: Category) -> int:
        return self.category_totals[variant][category]

    def to_dict(self) -> Dict:
        return {
            "program_count": self.program_count,
            "mean_size_overhead_pct": self.mean_size_overhead_pct,
            "mean_instruction_overhead_pct": self.mean_instruction_overhead_pct,
            "mean_protection_coverage": self.mean_protection_coverage,
            "samples": {
                "size_overhead_pct": self.size_overhead_samples,
                "instruction_overhead_pct": self.instruction_overhead_samples,
                "protection_coverage": self.coverage_samples,
            },
            "category_totals": {
                v.value: {c.value: n for c, n in counts.items()}
                for v, counts in self.category_totals.items()
            },
            "instruction_totals": {v.value: n for v, n in self.instruction_totals.items()},
        }


def mean(values: Iterable[Optional[float]]) -> Optional[float]:
    """Mean of the defined values, rounded half away from zero; None if there are none."""
    defined = [Decimal(str(v)) for v in values if v is not None]
    if not defined:
        return None
    return round_pct(sum(defined, Decimal(0)) / len(defined))


def summarize(metrics: Sequence[ProgramMetrics]) -> ComparisonSummary:
    """Reduce per-program records to a ComparisonSummary."""
    totals: Dict[Variant, Dict[Category, int]] = {
        v: {c: 0 for c in Category} for v in Variant
    }
    instr_totals = {v: 0 for v in Variant}
    for m in metrics:
        for variant in Variant:
            t = m.tally(variant)
            instr_totals[variant] += t.total
            for category in Category:
                totals[variant][category] += t.count(category)

    size = [m.size_overhead_pct for m in metrics]
    instr = [m.instruction_overhead_pct for m in metrics]
    cov = [m.protection_coverage for m in metrics]

    return ComparisonSummary(
        program_count=len(metrics),
        mean_size_overhead_pct=mean(size),
        mean_instruction_overhead_pct=mean(instr),
        mean_protection_coverage=mean(cov),
        size_overhead_samples=_defined(size),
        instruction_overhead_samples=_defined(instr),
        coverage_samples=_defined(cov),
        category_totals=totals,
        instruction_totals=instr_totals,
    )


def _defined(values: List[Optional[float]]) -> int:
    return sum(1 for v in values if v is not None)
