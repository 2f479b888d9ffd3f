"""
Per-Program Metrics Aggregator.

Folds the two classified instruction streams of one test program, plus
the byte sizes of its two binaries, into a single immutable
ProgramMetrics record.

Percentages are rounded to two decimals, half away from zero, through
Decimal so the same inputs always print the same digits. A zero
unprotected denominator yields None ("N/A") instead of a ZeroDivisionError.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence

from .categories import Category, MEMORY_RELEVANT, PROTECTED_CATEGORIES, Variant
from .classifier import InstructionRecord


class AggregationError(Exception):
    """Raised when a program cannot be aggregated."""
    def __init__(self, message: str, program: str = ""):
        self.program = program
        super().__init__(f"{program}: {message}" if program else message)


class EmptyListingError(AggregationError):
    """A variant's listing contained no instructions."""
    def __init__(self, program: str, variant: Variant):
        self.variant = variant
        super().__init__(f"no instructions in {variant.value} listing", program)


_TWO_PLACES = Decimal("0.01")


def round_pct(value: Decimal) -> float:
    """Round to two decimals, half away from zero (ROUND_HALF_UP on Decimal)."""
    return float(value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def overhead_pct(unprotected: int, protected: int) -> Optional[float]:
    """(protected - unprotected) / unprotected * 100, None on a zero denominator."""
    if not unprotected:
        return None
    return round_pct((Decimal(protected) - Decimal(unprotected)) * 100 / Decimal(unprotected))


def coverage_pct(counts: Mapping[Category, int]) -> Optional[float]:
    """Share of memory-relevant protected-build ops that are bounds-checked."""
    relevant = sum(counts.get(c, 0) for c in MEMORY_RELEVANT)
    if relevant == 0:
        return None
    checked = sum(counts.get(c, 0) for c in PROTECTED_CATEGORIES)
    return round_pct(Decimal(checked) * 100 / Decimal(relevant))


# ──────────────────────────────────────────────
# Records
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class VariantTally:
    """Category counts, instruction total and binary size for one build."""
    variant: Variant
    counts: Mapping[Category, int]
    total: int
    size: int

    def count(self, category: Category) -> int:
        return self.counts.get(category, 0)

    @property
    def memory_ops(self) -> int:
        """Loads and stores of either kind."""
        return sum(self.count(c) for c in (
            Category.UNCHECKED_LOAD, Category.UNCHECKED_STORE,
            Category.CAPABILITY_LOAD, Category.CAPABILITY_STORE,
        ))


@dataclass(frozen=True)
class ProgramMetrics:
    program: str
    unprotected: VariantTally
    protected: VariantTally
    protection_coverage: Optional[float]
    size_overhead_pct: Optional[float]
    instruction_overhead_pct: Optional[float]

    def tally(self, variant: Variant) -> VariantTally:
        return self.protected if variant is Variant.PROTECTED else self.unprotected

    def to_dict(self) -> Dict:
        return {
            "program": self.program,
            "protection_coverage": self.protection_coverage,
            "size_overhead_pct": self.size_overhead_pct,
            "instruction_overhead_pct": self.instruction_overhead_pct,
            "variants": {
                t.variant.value: {
                    "size": t.size,
                    "total": t.total,
                    "counts": {c.value: t.count(c) for c in Category},
                }
                for t in (self.unprotected, self.protected)
            },
        }


# ──────────────────────────────────────────────
# Aggregation
# ──────────────────────────────────────────────

def tally(records: Iterable[InstructionRecord], variant: Variant, size: int) -> VariantTally:
    """Count categories of one variant's stream. Every category gets an entry."""
    counter = Counter(r.category for r in records)
    counts = {c: counter.get(c, 0) for c in Category}
    return VariantTally(
        variant=variant,
        counts=MappingProxyType(counts),
        total=sum(counter.values()),
        size=size,
    )


def aggregate(program: str,
              unprotected_records: Sequence[InstructionRecord],
              protected_records: Sequence[InstructionRecord],
              unprotected_size: int,
              protected_size: int) -> ProgramMetrics:
    """Build the ProgramMetrics record for one program.

    Raises:
        EmptyListingError: either stream is empty. The caller decides
            whether to skip the program or abort.
    """
    if not unprotected_records:
        raise EmptyListingError(program, Variant.UNPROTECTED)
    if not protected_records:
        raise EmptyListingError(program, Variant.PROTECTED)

    base = tally(unprotected_records, Variant.UNPROTECTED, unprotected_size)
    cheri = tally(protected_records, Variant.PROTECTED, protected_size)

    return ProgramMetrics(
        program=program,
        unprotected=base,
        protected=cheri,
        protection_coverage=coverage_pct(cheri.counts),
        size_overhead_pct=overhead_pct(base.size, cheri.size),
        instruction_overhead_pct=overhead_pct(base.total, cheri.total),
    )
