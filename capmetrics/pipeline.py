"""
Comparison pipeline: input discovery, per-program fan-out, fan-in.

Each program reads only its own two listings and two sizes, so programs
run as independent tasks on a thread pool. Results are collected in the
configured program order; the summary reducer runs once every task has
finished.

Missing or empty inputs skip that program with a warning. Only the case
where no program at all could be processed is fatal (NoProgramsError).
"""

from __future__ import annotations
import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .categories import Category, Variant
from .classifier import classify_listing
from .config import ComparisonConfig
from .listing import ListingLine, excerpt, read_listing
from .metrics import EmptyListingError, ProgramMetrics, aggregate
from .summary import ComparisonSummary, summarize

logger = logging.getLogger(__name__)


class MissingInputError(Exception):
    """A listing file or binary size is unavailable for one variant."""
    def __init__(self, program: str, variant: Variant, what: str, path: Optional[Path] = None):
        self.program = program
        self.variant = variant
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"{program}: {variant.value} {what} not found{where}")


class NoProgramsError(Exception):
    """Nothing could be classified; no artifact can be produced."""
    def __init__(self, skipped: List[SkippedProgram]):
        self.skipped = skipped
        super().__init__(
            f"no program could be processed ({len(skipped)} skipped)"
        )


class SkipReason(enum.Enum):
    MISSING = "missing"     # input file or size absent
    EMPTY = "empty"         # listing present but holds no instructions


@dataclass(frozen=True)
class SkippedProgram:
    program: str
    reason: SkipReason
    detail: str

    def __str__(self) -> str:
        return f"{self.program} skipped ({self.reason.value}): {self.detail}"


@dataclass(frozen=True)
class ProgramOutcome:
    """Result of one program's task: metrics, or the reason it was skipped."""
    program: str
    metrics: Optional[ProgramMetrics] = None
    skipped: Optional[SkippedProgram] = None
    excerpts: Dict[Variant, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ComparisonResult:
    metrics: List[ProgramMetrics]
    summary: ComparisonSummary
    skipped: List[SkippedProgram]
    excerpts: Dict[str, Dict[Variant, List[str]]]

    @property
    def warnings(self) -> List[str]:
        return [str(s) for s in self.skipped]


# ──────────────────────────────────────────────
# Inputs
# ──────────────────────────────────────────────

def load_listing(config: ComparisonConfig, program: str, variant: Variant) -> List[ListingLine]:
    path = config.listing_path(program, variant)
    if not path.is_file():
        raise MissingInputError(program, variant, "listing", path)
    return read_listing(path)


def binary_size(config: ComparisonConfig, program: str, variant: Variant) -> int:
    """Byte size from the config's size table, else from the binary on disk."""
    override = config.size_override(program, variant)
    if override is not None:
        return override
    path = config.binary_path(program, variant)
    if not path.is_file():
        raise MissingInputError(program, variant, "binary", path)
    return path.stat().st_size


# ──────────────────────────────────────────────
# Per-program task
# ──────────────────────────────────────────────

def analyze_program(config: ComparisonConfig, program: str) -> ProgramOutcome:
    """Classify and aggregate one program. Recoverable input problems become a skip."""
    try:
        listings: Dict[Variant, List[ListingLine]] = {}
        sizes: Dict[Variant, int] = {}
        for variant in Variant:
            listings[variant] = load_listing(config, program, variant)
            sizes[variant] = binary_size(config, program, variant)
    except MissingInputError as e:
        logger.warning("Skipping %s: %s", program, e)
        return ProgramOutcome(program, skipped=SkippedProgram(program, SkipReason.MISSING, str(e)))

    records = {v: classify_listing(listings[v], v) for v in Variant}
    try:
        metrics = aggregate(
            program,
            records[Variant.UNPROTECTED],
            records[Variant.PROTECTED],
            sizes[Variant.UNPROTECTED],
            sizes[Variant.PROTECTED],
        )
    except EmptyListingError as e:
        logger.warning("Skipping %s: %s", program, e)
        return ProgramOutcome(program, skipped=SkippedProgram(program, SkipReason.EMPTY, str(e)))

    unclassified = metrics.protected.count(Category.UNCLASSIFIED)
    logger.debug("%s: %d/%d instructions, %d protected unclassified",
                 program, metrics.unprotected.total, metrics.protected.total, unclassified)
    if metrics.protection_coverage is None:
        logger.info("%s: no memory-relevant instructions in protected build (coverage N/A)", program)

    return ProgramOutcome(
        program,
        metrics=metrics,
        excerpts={v: excerpt(listings[v], limit=config.excerpt_lines) for v in Variant},
    )


# ──────────────────────────────────────────────
# Batch
# ──────────────────────────────────────────────

def split_outcomes(outcomes: List[ProgramOutcome]) -> Tuple[List[ProgramMetrics], List[SkippedProgram]]:
    return ([o.metrics for o in outcomes if o.metrics is not None],
            [o.skipped for o in outcomes if o.skipped is not None])


def _run_all(config: ComparisonConfig, programs: List[str]) -> List[ProgramOutcome]:
    if config.max_workers <= 1 or len(programs) <= 1:
        return [analyze_program(config, p) for p in programs]
    with ThreadPoolExecutor(max_workers=config.max_workers,
                            thread_name_prefix="capmetrics") as pool:
        futures = [pool.submit(analyze_program, config, p) for p in programs]
        # Fan-in in submission order; result() re-raises task failures
        return [f.result() for f in futures]


def run_comparison(config: ComparisonConfig,
                   programs: Optional[List[str]] = None) -> ComparisonResult:
    """Run the full comparison.

    Raises:
        NoProgramsError: every program was skipped.
    """
    programs = list(programs) if programs is not None else list(config.programs)
    logger.info("Analysing %d program(s) with up to %d worker(s)",
                len(programs), config.max_workers)

    outcomes = _run_all(config, programs)

    metrics, skipped = split_outcomes(outcomes)
    if not metrics:
        raise NoProgramsError(skipped)

    return ComparisonResult(
        metrics=metrics,
        summary=summarize(metrics),
        skipped=skipped,
        excerpts={o.program: o.excerpts for o in outcomes if o.metrics is not None},
    )

