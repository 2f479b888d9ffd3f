"""
capmetrics — Binary Security Metrics Comparator
================================================
Compares a conventional RISC-V build and a CHERI (capability) build of the
same test programs, using their disassembly listings and binary sizes, and
reports how capability bounds-checking changes memory-operation safety and
code size / instruction overhead.

Pipeline:
    ┌───────────┐    ┌────────────┐    ┌────────────┐    ┌─────────┐    ┌───────────┐
    │ Listings  │───>│ Classifier │───>│ Aggregator │───>│ Summary │───>│  Emitter  │
    │ (.s/objd) │    │ (category) │    │ (per prog) │    │ (means) │    │ (csv/md)  │
    └───────────┘    └────────────┘    └────────────┘    └─────────┘    └───────────┘

    - listing.py:    listing text → instruction lines (labels/directives dropped)
    - classifier.py: ordered rule table, one Category per instruction
    - metrics.py:    category tallies, coverage and overhead percentages
    - summary.py:    cross-program means and category totals
    - report.py:     CSV / JSON / Markdown artifacts
    - pipeline.py:   input discovery, per-program thread pool, warnings
"""

__version__ = "0.1.0"

from .categories import Category, Variant, MEMORY_RELEVANT, PROTECTED_CATEGORIES
from .listing import ListingLine, parse_listing, read_listing
from .classifier import InstructionRecord, classify_line, classify_listing
from .metrics import (
    AggregationError,
    EmptyListingError,
    ProgramMetrics,
    VariantTally,
    aggregate,
)
from .summary import ComparisonSummary, summarize
from .config import ComparisonConfig, ConfigError, load_config
from .pipeline import (
    ComparisonResult,
    MissingInputError,
    NoProgramsError,
    SkippedProgram,
    SkipReason,
    run_comparison,
)


def compare_listings(program: str, unprotected_listing: str, protected_listing: str,
                     unprotected_size: int, protected_size: int) -> ProgramMetrics:
    """Classify two listing texts and aggregate them into one ProgramMetrics.

    Args:
        program: Program identifier.
        unprotected_listing: Disassembly text of the RISC-V build.
        protected_listing: Disassembly text of the CHERI build.
        unprotected_size: Byte size of the RISC-V binary.
        protected_size: Byte size of the CHERI binary.
    """
    return aggregate(
        program,
        classify_listing(parse_listing(unprotected_listing), Variant.UNPROTECTED),
        classify_listing(parse_listing(protected_listing), Variant.PROTECTED),
        unprotected_size,
        protected_size,
    )
