"""
Instruction categories and build variants.

Every disassembled instruction is reduced to exactly one Category.
The set is closed: anything the rule table cannot place ends up in
UNCLASSIFIED rather than being dropped, so per-variant totals always
equal the sum of their category counts.
"""

from __future__ import annotations
import enum


class Variant(enum.Enum):
    """Which build of a test program a listing came from."""
    UNPROTECTED = "unprotected"     # conventional RV64 addressing
    PROTECTED = "protected"         # CHERI capability addressing

    def __str__(self) -> str:
        return self.value


class Category(enum.Enum):
    # Plain, unchecked memory access
    UNCHECKED_LOAD = "unchecked_load"
    UNCHECKED_STORE = "unchecked_store"
    UNCHECKED_STACK_OP = "unchecked_stack_op"
    POINTER_ARITHMETIC = "pointer_arithmetic"

    # Capability-bounded access
    CAPABILITY_LOAD = "capability_load"
    CAPABILITY_STORE = "capability_store"
    BOUNDS_SET = "bounds_set"
    BOUNDS_PRESERVING_OFFSET = "bounds_preserving_offset"

    # Safety net
    UNCLASSIFIED = "unclassified"

    def __str__(self) -> str:
        return self.value


# Categories that count as bounds-checked in the protected build
PROTECTED_CATEGORIES = (
    Category.CAPABILITY_LOAD,
    Category.CAPABILITY_STORE,
    Category.BOUNDS_SET,
    Category.BOUNDS_PRESERVING_OFFSET,
)

# Denominator of protection coverage: the protected categories plus any
# plain loads/stores left over from unconverted helper code.
MEMORY_RELEVANT = PROTECTED_CATEGORIES + (
    Category.UNCHECKED_LOAD,
    Category.UNCHECKED_STORE,
)

# Categories an unprotected build can produce besides UNCLASSIFIED
UNCHECKED_CATEGORIES = (
    Category.UNCHECKED_LOAD,
    Category.UNCHECKED_STORE,
    Category.UNCHECKED_STACK_OP,
    Category.POINTER_ARITHMETIC,
)

DESCRIPTIONS = {
    Category.UNCHECKED_LOAD: "Unchecked memory loads",
    Category.UNCHECKED_STORE: "Unchecked memory stores",
    Category.UNCHECKED_STACK_OP: "Stack operations without bounds checking",
    Category.POINTER_ARITHMETIC: "Potential pointer arithmetic operations",
    Category.CAPABILITY_LOAD: "Capability loads (bounds-checked)",
    Category.CAPABILITY_STORE: "Capability stores (bounds-checked)",
    Category.BOUNDS_SET: "Bounds setting operations",
    Category.BOUNDS_PRESERVING_OFFSET: "Offset operations (bounds-preserving)",
    Category.UNCLASSIFIED: "Other instructions",
}
