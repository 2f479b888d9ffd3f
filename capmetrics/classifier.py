"""
Instruction Classifier.

Maps one disassembled RISC-V / CHERI-RISC-V instruction to a Category.

Rules are an ordered table of (category, predicate) pairs evaluated
top to bottom; the first predicate that accepts the instruction decides
its category and UNCLASSIFIED is the fall-through. Predicates only look
at the decoded instruction, the build variant and the set of registers
the caller knows to hold addresses, so classify_line() is a pure function.

classify_listing() is the only place register state lives: it walks a
listing in order and tracks which registers currently hold addresses,
feeding that set into classify_line() for the pointer-arithmetic rule.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from .categories import Category, Variant
from .listing import (
    ListingLine,
    instruction_text,
    memory_base,
    split_instruction,
    split_operands,
)


# ──────────────────────────────────────────────
# Mnemonic vocabulary
# ──────────────────────────────────────────────

PLAIN_LOADS = frozenset({"lb", "lbu", "lh", "lhu", "lw", "lwu", "ld", "flw", "fld"})
PLAIN_STORES = frozenset({"sb", "sh", "sw", "sd", "fsw", "fsd"})

CAP_LOADS = frozenset({"clc", "clb", "clbu", "clh", "clhu", "clw", "clwu", "cld", "lc"})
CAP_STORES = frozenset({"csc", "csb", "csh", "csw", "csd", "sc"})

BOUNDS_SET_OPS = frozenset({
    "csetbounds", "csetboundsexact", "csetboundsimm", "csetboundsrounddown",
})
OFFSET_OPS = frozenset({
    "cincoffset", "cincoffsetimm", "csetoffset", "csetaddr", "candaddr",
    "cadd", "caddi",
})

ARITH_OPS = frozenset({
    "add", "addi", "addw", "addiw", "sub", "subw",
    "sll", "slli", "srl", "srli", "sra", "srai",
    "sh1add", "sh2add", "sh3add",
})

# Instructions whose destination ends up holding an address
ADDRESS_PRODUCERS = frozenset({"la", "lla", "auipc"})

# Control transfers name registers without writing them
NO_DESTINATION = frozenset({
    "beq", "bne", "blt", "bge", "bltu", "bgeu", "bgt", "ble", "bgtu", "bleu",
    "beqz", "bnez", "blez", "bgez", "bltz", "bgtz",
    "j", "jr", "ret", "call", "tail", "jal", "jalr", "cjr", "cret",
    "ccall", "cjal", "cjalr",
})

# Calls return with the caller-saved registers clobbered
CALL_OPS = frozenset({"call", "tail", "jal", "jalr", "ccall", "cjal", "cjalr"})
CALLER_SAVED = frozenset(
    ["ra", "x1"] + [f"a{i}" for i in range(8)] + [f"t{i}" for i in range(7)]
)

STACK_REGS = frozenset({"sp", "x2"})
FRAME_REGS = frozenset({"s0", "fp", "x8"})

_CAP_REG_RE = re.compile(r'^c(?:sp|ra|gp|tp|fp|[ast]\d+|\d+|null|zero)$')
_ADDR_RELOC_RE = re.compile(r'%(?:pcrel_)?lo\(')


def is_capability_register(reg: Optional[str]) -> bool:
    """True for CHERI capability register names: csp, ca0, cs1, c12, ..."""
    return bool(reg) and bool(_CAP_REG_RE.match(reg))


# ──────────────────────────────────────────────
# Records
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Instruction:
    """A decoded instruction: normalised mnemonic plus operand list."""
    mnemonic: str
    operands: Tuple[str, ...]

    @property
    def registers(self) -> Tuple[str, ...]:
        """Every register-looking token in the operands, memory bases included."""
        regs = []
        for op in self.operands:
            base = memory_base(op)
            if base:
                regs.append(base)
            else:
                regs.append(op.lower())
        return tuple(regs)

    @property
    def destination(self) -> Optional[str]:
        if not self.operands or self.mnemonic in NO_DESTINATION:
            return None
        if self.mnemonic in PLAIN_STORES or self.mnemonic in CAP_STORES:
            return None
        if memory_base(self.operands[0]):
            return None
        return self.operands[0].lower()

    @property
    def sources(self) -> Tuple[str, ...]:
        return self.registers[1:] if self.destination else self.registers

    @property
    def base(self) -> Optional[str]:
        for op in self.operands:
            reg = memory_base(op)
            if reg:
                return reg
        return None


@dataclass(frozen=True)
class InstructionRecord:
    """One classified listing line. Immutable once built."""
    mnemonic: str
    operands: str
    variant: Variant
    category: Category
    line: int = 0


def decode(text: str) -> Instruction:
    """Decode instruction text; compressed 'c.' forms are folded into the base mnemonic."""
    mnemonic, operands = split_instruction(text)
    mnemonic = mnemonic.lower()
    if mnemonic.startswith("c.") and len(mnemonic) > 2:
        mnemonic = mnemonic[2:]
    return Instruction(mnemonic=mnemonic, operands=tuple(split_operands(operands)))


# ──────────────────────────────────────────────
# Rule predicates
# ──────────────────────────────────────────────

Predicate = Callable[[Instruction, Variant, FrozenSet[str]], bool]


def _cap_load(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    if variant is not Variant.PROTECTED:
        return False
    if ins.mnemonic in CAP_LOADS:
        return True
    return ins.mnemonic in PLAIN_LOADS and is_capability_register(ins.base)


def _cap_store(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    if variant is not Variant.PROTECTED:
        return False
    if ins.mnemonic in CAP_STORES:
        return True
    return ins.mnemonic in PLAIN_STORES and is_capability_register(ins.base)


def _bounds_set(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    return variant is Variant.PROTECTED and ins.mnemonic in BOUNDS_SET_OPS


def _bounds_preserving(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    return variant is Variant.PROTECTED and ins.mnemonic in OFFSET_OPS


def _plain_load(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    if ins.mnemonic not in PLAIN_LOADS:
        return False
    base = ins.base
    return base not in STACK_REGS and base not in FRAME_REGS


def _plain_store(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    return ins.mnemonic in PLAIN_STORES


def _stack_op(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    if variant is not Variant.UNPROTECTED:
        return False
    if ins.base in STACK_REGS or ins.base in FRAME_REGS:
        return True
    if any(reg in STACK_REGS for reg in ins.registers):
        return True
    # Address of a frame slot: addi a5, s0, -40
    return ins.mnemonic in ("addi", "add") and any(reg in FRAME_REGS for reg in ins.sources)


def _pointer_arith(ins: Instruction, variant: Variant, addr_regs: FrozenSet[str]) -> bool:
    if variant is not Variant.UNPROTECTED or ins.mnemonic not in ARITH_OPS:
        return False
    if any(_ADDR_RELOC_RE.search(op) for op in ins.operands):
        return True
    return any(reg in addr_regs for reg in ins.sources)


# Priority order: most specific rule first.
RULES: List[Tuple[Category, Predicate]] = [
    (Category.CAPABILITY_LOAD, _cap_load),
    (Category.CAPABILITY_STORE, _cap_store),
    (Category.BOUNDS_SET, _bounds_set),
    (Category.BOUNDS_PRESERVING_OFFSET, _bounds_preserving),
    (Category.UNCHECKED_LOAD, _plain_load),
    (Category.UNCHECKED_STORE, _plain_store),
    (Category.UNCHECKED_STACK_OP, _stack_op),
    (Category.POINTER_ARITHMETIC, _pointer_arith),
]


def categorize(ins: Instruction, variant: Variant,
               address_registers: FrozenSet[str] = frozenset()) -> Category:
    """Run the rule table; UNCLASSIFIED when no rule accepts the instruction."""
    if not ins.mnemonic:
        return Category.UNCLASSIFIED
    for category, predicate in RULES:
        if predicate(ins, variant, address_registers):
            return category
    return Category.UNCLASSIFIED


def classify_line(line: str, variant: Variant,
                  address_registers: FrozenSet[str] = frozenset(),
                  line_number: int = 0) -> InstructionRecord:
    """Classify a single listing line.

    Never raises on odd input: blank, malformed, label, directive and
    comment lines all come back as UNCLASSIFIED records.
    """
    text = instruction_text(line) if isinstance(line, str) else None
    if text is None:
        return InstructionRecord(mnemonic="", operands="", variant=variant,
                                 category=Category.UNCLASSIFIED, line=line_number)
    ins = decode(text)
    _, operands = split_instruction(text)
    return InstructionRecord(
        mnemonic=ins.mnemonic,
        operands=operands,
        variant=variant,
        category=categorize(ins, variant, address_registers),
        line=line_number,
    )


# ──────────────────────────────────────────────
# Address-register tracking
# ──────────────────────────────────────────────

def _produces_address(ins: Instruction, category: Category, addr_regs: FrozenSet[str]) -> bool:
    """Does this instruction leave an address in its destination register?"""
    if category is Category.POINTER_ARITHMETIC:
        return True
    m = ins.mnemonic
    if m in ADDRESS_PRODUCERS:
        return True
    if m == "lui":
        return any("%hi(" in op for op in ins.operands)
    if m == "ld":
        return True
    if m in ("addi", "add") and any(r in STACK_REGS or r in FRAME_REGS for r in ins.sources):
        return True
    if m == "mv" and len(ins.operands) == 2:
        return ins.operands[1].lower() in addr_regs
    return False


def track_address_registers(ins: Instruction, category: Category,
                            addr_regs: FrozenSet[str]) -> FrozenSet[str]:
    """Register set after `ins` executes."""
    if ins.mnemonic in CALL_OPS:
        return addr_regs - CALLER_SAVED
    dest = ins.destination
    if not dest or dest in ("zero", "x0"):
        return addr_regs
    if _produces_address(ins, category, addr_regs):
        return addr_regs | {dest}
    return addr_regs - {dest}


def classify_listing(lines: Iterable, variant: Variant) -> List[InstructionRecord]:
    """Classify every instruction of a listing, in order.

    Accepts ListingLine entries or raw strings. Lines carrying no
    instruction (labels, directives, comments) are skipped here since
    they are not instructions; everything else yields exactly one record.
    """
    records = []
    addr_regs: FrozenSet[str] = frozenset()
    for idx, item in enumerate(lines, start=1):
        if isinstance(item, ListingLine):
            text, number = item.text, item.number
        else:
            text, number = instruction_text(item), idx
        if text is None:
            continue
        ins = decode(text)
        category = categorize(ins, variant, addr_regs)
        _, operands = split_instruction(text)
        records.append(InstructionRecord(
            mnemonic=ins.mnemonic,
            operands=operands,
            variant=variant,
            category=category,
            line=number,
        ))
        if variant is Variant.UNPROTECTED:
            addr_regs = track_address_registers(ins, category, addr_regs)
    return records
