"""
Disassembly listing reader.

Accepts the two listing flavours produced by the build step:

  * compiler assembly output (``-S``): tab-indented mnemonics, column-0
    labels, ``.directives`` and ``#`` comments
  * ``objdump -d`` / ``llvm-objdump -d`` output: ``addr: bytes <TAB>insn``
    lines grouped under ``<symbol>:`` headers

Both are reduced to ListingLine entries holding just the instruction text
("addi sp, sp, -32"), so the classifier never sees labels, directives,
comments or objdump banners.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple


# ──────────────────────────────────────────────
# Line patterns
# ──────────────────────────────────────────────

# "   10078:\t1101                \taddi\tsp,sp,-32"
_OBJDUMP_INSN_RE = re.compile(r'^\s*([0-9a-fA-F]+):\s*(.*)$')
# "0000000000010078 <main>:"
_OBJDUMP_SYMBOL_RE = re.compile(r'^[0-9a-fA-F]+\s+<([^>]+)>:\s*$')
_HEX_BYTES_RE = re.compile(r'^[0-9a-fA-F]+(?: [0-9a-fA-F]+)*$')
_LABEL_RE = re.compile(r'^([A-Za-z_.$][\w.$]*):')
_BANNER_RE = re.compile(r'(file format|^Disassembly of section|^\.\.\.$)')
_RELOC_RE = re.compile(r'%\w+\([^()]*\)')


@dataclass(frozen=True)
class ListingLine:
    """One instruction line from a listing."""
    number: int                 # 1-based line number in the source text
    text: str                   # instruction with comments/labels stripped
    symbol: Optional[str] = None  # enclosing function, if known


def _strip_comment(text: str) -> str:
    for marker in ("#", "//", ";"):
        if marker in text:
            text = text[:text.index(marker)]
    return text.strip()


def _strip_objdump_prefix(text: str) -> Optional[str]:
    """Drop the address and encoding columns from an objdump line."""
    m = _OBJDUMP_INSN_RE.match(text)
    if not m:
        return text
    rest = m.group(2).strip()
    if "\t" in rest:
        encoding, insn = rest.split("\t", 1)
        if _HEX_BYTES_RE.match(encoding.strip()):
            return insn
        return rest
    # Encoding with no instruction (wrapped long encodings)
    if _HEX_BYTES_RE.match(rest):
        return None
    return rest


def instruction_text(raw: str) -> Optional[str]:
    """Return the instruction carried by a raw listing line, or None.

    None means the line holds no instruction: blank lines, comments,
    labels, assembler directives and objdump banners/headers.
    """
    if raw is None:
        return None
    line = raw.rstrip("\n")
    if not line.strip():
        return None
    if _BANNER_RE.search(line.strip()) or _OBJDUMP_SYMBOL_RE.match(line):
        return None

    text = _strip_objdump_prefix(line)
    if text is None:
        return None
    text = _strip_comment(text)

    # Label, possibly followed by an instruction on the same line
    m = _LABEL_RE.match(text)
    while m:
        text = text[m.end():].strip()
        m = _LABEL_RE.match(text)

    if not text or text.startswith("."):
        return None
    if not text[0].isalpha():
        return None
    return " ".join(text.split())


def split_instruction(text: str) -> Tuple[str, str]:
    """Split instruction text into (mnemonic, operands).

    'addi sp, sp, -32' → ('addi', 'sp, sp, -32')
    """
    parts = text.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1].strip() if len(parts) > 1 else ""


def split_operands(operands: str) -> List[str]:
    """Split an operand string on commas that are not inside parentheses."""
    result = []
    depth = 0
    current = []
    for ch in operands:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == "," and depth == 0:
            result.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail:
        result.append(tail)
    return result


def memory_base(operand: str) -> Optional[str]:
    """Base register of a memory operand: '-20(s0)' → 's0'.

    Relocation wrappers are not memory operands: '%lo(buf)' → None,
    '%lo(buf)(a5)' → 'a5'.
    """
    operand = _RELOC_RE.sub("", operand)
    m = re.search(r'\(\s*([\w.]+)\s*\)\s*$', operand)
    if not m:
        return None
    return m.group(1).lower()


# ──────────────────────────────────────────────
# Whole listings
# ──────────────────────────────────────────────

def _symbol_of(raw: str) -> Optional[str]:
    m = _OBJDUMP_SYMBOL_RE.match(raw)
    if m:
        return m.group(1)
    if _BANNER_RE.search(raw.strip()):
        return None
    stripped = _strip_comment(raw)
    m = _LABEL_RE.match(stripped)
    if m and not raw[:1].isspace() and not m.group(1).startswith(".L"):
        return m.group(1)
    return None


def parse_listing(text: str) -> List[ListingLine]:
    """Extract instruction lines from listing text, tracking the enclosing symbol."""
    lines = []
    symbol = None
    for number, raw in enumerate(text.splitlines(), start=1):
        sym = _symbol_of(raw)
        if sym is not None:
            symbol = sym
        insn = instruction_text(raw)
        if insn is not None:
            lines.append(ListingLine(number=number, text=insn, symbol=symbol))
    return lines


def read_listing(path: Path) -> List[ListingLine]:
    """Read and parse a listing file (raises FileNotFoundError if absent)."""
    return parse_listing(Path(path).read_text(encoding="utf-8", errors="replace"))


def excerpt(lines: List[ListingLine], symbol: str = "main", limit: int = 50) -> List[str]:
    """First `limit` instructions of `symbol`, or of the listing if the symbol is absent."""
    selected = [ln.text for ln in lines if ln.symbol == symbol]
    if not selected:
        selected = [ln.text for ln in lines]
    return selected[:limit]
