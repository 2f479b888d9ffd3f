"""
Shared fixtures: small RISC-V / CHERI listings with hand-counted categories,
and a throwaway platform directory laid out the way ComparisonConfig expects.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from capmetrics.config import ComparisonConfig


# gcc -O0 -S, rv64imac. Expected categories:
#   unchecked_stack_op 7, unchecked_store 3, unchecked_load 1,
#   pointer_arithmetic 2, unclassified 10  → 23 instructions
RISCV_BUFFER_OVERFLOW = """\
\t.file\t"buffer_overflow.c"
\t.option nopic
\t.text
\t.section\t.rodata
\t.align\t3
.LC0:
\t.string\t"AAAAAAAAAAAAAAAAAAAA"
\t.text
\t.align\t1
\t.globl\tmain
\t.type\tmain, @function
main:
\taddi\tsp,sp,-48
\tsd\tra,40(sp)
\tsd\ts0,32(sp)
\taddi\ts0,sp,48
\tlui\ta5,%hi(.LC0)
\taddi\ta1,a5,%lo(.LC0)
\taddi\ta5,s0,-40
\tmv\ta0,a5
\tcall\tstrcpy
\tlbu\ta5,-40(s0)
\tsext.w\ta5,a5
\tli\ta4,65
\tadd\ta5,a5,a4
\tla\ta4,buffer
\tadd\ta4,a4,a5
\tlw\ta5,0(a4)
\tsw\ta5,-20(s0)
\tli\ta5,0
\tmv\ta0,a5
\tld\tra,40(sp)
\tld\ts0,32(sp)
\taddi\tsp,sp,48
\tjr\tra
\t.size\tmain, .-main
"""

# CHERI clang -S, purecap. Expected categories:
#   bounds_preserving_offset 4, bounds_set 1, capability_store 4,
#   capability_load 6, unchecked_store 1, unclassified 4  → 20 instructions
#   coverage = 15 / 16 = 93.75%
CHERI_BUFFER_OVERFLOW = """\
\t.text
\t.attribute\t4, 16
\t.globl\tmain
\t.p2align\t1
\t.type\tmain,@function
main:                                   # @main
# %bb.0:
\tcincoffset\tcsp, csp, -96
\tcsc\tcra, 80(csp)
\tcsc\tcs0, 64(csp)
\tcincoffset\tcs0, csp, 96
\tcincoffset\tca0, csp, 24
\tcsetbounds\tca0, ca0, 16
\tcsc\tca0, 0(csp)
.LBB0_1:                                # Label of block must be emitted
\tauipcc\tca1, %captab_pcrel_hi(.L.str)
\tclc\tca1, %pcrel_lo(.LBB0_1)(ca1)
\tccall\tstrcpy
\tclc\tca0, 0(csp)
\tclbu\ta0, 0(ca0)
\tsb\ta0, 15(csp)
\tlw\ta1, 12(csp)
\tsw\ta1, 0(a2)
\tli\ta0, 0
\tclc\tcra, 80(csp)
\tclc\tcs0, 64(csp)
\tcincoffset\tcsp, csp, 96
\tcret
.Lfunc_end0:
\t.size\tmain, .Lfunc_end0-main
"""

# Every memory-relevant op is capability-checked → 100% coverage
CHERI_FULLY_PROTECTED = """\
main:
\tcincoffset\tcsp, csp, -32
\tcsc\tcra, 16(csp)
\tcsetbounds\tca0, ca0, 8
\tclc\tca1, 0(ca0)
\tclc\tcra, 16(csp)
\tcincoffset\tcsp, csp, 32
\tcret
"""

RISCV_SMALL = """\
main:
\taddi\tsp,sp,-16
\tsd\tra,8(sp)
\tld\tra,8(sp)
\taddi\tsp,sp,16
\tret
"""

# Instructions, but nothing memory-relevant for coverage
CHERI_NO_MEMORY_OPS = """\
main:
\tli\ta0, 0
\tcret
"""

# objdump -d flavour of a few RISC-V instructions
RISCV_OBJDUMP = """\

buffer_overflow:     file format elf64-littleriscv


Disassembly of section .text:

00000000000100b0 <helper>:
   100b0:\t1141                \taddi\tsp,sp,-16
   100b2:\t8082                \tret

00000000000100b4 <main>:
   100b4:\t1101                \taddi\tsp,sp,-32
   100b6:\tec06                \tsd\tra,24(sp)
   100b8:\t00053783          \tld\ta5,0(a0)
   100bc:\t0007a703          \tlw\ta4,0(a5)
   100c0:\t8082                \tret
\t...
"""


def write_platform(root, programs, sizes=None):
    """Lay out listings and binaries for `programs` under `root`.

    programs: {name: (riscv_listing_or_None, cheri_listing_or_None)}
    sizes:    {name: (riscv_bytes, cheri_bytes)}; binaries are written
              with exactly that many bytes
    """
    sizes = sizes or {}
    for name, (riscv, cheri) in programs.items():
        riscv_dir = root / "raw-outputs" / "standard-riscv"
        cheri_dir = root / "raw-outputs" / "authentic-cheri"
        riscv_dir.mkdir(parents=True, exist_ok=True)
        cheri_dir.mkdir(parents=True, exist_ok=True)
        if riscv is not None:
            (riscv_dir / f"{name}.s").write_text(riscv, encoding="utf-8")
        if cheri is not None:
            (cheri_dir / f"{name}_cheri.s").write_text(cheri, encoding="utf-8")

        riscv_size, cheri_size = sizes.get(name, (1000, 1200))
        bin_riscv = root / "implementations" / "standard-riscv"
        bin_cheri = root / "implementations" / "authentic-cheri"
        bin_riscv.mkdir(parents=True, exist_ok=True)
        bin_cheri.mkdir(parents=True, exist_ok=True)
        (bin_riscv / name).write_bytes(b"\0" * riscv_size)
        (bin_cheri / f"{name}_cheri").write_bytes(b"\0" * cheri_size)
    return root


@pytest.fixture
def platform(tmp_path):
    """Three programs; pointer_arithmetic has no CHERI listing."""
    write_platform(
        tmp_path,
        {
            "buffer_overflow": (RISCV_BUFFER_OVERFLOW, CHERI_BUFFER_OVERFLOW),
            "use_after_free": (RISCV_SMALL, CHERI_FULLY_PROTECTED),
            "pointer_arithmetic": (RISCV_SMALL, None),
        },
        sizes={
            "buffer_overflow": (18280, 8368),
            "use_after_free": (1000, 1200),
            "pointer_arithmetic": (1000, 1000),
        },
    )
    return tmp_path


@pytest.fixture
def config(platform):
    return ComparisonConfig(base_dir=platform, max_workers=1)
