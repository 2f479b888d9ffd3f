#!/usr/bin/env python3
"""
capcmp — RISC-V vs CHERI binary security metrics

Usage:
    python capcmp.py [--base-dir DIR] [--config cfg.json] [-p PROGRAM ...]
                     [-o results/] [-j WORKERS] [-v | -q] [--log-file run.log]

Reads, for every program:
    raw-outputs/standard-riscv/<program>.s          RISC-V disassembly
    raw-outputs/authentic-cheri/<program>_cheri.s   CHERI disassembly
    implementations/standard-riscv/<program>        RISC-V binary (size)
    implementations/authentic-cheri/<program>_cheri CHERI binary (size)

Writes metrics.csv, metrics.json, comparison.md and assembly_comparison.md
into the output directory.

Examples:
    python capcmp.py --base-dir ~/cheri-platform -o results/
    python capcmp.py -c platform.json -p buffer_overflow -p use_after_free -v
"""

import os
import sys

# Allow running from project root without installing
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from capmetrics.cli import main


if __name__ == "__main__":
    sys.exit(main())
