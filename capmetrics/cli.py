"""
capcmp command-line tool.

Standard argument parsing, logging and lifecycle (CLIBase) plus the
comparison tool itself (CompareTool). Console logging goes through
rich's RichHandler; --log-file adds a plain file handler.

Exit status:
    0    at least one program processed, artifacts written
    1    no program could be processed
    2    bad configuration / usage
    3    unexpected error (unwritable output, unreadable input, ...)
    130  interrupted
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConfigError, load_config
from .pipeline import ComparisonResult, NoProgramsError, run_comparison
from .report import emit_artifacts, fmt_pct

EXIT_OK = 0
EXIT_NO_PROGRAMS = 1
EXIT_USAGE = 2
EXIT_ERROR = 3
EXIT_INTERRUPTED = 130


class CLIBase:
    """Base class for command-line tools"""

    # Tool metadata (override in subclass)
    TOOL_NAME = "Generic Tool"
    TOOL_DESCRIPTION = "Tool description"
    TOOL_VERSION = __version__

    def __init__(self, console: Optional[Console] = None):
        self.parser = argparse.ArgumentParser(
            prog=self.TOOL_NAME,
            description=f"{self.TOOL_NAME} - {self.TOOL_DESCRIPTION}",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )
        self.console = console or Console(stderr=True)
        self.args = None
        self.logger = logging.getLogger(self.TOOL_NAME)
        self.start_time = None
        self.setup_common_arguments()
        self.setup_arguments()

    def setup_common_arguments(self):
        """Add standard arguments all tools should have"""
        self.parser.add_argument('--verbose', '-v', action='count', default=0,
                                 help='Increase verbosity (-v, -vv)')
        self.parser.add_argument('--quiet', '-q', action='store_true',
                                 help='Suppress all output except errors')
        self.parser.add_argument('--log-file', type=Path,
                                 help='Write log to file')
        self.parser.add_argument('--no-log', action='store_true',
                                 help='Disable logging')
        self.parser.add_argument('--version', action='version',
                                 version=f'{self.TOOL_NAME} {self.TOOL_VERSION}')

    def setup_arguments(self):
        """Add tool-specific arguments (override in subclass)"""

    def setup_logging(self):
        """Configure logging based on arguments"""
        if self.args.no_log:
            logging.disable(logging.CRITICAL)
            return
        logging.disable(logging.NOTSET)

        if self.args.quiet:
            level = logging.ERROR
        elif self.args.verbose == 0:
            level = logging.WARNING
        elif self.args.verbose == 1:
            level = logging.INFO
        else:  # -vv or more
            level = logging.DEBUG

        handlers: List[logging.Handler] = []

        console = RichHandler(
            console=self.console,
            level=level,
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
        )
        handlers.append(console)

        if self.args.log_file:
            log_path = Path(self.args.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)-7s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S',
            ))
            handlers.append(file_handler)

        logging.basicConfig(
            level=logging.DEBUG if self.args.log_file else level,
            handlers=handlers,
            force=True
        )

    def run(self) -> int:
        """Main entry point - override in subclass"""
        raise NotImplementedError("Subclass must implement run()")

    def execute(self, argv: Optional[List[str]] = None) -> int:
        """Execute the tool with full lifecycle, returning the exit status"""
        self.start_time = datetime.now()
        self.args = self.parser.parse_args(argv)
        self.setup_logging()
        self.logger.info("%s v%s", self.TOOL_NAME, self.TOOL_VERSION)

        try:
            status = self.run()
        except KeyboardInterrupt:
            self.logger.warning("Interrupted by user")
            return EXIT_INTERRUPTED
        except Exception as e:
            self.logger.error("Error: %s", e, exc_info=self.args.verbose > 1)
            return EXIT_ERROR

        elapsed = datetime.now() - self.start_time
        self.logger.info("Completed in %.2fs", elapsed.total_seconds())
        return status


class CompareTool(CLIBase):
    TOOL_NAME = "capcmp"
    TOOL_DESCRIPTION = "Compare RISC-V and CHERI builds of the same programs"

    def setup_arguments(self):
        self.parser.add_argument('--base-dir', type=Path,
                                 help='Root that listing/binary path templates resolve against')
        self.parser.add_argument('--config', '-c', type=Path,
                                 help='JSON configuration file')
        self.parser.add_argument('--program', '-p', action='append', dest='programs',
                                 help='Program to analyse (repeatable; default: from config)')
        self.parser.add_argument('--output-dir', '-o', type=Path, default=Path('results'),
                                 help='Directory for artifacts (default: results)')
        self.parser.add_argument('--workers', '-j', type=int,
                                 help='Parallel program workers')
        self.parser.add_argument('--excerpt-lines', type=int,
                                 help='Instructions per listing excerpt')

    def run(self) -> int:
        try:
            config = load_config(self.args.config, self.args.base_dir).with_overrides(
                programs=self.args.programs,
                max_workers=self.args.workers,
                excerpt_lines=self.args.excerpt_lines,
            )
        except ConfigError as e:
            self.logger.error("Configuration error: %s", e)
            return EXIT_USAGE

        try:
            result = run_comparison(config)
        except NoProgramsError as e:
            for skipped in e.skipped:
                self.logger.error("%s", skipped)
            self.logger.error("%s", e)
            return EXIT_NO_PROGRAMS

        written = emit_artifacts(result, self.args.output_dir)
        for path in written:
            self.logger.info("Artifact: %s", path)
        if not self.args.quiet:
            self.print_summary(result)
        return EXIT_OK

    def print_summary(self, result: ComparisonResult):
        table = Table(title="Capability Protection Comparison")
        table.add_column("Program")
        table.add_column("RISC-V size", justify="right")
        table.add_column("CHERI size", justify="right")
        table.add_column("Size overhead", justify="right")
        table.add_column("RISC-V instrs", justify="right")
        table.add_column("CHERI instrs", justify="right")
        table.add_column("Instr overhead", justify="right")
        table.add_column("Coverage", justify="right")
        for m in result.metrics:
            table.add_row(
                m.program,
                str(m.unprotected.size),
                str(m.protected.size),
                fmt_pct(m.size_overhead_pct, "%"),
                str(m.unprotected.total),
                str(m.protected.total),
                fmt_pct(m.instruction_overhead_pct, "%"),
                fmt_pct(m.protection_coverage, "%"),
            )
        s = result.summary
        table.add_section()
        table.add_row(
            "average", "", "", fmt_pct(s.mean_size_overhead_pct, "%"),
            "", "", fmt_pct(s.mean_instruction_overhead_pct, "%"),
            fmt_pct(s.mean_protection_coverage, "%"),
        )
        self.console.print(table)
        for warning in result.warnings:
            self.console.print(f"[yellow]warning:[/yellow] {escape(warning)}")


def main(argv: Optional[List[str]] = None) -> int:
    return CompareTool().execute(argv)


if __name__ == "__main__":
    sys.exit(main())
