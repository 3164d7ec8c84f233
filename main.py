"""
Main entry point for the TreeReconcile command line tool.

This module handles:
- Command line argument parsing
- Logging configuration
- Settings loading and per-run overrides
- Exception handling
- Running the reconciliation and writing its output
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, List

from treereconcile import __version__
from treereconcile.core.folder.reconciler import FolderReconciler
from treereconcile.core.models import PreconditionError, ReconcileProgress
from treereconcile.services import report
from treereconcile.services.hashing import HashAlgorithm
from treereconcile.services.settings import ReconcileSettings, SettingsManager, app_data_dir


# =============================================================================
# Constants
# =============================================================================

APP_NAME = "TreeReconcile"
APP_VERSION = __version__

LOGS_DIR = app_data_dir() / "logs"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PRECONDITION = 2
EXIT_INTERRUPTED = 130


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CommandLineArgs:
    """Parsed command line arguments."""
    source_path: str = ""
    destination_path: str = ""
    output_path: Optional[str] = None
    config_file: Optional[str] = None
    algorithm: Optional[HashAlgorithm] = None
    workers: Optional[int] = None
    threshold: Optional[int] = None
    exclude_patterns: list[str] = field(default_factory=list)
    no_hidden: bool = False
    no_summary: bool = False
    log_level: str = "INFO"
    debug: bool = False


# =============================================================================
# Logging Setup
# =============================================================================

class LogFormatter(logging.Formatter):
    """Custom log formatter with colors for console."""

    COLORS = {
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Log level string
        log_file: Optional file path for logging

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    # Console output goes to stderr; stdout carries the summary
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(use_colors=True))
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
        except OSError as e:
            root_logger.warning(f"Cannot write log file {log_file}: {e}")
        else:
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(LogFormatter(use_colors=False))
            root_logger.addHandler(file_handler)

    return root_logger


# =============================================================================
# Exception Handling
# =============================================================================

class ExceptionHandler:
    """Global handler that logs unhandled exceptions."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def handle_exception(
        self,
        exc_type: type,
        exc_value: BaseException,
        exc_tb
    ) -> None:
        """Handle an unhandled exception."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return

        self.logger.critical(
            "Unhandled exception",
            exc_info=(exc_type, exc_value, exc_tb)
        )


# =============================================================================
# Argument Parsing
# =============================================================================

def parse_arguments(args: Optional[List[str]] = None) -> CommandLineArgs:
    """
    Parse command line arguments.

    Args:
        args: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog=APP_NAME.lower(),
        description="Reconcile a source folder tree against its migrated or backed-up copy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s old/ new/                       Print a summary of the differences
  %(prog)s old/ new/ -o report.csv         Also write every result to CSV
  %(prog)s old/ new/ --algorithm xxh64     Use a faster content hash
  %(prog)s --exclude '*.tmp' old/ new/     Ignore temporary files
        """
    )

    parser.add_argument('source', help='Source (original) folder')
    parser.add_argument('destination', help='Destination (migrated) folder')

    # Output
    parser.add_argument(
        '-o', '--output',
        help='Write results to this CSV file'
    )
    parser.add_argument(
        '--no-summary',
        action='store_true',
        help='Do not print the summary'
    )

    # Configuration
    parser.add_argument(
        '-c', '--config',
        help='Configuration file path'
    )

    # Matching
    parser.add_argument(
        '--algorithm',
        choices=[a.name.lower() for a in HashAlgorithm],
        default=None,
        help='Content hash algorithm'
    )
    parser.add_argument(
        '-w', '--workers',
        type=int,
        default=None,
        help='Number of concurrent hash workers (1 = sequential)'
    )
    parser.add_argument(
        '--threshold',
        type=int,
        default=None,
        help='Maximum name edit distance for similar-name matches'
    )

    # Traversal
    parser.add_argument(
        '--exclude',
        action='append',
        default=None,
        metavar='PATTERN',
        help='Gitignore-style pattern to skip (repeatable)'
    )
    parser.add_argument(
        '--no-hidden',
        action='store_true',
        help='Skip hidden files and folders'
    )

    # Logging
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug mode (also logs to a file)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='INFO',
        help='Log level'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )

    parsed = parser.parse_args(args)

    if parsed.workers is not None and parsed.workers < 1:
        parser.error("--workers must be at least 1")
    if parsed.threshold is not None and parsed.threshold < 0:
        parser.error("--threshold must not be negative")

    result = CommandLineArgs()
    result.source_path = parsed.source
    result.destination_path = parsed.destination
    result.output_path = parsed.output
    result.config_file = parsed.config
    result.workers = parsed.workers
    result.threshold = parsed.threshold
    result.exclude_patterns = list(parsed.exclude or [])
    result.no_hidden = parsed.no_hidden
    result.no_summary = parsed.no_summary
    result.debug = parsed.debug

    if parsed.algorithm:
        result.algorithm = HashAlgorithm.from_string(parsed.algorithm)

    result.log_level = 'DEBUG' if parsed.debug else parsed.log_level

    return result


# =============================================================================
# Settings
# =============================================================================

def setup_settings(args: CommandLineArgs) -> ReconcileSettings:
    """Load settings and apply command line overrides for this run."""
    manager = SettingsManager(Path(args.config_file) if args.config_file else None)
    settings = manager.settings
    logging.debug(f"Settings loaded from {manager.settings_path}")

    if args.algorithm is not None:
        settings.hashing.algorithm = args.algorithm
    if args.workers is not None:
        settings.hashing.workers = args.workers
    if args.threshold is not None:
        settings.matching.name_distance_threshold = args.threshold
    if args.exclude_patterns:
        settings.scan.exclude_patterns = settings.scan.exclude_patterns + args.exclude_patterns
    if args.no_hidden:
        settings.scan.include_hidden = False
    if args.output_path:
        settings.output.csv_path = args.output_path
    if args.no_summary:
        settings.output.summary = False

    return settings


class ProgressLogger:
    """Logs each phase once as the run moves through it."""

    def __init__(self):
        self._phase: Optional[str] = None

    def __call__(self, progress: ReconcileProgress) -> None:
        if progress.phase != self._phase:
            self._phase = progress.phase
            logging.info(f"Phase: {progress.phase}")
        logging.debug(
            f"{progress.phase} {progress.processed}/{progress.total} {progress.current_path}"
        )


# =============================================================================
# Main Function
# =============================================================================

def run(args: CommandLineArgs) -> int:
    """Run one reconciliation and write its output."""
    settings = setup_settings(args)
    reconciler = FolderReconciler(settings.to_options())

    try:
        result = reconciler.reconcile(args.source_path, args.destination_path, ProgressLogger())
    except PreconditionError as e:
        print(f"{APP_NAME.lower()}: {e}", file=sys.stderr)
        return EXIT_PRECONDITION

    if settings.output.csv_path:
        report.write_csv(result, settings.output.csv_path)

    if settings.output.summary:
        print(report.format_summary(result))

    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Application main entry point.

    Returns:
        Exit code (0 for success)
    """
    if sys.stderr is None:
        sys.stderr = open(os.devnull, 'w')

    args = parse_arguments(argv)

    log_file = LOGS_DIR / f"{APP_NAME}_{datetime.now():%Y%m%d}.log" if args.debug else None
    logger = setup_logging(args.log_level, log_file)
    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    exception_handler = ExceptionHandler(logger)
    sys.excepthook = exception_handler.handle_exception

    try:
        return run(args)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except Exception:
        logger.critical("Reconciliation failed", exc_info=True)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
