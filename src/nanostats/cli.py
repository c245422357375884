"""Command line interface for nanostats."""

import argparse
import logging
import math
import sys

from textual.logging import TextualHandler

from nanostats import launcher
from nanostats.app import INVALID_TOTAL_TEXT, PROCESS_ERROR_TEXT, breakdown_lines, process_label
from nanostats.config import (
    DEFAULT_TITLE,
    MIN_PROCESS_MEMORY_BYTES,
    TOP_PROCESS_COUNT,
    UPDATE_INTERVAL_SECONDS,
    NanoStatsConfig,
)
from nanostats.memory import SystemMemorySampler
from nanostats.processes import ProcessMemoryRanker

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _positive_float(value: str) -> float:
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive and finite, got {value}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def _non_negative_float(value: str) -> float:
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise argparse.ArgumentTypeError(f"must be finite and not negative, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nanostats",
        description="Show system memory usage and the processes using the most memory.",
    )
    parser.add_argument("--title", default=DEFAULT_TITLE, help=f"Window title (default: {DEFAULT_TITLE})")
    parser.add_argument(
        "--interval",
        type=_positive_float,
        default=UPDATE_INTERVAL_SECONDS,
        help=f"Seconds between samples (default: {UPDATE_INTERVAL_SECONDS})",
    )
    parser.add_argument(
        "--top",
        type=_positive_int,
        default=TOP_PROCESS_COUNT,
        help=f"Number of processes to list (default: {TOP_PROCESS_COUNT})",
    )
    parser.add_argument(
        "--min-process-mb",
        type=_non_negative_float,
        default=MIN_PROCESS_MEMORY_BYTES / (1024 * 1024),
        help="Hide processes using this many MiB or less (default: 1)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument("--log-file", help="Write log output to this file")
    parser.add_argument("--once", action="store_true", help="Print a single report and exit")
    return parser


def config_from_args(args: argparse.Namespace) -> NanoStatsConfig:
    return NanoStatsConfig(
        title=args.title,
        update_interval=args.interval,
        top_process_count=args.top,
        min_process_bytes=int(args.min_process_mb * 1024 * 1024),
    )


def configure_logging(level: str, log_file: str | None, interactive: bool) -> logging.Logger:
    """Route nanostats log records to a file, the Textual console, or stderr."""
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    elif interactive:
        # Writing to stderr would draw over the terminal UI
        handler = TextualHandler()
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("nanostats")
    for old in package_logger.handlers[:]:
        package_logger.removeHandler(old)
        old.close()
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return package_logger


def render_report(
    config: NanoStatsConfig,
    sampler: SystemMemorySampler | None = None,
    ranker: ProcessMemoryRanker | None = None,
) -> str:
    """Take one sample and render it as plain text."""
    sampler = sampler if sampler is not None else SystemMemorySampler(inactive_weight=config.inactive_weight)
    ranker = ranker if ranker is not None else ProcessMemoryRanker()

    breakdown = sampler.fetch_memory_breakdown()
    lines = [config.title]
    if breakdown is not None:
        lines.append(f"RAM: {breakdown.usage_percentage:.1f}%")
    else:
        lines.append("RAM: Error")
    lines.extend(breakdown_lines(breakdown))
    lines.append("")
    lines.append("Top Processes")

    total = sampler.fetch_total_physical_memory()
    if total is None:
        lines.append(INVALID_TOTAL_TEXT)
        return "\n".join(lines)

    processes = ranker.fetch_top_memory_processes(
        config.top_process_count, total, min_memory_bytes=config.min_process_bytes
    )
    if not processes:
        lines.append(PROCESS_ERROR_TEXT)
    for proc in processes:
        lines.append(f"{process_label(proc)}  [PID: {proc.pid}]")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the nanostats command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except (ValueError, OverflowError) as exc:
        parser.error(str(exc))
    configure_logging(args.log_level, args.log_file, interactive=not args.once)

    if args.once:
        print(render_report(config))
        return

    app = launcher.create(config.title, config)
    try:
        launcher.run(app)
    finally:
        launcher.destroy(app)
