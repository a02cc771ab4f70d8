"""
lineshrink CLI.

Commands:
    lineshrink reduce -s <source> -m <oracle script>   — Shrink a failing file
    lineshrink check  -s <source> -m <oracle script>   — Check the original reproduces

The reduced file is written next to the source as last_ok.<ext> after
every accepted removal, so an interrupted run keeps its progress.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional

from ..config import ShrinkConfig
from ..engine import ReductionProgress
from ..errors import ShrinkError, truncate_diagnostic
from .pipeline import check_original, run_reduction

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_progress(progress: ReductionProgress) -> str:
    """One progress line per visited position."""
    return (
        f"Trying to remove line {progress.position}. "
        f"Progress:{progress.percent_done:.2f}% "
        f"tpl:{progress.seconds_per_line:.2f}s. "
        f"Remaining {progress.remaining_seconds:.2f}s "
        f"expected minimization:{progress.expected_minimization:.2f}%"
    )


def print_progress(progress: ReductionProgress) -> None:
    print(format_progress(progress))


# =============================================================================
# CLI COMMANDS
# =============================================================================

def cmd_reduce(args: argparse.Namespace) -> int:
    """Reduce the source file."""
    try:
        config = ShrinkConfig.from_env()
        if args.tail_margin is not None:
            config = replace(config, tail_margin=args.tail_margin)
    except ValueError as e:
        print(f"ERROR: Invalid configuration")
        print(f"Reason: {e}")
        return 1

    print(f"Reducing {args.source}")
    print("=" * 50)

    try:
        outcome = run_reduction(
            args.source,
            args.oracle,
            config=config,
            on_progress=print_progress,
        )
    except ShrinkError as e:
        print(f"ERROR: Reduction failed")
        print(f"Reason: {truncate_diagnostic(str(e), config.fatal_diagnostic_limit)}")
        return 1

    result = outcome.result
    print()
    print("STATISTICS:")
    print(f"  Lines in source:  {result.line_count}")
    print(f"  Lines removed:    {result.removed}")
    print(f"  Lines remaining:  {result.remaining}")
    print(f"  Oracle attempts:  {result.attempts}")
    print(f"  Elapsed:          {result.elapsed:.2f}s")
    print()
    if result.removed:
        print(f"Reduced file written to {outcome.last_ok_path}")
    else:
        print("No line could be removed.")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Check that the untouched source reproduces the failure."""
    try:
        config = ShrinkConfig.from_env()
    except ValueError as e:
        print(f"ERROR: Invalid configuration")
        print(f"Reason: {e}")
        return 1

    try:
        verdict = check_original(args.source, args.oracle, config=config)
    except ShrinkError as e:
        print(f"ERROR: Check failed")
        print(f"Reason: {e}")
        return 1

    if verdict.ok:
        print(f"{args.source}: reproduces")
        return 0
    print(f"{args.source}: does not reproduce")
    print(f"Reason: {verdict.message}")
    return 1


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-s", "--source",
        required=True,
        help="Source file that reproduces the failure",
    )
    parser.add_argument(
        "-m", "--oracle",
        required=True,
        help="Python oracle script defining init()",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="lineshrink",
        description="lineshrink — shrink a failing source file line by line",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    reduce_parser = subparsers.add_parser(
        "reduce",
        help="Shrink the source file",
    )
    _add_common_arguments(reduce_parser)
    reduce_parser.add_argument(
        "--tail-margin",
        type=int,
        default=None,
        help="Number of trailing lines never attempted (default: 5)",
    )
    reduce_parser.set_defaults(func=cmd_reduce)

    check_parser = subparsers.add_parser(
        "check",
        help="Check that the source reproduces the failure",
    )
    _add_common_arguments(check_parser)
    check_parser.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
