"""Entry point for the regression test selector.

Provides subcommands for the build integration:

* ``select`` runs a selection cycle and prints the tests to execute.
* ``update-times`` folds the runner's report timings into the time table.
* ``estimate`` prints the run-time estimate for a set of tests.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from rts.config import RtsConfig
from rts.context import CycleContext, StaticHost
from rts.cycle import prepare_for_next_run, update_time_table
from rts.errors import RtsError
from rts.graph.extractor import CommandEdgeExtractor
from rts.reporting.reporter import Reporter
from rts.state.store import SelectionStateStore

LOG_FORMAT = "[rts] %(levelname)s %(message)s"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Class-level regression test selection"
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=Path(".rts_config"),
        help="Path to the .rts_config JSON file (default: .rts_config)",
    )
    parser.add_argument(
        "--basedir",
        type=Path,
        default=None,
        help="Project root (default: directory of the config file)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # select subcommand
    select_parser = subparsers.add_parser(
        "select",
        help="Compute the tests affected by the current change",
    )
    select_parser.add_argument(
        "--tests-file",
        type=Path,
        required=True,
        help="File listing the test classes to analyze, one per line",
    )
    select_parser.add_argument(
        "--classpath",
        type=str,
        default="",
        help=f"Test classpath, entries separated by '{os.pathsep}'",
    )
    select_parser.add_argument(
        "--classes-file",
        type=Path,
        default=None,
        help="File listing every class on the classpath, one per line",
    )
    select_parser.add_argument(
        "--non-affected-file",
        type=Path,
        default=None,
        help="Non-affected tests (default: the artifacts directory copy)",
    )
    select_parser.add_argument(
        "--dep-format",
        choices=["CLZ", "ZLC"],
        default=None,
        help="Override the configured dependency format",
    )
    select_parser.add_argument(
        "--estimate",
        action="store_true",
        default=False,
        help="Estimate the run time of the selected tests",
    )
    select_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to write the YAML selection report",
    )
    select_parser.add_argument(
        "--commit",
        type=str,
        default=None,
        help="Commit hash to tag the selection report with",
    )

    # update-times subcommand
    update_parser = subparsers.add_parser(
        "update-times",
        help="Fold execution report timings into the time table",
    )
    update_parser.add_argument(
        "--reports-dir",
        type=Path,
        required=True,
        help="Directory containing the runner's text reports",
    )
    update_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to write the YAML update report",
    )

    # estimate subcommand
    estimate_parser = subparsers.add_parser(
        "estimate",
        help="Print the run-time estimate for the given tests",
    )
    estimate_parser.add_argument(
        "tests",
        nargs="+",
        help="Test classes to estimate",
    )
    return parser.parse_args(argv)


def _read_lines(path: Path) -> list[str]:
    """Read non-empty, stripped lines from a file."""
    return [line.strip() for line in path.read_text().splitlines() if line.strip()]


def _load_config(args: argparse.Namespace) -> RtsConfig:
    return RtsConfig(args.config_file, basedir=args.basedir)


def _configure_logging(config: RtsConfig) -> logging.Logger:
    logging.basicConfig(stream=sys.stderr, format=LOG_FORMAT)
    logger = logging.getLogger("rts")
    logger.setLevel(config.log_level)
    return logger


def _store_for(config: RtsConfig, logger: logging.Logger) -> SelectionStateStore:
    return SelectionStateStore(
        config.artifacts_dir, graph_file=config.graph_file, logger=logger
    )


def cmd_select(args: argparse.Namespace) -> int:
    """Handle select subcommand.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    config = _load_config(args)
    if args.dep_format is not None:
        config.set_config(dep_format=args.dep_format)
    if args.estimate:
        config.set_config(estimate_select=True)
    logger = _configure_logging(config)

    try:
        tests = _read_lines(args.tests_file)
        classes = _read_lines(args.classes_file) if args.classes_file else None
        non_affected = (
            _read_lines(args.non_affected_file) if args.non_affected_file else None
        )
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    host = StaticHost(
        base=config.basedir,
        entries=[e for e in args.classpath.split(os.pathsep) if e],
        tests=tests,
        classes=classes,
    )
    context = CycleContext.from_host(host)
    store = _store_for(config, logger)

    try:
        extractor = CommandEdgeExtractor(
            config.extractor_command,
            timeout=config.extractor_timeout,
            logger=logger,
        )
        with store.locked():
            outcome = prepare_for_next_run(
                context, config, store, extractor,
                non_affected=non_affected, logger=logger,
            )
    except (RtsError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for name in outcome.selected:
        print(name)

    if outcome.estimate is not None:
        for line in outcome.estimate.summary_lines():
            print(line, file=sys.stderr)

    if args.output:
        reporter = Reporter()
        reporter.set_selection(outcome)
        if args.commit:
            reporter.set_commit_hash(args.commit)
        reporter.write_yaml(args.output)

    return 0


def cmd_update_times(args: argparse.Namespace) -> int:
    """Handle update-times subcommand.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    config = _load_config(args)
    logger = _configure_logging(config)
    context = CycleContext.from_host(
        StaticHost(base=config.basedir, reports=args.reports_dir)
    )
    store = _store_for(config, logger)

    try:
        with store.locked():
            outcome = update_time_table(context, store, logger=logger)
    except RtsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Updated timing for {len(outcome.updated)} tests")
    if outcome.skipped:
        print(f"  Skipped (non-affected): {len(outcome.skipped)}")

    if args.output:
        reporter = Reporter()
        reporter.set_timing_update(outcome)
        reporter.write_yaml(args.output)

    return 0


def cmd_estimate(args: argparse.Namespace) -> int:
    """Handle estimate subcommand.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    config = _load_config(args)
    logger = _configure_logging(config)
    store = _store_for(config, logger)

    if not store.time_table_path.exists():
        print("No time table recorded yet.")
        return 0

    try:
        estimate = store.read_time_table().estimate(args.tests)
    except RtsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    for line in estimate.summary_lines():
        print(line)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return 1

    if args.command == "select":
        return cmd_select(args)
    elif args.command == "update-times":
        return cmd_update_times(args)
    elif args.command == "estimate":
        return cmd_estimate(args)
    else:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
