"""Execution report parsing.

Reads the plain-text report files the test runner writes (one per test
class) and extracts the elapsed time of each test from lines such as::

    Tests run: 3, Failures: 0, Errors: 0, Skipped: 0, Time elapsed: 0.53 s - in com.example.FooTest
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from rts.errors import ParseError

TIME_MARKER = "Time elapsed:"

_TIME_PATTERN = re.compile(
    r"Time elapsed:\s*(?P<seconds>[0-9][0-9,]*(?:\.[0-9]+)?)\s*s(?:ec)?\b"
    r".*?\bin\s+(?P<name>\S+)\s*$"
)


@dataclass
class ReportTimes:
    """Elapsed times parsed from execution reports."""

    times: dict[str, float] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def parse_time_line(line: str) -> tuple[str, float]:
    """Parse one ``Time elapsed:`` line.

    Raises:
        ParseError: If the line carries the marker but no usable time or
            test name.
    """
    match = _TIME_PATTERN.search(line)
    if match is None:
        raise ParseError(f"unrecognised time line: {line.strip()!r}")
    seconds = float(match.group("seconds").replace(",", ""))
    return match.group("name"), seconds


def parse_report_text(
    text: str,
    path: str | Path | None = None,
    result: ReportTimes | None = None,
) -> ReportTimes:
    """Extract test times from one report's text.

    Lines with the marker that cannot be parsed are skipped with a warning.
    """
    if result is None:
        result = ReportTimes()
    for line_number, line in enumerate(text.splitlines(), start=1):
        if TIME_MARKER not in line:
            continue
        try:
            name, seconds = parse_time_line(line)
        except ParseError as e:
            result.warnings.append(str(ParseError(e.reason, path, line_number)))
            continue
        result.times[name] = seconds
    return result


def read_test_times(
    reports_dir: str | Path,
    logger: logging.Logger | None = None,
) -> ReportTimes:
    """Read elapsed times from every ``*.txt`` report in *reports_dir*.

    A missing directory yields no times. Unreadable files and malformed
    lines are skipped with a warning.

    Args:
        reports_dir: Directory containing the runner's text reports.
        logger: Logger for warnings.

    Returns:
        ReportTimes mapping test name to elapsed seconds.
    """
    logger = logger or logging.getLogger(__name__)
    result = ReportTimes()
    directory = Path(reports_dir)
    if not directory.is_dir():
        return result

    for report in sorted(directory.glob("*.txt")):
        try:
            text = report.read_text()
        except (OSError, UnicodeDecodeError) as e:
            result.warnings.append(f"{report}: cannot read report: {e}")
            continue
        parse_report_text(text, report, result)

    for warning in result.warnings:
        logger.warning("%s", warning)
    return result
