"""Per-test timing statistics and run-time estimation.

The time table keeps one record per test: running mean, sample count,
population standard deviation, sum of squares, the raw times observed
(newest first) and the estimates previously reported (newest first).
Records are updated once per cycle for every test that actually ran.

Serialized form, one record per line after a version header::

    # rts-time-table v1
    <name> <mean> <count> <stdev> <sum_sq> <history> <estimates>

Lists are comma-joined; an empty list is written as ``-``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from rts.errors import ParseError, TimeTableVersionError

TIME_TABLE_VERSION = 1
HEADER_PREFIX = "# rts-time-table v"
HEADER = f"{HEADER_PREFIX}{TIME_TABLE_VERSION}"
EMPTY_LIST = "-"
FIELD_COUNT = 7
ROUND_DIGITS = 3


def _format_float(value: float) -> str:
    return repr(float(value))


def _format_list(values: list[float]) -> str:
    if not values:
        return EMPTY_LIST
    return ",".join(_format_float(v) for v in values)


def _parse_float(text: str, field_name: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise ParseError(f"{field_name} is not a number: {text!r}") from None
    if not math.isfinite(value) or value < 0:
        raise ParseError(f"{field_name} must be a non-negative number: {text!r}")
    return value


def _parse_list(text: str, field_name: str) -> list[float]:
    if text == EMPTY_LIST:
        return []
    return [_parse_float(part, field_name) for part in text.split(",")]


@dataclass
class TimeRecord:
    """Timing statistics for a single test."""

    name: str
    mean: float
    count: int
    stdev: float = 0.0
    sum_sq: float = 0.0
    history: list[float] = field(default_factory=list)
    past_estimates: list[float] = field(default_factory=list)

    @classmethod
    def first(cls, name: str, elapsed: float) -> TimeRecord:
        """Record for a test observed for the first time."""
        return cls(
            name=name,
            mean=round(elapsed, ROUND_DIGITS),
            count=1,
            stdev=0.0,
            sum_sq=elapsed * elapsed,
            history=[elapsed],
        )

    @property
    def last_estimate(self) -> float | None:
        return self.past_estimates[0] if self.past_estimates else None

    def add_sample(self, elapsed: float) -> None:
        """Fold one observed time into the statistics.

        Uses a Welford step for the variance. The previous second moment
        is recovered from the stored (rounded) standard deviation; the
        increment ``delta * (elapsed - new_mean)`` is never negative, so
        the square root is always defined.
        """
        count = self.count + 1
        delta = elapsed - self.mean
        mean = self.mean + delta / count
        m2 = self.stdev * self.stdev * self.count + delta * (elapsed - mean)
        self.stdev = round(math.sqrt(max(m2, 0.0) / count), ROUND_DIGITS)
        self.mean = round(mean, ROUND_DIGITS)
        self.count = count
        self.sum_sq += elapsed * elapsed
        self.history.insert(0, elapsed)

    def to_line(self) -> str:
        """Serialize as a seven-field record line."""
        if not self.name or any(c.isspace() for c in self.name):
            raise ValueError(f"Invalid test name for time table: {self.name!r}")
        return " ".join([
            self.name,
            _format_float(self.mean),
            str(self.count),
            _format_float(self.stdev),
            _format_float(self.sum_sq),
            _format_list(self.history),
            _format_list(self.past_estimates),
        ])

    @classmethod
    def from_line(cls, line: str) -> TimeRecord:
        """Parse a seven-field record line.

        Raises:
            ParseError: If the line does not hold a valid record.
        """
        fields = line.split()
        if len(fields) != FIELD_COUNT:
            raise ParseError(
                f"expected {FIELD_COUNT} fields, found {len(fields)}"
            )
        name, mean, count, stdev, sum_sq, history, estimates = fields
        try:
            count_value = int(count)
        except ValueError:
            raise ParseError(f"count is not an integer: {count!r}") from None
        if count_value < 1:
            raise ParseError(f"count must be positive: {count!r}")
        return cls(
            name=name,
            mean=_parse_float(mean, "mean"),
            count=count_value,
            stdev=_parse_float(stdev, "stdev"),
            sum_sq=_parse_float(sum_sq, "sum_sq"),
            history=_parse_list(history, "history"),
            past_estimates=_parse_list(estimates, "estimates"),
        )


@dataclass
class EstimateEntry:
    """Estimated time for one selected test."""

    name: str
    mean: float
    stdev: float
    last_estimate: float | None


@dataclass
class TimeEstimate:
    """Estimated run time for a set of selected tests."""

    per_test: list[EstimateEntry]
    total: float

    def summary_lines(self) -> list[str]:
        lines = []
        for entry in self.per_test:
            previous = (
                f"{entry.last_estimate}s" if entry.last_estimate is not None else "n/a"
            )
            lines.append(f"{entry.name} {entry.mean}s//{previous}")
        lines.append(f"Total Estimate Time: {self.total}")
        return lines


class TimeTable:
    """In-memory time table with parsing, update and estimation."""

    def __init__(
        self,
        records: Iterable[TimeRecord] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self.records: dict[str, TimeRecord] = {}
        self.warnings: list[str] = []
        self.logger = logger or logging.getLogger(__name__)
        for record in records:
            self.records[record.name] = record

    def __contains__(self, name: object) -> bool:
        return name in self.records

    def __len__(self) -> int:
        return len(self.records)

    def get(self, name: str) -> TimeRecord | None:
        return self.records.get(name)

    def _warn(self, message: str) -> None:
        self.logger.warning("%s", message)
        self.warnings.append(message)

    @classmethod
    def parse(
        cls,
        text: str,
        path: str | Path | None = None,
        logger: logging.Logger | None = None,
    ) -> TimeTable:
        """Parse a serialized time table.

        Malformed records are skipped with a warning; a single bad line
        never discards the rest of the table. Lines holding U+FFFD (bytes
        that were not valid UTF-8 when the file was read) count as
        malformed.

        Args:
            text: File contents.
            path: Source path, used in warnings.
            logger: Logger for warnings.

        Returns:
            The parsed table; its ``warnings`` list holds skipped lines.

        Raises:
            TimeTableVersionError: If the header announces a format version
                other than the current one.
        """
        table = cls(logger=logger)
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            if line.startswith("#"):
                if line.startswith(HEADER_PREFIX) and line != HEADER:
                    raise TimeTableVersionError(path, line)
                continue

            try:
                if "\ufffd" in line:
                    raise ParseError("record contains undecodable bytes")
                record = TimeRecord.from_line(line)
            except ParseError as e:
                table._warn(str(ParseError(
                    f"skipping malformed record: {e.reason}", path, line_number,
                )))
                continue

            if record.name in table.records:
                table._warn(str(ParseError(
                    f"skipping duplicate record for {record.name}", path, line_number,
                )))
                continue
            table.records[record.name] = record
        return table

    def dumps(self) -> str:
        """Serialize the table, records in insertion order."""
        lines = [HEADER]
        lines.extend(record.to_line() for record in self.records.values())
        return "\n".join(lines) + "\n"

    def update(
        self,
        current_run_times: Mapping[str, float],
        non_affected: Iterable[str],
    ) -> list[str]:
        """Fold this cycle's observed times into the table.

        Tests in *non_affected* did not run and keep their records
        unchanged. Applying the same update twice counts the samples twice.

        Args:
            current_run_times: Elapsed seconds per test observed this cycle.
            non_affected: Tests skipped this cycle.

        Returns:
            Names of the records that were created or updated.
        """
        skipped = set(non_affected)
        updated: list[str] = []
        for name in sorted(current_run_times):
            if name in skipped:
                continue
            elapsed = float(current_run_times[name])
            if not math.isfinite(elapsed) or elapsed < 0:
                self._warn(f"ignoring invalid time {elapsed!r} for {name}")
                continue

            record = self.records.get(name)
            if record is None:
                self.records[name] = TimeRecord.first(name, elapsed)
            else:
                record.add_sample(elapsed)
            updated.append(name)
            self.logger.debug("Updated timing for %s: %s", name, self.records[name])
        return updated

    def estimate(self, tests: Iterable[str]) -> TimeEstimate:
        """Estimate the total run time of *tests*.

        Tests without a record are left out of the estimate.
        """
        entries = [
            EstimateEntry(
                name=record.name,
                mean=record.mean,
                stdev=record.stdev,
                last_estimate=record.last_estimate,
            )
            for record in (self.records.get(name) for name in sorted(set(tests)))
            if record is not None
        ]
        total = round(math.fsum(entry.mean for entry in entries), ROUND_DIGITS)
        return TimeEstimate(per_test=entries, total=total)

    def record_estimates(self, tests: Iterable[str]) -> None:
        """Remember the current mean as the estimate given for each test."""
        for name in set(tests):
            record = self.records.get(name)
            if record is not None:
                record.past_estimates.insert(0, record.mean)
