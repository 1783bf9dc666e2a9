"""Per-test timing statistics, report parsing, and run-time estimation."""

from rts.timing.reports import ReportTimes, parse_report_text, read_test_times
from rts.timing.time_table import (
    EstimateEntry,
    TimeEstimate,
    TimeRecord,
    TimeTable,
)

__all__ = [
    "EstimateEntry",
    "ReportTimes",
    "TimeEstimate",
    "TimeRecord",
    "TimeTable",
    "parse_report_text",
    "read_test_times",
]
