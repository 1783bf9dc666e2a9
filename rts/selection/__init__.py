"""Change-impact analysis: which tests must run this cycle."""

from rts.selection.impact import DependencyFormat, compute_affected_tests, tests_to_run

__all__ = [
    "DependencyFormat",
    "compute_affected_tests",
    "tests_to_run",
]
