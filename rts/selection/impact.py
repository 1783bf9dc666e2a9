"""Affected-test computation from closures and the non-affected set.

The non-affected set is produced upstream by the change-detection step.
How much work is left here depends on the dependency format:

* ZLC encodes STAR_NODE reachability itself, so the upstream non-affected
  set is already final and nothing is computed here.
* CLZ stores plain class lists. Its non-affected decision ignored
  STAR_NODE, so every test whose closure reaches STAR_NODE is re-added.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping

from rts.graph.dependency_graph import STAR_NODE


class DependencyFormat(enum.Enum):
    """Persisted encoding of per-test dependency information."""

    CLZ = "CLZ"
    ZLC = "ZLC"


def compute_affected_tests(
    all_tests: Iterable[str],
    non_affected: Iterable[str],
    closures: Mapping[str, Iterable[str]],
    dep_format: DependencyFormat,
) -> set[str] | None:
    """Compute the tests that must run this cycle.

    Args:
        all_tests: Every test class in the project.
        non_affected: Tests the change-detection step believes unaffected.
        closures: Closure of each test.
        dep_format: Dependency format in use.

    Returns:
        The affected tests for CLZ; None for ZLC, whose non-affected set
        is already final.
    """
    if dep_format is DependencyFormat.ZLC:
        return None

    tests = set(all_tests)
    affected = tests - set(non_affected)
    for test in tests:
        if STAR_NODE in closures.get(test, ()):
            affected.add(test)
    return affected


def tests_to_run(
    all_tests: Iterable[str],
    non_affected: Iterable[str],
    affected: set[str] | None,
) -> set[str]:
    """Tests selected for execution.

    Uses the analyzer's result when there is one, otherwise the complement
    of the (final) non-affected set.
    """
    if affected is not None:
        return set(affected)
    return set(all_tests) - set(non_affected)
