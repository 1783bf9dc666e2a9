"""Adapter for the external dependency-edge extractor.

Runs a static-analysis command (``jdeps -v`` by default) over compiled
artifacts and parses its textual output into class-level edges. The
analysis itself is done by the external tool; this module only invokes it
and reads what it prints.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from typing import Protocol

from rts.errors import ExtractionError
from rts.graph.dependency_graph import STAR_NODE, DependencyEdge

# Marker the extractor prints after a target it could not locate
NOT_FOUND_MARKER = "not found"

# Source tokens that introduce archive-level summary lines
_ARCHIVE_SUFFIXES = (".jar", ".zip", ".jmod")


class EdgeExtractor(Protocol):
    """Capability to extract class-level edges from compiled artifacts."""

    def extract(self, targets: Sequence[str]) -> list[DependencyEdge]:
        ...


def _is_summary_source(token: str) -> bool:
    """True for archive or directory summary lines (``foo.jar -> java.base``)."""
    return (
        token.endswith(_ARCHIVE_SUFFIXES)
        or token == "classes"
        or "/" in token
        or "\\" in token
    )


def parse_edge_lines(text: str) -> list[DependencyEdge]:
    """Parse extractor output into edges.

    Accepts lines of the form ``source -> target [origin]``. Blank lines,
    ``#`` comments and archive summary lines are skipped. A target followed
    by the ``not found`` marker also gets an edge to STAR_NODE, since its
    own dependencies are unknown.

    Args:
        text: Raw extractor stdout.

    Returns:
        List of edges in output order, duplicates removed.
    """
    edges: list[DependencyEdge] = []
    seen: set[DependencyEdge] = set()

    def _add(edge: DependencyEdge) -> None:
        if edge not in seen:
            seen.add(edge)
            edges.append(edge)

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "->" not in line:
            continue

        left, _, right = line.partition("->")
        source_tokens = left.split()
        target_tokens = right.split()
        if len(source_tokens) != 1 or not target_tokens:
            continue

        source = source_tokens[0]
        target = target_tokens[0]
        if _is_summary_source(source):
            continue

        _add((source, target))
        rest = " ".join(target_tokens[1:])
        if target != STAR_NODE and NOT_FOUND_MARKER in rest:
            _add((target, STAR_NODE))

    return edges


class CommandEdgeExtractor:
    """Runs an external analysis command and parses its edges.

    The targets (class directories or archives) are appended to the
    command line. Any failure to run the command raises ExtractionError;
    an incomplete graph must never be mistaken for a complete one.
    """

    def __init__(
        self,
        command: Sequence[str],
        timeout: float = 300.0,
        logger: logging.Logger | None = None,
    ) -> None:
        if not command:
            raise ValueError("Extractor command must not be empty")
        self.command = list(command)
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def extract(self, targets: Sequence[str]) -> list[DependencyEdge]:
        """Run the extractor over *targets*.

        Args:
            targets: Paths to class directories or archives.

        Returns:
            Parsed edges.

        Raises:
            ExtractionError: If the command is missing, times out, or exits
                with a non-zero status.
        """
        if not targets:
            return []

        argv = self.command + [str(t) for t in targets]
        self.logger.debug("Running extractor: %s", " ".join(argv))
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise ExtractionError(
                f"extractor '{self.command[0]}' not found in PATH"
            ) from None
        except subprocess.TimeoutExpired:
            raise ExtractionError(
                f"extractor timed out after {self.timeout}s"
            ) from None

        if result.returncode != 0:
            raise ExtractionError(
                f"extractor failed (exit {result.returncode}): "
                f"{result.stderr.strip()}"
            )

        edges = parse_edge_lines(result.stdout)
        self.logger.debug(
            "Extractor produced %d edges for %d targets", len(edges), len(targets)
        )
        return edges
