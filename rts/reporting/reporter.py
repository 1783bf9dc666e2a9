"""Report generation for selection cycles.

Generates YAML reports describing what a cycle selected and why: the
dependency format, affected and non-affected tests, tests forced in by
STAR_NODE reachability, the run-time estimate, edge cache activity, the
unreached-class diagnostic, and any recovered warnings.
"""

from __future__ import annotations

import datetime
from pathlib import Path
from typing import Any

import yaml

from rts.cycle import SelectionOutcome, UpdateOutcome
from rts.graph.dependency_graph import STAR_NODE
from rts.timing.time_table import TimeEstimate


class Reporter:
    """Collects cycle outcomes and generates YAML reports."""

    def __init__(self) -> None:
        self.selection: SelectionOutcome | None = None
        self.timing_update: UpdateOutcome | None = None
        self.commit_hash: str | None = None

    def set_selection(self, outcome: SelectionOutcome) -> None:
        self.selection = outcome

    def set_timing_update(self, outcome: UpdateOutcome) -> None:
        self.timing_update = outcome

    def set_commit_hash(self, commit_hash: str) -> None:
        """Set the commit hash to tag the report with."""
        self.commit_hash = commit_hash

    def generate_report(self) -> dict[str, Any]:
        """Generate the report data structure.

        Returns:
            Dictionary representing the full report, suitable for YAML
            serialization.
        """
        now = datetime.datetime.now(tz=datetime.timezone.utc).isoformat()
        report: dict[str, Any] = {"generated_at": now}

        if self.commit_hash:
            report["commit"] = self.commit_hash

        if self.selection is not None:
            report["selection"] = self._format_selection(self.selection)

        if self.timing_update is not None:
            report["timing_update"] = {
                "updated": list(self.timing_update.updated),
                "skipped_non_affected": list(self.timing_update.skipped),
                "warnings": list(self.timing_update.warnings),
            }

        return {"report": report}

    def write_yaml(self, path: Path) -> None:
        """Write the report as a YAML file.

        Args:
            path: File path to write the YAML report to.
        """
        report = self.generate_report()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(
                report,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

    def _format_selection(self, outcome: SelectionOutcome) -> dict[str, Any]:
        star_reaching = sorted(
            test for test in outcome.all_tests
            if STAR_NODE in outcome.closures.get(test, ())
        )
        entry: dict[str, Any] = {
            "dep_format": outcome.dep_format.name,
            "summary": {
                "total_tests": len(outcome.all_tests),
                "selected": len(outcome.selected),
                "non_affected": len(outcome.non_affected),
                "graph_nodes": len(outcome.graph),
                "graph_edges": outcome.graph.edge_count,
            },
            "selected_tests": outcome.selected,
            "star_reaching_tests": star_reaching,
            "edge_cache": {
                "hits": len(outcome.cache.hits),
                "extracted": list(outcome.cache.extracted),
            },
        }

        if outcome.estimate is not None:
            entry["estimate"] = _format_estimate(outcome.estimate)

        if outcome.unreached is not None:
            entry["unreached"] = sorted(outcome.unreached)

        if outcome.warnings:
            entry["warnings"] = list(outcome.warnings)

        return entry


def _format_estimate(estimate: TimeEstimate) -> dict[str, Any]:
    return {
        "total_seconds": estimate.total,
        "tests": [
            {
                "name": e.name,
                "mean_seconds": e.mean,
                "stdev_seconds": e.stdev,
                "last_estimate_seconds": e.last_estimate,
            }
            for e in estimate.per_test
        ],
    }
