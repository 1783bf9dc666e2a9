"""Selection cycle driver.

Runs the stages of a cycle in their required order: library edges from the
cache, graph and closures, affected tests, estimation, persistence. A
second entry point folds the runner's timings into the time table after
the selected tests have executed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from rts.config import RtsConfig
from rts.context import CycleContext
from rts.graph.builder import DependencyGraphBuilder
from rts.graph.dependency_graph import DependencyGraph
from rts.graph.edge_cache import CacheLoadResult, EdgeCache
from rts.graph.extractor import EdgeExtractor
from rts.selection.impact import DependencyFormat, compute_affected_tests, tests_to_run
from rts.state.store import SelectionStateStore
from rts.timing.reports import read_test_times
from rts.timing.time_table import TimeEstimate


@dataclass
class SelectionOutcome:
    """Everything a selection cycle produced."""

    dep_format: DependencyFormat
    all_tests: list[str]
    non_affected: set[str]
    affected: set[str] | None
    closures: dict[str, frozenset[str]]
    graph: DependencyGraph
    unreached: set[str] | None = None
    estimate: TimeEstimate | None = None
    cache: CacheLoadResult = field(default_factory=CacheLoadResult)
    warnings: list[str] = field(default_factory=list)

    @property
    def selected(self) -> list[str]:
        """Tests to execute this cycle, sorted."""
        return sorted(tests_to_run(self.all_tests, self.non_affected, self.affected))


@dataclass
class UpdateOutcome:
    """Result of folding report timings into the time table."""

    updated: list[str]
    skipped: list[str]
    warnings: list[str] = field(default_factory=list)


def prepare_for_next_run(
    context: CycleContext,
    config: RtsConfig,
    store: SelectionStateStore,
    extractor: EdgeExtractor,
    non_affected: Iterable[str] | None = None,
    logger: logging.Logger | None = None,
) -> SelectionOutcome:
    """Run one selection cycle.

    Args:
        context: Inputs supplied by the host for this cycle.
        config: Selection configuration.
        store: Artifact store for this project.
        extractor: External edge extractor.
        non_affected: Tests the change-detection step marked unaffected.
            Read from the store when not given.
        logger: Logger shared by all stages.

    Returns:
        SelectionOutcome with the graph, closures and selected tests.

    Raises:
        ConfigurationError: If the artifacts directory is unusable.
        GraphBuildError: If the dependency graph cannot be built.
    """
    logger = logger or logging.getLogger(__name__)
    start = time.monotonic()
    store.ensure_dir()

    cache = EdgeCache(config.cache_dir, config.dependency_root, logger=logger)
    components = cache.cacheable_components(context.classpath)
    cache_result = cache.load_or_extract(components, extractor)
    library_edges = cache.load_runtime_edges() + cache_result.edges
    loaded = time.monotonic()

    builder = DependencyGraphBuilder(
        extractor, filter_lib=config.filter_lib, logger=logger
    )
    build = builder.build(
        context.classes_to_analyze,
        library_edges,
        config.compute_unreached,
        extraction_targets=context.project_entries(components),
        known_classes=context.known_classes,
    )
    built = time.monotonic()

    if non_affected is None:
        non_affected_set = store.read_non_affected()
    else:
        non_affected_set = set(non_affected)

    dep_format = config.dep_format
    affected = compute_affected_tests(
        context.classes_to_analyze, non_affected_set, build.closures, dep_format
    )
    end = time.monotonic()

    outcome = SelectionOutcome(
        dep_format=dep_format,
        all_tests=list(context.classes_to_analyze),
        non_affected=non_affected_set,
        affected=affected,
        closures=build.closures,
        graph=build.graph,
        unreached=build.unreached,
        cache=cache_result,
        warnings=list(cache_result.warnings),
    )

    if config.estimate_select:
        table = store.read_time_table()
        outcome.estimate = table.estimate(outcome.selected)
        table.record_estimates(outcome.selected)
        store.write_time_table(table)
        outcome.warnings.extend(table.warnings)

    if config.print_graph:
        store.write_graph(build.graph)

    logger.debug("[PROFILE] prepare(load_cached_edges): %.3fs", loaded - start)
    logger.debug("[PROFILE] prepare(build_graph): %.3fs", built - loaded)
    logger.debug("[PROFILE] prepare(affected_tests): %.3fs", end - built)
    logger.info(
        "Selected %d of %d tests (%s)",
        len(outcome.selected), len(outcome.all_tests), dep_format.name,
    )
    return outcome


def update_time_table(
    context: CycleContext,
    store: SelectionStateStore,
    logger: logging.Logger | None = None,
) -> UpdateOutcome:
    """Fold the runner's report timings into the stored time table.

    Tests listed as non-affected did not run this cycle and keep their
    records unchanged.
    """
    logger = logger or logging.getLogger(__name__)
    store.ensure_dir()

    times = (
        read_test_times(context.reports_dir, logger=logger)
        if context.reports_dir is not None
        else None
    )
    run_times = times.times if times is not None else {}
    non_affected = store.read_non_affected()

    table = store.read_time_table()
    updated = table.update(run_times, non_affected)
    store.write_time_table(table)

    warnings = list(times.warnings) if times is not None else []
    warnings.extend(table.warnings)
    skipped = sorted(name for name in run_times if name in non_affected)
    logger.info("Updated timing for %d tests", len(updated))
    return UpdateOutcome(updated=updated, skipped=skipped, warnings=warnings)
