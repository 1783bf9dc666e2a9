"""Dependency graph: edge extraction, library edge cache, and closures."""

from rts.graph.builder import BuildResult, DependencyGraphBuilder
from rts.graph.dependency_graph import STAR_NODE, DependencyEdge, DependencyGraph
from rts.graph.edge_cache import CacheLoadResult, EdgeCache
from rts.graph.extractor import CommandEdgeExtractor, EdgeExtractor, parse_edge_lines

__all__ = [
    "BuildResult",
    "CacheLoadResult",
    "CommandEdgeExtractor",
    "DependencyEdge",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "EdgeCache",
    "EdgeExtractor",
    "STAR_NODE",
    "parse_edge_lines",
]
