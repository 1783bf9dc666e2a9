"""Edge cache for third-party components.

Extracting edges from library archives is the most expensive step of a
cycle and their contents rarely change, so extracted edges are stored per
component under the cache root and reused on later cycles. Each entry is a
JSON file keyed by the component's identity (its path relative to the
dependency root). The entry also records a SHA-256 fingerprint of the
component's bytes; an entry whose fingerprint no longer matches is treated
as a miss and overwritten.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from rts.errors import CacheReadError
from rts.graph.dependency_graph import DependencyEdge
from rts.graph.extractor import EdgeExtractor, parse_edge_lines

CACHE_FORMAT_VERSION = 1

# Merged edges for the platform runtime library, at the cache root
RUNTIME_GRAPH_FILE = "runtime.graph"


@dataclass
class CacheLoadResult:
    """Outcome of loading library edges from the cache."""

    edges: list[DependencyEdge] = field(default_factory=list)
    hits: list[str] = field(default_factory=list)
    misses: list[Path] = field(default_factory=list)
    extracted: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _identity_to_filename(identity: str) -> str:
    """Convert a component identity to a safe, collision-free filename.

    Replaces non-alphanumeric characters (except hyphens, dots and
    underscores) with underscores and appends a short digest of the raw
    identity so that distinct identities never share a file.
    """
    safe = re.sub(r"[^a-zA-Z0-9_\-.]", "_", identity).strip("_")
    digest = hashlib.sha256(identity.encode()).hexdigest()[:8]
    return f"{safe}-{digest}.json"


def fingerprint(path: str | Path) -> str | None:
    """Content hash of a component, or None if it cannot be read."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(1 << 16), b""):
                digest.update(chunk)
    except OSError:
        return None
    return digest.hexdigest()[:16]


class EdgeCache:
    """Persists extracted edges of third-party components between cycles."""

    def __init__(
        self,
        cache_root: str | Path,
        dependency_root: str | Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cache_root = Path(cache_root)
        self.dependency_root = (
            Path(dependency_root) if dependency_root is not None else None
        )
        self.logger = logger or logging.getLogger(__name__)

    def _relative_to_root(self, component: Path) -> Path | None:
        if self.dependency_root is None:
            return None
        try:
            return component.resolve().relative_to(self.dependency_root.resolve())
        except ValueError:
            return None

    def cacheable_components(self, classpath: Iterable[str | Path]) -> list[Path]:
        """Select the classpath entries that are third-party components.

        A component is cacheable when it is a file (an archive) located
        under the dependency root. Project class directories are never
        cached since they change from cycle to cycle.
        """
        components: list[Path] = []
        for entry in classpath:
            path = Path(entry)
            if path.is_file() and self._relative_to_root(path) is not None:
                components.append(path)
        return components

    def identity(self, component: str | Path) -> str:
        """Identity of a component: its path relative to the dependency root."""
        path = Path(component)
        relative = self._relative_to_root(path)
        if relative is None:
            return path.as_posix()
        return relative.as_posix()

    def entry_path(self, identity: str) -> Path:
        return self.cache_root / _identity_to_filename(identity)

    def _read_entry(self, component: Path) -> list[DependencyEdge] | None:
        """Read one cache entry.

        Returns:
            The cached edges, or None when there is no usable entry.

        Raises:
            CacheReadError: If the entry exists but cannot be decoded.
        """
        identity = self.identity(component)
        path = self.entry_path(identity)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text())
        except (OSError, UnicodeDecodeError) as e:
            raise CacheReadError(path, str(e)) from e
        except json.JSONDecodeError as e:
            raise CacheReadError(path, f"invalid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("edges"), list):
            raise CacheReadError(path, "missing edge list")
        if data.get("version") != CACHE_FORMAT_VERSION:
            raise CacheReadError(
                path, f"unsupported cache version {data.get('version')!r}"
            )
        if data.get("identity") != identity:
            raise CacheReadError(path, "identity does not match component")

        stored_fingerprint = data.get("fingerprint")
        current_fingerprint = fingerprint(component)
        if (
            stored_fingerprint is not None
            and current_fingerprint is not None
            and stored_fingerprint != current_fingerprint
        ):
            self.logger.info("Cache entry for %s is stale, re-extracting", identity)
            return None

        edges: list[DependencyEdge] = []
        for item in data["edges"]:
            if (
                not isinstance(item, list)
                or len(item) != 2
                or not all(isinstance(part, str) for part in item)
            ):
                raise CacheReadError(path, f"malformed edge {item!r}")
            edges.append((item[0], item[1]))
        return edges

    def load(self, components: Sequence[str | Path]) -> CacheLoadResult:
        """Load cached edges for each component.

        Components without a usable entry are reported as misses; the
        caller extracts and stores them. Unreadable entries are misses too,
        and additionally produce a warning.

        Args:
            components: Component paths, in classpath order.

        Returns:
            CacheLoadResult with the edges of every hit.
        """
        result = CacheLoadResult()
        for entry in components:
            component = Path(entry)
            try:
                edges = self._read_entry(component)
            except CacheReadError as e:
                message = f"{e}; treating as cache miss"
                self.logger.warning("%s", message)
                result.warnings.append(message)
                edges = None

            if edges is None:
                result.misses.append(component)
                continue
            result.hits.append(self.identity(component))
            result.edges.extend(edges)
        return result

    def store(
        self, component: str | Path, edges: Iterable[DependencyEdge]
    ) -> Path:
        """Persist extracted edges for a component.

        Creates the cache root if it does not exist and overwrites any
        existing entry for the same identity.

        Returns:
            Path to the written entry.
        """
        component = Path(component)
        identity = self.identity(component)
        self.cache_root.mkdir(parents=True, exist_ok=True)
        path = self.entry_path(identity)
        data = {
            "version": CACHE_FORMAT_VERSION,
            "identity": identity,
            "fingerprint": fingerprint(component),
            "edges": [[source, target] for source, target in edges],
        }
        path.write_text(json.dumps(data, indent=2) + "\n")
        return path

    def load_or_extract(
        self,
        components: Sequence[str | Path],
        extractor: EdgeExtractor,
    ) -> CacheLoadResult:
        """Load cached edges and extract (then store) every miss.

        Raises:
            ExtractionError: If extracting a missed component fails.
        """
        result = self.load(components)
        for component in result.misses:
            edges = extractor.extract([str(component)])
            self.store(component, edges)
            result.edges.extend(edges)
            result.extracted.append(self.identity(component))
        if result.extracted:
            self.logger.info(
                "Extracted edges for %d uncached components", len(result.extracted)
            )
        return result

    def load_runtime_edges(self) -> list[DependencyEdge]:
        """Load the merged runtime-library edges, if present.

        The file holds ``source -> target`` lines. A missing file yields no
        edges; an unreadable one yields none plus a warning.
        """
        path = self.cache_root / RUNTIME_GRAPH_FILE
        if not path.exists():
            return []
        try:
            text = path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning(
                "%s; ignoring runtime library edges", CacheReadError(path, str(e))
            )
            return []
        return parse_edge_lines(text)
