"""Artifact storage for selection state kept between cycles.

The artifacts directory holds:

* ``non-affected-tests``: one test name per line, written by the change
  detection step and read at the start of a cycle.
* ``time-table``: the versioned per-test timing table.
* ``graph`` (name configurable): the dependency graph, for inspection only.
* ``.lock``: present while a cycle holds the directory.

Absent files mean "first run" and read as empty state.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

from rts.errors import ArtifactsLockedError, ConfigurationError
from rts.graph.dependency_graph import DependencyGraph
from rts.timing.time_table import TimeTable

NON_AFFECTED_FILE = "non-affected-tests"
TIME_TABLE_FILE = "time-table"
DEFAULT_GRAPH_FILE = "graph"
LOCK_FILE = ".lock"

# Substituted for bytes that are not valid UTF-8
REPLACEMENT_CHAR = "\ufffd"


class SelectionStateStore:
    """Reads and writes the artifacts of a selection cycle."""

    def __init__(
        self,
        artifacts_dir: str | Path,
        graph_file: str = DEFAULT_GRAPH_FILE,
        logger: logging.Logger | None = None,
    ) -> None:
        self.artifacts_dir = Path(artifacts_dir)
        self.graph_file = graph_file
        self.logger = logger or logging.getLogger(__name__)

    @property
    def non_affected_path(self) -> Path:
        return self.artifacts_dir / NON_AFFECTED_FILE

    @property
    def time_table_path(self) -> Path:
        return self.artifacts_dir / TIME_TABLE_FILE

    @property
    def graph_path(self) -> Path:
        return self.artifacts_dir / self.graph_file

    @property
    def lock_path(self) -> Path:
        return self.artifacts_dir / LOCK_FILE

    def ensure_dir(self) -> Path:
        """Create the artifacts directory if needed.

        Raises:
            ConfigurationError: If the directory cannot be created.
        """
        try:
            self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"cannot create artifacts directory {self.artifacts_dir}: {e}"
            ) from e
        if not self.artifacts_dir.is_dir():
            raise ConfigurationError(
                f"artifacts path is not a directory: {self.artifacts_dir}"
            )
        return self.artifacts_dir

    @contextlib.contextmanager
    def locked(self) -> Iterator[Path]:
        """Hold the artifacts directory for the duration of a cycle.

        Raises:
            ArtifactsLockedError: If another cycle already holds it.
        """
        self.ensure_dir()
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise ArtifactsLockedError(
                f"artifacts directory {self.artifacts_dir} is in use "
                f"(remove {self.lock_path} if no other build is running)"
            ) from None
        except OSError as e:
            raise ConfigurationError(f"cannot create lock file: {e}") from e
        try:
            os.write(fd, f"{os.getpid()}\n".encode())
        finally:
            os.close(fd)

        try:
            yield self.artifacts_dir
        finally:
            with contextlib.suppress(FileNotFoundError):
                self.lock_path.unlink()

    def _read_text(self, path: Path) -> str:
        """Read *path*, replacing undecodable bytes instead of failing."""
        return path.read_text(encoding="utf-8", errors="replace")

    def _write_text(self, path: Path, text: str) -> Path:
        """Write *path* atomically: a temp file beside it, then a rename."""
        self.ensure_dir()
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", text=True
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise
        return path

    def read_non_affected(self) -> set[str]:
        """Read the non-affected tests; empty on first run.

        Lines holding bytes that are not valid UTF-8 are skipped with a
        warning.
        """
        path = self.non_affected_path
        if not path.exists():
            return set()
        names: set[str] = set()
        for line_number, raw_line in enumerate(
            self._read_text(path).splitlines(), start=1
        ):
            line = raw_line.strip()
            if not line:
                continue
            if REPLACEMENT_CHAR in line:
                self.logger.warning(
                    "%s:%d: skipping undecodable test name", path, line_number
                )
                continue
            names.add(line)
        return names

    def write_non_affected(self, names: Iterable[str]) -> Path:
        lines = sorted(set(names))
        return self._write_text(
            self.non_affected_path, "".join(f"{name}\n" for name in lines)
        )

    def read_time_table(self) -> TimeTable:
        """Read the time table; empty on first run.

        Malformed records, including ones with undecodable bytes, are
        skipped and listed in the table's warnings.

        Raises:
            TimeTableVersionError: If the table was written in an
                unsupported format version.
        """
        path = self.time_table_path
        if not path.exists():
            return TimeTable(logger=self.logger)
        return TimeTable.parse(self._read_text(path), path=path, logger=self.logger)

    def write_time_table(self, table: TimeTable) -> Path:
        return self._write_text(self.time_table_path, table.dumps())

    def write_graph(self, graph: DependencyGraph) -> Path:
        """Write the graph as sorted ``source -> target`` lines."""
        path = self._write_text(
            self.graph_path, "".join(f"{line}\n" for line in graph.to_lines())
        )
        self.logger.debug("Wrote dependency graph to %s", path)
        return path
