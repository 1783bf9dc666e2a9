"""Error types raised by the selection engine.

Fatal errors (configuration, graph construction) propagate to the caller.
Per-record errors (cache entries, timing rows, report lines) are recovered
where they occur and reported as warnings.
"""

from __future__ import annotations

from pathlib import Path


class RtsError(Exception):
    """Base class for all selection engine errors."""


class ConfigurationError(RtsError):
    """The artifacts directory or configuration cannot be established."""


class ArtifactsLockedError(ConfigurationError):
    """Another cycle holds the artifacts directory."""


class CacheReadError(RtsError):
    """A cached edge entry is unreadable or corrupt."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"cannot read cache entry {self.path}: {reason}")


class ParseError(RtsError):
    """A malformed line in a timing table or execution report."""

    def __init__(
        self,
        reason: str,
        path: str | Path | None = None,
        line_number: int | None = None,
    ) -> None:
        self.reason = reason
        self.path = Path(path) if path is not None else None
        self.line_number = line_number
        location = ""
        if self.path is not None:
            location = str(self.path)
            if line_number is not None:
                location += f":{line_number}"
            location += ": "
        super().__init__(f"{location}{reason}")


class GraphBuildError(RtsError):
    """The dependency graph could not be constructed."""


class ExtractionError(GraphBuildError):
    """The external edge extractor failed."""


class TimeTableVersionError(RtsError):
    """The time table was written in an unsupported format version."""

    def __init__(self, path: str | Path | None, header: str) -> None:
        self.path = Path(path) if path is not None else None
        self.header = header
        location = f"{self.path}: " if self.path is not None else ""
        super().__init__(
            f"{location}unsupported time table version '{header}'; "
            "refusing to overwrite it"
        )
