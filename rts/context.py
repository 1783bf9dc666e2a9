"""Host contract and the per-cycle context derived from it.

The engine never reaches into the build tool. The host implements
HostEnvironment; CycleContext snapshots what it supplies once per cycle
and is passed explicitly to every component.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


class HostEnvironment(Protocol):
    """Capabilities a build tool supplies to a selection cycle."""

    def basedir(self) -> Path:
        """Project root directory."""
        ...

    def classpath(self) -> Sequence[str]:
        """Test classpath: class directories followed by archives."""
        ...

    def classes_to_analyze(self) -> Sequence[str]:
        """Test classes whose closures are computed."""
        ...

    def all_classes(self) -> Sequence[str] | None:
        """Every class on the classpath, or None if unknown."""
        ...

    def reports_dir(self) -> Path | None:
        """Directory holding the runner's text reports."""
        ...


@dataclass
class StaticHost:
    """HostEnvironment backed by plain values."""

    base: Path
    entries: list[str] = field(default_factory=list)
    tests: list[str] = field(default_factory=list)
    classes: list[str] | None = None
    reports: Path | None = None

    def basedir(self) -> Path:
        return self.base

    def classpath(self) -> Sequence[str]:
        return list(self.entries)

    def classes_to_analyze(self) -> Sequence[str]:
        return list(self.tests)

    def all_classes(self) -> Sequence[str] | None:
        return list(self.classes) if self.classes is not None else None

    def reports_dir(self) -> Path | None:
        return self.reports


@dataclass(frozen=True)
class CycleContext:
    """Immutable snapshot of the host's inputs for one cycle."""

    basedir: Path
    classpath: tuple[str, ...]
    classes_to_analyze: tuple[str, ...]
    known_classes: frozenset[str] | None = None
    reports_dir: Path | None = None

    @classmethod
    def from_host(cls, host: HostEnvironment) -> CycleContext:
        """Query the host once and freeze the answers."""
        all_classes = host.all_classes()
        return cls(
            basedir=Path(host.basedir()),
            classpath=tuple(str(entry) for entry in host.classpath()),
            classes_to_analyze=tuple(dict.fromkeys(host.classes_to_analyze())),
            known_classes=(
                frozenset(all_classes) if all_classes is not None else None
            ),
            reports_dir=host.reports_dir(),
        )

    def project_entries(self, library_components: Iterable[str | Path]) -> list[str]:
        """Classpath entries that are not cached library components."""
        libraries = {str(Path(c)) for c in library_components}
        return [
            entry for entry in self.classpath if str(Path(entry)) not in libraries
        ]
