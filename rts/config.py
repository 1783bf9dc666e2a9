"""Selection configuration file management.

Reads and writes the .rts_config JSON file that stores where artifacts and
cached library edges live, which dependency format is in use, and how the
external edge extractor is invoked.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from rts.errors import ConfigurationError
from rts.selection.impact import DependencyFormat

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "artifacts_dir": ".rts",
    "cache_dir": "edge-cache",
    "dependency_root": None,
    "dep_format": "ZLC",
    "print_graph": True,
    "graph_file": "graph",
    "estimate_select": False,
    "filter_lib": False,
    "compute_unreached": False,
    "log_level": "INFO",
    "extractor_command": ["jdeps", "-v"],
    "extractor_timeout": 300,
}

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class RtsConfig:
    """Manages the .rts_config JSON configuration file.

    Relative directories are resolved against ``basedir`` (the project
    root), which defaults to the directory holding the config file.
    """

    def __init__(
        self,
        path: Path | None = None,
        basedir: Path | None = None,
    ) -> None:
        self.path = path
        if basedir is None:
            basedir = path.parent if path is not None else Path.cwd()
        self.basedir = basedir
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            text = self.path.read_text()
            data = json.loads(text)
            if isinstance(data, dict):
                self._data = {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError):
            self._data = dict(DEFAULT_CONFIG)

    def save(self) -> None:
        """Write config to the file."""
        if self.path is None:
            raise ValueError("No config file path specified")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)
            f.write("\n")

    def _resolve(self, value: str) -> Path:
        path = Path(value)
        if not path.is_absolute():
            path = self.basedir / path
        return path

    @property
    def config(self) -> dict[str, Any]:
        """Get the full configuration dict."""
        return dict(self._data)

    @property
    def artifacts_dir(self) -> Path:
        """Get the directory holding artifacts kept between runs."""
        return self._resolve(
            str(self._data.get("artifacts_dir", DEFAULT_CONFIG["artifacts_dir"]))
        )

    @property
    def cache_dir(self) -> Path:
        """Get the root of the library edge cache."""
        return self._resolve(
            str(self._data.get("cache_dir", DEFAULT_CONFIG["cache_dir"]))
        )

    @property
    def dependency_root(self) -> Path | None:
        """Get the directory third-party components are resolved from."""
        val = self._data.get("dependency_root", DEFAULT_CONFIG["dependency_root"])
        return self._resolve(str(val)) if val else None

    @property
    def dep_format(self) -> DependencyFormat:
        """Get the dependency format.

        Raises:
            ConfigurationError: If the configured name is not a known format.
        """
        val = str(self._data.get("dep_format", DEFAULT_CONFIG["dep_format"]))
        try:
            return DependencyFormat[val.upper()]
        except KeyError:
            valid = sorted(f.name for f in DependencyFormat)
            raise ConfigurationError(
                f"Invalid dep_format '{val}'. Must be one of: {valid}"
            ) from None

    @property
    def print_graph(self) -> bool:
        """Whether the dependency graph is written after each cycle."""
        return bool(self._data.get("print_graph", DEFAULT_CONFIG["print_graph"]))

    @property
    def graph_file(self) -> str:
        """Get the graph output filename inside the artifacts directory."""
        return str(self._data.get("graph_file", DEFAULT_CONFIG["graph_file"]))

    @property
    def estimate_select(self) -> bool:
        """Whether run-time estimation is enabled."""
        return bool(
            self._data.get("estimate_select", DEFAULT_CONFIG["estimate_select"])
        )

    @property
    def filter_lib(self) -> bool:
        """Whether edges into platform packages are dropped."""
        return bool(self._data.get("filter_lib", DEFAULT_CONFIG["filter_lib"]))

    @property
    def compute_unreached(self) -> bool:
        """Whether the unreached-class diagnostic is computed."""
        return bool(
            self._data.get("compute_unreached", DEFAULT_CONFIG["compute_unreached"])
        )

    @property
    def log_level(self) -> str:
        """Get the logging level name (unknown names fall back to INFO)."""
        val = str(self._data.get("log_level", DEFAULT_CONFIG["log_level"])).upper()
        return val if val in VALID_LOG_LEVELS else "INFO"

    @property
    def extractor_command(self) -> list[str]:
        """Get the edge extractor command (targets are appended)."""
        val = self._data.get("extractor_command", DEFAULT_CONFIG["extractor_command"])
        if isinstance(val, str):
            return val.split()
        return [str(part) for part in val]

    @property
    def extractor_timeout(self) -> float:
        """Get the extractor timeout in seconds."""
        return float(
            self._data.get("extractor_timeout", DEFAULT_CONFIG["extractor_timeout"])
        )

    def set_config(self, **values: Any) -> None:
        """Update configuration values.

        Raises:
            ValueError: If a key is not a known configuration option.
        """
        for key, value in values.items():
            if key not in DEFAULT_CONFIG:
                raise ValueError(f"Unknown config option '{key}'")
            if value is not None:
                self._data[key] = value
