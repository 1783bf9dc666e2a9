"""Unit tests for the command-line entry point."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Sequence
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from rts.errors import ExtractionError
from rts.graph.dependency_graph import DependencyEdge
from rts.main import main, parse_args
from rts.state.store import SelectionStateStore
from rts.timing.time_table import TimeRecord, TimeTable


class StubExtractor:
    """Stands in for CommandEdgeExtractor; ignores the configured command."""

    edges: list[DependencyEdge] = [("app.ATest", "app.A"), ("app.BTest", "app.B")]

    def __init__(self, command, timeout=300.0, logger=None) -> None:
        self.command = command

    def extract(self, targets: Sequence[str]) -> list[DependencyEdge]:
        return list(self.edges) if targets else []


class BrokenExtractor(StubExtractor):
    def extract(self, targets: Sequence[str]) -> list[DependencyEdge]:
        raise ExtractionError("extractor 'jdeps' not found in PATH")


def _setup_project(root: Path, dep_format: str = "CLZ") -> dict[str, Path]:
    config = root / ".rts_config"
    config.write_text(json.dumps({"dep_format": dep_format}))
    tests_file = root / "tests.txt"
    tests_file.write_text("app.ATest\napp.BTest\n")
    classes = root / "target" / "classes"
    classes.mkdir(parents=True)
    return {"config": config, "tests": tests_file, "classes": classes}


class TestParseArgs:
    """Tests for argument parsing."""

    def test_select_args(self):
        args = parse_args([
            "select", "--tests-file", "t.txt", "--dep-format", "CLZ", "--estimate",
        ])
        assert args.command == "select"
        assert args.tests_file == Path("t.txt")
        assert args.dep_format == "CLZ"
        assert args.estimate is True
        assert args.config_file == Path(".rts_config")

    def test_estimate_args(self):
        args = parse_args(["--config-file", "x/.rts_config", "estimate", "a.T", "b.T"])
        assert args.command == "estimate"
        assert args.tests == ["a.T", "b.T"]

    def test_no_command_prints_help(self, capsys):
        """No subcommand prints usage."""
        with pytest.raises(SystemExit):
            main([])
        assert "usage:" in capsys.readouterr().out


class TestSelectCommand:
    """Tests for the select subcommand."""

    def test_prints_selected_tests(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = _setup_project(Path(tmpdir))
            with patch("rts.main.CommandEdgeExtractor", StubExtractor):
                code = main([
                    "--config-file", str(paths["config"]),
                    "select",
                    "--tests-file", str(paths["tests"]),
                    "--classpath", str(paths["classes"]),
                ])
            assert code == 0
            out = capsys.readouterr().out
            assert out.splitlines() == ["app.ATest", "app.BTest"]

    def test_non_affected_file_and_report(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            non_affected = root / "non-affected.txt"
            non_affected.write_text("app.BTest\n")
            report = root / "report.yaml"
            with patch("rts.main.CommandEdgeExtractor", StubExtractor):
                code = main([
                    "--config-file", str(paths["config"]),
                    "select",
                    "--tests-file", str(paths["tests"]),
                    "--classpath", str(paths["classes"]),
                    "--non-affected-file", str(non_affected),
                    "--output", str(report),
                ])
            assert code == 0
            assert capsys.readouterr().out.splitlines() == ["app.ATest"]
            data = yaml.safe_load(report.read_text())
            assert data["report"]["selection"]["selected_tests"] == ["app.ATest"]

    def test_estimate_printed_to_stderr(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            SelectionStateStore(root / ".rts").write_time_table(
                TimeTable([TimeRecord("app.ATest", 1.2, 1)])
            )
            with patch("rts.main.CommandEdgeExtractor", StubExtractor):
                code = main([
                    "--config-file", str(paths["config"]),
                    "select",
                    "--tests-file", str(paths["tests"]),
                    "--estimate",
                ])
            assert code == 0
            err = capsys.readouterr().err
            assert "app.ATest 1.2s//n/a" in err
            assert "Total Estimate Time: 1.2" in err

    def test_extraction_failure(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = _setup_project(Path(tmpdir))
            with patch("rts.main.CommandEdgeExtractor", BrokenExtractor):
                code = main([
                    "--config-file", str(paths["config"]),
                    "select",
                    "--tests-file", str(paths["tests"]),
                    "--classpath", str(paths["classes"]),
                ])
            assert code == 1
            assert "Error: extractor 'jdeps' not found" in capsys.readouterr().err

    def test_missing_tests_file(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = _setup_project(Path(tmpdir))
            code = main([
                "--config-file", str(paths["config"]),
                "select",
                "--tests-file", str(Path(tmpdir) / "missing.txt"),
            ])
            assert code == 1
            assert "Error:" in capsys.readouterr().err

    def test_locked_artifacts(self, capsys):
        """A held lock makes the cycle fail instead of racing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            store = SelectionStateStore(root / ".rts")
            with store.locked():
                with patch("rts.main.CommandEdgeExtractor", StubExtractor):
                    code = main([
                        "--config-file", str(paths["config"]),
                        "select",
                        "--tests-file", str(paths["tests"]),
                    ])
            assert code == 1
            assert "in use" in capsys.readouterr().err

    def test_report_tagged_with_commit(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            report = root / "report.yaml"
            with patch("rts.main.CommandEdgeExtractor", StubExtractor):
                code = main([
                    "--config-file", str(paths["config"]),
                    "select",
                    "--tests-file", str(paths["tests"]),
                    "--output", str(report),
                    "--commit", "abc123",
                ])
            assert code == 0
            data = yaml.safe_load(report.read_text())
            assert data["report"]["commit"] == "abc123"


class TestUpdateTimesCommand:
    """Tests for the update-times subcommand."""

    def test_updates_table(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            reports = root / "reports"
            reports.mkdir()
            (reports / "app.ATest.txt").write_text(
                "Tests run: 2, Failures: 0, Time elapsed: 0.75 s - in app.ATest\n"
            )
            code = main([
                "--config-file", str(paths["config"]),
                "update-times",
                "--reports-dir", str(reports),
            ])
            assert code == 0
            assert "Updated timing for 1 tests" in capsys.readouterr().out
            table = SelectionStateStore(root / ".rts").read_time_table()
            assert table.get("app.ATest").mean == 0.75

    def test_undecodable_record_does_not_abort(self, capsys):
        """A record with invalid UTF-8 is dropped; the rest still updates."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            store = SelectionStateStore(root / ".rts")
            store.ensure_dir()
            store.time_table_path.write_bytes(
                b"# rts-time-table v1\n"
                b"app.ATest 1.0 1 0.0 1.0 1.0 -\n"
                b"app.BTest 1.0 1 0.0 1.0 \xff -\n"
            )
            reports = root / "reports"
            reports.mkdir()
            (reports / "app.ATest.txt").write_text(
                "Tests run: 1, Failures: 0, Time elapsed: 3.0 s - in app.ATest\n"
            )
            code = main([
                "--config-file", str(paths["config"]),
                "update-times",
                "--reports-dir", str(reports),
            ])
            assert code == 0
            table = store.read_time_table()
            assert table.get("app.ATest").count == 2
            assert table.get("app.ATest").mean == 2.0

    def test_newer_table_version_left_untouched(self, capsys):
        """A table from a newer format is refused instead of overwritten."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            store = SelectionStateStore(root / ".rts")
            store.ensure_dir()
            store.time_table_path.write_text(
                "# rts-time-table v2\napp.ATest 1.0 1 0.0 1.0 1.0 - extra\n"
            )
            before = store.time_table_path.read_bytes()
            reports = root / "reports"
            reports.mkdir()
            (reports / "app.ATest.txt").write_text(
                "Tests run: 1, Failures: 0, Time elapsed: 3.0 s - in app.ATest\n"
            )
            code = main([
                "--config-file", str(paths["config"]),
                "update-times",
                "--reports-dir", str(reports),
            ])
            assert code == 1
            assert "unsupported time table version" in capsys.readouterr().err
            assert store.time_table_path.read_bytes() == before


class TestEstimateCommand:
    """Tests for the estimate subcommand."""

    def test_no_table(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = _setup_project(Path(tmpdir))
            code = main(["--config-file", str(paths["config"]), "estimate", "app.ATest"])
            assert code == 0
            assert "No time table recorded yet." in capsys.readouterr().out

    def test_prints_estimate(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            SelectionStateStore(root / ".rts").write_time_table(TimeTable([
                TimeRecord("app.ATest", 1.2, 1),
                TimeRecord("app.BTest", 0.8, 1),
            ]))
            code = main([
                "--config-file", str(paths["config"]),
                "estimate", "app.ATest", "app.BTest",
            ])
            assert code == 0
            out = capsys.readouterr().out.splitlines()
            assert out[-1] == "Total Estimate Time: 2.0"

    def test_newer_table_version_fails(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            paths = _setup_project(root)
            store = SelectionStateStore(root / ".rts")
            store.ensure_dir()
            store.time_table_path.write_text("# rts-time-table v2\n")
            code = main(["--config-file", str(paths["config"]), "estimate", "app.ATest"])
            assert code == 1
            assert "Error:" in capsys.readouterr().err
