"""Unit tests for the edge extractor adapter.

Uses mocked subprocess output to test parsing and failure handling without
requiring the external analysis tool.
"""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from rts.errors import ExtractionError, GraphBuildError
from rts.graph.dependency_graph import STAR_NODE
from rts.graph.extractor import CommandEdgeExtractor, parse_edge_lines


SAMPLE_OUTPUT = """\
classes -> java.base
classes -> not found
   com.example.Foo                 -> com.example.Bar                  classes
   com.example.Foo                 -> java.lang.Object                 java.base
   com.example.FooTest             -> com.example.Foo                  classes
   com.example.FooTest             -> org.junit.Test                   not found
"""


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.stdout = stdout
    result.stderr = stderr
    result.returncode = returncode
    return result


class TestParseEdgeLines:
    """Tests for parsing extractor output."""

    def test_class_edges_parsed(self):
        """Indented class-level lines become edges."""
        edges = parse_edge_lines(SAMPLE_OUTPUT)
        assert ("com.example.Foo", "com.example.Bar") in edges
        assert ("com.example.Foo", "java.lang.Object") in edges
        assert ("com.example.FooTest", "com.example.Foo") in edges

    def test_summary_lines_skipped(self):
        """Archive and directory summary lines are not edges."""
        edges = parse_edge_lines(SAMPLE_OUTPUT)
        assert all(source != "classes" for source, _ in edges)

    def test_not_found_adds_star(self):
        """A target marked not found depends on STAR_NODE."""
        edges = parse_edge_lines(SAMPLE_OUTPUT)
        assert ("com.example.FooTest", "org.junit.Test") in edges
        assert ("org.junit.Test", STAR_NODE) in edges

    def test_plain_arrow_format(self):
        """Bare ``a -> b`` lines are accepted."""
        assert parse_edge_lines("a.A -> a.B\n") == [("a.A", "a.B")]

    def test_comments_and_blank_lines(self):
        """Comments and blank lines are ignored."""
        text = "# header\n\n  a.A -> a.B\n"
        assert parse_edge_lines(text) == [("a.A", "a.B")]

    def test_archive_source_skipped(self):
        """Lines starting with an archive name are summaries."""
        assert parse_edge_lines("lib/foo.jar -> java.base\n") == []

    def test_duplicates_removed(self):
        """Repeated edges are reported once."""
        text = "a.A -> a.B\na.A -> a.B\n"
        assert parse_edge_lines(text) == [("a.A", "a.B")]


class TestCommandEdgeExtractor:
    """Tests for running the external extractor."""

    def test_empty_command_rejected(self):
        """An empty command is a configuration mistake."""
        with pytest.raises(ValueError, match="must not be empty"):
            CommandEdgeExtractor([])

    def test_no_targets_skips_command(self):
        """No targets means no subprocess call."""
        extractor = CommandEdgeExtractor(["jdeps", "-v"])
        with patch("rts.graph.extractor.subprocess.run") as mock_run:
            assert extractor.extract([]) == []
        mock_run.assert_not_called()

    def test_targets_appended(self):
        """Targets are appended to the command line."""
        extractor = CommandEdgeExtractor(["jdeps", "-v"], timeout=5)
        with patch(
            "rts.graph.extractor.subprocess.run",
            return_value=_completed("a.A -> a.B\n"),
        ) as mock_run:
            edges = extractor.extract(["target/classes", "lib/x.jar"])
        assert edges == [("a.A", "a.B")]
        argv = mock_run.call_args[0][0]
        assert argv == ["jdeps", "-v", "target/classes", "lib/x.jar"]
        assert mock_run.call_args[1]["timeout"] == 5

    def test_missing_binary(self):
        """A missing extractor raises ExtractionError."""
        extractor = CommandEdgeExtractor(["no-such-tool"])
        with patch(
            "rts.graph.extractor.subprocess.run", side_effect=FileNotFoundError
        ):
            with pytest.raises(ExtractionError, match="not found"):
                extractor.extract(["target/classes"])

    def test_timeout(self):
        """A timed-out extractor raises ExtractionError."""
        extractor = CommandEdgeExtractor(["jdeps"], timeout=1)
        with patch(
            "rts.graph.extractor.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="jdeps", timeout=1),
        ):
            with pytest.raises(ExtractionError, match="timed out"):
                extractor.extract(["target/classes"])

    def test_nonzero_exit(self):
        """A failing extractor raises a graph build error."""
        extractor = CommandEdgeExtractor(["jdeps"])
        with patch(
            "rts.graph.extractor.subprocess.run",
            return_value=_completed(returncode=2, stderr="bad input"),
        ):
            with pytest.raises(GraphBuildError, match="exit 2"):
                extractor.extract(["target/classes"])
