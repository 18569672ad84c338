"""Tests for the Rich output helpers."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from envlock.cli import output
from envlock.exceptions import ResolutionFailure


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> io.StringIO:
    buffer = io.StringIO()
    monkeypatch.setattr(output, "console", Console(file=buffer, width=120))
    monkeypatch.setattr(output, "err_console", Console(file=buffer, width=120))
    return buffer


class TestResolutionSummary:
    def test_lists_pins_with_groups(self, captured: io.StringIO) -> None:
        output.print_resolution_summary(
            {"urllib3": "2.2.1", "requests": "2.32.3"},
            groups={"requests": ["default"], "urllib3": ["default", "test"]},
        )
        text = captured.getvalue()
        assert "Resolution successful" in text
        assert text.index("requests") < text.index("urllib3")
        assert "default, test" in text

    def test_empty_resolution(self, captured: io.StringIO) -> None:
        output.print_resolution_summary({})
        assert "No packages to resolve." in captured.getvalue()

    def test_never_reports_failure(self, captured: io.StringIO) -> None:
        output.print_resolution_summary({"requests": "2.32.3"})
        assert "Resolution failed" not in captured.getvalue()


class TestErrorPanel:
    def test_resolution_failure_lists_conflicts(self, captured: io.StringIO) -> None:
        output.print_error(ResolutionFailure(["<root> requires ghost (no versions are available)"], ["ghost"]))
        text = captured.getvalue()
        assert "Conflicting packages: ghost" in text
        assert "no versions are available" in text
