"""Shared fixtures for CLI tests.

Every command runs against the ``project_dir`` fixture: a temporary
project with ``envlock.yaml`` pointing at a local ``index.json``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml
from click.testing import CliRunner, Result

from envlock.cli.main import cli
from envlock.core.environment import EnvironmentState, state_path


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    """Create a Click CliRunner with no index taken from the environment."""
    monkeypatch.delenv("ENVLOCK_INDEX", raising=False)
    return CliRunner()


@pytest.fixture
def run(runner: CliRunner, project_dir: Path) -> Callable[..., Result]:
    """Invoke ``envlock <command> ... -m <project>/envlock.yaml``."""

    def _run(*args: str) -> Result:
        command, rest = args[0], list(args[1:])
        return runner.invoke(cli, [command, *rest, "-m", str(project_dir / "envlock.yaml")])

    return _run


@pytest.fixture
def edit_manifest(project_dir: Path) -> Callable[[Callable[[dict[str, Any]], None]], None]:
    """Apply an in-place edit to the project's manifest document."""

    def _edit(mutate: Callable[[dict[str, Any]], None]) -> None:
        path = project_dir / "envlock.yaml"
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        mutate(data)
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")

    return _edit


@pytest.fixture
def read_lock(project_dir: Path) -> Callable[[], dict[str, Any]]:
    """Load the project's lockfile as plain JSON."""

    def _read() -> dict[str, Any]:
        return json.loads((project_dir / "envlock.lock.json").read_text(encoding="utf-8"))

    return _read


@pytest.fixture
def locked_pins(read_lock: Callable[[], dict[str, Any]]) -> Callable[[], dict[str, str]]:
    def _pins() -> dict[str, str]:
        return {entry["name"]: entry["version"] for entry in read_lock()["packages"]}

    return _pins


@pytest.fixture
def installed(project_dir: Path) -> Callable[[], dict[str, str]]:
    """Packages recorded in the project's environment state."""

    def _installed() -> dict[str, str]:
        return EnvironmentState.load(state_path(project_dir)).packages

    return _installed
