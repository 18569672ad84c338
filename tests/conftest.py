"""Shared fixtures for envlock tests.

The sample index mirrors a small slice of a real package index: requests
with two supported releases, urllib3 with a Python-restricted release and a
pre-release, a pair of conflicting packages (pkga/pkgb), and a test-tool
stack for the ``test`` group.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from envlock.core.dependency import (
    PackageIndex,
    PackageMetadata,
    Version,
    VersionConstraint,
    make_dependency,
)
from envlock.registry import parse_index_data

_SAMPLE_INDEX: dict[str, Any] = {
    "packages": {
        "requests": {
            "1.2.0": {},
            "2.31.0": {
                "requires-python": ">=3.7",
                "dependencies": {"urllib3": ">=1.21.1,<3"},
            },
            "2.32.3": {
                "requires-python": ">=3.8",
                "dependencies": {"urllib3": ">=2.0"},
            },
        },
        "urllib3": {
            "1.26.18": {"requires-python": ">=3.6"},
            "2.0.7": {"requires-python": ">=3.7"},
            "2.2.1": {"requires-python": ">=3.8"},
            "2.3.0": {"requires-python": ">=3.6,<3.9"},
            "3.0.0-beta.1": {"requires-python": ">=3.9"},
        },
        "pkga": {
            "1.0.0": {},
            "1.5.0": {},
            "2.0.0": {},
            "2.1.0": {},
        },
        "pkgb": {
            "1.0.0": {"dependencies": {"pkga": "<2.0"}},
        },
        "pytest": {
            "7.4.4": {"dependencies": {"pluggy": ">=0.12,<2", "iniconfig": "*"}},
            "8.1.1": {"dependencies": {"pluggy": ">=1.4,<2", "iniconfig": "*"}},
        },
        "pluggy": {
            "1.4.0": {},
            "1.5.0": {},
        },
        "iniconfig": {
            "2.0.0": {},
        },
    }
}

_SAMPLE_MANIFEST: dict[str, Any] = {
    "project": {
        "name": "demo",
        "version": "0.1.0",
        "requires-python": ">=3.9",
    },
    "dependencies": ["requests^=2.31"],
    "groups": {
        "test": ["pytest>=7"],
    },
}


@pytest.fixture
def index_data() -> dict[str, Any]:
    """A fresh copy of the sample index document."""
    return copy.deepcopy(_SAMPLE_INDEX)


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    """A fresh copy of the sample manifest document."""
    return copy.deepcopy(_SAMPLE_MANIFEST)


@pytest.fixture
def make_index() -> Callable[[dict[str, Any]], PackageIndex]:
    """Factory building a ``PackageIndex`` from an index document."""

    def _make(data: dict[str, Any]) -> PackageIndex:
        index = PackageIndex()
        for versions in parse_index_data(data).values():
            for metadata in versions.values():
                index.add(metadata)
        return index

    return _make


@pytest.fixture
def sample_index(make_index: Callable[[dict[str, Any]], PackageIndex], index_data: dict[str, Any]) -> PackageIndex:
    """The sample index as a ``PackageIndex``."""
    return make_index(index_data)


@pytest.fixture
def add_package() -> Callable[..., None]:
    """Add one (name, version) with dependencies to an index."""

    def _add(
        index: PackageIndex,
        name: str,
        version: str,
        deps: dict[str, str] | None = None,
        python: str | None = None,
    ) -> None:
        index.add(PackageMetadata(
            name=name,
            version=Version.parse(version),
            dependencies=tuple(make_dependency(n, c) for n, c in sorted((deps or {}).items())),
            requires_python=VersionConstraint(python) if python else None,
        ))

    return _add


@pytest.fixture
def project_dir(tmp_path: Path, index_data: dict[str, Any], manifest_data: dict[str, Any]) -> Path:
    """A project directory with ``envlock.yaml`` and a local ``index.json``.

    The manifest points at the index through its ``settings`` section, so
    commands run in this directory need no ``--index`` option.
    """
    (tmp_path / "index.json").write_text(json.dumps(index_data, indent=2), encoding="utf-8")
    manifest = dict(manifest_data)
    manifest["settings"] = {"index": "index.json"}
    (tmp_path / "envlock.yaml").write_text(yaml.safe_dump(manifest, sort_keys=False), encoding="utf-8")
    return tmp_path
