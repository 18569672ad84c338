"""Shared fixtures for lockfile tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from envlock.core.dependency import PackageIndex, resolve
from envlock.core.lockfile import LockedPackage, Lockfile
from envlock.core.manifest import Manifest, manifest_from_data


@pytest.fixture
def manifest(manifest_data: dict[str, Any]) -> Manifest:
    return manifest_from_data(manifest_data)


@pytest.fixture
def lockfile(manifest: Manifest, sample_index: PackageIndex) -> Lockfile:
    """The lock produced by resolving every group of the sample manifest."""
    resolution = resolve(manifest, None, sample_index)
    return Lockfile.from_resolution(resolution, manifest, sample_index)


@pytest.fixture
def make_locked_package() -> Callable[..., LockedPackage]:
    """Convenience factory for sealed LockedPackage instances."""

    def _make(
        name: str = "pkg",
        version: str = "1.0.0",
        dependencies: dict[str, str] | None = None,
        required_by: dict[str, str] | None = None,
        groups: list[str] | None = None,
    ) -> LockedPackage:
        return LockedPackage(
            name=name,
            version=version,
            dependencies=dependencies or {},
            required_by=required_by or {"<root>": "*"},
            groups=groups or ["default"],
        ).seal()

    return _make
