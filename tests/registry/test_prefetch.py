"""Tests for concurrent prefetch, source selection, and ``load_index``."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from envlock.config import Settings
from envlock.core.dependency import (
    DependencyResolver,
    PackageMetadata,
    Version,
    VersionConstraint,
    make_dependency,
)
from envlock.exceptions import ConfigError, FetchFailure, ResolutionFailure
from envlock.registry import LocalIndex, MetadataSource, RemoteIndex, load_index, open_source, prefetch_index


class ScriptedSource(MetadataSource):
    """In-memory source that tracks concurrency and can fail on demand."""

    def __init__(
        self,
        packages: dict[str, dict[str, dict[str, str]]],
        failing_versions: set[tuple[str, str]] | None = None,
        failing_listings: set[str] | None = None,
    ) -> None:
        self._packages = packages
        self._failing_versions = failing_versions or set()
        self._failing_listings = failing_listings or set()
        self.in_flight = 0
        self.peak = 0
        self.requests: list[tuple[str, ...]] = []

    @property
    def location(self) -> str:
        return "memory"

    async def _tick(self) -> None:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def list_versions(self, name: str) -> list[str]:
        self.requests.append((name,))
        await self._tick()
        if name in self._failing_listings:
            raise FetchFailure(f"memory://{name}/", 3, "HTTP 503")
        return list(self._packages.get(name, {}))

    async def fetch_metadata(self, name: str, version: str) -> PackageMetadata | None:
        self.requests.append((name, version))
        await self._tick()
        if (name, version) in self._failing_versions:
            raise FetchFailure(f"memory://{name}/{version}", 3, "timed out")
        deps = self._packages.get(name, {}).get(version)
        if deps is None:
            return None
        return PackageMetadata(
            name=name,
            version=Version.parse(version),
            dependencies=tuple(make_dependency(n, c) for n, c in sorted(deps.items())),
        )


_CHAIN = {
    "app": {"1.0.0": {"lib": ">=1", "util": "*"}},
    "lib": {"1.0.0": {"util": ">=2"}, "2.0.0": {"util": ">=2"}},
    "util": {"2.0.0": {}, "2.1.0": {}, "not-a-version": {}},
    "unused": {"1.0.0": {}},
}


class TestPrefetch:
    def test_fetches_reachable_closure_once(self) -> None:
        source = ScriptedSource(_CHAIN)
        index = asyncio.run(prefetch_index(source, ["app"]))
        assert index.packages == ["app", "lib", "util"]
        listed = [r[0] for r in source.requests if len(r) == 1]
        assert sorted(listed) == ["app", "lib", "util"]

    def test_invalid_version_string_recorded(self) -> None:
        index = asyncio.run(prefetch_index(ScriptedSource(_CHAIN), ["app"]))
        assert [f.version for f in index.failures_for("util")] == ["not-a-version"]

    def test_failed_version_excluded(self, caplog: pytest.LogCaptureFixture) -> None:
        source = ScriptedSource(_CHAIN, failing_versions={("lib", "2.0.0")})
        index = asyncio.run(prefetch_index(source, ["app"]))
        assert index.versions("lib") == [Version(1)]
        assert index.failures_for("lib")[0].version == "2.0.0"
        assert "Excluding lib 2.0.0" in caplog.text

    def test_failed_listing_recorded(self, caplog: pytest.LogCaptureFixture) -> None:
        source = ScriptedSource(_CHAIN, failing_listings={"lib"})
        index = asyncio.run(prefetch_index(source, ["app"]))
        assert index.versions("lib") == []
        assert index.failures_for("lib")[0].version is None
        assert "HTTP 503" in index.failures_for("lib")[0].reason
        assert index.versions("util") == [Version(2, 1), Version(2)]
        assert "Excluding every version of lib" in caplog.text

    def test_failed_listing_behind_unchosen_version(self) -> None:
        packages = {
            "app": {"1.0.0": {"legacy": ">=1"}, "2.0.0": {}},
            "legacy": {"1.0.0": {}},
        }
        source = ScriptedSource(packages, failing_listings={"legacy"})
        index = asyncio.run(prefetch_index(source, ["app"]))
        result = DependencyResolver(index, {"app": VersionConstraint("*")}).resolve()
        assert result.success
        assert result.pins == {"app": "2.0.0"}

    def test_failed_listing_needed_by_every_solution(self) -> None:
        packages = {"app": {"1.0.0": {"legacy": ">=1"}}, "legacy": {"1.0.0": {}}}
        source = ScriptedSource(packages, failing_listings={"legacy"})
        index = asyncio.run(prefetch_index(source, ["app"]))
        result = DependencyResolver(index, {"app": VersionConstraint("*")}).resolve()
        assert not result.success
        with pytest.raises(ResolutionFailure, match="metadata could not be fetched"):
            result.raise_for_failure()

    def test_concurrency_bounded(self) -> None:
        packages = {f"p{i}": {"1.0.0": {}, "2.0.0": {}} for i in range(20)}
        source = ScriptedSource(packages)
        asyncio.run(prefetch_index(source, list(packages), concurrency=3))
        assert 1 < source.peak <= 3

    def test_unknown_root_is_empty(self) -> None:
        index = asyncio.run(prefetch_index(ScriptedSource(_CHAIN), ["ghost"]))
        assert index.packages == []


class TestOpenSource:
    def test_no_index_configured(self) -> None:
        with pytest.raises(ConfigError, match="No package index"):
            open_source(Settings())

    def test_url_is_remote(self) -> None:
        source = open_source(Settings(index="https://index.example/simple/"))
        assert isinstance(source, RemoteIndex)
        assert source.location == "https://index.example/simple"
        asyncio.run(source.aclose())

    def test_relative_path_uses_base_dir(self, tmp_path: Path, index_data: dict[str, Any]) -> None:
        (tmp_path / "index.json").write_text(json.dumps(index_data), encoding="utf-8")
        source = open_source(Settings(index="index.json"), base_dir=tmp_path)
        assert isinstance(source, LocalIndex)
        assert source.location == str(tmp_path / "index.json")


class TestLoadIndex:
    def test_local_file(self, tmp_path: Path, index_data: dict[str, Any]) -> None:
        (tmp_path / "index.json").write_text(json.dumps(index_data), encoding="utf-8")
        index = load_index(Settings(index="index.json"), ["pytest"], base_dir=tmp_path)
        assert index.packages == ["iniconfig", "pluggy", "pytest"]
