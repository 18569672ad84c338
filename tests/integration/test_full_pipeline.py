"""End-to-end integration tests: manifest -> index -> resolve -> lockfile -> environment."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import httpx

from envlock.config import load_settings
from envlock.core.dependency import resolve
from envlock.core.environment import EnvironmentState, apply_plan, plan_install, state_path
from envlock.core.lockfile import Lockfile
from envlock.core.manifest import read_manifest
from envlock.registry import RemoteIndex, load_index, prefetch_index
from envlock.registry.http_client import make_client


def _lock_project(project_dir: Path) -> Lockfile:
    manifest = read_manifest(project_dir / "envlock.yaml")
    settings = load_settings(manifest.settings, environ={})
    index = load_index(settings, list(manifest.requirements()), base_dir=project_dir)
    resolution = resolve(manifest, None, index)
    resolution.raise_for_failure()
    return Lockfile.from_resolution(resolution, manifest, index)


def _serve(index_data: dict[str, Any]):
    packages = index_data["packages"]

    def handler(request: httpx.Request) -> httpx.Response:
        parts = [p for p in request.url.path.split("/") if p][1:]
        if parts[0] not in packages:
            return httpx.Response(404)
        if len(parts) == 1:
            return httpx.Response(200, json={"versions": list(packages[parts[0]])})
        document = packages[parts[0]].get(parts[1])
        if document is None:
            return httpx.Response(404)
        return httpx.Response(200, json=document)

    return handler


# ---------------------------------------------------------------------------
# Full pipeline tests
# ---------------------------------------------------------------------------


class TestLocalPipeline:
    def test_lock_write_read_install(self, project_dir: Path) -> None:
        lock = _lock_project(project_dir)
        lock_path = project_dir / "envlock.lock.json"
        lock.write(lock_path)

        restored = Lockfile.read(lock_path)
        assert restored == lock
        assert restored.is_fresh(read_manifest(project_dir / "envlock.yaml"))

        target = state_path(project_dir)
        state = EnvironmentState.load(target)
        plan = plan_install(state, restored, ["default"])
        apply_plan(state, plan).save(target)
        assert EnvironmentState.load(target).packages == {
            "requests": "2.32.3",
            "urllib3": "2.2.1",
        }

    def test_written_lock_replays_resolution(self, project_dir: Path) -> None:
        manifest = read_manifest(project_dir / "envlock.yaml")
        index = load_index(
            load_settings(manifest.settings, environ={}),
            list(manifest.requirements()),
            base_dir=project_dir,
        )
        resolution = resolve(manifest, None, index)
        Lockfile.from_resolution(resolution, manifest, index).write(project_dir / "envlock.lock.json")

        replay = Lockfile.read(project_dir / "envlock.lock.json").to_resolution()
        assert replay.success
        assert replay.installed == resolution.installed

    def test_two_runs_byte_identical(self, project_dir: Path) -> None:
        assert _lock_project(project_dir).to_json() == _lock_project(project_dir).to_json()

    def test_lock_replays_without_index(self, project_dir: Path) -> None:
        lock = _lock_project(project_dir)
        (project_dir / "index.json").unlink()
        plan = plan_install(EnvironmentState(), lock)
        assert [name for name, _ in plan.install] == [
            "iniconfig", "pluggy", "pytest", "requests", "urllib3",
        ]


class TestRemotePipeline:
    def test_remote_and_local_agree(self, project_dir: Path, index_data: dict[str, Any]) -> None:
        manifest = read_manifest(project_dir / "envlock.yaml")

        async def fetch():
            client = make_client(transport=httpx.MockTransport(_serve(index_data)))
            async with RemoteIndex("https://index.example/simple", client=client) as source:
                return await prefetch_index(source, list(manifest.requirements()))

        index = asyncio.run(fetch())
        resolution = resolve(manifest, None, index)
        assert resolution.success
        remote_lock = Lockfile.from_resolution(resolution, manifest, index)
        assert remote_lock.to_json() == _lock_project(project_dir).to_json()
