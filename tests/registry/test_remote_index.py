"""Tests for RemoteIndex over a mocked HTTP index."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from envlock.core.dependency import Version
from envlock.exceptions import FetchFailure
from envlock.registry import RemoteIndex, prefetch_index
from envlock.registry.http_client import make_client

BASE = "https://index.example/simple"


def _handler_for(index_data: dict[str, Any], broken: set[str] | None = None):
    """Serve the sample index document the way a JSON index would."""
    broken = broken or set()
    packages = index_data["packages"]

    def handler(request: httpx.Request) -> httpx.Response:
        parts = request.url.path.split("/")[2:]  # drop "" and "simple"
        name = parts[0]
        if name not in packages:
            return httpx.Response(404)
        if len(parts) == 1 or parts[1] == "":
            return httpx.Response(200, json={"versions": list(packages[name])})
        version = parts[1]
        if f"{name}=={version}" in broken:
            return httpx.Response(503)
        if version not in packages[name]:
            return httpx.Response(404)
        return httpx.Response(200, json=packages[name][version])

    return handler


def _source(handler) -> RemoteIndex:
    client = make_client(transport=httpx.MockTransport(handler))
    return RemoteIndex(BASE, retries=2, backoff=0, client=client)


def _run(coro_factory):
    return asyncio.run(coro_factory())


class TestRemoteIndex:
    def test_list_versions(self, index_data: dict[str, Any]) -> None:
        async def go() -> list[str]:
            source = _source(_handler_for(index_data))
            return await source.list_versions("requests")

        assert sorted(_run(go)) == ["1.2.0", "2.31.0", "2.32.3"]

    def test_unknown_package_lists_nothing(self, index_data: dict[str, Any]) -> None:
        async def go() -> list[str]:
            return await _source(_handler_for(index_data)).list_versions("ghost")

        assert _run(go) == []

    def test_fetch_metadata(self, index_data: dict[str, Any]) -> None:
        async def go():
            return await _source(_handler_for(index_data)).fetch_metadata("requests", "2.32.3")

        meta = _run(go)
        assert meta.version == Version.parse("2.32.3")
        assert [str(d) for d in meta.dependencies] == ["urllib3>=2.0"]
        assert meta.requires_python.raw == ">=3.8"

    def test_missing_version_is_none(self, index_data: dict[str, Any]) -> None:
        async def go():
            return await _source(_handler_for(index_data)).fetch_metadata("requests", "9.9.9")

        assert _run(go) is None

    def test_listing_without_versions_key(self) -> None:
        async def go() -> list[str]:
            source = _source(lambda request: httpx.Response(200, json={"releases": []}))
            return await source.list_versions("requests")

        with pytest.raises(FetchFailure, match="no 'versions' list"):
            _run(go)

    def test_bad_metadata_document(self) -> None:
        async def go():
            source = _source(lambda request: httpx.Response(200, json={"deps": {}}))
            return await source.fetch_metadata("requests", "1.0.0")

        with pytest.raises(FetchFailure, match="unknown metadata key"):
            _run(go)

    def test_borrowed_client_left_open(self) -> None:
        async def go() -> bool:
            client = make_client(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
            async with RemoteIndex(BASE, client=client):
                pass
            closed = client.is_closed
            await client.aclose()
            return closed

        assert _run(go) is False


class TestRemotePrefetch:
    """Prefetch through the HTTP source end to end."""

    def test_reaches_transitive_packages(self, index_data: dict[str, Any]) -> None:
        async def go():
            return await prefetch_index(_source(_handler_for(index_data)), ["requests"])

        index = _run(go)
        assert index.packages == ["requests", "urllib3"]
        assert index.node_count == 8
        assert index.fetch_failures == []

    def test_failed_version_excluded(self, index_data: dict[str, Any]) -> None:
        async def go():
            source = _source(_handler_for(index_data, broken={"urllib3==2.2.1"}))
            return await prefetch_index(source, ["requests"])

        index = _run(go)
        assert Version.parse("2.2.1") not in index.versions("urllib3")
        assert [(f.name, f.version) for f in index.fetch_failures] == [("urllib3", "2.2.1")]
        assert "HTTP 503" in index.fetch_failures[0].reason
