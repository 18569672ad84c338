"""Package index served as JSON over HTTP.

Endpoints, relative to the base URL::

    GET {base}/{name}/            -> {"versions": ["2.31.0", "2.32.3"]}
    GET {base}/{name}/{version}   -> {"requires-python": ">=3.8",
                                      "dependencies": {"urllib3": ">=2.0"}}

A 404 on the listing means the package is unknown; a 404 on a version
document means that version is gone.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from envlock.core.dependency.graph import PackageMetadata
from envlock.core.dependency.versions import Version
from envlock.exceptions import FetchFailure, InvalidIndex
from envlock.registry.base import MetadataSource, metadata_from_document
from envlock.registry.http_client import (
    DEFAULT_BACKOFF,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
    fetch_json,
    make_client,
)

logger = logging.getLogger(__name__)


class RemoteIndex(MetadataSource):
    """Metadata source that talks to an HTTP index.

    Args:
        base_url: Index root, e.g. ``"https://index.example/simple"``.
        retries: Attempts per request.
        backoff: Base retry delay in seconds.
        timeout: Per-request timeout in seconds.
        client: An existing ``AsyncClient`` to use; the source then does
            not close it.
    """

    def __init__(
        self,
        base_url: str,
        *,
        retries: int = DEFAULT_RETRIES,
        backoff: float = DEFAULT_BACKOFF,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._retries = retries
        self._backoff = backoff
        self._owns_client = client is None
        self._client = client if client is not None else make_client(timeout)

    @property
    def location(self) -> str:
        return self._base

    def _url(self, *parts: str) -> str:
        return "/".join([self._base, *parts])

    async def _get(self, url: str) -> Any:
        return await fetch_json(url, client=self._client, retries=self._retries, backoff=self._backoff)

    async def list_versions(self, name: str) -> list[str]:
        url = self._url(name, "")
        document = await self._get(url)
        if document is None:
            return []
        versions = document.get("versions") if isinstance(document, dict) else None
        if not isinstance(versions, list) or not all(isinstance(v, str) for v in versions):
            raise FetchFailure(url, 1, "response has no 'versions' list")
        return versions

    async def fetch_metadata(self, name: str, version: str) -> PackageMetadata | None:
        url = self._url(name, version)
        document = await self._get(url)
        if document is None:
            return None
        try:
            return metadata_from_document(name, Version.parse(version), document)
        except InvalidIndex as exc:
            raise FetchFailure(url, 1, str(exc)) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
