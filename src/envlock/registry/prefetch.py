"""Concurrent metadata prefetch into a ``PackageIndex``.

Discovery is breadth-first over package names. Each round lists the
versions of every newly seen package, then fetches the metadata of every
listed version; dependency names found in that metadata seed the next
round. All requests in a round run concurrently, bounded by an
``asyncio.Semaphore``. Each result is written to its own (name, version)
slot of the index, so tasks never share mutable state.

Failure policy:

- A version whose metadata cannot be fetched is excluded and recorded in
  ``index.fetch_failures``; resolution then proceeds without it.
- A package whose version list cannot be fetched is recorded with no
  version at all. The resolver reports it only if a chosen version needs
  it, as a ``ResolutionFailure`` naming the fetch error.

The resolver starts only after ``prefetch_index`` returns, so it sees a
complete, immutable index.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, TypeVar

from envlock.config import Settings
from envlock.core.dependency.graph import PackageIndex
from envlock.core.dependency.versions import Version
from envlock.exceptions import ConfigError, FetchFailure
from envlock.registry.base import MetadataSource
from envlock.registry.local_index import LocalIndex
from envlock.registry.remote_index import RemoteIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 8


async def prefetch_index(
    source: MetadataSource,
    roots: Iterable[str],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> PackageIndex:
    """Fetch metadata for *roots* and everything they can reach.

    Args:
        source: Where to fetch metadata from.
        roots: Canonical names of the root requirements.
        concurrency: Maximum requests in flight.

    Returns:
        A populated ``PackageIndex``.

    Fetch failures are recorded in ``index.fetch_failures``, never raised.
    """
    index = PackageIndex()
    semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def _limited(call: Callable[..., Awaitable[T]], *args: str) -> T:
        async with semaphore:
            return await call(*args)

    seen: set[str] = set()
    frontier = sorted(set(roots))
    rounds = 0
    while frontier:
        rounds += 1
        seen.update(frontier)
        listings = await asyncio.gather(
            *(_limited(source.list_versions, name) for name in frontier),
            return_exceptions=True,
        )

        jobs: list[tuple[str, str]] = []
        for name, listing in zip(frontier, listings):
            if isinstance(listing, FetchFailure):
                logger.warning("Excluding every version of %s: %s", name, listing)
                index.record_failure(name, None, str(listing))
                continue
            if isinstance(listing, BaseException):
                raise listing
            for raw in listing:
                try:
                    Version.parse(raw)
                except ValueError:
                    logger.warning("Skipping %s %r: not a valid version", name, raw)
                    index.record_failure(name, raw, "not a valid version")
                    continue
                jobs.append((name, raw))

        results = await asyncio.gather(
            *(_limited(source.fetch_metadata, name, raw) for name, raw in jobs),
            return_exceptions=True,
        )

        discovered: set[str] = set()
        for (name, raw), result in zip(jobs, results):
            if isinstance(result, FetchFailure):
                logger.warning("Excluding %s %s: %s", name, raw, result)
                index.record_failure(name, raw, str(result))
            elif isinstance(result, BaseException):
                raise result
            elif result is None:
                logger.warning("Excluding %s %s: metadata not found", name, raw)
                index.record_failure(name, raw, "metadata not found")
            else:
                index.add(result)
                discovered.update(dep.name for dep in result.dependencies)

        frontier = sorted(discovered - seen)

    logger.debug(
        "Prefetched %d version(s) of %d package(s) in %d round(s) from %s",
        index.node_count, len(seen), rounds, source.location,
    )
    return index


def open_source(settings: Settings, base_dir: Path | None = None) -> MetadataSource:
    """Open the metadata source named by ``settings.index``.

    A location starting with ``http://`` or ``https://`` is a remote index;
    anything else is a file path, relative to *base_dir* when given.

    Raises:
        ConfigError: If no index is configured.
        InvalidIndex: If a local index file is unreadable or malformed.
    """
    location = settings.index
    if not location:
        raise ConfigError(
            "No package index configured; pass --index, set ENVLOCK_INDEX, "
            "or add 'index' under 'settings' in the manifest"
        )
    if location.startswith(("http://", "https://")):
        return RemoteIndex(
            location,
            retries=settings.fetch_retries,
            backoff=settings.fetch_backoff,
            timeout=settings.fetch_timeout,
        )
    path = Path(location).expanduser()
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    return LocalIndex(path)


async def _load(source: MetadataSource, roots: list[str], concurrency: int) -> PackageIndex:
    async with source:
        return await prefetch_index(source, roots, concurrency)


def load_index(
    settings: Settings,
    roots: Iterable[str],
    base_dir: Path | None = None,
) -> PackageIndex:
    """Open the configured source and prefetch everything *roots* reach."""
    source = open_source(settings, base_dir)
    return asyncio.run(_load(source, sorted(set(roots)), settings.fetch_concurrency))
