"""Package index sources and concurrent metadata prefetch.

Public API::

    from envlock.registry import MetadataSource, LocalIndex, RemoteIndex
    from envlock.registry import prefetch_index, load_index
"""

from __future__ import annotations

from envlock.registry.base import MetadataSource, metadata_from_document
from envlock.registry.local_index import LocalIndex, parse_index_data
from envlock.registry.remote_index import RemoteIndex
from envlock.registry.prefetch import load_index, open_source, prefetch_index

__all__ = [
    "LocalIndex",
    "MetadataSource",
    "RemoteIndex",
    "load_index",
    "metadata_from_document",
    "open_source",
    "parse_index_data",
    "prefetch_index",
]
