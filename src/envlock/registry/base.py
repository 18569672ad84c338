"""Base class and document parsing shared by package index sources.

Defines the ``MetadataSource`` abstract base class that the local and
remote index sources implement, and ``metadata_from_document`` which turns
one version's index document into ``PackageMetadata``.

A version document looks the same in every source::

    {"requires-python": ">=3.8", "dependencies": {"urllib3": ">=2.0"}}
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from envlock.core.dependency.constraints import (
    PackageDependency,
    VersionConstraint,
    make_dependency,
)
from envlock.core.dependency.graph import PackageMetadata
from envlock.core.dependency.versions import Version
from envlock.exceptions import InvalidConstraint, InvalidIndex

logger = logging.getLogger(__name__)


def metadata_from_document(name: str, version: Version, document: Any) -> PackageMetadata:
    """Validate one version document.

    Args:
        name: Canonical package name.
        version: The version the document describes.
        document: The parsed document (``None`` is an empty document).

    Raises:
        InvalidIndex: If the document has the wrong shape or holds an
            unparseable constraint.
    """
    where = f"{name} {version}"
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise InvalidIndex(f"{where}: metadata must be a mapping")
    unknown = sorted(set(document) - {"requires-python", "dependencies"})
    if unknown:
        raise InvalidIndex(f"{where}: unknown metadata key(s) {', '.join(unknown)}")

    python_raw = document.get("requires-python")
    deps_raw = document.get("dependencies") or {}
    if python_raw is not None and not isinstance(python_raw, str):
        raise InvalidIndex(f"{where}: requires-python must be a string")
    if not isinstance(deps_raw, dict):
        raise InvalidIndex(f"{where}: dependencies must be a mapping of name to constraint")

    try:
        requires_python = VersionConstraint(python_raw) if python_raw else None
        dependencies: list[PackageDependency] = []
        for dep_name, constraint in deps_raw.items():
            if constraint is not None and not isinstance(constraint, str):
                raise InvalidIndex(f"{where}: constraint for {dep_name!r} must be a string")
            dependencies.append(make_dependency(str(dep_name), constraint))
    except InvalidConstraint as exc:
        raise InvalidIndex(f"{where}: {exc}") from exc

    return PackageMetadata(
        name=name,
        version=version,
        dependencies=tuple(sorted(dependencies, key=lambda d: d.name)),
        requires_python=requires_python,
    )


# ---------------------------------------------------------------------------
# Abstract base source
# ---------------------------------------------------------------------------


class MetadataSource(ABC):
    """Abstract base class for package metadata sources.

    Subclasses must implement ``list_versions`` and ``fetch_metadata``.
    Sources are async context managers so that network-backed ones can
    close their HTTP client::

        async with RemoteIndex("https://index.example/simple") as source:
            index = await prefetch_index(source, ["requests"])
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location of the source, for messages."""

    @abstractmethod
    async def list_versions(self, name: str) -> list[str]:
        """Every published version string of *name* (empty if unknown).

        Raises:
            FetchFailure: If the listing could not be retrieved.
        """

    @abstractmethod
    async def fetch_metadata(self, name: str, version: str) -> PackageMetadata | None:
        """Metadata for one version, or None if the version is unknown.

        Raises:
            FetchFailure: If the metadata could not be retrieved.
        """

    async def aclose(self) -> None:
        """Release any resources held by the source."""

    async def __aenter__(self) -> MetadataSource:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
