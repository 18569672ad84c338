"""Package index read from a local YAML or JSON file.

File shape::

    packages:
      requests:
        "2.32.3":
          requires-python: ">=3.8"
          dependencies:
            urllib3: ">=2.0,<3"
        "2.31.0": {}
      urllib3:
        "2.2.1": {requires-python: ">=3.8"}

JSON is valid YAML, so one loader handles both spellings. The whole file is
validated on load; a bad document raises ``InvalidIndex`` instead of
silently dropping versions.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from envlock.core.dependency.constraints import canonicalize_name
from envlock.core.dependency.graph import PackageIndex, PackageMetadata
from envlock.core.dependency.versions import Version
from envlock.exceptions import InvalidConstraint, InvalidIndex
from envlock.registry.base import MetadataSource, metadata_from_document

logger = logging.getLogger(__name__)


def parse_index_data(data: Any, where: str = "index") -> dict[str, dict[Version, PackageMetadata]]:
    """Validate a loaded index document.

    Returns:
        Canonical name -> version -> metadata.

    Raises:
        InvalidIndex: On any shape, name, version, or constraint problem.
    """
    if not isinstance(data, dict) or not isinstance(data.get("packages"), dict):
        raise InvalidIndex(f"{where}: expected a top-level 'packages' mapping")
    packages: dict[str, dict[Version, PackageMetadata]] = {}
    for raw_name, versions in data["packages"].items():
        try:
            name = canonicalize_name(str(raw_name))
        except InvalidConstraint as exc:
            raise InvalidIndex(f"{where}: {exc}") from exc
        if name in packages:
            raise InvalidIndex(f"{where}: package {name!r} is listed twice")
        if not isinstance(versions, dict):
            raise InvalidIndex(f"{where}: versions of {name!r} must be a mapping")
        entries: dict[Version, PackageMetadata] = {}
        for raw_version, document in versions.items():
            try:
                version = Version.parse(str(raw_version))
            except ValueError as exc:
                raise InvalidIndex(f"{where}: {name}: {exc}") from exc
            if version in entries:
                raise InvalidIndex(f"{where}: {name} {version} is listed twice")
            entries[version] = metadata_from_document(name, version, document)
        packages[name] = entries
    return packages


class LocalIndex(MetadataSource):
    """Metadata source backed by an index file on disk.

    Args:
        path: Path to the YAML or JSON index file.

    Raises:
        InvalidIndex: If the file cannot be read or is malformed.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise InvalidIndex(f"Cannot read package index {self._path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise InvalidIndex(f"Package index {self._path} is not valid YAML/JSON: {exc}") from exc
        self._packages = parse_index_data(data, str(self._path))
        logger.debug("Loaded %d package(s) from %s", len(self._packages), self._path)

    @property
    def location(self) -> str:
        return str(self._path)

    def to_index(self) -> PackageIndex:
        """Every package in the file as a ``PackageIndex``."""
        index = PackageIndex()
        for name in sorted(self._packages):
            for metadata in self._packages[name].values():
                index.add(metadata)
        return index

    async def list_versions(self, name: str) -> list[str]:
        versions = self._packages.get(name, {})
        return [str(v) for v in sorted(versions, reverse=True)]

    async def fetch_metadata(self, name: str, version: str) -> PackageMetadata | None:
        return self._packages.get(name, {}).get(Version.parse(version))
