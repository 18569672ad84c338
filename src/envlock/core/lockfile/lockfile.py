"""Lockfile core class --- package management, selection, and serialization.

The ``Lockfile`` class is the central data structure representing an
``envlock.lock.json`` file. It provides:

- **Package management:** add, get, count, and list packages.
- **Selection:** the packages that belong to a set of dependency groups.
- **Serialization:** deterministic ``to_dict``, ``to_json``, and atomic
  ``write``.
- **Replay:** ``to_resolution`` reproduces the resolved version set without
  running the resolver.

Determinism guarantee: package entries are an ordered list sorted by name,
every mapping is emitted with sorted keys, and no timestamps are written.
Two lockfiles with the same content always produce byte-identical JSON, so
the file diffs cleanly in version control.

References
----------
.. [npm-lock] npm documentation. "package-lock.json." File format
   guaranteeing deterministic installs across environments.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from envlock import _PRODUCT_ID
from envlock.core.atomic import atomic_write_text
from envlock.core.dependency.resolver import Resolution
from envlock.core.dependency.versions import Version
from envlock.core.lockfile.models import LockedPackage, LockfileMetadata
from envlock.exceptions import UnknownGroup

logger = logging.getLogger(__name__)

LOCKFILE_NAME = "envlock.lock.json"


class Lockfile:
    """Machine-generated record of exactly resolved versions.

    Includes:

    - One entry per package with its resolved version, its own dependency
      constraints, the constraints imposed on it, and its groups.
    - The manifest input hash, used to detect a stale lock.
    - The Python range and the groups the lock covers.

    Lockfiles are never edited in place on disk: every ``lock`` regenerates
    the whole file.

    Example::

        lf = Lockfile(manifest_hash=manifest.input_hash(), groups=["default"])
        lf.add_package(LockedPackage(name="requests", version="2.32.3").seal())
        lf.write(Path("envlock.lock.json"))
    """

    LOCKFILE_VERSION: str = "1.0"

    def __init__(
        self,
        manifest_hash: str = "",
        requires_python: str = "*",
        groups: list[str] | None = None,
    ) -> None:
        self.manifest_hash = manifest_hash
        self.requires_python = requires_python
        self.groups: list[str] = sorted(groups or [])
        self._packages: dict[str, LockedPackage] = {}
        self._metadata = LockfileMetadata()

    # -- Package management ---------------------------------------------------

    def add_package(self, package: LockedPackage) -> None:
        """Add a locked package entry, replacing any entry with the same name.

        The metadata ``total_packages`` counter is updated automatically.
        """
        self._packages[package.name] = package
        self._metadata.total_packages = len(self._packages)

    def get_package(self, name: str) -> LockedPackage | None:
        return self._packages.get(name)

    @property
    def package_count(self) -> int:
        return len(self._packages)

    @property
    def package_names(self) -> list[str]:
        """Sorted list of all package names in the lockfile."""
        return sorted(self._packages)

    @property
    def packages(self) -> list[LockedPackage]:
        """All entries, sorted by name."""
        return [self._packages[name] for name in self.package_names]

    # -- Selection and replay -------------------------------------------------

    def select(self, groups: list[str] | None = None) -> list[LockedPackage]:
        """Entries that belong to at least one of *groups*.

        Args:
            groups: Group names; None selects every locked package.

        Raises:
            UnknownGroup: If a group is not covered by this lockfile.
        """
        if groups is None:
            return self.packages
        for group in groups:
            if group not in self.groups:
                raise UnknownGroup(group, self.groups)
        wanted = set(groups)
        return [p for p in self.packages if wanted.intersection(p.groups)]

    def pins(self) -> dict[str, str]:
        return {p.name: p.version for p in self.packages}

    def preferred_versions(self) -> dict[str, Version]:
        """Locked versions, for the resolver to keep when still valid."""
        return {p.name: Version.parse(p.version) for p in self.packages}

    def to_resolution(self) -> Resolution:
        """Reproduce the resolved install set without re-resolving."""
        return Resolution(
            success=True,
            installed={p.name: Version.parse(p.version) for p in self.packages},
            groups={p.name: sorted(p.groups) for p in self.packages},
        )

    # -- Serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize the lockfile to a dict matching the schema.

        Packages are emitted as a list sorted by name; every mapping is
        sorted.
        """
        packages: list[dict[str, Any]] = []
        for pkg in self.packages:
            packages.append({
                "name": pkg.name,
                "version": pkg.version,
                "dependencies": dict(sorted(pkg.dependencies.items())),
                "required_by": dict(sorted(pkg.required_by.items())),
                "groups": sorted(pkg.groups),
                "inputs": pkg.inputs,
            })

        return {
            "lock_version": self.LOCKFILE_VERSION,
            "generated_by": _PRODUCT_ID,
            "manifest_hash": self.manifest_hash,
            "requires_python": self.requires_python,
            "groups": list(self.groups),
            "packages": packages,
            "metadata": {
                "total_packages": self._metadata.total_packages,
                "resolution_strategy": self._metadata.resolution_strategy,
            },
        }

    def to_json(self, indent: int = 2) -> str:
        """Deterministic JSON text, newline-terminated."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True) + "\n"

    def write(self, path: Path) -> None:
        """Atomically write the lockfile to *path*.

        A crash at any point leaves either the previous file or the new
        one, never a half-written lock.
        """
        atomic_write_text(path, self.to_json())
        logger.debug("Wrote %d package(s) to %s", self.package_count, path)

    # -- Metadata access ------------------------------------------------------

    @property
    def metadata(self) -> LockfileMetadata:
        return self._metadata

    @metadata.setter
    def metadata(self, value: LockfileMetadata) -> None:
        self._metadata = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lockfile):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]
