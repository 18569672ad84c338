"""Lockfile factory --- constructing lockfiles from resolution results.

The ``from_resolution`` function constructs a ``Lockfile`` directly from a
successful ``Resolution``. This is the primary entry point in the normal
workflow::

    resolution = resolve(manifest, None, index)
    resolution.raise_for_failure()
    lockfile = Lockfile.from_resolution(resolution, manifest, index)
    lockfile.write(Path("envlock.lock.json"))
"""

from __future__ import annotations

import logging
from typing import Any

from envlock.core.dependency.constraints import VersionConstraint
from envlock.core.dependency.graph import PackageIndex, detect_cycles
from envlock.core.lockfile.models import LockedPackage

logger = logging.getLogger(__name__)


def _merge(target: dict[str, VersionConstraint], key: str, constraint: VersionConstraint) -> None:
    current = target.get(key)
    target[key] = constraint if current is None else current.intersect(constraint)


def _from_resolution(
    cls: type,
    resolution: Any,
    manifest: Any,
    index: PackageIndex,
) -> Any:
    """Create a lockfile from a dependency Resolution result.

    Args:
        resolution: A successful ``Resolution`` from
            ``envlock.core.dependency.resolve``.
        manifest: The ``Manifest`` that was resolved; supplies the input
            hash, the Python range, and the group list.
        index: The ``PackageIndex`` the resolution was computed against,
            for each version's own dependency constraints.

    Returns:
        A new ``Lockfile`` populated from the resolution result.

    Raises:
        ValueError: If the resolution was not successful.
    """
    if not resolution.success:
        raise ValueError(
            "Cannot create lockfile from failed resolution. "
            f"Conflicts: {resolution.messages}"
        )

    lf = cls(
        manifest_hash=manifest.input_hash(),
        requires_python=manifest.requires_python.raw,
        groups=manifest.group_names,
    )

    for name, version in sorted(resolution.installed.items()):
        dependencies: dict[str, VersionConstraint] = {}
        for dep in index.dependencies(name, version):
            _merge(dependencies, dep.name, dep.constraint)

        required_by: dict[str, VersionConstraint] = {}
        for origin, constraint in resolution.constraints.get(name, []):
            _merge(required_by, origin.name, constraint)

        pkg = LockedPackage(
            name=name,
            version=str(version),
            dependencies={k: v.raw for k, v in sorted(dependencies.items())},
            required_by={k: v.raw for k, v in sorted(required_by.items())},
            groups=sorted(resolution.groups.get(name, [])),
        )
        lf.add_package(pkg.seal())

    for cycle in detect_cycles(resolution.installed, index):
        logger.info("Dependency cycle in locked set: %s", " -> ".join(cycle))

    return lf
