"""Lockfile operations --- deserialization, validation, staleness, diffing.

This module extends the ``Lockfile`` class (defined in ``lockfile.py``) with
classmethods and instance methods for:

- **Deserialization:** ``from_dict``, ``from_json``, ``read`` (disk). Any
  structural problem raises ``LockCorrupt``; a partially valid lock is
  never returned.
- **Validation:** internal consistency checks on an in-memory lockfile.
- **Staleness:** ``is_fresh`` / ``ensure_fresh`` against a manifest.
- **Diffing:** structured comparison of two lockfiles.

These are attached to the ``Lockfile`` class at import time (in
``__init__.py``) to keep each source file focused while presenting a single
unified API to callers.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from envlock.core.dependency.constraints import VersionConstraint, canonicalize_name
from envlock.core.dependency.versions import Version
from envlock.core.digest import DIGEST_RE
from envlock.core.lockfile.models import LockedPackage, LockfileMetadata
from envlock.exceptions import InvalidConstraint, LockCorrupt, LockStale

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = {
    "generated_by",
    "groups",
    "lock_version",
    "manifest_hash",
    "metadata",
    "packages",
    "requires_python",
}
_ENTRY_KEYS = {"dependencies", "groups", "inputs", "name", "required_by", "version"}


# ---------------------------------------------------------------------------
# Deserialization
# ---------------------------------------------------------------------------


def _expect(condition: bool, message: str) -> None:
    if not condition:
        raise LockCorrupt(message)


def _string_map(value: Any, where: str) -> dict[str, str]:
    _expect(isinstance(value, dict), f"{where} must be an object")
    for key, item in value.items():
        _expect(isinstance(item, str), f"{where}[{key!r}] must be a string")
        try:
            VersionConstraint(item)
        except InvalidConstraint as exc:
            raise LockCorrupt(f"{where}[{key!r}]: {exc}") from exc
    return dict(value)


def _parse_entry(index: int, entry: Any, lock_groups: set[str]) -> LockedPackage:
    where = f"packages[{index}]"
    _expect(isinstance(entry, dict), f"{where} must be an object")
    missing = sorted(_ENTRY_KEYS - set(entry))
    _expect(not missing, f"{where} is missing {', '.join(missing)}")
    unknown = sorted(set(entry) - _ENTRY_KEYS)
    _expect(not unknown, f"{where} has unknown key(s) {', '.join(unknown)}")

    name = entry["name"]
    _expect(isinstance(name, str) and name != "", f"{where}.name must be a non-empty string")
    try:
        canonical = canonicalize_name(name)
    except InvalidConstraint as exc:
        raise LockCorrupt(f"{where}.name: {exc}") from exc
    _expect(canonical == name, f"{where}.name {name!r} is not canonical")

    version = entry["version"]
    _expect(isinstance(version, str), f"{where}.version must be a string")
    try:
        Version.parse(version)
    except ValueError as exc:
        raise LockCorrupt(f"{name}: {exc}") from exc

    groups = entry["groups"]
    _expect(
        isinstance(groups, list) and all(isinstance(g, str) for g in groups),
        f"{name}: groups must be a list of strings",
    )
    _expect(groups != [], f"{name}: belongs to no group")
    stray = sorted(set(groups) - lock_groups)
    _expect(not stray, f"{name}: group(s) {', '.join(stray)} are not covered by the lock")

    pkg = LockedPackage(
        name=name,
        version=version,
        dependencies=_string_map(entry["dependencies"], f"{name}.dependencies"),
        required_by=_string_map(entry["required_by"], f"{name}.required_by"),
        groups=list(groups),
        inputs=entry["inputs"],
    )
    _expect(
        isinstance(pkg.inputs, str) and bool(DIGEST_RE.match(pkg.inputs)),
        f"{name}: inputs must be a 'sha256:<hex>' digest",
    )
    _expect(pkg.inputs == pkg.compute_inputs(), f"{name}: inputs digest does not match the entry")
    return pkg


def _from_dict(cls: type, data: Any) -> Any:
    """Deserialize a lockfile from a dict (parsed JSON).

    Accepts exactly the format produced by ``to_dict()``. Unlike a
    forgiving reader, every field is required and checked: a lock that was
    truncated, merged badly, or edited by hand is rejected as a whole.

    Args:
        data: Dictionary matching the lockfile schema.

    Returns:
        A new ``Lockfile`` instance populated from the dict.

    Raises:
        LockCorrupt: On any structural or integrity problem.
    """
    _expect(isinstance(data, dict), "lockfile must be a JSON object")
    missing = sorted(_TOP_LEVEL_KEYS - set(data))
    _expect(not missing, f"lockfile is missing {', '.join(missing)}")

    lock_version = data["lock_version"]
    _expect(
        lock_version == cls.LOCKFILE_VERSION,
        f"unsupported lock_version {lock_version!r} (expected {cls.LOCKFILE_VERSION!r})",
    )
    manifest_hash = data["manifest_hash"]
    _expect(
        isinstance(manifest_hash, str) and bool(DIGEST_RE.match(manifest_hash)),
        "manifest_hash must be a 'sha256:<hex>' digest",
    )
    requires_python = data["requires_python"]
    _expect(isinstance(requires_python, str), "requires_python must be a string")
    try:
        VersionConstraint(requires_python)
    except InvalidConstraint as exc:
        raise LockCorrupt(f"requires_python: {exc}") from exc
    groups = data["groups"]
    _expect(
        isinstance(groups, list) and all(isinstance(g, str) for g in groups),
        "groups must be a list of strings",
    )
    _expect(groups == sorted(set(groups)), "groups must be sorted and unique")

    packages = data["packages"]
    _expect(isinstance(packages, list), "packages must be a list")

    lf = cls(manifest_hash=manifest_hash, requires_python=requires_python, groups=groups)
    previous = ""
    for i, entry in enumerate(packages):
        pkg = _parse_entry(i, entry, set(groups))
        _expect(pkg.name not in lf._packages, f"duplicate entry for {pkg.name!r}")
        _expect(pkg.name > previous, f"packages are not sorted by name at {pkg.name!r}")
        previous = pkg.name
        lf._packages[pkg.name] = pkg

    meta = data["metadata"]
    _expect(isinstance(meta, dict), "metadata must be an object")
    total = meta.get("total_packages")
    _expect(
        total == len(lf._packages),
        f"metadata.total_packages ({total}) does not match actual count ({len(lf._packages)})",
    )
    lf._metadata = LockfileMetadata(
        total_packages=total,
        resolution_strategy=str(meta.get("resolution_strategy", "backtracking")),
    )

    errors = lf.validate()
    if errors:
        raise LockCorrupt("; ".join(errors))
    return lf


def _from_json(cls: type, json_str: str) -> Any:
    """Deserialize from a JSON string.

    Raises:
        LockCorrupt: If the text is not valid JSON or not a valid lock.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise LockCorrupt(f"lockfile is not valid JSON: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:
    """Read a lockfile from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        LockCorrupt: If the file is unreadable or invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        raise LockCorrupt(f"cannot read {path}: {exc}") from exc
    logger.debug("Reading lockfile %s", path)
    return cls.from_json(text)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate(self: Any) -> list[str]:
    """Validate the lockfile for internal consistency.

    Performs the following checks:

    1. **Dependency closure:** Every dependency of a locked package is
       itself locked.
    2. **Constraint agreement:** Every locked version satisfies each
       dependency constraint recorded by the packages that require it, and
       each ``required_by`` constraint.
    3. **Integrity:** Every entry's ``inputs`` digest matches its fields.
    4. **Metadata consistency:** ``total_packages`` matches the entries.

    Cycles are not errors: a cyclic selection is still installable.

    Returns:
        List of validation error messages. Empty means the lockfile is
        valid.
    """
    errors: list[str] = []
    versions = {name: Version.parse(pkg.version) for name, pkg in self._packages.items()}

    for name in sorted(self._packages):
        pkg = self._packages[name]
        for dep_name, constraint in sorted(pkg.dependencies.items()):
            if dep_name not in versions:
                errors.append(f"{name} depends on {dep_name!r} which is not in the lockfile")
            elif not VersionConstraint(constraint).satisfies(versions[dep_name]):
                errors.append(
                    f"{name} requires {dep_name}{constraint} but "
                    f"{dep_name} {versions[dep_name]} is locked"
                )
        for origin, constraint in sorted(pkg.required_by.items()):
            if not VersionConstraint(constraint).satisfies(versions[name]):
                errors.append(f"{name} {pkg.version} does not satisfy {constraint} from {origin}")
        if pkg.inputs and pkg.inputs != pkg.compute_inputs():
            errors.append(f"{name}: inputs digest does not match the entry")

    if self._metadata.total_packages != len(self._packages):
        errors.append(
            f"Metadata total_packages ({self._metadata.total_packages}) "
            f"does not match actual count ({len(self._packages)})"
        )
    return errors


# ---------------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------------


def _is_fresh(self: Any, manifest: Any) -> bool:
    """True when this lock was produced from *manifest*'s current inputs."""
    return self.manifest_hash == manifest.input_hash()


def _ensure_fresh(self: Any, manifest: Any) -> None:
    """Raise ``LockStale`` unless this lock matches *manifest*."""
    actual = manifest.input_hash()
    if self.manifest_hash != actual:
        raise LockStale(self.manifest_hash, actual)


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two lockfiles and return differences.

    - **added**: Packages present in ``other`` but not in ``self``.
    - **removed**: Packages present in ``self`` but not in ``other``.
    - **changed**: Packages present in both with a different version or
      group membership. Version changes carry a ``direction`` of
      ``"upgrade"`` or ``"downgrade"``.

    Args:
        other: The lockfile to compare against (typically the newer one).

    Returns:
        Dict with keys 'added', 'removed', 'changed'.
    """
    self_names = set(self._packages)
    other_names = set(other._packages)

    added = sorted(other_names - self_names)
    removed = sorted(self_names - other_names)

    changes: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old = self._packages[name]
        new = other._packages[name]
        if old.version != new.version:
            newer = Version.parse(new.version) > Version.parse(old.version)
            changes.append({
                "name": name,
                "field": "version",
                "old": old.version,
                "new": new.version,
                "direction": "upgrade" if newer else "downgrade",
            })
        if sorted(old.groups) != sorted(new.groups):
            changes.append({
                "name": name,
                "field": "groups",
                "old": sorted(old.groups),
                "new": sorted(new.groups),
            })

    return {
        "added": added,
        "removed": removed,
        "changed": changes,
    }
