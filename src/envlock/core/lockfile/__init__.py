"""Lock artifact --- reproducible, reviewable environment pins.

This package implements the ``envlock.lock.json`` format. The lockfile
captures the exact resolved state of a project's dependency groups: every
package at its resolved version, the constraints that led there, and the
manifest input hash used to detect a stale lock.

The package is split into focused submodules:

- ``models``: Data classes (``LockedPackage``, ``LockfileMetadata``).
- ``lockfile``: The ``Lockfile`` class with package management, group
  selection, and deterministic serialization.
- ``operations``: Deserialization (``from_dict``, ``from_json``, ``read``),
  validation, staleness checks, and diffing.
- ``factory``: The ``from_resolution`` factory method for constructing
  lockfiles from resolver output.

All public names are re-exported here so callers can write
``from envlock.core.lockfile import Lockfile``.
"""

# Re-export data models
from envlock.core.lockfile.models import LockedPackage, LockfileMetadata

# Re-export the Lockfile class
from envlock.core.lockfile.lockfile import LOCKFILE_NAME, Lockfile

# Attach operations to Lockfile as methods/classmethods
from envlock.core.lockfile import operations as _ops
from envlock.core.lockfile import factory as _factory

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_json = classmethod(_ops._from_json)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.is_fresh = _ops._is_fresh
Lockfile.ensure_fresh = _ops._ensure_fresh
Lockfile.diff = _ops._diff
Lockfile.from_resolution = classmethod(_factory._from_resolution)

__all__ = [
    "LOCKFILE_NAME",
    "LockedPackage",
    "Lockfile",
    "LockfileMetadata",
]
