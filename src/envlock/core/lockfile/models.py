"""Lockfile data models: LockedPackage and LockfileMetadata.

Pure data holders with no I/O, safe to import from anywhere without
circular-dependency concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from envlock.core.digest import canonical_digest


# ---------------------------------------------------------------------------
# LockedPackage: a single entry in the lockfile
# ---------------------------------------------------------------------------


@dataclass
class LockedPackage:
    """A single package entry in the lockfile.

    Attributes:
        name: Canonical package name (e.g. "requests").
        version: Resolved version (e.g. "2.32.3").
        dependencies: This version's own requirements, name -> constraint.
        required_by: Constraints imposed on this package, keyed by the
            requiring package name (``<root>`` for the manifest).
        groups: Dependency groups this package belongs to.
        inputs: Digest of the fields above in "sha256:<hex>" format; a
            mismatch on read means the entry was edited by hand.
    """

    name: str
    version: str
    dependencies: dict[str, str] = field(default_factory=dict)
    required_by: dict[str, str] = field(default_factory=dict)
    groups: list[str] = field(default_factory=list)
    inputs: str = ""

    def compute_inputs(self) -> str:
        """Digest of the constraint-derived inputs that produced this entry."""
        return canonical_digest({
            "name": self.name,
            "version": self.version,
            "dependencies": dict(sorted(self.dependencies.items())),
            "required_by": dict(sorted(self.required_by.items())),
            "groups": sorted(self.groups),
        })

    def seal(self) -> LockedPackage:
        """Fill in ``inputs`` from the current field values."""
        self.inputs = self.compute_inputs()
        return self


# ---------------------------------------------------------------------------
# LockfileMetadata: top-level metadata section
# ---------------------------------------------------------------------------


@dataclass
class LockfileMetadata:
    """Metadata section of the lockfile.

    Attributes:
        total_packages: Expected number of package entries. Used during
            reading to detect truncated or hand-trimmed files.
        resolution_strategy: The algorithm that produced the lock
            ("backtracking", or "manual" for hand-built lockfiles).
    """

    total_packages: int = 0
    resolution_strategy: str = "backtracking"
