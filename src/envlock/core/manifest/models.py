"""Manifest data models.

A ``Manifest`` is the validated, read-only form of ``envlock.yaml``: project
identity, the supported Python range, and named dependency groups. Group
includes are already expanded when a ``Manifest`` exists, so consumers never
see an unresolved reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from envlock.config import load_settings
from envlock.core.dependency.constraints import PackageDependency, VersionConstraint
from envlock.core.digest import canonical_digest
from envlock.exceptions import UnknownGroup

DEFAULT_GROUP = "default"

# Settings whose value changes what a resolution returns.
RESOLUTION_SETTINGS = ("allow_prereleases", "max_steps")


@dataclass(frozen=True)
class DependencyGroup:
    """A named list of requirements as declared in the manifest.

    Attributes:
        name: Group name (``default`` for top-level ``dependencies``).
        requirements: Direct requirements, in declaration order.
        includes: Names of groups whose requirements this group pulls in.
    """

    name: str
    requirements: tuple[PackageDependency, ...] = ()
    includes: tuple[str, ...] = ()

    def get(self, name: str) -> PackageDependency | None:
        for dep in self.requirements:
            if dep.name == name:
                return dep
        return None


@dataclass(frozen=True)
class Manifest:
    """A parsed and validated project manifest.

    Attributes:
        name: Project name.
        version: Project version string.
        requires_python: Python versions the project supports.
        groups: Declared groups, in declaration order (``default`` first).
        expanded: Group name -> requirements with includes merged in.
        settings: The raw ``settings`` mapping (see ``envlock.config``).
        raw: The parsed YAML document, kept for round-trip editing.
        path: Where the manifest was read from, if anywhere.
    """

    name: str
    version: str
    requires_python: VersionConstraint
    groups: dict[str, DependencyGroup]
    expanded: dict[str, tuple[PackageDependency, ...]]
    settings: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
    path: Path | None = field(default=None, compare=False)

    @property
    def group_names(self) -> list[str]:
        return list(self.groups)

    def check_groups(self, groups: list[str]) -> None:
        """Raise ``UnknownGroup`` for the first undeclared name in *groups*."""
        for group in groups:
            if group not in self.groups:
                raise UnknownGroup(group, self.group_names)

    def requirements(self, groups: list[str] | None = None) -> dict[str, VersionConstraint]:
        """Union of the requested groups' requirements.

        A package required by several groups gets the intersection of its
        constraints.

        Args:
            groups: Group names; None means every declared group.

        Returns:
            Canonical name -> constraint, sorted by name.

        Raises:
            UnknownGroup: If a requested group is not declared.
        """
        selected = self.group_names if groups is None else list(groups)
        self.check_groups(selected)
        merged: dict[str, VersionConstraint] = {}
        for group in selected:
            for dep in self.expanded[group]:
                current = merged.get(dep.name)
                merged[dep.name] = dep.constraint if current is None else current.intersect(dep.constraint)
        return dict(sorted(merged.items()))

    def declared_in(self, package: str) -> list[str]:
        """Groups that declare *package* directly."""
        return [g.name for g in self.groups.values() if g.get(package) is not None]

    def input_hash(self) -> str:
        """Digest of every manifest input that affects resolution.

        Covers the Python range, each group's expanded requirements and the
        effective value of each setting in ``RESOLUTION_SETTINGS``. Settings
        from the environment or the command line are per-run choices and are
        not inputs. Project name and version are not inputs either.

        Raises:
            ConfigError: If the ``settings`` mapping holds a bad value.
        """
        effective = load_settings(self.settings, environ={})
        payload = {
            "requires_python": self.requires_python.raw,
            "groups": {
                name: sorted(str(dep) for dep in deps)
                for name, deps in sorted(self.expanded.items())
            },
            "settings": {name: getattr(effective, name) for name in RESOLUTION_SETTINGS},
        }
        return canonical_digest(payload)
