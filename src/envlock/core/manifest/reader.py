"""Manifest reader: ``envlock.yaml`` -> validated ``Manifest``.

Document shape::

    project:
      name: demo
      version: 0.1.0
      requires-python: ">=3.9"
    dependencies:              # the "default" group
      - requests>=2.31,<3.0
      - package: rich          # mapping form
        version: "^13.0"
    groups:
      test:
        - pytest>=7
      dev:
        - include-group: test
        - ruff
    settings:                  # optional, see envlock.config
      index: ./index.yaml

The reader never returns a partially valid manifest: every constraint is
parsed, every include is resolved, and include cycles are rejected.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from envlock.core.dependency.constraints import (
    PackageDependency,
    VersionConstraint,
    make_dependency,
    parse_requirement,
)
from envlock.core.manifest.models import DEFAULT_GROUP, DependencyGroup, Manifest
from envlock.exceptions import MalformedManifest, UnknownGroup

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "envlock.yaml"

_TOP_LEVEL_KEYS = {"project", "dependencies", "groups", "settings"}
_GROUP_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def read_manifest(path: Path) -> Manifest:
    """Read and validate a manifest file.

    Raises:
        MalformedManifest: If the file is missing, unreadable, or invalid.
        UnknownGroup: If an include names an undeclared group.
        InvalidConstraint: If a version range does not parse.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise MalformedManifest(f"Manifest not found: {path}") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedManifest(f"Cannot read manifest {path}: {exc}") from exc
    manifest = parse_manifest(text)
    return replace(manifest, path=path)


def parse_manifest(text: str) -> Manifest:
    """Parse manifest YAML text."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MalformedManifest(f"Manifest is not valid YAML: {exc}") from exc
    return manifest_from_data(data)


def manifest_from_data(data: Any) -> Manifest:
    """Validate an already-loaded manifest document."""
    if not isinstance(data, dict):
        raise MalformedManifest("Manifest must be a mapping at the top level")
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise MalformedManifest(f"Unknown top-level key(s): {', '.join(map(str, unknown))}")

    project = data.get("project")
    if not isinstance(project, dict):
        raise MalformedManifest("Manifest needs a 'project' mapping")
    name = project.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MalformedManifest("'project.name' must be a non-empty string")
    version = str(project.get("version", "0.0.0"))
    python_raw = project.get("requires-python", "*")
    if not isinstance(python_raw, str):
        raise MalformedManifest("'project.requires-python' must be a string")
    requires_python = VersionConstraint(python_raw)

    groups: dict[str, DependencyGroup] = {
        DEFAULT_GROUP: _parse_group(DEFAULT_GROUP, data.get("dependencies")),
    }
    extra = data.get("groups") or {}
    if not isinstance(extra, dict):
        raise MalformedManifest("'groups' must be a mapping of group name to list")
    for group_name, entries in extra.items():
        if not isinstance(group_name, str) or not _GROUP_NAME_RE.match(group_name):
            raise MalformedManifest(f"Invalid group name: {group_name!r}")
        if group_name == DEFAULT_GROUP:
            raise MalformedManifest(
                "Declare default requirements under 'dependencies', not 'groups.default'"
            )
        groups[group_name] = _parse_group(group_name, entries)

    settings = data.get("settings") or {}
    if not isinstance(settings, dict):
        raise MalformedManifest("'settings' must be a mapping")

    return Manifest(
        name=name.strip(),
        version=version,
        requires_python=requires_python,
        groups=groups,
        expanded=_expand_includes(groups),
        settings=dict(settings),
        raw=data,
    )


def _parse_group(name: str, entries: Any) -> DependencyGroup:
    if entries is None:
        return DependencyGroup(name)
    if not isinstance(entries, list):
        raise MalformedManifest(f"Group {name!r} must be a list of requirements")
    requirements: list[PackageDependency] = []
    includes: list[str] = []
    seen: set[str] = set()
    for entry in entries:
        if isinstance(entry, dict) and "include-group" in entry:
            if set(entry) != {"include-group"} or not isinstance(entry["include-group"], str):
                raise MalformedManifest(f"Bad include in group {name!r}: {entry!r}")
            includes.append(entry["include-group"])
            continue
        dep = _parse_entry(name, entry)
        if dep.name in seen:
            raise MalformedManifest(f"Package {dep.name!r} is listed twice in group {name!r}")
        seen.add(dep.name)
        requirements.append(dep)
    return DependencyGroup(name, tuple(requirements), tuple(includes))


def _parse_entry(group: str, entry: Any) -> PackageDependency:
    if isinstance(entry, str):
        return parse_requirement(entry)
    if isinstance(entry, dict) and "package" in entry:
        if not set(entry) <= {"package", "version"}:
            raise MalformedManifest(f"Unexpected keys in group {group!r} entry: {entry!r}")
        package = entry["package"]
        constraint = entry.get("version")
        if not isinstance(package, str) or (constraint is not None and not isinstance(constraint, str)):
            raise MalformedManifest(f"'package' and 'version' must be strings in group {group!r}")
        return make_dependency(package, constraint)
    raise MalformedManifest(f"Unrecognized entry in group {group!r}: {entry!r}")


def _expand_includes(groups: dict[str, DependencyGroup]) -> dict[str, tuple[PackageDependency, ...]]:
    """Merge included groups into each group, rejecting unknown names and cycles."""
    expanded: dict[str, tuple[PackageDependency, ...]] = {}

    def _visit(name: str, path: list[str]) -> tuple[PackageDependency, ...]:
        if name in expanded:
            return expanded[name]
        if name in path:
            cycle = " -> ".join(path[path.index(name):] + [name])
            raise MalformedManifest(f"Include cycle between groups: {cycle}")
        group = groups[name]
        merged: dict[str, PackageDependency] = {d.name: d for d in group.requirements}
        for included in group.includes:
            if included not in groups:
                raise UnknownGroup(included, list(groups))
            for dep in _visit(included, path + [name]):
                current = merged.get(dep.name)
                if current is None:
                    merged[dep.name] = dep
                else:
                    merged[dep.name] = PackageDependency(dep.name, current.constraint.intersect(dep.constraint))
        expanded[name] = tuple(merged.values())
        return expanded[name]

    for group_name in groups:
        _visit(group_name, [])
    logger.debug("Expanded %d dependency group(s)", len(expanded))
    return expanded
