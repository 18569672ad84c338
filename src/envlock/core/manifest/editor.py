"""Manifest editing for ``envlock add`` and ``envlock remove``.

Edits operate on a copy of the parsed YAML document and re-validate the
result, so an edit can never produce a manifest the reader would reject.
Nothing touches the disk until ``write_manifest`` is called, which the CLI
does only after the edited manifest has resolved successfully.

Comments in the original file are not preserved (PyYAML does not keep
them); key order is.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from envlock.core.atomic import atomic_write_text
from envlock.core.dependency.constraints import (
    PackageDependency,
    canonicalize_name,
    parse_requirement,
)
from envlock.core.manifest.models import DEFAULT_GROUP, Manifest
from envlock.core.manifest.reader import manifest_from_data
from envlock.exceptions import DependencyNotDeclared, UnknownGroup


def _entries(doc: dict[str, Any], group: str, create: bool) -> list[Any] | None:
    if group == DEFAULT_GROUP:
        if doc.get("dependencies") is None and create:
            doc["dependencies"] = []
        return doc.get("dependencies")
    groups = doc.get("groups")
    if groups is None:
        if not create:
            return None
        groups = doc["groups"] = {}
    if groups.get(group) is None and create:
        groups[group] = []
    return groups.get(group)


def _entry_name(entry: Any) -> str | None:
    """Canonical package name of a raw group entry (None for includes)."""
    if isinstance(entry, str):
        return parse_requirement(entry).name
    if isinstance(entry, dict) and "package" in entry:
        return canonicalize_name(str(entry["package"]))
    return None


def add_requirement(
    manifest: Manifest,
    dependency: PackageDependency,
    group: str = DEFAULT_GROUP,
) -> Manifest:
    """Return a new manifest with *dependency* declared in *group*.

    An existing declaration of the same package in that group is replaced in
    place; otherwise the requirement is appended. A missing group is
    created.
    """
    doc = copy.deepcopy(manifest.raw)
    entries = _entries(doc, group, create=True)
    if entries is None:  # pragma: no cover
        raise ValueError(f"Could not create group {group!r}")
    text = str(dependency)
    for i, entry in enumerate(entries):
        if _entry_name(entry) == dependency.name:
            entries[i] = text
            break
    else:
        entries.append(text)
    return _rebuild(manifest, doc)


def remove_requirement(
    manifest: Manifest,
    package: str,
    group: str | None = None,
) -> tuple[Manifest, list[str]]:
    """Return a new manifest without *package*, and the groups it left.

    Args:
        manifest: The current manifest.
        package: Package name (any spelling).
        group: Restrict removal to one group; None removes it everywhere.

    Raises:
        UnknownGroup: If *group* is not declared.
        DependencyNotDeclared: If the package is not declared where asked.
    """
    name = canonicalize_name(package)
    if group is not None and group not in manifest.groups:
        raise UnknownGroup(group, manifest.group_names)
    targets = [group] if group is not None else manifest.declared_in(name)
    targets = [g for g in targets if manifest.groups[g].get(name) is not None]
    if not targets:
        raise DependencyNotDeclared(name, group)

    doc = copy.deepcopy(manifest.raw)
    for target in targets:
        entries = _entries(doc, target, create=False) or []
        entries[:] = [e for e in entries if _entry_name(e) != name]
    return _rebuild(manifest, doc), targets


def _rebuild(manifest: Manifest, doc: dict[str, Any]) -> Manifest:
    return replace(manifest_from_data(doc), path=manifest.path)


def dump_manifest(manifest: Manifest) -> str:
    return yaml.safe_dump(manifest.raw, sort_keys=False, default_flow_style=False)


def write_manifest(manifest: Manifest, path: Path | None = None) -> Path:
    """Atomically write *manifest* back to disk.

    Returns:
        The path written.
    """
    target = path or manifest.path
    if target is None:
        raise ValueError("No path given and the manifest was not read from a file")
    atomic_write_text(target, dump_manifest(manifest))
    return target
