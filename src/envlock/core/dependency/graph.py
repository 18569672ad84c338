"""Package index data structure and dependency graph queries.

The ``PackageIndex`` is the read-only view of package metadata that the
resolver searches: for each canonical package name, the available versions
and, per version, the dependency edges and the supported Python range. It is
populated once (from a local index file or by concurrent prefetch from a
remote index) and then treated as immutable during resolution.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field

from envlock.core.dependency.constraints import PackageDependency, VersionConstraint
from envlock.core.dependency.versions import Version


# ---------------------------------------------------------------------------
# PackageMetadata: a vertex in the graph
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PackageMetadata:
    """Metadata for one package at one version.

    Attributes:
        name: Canonical package name.
        version: The concrete version.
        dependencies: Dependency edges, in declaration order.
        requires_python: Supported Python range, or None for any.
    """

    name: str
    version: Version
    dependencies: tuple[PackageDependency, ...] = ()
    requires_python: VersionConstraint | None = None

    def supports_python(self, python: VersionConstraint) -> bool:
        """True when this version's Python range overlaps *python*."""
        if self.requires_python is None:
            return True
        return self.requires_python.intersects(python)


# ---------------------------------------------------------------------------
# PackageIndex
# ---------------------------------------------------------------------------


@dataclass
class FetchFailureRecord:
    """A metadata fetch that failed permanently and was excluded."""

    name: str
    version: str | None
    reason: str


class PackageIndex:
    """Available packages, versions, and their metadata.

    Thread safety: not thread-safe. Concurrent prefetch tasks run on a
    single event loop and each writes only its own (name, version) slot.
    """

    def __init__(self) -> None:
        self._packages: dict[str, dict[Version, PackageMetadata]] = defaultdict(dict)
        self.fetch_failures: list[FetchFailureRecord] = []

    @property
    def packages(self) -> list[str]:
        """Sorted canonical names of every package with at least one version."""
        return sorted(name for name, versions in self._packages.items() if versions)

    @property
    def node_count(self) -> int:
        return sum(len(v) for v in self._packages.values())

    def add(self, metadata: PackageMetadata) -> None:
        """Add or replace the metadata for one (name, version)."""
        self._packages[metadata.name][metadata.version] = metadata

    def has_package(self, name: str) -> bool:
        return bool(self._packages.get(name))

    def get(self, name: str, version: Version) -> PackageMetadata | None:
        return self._packages.get(name, {}).get(version)

    def versions(self, name: str) -> list[Version]:
        """All known versions of *name*, newest first."""
        return sorted(self._packages.get(name, {}), reverse=True)

    def dependencies(self, name: str, version: Version) -> list[PackageDependency]:
        meta = self.get(name, version)
        return list(meta.dependencies) if meta else []

    def record_failure(self, name: str, version: str | None, reason: str) -> None:
        self.fetch_failures.append(FetchFailureRecord(name, version, reason))

    def failures_for(self, name: str) -> list[FetchFailureRecord]:
        return [f for f in self.fetch_failures if f.name == name]


# ---------------------------------------------------------------------------
# Graph queries over a concrete selection
# ---------------------------------------------------------------------------


def reachable_from(
    roots: list[str],
    selected: dict[str, Version],
    index: PackageIndex,
) -> set[str]:
    """Names reachable from *roots* through the selected versions' edges.

    Uses BFS over the dependency edges of the chosen versions only. Names
    that are not in *selected* are skipped.
    """
    seen: set[str] = set()
    queue: deque[str] = deque(sorted(r for r in roots if r in selected))
    seen.update(queue)
    while queue:
        name = queue.popleft()
        for dep in index.dependencies(name, selected[name]):
            if dep.name in selected and dep.name not in seen:
                seen.add(dep.name)
                queue.append(dep.name)
    return seen


def detect_cycles(selected: dict[str, Version], index: PackageIndex) -> list[list[str]]:
    """Detect dependency cycles among the selected versions.

    Cycles are legal for installation but worth reporting. Uses an iterative
    DFS with coloring and returns each cycle as a closed path, e.g.
    ``["a", "b", "a"]``.
    """
    adj: dict[str, list[str]] = {
        name: sorted({d.name for d in index.dependencies(name, ver) if d.name in selected})
        for name, ver in selected.items()
    }
    WHITE, GRAY, BLACK = 0, 1, 2
    color = {name: WHITE for name in adj}
    path: list[str] = []
    cycles: list[list[str]] = []

    for root in sorted(adj):
        if color[root] != WHITE:
            continue
        color[root] = GRAY
        path.append(root)
        frames = [iter(adj[root])]
        while frames:
            v = next(frames[-1], None)
            if v is None:
                frames.pop()
                color[path.pop()] = BLACK
            elif color[v] == GRAY:
                cycles.append(path[path.index(v):] + [v])
            elif color[v] == WHITE:
                color[v] = GRAY
                path.append(v)
                frames.append(iter(adj[v]))
    return cycles
