"""Conflict records and failure explanation for the resolver.

When a search dead-ends, the resolver records a ``Conflict``: the package
that could not be satisfied together with every ``(origin, constraint)``
pair that applied to it. After a failed resolution the root requirements
are minimized by deletion: each root is dropped in turn and the problem is
re-solved; if it still fails, the root was not needed to reproduce the
failure and stays dropped. What remains is a minimal set of roots whose
conflicts are the ones reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from envlock.core.dependency.constraints import VersionConstraint
from envlock.core.dependency.versions import Version

if TYPE_CHECKING:
    from envlock.core.dependency.resolver import Resolution

ROOT = "<root>"

# Upper bound on the number of conflicts reported to the user.
MAX_REPORTED_CONFLICTS = 10


@dataclass(frozen=True)
class Origin:
    """Where a constraint came from: the manifest, or a chosen package."""

    name: str = ROOT
    version: Version | None = None

    @property
    def is_root(self) -> bool:
        return self.name == ROOT

    def __str__(self) -> str:
        if self.is_root:
            return "the manifest"
        return f"{self.name} {self.version}"


ROOT_ORIGIN = Origin()


@dataclass(frozen=True)
class Conflict:
    """An unsatisfiable set of constraints on one package.

    Attributes:
        package: Canonical name of the package that could not be satisfied.
        constraints: Every (origin, constraint) that applied at the time.
        assigned: The version already chosen, when a new constraint
            excluded it.
        reason: Extra detail (unavailable package, Python range, fetch
            failures, search budget).
    """

    package: str
    constraints: tuple[tuple[Origin, VersionConstraint], ...] = ()
    assigned: Version | None = None
    reason: str = ""

    @property
    def culprits(self) -> set[str]:
        """Package names whose constraints took part in the conflict."""
        names = {self.package} if self.package != ROOT else set()
        names.update(o.name for o, _ in self.constraints if not o.is_root)
        return names

    def describe(self) -> str:
        if self.package == ROOT:
            return self.reason
        parts = [f"{o} requires {self.package}{'' if c.is_any else c.raw}" for o, c in self.constraints]
        text = "; ".join(parts) if parts else f"{self.package} is required"
        if self.assigned is not None:
            text += f", but {self.package} {self.assigned} was already selected"
        if self.reason:
            text += f" ({self.reason})"
        return text


@dataclass
class Diagnosis:
    """The explanation attached to a failed resolution."""

    conflicts: list[Conflict] = field(default_factory=list)
    packages: list[str] = field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return [c.describe() for c in self.conflicts]


def unique_conflicts(conflicts: list[Conflict]) -> list[Conflict]:
    """Deduplicate conflicts by description, keeping first-seen order."""
    seen: set[str] = set()
    out: list[Conflict] = []
    for conflict in conflicts:
        key = conflict.describe()
        if key not in seen:
            seen.add(key)
            out.append(conflict)
    return out


def minimize_roots(
    requirements: dict[str, VersionConstraint],
    solve: Callable[[dict[str, VersionConstraint]], Resolution],
) -> tuple[dict[str, VersionConstraint], Resolution | None]:
    """Shrink *requirements* to a minimal failing subset by deletion.

    Args:
        requirements: The root requirements of a failed resolution.
        solve: Re-runs resolution on a subset of roots without diagnosis.

    Returns:
        The minimal roots and the failed resolution for them (None when no
        root could be dropped and no re-solve happened).
    """
    core = dict(requirements)
    last_failure: Resolution | None = None
    for name in sorted(requirements):
        if len(core) == 1:
            break
        trial = {k: v for k, v in core.items() if k != name}
        result = solve(trial)
        if result.budget_exhausted:
            break
        if not result.success:
            core = trial
            last_failure = result
    return core, last_failure


def diagnose(
    requirements: dict[str, VersionConstraint],
    failure: Resolution,
    solve: Callable[[dict[str, VersionConstraint]], Resolution],
) -> Diagnosis:
    """Build the minimal explanation for a failed resolution."""
    if failure.budget_exhausted:
        conflicts = unique_conflicts(failure.conflicts)[-MAX_REPORTED_CONFLICTS:]
        return Diagnosis(conflicts=conflicts, packages=sorted(requirements))

    core, core_failure = minimize_roots(requirements, solve)
    source = core_failure if core_failure is not None else failure
    conflicts = unique_conflicts(source.conflicts)
    packages: set[str] = set(core)
    for conflict in conflicts:
        packages.update(conflict.culprits)
    return Diagnosis(
        conflicts=conflicts[:MAX_REPORTED_CONFLICTS],
        packages=sorted(packages),
    )
