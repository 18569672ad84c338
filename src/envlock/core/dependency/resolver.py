"""Backtracking dependency resolution.

Finds one version per required package such that every constraint from the
manifest and from every selected version's metadata holds.

Algorithm
---------
1. Seed the constraint set with the root requirements.
2. Exclude candidates whose ``requires_python`` does not overlap the
   project's Python range, and pre-releases unless allowed.
3. Pick the unassigned package with the fewest remaining candidates
   (ties by name), and try its candidates newest first, with a preferred
   (previously locked) version moved to the front.
4. Selecting a version adds its dependencies as constraints. If a new
   constraint excludes an already-selected version, or a package is left
   with no candidates, that is a conflict: restore the most recent decision
   that still has untried candidates and continue from there.
5. Stop when every constrained package has a version, or fail when the
   decision stack is exhausted.

Every iteration runs over sorted names and descending versions, so the same
inputs always produce the same ``Resolution``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from envlock.core.dependency.constraints import VersionConstraint
from envlock.core.dependency.diagnosis import (
    ROOT_ORIGIN,
    Conflict,
    Diagnosis,
    Origin,
    diagnose,
)
from envlock.core.dependency.graph import PackageIndex, reachable_from
from envlock.core.dependency.versions import Version
from envlock.exceptions import ResolutionFailure

if TYPE_CHECKING:
    from envlock.core.manifest.models import Manifest

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 100_000


# ---------------------------------------------------------------------------
# Resolution: the output of dependency resolution
# ---------------------------------------------------------------------------


@dataclass
class Resolution:
    """Result of dependency resolution.

    A successful resolution is a concrete assignment of exactly one version
    per package in the transitive closure of the requested roots.

    Attributes:
        success: True if a satisfying assignment was found.
        installed: Canonical name -> chosen version, sorted by name.
        constraints: Canonical name -> every (origin, constraint) that applied.
        groups: Canonical name -> the dependency groups it is reachable from.
        conflicts: Every dead end met during the search (failure only).
        diagnosis: The minimized explanation (failure only).
        steps: Number of version selections attempted.
        budget_exhausted: True if the search hit ``max_steps``.
    """

    success: bool
    installed: dict[str, Version] = field(default_factory=dict)
    constraints: dict[str, list[tuple[Origin, VersionConstraint]]] = field(default_factory=dict)
    groups: dict[str, list[str]] = field(default_factory=dict)
    conflicts: list[Conflict] = field(default_factory=list)
    diagnosis: Diagnosis | None = None
    steps: int = 0
    budget_exhausted: bool = False

    @property
    def pins(self) -> dict[str, str]:
        """Chosen versions as strings, sorted by name."""
        return {name: str(ver) for name, ver in sorted(self.installed.items())}

    @property
    def conflicting_packages(self) -> list[str]:
        return list(self.diagnosis.packages) if self.diagnosis else []

    @property
    def messages(self) -> list[str]:
        if self.diagnosis:
            return self.diagnosis.messages
        return [c.describe() for c in self.conflicts]

    def raise_for_failure(self) -> None:
        """Raise ``ResolutionFailure`` if this resolution did not succeed."""
        if not self.success:
            raise ResolutionFailure(self.messages, self.conflicting_packages)


# ---------------------------------------------------------------------------
# Search state
# ---------------------------------------------------------------------------


@dataclass
class _State:
    constraints: dict[str, list[tuple[Origin, VersionConstraint]]] = field(default_factory=dict)
    combined: dict[str, VersionConstraint] = field(default_factory=dict)
    assigned: dict[str, Version] = field(default_factory=dict)

    def copy(self) -> _State:
        return _State(
            constraints={k: list(v) for k, v in self.constraints.items()},
            combined=dict(self.combined),
            assigned=dict(self.assigned),
        )

    def add(self, name: str, origin: Origin, constraint: VersionConstraint) -> VersionConstraint:
        self.constraints.setdefault(name, []).append((origin, constraint))
        current = self.combined.get(name)
        merged = constraint if current is None else current.intersect(constraint)
        self.combined[name] = merged
        return merged


@dataclass
class _Frame:
    name: str
    remaining: list[Version]
    snapshot: _State


class _BudgetExhausted(Exception):
    pass


# ---------------------------------------------------------------------------
# DependencyResolver
# ---------------------------------------------------------------------------


class DependencyResolver:
    """Backtracking resolver over a ``PackageIndex``.

    Args:
        index: Package metadata to search.
        requirements: Root requirements, canonical name -> constraint.
        python: The project's supported Python range.
        preferred: Versions to try first (typically from an existing lock).
        allow_prereleases: Consider pre-release versions for every package.
        max_steps: Upper bound on version selections before giving up.
        explain: Minimize the roots and attach a ``Diagnosis`` on failure.
    """

    def __init__(
        self,
        index: PackageIndex,
        requirements: dict[str, VersionConstraint],
        python: VersionConstraint | None = None,
        preferred: dict[str, Version] | None = None,
        allow_prereleases: bool = False,
        max_steps: int = DEFAULT_MAX_STEPS,
        explain: bool = True,
    ) -> None:
        self._index = index
        self._requirements = dict(sorted(requirements.items()))
        self._python = python or VersionConstraint.any()
        self._preferred = dict(preferred or {})
        self._allow_prereleases = allow_prereleases
        self._max_steps = max_steps
        self._explain = explain
        self._eligible: dict[str, list[Version]] = {}
        self._steps = 0
        self._conflicts: list[Conflict] = []

    def resolve(self) -> Resolution:
        """Run the search and return a ``Resolution``."""
        state = _State()
        for name, constraint in self._requirements.items():
            state.add(name, ROOT_ORIGIN, constraint)

        try:
            final = self._search(state)
        except _BudgetExhausted:
            logger.warning("Resolution gave up after %d steps", self._steps)
            self._conflicts.append(
                Conflict(ROOT_ORIGIN.name, reason=f"search budget of {self._max_steps} steps exhausted")
            )
            return self._failure(budget_exhausted=True)

        if final is None:
            return self._failure()

        logger.debug("Resolved %d package(s) in %d step(s)", len(final.assigned), self._steps)
        return Resolution(
            success=True,
            installed=dict(sorted(final.assigned.items())),
            constraints={k: list(final.constraints[k]) for k in sorted(final.assigned)},
            steps=self._steps,
        )

    # -- search ---------------------------------------------------------------

    def _search(self, state: _State) -> _State | None:
        stack: list[_Frame] = []
        while True:
            pending = [n for n in sorted(state.combined) if n not in state.assigned]
            if not pending:
                return state

            options = {n: self._candidates(state, n) for n in pending}
            name = min(pending, key=lambda n: (len(options[n]), n))
            candidates = options[name]

            if not candidates:
                self._record(self._explain_empty(state, name))
                restored = self._backtrack(stack)
                if restored is None:
                    return None
                state = restored
                continue

            stack.append(_Frame(name, candidates[1:], state.copy()))
            conflict = self._select(state, name, candidates[0])
            if conflict is not None:
                self._record(conflict)
                restored = self._backtrack(stack)
                if restored is None:
                    return None
                state = restored

    def _backtrack(self, stack: list[_Frame]) -> _State | None:
        while stack:
            frame = stack[-1]
            if not frame.remaining:
                stack.pop()
                continue
            version = frame.remaining.pop(0)
            state = frame.snapshot.copy()
            logger.debug("Backtracking: trying %s %s", frame.name, version)
            conflict = self._select(state, frame.name, version)
            if conflict is None:
                return state
            self._record(conflict)
        return None

    def _select(self, state: _State, name: str, version: Version) -> Conflict | None:
        self._steps += 1
        if self._steps > self._max_steps:
            raise _BudgetExhausted()
        logger.debug("Selecting %s %s", name, version)
        state.assigned[name] = version
        origin = Origin(name, version)
        for dep in self._index.dependencies(name, version):
            merged = state.add(dep.name, origin, dep.constraint)
            chosen = state.assigned.get(dep.name)
            if chosen is not None and not merged.satisfies(chosen):
                return Conflict(dep.name, tuple(state.constraints[dep.name]), assigned=chosen)
            if merged.is_empty():
                return Conflict(dep.name, tuple(state.constraints[dep.name]), reason="constraints do not overlap")
        return None

    # -- candidates -----------------------------------------------------------

    def _eligible_versions(self, name: str) -> list[Version]:
        """Versions of *name* that support the project's Python, newest first."""
        cached = self._eligible.get(name)
        if cached is None:
            cached = []
            for version in self._index.versions(name):
                meta = self._index.get(name, version)
                if meta is not None and meta.supports_python(self._python):
                    cached.append(version)
            self._eligible[name] = cached
        return cached

    def _allows_prerelease(self, state: _State, name: str) -> bool:
        if self._allow_prereleases:
            return True
        return any(c.names_prerelease for _, c in state.constraints.get(name, []))

    def _candidates(self, state: _State, name: str) -> list[Version]:
        combined = state.combined[name]
        allow_pre = self._allows_prerelease(state, name)
        out = [
            v for v in self._eligible_versions(name)
            if (allow_pre or not v.is_prerelease) and combined.satisfies(v)
        ]
        preferred = self._preferred.get(name)
        if preferred is not None and preferred in out:
            out.remove(preferred)
            out.insert(0, preferred)
        return out

    # -- failure reporting ----------------------------------------------------

    def _record(self, conflict: Conflict) -> None:
        logger.debug("Conflict: %s", conflict.describe())
        self._conflicts.append(conflict)

    def _explain_empty(self, state: _State, name: str) -> Conflict:
        constraints = tuple(state.constraints[name])
        available = self._index.versions(name)
        if not available:
            failures = self._index.failures_for(name)
            if failures:
                reason = "metadata could not be fetched: " + "; ".join(f.reason for f in failures)
            else:
                reason = "no versions are available"
            return Conflict(name, constraints, reason=reason)
        if not self._eligible_versions(name):
            return Conflict(name, constraints, reason=f"no version supports Python {self._python.raw}")
        if state.combined[name].is_empty():
            return Conflict(name, constraints, reason="constraints do not overlap")
        shown = ", ".join(str(v) for v in available[:8])
        return Conflict(name, constraints, reason=f"available: {shown}")

    def _failure(self, budget_exhausted: bool = False) -> Resolution:
        result = Resolution(
            success=False,
            conflicts=list(self._conflicts),
            steps=self._steps,
            budget_exhausted=budget_exhausted,
        )
        if self._explain:
            result.diagnosis = diagnose(self._requirements, result, self._solve_subset)
        return result

    def _solve_subset(self, requirements: dict[str, VersionConstraint]) -> Resolution:
        remaining = max(self._max_steps - self._steps, 1)
        sub = DependencyResolver(
            self._index,
            requirements,
            python=self._python,
            preferred=self._preferred,
            allow_prereleases=self._allow_prereleases,
            max_steps=remaining,
            explain=False,
        )
        result = sub.resolve()
        self._steps += sub._steps
        return result


# ---------------------------------------------------------------------------
# Manifest-level entry point
# ---------------------------------------------------------------------------


def resolve(
    manifest: Manifest,
    groups: list[str] | None,
    index: PackageIndex,
    preferred: dict[str, Version] | None = None,
    allow_prereleases: bool = False,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> Resolution:
    """Resolve the requested dependency groups of *manifest* against *index*.

    Args:
        manifest: The parsed project manifest.
        groups: Group names to include; None means every declared group.
        index: Package metadata to resolve against.
        preferred: Versions to keep when still valid.
        allow_prereleases: Consider pre-releases for every package.
        max_steps: Search budget.

    Returns:
        A ``Resolution``; on success ``groups`` records, for each package,
        the requested groups it is reachable from.

    Raises:
        UnknownGroup: If a requested group is not declared.
    """
    selected_groups = manifest.group_names if groups is None else sorted(set(groups))
    requirements = manifest.requirements(selected_groups)
    resolver = DependencyResolver(
        index,
        requirements,
        python=manifest.requires_python,
        preferred=preferred,
        allow_prereleases=allow_prereleases,
        max_steps=max_steps,
    )
    result = resolver.resolve()
    if result.success:
        membership: dict[str, list[str]] = {name: [] for name in result.installed}
        for group in selected_groups:
            roots = list(manifest.requirements([group]))
            for name in reachable_from(roots, result.installed, index):
                membership[name].append(group)
        result.groups = {name: sorted(g) for name, g in sorted(membership.items())}
    return result
