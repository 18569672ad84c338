"""Package index and backtracking dependency resolution.

This package implements the version model, the constraint algebra, the
package index the resolver searches, and the resolver itself. All public
names are re-exported here so callers can write
``from envlock.core.dependency import X``.

Formal Definition
-----------------
A resolution problem is a tuple (N, V, D, Py, R) where:

- **N** = set of canonical package names
- **V**: N -> 2^Version = available versions per package
- **D**: N x Version -> 2^(N x Constraint) = dependency relation
- **Py**: N x Version -> Constraint = supported Python range
- **R**: N -> Constraint = root requirements from the manifest

A solution picks one version per package in the closure of R such that every
constraint in R and in D of every chosen version holds.
"""

from envlock.core.dependency.versions import (
    Version,
    parse_version,
    version_key,
)
from envlock.core.dependency.constraints import (
    Interval,
    PackageDependency,
    VersionConstraint,
    canonicalize_name,
    make_dependency,
    parse_requirement,
)
from envlock.core.dependency.graph import (
    FetchFailureRecord,
    PackageIndex,
    PackageMetadata,
    detect_cycles,
    reachable_from,
)
from envlock.core.dependency.diagnosis import (
    ROOT,
    Conflict,
    Diagnosis,
    Origin,
)
from envlock.core.dependency.resolver import (
    DEFAULT_MAX_STEPS,
    DependencyResolver,
    Resolution,
    resolve,
)

__all__ = [
    "DEFAULT_MAX_STEPS",
    "ROOT",
    "Conflict",
    "DependencyResolver",
    "Diagnosis",
    "FetchFailureRecord",
    "Interval",
    "Origin",
    "PackageDependency",
    "PackageIndex",
    "PackageMetadata",
    "Resolution",
    "Version",
    "VersionConstraint",
    "canonicalize_name",
    "detect_cycles",
    "make_dependency",
    "parse_requirement",
    "parse_version",
    "reachable_from",
    "resolve",
    "version_key",
]
