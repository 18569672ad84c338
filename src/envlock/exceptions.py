"""envlock exception hierarchy.

All public exceptions inherit from EnvlockError, giving callers a single
base class to catch when they want to handle any envlock-specific failure
without swallowing unrelated errors. Each class carries the process exit
code the CLI uses when the error reaches the top level.
"""

from __future__ import annotations


class EnvlockError(Exception):
    """Base exception for all envlock errors."""

    exit_code: int = 1


class ConfigError(EnvlockError):
    """Raised when a setting has an invalid value."""


# ---------------------------------------------------------------------------
# Manifest input errors (reported immediately, never retried)
# ---------------------------------------------------------------------------


class ManifestError(EnvlockError):
    """Base class for problems with the project manifest."""


class MalformedManifest(ManifestError):
    """Raised when the manifest cannot be parsed or has the wrong shape.

    Covers YAML syntax errors, missing required fields, duplicate
    requirements within a group, and include-group cycles.
    """

    exit_code = 3


class UnknownGroup(ManifestError):
    """Raised when a dependency group is referenced but never declared."""

    exit_code = 4

    def __init__(self, group: str, declared: list[str] | None = None) -> None:
        self.group = group
        self.declared = sorted(declared or [])
        msg = f"Unknown dependency group {group!r}"
        if self.declared:
            msg += f" (declared: {', '.join(self.declared)})"
        super().__init__(msg)


class InvalidConstraint(ManifestError):
    """Raised when a version or version-range string cannot be parsed."""

    exit_code = 5

    def __init__(self, constraint: str, reason: str = "") -> None:
        self.constraint = constraint
        self.reason = reason
        msg = f"Invalid version constraint {constraint!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class DependencyNotDeclared(ManifestError):
    """Raised when removing a package the manifest does not declare."""

    exit_code = 10

    def __init__(self, package: str, group: str | None = None) -> None:
        self.package = package
        self.group = group
        where = f"group {group!r}" if group else "any group"
        super().__init__(f"Package {package!r} is not declared in {where}")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolutionFailure(EnvlockError):
    """Raised when no assignment of versions satisfies every constraint.

    Attributes:
        conflicts: Human-readable conflict descriptions, most specific first.
        packages: The minimal set of canonical package names involved in
            the conflict, when it could be derived.
    """

    exit_code = 6

    def __init__(
        self,
        conflicts: list[str],
        packages: list[str] | None = None,
    ) -> None:
        self.conflicts = list(conflicts)
        self.packages = sorted(packages or [])
        head = "Dependency resolution failed"
        if self.packages:
            head += f" (conflicting packages: {', '.join(self.packages)})"
        super().__init__("\n  ".join([head, *self.conflicts]))


class FetchFailure(EnvlockError):
    """Raised when package metadata cannot be fetched after all retries."""

    exit_code = 9

    def __init__(self, url: str, attempts: int, reason: str = "") -> None:
        self.url = url
        self.attempts = attempts
        self.reason = reason
        msg = f"Failed to fetch {url} after {attempts} attempt(s)"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Lock artifact
# ---------------------------------------------------------------------------


class LockfileError(EnvlockError):
    """Base class for lock artifact problems."""


class LockCorrupt(LockfileError):
    """Raised when a lockfile is structurally invalid or was hand-edited."""

    exit_code = 7


class LockStale(LockfileError):
    """Raised when the lockfile no longer matches the manifest.

    Recoverable by re-running ``envlock lock``.
    """

    exit_code = 8

    def __init__(self, expected: str, actual: str, message: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            message
            or "Lockfile is out of date with the manifest "
            f"(locked {expected}, manifest is {actual}); run `envlock lock`"
        )


# ---------------------------------------------------------------------------
# Package index and environment state
# ---------------------------------------------------------------------------


class InvalidIndex(EnvlockError):
    """Raised when a local package index file has the wrong shape."""


class EnvironmentCorrupt(EnvlockError):
    """Raised when the recorded environment state cannot be read."""
