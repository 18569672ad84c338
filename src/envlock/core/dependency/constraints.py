"""Version constraints, package names, and dependency edges.

A constraint is a comma-separated conjunction of atoms. Each atom is
normalized to a union of version intervals, and the conjunction is the
intersection of those unions, so a ``VersionConstraint`` can answer both
membership (``satisfies``) and range questions (``intersects``,
``is_empty``) exactly. The latter are what Python-range filtering and
conflict detection need.

Supported atoms:

- Exact and not-equal: ``==1.0.0``, ``!=1.0.0``, bare ``1.0.0``
- Ranges: ``>=``, ``<=``, ``>``, ``<``
- Caret: ``^1.2.3`` (``^=`` accepted) -- same left-most non-zero component
- Tilde: ``~1.2.3`` -- same major.minor (``~1`` -- same major)
- Compatible release: ``~=1.4.5`` (PEP 440)
- Wildcards: ``*``, ``==1.*``, ``==1.2.*``, ``!=1.2.*``
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from envlock.core.dependency.versions import Version, parse_version
from envlock.exceptions import InvalidConstraint

# ---------------------------------------------------------------------------
# Package names
# ---------------------------------------------------------------------------

_NAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9._-]*[A-Za-z0-9])?$")
_NAME_SEP_RE = re.compile(r"[-_.]+")


def canonicalize_name(name: str) -> str:
    """Return the canonical, case-insensitive form of a package name.

    Raises:
        InvalidConstraint: If *name* is not a valid package name.
    """
    stripped = name.strip()
    if not _NAME_RE.match(stripped):
        raise InvalidConstraint(name, "not a valid package name")
    return _NAME_SEP_RE.sub("-", stripped).lower()


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Interval:
    """A contiguous version range; ``None`` bounds are unbounded."""

    lower: Version | None = None
    lower_inclusive: bool = True
    upper: Version | None = None
    upper_inclusive: bool = False

    def is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        if self.lower > self.upper:
            return True
        if self.lower == self.upper:
            return not (self.lower_inclusive and self.upper_inclusive)
        return False

    def contains(self, version: Version) -> bool:
        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True

    def intersect(self, other: Interval) -> Interval:
        lower, lower_inc = self.lower, self.lower_inclusive
        if other.lower is not None and (
            lower is None
            or other.lower > lower
            or (other.lower == lower and not other.lower_inclusive)
        ):
            lower, lower_inc = other.lower, other.lower_inclusive
        upper, upper_inc = self.upper, self.upper_inclusive
        if other.upper is not None and (
            upper is None
            or other.upper < upper
            or (other.upper == upper and not other.upper_inclusive)
        ):
            upper, upper_inc = other.upper, other.upper_inclusive
        return Interval(lower, lower_inc, upper, upper_inc)

    def _lower_sort_key(self) -> tuple:
        if self.lower is None:
            return (0,)
        return (1, self.lower, 0 if self.lower_inclusive else 1)


_UNBOUNDED = Interval()


def _intersect_unions(
    left: tuple[Interval, ...], right: tuple[Interval, ...]
) -> tuple[Interval, ...]:
    pieces = []
    for a in left:
        for b in right:
            piece = a.intersect(b)
            if not piece.is_empty():
                pieces.append(piece)
    return _normalize(pieces)


def _touches(a: Interval, b: Interval) -> bool:
    """True when *b* (starting at or after *a*) overlaps or abuts *a*."""
    if a.upper is None or b.lower is None:
        return True
    if b.lower < a.upper:
        return True
    return b.lower == a.upper and (a.upper_inclusive or b.lower_inclusive)


def _normalize(pieces: list[Interval]) -> tuple[Interval, ...]:
    """Sort intervals and merge the overlapping or adjacent ones."""
    ordered = sorted((p for p in pieces if not p.is_empty()), key=Interval._lower_sort_key)
    merged: list[Interval] = []
    for piece in ordered:
        if merged and _touches(merged[-1], piece):
            last = merged[-1]
            if last.upper is None or piece.upper is None:
                upper, upper_inc = None, False
            elif piece.upper > last.upper:
                upper, upper_inc = piece.upper, piece.upper_inclusive
            elif piece.upper == last.upper:
                upper, upper_inc = last.upper, last.upper_inclusive or piece.upper_inclusive
            else:
                upper, upper_inc = last.upper, last.upper_inclusive
            merged[-1] = Interval(last.lower, last.lower_inclusive, upper, upper_inc)
        else:
            merged.append(piece)
    return tuple(merged)


# ---------------------------------------------------------------------------
# Atom parsing
# ---------------------------------------------------------------------------

_ATOM_RE = re.compile(
    r"^(?P<op>===|==|!=|~=|\^=|>=|<=|>|<|\^|~|=)?\s*(?P<ver>v?[0-9][0-9A-Za-z.+\-]*?(?:\.\*)?)$"
)


def _component_count(text: str) -> int:
    release = re.match(r"^v?(\d+(?:\.\d+)*)", text)
    return len(release.group(1).split(".")) if release else 0


def _bump(version: Version, index: int) -> Version:
    """Smallest release above every version sharing the first *index* + 1 parts."""
    parts = [version.major, version.minor, version.patch]
    parts[index] += 1
    for i in range(index + 1, 3):
        parts[i] = 0
    return Version(*parts)


def _atom_intervals(atom: str) -> tuple[tuple[Interval, ...], bool]:
    """Translate one atom into (intervals, names_a_prerelease)."""
    if atom == "*":
        return (_UNBOUNDED,), False
    m = _ATOM_RE.match(atom)
    if not m:
        raise InvalidConstraint(atom, "unrecognized constraint atom")
    op = m.group("op") or "=="
    text = m.group("ver")

    if text.endswith(".*"):
        if op not in ("==", "!=", "="):
            raise InvalidConstraint(atom, f"wildcard not allowed with {op!r}")
        prefix = text[:-2]
        count = _component_count(prefix)
        if count not in (1, 2) or count != len(prefix.lstrip("v").split(".")):
            raise InvalidConstraint(atom, "wildcard must follow one or two numeric components")
        base = Version.parse(prefix)
        inside = Interval(base, True, _bump(base, count - 1), False)
        if op == "!=":
            return _complement(inside), False
        return (inside,), False

    try:
        version = Version.parse(text)
    except ValueError as exc:
        raise InvalidConstraint(atom, str(exc)) from exc
    pre = version.is_prerelease
    count = _component_count(text)

    if op in ("==", "=", "==="):
        return (Interval(version, True, version, True),), pre
    if op == "!=":
        return _complement(Interval(version, True, version, True)), pre
    if op == ">=":
        return (Interval(lower=version, lower_inclusive=True),), pre
    if op == ">":
        return (Interval(lower=version, lower_inclusive=False),), pre
    if op == "<=":
        return (Interval(upper=version, upper_inclusive=True),), pre
    if op == "<":
        return (Interval(upper=version, upper_inclusive=False),), pre
    if op in ("^", "^="):
        if version.major > 0 or count == 1:
            upper = _bump(version, 0)
        elif version.minor > 0 or count == 2:
            upper = _bump(version, 1)
        else:
            upper = _bump(version, 2)
        return (Interval(version, True, upper, False),), pre
    if op == "~":
        upper = _bump(version, 0 if count == 1 else 1)
        return (Interval(version, True, upper, False),), pre
    if op == "~=":
        if count < 2:
            raise InvalidConstraint(atom, "'~=' needs at least two components")
        upper = _bump(version, count - 2)
        return (Interval(version, True, upper, False),), pre
    raise InvalidConstraint(atom, f"unknown operator {op!r}")  # pragma: no cover


def _complement(interval: Interval) -> tuple[Interval, ...]:
    below = Interval(upper=interval.lower, upper_inclusive=not interval.lower_inclusive)
    above = Interval(lower=interval.upper, lower_inclusive=not interval.upper_inclusive)
    return _normalize([below, above])


def _split_atoms(raw: str) -> list[str]:
    return [re.sub(r"\s+", "", a) for a in raw.split(",") if a.strip()]


# ---------------------------------------------------------------------------
# VersionConstraint
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionConstraint:
    """A version-range predicate.

    Two constraints are equal when they admit exactly the same versions,
    regardless of spelling. ``str()`` returns the normalized source text.

    Attributes:
        raw: The constraint as authored (e.g. ``">=1.0, <2.0"``).

    Raises:
        InvalidConstraint: If *raw* cannot be parsed.
    """

    raw: str = field(compare=False)
    intervals: tuple[Interval, ...] = field(init=False, repr=False)
    names_prerelease: bool = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        atoms = _split_atoms(self.raw)
        union: tuple[Interval, ...] = (_UNBOUNDED,)
        prerelease = False
        for atom in atoms:
            pieces, pre = _atom_intervals(atom)
            union = _intersect_unions(union, pieces)
            prerelease = prerelease or pre
        object.__setattr__(self, "raw", ",".join(atoms) or "*")
        object.__setattr__(self, "intervals", union)
        object.__setattr__(self, "names_prerelease", prerelease)

    @classmethod
    def any(cls) -> VersionConstraint:
        return cls("*")

    @property
    def is_any(self) -> bool:
        return self.intervals == (_UNBOUNDED,)

    def satisfies(self, version: Version | str) -> bool:
        """Check whether *version* lies inside this constraint.

        Raises:
            ValueError: If *version* is a string that is not a valid version.
        """
        v = parse_version(version)
        return any(interval.contains(v) for interval in self.intervals)

    def is_empty(self) -> bool:
        """True when no version at all can satisfy the constraint."""
        return not self.intervals

    def intersect(self, other: VersionConstraint) -> VersionConstraint:
        """Return the conjunction of both constraints."""
        if self.is_any:
            return other
        if other.is_any:
            return self
        return VersionConstraint(f"{self.raw},{other.raw}")

    def intersects(self, other: VersionConstraint) -> bool:
        """True when some version satisfies both constraints."""
        return bool(_intersect_unions(self.intervals, other.intervals))

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"VersionConstraint({self.raw!r})"


# ---------------------------------------------------------------------------
# PackageDependency: an edge in the dependency graph
# ---------------------------------------------------------------------------

_REQUIREMENT_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\((?P<paren>[^)]*)\)|(?P<specifier>.*))$"
)


@dataclass(frozen=True)
class PackageDependency:
    """A requirement that package ``name`` is installed within ``constraint``.

    Attributes:
        name: Canonical package name.
        constraint: Version constraint the installed version must satisfy.
    """

    name: str
    constraint: VersionConstraint

    def __str__(self) -> str:
        if self.constraint.is_any:
            return self.name
        return f"{self.name}{self.constraint.raw}"


def make_dependency(name: str, constraint: str | VersionConstraint | None = None) -> PackageDependency:
    """Build a dependency with a canonical name from loose inputs."""
    if constraint is None or constraint == "":
        vc = VersionConstraint.any()
    elif isinstance(constraint, VersionConstraint):
        vc = constraint
    else:
        vc = VersionConstraint(str(constraint))
    return PackageDependency(canonicalize_name(name), vc)


def parse_requirement(text: str) -> PackageDependency:
    """Parse ``"requests>=2.31,<3"`` style text into a dependency.

    Raises:
        InvalidConstraint: If the name or the constraint part is invalid.
    """
    m = _REQUIREMENT_RE.match(text)
    if not m:
        raise InvalidConstraint(text, "not a requirement")
    specifier = m.group("paren") if m.group("paren") is not None else (m.group("specifier") or "")
    return make_dependency(m.group("name"), specifier.strip() or None)
