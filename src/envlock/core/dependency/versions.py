"""Version values and their total order.

Versions are ``major[.minor[.patch]]`` with an optional pre-release tag and
ignored build metadata. Missing components are zero, so ``2.31`` and
``2.31.0`` are the same version. Both the SemVer spelling
(``1.0.0-rc.1``) and the attached PEP 440 spelling (``1.0.0rc1``) are
accepted. Attached tags are limited to ``a``, ``b``, ``c``, ``rc``, ``alpha``,
``beta``, ``pre``, ``preview`` and ``dev``; anything else (``1.0.0post1``) is
rejected. The short tags ``a``/``b``/``c`` are normalized to
``alpha``/``beta``/``rc`` so both spellings order identically.

Ordering follows SemVer 2.0.0 precedence (section 11): a pre-release sorts
before its release, numeric identifiers compare numerically and sort before
alphanumeric ones, and a shorter identifier list sorts first on a tie.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z][0-9A-Za-z.\-]*)"
    r"|(?P<attached>(?i:alpha|beta|preview|pre|rc|dev|a|b|c))\.?(?P<attached_num>\d*))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-.]+))?$"
)

_PRE_ALIASES = {"a": "alpha", "b": "beta", "c": "rc", "pre": "rc", "preview": "rc"}


def _pre_identifier(part: str) -> int | str:
    return int(part) if part.isdigit() else part.lower()


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """A totally ordered, semantic-version-like value.

    Attributes:
        major: Major component.
        minor: Minor component (0 when omitted).
        patch: Patch component (0 when omitted).
        pre: Pre-release identifiers; empty for a final release.
    """

    major: int
    minor: int = 0
    patch: int = 0
    pre: tuple[int | str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string.

        Raises:
            ValueError: If *text* is not a recognizable version.
        """
        m = _VERSION_RE.match(str(text).strip())
        if not m:
            raise ValueError(f"Invalid version: {text!r}")
        pre: tuple[int | str, ...] = ()
        if m.group("pre"):
            pre = tuple(_pre_identifier(p) for p in m.group("pre").split(".") if p)
        elif m.group("attached"):
            tag = m.group("attached").lower()
            tag = _PRE_ALIASES.get(tag, tag)
            num = m.group("attached_num")
            pre = (tag, int(num)) if num else (tag,)
        return cls(
            major=int(m.group("major")),
            minor=int(m.group("minor") or 0),
            patch=int(m.group("patch") or 0),
            pre=pre,
        )

    @property
    def is_prerelease(self) -> bool:
        return bool(self.pre)

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def _key(self) -> tuple:
        if not self.pre:
            # A final release outranks every pre-release of the same triple.
            return (self.release, (1,))
        ids = tuple((0, p, "") if isinstance(p, int) else (1, 0, p) for p in self.pre)
        return (self.release, (0, ids))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            return base + "-" + ".".join(str(p) for p in self.pre)
        return base

    def __repr__(self) -> str:
        return f"Version({str(self)!r})"


def parse_version(version: Version | str) -> Version:
    """Return *version* as a ``Version``, parsing strings."""
    if isinstance(version, Version):
        return version
    return Version.parse(version)


def version_key(version: Version | str) -> Version:
    """Sort key for version strings; use ``reverse=True`` for newest first."""
    return parse_version(version)
