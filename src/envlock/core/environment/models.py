"""Environment state and install plans.

``EnvironmentState`` records which package versions are installed in the
project environment (``.envlock/environment.json``). An ``InstallPlan`` is
the difference between that state and a lockfile selection.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from envlock.core.atomic import atomic_write_text
from envlock.core.dependency.versions import Version
from envlock.exceptions import EnvironmentCorrupt

logger = logging.getLogger(__name__)

STATE_DIRNAME = ".envlock"
STATE_FILENAME = "environment.json"
STATE_VERSION = "1"


@dataclass
class EnvironmentState:
    """Installed packages, canonical name -> version string."""

    packages: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> EnvironmentState:
        """Load the state file; a missing file is an empty environment.

        Raises:
            EnvironmentCorrupt: If the file exists but is not a valid state.
        """
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise EnvironmentCorrupt(f"Cannot read environment state {path}: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("packages"), dict):
            raise EnvironmentCorrupt(f"Environment state {path} has no 'packages' mapping")
        packages: dict[str, str] = {}
        for name, version in data["packages"].items():
            try:
                Version.parse(version)
            except (TypeError, ValueError) as exc:
                raise EnvironmentCorrupt(f"{path}: bad version for {name!r}: {exc}") from exc
            packages[str(name)] = str(version)
        return cls(packages=packages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state_version": STATE_VERSION,
            "packages": dict(sorted(self.packages.items())),
        }

    def save(self, path: Path) -> None:
        """Atomically write the state file, creating its directory."""
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(path, json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n")
        logger.debug("Saved environment state (%d package(s)) to %s", len(self.packages), path)


@dataclass
class InstallPlan:
    """Actions needed to bring an environment in line with a lock selection.

    Attributes:
        install: (name, version) pairs not currently installed.
        upgrade: (name, old, new) where the locked version is newer.
        downgrade: (name, old, new) where the locked version is older.
        remove: (name, old) installed packages outside the selection
            (populated only when pruning).
        unchanged: Names already at the locked version.
    """

    install: list[tuple[str, str]] = field(default_factory=list)
    upgrade: list[tuple[str, str, str]] = field(default_factory=list)
    downgrade: list[tuple[str, str, str]] = field(default_factory=list)
    remove: list[tuple[str, str]] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.install or self.upgrade or self.downgrade or self.remove)

    @property
    def change_count(self) -> int:
        return len(self.install) + len(self.upgrade) + len(self.downgrade) + len(self.remove)
