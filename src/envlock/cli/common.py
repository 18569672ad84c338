"""Shared plumbing for envlock commands.

Every command that touches a project takes the same ``--manifest``,
``--lockfile`` and ``--index`` options and turns them into a ``Project``:
the parsed manifest, the merged settings, and the paths derived from them.
``locking`` runs the manifest -> index -> resolver -> lockfile pipeline used
by ``lock``, ``add``, ``remove``, ``update`` and implicit re-locks.
"""

from __future__ import annotations

import functools
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import click

from envlock.cli.output import print_error
from envlock.config import Settings, load_settings
from envlock.core.dependency import PackageIndex, Resolution, Version, resolve
from envlock.core.lockfile import LOCKFILE_NAME, Lockfile
from envlock.core.manifest import MANIFEST_FILENAME, Manifest, read_manifest
from envlock.exceptions import EnvlockError, LockCorrupt
from envlock.registry import load_index

logger = logging.getLogger(__name__)


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn an ``EnvlockError`` into an error panel and its exit code."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except EnvlockError as exc:
            logger.debug("Command failed", exc_info=True)
            print_error(exc)
            sys.exit(exc.exit_code)

    return wrapper


def project_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the ``--manifest``, ``--lockfile`` and ``--index`` options."""
    func = click.option(
        "--index",
        "index",
        envvar="ENVLOCK_INDEX",
        default=None,
        help="Package index: a YAML/JSON file or an http(s) URL.",
    )(func)
    func = click.option(
        "--lockfile",
        "lockfile",
        type=click.Path(dir_okay=False),
        default=None,
        help=f"Lockfile path (default: {LOCKFILE_NAME} next to the manifest).",
    )(func)
    func = click.option(
        "--manifest", "-m",
        "manifest",
        type=click.Path(dir_okay=False),
        default=MANIFEST_FILENAME,
        show_default=True,
        help="Project manifest.",
    )(func)
    return func


@dataclass
class Project:
    """A loaded project: manifest, settings, and file locations."""

    manifest: Manifest
    manifest_path: Path
    lock_path: Path
    settings: Settings

    @property
    def root(self) -> Path:
        return self.manifest_path.parent

    def read_lock(self) -> Lockfile | None:
        """The current lockfile, or None if there is none yet.

        Raises:
            LockCorrupt: If the file exists but is invalid.
        """
        if not self.lock_path.exists():
            return None
        return Lockfile.read(self.lock_path)

    def index_for(self, manifest: Manifest) -> PackageIndex:
        """Prefetch the metadata every requirement of *manifest* reaches."""
        roots = list(manifest.requirements())
        return load_index(self.settings, roots, base_dir=self.root)


def load_project(
    manifest: str,
    lockfile: str | None,
    index: str | None,
    **overrides: Any,
) -> Project:
    """Read the manifest and merge settings from every layer.

    Raises:
        MalformedManifest, UnknownGroup, InvalidConstraint: From the reader.
        ConfigError: If a setting is invalid.
    """
    manifest_path = Path(manifest)
    parsed = read_manifest(manifest_path)
    settings = load_settings(parsed.settings, {"index": index, **overrides})
    lock_path = Path(lockfile) if lockfile else manifest_path.parent / LOCKFILE_NAME
    logger.debug("Project %s: manifest %s, lockfile %s", parsed.name, manifest_path, lock_path)
    return Project(parsed, manifest_path, lock_path, settings)


@dataclass
class LockResult:
    """Outcome of a successful re-lock."""

    lockfile: Lockfile
    resolution: Resolution
    previous: Lockfile | None


def locking(
    project: Project,
    manifest: Manifest | None = None,
    previous: Lockfile | None = None,
    unlock: set[str] | None = None,
    upgrade_all: bool = False,
) -> LockResult:
    """Resolve *manifest* (default: the project's) into a new lockfile.

    Versions locked in *previous* are preferred, except for packages named
    in *unlock*, or for every package when *upgrade_all* is set. Nothing is
    written.

    Raises:
        ResolutionFailure: If no consistent version set exists.
        FetchFailure: If the index cannot be reached.
    """
    target = manifest or project.manifest
    preferred: dict[str, Version] = {}
    if previous is not None and not upgrade_all:
        preferred = {
            name: ver for name, ver in previous.preferred_versions().items()
            if name not in (unlock or set())
        }
    index = project.index_for(target)
    resolution = resolve(
        target,
        None,
        index,
        preferred=preferred,
        allow_prereleases=project.settings.allow_prereleases,
        max_steps=project.settings.max_steps,
    )
    resolution.raise_for_failure()
    lockfile = Lockfile.from_resolution(resolution, target, index)
    return LockResult(lockfile, resolution, previous)


def previous_lock(project: Project) -> Lockfile | None:
    """The existing lockfile for preference, ignoring one that is corrupt.

    Only re-locking tolerates a corrupt lock, since it replaces the file.
    """
    try:
        return project.read_lock()
    except LockCorrupt as exc:
        logger.warning("Ignoring unreadable lockfile %s: %s", project.lock_path, exc)
        return None
