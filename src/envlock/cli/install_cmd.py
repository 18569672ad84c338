"""``envlock install`` and ``envlock sync`` — Install from the lockfile.

Both commands replay the lockfile into the project environment
(``.envlock/environment.json``) without running the resolver when the lock
is current. ``install`` only adds and changes packages; ``sync`` also
removes installed packages the selected groups do not need.

With ``--locked`` a missing or stale lockfile is an error (exit 8) instead
of triggering a re-lock, which is what CI should use.

Exit Codes:
    0 — Environment matches the lockfile selection.
    4 — A requested group is not declared.
    7 — The lockfile is corrupt.
    8 — ``--locked`` and the lockfile is stale or missing.
"""

from __future__ import annotations

import logging

import click

from envlock.cli.common import Project, handle_errors, load_project, locking, project_options
from envlock.cli.output import console, print_install_plan, print_resolution_summary
from envlock.core.environment import EnvironmentState, apply_plan, plan_install, state_path
from envlock.core.lockfile import Lockfile
from envlock.exceptions import LockStale

logger = logging.getLogger(__name__)


def _current_lock(project: Project, locked: bool) -> Lockfile:
    """The lockfile to install from, re-locking first unless ``locked``."""
    lock = project.read_lock()
    if locked:
        if lock is None:
            raise LockStale(
                "none",
                project.manifest.input_hash(),
                f"No lockfile at {project.lock_path}; run `envlock lock`",
            )
        lock.ensure_fresh(project.manifest)
        return lock

    if lock is not None and lock.is_fresh(project.manifest):
        return lock

    logger.info("Lockfile is missing or stale; re-locking")
    result = locking(project, previous=lock)
    result.lockfile.write(project.lock_path)
    print_resolution_summary(result.resolution.pins, groups=result.resolution.groups)
    return result.lockfile


def _install(
    manifest: str,
    lockfile: str | None,
    index: str | None,
    groups: tuple[str, ...],
    locked: bool,
    dry_run: bool,
    prune: bool,
) -> None:
    project = load_project(manifest, lockfile, index)
    selected = list(groups) or None
    if selected is not None:
        project.manifest.check_groups(selected)

    lock = _current_lock(project, locked)
    target = state_path(project.root)
    state = EnvironmentState.load(target)
    plan = plan_install(state, lock, selected, prune=prune)
    if not dry_run:
        apply_plan(state, plan).save(target)
    print_install_plan(plan, dry_run=dry_run)


def _install_options(func):
    func = click.option(
        "--dry-run",
        is_flag=True,
        help="Show what would change without changing the environment.",
    )(func)
    func = click.option(
        "--locked",
        is_flag=True,
        help="Fail if the lockfile is missing or out of date instead of re-locking.",
    )(func)
    func = click.option(
        "--group", "-g",
        "groups",
        multiple=True,
        help="Group to install (repeatable; default: every group).",
    )(func)
    return project_options(func)


@click.command("install")
@_install_options
@handle_errors
def install_command(
    manifest: str,
    lockfile: str | None,
    index: str | None,
    groups: tuple[str, ...],
    locked: bool,
    dry_run: bool,
) -> None:
    """Install the locked versions of the selected groups.

    Never removes packages; use ``envlock sync`` for an exact environment.
    """
    _install(manifest, lockfile, index, groups, locked, dry_run, prune=False)


@click.command("sync")
@_install_options
@handle_errors
def sync_command(
    manifest: str,
    lockfile: str | None,
    index: str | None,
    groups: tuple[str, ...],
    locked: bool,
    dry_run: bool,
) -> None:
    """Make the environment match the lockfile exactly.

    Installs and changes like ``install``, then removes every installed
    package that the selected groups do not need.
    """
    _install(manifest, lockfile, index, groups, locked, dry_run, prune=True)
    if not dry_run:
        console.print("[dim]Environment synchronized.[/dim]")
