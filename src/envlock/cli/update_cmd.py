"""``envlock update`` — Move locked packages to the newest allowed versions.

``envlock update`` with no arguments re-resolves from scratch; with names,
only those packages are unlocked and everything else keeps its locked
version where possible.
"""

from __future__ import annotations

import logging

import click

from envlock.cli.common import (
    handle_errors,
    load_project,
    locking,
    previous_lock,
    project_options,
)
from envlock.cli.output import console, print_lock_diff
from envlock.core.dependency import canonicalize_name

logger = logging.getLogger(__name__)


@click.command("update")
@click.argument("names", nargs=-1)
@project_options
@handle_errors
def update_command(
    names: tuple[str, ...],
    manifest: str,
    lockfile: str | None,
    index: str | None,
) -> None:
    """Update NAMES (or every package) in the lockfile."""
    project = load_project(manifest, lockfile, index)
    previous = previous_lock(project)

    unlock = {canonicalize_name(n) for n in names}
    if previous is not None:
        for name in sorted(unlock):
            if previous.get_package(name) is None:
                logger.warning("%s is not in the lockfile; nothing to update", name)

    result = locking(project, previous=previous, unlock=unlock, upgrade_all=not names)
    result.lockfile.write(project.lock_path)

    if previous is not None:
        print_lock_diff(previous.diff(result.lockfile))
    console.print(f"\nLockfile written to: {project.lock_path}")
