"""``envlock lock`` — Resolve the manifest and write envlock.lock.json.

Resolves every dependency group declared in the manifest against the
package index and writes a deterministic lockfile next to the manifest.
Versions already in an existing lockfile are kept when they still satisfy
the manifest, so re-locking only moves what has to move.

Exit Codes:
    0 — Lockfile written (or, with ``--check``, already up to date).
    6 — Dependency resolution failed (conflicts detected).
    8 — ``--check`` found a stale or missing lockfile.
    9 — The package index could not be reached.
"""

from __future__ import annotations

import click

from envlock.cli.common import (
    handle_errors,
    load_project,
    locking,
    previous_lock,
    project_options,
)
from envlock.cli.output import console, print_lock_diff, print_resolution_summary
from envlock.exceptions import LockStale


@click.command("lock")
@project_options
@click.option(
    "--upgrade", "-U",
    is_flag=True,
    help="Ignore locked versions and choose the newest allowed ones.",
)
@click.option(
    "--check",
    is_flag=True,
    help="Only verify that the lockfile matches the manifest; write nothing.",
)
@handle_errors
def lock_command(
    manifest: str,
    lockfile: str | None,
    index: str | None,
    upgrade: bool,
    check: bool,
) -> None:
    """Resolve all dependency groups and write the lockfile.

    Exit code 0 on success, 6 on resolution failure, 8 if ``--check``
    finds the lockfile stale.
    """
    project = load_project(manifest, lockfile, index)

    if check:
        current = project.read_lock()
        actual = project.manifest.input_hash()
        if current is None:
            raise LockStale("none", actual, f"No lockfile at {project.lock_path}; run `envlock lock`")
        current.ensure_fresh(project.manifest)
        console.print(f"[green]Lockfile is up to date[/green] [dim]({project.lock_path})[/dim]")
        return

    previous = previous_lock(project)
    result = locking(project, previous=previous, upgrade_all=upgrade)
    result.lockfile.write(project.lock_path)

    print_resolution_summary(result.resolution.pins, groups=result.resolution.groups)
    if previous is not None:
        print_lock_diff(previous.diff(result.lockfile))
    console.print(f"\nLockfile written to: {project.lock_path}")
