"""``envlock remove`` — Drop requirements from the manifest and re-lock."""

from __future__ import annotations

import click

from envlock.cli.common import (
    handle_errors,
    load_project,
    locking,
    previous_lock,
    project_options,
)
from envlock.cli.output import console, print_lock_diff
from envlock.core.manifest import remove_requirement, write_manifest


@click.command("remove")
@click.argument("names", nargs=-1, required=True)
@click.option(
    "--group", "-g",
    default=None,
    help="Only remove from this group (default: every group declaring it).",
)
@project_options
@handle_errors
def remove_command(
    names: tuple[str, ...],
    group: str | None,
    manifest: str,
    lockfile: str | None,
    index: str | None,
) -> None:
    """Remove NAMES from the manifest and update the lockfile.

    Exit code 10 if a package is not declared, 4 for an unknown group.
    """
    project = load_project(manifest, lockfile, index)

    edited = project.manifest
    removed: list[tuple[str, list[str]]] = []
    for name in names:
        edited, groups = remove_requirement(edited, name, group)
        removed.append((name, groups))

    previous = previous_lock(project)
    result = locking(project, edited, previous)

    write_manifest(edited, project.manifest_path)
    result.lockfile.write(project.lock_path)

    for name, groups in removed:
        console.print(f"Removed [bold]{name}[/bold] from {', '.join(groups)}")
    if previous is not None:
        print_lock_diff(previous.diff(result.lockfile))
