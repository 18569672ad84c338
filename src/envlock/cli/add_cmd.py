"""``envlock add`` — Declare new requirements and re-lock.

Usage::

    envlock add requests
    envlock add "httpx>=0.27" rich --group dev

A bare name is written to the manifest as ``>=<resolved version>``. The
manifest and the lockfile are only written after resolution succeeds, so a
failed ``add`` leaves both files untouched.
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
from envlock.cli.output import console, print_lock_diff
from envlock.core.dependency import make_dependency, parse_requirement
from envlock.core.manifest import DEFAULT_GROUP, add_requirement, write_manifest


@click.command("add")
@click.argument("requirements", nargs=-1, required=True)
@click.option(
    "--group", "-g",
    default=DEFAULT_GROUP,
    show_default=True,
    help="Dependency group to add to (created if missing).",
)
@project_options
@handle_errors
def add_command(
    requirements: tuple[str, ...],
    group: str,
    manifest: str,
    lockfile: str | None,
    index: str | None,
) -> None:
    """Add REQUIREMENTS to the manifest, resolve, and update the lockfile."""
    project = load_project(manifest, lockfile, index)
    dependencies = [parse_requirement(text) for text in requirements]

    edited = project.manifest
    for dep in dependencies:
        edited = add_requirement(edited, dep, group)

    previous = previous_lock(project)
    result = locking(project, edited, previous, unlock={d.name for d in dependencies})

    bare = [d for d in dependencies if d.constraint.is_any]
    if bare:
        for dep in bare:
            resolved = result.resolution.installed[dep.name]
            edited = add_requirement(edited, make_dependency(dep.name, f">={resolved}"), group)
        # Same versions, re-locked so the lock records the final manifest hash.
        result = locking(project, edited, result.lockfile)

    write_manifest(edited, project.manifest_path)
    result.lockfile.write(project.lock_path)

    for dep in dependencies:
        declared = edited.groups[group].get(dep.name)
        console.print(
            f"Added [bold]{declared}[/bold] to group [cyan]{group}[/cyan] "
            f"[dim](locked {result.resolution.pins[dep.name]})[/dim]"
        )
    if previous is not None:
        print_lock_diff(previous.diff(result.lockfile))
