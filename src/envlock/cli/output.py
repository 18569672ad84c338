"""Rich output formatting helpers for the envlock CLI.

Provides consistent terminal output for resolution summaries, lock diffs,
install plans, and errors.

Change Color Mapping:
    added/install = green, removed = red, upgrade = cyan, downgrade = yellow
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from envlock.core.environment import InstallPlan
from envlock.exceptions import EnvlockError, ResolutionFailure

console = Console()
err_console = Console(stderr=True)

_CHANGE_STYLES: dict[str, str] = {
    "added": "green",
    "install": "green",
    "removed": "red",
    "remove": "red",
    "upgrade": "cyan",
    "downgrade": "yellow",
}


def change_style(kind: str) -> str:
    """Return the Rich style string for a kind of change."""
    return _CHANGE_STYLES.get(kind, "white")


def print_resolution_summary(
    installed: dict[str, str],
    groups: dict[str, list[str]] | None = None,
) -> None:
    """Print a successful resolution.

    Failures never reach this point; they are raised as ``ResolutionFailure``
    and rendered by ``print_error``.

    Args:
        installed: Package name to version mapping.
        groups: Package name to group list, shown when given.
    """
    console.print(
        Panel("[bold green]Resolution successful[/bold green]",
              title="Dependency Resolution")
    )
    if not installed:
        console.print("[dim]No packages to resolve.[/dim]")
        return
    table = Table(show_header=True)
    table.add_column("Package", style="bold")
    table.add_column("Resolved Version")
    if groups is not None:
        table.add_column("Groups", style="dim")
    for name in sorted(installed):
        row = [name, installed[name]]
        if groups is not None:
            row.append(", ".join(groups.get(name, [])))
        table.add_row(*row)
    console.print(table)


def print_lock_diff(diff: dict[str, Any]) -> None:
    """Print what changed between the previous and the new lockfile."""
    rows: list[tuple[str, str, str, str]] = []
    for name in diff["added"]:
        rows.append(("added", name, "", ""))
    for name in diff["removed"]:
        rows.append(("removed", name, "", ""))
    for change in diff["changed"]:
        if change["field"] == "version":
            rows.append((change["direction"], change["name"], change["old"], change["new"]))

    if not rows:
        console.print("[dim]Locked versions unchanged.[/dim]")
        return

    table = Table(title="Lockfile changes", show_header=True, header_style="bold")
    table.add_column("Change", justify="center")
    table.add_column("Package", style="bold")
    table.add_column("Old")
    table.add_column("New")
    for kind, name, old, new in sorted(rows, key=lambda r: r[1]):
        table.add_row(Text(kind, style=change_style(kind)), name, old, new)
    console.print(table)


def print_install_plan(plan: InstallPlan, dry_run: bool = False) -> None:
    """Print the actions of an install plan."""
    if plan.is_empty:
        console.print(
            f"[green]Environment is up to date[/green] "
            f"[dim]({len(plan.unchanged)} package(s))[/dim]"
        )
        return

    verb = "Would apply" if dry_run else "Applied"
    table = Table(title=f"{verb} {plan.change_count} change(s)", show_header=True, header_style="bold")
    table.add_column("Action", justify="center")
    table.add_column("Package", style="bold")
    table.add_column("Version")
    for name, version in plan.install:
        table.add_row(Text("install", style=change_style("install")), name, version)
    for name, old, new in plan.upgrade:
        table.add_row(Text("upgrade", style=change_style("upgrade")), name, f"{old} -> {new}")
    for name, old, new in plan.downgrade:
        table.add_row(Text("downgrade", style=change_style("downgrade")), name, f"{old} -> {new}")
    for name, old in plan.remove:
        table.add_row(Text("remove", style=change_style("remove")), name, old)
    console.print(table)


def print_error(exc: EnvlockError) -> None:
    """Print an error panel to stderr."""
    title = type(exc).__name__
    if isinstance(exc, ResolutionFailure):
        body = Text("Dependency resolution failed", style="bold red")
        if exc.packages:
            body.append(f"\nConflicting packages: {', '.join(exc.packages)}", style="red")
        for conflict in exc.conflicts:
            body.append(f"\n  - {conflict}")
    else:
        body = Text(str(exc), style="red")
    err_console.print(Panel(body, title=title, border_style="red"))
