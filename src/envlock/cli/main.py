"""envlock CLI — Lockfile-based dependency resolution and environments.

Entry point for the ``envlock`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    lock    — Resolve every dependency group and write envlock.lock.json.
    add     — Declare requirements in the manifest and re-lock.
    remove  — Drop requirements from the manifest and re-lock.
    update  — Move locked packages to the newest allowed versions.
    install — Install locked versions (never removes packages).
    sync    — Make the environment match the lockfile exactly.

Usage::

    envlock lock --index ./index.yaml
    envlock add "requests^=2.31"
    envlock add pytest --group test
    envlock remove rich
    envlock update urllib3
    envlock install --locked
    envlock sync --group default --group test
"""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from envlock import __version__
from envlock.cli.add_cmd import add_command
from envlock.cli.install_cmd import install_command, sync_command
from envlock.cli.lock_cmd import lock_command
from envlock.cli.output import err_console
from envlock.cli.remove_cmd import remove_command
from envlock.cli.update_cmd import update_command


def configure_logging(verbose: bool) -> None:
    """Send ``envlock`` log records to stderr through Rich.

    Warnings are always shown; ``--verbose`` adds resolver decisions,
    backtracking, and fetch details.
    """
    logger = logging.getLogger("envlock")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=err_console, show_time=False, show_path=verbose)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="envlock")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """envlock: reproducible environments from a manifest and a lockfile.

    Declare dependency groups in envlock.yaml, resolve them once into
    envlock.lock.json, and install exactly those versions everywhere.
    """
    configure_logging(verbose)


# Register all subcommands
cli.add_command(lock_command)
cli.add_command(add_command)
cli.add_command(remove_command)
cli.add_command(update_command)
cli.add_command(install_command)
cli.add_command(sync_command)
