"""Installing a lock selection into the recorded environment.

Installing is replay only: the resolver never runs here. The selection is
taken straight from the lockfile, so two machines with the same lock end up
with the same package set.
"""

from __future__ import annotations

import logging
from pathlib import Path

from envlock.core.dependency.versions import Version
from envlock.core.environment.models import (
    STATE_DIRNAME,
    STATE_FILENAME,
    EnvironmentState,
    InstallPlan,
)
from envlock.core.lockfile import Lockfile

logger = logging.getLogger(__name__)


def state_path(project_dir: Path) -> Path:
    """Location of the environment state file for a project directory."""
    return project_dir / STATE_DIRNAME / STATE_FILENAME


def plan_install(
    state: EnvironmentState,
    lock: Lockfile,
    groups: list[str] | None = None,
    prune: bool = False,
) -> InstallPlan:
    """Compute the actions that bring *state* to the lock's selection.

    Args:
        state: The currently installed packages.
        lock: The lockfile to install from.
        groups: Groups to install; None installs every locked group.
        prune: Also remove installed packages outside the selection
            (``sync``). Plain ``install`` never removes anything.

    Raises:
        UnknownGroup: If a group is not covered by the lockfile.
    """
    plan = InstallPlan()
    selected = {p.name: p.version for p in lock.select(groups)}

    for name, version in sorted(selected.items()):
        current = state.packages.get(name)
        if current is None:
            plan.install.append((name, version))
        elif current == version:
            plan.unchanged.append(name)
        elif Version.parse(version) > Version.parse(current):
            plan.upgrade.append((name, current, version))
        else:
            plan.downgrade.append((name, current, version))

    if prune:
        for name, version in sorted(state.packages.items()):
            if name not in selected:
                plan.remove.append((name, version))

    logger.debug(
        "Install plan: %d install, %d upgrade, %d downgrade, %d remove, %d unchanged",
        len(plan.install), len(plan.upgrade), len(plan.downgrade),
        len(plan.remove), len(plan.unchanged),
    )
    return plan


def apply_plan(state: EnvironmentState, plan: InstallPlan) -> EnvironmentState:
    """Return the environment state after carrying out *plan*."""
    packages = dict(state.packages)
    for name, version in plan.install:
        packages[name] = version
    for name, _old, new in plan.upgrade + plan.downgrade:
        packages[name] = new
    for name, _old in plan.remove:
        packages.pop(name, None)
    return EnvironmentState(packages=dict(sorted(packages.items())))
