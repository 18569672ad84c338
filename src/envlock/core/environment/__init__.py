"""Project environment state and lock-based installation."""

from envlock.core.environment.models import (
    STATE_DIRNAME,
    STATE_FILENAME,
    EnvironmentState,
    InstallPlan,
)
from envlock.core.environment.installer import apply_plan, plan_install, state_path

__all__ = [
    "STATE_DIRNAME",
    "STATE_FILENAME",
    "EnvironmentState",
    "InstallPlan",
    "apply_plan",
    "plan_install",
    "state_path",
]
