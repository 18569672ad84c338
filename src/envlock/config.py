"""Runtime settings for envlock.

Settings come from four layers, lowest precedence first:

1. Built-in defaults.
2. The manifest's ``settings:`` mapping.
3. ``ENVLOCK_*`` environment variables.
4. Command-line options.

Every layer is validated the same way; a bad value raises ``ConfigError``
naming the layer it came from.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from envlock.core.dependency.resolver import DEFAULT_MAX_STEPS
from envlock.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "ENVLOCK_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings.

    Attributes:
        index: Package index location, a file path or an http(s) URL.
        fetch_retries: Attempts per metadata request before giving up.
        fetch_backoff: Base delay in seconds; attempt ``n`` waits
            ``fetch_backoff * 2**n``.
        fetch_concurrency: Maximum metadata requests in flight.
        fetch_timeout: Per-request timeout in seconds.
        max_steps: Resolver search budget.
        allow_prereleases: Consider pre-releases for every package.
    """

    index: str | None = None
    fetch_retries: int = 3
    fetch_backoff: float = 0.5
    fetch_concurrency: int = 8
    fetch_timeout: float = 30.0
    max_steps: int = DEFAULT_MAX_STEPS
    allow_prereleases: bool = False


_FIELDS = {f.name: f for f in fields(Settings)}


def _coerce(name: str, value: Any, source: str) -> Any:
    """Convert *value* to the type of setting *name*."""
    default = getattr(Settings(), name)
    where = f"{source}: {name}"
    if name == "index":
        if value is None:
            return None
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{where} must be a non-empty string")
        return value.strip()
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigError(f"{where} must be a boolean, got {value!r}")
    if isinstance(default, int):
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{where} must be an integer, got {value!r}") from None
        if isinstance(value, bool) or number < 1:
            raise ConfigError(f"{where} must be a positive integer, got {value!r}")
        return number
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{where} must be a number, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"{where} must not be negative, got {value!r}")
    return number


def _apply(settings: Settings, values: Mapping[str, Any], source: str) -> Settings:
    changes: dict[str, Any] = {}
    for key, value in values.items():
        name = key.replace("-", "_")
        if name not in _FIELDS:
            raise ConfigError(f"{source}: unknown setting {key!r}")
        changes[name] = _coerce(name, value, source)
    if changes:
        logger.debug("Settings from %s: %s", source, ", ".join(sorted(changes)))
    return replace(settings, **changes)


def settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect ``ENVLOCK_<SETTING>`` variables that name a known setting."""
    env = os.environ if environ is None else environ
    found: dict[str, str] = {}
    for name in _FIELDS:
        value = env.get(ENV_PREFIX + name.upper())
        if value is not None and value.strip():
            found[name] = value
    return found


def load_settings(
    manifest_settings: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Merge every settings layer.

    Args:
        manifest_settings: The manifest's ``settings:`` mapping.
        overrides: Command-line values; ``None`` entries are ignored.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        ConfigError: If any layer holds an unknown key or a bad value.
    """
    settings = Settings()
    settings = _apply(settings, manifest_settings or {}, "manifest settings")
    settings = _apply(settings, settings_from_env(environ), "environment")
    cli_values = {k: v for k, v in (overrides or {}).items() if v is not None}
    return _apply(settings, cli_values, "command line")
