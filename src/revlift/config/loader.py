"""YAML configuration loader with env var interpolation.

A config file is chosen in this order, first match wins:

1. the path given to :func:`load_config` (the CLI's ``--config``),
2. the path in ``$REVLIFT_CONFIG``,
3. ``revlift.yaml`` / ``revlift.yml`` / ``.revlift.yaml`` / ``.revlift.yml``
   in the working directory, then ``~/.config/revlift``, then ``~``.

An explicit path (1 or 2) that does not exist is not searched past; the
built-in defaults are used instead. String values may reference the
environment as ``${VAR}`` or ``${VAR:default}``; interpolation runs before
validation, so ``${RL_SPLIT:false}`` still validates as a boolean.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from pathlib import Path

import yaml
from pydantic import ValidationError

from revlift.config.defaults import CONFIG_ENV_VAR, CONFIG_FILE_NAMES, CONFIG_SEARCH_PATHS
from revlift.config.models import RevLiftConfig
from revlift.errors import ConfigError

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::([^}]*))?\}")


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default if default is not None else "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: object) -> object:
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(item) for item in obj]
    return obj


def _search_candidates() -> Iterator[Path]:
    for search_dir in CONFIG_SEARCH_PATHS:
        for name in CONFIG_FILE_NAMES:
            yield search_dir / name


def find_config_file(explicit_path: str | Path | None = None) -> Path | None:
    """Locate a revlift config file, returning the first found or None."""
    if explicit_path is None:
        explicit_path = os.environ.get(CONFIG_ENV_VAR) or None
    if explicit_path is not None:
        p = Path(explicit_path)
        return p if p.is_file() else None
    return next((c for c in _search_candidates() if c.is_file()), None)


def load_config(path: str | Path | None = None) -> RevLiftConfig:
    """Load and validate configuration, falling back to defaults.

    Raises :class:`~revlift.errors.ConfigError` when the chosen file is not
    valid YAML or does not validate.
    """
    config_path = find_config_file(path)
    if config_path is None:
        return RevLiftConfig()

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(str(config_path), f"invalid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(str(config_path), "top level must be a mapping")

    interpolated = _walk_and_interpolate(raw)
    try:
        return RevLiftConfig.model_validate(interpolated)
    except ValidationError as exc:
        raise ConfigError(str(config_path), str(exc)) from exc
