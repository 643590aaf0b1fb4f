"""Configuration loading: YAML files deep-merged, then the environment."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml
from loguru import logger
from pydantic import ValidationError

from tmux_composer.config.schema import Config


class ConfigError(ValueError):
    """A configuration file is unreadable or invalid."""


def config_search_paths(cwd: Path | None = None, home: Path | None = None) -> list[Path]:
    """Config files in increasing priority."""
    cwd = cwd or Path.cwd()
    home = home or Path.home()
    return [
        home / ".config" / "tmux-composer" / "config.yaml",
        home / ".tmux-composer" / "config.yaml",
        cwd / ".tmux-composer.yaml",
        cwd / "tmux-composer.yaml",
    ]


def get_config_path() -> Path:
    """The highest-priority existing config file, else the user default location."""
    paths = config_search_paths()
    for path in reversed(paths):
        if path.is_file():
            return path
    return paths[0]


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(paths: Iterable[Path] | None = None) -> Config:
    """Build the effective configuration.

    Files listed later override earlier ones key by key. Environment
    variables (``TMUX_COMPOSER_...``) take precedence over every file.
    """
    merged: dict[str, Any] = {}
    for path in paths if paths is not None else config_search_paths():
        if not path.is_file():
            continue
        merged = deep_merge(merged, _read_yaml(path))
        logger.debug(f"[config] Loaded {path}")

    try:
        return Config(**merged)
    except ValidationError as exc:
        details = "\n".join(
            f"  - {'.'.join(str(part) for part in item['loc'])}: {item['msg']}" for item in exc.errors()
        )
        raise ConfigError(f"Invalid configuration:\n{details}") from exc
