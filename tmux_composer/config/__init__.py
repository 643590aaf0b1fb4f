"""Configuration module for tmux-composer."""

from tmux_composer.config.loader import ConfigError, get_config_path, load_config
from tmux_composer.config.schema import Config

__all__ = ["Config", "ConfigError", "get_config_path", "load_config"]
