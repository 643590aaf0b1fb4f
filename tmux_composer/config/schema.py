"""Configuration schema for tmux-composer."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from tmux_composer.tmux.socket import TmuxSocketOptions


class TmuxConfig(BaseModel):
    """Which tmux server to talk to."""

    socket_name: str = ""
    socket_path: str = ""

    def socket_options(self) -> TmuxSocketOptions:
        return TmuxSocketOptions(
            socket_name=self.socket_name or None,
            socket_path=self.socket_path or None,
        )


class WatcherConfig(BaseModel):
    """Control-mode session watcher."""

    refresh_throttle_s: float = Field(default=0.15, gt=0)
    connect_delay_s: float = Field(default=0.1, ge=0)


class AutomationConfig(BaseModel):
    """Polling automation engine."""

    agent: str = "claude"
    mode: Literal["act", "plan"] = "act"
    poll_interval_s: float = Field(default=0.5, gt=0)
    settled_poll_interval_s: float = Field(default=1.5, gt=0)
    new_pane_window_s: float = Field(default=20.0, ge=0)
    agent_scan_interval_s: float = Field(default=0.5, ge=0)
    action_pause_s: float = Field(default=0.5, ge=0)
    canonical_width: int = Field(default=80, gt=0)
    canonical_height: int = Field(default=24, gt=0)
    checksum_cache_size: int = Field(default=1000, gt=0)
    matchers_path: str = ""

    @property
    def matchers_file(self) -> Path | None:
        return Path(self.matchers_path).expanduser() if self.matchers_path else None


class Config(BaseSettings):
    """Root configuration for tmux-composer."""

    verbose: bool = False
    tmux: TmuxConfig = Field(default_factory=TmuxConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    automation: AutomationConfig = Field(default_factory=AutomationConfig)

    model_config = ConfigDict(
        env_prefix="TMUX_COMPOSER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Values from config files arrive as init kwargs; the environment wins.
        return env_settings, init_settings
