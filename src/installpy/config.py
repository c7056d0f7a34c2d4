"""Configuration management for installpy."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from installpy.errors import ConfigurationError

TerminalKind = Literal["shell", "echo", "tmux"]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="INSTALLPY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Pause after each command sent to a terminal. This is a heuristic:
    # terminals give no signal that they are ready for the next line.
    send_interval: float = Field(default=0.5, ge=0, description="Seconds to wait after each command is sent")

    terminal: TerminalKind = Field(default="shell", description="Terminal backend: shell, echo or tmux")
    shell: str | None = Field(default=None, description="Shell executable for the shell backend")
    tmux_session: str = Field(default="installpy", description="tmux session name for the tmux backend")

    log_level: str = Field(default="INFO", description="Log level")


def load_settings(env_file: Path | None = None, **overrides: object) -> Settings:
    """Load settings from the environment (and ``env_file``), then apply overrides.

    Overrides whose value is None are ignored so CLI options can be passed
    through unconditionally.
    """

    try:
        settings = Settings(_env_file=env_file) if env_file is not None else Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"invalid installpy settings: {exc}") from exc

    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return settings
    try:
        return Settings.model_validate({**settings.model_dump(), **updates})
    except ValidationError as exc:
        raise ConfigurationError(f"invalid installpy settings: {exc}") from exc
