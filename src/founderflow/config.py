"""
FounderFlow Configuration System

Loads configuration from:
1. Default config (config/default.yaml in the repository)
2. User config (~/.founderflow/config/founderflow.yaml)
3. Environment variables (FOUNDERFLOW_ prefix)

Uses Pydantic for validation and type coercion.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PATH = Path("~/.founderflow/founderflow.db")


def expand_path(path: str | Path | None) -> Path | None:
    """Expand ~ and environment variables in paths."""
    if path is None:
        return None
    expanded = os.path.expandvars(os.path.expanduser(str(path)))
    return Path(expanded)


class AppMeta(BaseModel):
    """Application metadata and first-run behaviour."""

    name: str = "FounderFlow"
    version: str = "0.1.0"
    seed_projects: bool = True


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: Path | None = None

    @field_validator("file", mode="before")
    @classmethod
    def expand_file_path(cls, v: Any) -> Path | None:
        return expand_path(v)


class DatabaseConfig(BaseModel):
    """SQLite database configuration."""

    path: Path = DEFAULT_DB_PATH
    echo: bool = False

    @field_validator("path", mode="before")
    @classmethod
    def expand_db_path(cls, v: Any) -> Path:
        expanded = expand_path(v)
        return expanded if expanded else expand_path(DEFAULT_DB_PATH)

    @property
    def url(self) -> str:
        """SQLAlchemy connection URL (creates the parent directory)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.path}"


class EventsConfig(BaseModel):
    """Event bus configuration."""

    handler_timeout: float = 30.0


class PresetConfig(BaseModel):
    """A named focus/break pairing."""

    label: str
    focus_minutes: int = Field(gt=0)
    break_minutes: int = Field(gt=0)


def _default_presets() -> list[PresetConfig]:
    return [
        PresetConfig(label="Quick", focus_minutes=15, break_minutes=3),
        PresetConfig(label="Pomodoro", focus_minutes=25, break_minutes=5),
        PresetConfig(label="Deep", focus_minutes=50, break_minutes=10),
    ]


class FocusConfig(BaseModel):
    """Focus engine and tick configuration."""

    tick_interval: float = Field(default=1.0, gt=0)
    history_limit: int = Field(default=50, gt=0)
    presets: list[PresetConfig] = Field(default_factory=_default_presets)
    default_preset: str = "Pomodoro"

    def preset(self, label: str | None = None) -> PresetConfig:
        """Look up a preset by label (case-insensitive), falling back to the default."""
        wanted = (label or self.default_preset).lower()
        for preset in self.presets:
            if preset.label.lower() == wanted:
                return preset
        raise KeyError(f"Unknown focus preset: {label}")


class DaemonConfig(BaseModel):
    """Daemon process configuration."""

    shutdown_timeout: float = 5.0


class FounderFlowConfig(BaseSettings):
    """
    Main FounderFlow configuration.

    Environment variables use the FOUNDERFLOW_ prefix and __ for nesting.
    Example: FOUNDERFLOW_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="FOUNDERFLOW_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app: AppMeta = Field(default_factory=AppMeta)
    log: LogConfig = Field(default_factory=LogConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    focus: FocusConfig = Field(default_factory=FocusConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)


def find_config_files() -> list[Path]:
    """
    Find configuration files, lowest precedence first.

    1. Repository default next to the installed sources, or
       ./config/default.yaml when running from a checkout
    2. ~/.founderflow/config/founderflow.yaml (user config)
    """
    found: list[Path] = []

    package_config = Path(__file__).parent.parent.parent / "config" / "default.yaml"
    dev_config = Path.cwd() / "config" / "default.yaml"
    if package_config.exists():
        found.append(package_config)
    elif dev_config.exists():
        found.append(dev_config)

    user_config = Path.home() / ".founderflow" / "config" / "founderflow.yaml"
    if user_config.exists():
        found.append(user_config)

    return found


def load_yaml_config(path: Path | None) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    if path is None or not path.exists():
        return {}

    with open(path) as f:
        data = yaml.safe_load(f)

    return data if data else {}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(path: Path | None = None) -> FounderFlowConfig:
    """
    Load complete configuration.

    An explicit path replaces the search. Otherwise the default and user
    YAML files are deep-merged. YAML sections are passed as init values;
    environment variables fill every section the YAML leaves out.
    """
    if path is not None:
        yaml_config = load_yaml_config(path)
    else:
        yaml_config = {}
        for candidate in find_config_files():
            yaml_config = deep_merge(yaml_config, load_yaml_config(candidate))

    return FounderFlowConfig(**yaml_config)


_config: FounderFlowConfig | None = None


def get_config() -> FounderFlowConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
