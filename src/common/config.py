"""Configuration helpers for loading the watch list from YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .models import AlertDirection

DEFAULT_POLL_INTERVAL = 30


class ConfigError(Exception):
    """Raised when the watch configuration cannot be loaded or is invalid."""


def load_config(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Load a YAML configuration file and expand environment variables.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed configuration dictionary. Returns an empty dict if the file is
        empty.
    """

    config_path = Path(path)
    raw_text = config_path.read_text()
    expanded = os.path.expandvars(raw_text)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Config root must be a mapping, got {type(data)!r}")
    return dict(data)


def _format_threshold(value: float) -> str:
    # Whole numbers read as "1", not "1.0".
    return str(int(value)) if value.is_integer() else repr(value)


class AlertDefinition(BaseModel):
    """One threshold alert attached to a watch."""

    direction: AlertDirection
    threshold: float
    message: Optional[str] = None


class WatchDefinition(BaseModel):
    """A market to monitor together with its alerts."""

    slug: Optional[str] = None
    condition_id: Optional[str] = None
    name: Optional[str] = None
    alerts: list[AlertDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_defaults(self) -> "WatchDefinition":
        if not self.slug and not self.condition_id:
            raise ValueError(
                f"Watch entry '{self.name or '(unnamed)'}' missing 'slug' or 'condition_id'"
            )

        if not self.name:
            self.name = self.slug or self.condition_id

        if not self.alerts:
            raise ValueError(f"Watch '{self.name}' has no alerts defined")

        for alert in self.alerts:
            if alert.message is None:
                alert.message = f"{self.name} crossed {_format_threshold(alert.threshold)}"
        return self

    @property
    def identifier(self) -> str:
        """Identifier shown to users; the slug wins over the condition id."""

        return self.slug or self.condition_id or ""


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None


class WatchConfig(BaseModel):
    """Validated watch list."""

    poll_interval: int = DEFAULT_POLL_INTERVAL
    watches: list[WatchDefinition] = Field(default_factory=list)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("poll_interval", mode="before")
    @classmethod
    def _default_missing_interval(cls, value: object) -> object:
        return DEFAULT_POLL_INTERVAL if value is None else value

    @field_validator("poll_interval")
    @classmethod
    def _coerce_interval(cls, value: int) -> int:
        return value if value >= 1 else DEFAULT_POLL_INTERVAL

    @field_validator("logging", mode="before")
    @classmethod
    def _default_missing_logging(cls, value: object) -> object:
        return {} if value is None else value

    @model_validator(mode="after")
    def _require_watches(self) -> "WatchConfig":
        if not self.watches:
            raise ValueError("Config must contain at least one watch entry")
        return self


def _describe_validation_error(exc: ValidationError) -> str:
    lines = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        message = error["msg"]
        lines.append(f"{location}: {message}" if location else message)
    return "\n".join(lines)


def load_watch_config(path: str | os.PathLike[str]) -> WatchConfig:
    """Load and validate the watch list at ``path``.

    Raises:
        ConfigError: if the file is missing, is not valid YAML, or fails
            validation. The caller decides whether to exit.
    """

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(
            f"Config file not found: {config_path}\n"
            "Copy watches.example.yaml to watches.yaml and edit it."
        )

    try:
        data = load_config(config_path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    try:
        return WatchConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid config {config_path}:\n{_describe_validation_error(exc)}"
        ) from exc


__all__ = [
    "AlertDefinition",
    "ConfigError",
    "DEFAULT_POLL_INTERVAL",
    "LoggingSettings",
    "WatchConfig",
    "WatchDefinition",
    "load_config",
    "load_watch_config",
]
