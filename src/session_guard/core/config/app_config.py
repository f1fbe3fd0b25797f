"""
Application configuration for session-guard.

Values are resolved in three layers: model defaults, an optional YAML file, and
``SESSION_GUARD_*`` environment variables (highest precedence).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator

from session_guard.core.common.exceptions import ConfigurationError
from session_guard.core.interfaces.model_bases import DomainModel
from session_guard.loop_detection.config import (
    CONTENT_CHUNK_SIZE,
    CONTENT_LOOP_THRESHOLD,
    MAX_HISTORY_LENGTH,
    LoopDetectionConfig,
)
from session_guard.tool_call_loop.config import (
    TOOL_CALL_LOOP_THRESHOLD,
    ToolCallLoopConfig,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "SESSION_GUARD_"


class LogLevel(str, Enum):
    """Log levels for configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggingConfig(DomainModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    log_file: str | None = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class LoopDetectionSettings(DomainModel):
    """Thresholds of the loop detection session."""

    tool_call_loop_enabled: bool = True
    tool_call_loop_threshold: int = Field(default=TOOL_CALL_LOOP_THRESHOLD, ge=2)
    content_loop_threshold: int = Field(default=CONTENT_LOOP_THRESHOLD, ge=2)
    content_chunk_size: int = Field(default=CONTENT_CHUNK_SIZE, ge=1)
    max_history_length: int = Field(default=MAX_HISTORY_LENGTH, ge=1)

    @model_validator(mode="after")
    def validate_history_holds_a_chunk(self) -> LoopDetectionSettings:
        if self.max_history_length < self.content_chunk_size:
            raise ValueError("max_history_length must be at least content_chunk_size")
        return self


class SessionGuardConfig(DomainModel):
    """Top level configuration of the stream session controller."""

    # When False the controller forwards every provider event untouched
    loop_detection_enabled: bool = True
    # Turns allowed per prompt; 0 means unbounded
    max_session_turns: int = Field(default=0, ge=0)
    # Capacity of the queue between the provider task and the consumer
    outbound_queue_size: int = Field(default=10, ge=1)

    loop_detection: LoopDetectionSettings = Field(
        default_factory=LoopDetectionSettings
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def to_loop_detection_config(self) -> LoopDetectionConfig:
        settings = self.loop_detection
        return LoopDetectionConfig(
            content_loop_threshold=settings.content_loop_threshold,
            content_chunk_size=settings.content_chunk_size,
            max_history_length=settings.max_history_length,
            tool_call=ToolCallLoopConfig(
                enabled=settings.tool_call_loop_enabled,
                max_repeats=settings.tool_call_loop_threshold,
            ),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SessionGuardConfig:
        """Build a configuration from ``SESSION_GUARD_*`` environment variables."""
        env = os.environ if environ is None else environ
        return cls.model_validate(_env_overrides(env))


_ENV_KEYS: dict[str, tuple[str, ...]] = {
    "LOOP_DETECTION_ENABLED": ("loop_detection_enabled",),
    "MAX_SESSION_TURNS": ("max_session_turns",),
    "OUTBOUND_QUEUE_SIZE": ("outbound_queue_size",),
    "TOOL_LOOP_DETECTION_ENABLED": ("loop_detection", "tool_call_loop_enabled"),
    "TOOL_LOOP_THRESHOLD": ("loop_detection", "tool_call_loop_threshold"),
    "CONTENT_LOOP_THRESHOLD": ("loop_detection", "content_loop_threshold"),
    "CONTENT_CHUNK_SIZE": ("loop_detection", "content_chunk_size"),
    "MAX_HISTORY_LENGTH": ("loop_detection", "max_history_length"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FILE": ("logging", "log_file"),
}


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for suffix, path in _ENV_KEYS.items():
        value = env.get(ENV_PREFIX + suffix)
        if value is None or value == "":
            continue
        _set_by_path(overrides, path, value)
    return overrides


def _set_by_path(target: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    for key in path[:-1]:
        target = target.setdefault(key, {})
    target[path[-1]] = value


def _merge_dicts(base: dict[str, Any], override: Mapping[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge_dicts(base[key], value)
        else:
            base[key] = value


def load_config(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> SessionGuardConfig:
    """
    Load configuration from file and environment.

    Args:
        config_path: Optional path to a YAML configuration file
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        SessionGuardConfig instance

    Raises:
        ConfigurationError: If the file cannot be read or values are invalid
    """
    env = os.environ if environ is None else environ
    config_data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            logger.warning("Configuration file not found: %s", config_path)
        else:
            if path.suffix.lower() not in {".yaml", ".yml"}:
                raise ConfigurationError(
                    f"Unsupported configuration file format: {path.suffix}. Use YAML (.yaml/.yml).",
                    details={"path": str(path)},
                )
            try:
                with open(path, encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Invalid YAML in configuration file: {exc}",
                    details={"path": str(path)},
                ) from exc

            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    "Configuration file must contain a mapping at the top level",
                    details={"path": str(path)},
                )
            _merge_dicts(config_data, file_config)

    _merge_dicts(config_data, _env_overrides(env))

    try:
        return SessionGuardConfig.model_validate(config_data)
    except ValidationError as exc:
        raise ConfigurationError(
            "Invalid session-guard configuration",
            details={"errors": exc.errors(include_url=False)},
        ) from exc
