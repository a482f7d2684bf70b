"""
Configuration for the deployment controller.

Settings are read from environment variables (``CANARY_`` prefix), an optional
``.env`` file, and optionally a YAML file. Values in YAML may reference the
environment with ``${VAR}`` or ``${VAR:-default}``.
"""

import builtins
import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from canary_deploy.resilience.retry import RetryStrategy

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ConfigurationError(Exception):
    """Settings file could not be loaded."""


class StoreBackend(Enum):
    """Supported config store backends."""

    MEMORY = "memory"
    REDIS = "redis"


class DeploymentSettings(BaseSettings):
    """Runtime settings for the deployment controller."""

    model_config = SettingsConfigDict(
        env_prefix="CANARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(default="deployment-controller", description="Service name for logs")
    environment: str = Field(default="development", description="Controller environment")

    # Config store
    key_prefix: str = Field(default="deployment", description="First segment of store keys")
    store_backend: StoreBackend = Field(default=StoreBackend.MEMORY)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Health-check loop
    check_interval_seconds: float = Field(default=60.0, gt=0)
    auto_promote: bool = Field(
        default=False, description="Promote a canary to full deployment once it is healthy at 100%"
    )

    # Collaborator resilience
    metrics_timeout_seconds: float = Field(default=10.0, gt=0)
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.5, ge=0)
    retry_max_delay: float = Field(default=5.0, ge=0)
    retry_strategy: RetryStrategy = Field(default=RetryStrategy.EXPONENTIAL)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("key_prefix")
    @classmethod
    def _validate_key_prefix(cls, value: str) -> str:
        if not value or ":" in value:
            raise ValueError("key_prefix must be non-empty and must not contain ':'")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET", "OFF"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return fmt

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> "DeploymentSettings":
        """Load settings from a YAML file.

        Environment variables take precedence over values from the file;
        keyword overrides take precedence over both.
        """
        data = expand_env_vars(load_yaml_file(Path(path)))
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {path} must contain a mapping")

        # Keys present in the environment win over the file
        for key in list(data):
            if f"{cls.model_config.get('env_prefix', '')}{key}".upper() in os.environ:
                data.pop(key)

        data.update(overrides)
        return cls(**data)


def load_yaml_file(path: Path) -> Any:
    """Load a YAML document, raising ConfigurationError on failure."""
    try:
        with open(path, encoding="utf-8") as file:
            return yaml.safe_load(file) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Error reading file {path}: {e}") from e


def expand_env_vars(obj: Any) -> Any:
    """Recursively expand ``${VAR:-default}`` references."""
    if isinstance(obj, builtins.dict):
        return {key: expand_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, builtins.list):
        return [expand_env_vars(item) for item in obj]
    if isinstance(obj, str):
        return _ENV_VAR_PATTERN.sub(_replace_var, obj)
    return obj


def _replace_var(match: re.Match) -> str:
    var_expr = match.group(1)
    if ":-" in var_expr:
        var_name, default_value = var_expr.split(":-", 1)
        return os.environ.get(var_name, default_value)
    return os.environ.get(var_expr, "")
