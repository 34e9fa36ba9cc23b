"""
Runtime configuration.

Resolution order (later wins):
    1. Built-in defaults
    2. YAML file (explicit path, or FOCUSFLOW_CONFIG)
    3. Environment: FOCUSFLOW_DATA_DIR, FOCUSFLOW_BACKEND, FOCUSFLOW_LOG_LEVEL
"""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .storage import FileStorageBackend, MemoryStorageBackend, StorageBackend

DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "focusflow"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

ENV_OVERRIDES = {
    "FOCUSFLOW_DATA_DIR": "data_dir",
    "FOCUSFLOW_BACKEND": "backend",
    "FOCUSFLOW_LOG_LEVEL": "log_level",
}


class ConfigError(ValueError):
    """Raised for unreadable or invalid configuration."""


class AppConfig(BaseModel):
    data_dir: Path = DEFAULT_DATA_DIR
    backend: Literal["file", "memory"] = "file"
    log_level: str = "INFO"

    @field_validator("data_dir")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root level")
    return data


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Build the effective configuration.

    Args:
        path: Optional YAML config file; defaults to $FOCUSFLOW_CONFIG

    Raises:
        ConfigError: If the file cannot be read or values are invalid
    """
    values: dict = {}
    config_path = path or os.getenv("FOCUSFLOW_CONFIG")
    if config_path:
        data = _read_yaml(Path(config_path).expanduser())
        values.update({k: v for k, v in data.items() if k in AppConfig.model_fields})

    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            values[field_name] = value

    try:
        return AppConfig(**values)
    except ValidationError as e:
        source = f" ({config_path})" if config_path else ""
        raise ConfigError(f"Invalid configuration{source}: {e}")


def create_backend(config: AppConfig) -> StorageBackend:
    if config.backend == "memory":
        return MemoryStorageBackend()
    return FileStorageBackend(config.data_dir)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
