"""
taskform Configuration — Load and validate taskform.yaml at startup.

Usage:
    from taskform.engine.config import load_config, get_config
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from taskform.engine.errors import TaskFormConfigError

CONFIG_FILENAME = "taskform.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for taskform.yaml
# ---------------------------------------------------------------------------

class RetryConfig(BaseModel):
    count: int = Field(default=0, ge=0, le=10)
    delay: float = Field(default=0.5, ge=0)
    backoff: str = "exponential"

    @field_validator("backoff")
    @classmethod
    def validate_backoff(cls, v: str) -> str:
        if v not in ("exponential", "linear", "fixed"):
            raise ValueError(f"backoff must be exponential/linear/fixed, got '{v}'")
        return v


class ApiConfig(BaseModel):
    base_url: str = "http://localhost:5000/api"
    timeout: float = 15.0
    retry: RetryConfig = RetryConfig()
    log_payload: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".taskform/logs"
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class UIConfig(BaseModel):
    home_route: str = "/"
    add_title: str = "Add Task"
    edit_title: str = "Edit Task"


class TaskFormConfig(BaseModel):
    """Root model for taskform.yaml."""
    name: str = "taskform"
    environment: str = "dev"

    api: ApiConfig = ApiConfig()
    logging: LoggingConfig = LoggingConfig()
    ui: UIConfig = UIConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[TaskFormConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for taskform.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_environment(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment_overrides for the active environment into the raw config."""
    overrides = raw.pop("environment_overrides", None) or {}
    env = raw.get("environment", "dev")
    if env in overrides:
        return _merge(raw, overrides[env] or {})
    return raw


def load_config(config_path: Optional[str] = None) -> TaskFormConfig:
    """
    Load and validate taskform.yaml.

    Args:
        config_path: Explicit path to taskform.yaml. If None, auto-discovers.

    Returns:
        Validated TaskFormConfig instance. Defaults if no file exists.

    Raises:
        TaskFormConfigError if the file is not valid YAML or fails validation.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    if not path.exists():
        _config = TaskFormConfig()
        return _config

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise TaskFormConfigError(f"Invalid YAML in {path}: {e}", path=str(path)) from e

    if not isinstance(raw, dict):
        raise TaskFormConfigError(f"{path} must contain a mapping", path=str(path))

    # Top-level "taskform:" wrapper is optional
    data = raw.get("taskform", raw)

    try:
        _config = TaskFormConfig(**_apply_environment(dict(data)))
    except ValidationError as e:
        raise TaskFormConfigError(f"Invalid configuration in {path}: {e}", path=str(path)) from e
    return _config


def get_config() -> TaskFormConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
