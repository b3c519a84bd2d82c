"""CLI configuration.

Settings come from defaults, then an optional YAML config file, then
environment variables; command-line options override all of them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".awsweeper" / "config.yaml"

# Environment variable -> (field name, fallback variable)
ENV_VARS = {
    "AWSWEEPER_PROFILE": ("aws_profile", "AWS_PROFILE"),
    "AWSWEEPER_REGION": ("region", "AWS_DEFAULT_REGION"),
    "AWSWEEPER_LOG_LEVEL": ("log_level", None),
    "AWSWEEPER_MAX_WORKERS": ("max_workers", None),
    "AWSWEEPER_MAX_ATTEMPTS": ("max_attempts", None),
    "AWSWEEPER_RETRY_DELAY": ("retry_delay", None),
    "AWSWEEPER_LIST_ATTEMPTS": ("list_attempts", None),
    "AWSWEEPER_AUDIT_DIR": ("audit_dir", None),
}


@dataclass
class Config:
    """Runtime settings.

    Attributes:
        aws_profile: AWS profile name (optional)
        region: AWS region (optional)
        log_level: Log level name
        max_workers: Maximum concurrent provider calls
        max_attempts: Maximum delete attempts per resource
        retry_delay: Seconds between deletion passes
        list_attempts: Attempts per resource type for transient listing errors
        audit_dir: Audit log directory (optional)
    """

    aws_profile: Optional[str] = None
    region: Optional[str] = None
    log_level: str = "INFO"
    max_workers: int = 10
    max_attempts: int = 10
    retry_delay: float = 5.0
    list_attempts: int = 3
    audit_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError("max_workers must be >= 1")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be >= 1")
        if self.list_attempts < 1:
            raise ConfigError("list_attempts must be >= 1")
        if self.retry_delay < 0:
            raise ConfigError("retry_delay must be >= 0")

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
        """Load configuration.

        Args:
            path: Config file path (default: $AWSWEEPER_CONFIG or ~/.awsweeper/config.yaml)
            environ: Environment mapping (default: os.environ)

        Returns:
            Config instance

        Raises:
            ConfigError: If the config file or an environment value is invalid
        """
        if environ is None:
            environ = os.environ

        values: Dict[str, Any] = {}

        config_path = Path(path or environ.get("AWSWEEPER_CONFIG") or DEFAULT_CONFIG_PATH)
        if config_path.is_file():
            values.update(cls._read_file(config_path))
        elif path:
            raise ConfigError(f"config file not found: {config_path}")

        for env_var, (name, fallback) in ENV_VARS.items():
            value = environ.get(env_var) or (environ.get(fallback) if fallback else None)
            if value:
                values[name] = value

        return cls(**cls._coerce(values))

    @classmethod
    def _read_file(cls, config_path: Path) -> Dict[str, Any]:
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"config file must contain a mapping: {config_path}")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys in {config_path}: {', '.join(sorted(unknown))}")

        logger.debug(f"Loaded config from {config_path}")
        return {key: value for key, value in data.items() if key in known}

    @classmethod
    def _coerce(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        converters = {"max_workers": int, "max_attempts": int, "list_attempts": int, "retry_delay": float}
        coerced = dict(values)
        for name, converter in converters.items():
            if name in coerced:
                try:
                    coerced[name] = converter(coerced[name])
                except (TypeError, ValueError):
                    raise ConfigError(f"{name} must be a number, got {coerced[name]!r}")
        return coerced
