"""Provisioning configuration.

Settings come from an optional ~/.kindup/config.yaml, environment variables
and CLI flags, in increasing order of precedence.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .provision.addons import ADDON_FACTORIES, AVAILABLE_ADDONS
from .provision.cluster import DEFAULT_CLUSTER_NAME
from .shared.logging import get_logger
from .shared.paths import CONFIG_FILE

logger = get_logger(__name__)

# Default values
DEFAULT_DOCKER_TIMEOUT = 60
DEFAULT_CLUSTER_TIMEOUT = 120
DEFAULT_LOG_LEVEL = "warning"

# Environment variable mappings
ENV_VARS = {
    "cluster_name": "KIND_CLUSTER_NAME",
    "docker_timeout": "KINDUP_DOCKER_TIMEOUT",
    "cluster_timeout": "KINDUP_CLUSTER_TIMEOUT",
    "addons": "KINDUP_ADDONS",
    "log_level": "KINDUP_LOG_LEVEL",
    "log_file": "KINDUP_LOG_FILE",
}

KEYS = tuple(ENV_VARS)


@dataclass
class ProvisionConfig:
    """Provisioning configuration."""

    cluster_name: str = DEFAULT_CLUSTER_NAME
    docker_timeout: int = DEFAULT_DOCKER_TIMEOUT
    cluster_timeout: int = DEFAULT_CLUSTER_TIMEOUT
    addons: tuple[str, ...] = ()
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str | None = None

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.addons = validate_addons(self.addons)
        if not self.cluster_name:
            raise ValueError("Cluster name must not be empty")
        if self.docker_timeout <= 0 or self.cluster_timeout <= 0:
            raise ValueError("Timeouts must be positive")

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def with_overrides(self, **overrides: Any) -> "ProvisionConfig":
        """Return a copy with CLI overrides applied; None values are ignored."""
        values = {k: v for k, v in overrides.items() if v is not None}
        sources = dict(self._sources)
        for key in values:
            sources[key] = "cli"
        return replace(self, _sources=sources, **values)


def validate_addons(names: Any) -> tuple[str, ...]:
    """Normalize add-on names and reject unknown ones.

    Args:
        names: Comma-separated string or iterable of names

    Returns:
        Tuple of unique names in the given order
    """
    if isinstance(names, str):
        names = names.split(",")
    result: list[str] = []
    for name in names or ():
        name = str(name).strip()
        if not name or name in result:
            continue
        if name not in ADDON_FACTORIES:
            raise ValueError(f"Unknown add-on: {name}. Available: {', '.join(AVAILABLE_ADDONS)}")
        result.append(name)
    return tuple(result)


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        Path to ~/.kindup/config.yaml
    """
    return CONFIG_FILE


def load_config(config_path: Path | None = None) -> ProvisionConfig:
    """Load provisioning configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.kindup/config.yaml)
    3. Defaults

    Args:
        config_path: Override for the config file location

    Returns:
        ProvisionConfig with values and sources

    Raises:
        ValueError: If the file is not a mapping or a value is invalid
            (bad number, unknown add-on)
    """
    values: dict[str, Any] = {}
    sources: dict[str, str] = {key: "default" for key in KEYS}

    path = config_path or get_config_path()
    if path.exists():
        try:
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("config.unreadable", path=str(path), error=str(e))
            file_config = {}
        if not isinstance(file_config, dict):
            raise ValueError(f"Invalid config file {path}: expected a mapping of settings")

        for key in KEYS:
            if key in file_config:
                values[key] = file_config[key]
                sources[key] = "config file"

    for key, env_var in ENV_VARS.items():
        if os.environ.get(env_var):
            values[key] = os.environ[env_var]
            sources[key] = "environment"

    for key in ("docker_timeout", "cluster_timeout"):
        if key in values:
            try:
                values[key] = int(values[key])
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid {key}: {values[key]!r}") from e
    if "cluster_name" in values:
        values["cluster_name"] = str(values["cluster_name"])
    if "log_level" in values:
        values["log_level"] = str(values["log_level"]).lower()
    if "log_file" in values:
        values["log_file"] = str(values["log_file"])

    return ProvisionConfig(**values, _sources=sources)
