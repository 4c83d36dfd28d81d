"""
Runtime configuration.

Values come from ``GEOJSON_TILES_*`` environment variables with defaults that
suit a local development worker.
"""

import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigError


ENV_PREFIX = "GEOJSON_TILES_"

LOG_FORMATS = ("json", "console")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Settings shared by the loader, the retriever and the tile server."""
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"
    fetch_timeout: float = 30.0
    max_workers: int = 4
    layer_name: str = "_geojsonTileLayer"
    metrics_enabled: bool = True

    def __post_init__(self):
        self.log_level = self.log_level.upper()
        self.log_format = self.log_format.lower()

        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Unsupported log format: {self.log_format}")
        if self.fetch_timeout <= 0:
            raise ConfigError("fetch_timeout must be positive")
        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")
        if not self.layer_name:
            raise ConfigError("layer_name must not be empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (used in tests)

        Returns:
            Populated configuration
        """
        environ = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return environ.get(ENV_PREFIX + name)

        kwargs: Dict[str, Any] = {}
        try:
            if get("ENVIRONMENT"):
                kwargs["environment"] = get("ENVIRONMENT")
            if get("LOG_LEVEL"):
                kwargs["log_level"] = get("LOG_LEVEL")
            if get("LOG_FORMAT"):
                kwargs["log_format"] = get("LOG_FORMAT")
            if get("FETCH_TIMEOUT"):
                kwargs["fetch_timeout"] = float(get("FETCH_TIMEOUT"))
            if get("MAX_WORKERS"):
                kwargs["max_workers"] = int(get("MAX_WORKERS"))
            if get("LAYER_NAME"):
                kwargs["layer_name"] = get("LAYER_NAME")
            if get("METRICS_ENABLED"):
                kwargs["metrics_enabled"] = _env_bool(get("METRICS_ENABLED"))
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}") from e

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
