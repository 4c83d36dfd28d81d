"""
Shared utilities: configuration, logging setup and the exception hierarchy.
"""

from .config import Config
from .exceptions import (
    TileIndexError,
    InputError,
    ConfigError,
    CollaboratorError,
    FetchError,
    IndexBuildError,
    ClusterNotFoundError,
)
from .logging_setup import configure_logging, get_logger

__all__ = [
    "Config",
    "TileIndexError",
    "InputError",
    "ConfigError",
    "CollaboratorError",
    "FetchError",
    "IndexBuildError",
    "ClusterNotFoundError",
    "configure_logging",
    "get_logger"
]
