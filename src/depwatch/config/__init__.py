"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env, positive_float_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .service import (
    ReconcilerConfig,
    ServiceConfig,
    get_reconciler_config,
    get_service_config,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "ReconcilerConfig",
    "ServiceConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_reconciler_config",
    "get_service_config",
    "get_storage_config",
    "optional_env",
    "positive_float_env",
    "require_env_vars",
]
