"""Service-level settings for ingestion and status reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Final

from .env import optional_env, positive_float_env, require_env_vars
from .storage import StorageConfig, get_storage_config

DEFAULT_SERVICE_NAME: Final[str] = "input-service"
DEFAULT_RECONCILE_INTERVAL_SECONDS: Final[float] = 60.0
DEFAULT_GRACE_WINDOW_SECONDS: Final[float] = 120.0


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Settings shared by the ingestion path and the RPC responder."""

    expected_domain: str
    temp_root: Path
    service_name: str = DEFAULT_SERVICE_NAME


@dataclass(frozen=True, slots=True)
class ReconcilerConfig:
    interval: timedelta = timedelta(seconds=DEFAULT_RECONCILE_INTERVAL_SECONDS)
    grace_window: timedelta = timedelta(seconds=DEFAULT_GRACE_WINDOW_SECONDS)


def get_service_config(*, storage: StorageConfig | None = None) -> ServiceConfig:
    values = require_env_vars(["DEPWATCH_EXPECTED_DOMAIN"])
    env_temp_root = optional_env("DEPWATCH_TEMP_ROOT")
    if env_temp_root:
        temp_root = Path(env_temp_root).expanduser().resolve()
    else:
        temp_root = (storage or get_storage_config()).work_dir()
    service_name = optional_env("DEPWATCH_SERVICE_NAME") or DEFAULT_SERVICE_NAME
    return ServiceConfig(
        expected_domain=values["DEPWATCH_EXPECTED_DOMAIN"],
        temp_root=temp_root,
        service_name=service_name,
    )


def get_reconciler_config() -> ReconcilerConfig:
    interval = positive_float_env(
        "DEPWATCH_RECONCILE_INTERVAL_SECONDS", DEFAULT_RECONCILE_INTERVAL_SECONDS
    )
    grace = positive_float_env("DEPWATCH_GRACE_WINDOW_SECONDS", DEFAULT_GRACE_WINDOW_SECONDS)
    return ReconcilerConfig(
        interval=timedelta(seconds=interval),
        grace_window=timedelta(seconds=grace),
    )
