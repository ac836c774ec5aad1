"""Typed readers for environment variables."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the stripped values of ``names``; all missing or blank ones are reported."""

    values = {name: (os.getenv(name) or "").strip() for name in names}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise MissingConfigurationError(missing)
    return values


def optional_env(name: str) -> str | None:
    value = (os.getenv(name) or "").strip()
    return value or None


def positive_float_env(name: str, default: float) -> float:
    """Seconds-style settings: unset means ``default``, anything else must be > 0."""

    raw = optional_env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(name, f"must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(name, f"must be positive, got {raw!r}")
    return value
