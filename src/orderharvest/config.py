"""Runtime configuration loaded from environment variables (and ``.env``)."""

from __future__ import annotations

from dataclasses import dataclass
import os

from orderharvest.adapters.ozon.client import DEFAULT_BASE_URL, DEFAULT_USER_AGENT
from orderharvest.tools.discovery.discovery_tool import DEFAULT_BATCH_SIZE

DEFAULT_DATABASE_URL = "sqlite:///orderharvest.db"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_LOG_LEVEL = "INFO"

_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class HarvestConfigError(Exception):
    """Missing or invalid configuration."""


@dataclass(frozen=True, slots=True)
class HarvestConfig:
    """Settings shared by the CLI, the Ozon client and the item store."""

    database_url: str = DEFAULT_DATABASE_URL
    base_url: str = DEFAULT_BASE_URL
    cookies: str | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = DEFAULT_LOG_LEVEL


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise HarvestConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise HarvestConfigError(f"{name} must be positive, got {value}")
    return value


def _positive_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise HarvestConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise HarvestConfigError(f"{name} must be positive, got {value}")
    return value


def load_harvest_config_from_env() -> HarvestConfig:
    """Load configuration from environment variables.

    Recognized env vars: DATABASE_URL, OZON_BASE_URL, OZON_COOKIES,
    ORDERHARVEST_BATCH_SIZE, ORDERHARVEST_TIMEOUT_SECONDS,
    ORDERHARVEST_USER_AGENT, ORDERHARVEST_LOG_LEVEL.

    Raises:
        HarvestConfigError: If a variable holds an invalid value.
    """
    log_level = (os.environ.get("ORDERHARVEST_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    if log_level not in _LOG_LEVELS:
        raise HarvestConfigError(
            f"ORDERHARVEST_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, "
            f"got {log_level!r}"
        )

    return HarvestConfig(
        database_url=os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
        base_url=os.environ.get("OZON_BASE_URL") or DEFAULT_BASE_URL,
        cookies=os.environ.get("OZON_COOKIES") or None,
        batch_size=_positive_int("ORDERHARVEST_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        timeout_seconds=_positive_float(
            "ORDERHARVEST_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS
        ),
        user_agent=os.environ.get("ORDERHARVEST_USER_AGENT") or DEFAULT_USER_AGENT,
        log_level=log_level,
    )
