"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from orderharvest.config import (
    HarvestConfig,
    HarvestConfigError,
    load_harvest_config_from_env,
)

_ENV_VARS = (
    "DATABASE_URL",
    "OZON_BASE_URL",
    "OZON_COOKIES",
    "ORDERHARVEST_BATCH_SIZE",
    "ORDERHARVEST_TIMEOUT_SECONDS",
    "ORDERHARVEST_USER_AGENT",
    "ORDERHARVEST_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_env_is_empty() -> None:
    assert load_harvest_config_from_env() == HarvestConfig()


def test_reads_all_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite:///custom.db")
    monkeypatch.setenv("OZON_BASE_URL", "https://ozon.kz")
    monkeypatch.setenv("OZON_COOKIES", "a=1; b=2")
    monkeypatch.setenv("ORDERHARVEST_BATCH_SIZE", "8")
    monkeypatch.setenv("ORDERHARVEST_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("ORDERHARVEST_USER_AGENT", "test-agent")
    monkeypatch.setenv("ORDERHARVEST_LOG_LEVEL", "debug")

    config = load_harvest_config_from_env()

    assert config == HarvestConfig(
        database_url="sqlite:///custom.db",
        base_url="https://ozon.kz",
        cookies="a=1; b=2",
        batch_size=8,
        timeout_seconds=12.5,
        user_agent="test-agent",
        log_level="DEBUG",
    )


@pytest.mark.parametrize("value", ["zero", "0", "-3"])
def test_invalid_batch_size(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("ORDERHARVEST_BATCH_SIZE", value)

    with pytest.raises(HarvestConfigError, match="ORDERHARVEST_BATCH_SIZE"):
        load_harvest_config_from_env()


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORDERHARVEST_TIMEOUT_SECONDS", "soon")

    with pytest.raises(HarvestConfigError, match="ORDERHARVEST_TIMEOUT_SECONDS"):
        load_harvest_config_from_env()


def test_invalid_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORDERHARVEST_LOG_LEVEL", "loud")

    with pytest.raises(HarvestConfigError, match="ORDERHARVEST_LOG_LEVEL"):
        load_harvest_config_from_env()
