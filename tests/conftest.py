"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from orderharvest.adapters.db.facade import ItemStore


@pytest.fixture
def store(tmp_path: Path) -> ItemStore:
    """File-backed SQLite item store isolated per test."""
    return ItemStore(f"sqlite:///{tmp_path / 'items.db'}")
