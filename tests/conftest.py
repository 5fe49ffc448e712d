"""Pytest fixtures for Taskin tests.

This module provides fixtures for test configuration, database, a
controllable clock and the sync services built on them.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Generator

import pytest

# Add src and tests to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from taskin.core.config import Config
from taskin.core.database import Database
from taskin.core.delta_sync import DeltaSyncService
from taskin.core.serialization import JsonCodec
from taskin.core.snapshot_sync import SnapshotSyncService

from helpers import FakeClock


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create temporary config directory for tests.

    Args:
        tmp_path: pytest temporary directory fixture

    Returns:
        Path to temporary config directory.
    """
    config_dir = tmp_path / "taskin_test"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def test_config(test_config_dir: Path) -> Config:
    """Create test configuration."""
    return Config(config_dir=test_config_dir)


@pytest.fixture
def test_db_path(test_config: Config) -> Path:
    """Get path for test database (the one the test config points at)."""
    return test_config.get_database_file()


@pytest.fixture
def empty_db(test_db_path: Path) -> Generator[Database, None, None]:
    """Create empty test database.

    Yields:
        Empty Database instance.
    """
    db = Database(test_db_path)
    yield db
    db.close()
    if test_db_path.exists():
        test_db_path.unlink()


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at 2024-01-01 00:00:00 that ticks one second per reading."""
    return FakeClock(datetime(2024, 1, 1, 0, 0, 0), step=timedelta(seconds=1))


@pytest.fixture
def codec() -> JsonCodec:
    return JsonCodec()


@pytest.fixture
def delta_service(empty_db: Database, clock: FakeClock, codec: JsonCodec) -> DeltaSyncService:
    """Delta sync service over the empty test database."""
    return DeltaSyncService(empty_db, codec=codec, clock=clock)


@pytest.fixture
def snapshot_service(empty_db: Database, clock: FakeClock, codec: JsonCodec) -> SnapshotSyncService:
    """Full-snapshot sync service over the empty test database."""
    return SnapshotSyncService(empty_db, codec=codec, clock=clock)
