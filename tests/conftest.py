"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from pathlib import Path
from typing import Iterator

import pytest

from trust_hierarchies.federation.handlers import FederationCommandHandlers
from trust_hierarchies.hierarchies import Hierarchies
from trust_hierarchies.kernel.event_store import SQLiteEventStore
from trust_hierarchies.kernel.policy import FederationPolicy
from trust_hierarchies.kernel.projection_store import SQLiteProjectionStore
from trust_hierarchies.kernel.time import TestTimeProvider

from tests.helpers import TEST_EPOCH_MS


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup, including the WAL side files
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.unlink()


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def projection_store(temp_db: Path) -> SQLiteProjectionStore:
    """Provide a fresh projection store for each test"""
    return SQLiteProjectionStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable clock for deterministic tests

    Starts at 2025-01-15 12:00:00 UTC and only moves when a test moves it.
    """
    return TestTimeProvider(TEST_EPOCH_MS)


@pytest.fixture
def policy() -> FederationPolicy:
    """Default (strict) delegation policy"""
    return FederationPolicy()


@pytest.fixture
def handlers(test_time: TestTimeProvider, policy: FederationPolicy) -> FederationCommandHandlers:
    """
    Provide federation command handlers

    Handlers are stateless - they take the federation and capability lookup
    as parameters.
    """
    return FederationCommandHandlers(test_time, policy)


@pytest.fixture
def hierarchies(temp_db: Path, test_time: TestTimeProvider) -> Hierarchies:
    """Full engine on a temporary database with a frozen clock"""
    return Hierarchies(temp_db, time_provider=test_time)
