"""
Pytest configuration and shared fixtures.
"""

import pytest
from pathlib import Path
from typing import List

from deploytrace.database import DeploymentRecord, get_session
from deploytrace.logger import get_logger, reset_logger
from deploytrace.store import EntityStore, SqlEntityStore
from deploytrace.tracker import DeploymentTracker

PARTITION_KEY = "integration-tests"


@pytest.fixture(autouse=True)
def quiet_logger(tmp_path):
    """Route the global logger to a temp directory, without console output."""
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield logger
    reset_logger()


@pytest.fixture
def partition_key() -> str:
    return PARTITION_KEY


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "deployments.db"


@pytest.fixture
def store(db_path):
    """SQLite-backed store in a temp directory."""
    s = SqlEntityStore(db_path)
    yield s
    s.close()


@pytest.fixture
def tracker(store, partition_key) -> DeploymentTracker:
    return DeploymentTracker(store, partition_key)


@pytest.fixture
def row_keys(db_path, partition_key):
    """Return a function listing row keys in the partition, oldest first."""

    def _row_keys() -> List[str]:
        session = get_session(db_path)
        try:
            return [
                r.row_key
                for r in session.query(DeploymentRecord)
                .filter_by(partition_key=partition_key)
                .order_by(DeploymentRecord.id)
            ]
        finally:
            session.close()

    return _row_keys


class FailingStore(EntityStore):
    """Store whose selected operations raise ConnectionError."""

    errors = (ConnectionError,)

    def __init__(self, fail_on=("query", "insert", "replace", "delete"), results=None):
        self.fail_on = set(fail_on)
        self.results = list(results or [])
        self.calls: List[str] = []

    def _maybe_fail(self, operation: str):
        self.calls.append(operation)
        if operation in self.fail_on:
            raise ConnectionError(f"{operation} refused: connection reset")

    def query(self, partition_key, field_name, field_value):
        self._maybe_fail("query")
        return list(self.results)

    def insert(self, entry):
        self._maybe_fail("insert")

    def replace(self, entry):
        self._maybe_fail("replace")

    def delete(self, entry):
        self._maybe_fail("delete")


@pytest.fixture
def failing_store():
    """Factory for stores that refuse the given operations."""
    return FailingStore
