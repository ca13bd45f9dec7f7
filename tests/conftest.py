"""
Shared test fixtures and configuration for pytest.
"""

import pytest

from pg_fixpoint.snapshot import FixpointManager, FixpointStore
from pg_fixpoint.testing import fixpoints, fixpoint_ignored_columns  # noqa: F401

from tests.mocks import (
    InMemoryCapture,
    InMemoryRestore,
    base_state,
    blog_connection,
    fake_execute_values,
)


@pytest.fixture(autouse=True)
def fake_execute_values_patch(monkeypatch):
    """execute_values needs a live connection to render identifiers."""
    monkeypatch.setattr("pg_fixpoint.snapshot.restore.execute_values", fake_execute_values)


@pytest.fixture
def store(tmp_path) -> FixpointStore:
    return FixpointStore(tmp_path / "fixpoints")


@pytest.fixture
def database() -> InMemoryCapture:
    """In-memory database holding the golden blog state."""
    return InMemoryCapture(base_state())


@pytest.fixture
def manager(store, database) -> FixpointManager:
    """Manager capturing from and restoring into the in-memory database."""
    return FixpointManager(
        store,
        capture=database,
        restore=InMemoryRestore(database),
    )


# =============================================================================
# Fixtures used by pg_fixpoint.testing
# =============================================================================

@pytest.fixture
def fixpoint_store(store) -> FixpointStore:
    return store


@pytest.fixture
def fixpoint_connection():
    return blog_connection(base_state())
