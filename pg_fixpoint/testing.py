"""
pytest integration for fixpoint assertions.

Enable it in the project's top-level conftest.py and provide the database
connection the fixpoints are captured from:

    pytest_plugins = ["pg_fixpoint.testing"]

    @pytest.fixture
    def fixpoint_connection(db):
        return db.connection      # a psycopg2 connection

Tests then use the ``fixpoints`` fixture:

    def test_signup(fixpoints, client):
        fixpoints.restore_fixpoint("base")
        client.post("/signup", ...)
        fixpoints.compare_fixpoint("signed_up", store_fixpoint_and_fail=True,
                                   parent_fixname=LAST_RESTORED)

If "signed_up" does not exist yet, it is captured from the database (as a
delta to "base") and the test is skipped; the next run compares against it.
To accept an intended change, delete the fixpoint file and re-run.
"""

from pathlib import Path
from typing import Iterable, Optional, Union

import pytest

from .snapshot import (
    ALL_TABLES,
    DEFAULT_IGNORED_COLUMNS,
    ComparisonResult,
    Fixpoint,
    FixpointManager,
    FixpointStore,
    NotFoundError,
    RestoreResult,
)


DEFAULT_FIXPOINT_DIR = "tests/fixpoints"


class _LastRestored:
    def __repr__(self):
        return "LAST_RESTORED"


# Pass as parent_fixname to use the fixpoint last restored in the same test
LAST_RESTORED = _LastRestored()

ParentName = Union[str, _LastRestored, None]


class FixpointAssertions:
    """Fixpoint helpers bound to one test.

    last_restored only remembers restores made through this instance, which
    the fixture creates per test function.
    """

    def __init__(self, manager: FixpointManager):
        self.manager = manager
        self.last_restored: Optional[str] = None

    def restore_fixpoint(self, name: str) -> RestoreResult:
        """Load a fixpoint into the database."""
        result = self.manager.restore(name)
        self.last_restored = name
        return result

    def compare_fixpoint(
        self,
        name: str,
        ignored_columns: Optional[Iterable[str]] = None,
        tables_to_compare: Union[str, Iterable[str]] = ALL_TABLES,
        store_fixpoint_and_fail: bool = False,
        parent_fixname: ParentName = None,
    ) -> ComparisonResult:
        """
        Assert that the database matches a fixpoint.

        Fails the test with one line per mismatching table.

        Args:
            name: Fixpoint to compare against
            ignored_columns: Columns left out of the comparison (None for
                the fixpoint_ignored_columns fixture, updated_at and created_at)
            tables_to_compare: "all" or a list of table names
            store_fixpoint_and_fail: If the fixpoint does not exist, capture
                it from the database and skip the test instead of raising
            parent_fixname: Parent for a fixpoint created that way
                (LAST_RESTORED for the last restore_fixpoint() of this test)

        Raises:
            NotFoundError: If the fixpoint does not exist and
                store_fixpoint_and_fail is False.
        """
        if not self.manager.exists(name):
            if store_fixpoint_and_fail:
                self.store_fixpoint(name, parent_fixname)
                pytest.skip(
                    f'Fixpoint "{name}" did not exist yet. Skipping comparison, '
                    "but created fixpoint from database. Try re-running the test."
                )
            raise NotFoundError(name)

        result = self.manager.compare(
            name,
            ignored_columns=ignored_columns,
            tables=tables_to_compare,
        )
        if result.mismatches:
            pytest.fail(
                "\n".join(mismatch.message for mismatch in result.mismatches),
                pytrace=False,
            )
        return result

    def store_fixpoint(self, name: str, parent_fixname: ParentName = None) -> Fixpoint:
        """
        Capture the database as fixpoint name, overwriting an existing one.

        Rewriting a fixpoint on every run changes its volatile columns in
        version control; prefer store_fixpoint_unless_present().
        """
        return self.manager.store_fixpoint(name, self._resolve_parent(parent_fixname))

    def store_fixpoint_unless_present(
        self,
        name: str,
        parent_fixname: ParentName = None,
    ) -> Optional[Fixpoint]:
        """Capture the database as fixpoint name unless it already exists."""
        if self.manager.exists(name):
            return None
        return self.store_fixpoint(name, parent_fixname)

    def _resolve_parent(self, parent_fixname: ParentName) -> Optional[str]:
        if parent_fixname is LAST_RESTORED:
            if self.last_restored is None:
                raise ValueError("parent_fixname=LAST_RESTORED, but no fixpoint was restored in this test")
            return self.last_restored
        return parent_fixname


# =============================================================================
# pytest hooks and fixtures
# =============================================================================

def pytest_addoption(parser):
    parser.addini("fixpoint_dir", "Directory holding fixpoint files", default=DEFAULT_FIXPOINT_DIR)
    parser.addoption(
        "--fixpoint-dir",
        dest="fixpoint_dir",
        default=None,
        help=f"Directory holding fixpoint files (default: {DEFAULT_FIXPOINT_DIR})",
    )


def store_for_config(config) -> FixpointStore:
    """Open the fixpoint store configured for a pytest run."""
    directory = Path(config.getoption("fixpoint_dir") or config.getini("fixpoint_dir"))
    if not directory.is_absolute():
        directory = Path(config.rootpath) / directory
    return FixpointStore(directory)


@pytest.fixture(scope="session")
def fixpoint_store(pytestconfig) -> FixpointStore:
    return store_for_config(pytestconfig)


@pytest.fixture
def fixpoint_ignored_columns():
    """Columns the manager ignores by default; override to change."""
    return list(DEFAULT_IGNORED_COLUMNS)


@pytest.fixture
def fixpoints(fixpoint_store, fixpoint_connection, fixpoint_ignored_columns) -> FixpointAssertions:
    manager = FixpointManager(
        fixpoint_store,
        conn=fixpoint_connection,
        ignored_columns=fixpoint_ignored_columns,
    )
    return FixpointAssertions(manager)
