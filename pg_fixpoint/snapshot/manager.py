"""
Fixpoint manager - high-level fixpoint operations.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .capture import DatabaseCapture
from .compare import ALL_TABLES, ComparisonResult, ComparisonStatus, compare_states, select_tables
from .delta import compute_delta, materialize
from .errors import NotFoundError
from .models import DEFAULT_IGNORED_COLUMNS, Fixpoint, FixpointInfo, RestoreResult, TableState
from .restore import DatabaseRestore
from .store import FixpointStore


logger = logging.getLogger(__name__)


class FixpointManager:
    """High-level fixpoint operations against one database and one store."""

    def __init__(
        self,
        store: Union[FixpointStore, str, Path],
        conn=None,
        capture: Optional[DatabaseCapture] = None,
        restore: Optional[DatabaseRestore] = None,
        ignored_columns: Iterable[str] = DEFAULT_IGNORED_COLUMNS,
    ):
        """
        Initialize fixpoint manager.

        Args:
            store: Fixpoint store, or the directory to open one in
            conn: psycopg2 database connection (required for capture/restore
                unless explicit capture/restore components are given)
            capture: Component reading the database state
            restore: Component writing a state into the database
            ignored_columns: Default columns ignored by compare
        """
        self.store = store if isinstance(store, FixpointStore) else FixpointStore(store)
        self.conn = conn
        self.ignored_columns = list(ignored_columns)

        # Lazy-initialized components
        self._capture = capture
        self._restore = restore

    @property
    def capture_component(self) -> DatabaseCapture:
        """Get or create database capture component."""
        if self._capture is None:
            if self.conn is None:
                raise RuntimeError("Database connection required for capture")
            self._capture = DatabaseCapture(self.conn)
        return self._capture

    @property
    def restore_component(self) -> DatabaseRestore:
        """Get or create database restore component."""
        if self._restore is None:
            if self.conn is None:
                raise RuntimeError("Database connection required for restore")
            self._restore = DatabaseRestore(self.conn)
        return self._restore

    # =========================================================================
    # Store Operations
    # =========================================================================

    def exists(self, name: str) -> bool:
        """Check if a fixpoint is stored."""
        return self.store.exists(name)

    def load(self, name: str) -> Fixpoint:
        """Load a stored fixpoint (NotFoundError if absent)."""
        return self.store.load(name)

    def materialize(self, name: str) -> TableState:
        """Full table state of a stored fixpoint, parent chain resolved."""
        return materialize(self.store.load(name), self.store)

    def list_fixpoints(self) -> List[FixpointInfo]:
        return self.store.list_fixpoints()

    def delete(self, name: str) -> bool:
        return self.store.delete(name)

    # =========================================================================
    # Core Operations
    # =========================================================================

    def capture(self, parent_name: Optional[str] = None, name: Optional[str] = None) -> Fixpoint:
        """
        Capture the database, as a delta to parent_name if given.

        Args:
            parent_name: Fixpoint to store the capture relative to
            name: Name for the captured fixpoint

        Raises:
            NotFoundError: If the parent is not stored.
        """
        state = self.capture_component.read_all_tables()
        return compute_delta(state, parent_name, self.store, name=name)

    def store_fixpoint(self, name: str, parent_name: Optional[str] = None) -> Fixpoint:
        """
        Capture the database and write it as fixpoint name.

        An existing fixpoint of that name is overwritten; volatile columns
        then show up as changes in version control, so prefer
        store_unless_present().
        """
        fixpoint = self.capture(parent_name, name=name)
        path = self.store.save(fixpoint)
        logger.info(
            f"Stored fixpoint {name} ({len(fixpoint.table_names)} tables"
            + (f", parent {parent_name}" if parent_name else "")
            + f") at {path}"
        )
        return fixpoint

    def store_unless_present(self, name: str, parent_name: Optional[str] = None) -> Optional[Fixpoint]:
        """
        Capture and write fixpoint name only if it does not exist yet.

        Returns:
            The new fixpoint, or None if one was already stored
        """
        if self.store.exists(name):
            return None
        return self.store_fixpoint(name, parent_name)

    def replay(self, fixpoint: Fixpoint) -> RestoreResult:
        """Materialize a fixpoint and load it into the database."""
        state = materialize(fixpoint, self.store)
        return self.restore_component.write_all_tables(state, fixpoint_name=fixpoint.name)

    def restore(self, name: str) -> RestoreResult:
        """
        Load a stored fixpoint into the database.

        The returned result carries the fixpoint name, to be passed as
        parent_name when storing a follow-up fixpoint.
        """
        return self.replay(self.store.load(name))

    def compare(
        self,
        name: str,
        ignored_columns: Optional[Iterable[str]] = None,
        tables: Union[str, Iterable[str]] = ALL_TABLES,
    ) -> ComparisonResult:
        """
        Compare the database with a stored fixpoint.

        Args:
            name: Fixpoint to compare against
            ignored_columns: Columns left out of the comparison (manager
                default if None)
            tables: "all" or a list of table names

        Raises:
            NotFoundError: If the fixpoint is not stored.
        """
        if not self.store.exists(name):
            raise NotFoundError(name)

        if ignored_columns is None:
            ignored_columns = self.ignored_columns
        if not isinstance(tables, str):
            tables = list(tables)

        db_state = self.capture_component.read_all_tables()
        fixpoint_state = self.materialize(name)

        mismatches = compare_states(
            db_state,
            fixpoint_state,
            tables=tables,
            ignored_columns=ignored_columns,
            fixpoint_name=name,
        )
        return ComparisonResult(
            fixpoint_name=name,
            status=ComparisonStatus.COMPARED,
            mismatches=mismatches,
            tables_compared=select_tables(db_state, fixpoint_state, tables),
        )

    def compare_or_store(
        self,
        name: str,
        ignored_columns: Optional[Iterable[str]] = None,
        tables: Union[str, Iterable[str]] = ALL_TABLES,
        parent_name: Optional[str] = None,
    ) -> ComparisonResult:
        """
        Compare with fixpoint name, or create it from the database if missing.

        Returns:
            ComparisonResult; status is STORED if the fixpoint was created
            (nothing was compared)
        """
        if not self.store.exists(name):
            self.store_fixpoint(name, parent_name)
            return ComparisonResult(fixpoint_name=name, status=ComparisonStatus.STORED)
        return self.compare(name, ignored_columns=ignored_columns, tables=tables)
