"""
Comparison of a database state with a fixpoint state.

Mismatches are returned as data, one per table, so a caller can report
every discrepancy of a run at once.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from .models import DEFAULT_IGNORED_COLUMNS, Row, TableSnapshot, row_equal, rows_equal


logger = logging.getLogger(__name__)

ALL_TABLES = "all"


class MissingDirection(str, Enum):
    """Which side of a comparison holds a table."""
    IN_DATABASE_ONLY = "in database but not fixpoint"
    IN_FIXPOINT_ONLY = "in fixpoint but not database"


class ComparisonStatus(str, Enum):
    """Outcome of comparing against a named fixpoint."""
    COMPARED = "compared"
    STORED = "stored"       # fixpoint was missing and has been created


@dataclass
class Mismatch:
    """A table whose database rows do not match the fixpoint."""
    table: str

    @property
    def message(self) -> str:
        return f"{self.table} does not match fixpoint"


@dataclass
class MissingTable(Mismatch):
    """A table holds rows on one side only."""
    direction: MissingDirection = MissingDirection.IN_DATABASE_ONLY

    @property
    def message(self) -> str:
        if self.direction == MissingDirection.IN_DATABASE_ONLY:
            return f"{self.table} not in fixpoint, but in database"
        return f"{self.table} not in database, but in fixpoint"


@dataclass
class RowSetMismatch(Mismatch):
    """A table holds different rows on the two sides."""
    fixpoint_name: Optional[str] = None
    database_rows: List[Row] = field(default_factory=list)
    fixpoint_rows: List[Row] = field(default_factory=list)

    @property
    def first_difference(self) -> int:
        """Index of the first row that differs (or the shorter length)."""
        for index, (db_row, fp_row) in enumerate(zip(self.database_rows, self.fixpoint_rows)):
            if not row_equal(db_row, fp_row):
                return index
        return min(len(self.database_rows), len(self.fixpoint_rows))

    @property
    def message(self) -> str:
        return (
            f'Database records for table "{self.table}" did not match fixpoint '
            f'"{self.fixpoint_name}" ({len(self.database_rows)} vs {len(self.fixpoint_rows)} rows, '
            f"first difference at row {self.first_difference}). "
            "Consider removing the fixpoint and re-running the test if the change is intended."
        )


@dataclass
class ComparisonResult:
    """Result of comparing the database with a named fixpoint."""
    fixpoint_name: str
    status: ComparisonStatus = ComparisonStatus.COMPARED
    mismatches: List[Mismatch] = field(default_factory=list)
    tables_compared: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.status == ComparisonStatus.COMPARED and not self.mismatches

    @property
    def stored(self) -> bool:
        return self.status == ComparisonStatus.STORED


def _present(state: Mapping[str, Sequence[Row]]) -> List[str]:
    return [name for name, rows in state.items() if rows]


def select_tables(
    db_state: Mapping[str, Sequence[Row]],
    fixpoint_state: Mapping[str, Sequence[Row]],
    tables: Union[str, Iterable[str]] = ALL_TABLES,
) -> List[str]:
    """Resolve a table selector to the list of table names to compare."""
    if isinstance(tables, str):
        if tables != ALL_TABLES:
            raise ValueError(f"tables must be {ALL_TABLES!r} or a list of table names, got {tables!r}")
        names = _present(db_state) + _present(fixpoint_state)
    else:
        names = list(tables)
    # dict keeps first-seen order
    return list(dict.fromkeys(names))


def compare_states(
    db_state: Mapping[str, Sequence[Row]],
    fixpoint_state: Mapping[str, Sequence[Row]],
    tables: Union[str, Iterable[str]] = ALL_TABLES,
    ignored_columns: Iterable[str] = DEFAULT_IGNORED_COLUMNS,
    fixpoint_name: Optional[str] = None,
) -> List[Mismatch]:
    """
    Compare two materialized states table by table.

    A table with no rows counts as absent, because empty tables are never
    stored in fixpoints. Rows are compared as ordered sequences: the read
    order of the database is assumed to be stable, so nothing is sorted.

    Args:
        db_state: Table name -> rows read from the database
        fixpoint_state: Table name -> rows of the materialized fixpoint
        tables: "all" or an explicit list of table names
        ignored_columns: Columns removed from every row before comparing
        fixpoint_name: Name used in mismatch messages

    Returns:
        List of mismatches (empty if the states match)
    """
    ignored = list(ignored_columns)
    mismatches: List[Mismatch] = []

    for table_name in select_tables(db_state, fixpoint_state, tables):
        db_rows = TableSnapshot(table_name, list(db_state.get(table_name) or [])).records(ignored)
        fp_rows = TableSnapshot(table_name, list(fixpoint_state.get(table_name) or [])).records(ignored)

        if not db_rows and not fp_rows:
            continue
        if not fp_rows:
            mismatches.append(MissingTable(table_name, MissingDirection.IN_DATABASE_ONLY))
        elif not db_rows:
            mismatches.append(MissingTable(table_name, MissingDirection.IN_FIXPOINT_ONLY))
        elif not rows_equal(db_rows, fp_rows):
            mismatches.append(RowSetMismatch(
                table=table_name,
                fixpoint_name=fixpoint_name,
                database_rows=db_rows,
                fixpoint_rows=fp_rows,
            ))

    if mismatches:
        logger.info(
            f"{len(mismatches)} table(s) differ from fixpoint {fixpoint_name}: "
            + ", ".join(m.table for m in mismatches)
        )
    return mismatches
