"""
Data models for the fixpoint engine.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import InvalidRowError
from .values import decode_value, encode_value, kind_of, values_equal


Row = Dict[str, Any]
TableState = Dict[str, List[Row]]

# Audit columns that change on every run
DEFAULT_IGNORED_COLUMNS = ("updated_at", "created_at")

FORMAT_VERSION = 1


def normalize_row(
    raw: Mapping[str, Any],
    ignored_columns: Iterable[str] = (),
    table: Optional[str] = None,
    row_index: Optional[int] = None,
) -> Row:
    """
    Build a normalized row from a raw database or decoded row.

    Ignored columns are dropped and the remaining columns are ordered by
    name, so equality and serialized output do not depend on the column
    order of the source.

    Raises:
        InvalidRowError: If a column name is not a string or a value has an
            unsupported type.
    """
    for column in raw:
        if not isinstance(column, str):
            raise InvalidRowError(table, row_index, f"column name {column!r} is not a string")

    ignored = set(ignored_columns)
    row = {}
    for column in sorted(c for c in raw if c not in ignored):
        value = raw[column]
        try:
            kind_of(value)
        except InvalidRowError as e:
            raise InvalidRowError(table, row_index, f'column "{column}": {e.reason}')
        row[column] = value
    return row


def row_equal(left: Mapping[str, Any], right: Mapping[str, Any]) -> bool:
    """Rows are equal when they hold the same columns with equal values."""
    return left.keys() == right.keys() and all(
        values_equal(left[column], right[column]) for column in left
    )


def rows_equal(left: Sequence[Mapping[str, Any]], right: Sequence[Mapping[str, Any]]) -> bool:
    """Compare two row sequences position by position."""
    return len(left) == len(right) and all(
        row_equal(a, b) for a, b in zip(left, right)
    )


@dataclass
class TableSnapshot:
    """Rows of one table, in read order."""
    name: str
    rows: List[Row] = field(default_factory=list)

    @classmethod
    def from_rows(cls, name: str, rows: Iterable[Mapping[str, Any]]) -> 'TableSnapshot':
        """Normalize rows and check that they share one column set."""
        normalized = [
            normalize_row(raw, table=name, row_index=index)
            for index, raw in enumerate(rows)
        ]
        snapshot = cls(name=name, rows=normalized)
        snapshot.validate()
        return snapshot

    @property
    def columns(self) -> List[str]:
        if not self.rows:
            return []
        return sorted(self.rows[0])

    def validate(self) -> None:
        """Raise InvalidRowError if a row's column set differs from the first row's."""
        expected = set(self.columns)
        for index, row in enumerate(self.rows):
            columns = set(row)
            if columns != expected:
                missing = sorted(expected - columns)
                extra = sorted(columns - expected)
                details = []
                if missing:
                    details.append(f"missing {', '.join(missing)}")
                if extra:
                    details.append(f"unexpected {', '.join(extra)}")
                raise InvalidRowError(
                    self.name, index,
                    "column set differs from the table's (" + "; ".join(details) + ")",
                )

    def records(self, ignored_columns: Iterable[str] = ()) -> List[Row]:
        """Rows with the ignored columns removed."""
        ignored = list(ignored_columns)
        return [
            normalize_row(row, ignored, table=self.name, row_index=index)
            for index, row in enumerate(self.rows)
        ]


@dataclass
class Fixpoint:
    """A captured database state, optionally stored as a delta to a parent.

    Attributes:
        name: Storage key (None for a capture that was not saved yet)
        tables: Table name -> rows, in capture order
        parent: Name of the parent fixpoint whose tables are inherited
        cleared: Tables that hold rows in the parent but are empty here
    """
    name: Optional[str]
    tables: TableState = field(default_factory=dict)
    parent: Optional[str] = None
    cleared: List[str] = field(default_factory=list)

    @classmethod
    def from_state(
        cls,
        state: Mapping[str, Iterable[Mapping[str, Any]]],
        name: Optional[str] = None,
        parent: Optional[str] = None,
        cleared: Optional[Iterable[str]] = None,
    ) -> 'Fixpoint':
        """Create a fixpoint from a table state, normalizing and validating every row."""
        tables = {}
        for table_name, rows in state.items():
            tables[table_name] = TableSnapshot.from_rows(table_name, rows).rows
        return cls(
            name=name,
            tables=tables,
            parent=parent,
            cleared=sorted(set(cleared or ())),
        )

    @property
    def table_names(self) -> List[str]:
        """Tables holding at least one row (empty tables count as absent)."""
        return [name for name, rows in self.tables.items() if rows]

    @property
    def row_count(self) -> int:
        return sum(len(rows) for rows in self.tables.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored JSON structure (empty tables are dropped)."""
        data = {
            "format": FORMAT_VERSION,
            "parent": self.parent,
            "tables": {
                name: [
                    {column: encode_value(value) for column, value in row.items()}
                    for row in rows
                ]
                for name, rows in self.tables.items()
                if rows
            },
        }
        if self.cleared:
            data["cleared"] = sorted(self.cleared)
        return data

    @classmethod
    def from_dict(cls, name: Optional[str], data: Any) -> 'Fixpoint':
        """
        Create from the stored JSON structure.

        Raises:
            ValueError: If the structure is malformed.
            InvalidRowError: If rows of a table have inconsistent columns.
        """
        if not isinstance(data, dict):
            raise ValueError("top level is not an object")

        unknown = set(data) - {"format", "parent", "tables", "cleared"}
        if unknown:
            raise ValueError(f"unknown keys {sorted(unknown)}")
        if data.get("format") != FORMAT_VERSION:
            raise ValueError(f"unsupported format {data.get('format')!r}")

        parent = data.get("parent")
        if parent is not None and (not isinstance(parent, str) or not parent):
            raise ValueError(f"parent must be a non-empty string, got {parent!r}")

        cleared = data.get("cleared", [])
        if not isinstance(cleared, list) or not all(isinstance(t, str) and t for t in cleared):
            raise ValueError("cleared must be a list of table names")

        tables = data.get("tables")
        if not isinstance(tables, dict):
            raise ValueError("tables is not an object")

        state = {}
        for table_name, rows in tables.items():
            if not table_name.strip():
                raise ValueError("blank table name")
            if table_name in cleared:
                raise ValueError(f'table "{table_name}" is both stored and cleared')
            if not isinstance(rows, list):
                raise ValueError(f'rows of table "{table_name}" are not a list')
            if not rows:
                raise ValueError(f'table "{table_name}" is stored without rows')
            decoded = []
            for index, row in enumerate(rows):
                if not isinstance(row, dict):
                    raise ValueError(f'row {index} of table "{table_name}" is not an object')
                try:
                    decoded.append({column: decode_value(value) for column, value in row.items()})
                except ValueError as e:
                    raise ValueError(f'row {index} of table "{table_name}": {e}')
            state[table_name] = decoded

        return cls.from_state(state, name=name, parent=parent, cleared=cleared)


@dataclass
class FixpointInfo:
    """Summary info for listing fixpoints."""
    name: str
    parent: Optional[str]
    table_count: int
    row_count: int
    cleared_count: int = 0
    size_bytes: int = 0


@dataclass
class RestoreResult:
    """Result of loading a fixpoint into a database."""
    fixpoint_name: Optional[str]
    tables_loaded: List[str] = field(default_factory=list)
    rows_loaded: int = 0
    sequences_reset: List[str] = field(default_factory=list)
