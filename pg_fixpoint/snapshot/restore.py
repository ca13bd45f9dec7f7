"""
Database restore - loads a materialized fixpoint into PostgreSQL.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json, execute_values

from .errors import RestoreError
from .models import RestoreResult, Row
from .values import JsonDocument


logger = logging.getLogger(__name__)


class DatabaseRestore:
    """Inserts fixpoint rows into a database.

    The target tables are expected to be empty: rows are inserted as they
    are, and any conflict with existing data fails the whole restore.
    """

    def __init__(
        self,
        conn,
        schema: str = "public",
        reset_sequences: bool = True,
        page_size: int = 500,
    ):
        """
        Initialize database restore.

        Args:
            conn: psycopg2 database connection
            schema: Schema the tables live in
            reset_sequences: Move serial/identity sequences past the loaded ids
            page_size: Rows per INSERT statement
        """
        self.conn = conn
        self.schema = schema
        self.reset_sequences = reset_sequences
        self.page_size = page_size

    def write_all_tables(
        self,
        state: Mapping[str, Sequence[Row]],
        fixpoint_name: Optional[str] = None,
    ) -> RestoreResult:
        """
        Insert all rows in one transaction.

        Strategy:
        1. Order the non-empty tables so referenced tables come first
        2. SET CONSTRAINTS ALL DEFERRED if foreign keys form a cycle
        3. INSERT the rows of every table, in that order
        4. Reset sequences of the loaded tables (if enabled)
        5. COMMIT, or ROLLBACK and raise on any database error

        Raises:
            RestoreError: If the database rejects the data.
        """
        result = RestoreResult(fixpoint_name=fixpoint_name)
        tables = [table_name for table_name, rows in state.items() if rows]
        table_name = None

        try:
            with self.conn.cursor() as cur:
                order, cyclic = dependency_order(tables, self._foreign_keys(cur))
                if cyclic:
                    # Only DEFERRABLE constraints can be postponed to COMMIT
                    logger.debug(f"Foreign keys form a cycle between {', '.join(cyclic)}")
                    cur.execute("SET CONSTRAINTS ALL DEFERRED")

                for table_name in order:
                    rows = state[table_name]
                    self._insert_rows(cur, table_name, rows)
                    result.tables_loaded.append(table_name)
                    result.rows_loaded += len(rows)

                if self.reset_sequences:
                    for table_name in result.tables_loaded:
                        result.sequences_reset.extend(self._reset_sequences(cur, table_name))
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise RestoreError(table_name, str(e).strip()) from e

        logger.info(
            f"Loaded {result.rows_loaded} rows into {len(result.tables_loaded)} tables"
            + (f" from fixpoint {fixpoint_name}" if fixpoint_name else "")
        )
        return result

    def _foreign_keys(self, cur) -> List[Tuple[str, str]]:
        """(referencing table, referenced table) pairs of the schema."""
        cur.execute("""
            SELECT DISTINCT child.relname, parent.relname
            FROM pg_constraint con
            JOIN pg_class child ON child.oid = con.conrelid
            JOIN pg_class parent ON parent.oid = con.confrelid
            JOIN pg_namespace ns ON ns.oid = child.relnamespace
            WHERE con.contype = 'f'
              AND ns.nspname = %s
        """, (self.schema,))
        return [(child, parent) for child, parent in cur.fetchall()]

    def _insert_rows(self, cur, table_name: str, rows: Sequence[Row]) -> None:
        columns = sorted(rows[0])
        query = sql.SQL("INSERT INTO {} ({}) OVERRIDING SYSTEM VALUE VALUES %s").format(
            sql.Identifier(self.schema, table_name),
            sql.SQL(", ").join([sql.Identifier(column) for column in columns]),
        )
        values = [tuple(_adapt(row[column]) for column in columns) for row in rows]

        logger.debug(f"Inserting {len(values)} rows into {table_name}")
        execute_values(cur, query, values, page_size=self.page_size)

    def _reset_sequences(self, cur, table_name: str) -> List[str]:
        """Point every sequence owned by the table past its current maximum."""
        cur.execute("""
            SELECT column_name,
                   pg_get_serial_sequence(
                       quote_ident(table_schema) || '.' || quote_ident(table_name),
                       column_name
                   )
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
            ORDER BY ordinal_position
        """, (self.schema, table_name))
        owned = [(column, sequence) for column, sequence in cur.fetchall() if sequence]

        for column, sequence in owned:
            cur.execute(
                sql.SQL(
                    "SELECT setval(%s, COALESCE(MAX({column}), 1), MAX({column}) IS NOT NULL) FROM {table}"
                ).format(
                    column=sql.Identifier(column),
                    table=sql.Identifier(self.schema, table_name),
                ),
                (sequence,),
            )
        return [sequence for _, sequence in owned]


def dependency_order(
    tables: Sequence[str],
    foreign_keys: Iterable[Tuple[str, str]],
) -> Tuple[List[str], List[str]]:
    """
    Order tables so that every referenced table precedes its referencing ones.

    Tables keep their given order where foreign keys leave a choice.
    Self-references are ignored.

    Args:
        tables: Tables to order
        foreign_keys: (referencing table, referenced table) pairs

    Returns:
        (ordered tables, tables on or behind a foreign key cycle); the
        latter are also the tail of the ordered list
    """
    loading = set(tables)
    parents: Dict[str, Set[str]] = {table: set() for table in tables}
    for child, parent in foreign_keys:
        if child != parent and child in loading and parent in loading:
            parents[child].add(parent)

    ordered: List[str] = []
    remaining = list(tables)
    while remaining:
        ready = [table for table in remaining if not parents[table] - set(ordered)]
        if not ready:
            break
        ordered.extend(ready)
        remaining = [table for table in remaining if table not in ready]

    return ordered + remaining, remaining


def _adapt(value: Any) -> Any:
    """Prepare a fixpoint value for psycopg2."""
    if isinstance(value, JsonDocument):
        return Json(value.value)
    if isinstance(value, list) and _holds_json(value):
        # Sent as an untyped literal so PostgreSQL casts it to the column's json[]/jsonb[]
        return _json_array_literal(value)
    return value


def _holds_json(items: List[Any]) -> bool:
    return any(
        isinstance(item, JsonDocument) or (isinstance(item, list) and _holds_json(item))
        for item in items
    )


def _json_array_literal(items: List[Any]) -> str:
    """PostgreSQL array literal for a list of JSON documents."""
    elements = []
    for item in items:
        if item is None:
            elements.append("NULL")
        elif isinstance(item, list):
            elements.append(_json_array_literal(item))
        else:
            text = json.dumps(item.value, sort_keys=True)
            elements.append('"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"')
    return "{" + ",".join(elements) + "}"
