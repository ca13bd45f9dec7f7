"""
Database capture - reads every table of a PostgreSQL schema.

Values arrive through psycopg2's default typecasters. Builtin range types come
back as psycopg2 Range objects and are stored as ranges. Intervals come back
as timedelta, which counts a month as 30 days, so "1 mon" is restored as
"30 days". Types psycopg2 has no typecaster for, such as hstore or composite
types, arrive as their text form.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence

from psycopg2 import sql

from .models import Row, TableState
from .values import JsonDocument


logger = logging.getLogger(__name__)

# pg_type OIDs of json and jsonb
JSON_TYPE_OIDS = {114, 3802}
# json[] and jsonb[]
JSON_ARRAY_TYPE_OIDS = {199, 3807}


class DatabaseCapture:
    """Reads the full content of a database schema."""

    def __init__(
        self,
        conn,
        schema: str = "public",
        exclude_tables: Iterable[str] = (),
        order_by_primary_key: bool = True,
    ):
        """
        Initialize database capture.

        Args:
            conn: psycopg2 database connection
            schema: Schema whose base tables are captured
            exclude_tables: Tables never captured (e.g. migration bookkeeping)
            order_by_primary_key: Read rows ordered by primary key when the
                table has one, so the read order is reproducible
        """
        self.conn = conn
        self.schema = schema
        self.exclude_tables = set(exclude_tables)
        self.order_by_primary_key = order_by_primary_key

    def read_all_tables(self) -> TableState:
        """
        Read every table and its rows.

        Returns:
            Table name -> rows, tables in name order
        """
        state = {}
        for table_name in self.list_tables():
            state[table_name] = self.read_table(table_name)
        logger.debug(
            f"Captured {len(state)} tables, {sum(len(rows) for rows in state.values())} rows "
            f"from schema {self.schema}"
        )
        return state

    def list_tables(self) -> List[str]:
        """Base tables of the schema, without excluded ones."""
        with self.conn.cursor() as cur:
            cur.execute("""
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = %s
                  AND table_type = 'BASE TABLE'
                ORDER BY table_name
            """, (self.schema,))
            names = [name for (name,) in cur.fetchall()]
        return [name for name in names if name not in self.exclude_tables]

    def primary_key(self, table_name: str) -> List[str]:
        """Primary key columns of a table in key order (empty if it has none)."""
        with self.conn.cursor() as cur:
            cur.execute("""
                SELECT kcu.column_name
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                  ON tc.constraint_name = kcu.constraint_name
                 AND tc.table_schema = kcu.table_schema
                 AND tc.table_name = kcu.table_name
                WHERE tc.constraint_type = 'PRIMARY KEY'
                  AND tc.table_schema = %s
                  AND tc.table_name = %s
                ORDER BY kcu.ordinal_position
            """, (self.schema, table_name))
            return [name for (name,) in cur.fetchall()]

    def read_table(self, table_name: str) -> List[Row]:
        """Read all rows of one table."""
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(self.schema, table_name))

        order_columns = self.primary_key(table_name) if self.order_by_primary_key else []
        if order_columns:
            query = query + sql.SQL(" ORDER BY {}").format(
                sql.SQL(", ").join([sql.Identifier(column) for column in order_columns])
            )

        with self.conn.cursor() as cur:
            cur.execute(query)
            columns = [(desc[0], desc[1]) for desc in cur.description]
            return [self._convert_row(columns, values) for values in cur.fetchall()]

    @staticmethod
    def _convert_row(columns: Sequence[tuple], values: Sequence[Any]) -> Row:
        row = {}
        for (name, type_code), value in zip(columns, values):
            row[name] = _convert_value(value, type_code)
        return row


def _convert_value(value: Any, type_code: Optional[int]) -> Any:
    """Turn a psycopg2 result value into a fixpoint value."""
    if value is None:
        return None
    if type_code in JSON_TYPE_OIDS:
        return JsonDocument(value)
    if type_code in JSON_ARRAY_TYPE_OIDS:
        return _json_elements(value)
    if isinstance(value, memoryview):
        return value.tobytes()
    return value


def _json_elements(value: Any) -> Any:
    """Wrap the elements of a (possibly nested) json array."""
    if value is None:
        return None
    if isinstance(value, list):
        return [_json_elements(item) for item in value]
    return JsonDocument(value)
