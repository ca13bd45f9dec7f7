"""
Tests for DatabaseRestore against a fake psycopg2 connection.
"""

import pytest

from pg_fixpoint.snapshot import (
    DatabaseCapture,
    DatabaseRestore,
    Fixpoint,
    JsonDocument,
    RestoreError,
    materialize,
)
from pg_fixpoint.snapshot.restore import _adapt, dependency_order

from tests.mocks import FakeConnection, base_state, blog_connection


def _empty_blog():
    return blog_connection({name: [] for name in base_state()})


def _fixpoint_state():
    return Fixpoint.from_state(base_state()).tables


def _inserted_tables(conn):
    return [text.split('"')[3] for text, _ in conn.executed if text.startswith("INSERT INTO")]


class TestWriteAllTables:
    def test_loads_rows(self):
        conn = _empty_blog()

        result = DatabaseRestore(conn).write_all_tables(_fixpoint_state(), fixpoint_name="base")

        assert result.fixpoint_name == "base"
        assert result.tables_loaded == ["users", "posts", "comments"]
        assert result.rows_loaded == 5
        assert conn.commits == 1
        assert Fixpoint.from_state(DatabaseCapture(conn).read_all_tables()).tables == _fixpoint_state()

    def test_json_values_are_adapted(self):
        conn = _empty_blog()
        DatabaseRestore(conn).write_all_tables(_fixpoint_state())
        assert conn.tables["posts"].rows[0]["metadata"] == {"draft": False, "views": 3}

    def test_empty_tables_are_skipped(self):
        conn = _empty_blog()
        result = DatabaseRestore(conn).write_all_tables({"comments": [], "users": _fixpoint_state()["users"]})
        assert result.tables_loaded == ["users"]
        assert _inserted_tables(conn) == ["users"]

    def test_resets_sequences(self):
        conn = _empty_blog()

        result = DatabaseRestore(conn).write_all_tables(_fixpoint_state())

        assert result.sequences_reset == [
            "public.users_id_seq",
            "public.posts_id_seq",
            "public.comments_id_seq",
        ]
        assert ("public.users_id_seq", "users") in conn.sequence_resets

    def test_sequence_reset_disabled(self):
        conn = _empty_blog()
        result = DatabaseRestore(conn, reset_sequences=False).write_all_tables(_fixpoint_state())
        assert result.sequences_reset == []
        assert conn.sequence_resets == []


class TestForeignKeyOrder:
    def test_stored_fixpoint_loads_referenced_tables_first(self, store):
        store.save(Fixpoint.from_state(base_state(), name="base"))
        state = materialize(store.load("base"), store)
        assert list(state) == ["comments", "posts", "users"]
        conn = _empty_blog()

        result = DatabaseRestore(conn).write_all_tables(state, fixpoint_name="base")

        assert result.tables_loaded == ["users", "posts", "comments"]
        assert _inserted_tables(conn) == ["users", "posts", "comments"]
        assert len(conn.tables["comments"].rows) == 2
        assert not any(text == "SET CONSTRAINTS ALL DEFERRED" for text, _ in conn.executed)

    def test_missing_referenced_row_fails(self):
        conn = _empty_blog()
        state = _fixpoint_state()
        del state["users"]

        with pytest.raises(RestoreError, match="foreign key") as excinfo:
            DatabaseRestore(conn).write_all_tables(state)

        assert excinfo.value.table == "posts"
        assert conn.tables["posts"].rows == []

    def _cyclic_connection(self):
        conn = FakeConnection()
        conn.add_table("authors", ["id", "favorite_book_id"])
        conn.add_table("books", ["id", "author_id"])
        conn.add_foreign_key("authors", "favorite_book_id", "books")
        conn.add_foreign_key("books", "author_id", "authors")
        return conn

    def test_cycle_is_loaded_with_deferred_constraints(self):
        conn = self._cyclic_connection()
        state = {
            "authors": [{"id": 1, "favorite_book_id": 10}],
            "books": [{"id": 10, "author_id": 1}],
        }

        result = DatabaseRestore(conn).write_all_tables(state)

        assert sorted(result.tables_loaded) == ["authors", "books"]
        assert ("SET CONSTRAINTS ALL DEFERRED", None) in conn.executed
        assert conn.commits == 1

    def test_cycle_violation_fails_at_commit(self):
        conn = self._cyclic_connection()
        state = {
            "authors": [{"id": 1, "favorite_book_id": 99}],
            "books": [{"id": 10, "author_id": 1}],
        }

        with pytest.raises(RestoreError, match="foreign key"):
            DatabaseRestore(conn).write_all_tables(state)

        assert conn.commits == 0
        assert conn.tables["authors"].rows == []


class TestDependencyOrder:
    def test_parents_first_and_given_order_kept(self):
        order, cyclic = dependency_order(
            ["comments", "audit_logs", "posts", "users"],
            [("comments", "posts"), ("comments", "users"), ("posts", "users")],
        )
        assert order == ["audit_logs", "users", "posts", "comments"]
        assert cyclic == []

    def test_references_to_tables_not_loaded_are_ignored(self):
        order, _ = dependency_order(["comments"], [("comments", "posts")])
        assert order == ["comments"]

    def test_self_reference(self):
        order, cyclic = dependency_order(["categories"], [("categories", "categories")])
        assert order == ["categories"]
        assert cyclic == []

    def test_cycle_and_dependents_go_last(self):
        order, cyclic = dependency_order(
            ["a", "b", "c", "d"],
            [("a", "b"), ("b", "a"), ("c", "a")],
        )
        assert order == ["d", "a", "b", "c"]
        assert cyclic == ["a", "b", "c"]


class TestAdapt:
    def test_json_array_becomes_array_literal(self):
        value = [JsonDocument({"k": 'say "hi"'}), None, JsonDocument([1, 2])]
        assert _adapt(value) == '{"{\\"k\\": \\"say \\\\\\"hi\\\\\\"\\"}",NULL,"[1, 2]"}'

    def test_plain_array_is_unchanged(self):
        assert _adapt([1, 2]) == [1, 2]


class TestFailures:
    def test_conflict_rolls_back_everything(self):
        conn = _empty_blog()
        state = _fixpoint_state()
        conn.tables["comments"].rows.append({"id": 1, "post_id": 1, "user_id": 1, "body": "old", "score": 0.0})

        with pytest.raises(RestoreError) as excinfo:
            DatabaseRestore(conn).write_all_tables(state)

        assert excinfo.value.table == "comments"
        assert "duplicate key" in str(excinfo.value)
        assert conn.rollbacks == 1
        assert conn.commits == 0
        assert conn.tables["users"].rows == []
        assert [row["body"] for row in conn.tables["comments"].rows] == ["old"]

    def test_unknown_table(self):
        conn = _empty_blog()
        with pytest.raises(RestoreError, match='"ghosts"'):
            DatabaseRestore(conn).write_all_tables({"ghosts": [{"id": 1}]})
