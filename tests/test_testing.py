"""
Tests for the pytest helpers in pg_fixpoint.testing.
"""

import pytest

from pg_fixpoint.snapshot import NotFoundError
from pg_fixpoint.testing import LAST_RESTORED, FixpointAssertions, store_for_config

from tests.mocks import new_user


class TestCompareFixpoint:
    def test_missing_fixpoint_raises(self, fixpoints):
        with pytest.raises(NotFoundError):
            fixpoints.compare_fixpoint("base")

    def test_missing_fixpoint_is_stored_and_skipped(self, fixpoints):
        with pytest.raises(pytest.skip.Exception, match="did not exist yet"):
            fixpoints.compare_fixpoint("base", store_fixpoint_and_fail=True)
        assert fixpoints.manager.exists("base")

    def test_match(self, fixpoints):
        fixpoints.store_fixpoint("base")
        result = fixpoints.compare_fixpoint("base")
        assert result.matched

    def test_mismatch_fails_with_one_line_per_table(self, fixpoints, fixpoint_connection):
        fixpoints.store_fixpoint("base")
        fixpoint_connection.tables["comments"].rows.clear()
        fixpoint_connection.insert("audit_logs", ["id", "message"], [(1, "hello")])

        with pytest.raises(pytest.fail.Exception) as excinfo:
            fixpoints.compare_fixpoint("base")

        lines = str(excinfo.value).splitlines()
        assert "audit_logs not in fixpoint, but in database" in lines
        assert "comments not in database, but in fixpoint" in lines

    def test_tables_to_compare(self, fixpoints, fixpoint_connection):
        fixpoints.store_fixpoint("base")
        fixpoint_connection.tables["comments"].rows.clear()

        result = fixpoints.compare_fixpoint("base", tables_to_compare=["users", "posts"])

        assert result.tables_compared == ["users", "posts"]

    def test_ignored_columns_override(self, fixpoints, fixpoint_connection):
        fixpoints.store_fixpoint("base")
        for row in fixpoint_connection.tables["users"].rows:
            row["name"] = row["name"].upper()

        assert fixpoints.compare_fixpoint("base", ignored_columns=["name", "created_at", "updated_at"]).matched


class TestStoreFixpoint:
    def test_unless_present(self, fixpoints, fixpoint_connection):
        assert fixpoints.store_fixpoint_unless_present("base") is not None
        fixpoint_connection.tables["users"].rows.clear()

        assert fixpoints.store_fixpoint_unless_present("base") is None
        assert len(fixpoints.manager.materialize("base")["users"]) == 2


class TestLastRestored:
    def test_parent_is_last_restored_fixpoint(self, manager, database):
        manager.store_fixpoint("base")
        database.set_state({})
        assertions = FixpointAssertions(manager)

        assertions.restore_fixpoint("base")
        database.state["users"].append(new_user(3, "linus@example.com"))
        stored = assertions.store_fixpoint("signed_up", parent_fixname=LAST_RESTORED)

        assert assertions.last_restored == "base"
        assert stored.parent == "base"
        assert list(stored.tables) == ["users"]

    def test_skip_stores_delta_to_last_restored(self, manager, database):
        manager.store_fixpoint("base")
        database.set_state({})
        assertions = FixpointAssertions(manager)
        assertions.restore_fixpoint("base")

        with pytest.raises(pytest.skip.Exception):
            assertions.compare_fixpoint("same", store_fixpoint_and_fail=True, parent_fixname=LAST_RESTORED)

        stored = manager.load("same")
        assert stored.parent == "base"
        assert stored.tables == {}

    def test_nothing_restored(self, manager):
        with pytest.raises(ValueError, match="no fixpoint was restored"):
            FixpointAssertions(manager).store_fixpoint("x", parent_fixname=LAST_RESTORED)
        assert not manager.exists("x")


class _StubConfig:
    def __init__(self, rootpath, option=None, ini="tests/fixpoints"):
        self.rootpath = rootpath
        self._option = option
        self._ini = ini

    def getoption(self, name):
        assert name == "fixpoint_dir"
        return self._option

    def getini(self, name):
        assert name == "fixpoint_dir"
        return self._ini


class TestStoreForConfig:
    def test_relative_ini_dir(self, tmp_path):
        store = store_for_config(_StubConfig(tmp_path))
        assert store.base_dir == tmp_path / "tests" / "fixpoints"

    def test_option_wins(self, tmp_path):
        store = store_for_config(_StubConfig(tmp_path, option=str(tmp_path / "elsewhere")))
        assert store.base_dir == tmp_path / "elsewhere"
