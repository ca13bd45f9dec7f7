"""
Mock database bridge components for testing.

Provides InMemoryCapture and InMemoryRestore that stand in for
DatabaseCapture and DatabaseRestore without any database connection.
A restore writes into the InMemoryCapture it targets, so a test can
restore, change the "database" and compare again.
"""

import copy
from typing import Any, Dict, List, Optional

from pg_fixpoint.snapshot import RestoreError, RestoreResult


State = Dict[str, List[Dict[str, Any]]]


class InMemoryCapture:
    """Mock database capture.

    Returns a deep copy of its state on every read.
    """

    def __init__(self, state: Optional[State] = None):
        self.state: State = copy.deepcopy(state or {})
        self.capture_count = 0

    def set_state(self, state: State) -> None:
        self.state = copy.deepcopy(state)

    def set_table(self, table_name: str, rows: List[Dict[str, Any]]) -> None:
        self.state[table_name] = copy.deepcopy(rows)

    def read_all_tables(self) -> State:
        self.capture_count += 1
        return copy.deepcopy(self.state)


class InMemoryRestore:
    """Mock database restore.

    Loads rows into a target InMemoryCapture, refusing to load into a
    table that already has rows. Tracks restore calls for verification.
    """

    def __init__(self, target: Optional[InMemoryCapture] = None):
        self.target = target if target is not None else InMemoryCapture()
        self.restore_count = 0
        self.restore_history: List[Optional[str]] = []
        self._should_fail = False
        self._fail_message = ""

    def force_failure(self, message: str = "Mock restore failure") -> None:
        """Force the next restore to fail."""
        self._should_fail = True
        self._fail_message = message

    def write_all_tables(self, state: State, fixpoint_name: Optional[str] = None) -> RestoreResult:
        if self._should_fail:
            self._should_fail = False
            raise RestoreError(None, self._fail_message)

        result = RestoreResult(fixpoint_name=fixpoint_name)
        for table_name, rows in state.items():
            if not rows:
                continue
            if self.target.state.get(table_name):
                raise RestoreError(table_name, "target table is not empty")
            self.target.set_table(table_name, rows)
            result.tables_loaded.append(table_name)
            result.rows_loaded += len(rows)

        self.restore_count += 1
        self.restore_history.append(fixpoint_name)
        return result
