"""
Mock components for testing pg_fixpoint.

These mocks use a small blog schema (golden_data.py) to exercise capture,
restore and comparison without a PostgreSQL server.
"""

from .golden_data import (
    T0,
    T1,
    USERS,
    POSTS,
    COMMENTS,
    base_state,
    touched,
    new_user,
)

from .mock_database import (
    FakeConnection,
    FakeCursor,
    blog_connection,
    fake_execute_values,
    render_sql,
)
from .mock_snapshot import (
    InMemoryCapture,
    InMemoryRestore,
)

__all__ = [
    # Database mocks
    'FakeConnection',
    'FakeCursor',
    'blog_connection',
    'fake_execute_values',
    'render_sql',
    # Bridge mocks
    'InMemoryCapture',
    'InMemoryRestore',
    # Golden data
    'T0',
    'T1',
    'USERS',
    'POSTS',
    'COMMENTS',
    'base_state',
    'touched',
    'new_user',
]
