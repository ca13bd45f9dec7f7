"""
pg_fixpoint - PostgreSQL database fixpoints for regression tests

Captures the content of a database as a fixpoint file, stores follow-up
fixpoints as deltas to a parent, loads fixpoints back into a database and
compares a live database with a fixpoint table by table.

Usage:
    # As a module
    python -m pg_fixpoint -d app_test compare signed_up

    # Programmatically
    from pg_fixpoint import FixpointManager

    manager = FixpointManager("tests/fixpoints", conn=conn)
    manager.store_unless_present("base")
    result = manager.compare("base")
"""

__version__ = "1.0.0"

from .snapshot import (
    ALL_TABLES,
    DEFAULT_IGNORED_COLUMNS,
    ComparisonResult,
    ComparisonStatus,
    CorruptArtifactError,
    CyclicChainError,
    DatabaseCapture,
    DatabaseRestore,
    Fixpoint,
    FixpointError,
    FixpointManager,
    FixpointStore,
    InvalidRowError,
    Mismatch,
    MissingTable,
    NotFoundError,
    RestoreError,
    RowSetMismatch,
    compare_states,
    compute_delta,
    materialize,
)
from .config import Config

__all__ = [
    # Version
    "__version__",
    # Engine
    "Fixpoint",
    "FixpointStore",
    "FixpointManager",
    "DatabaseCapture",
    "DatabaseRestore",
    "compute_delta",
    "materialize",
    "compare_states",
    # Comparison
    "ALL_TABLES",
    "DEFAULT_IGNORED_COLUMNS",
    "ComparisonResult",
    "ComparisonStatus",
    "Mismatch",
    "MissingTable",
    "RowSetMismatch",
    # Errors
    "FixpointError",
    "NotFoundError",
    "CorruptArtifactError",
    "CyclicChainError",
    "InvalidRowError",
    "RestoreError",
    # Config
    "Config",
]
