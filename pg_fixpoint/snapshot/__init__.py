"""
Fixpoint engine for pg_fixpoint.

Captures database content as fixpoints that can be stored incrementally
against a parent, replayed into a database and compared with a live
database. Key pieces:

- Fixpoint / TableSnapshot: captured state and row normalization
- FixpointStore: deterministic JSON files, one per fixpoint
- compute_delta / materialize: parent chains
- compare_states: per-table comparison with ignored columns
- FixpointManager: the workflow used by tests and the CLI
"""

from .errors import (
    FixpointError,
    NotFoundError,
    CorruptArtifactError,
    CyclicChainError,
    InvalidRowError,
    RestoreError,
)
from .values import ValueKind, JsonDocument, kind_of
from .models import (
    DEFAULT_IGNORED_COLUMNS,
    Fixpoint,
    FixpointInfo,
    RestoreResult,
    TableSnapshot,
    normalize_row,
)
from .store import FixpointStore
from .delta import compute_delta, lineage, materialize
from .compare import (
    ALL_TABLES,
    ComparisonResult,
    ComparisonStatus,
    Mismatch,
    MissingDirection,
    MissingTable,
    RowSetMismatch,
    compare_states,
)
from .capture import DatabaseCapture
from .restore import DatabaseRestore
from .manager import FixpointManager

__all__ = [
    'FixpointError',
    'NotFoundError',
    'CorruptArtifactError',
    'CyclicChainError',
    'InvalidRowError',
    'RestoreError',
    'ValueKind',
    'JsonDocument',
    'kind_of',
    'DEFAULT_IGNORED_COLUMNS',
    'Fixpoint',
    'FixpointInfo',
    'RestoreResult',
    'TableSnapshot',
    'normalize_row',
    'FixpointStore',
    'compute_delta',
    'lineage',
    'materialize',
    'ALL_TABLES',
    'ComparisonResult',
    'ComparisonStatus',
    'Mismatch',
    'MissingDirection',
    'MissingTable',
    'RowSetMismatch',
    'compare_states',
    'DatabaseCapture',
    'DatabaseRestore',
    'FixpointManager',
]
