"""
Errors raised by the fixpoint engine.

Storage and structural problems are hard failures. Comparison mismatches are
not errors: they are returned as data (see compare.py).
"""

from typing import List, Optional


class FixpointError(Exception):
    """Base class for all fixpoint errors."""


class NotFoundError(FixpointError):
    """A fixpoint (or a link of its parent chain) is not in the store."""

    def __init__(self, name: str, referenced_by: Optional[str] = None):
        self.name = name
        self.referenced_by = referenced_by
        if referenced_by:
            message = f'Fixpoint "{name}" (parent of "{referenced_by}") does not exist'
        else:
            message = f'Fixpoint "{name}" does not exist'
        super().__init__(message)


class CorruptArtifactError(FixpointError):
    """A stored fixpoint could not be decoded."""

    def __init__(self, name: Optional[str], reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f'Fixpoint "{name}" is corrupt: {reason}')


class CyclicChainError(CorruptArtifactError):
    """The parent chain of a fixpoint loops back on itself."""

    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        super().__init__(
            self.chain[0] if self.chain else None,
            "cyclic parent chain: " + " -> ".join(self.chain),
        )


class InvalidRowError(FixpointError):
    """A row does not fit the table it belongs to."""

    def __init__(self, table: Optional[str], row_index: Optional[int], reason: str):
        self.table = table
        self.row_index = row_index
        self.reason = reason
        location = f'table "{table}"' if table else "row"
        if row_index is not None:
            location += f", row {row_index}"
        super().__init__(f"Invalid row in {location}: {reason}")


class RestoreError(FixpointError):
    """Loading a fixpoint into the database failed."""

    def __init__(self, table: Optional[str], message: str):
        self.table = table
        prefix = f'Restoring table "{table}" failed' if table else "Restore failed"
        super().__init__(f"{prefix}: {message}")
