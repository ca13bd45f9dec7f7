"""
Delta engine - incremental fixpoints and chain materialization.

A fixpoint with a parent stores only the tables whose rows differ from the
parent's materialized state. Materializing walks the chain back to its root
and folds every level on top of the previous one: a level's table replaces
the whole table, and a level's cleared tables are removed.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, TYPE_CHECKING

from .errors import CyclicChainError, NotFoundError
from .models import Fixpoint, TableState, rows_equal

if TYPE_CHECKING:
    from .store import FixpointStore


logger = logging.getLogger(__name__)


def compute_delta(
    full_state: Mapping[str, Iterable[Mapping[str, Any]]],
    parent_name: Optional[str] = None,
    store: Optional['FixpointStore'] = None,
    name: Optional[str] = None,
) -> Fixpoint:
    """
    Build a fixpoint for a captured state, relative to an optional parent.

    Without a parent the fixpoint holds the whole state. With a parent it
    holds only the tables that differ from the parent's materialized state;
    tables that hold rows in the parent but none in full_state are recorded
    as cleared.

    Args:
        full_state: Table name -> rows, as read from the database
        parent_name: Name of the parent fixpoint, or None
        store: Store to load the parent chain from (required with a parent)
        name: Name for the new fixpoint

    Raises:
        NotFoundError: If the parent (or a link of its chain) is not stored.
    """
    current = Fixpoint.from_state(full_state, name=name)
    if parent_name is None:
        return current

    if store is None:
        raise ValueError("A store is required to compute a delta against a parent")

    parent_state = materialize(store.load(parent_name), store)

    # Empty tables never go into the delta; emptied ones are listed in cleared
    tables = {
        table_name: rows for table_name, rows in current.tables.items()
        if rows and not rows_equal(rows, parent_state.get(table_name, []))
    }
    cleared = [
        table_name for table_name, rows in parent_state.items()
        if rows and not current.tables.get(table_name)
    ]

    logger.debug(
        f"Delta against {parent_name}: {len(tables)} changed, {len(cleared)} cleared"
    )
    return Fixpoint(name=name, tables=tables, parent=parent_name, cleared=sorted(cleared))


def lineage(fixpoint: Fixpoint, store: Optional['FixpointStore'] = None) -> List[Fixpoint]:
    """
    Resolve the parent chain of a fixpoint.

    Returns:
        The chain in root-to-leaf order, ending with the given fixpoint

    Raises:
        CyclicChainError: If a fixpoint name repeats along the chain.
        NotFoundError: If a parent is not stored.
    """
    chain = [fixpoint]
    visited = [fixpoint.name]
    current = fixpoint

    while current.parent is not None:
        if current.parent in visited:
            raise CyclicChainError(visited + [current.parent])
        if store is None:
            raise ValueError(
                f"A store is required to resolve parent {current.parent!r} of {current.name!r}"
            )
        try:
            parent = store.load(current.parent)
        except NotFoundError:
            raise NotFoundError(current.parent, referenced_by=current.name) from None
        current = parent
        chain.append(current)
        visited.append(current.name)

    chain.reverse()
    return chain


def materialize(fixpoint: Fixpoint, store: Optional['FixpointStore'] = None) -> TableState:
    """
    Resolve a fixpoint and its parent chain into the full table state.

    Raises:
        CyclicChainError: If the parent chain loops.
        NotFoundError: If a link of the chain is not stored.
    """
    state: TableState = {}
    for level in lineage(fixpoint, store):
        for table_name in level.cleared:
            state.pop(table_name, None)
        for table_name, rows in level.tables.items():
            state[table_name] = [dict(row) for row in rows]
    return state
