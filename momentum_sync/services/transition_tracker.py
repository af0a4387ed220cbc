"""
PURPOSE: Decide when the primary signal "changed" and stamp signal_changed_at.

signal_changed_at answers "since when has the current primary signal held".
It moves only when an update carries a primary signal that differs from the
stored one; routine refreshes of other columns (or of the same signal) leave
it alone, and it is never cleared.

The comparison is expressed as a CASE inside the upsert statement so that it
reads the stored value under the same row lock as the write. Reading the
prior value in a separate SELECT would let two concurrent updates for one
ticker both see the old value and both stamp a transition.

CALLED BY:
    - services/state_merger.py (StateMerger.apply)
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Table, case
from sqlalchemy.sql.elements import ColumnElement

from momentum_sync.models.indicators import Indicator


def initial_transition_timestamp(touches_primary: bool, now: datetime) -> Optional[datetime]:
    """
    PURPOSE: Transition timestamp for a ticker seen for the first time.

    A new ticker whose first update supplies the primary signal counts as a
    change; one whose first update only touches other indicators has no
    transition yet.
    """
    return now if touches_primary else None


def transition_timestamp_clause(
    table: Table,
    excluded: Any,
    primary: Indicator,
) -> ColumnElement:
    """
    PURPOSE: Build the ON CONFLICT assignment for signal_changed_at.

    Evaluates to the incoming date_updated when the stored primary signal is
    distinct from the incoming one, and to the stored signal_changed_at
    otherwise. SET clauses see the pre-update row, so table.c[primary] is the
    previous value even though the same statement also overwrites it.

    Args:
        table: The securities table.
        excluded: The insert statement's `excluded` namespace.
        primary: Indicator whose changes count as transitions.

    Returns:
        ColumnElement: CASE expression for the SET clause.
    """
    stored = table.c[primary.column]
    incoming = excluded[primary.column]
    return case(
        (stored.is_distinct_from(incoming), excluded["date_updated"]),
        else_=table.c.signal_changed_at,
    )
