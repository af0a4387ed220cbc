"""
State merger for the securities store.

PURPOSE: Apply one IndicatorUpdate as an atomic, column-scoped upsert. Unseen
tickers are inserted with defaults for every column the update does not name;
known tickers have only the named columns rewritten. date_updated always
advances; signal_changed_at follows the transition tracker.

CALLED BY: webhook/processor.py
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from momentum_sync.core.errors import StorageError
from momentum_sync.models.indicators import Indicator
from momentum_sync.models.security import SecurityRecord
from momentum_sync.schemas.update import IndicatorUpdate
from momentum_sync.services.transition_tracker import (
    initial_transition_timestamp,
    transition_timestamp_clause,
)
from momentum_sync.utils.logger import get_logger
from momentum_sync.utils.time_utils import storage_now


logger = get_logger("services.state_merger")

_INSERT_BY_DIALECT: Dict[str, Callable[..., Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@dataclass(frozen=True)
class MergeResult:
    """
    Outcome of one merge.

    Attributes:
        record: The row as committed, re-read inside the merge transaction
        transitioned: Whether this update moved signal_changed_at
    """

    record: SecurityRecord
    transitioned: bool


class StateMerger:
    """
    Upserts IndicatorUpdates into the securities table.

    PURPOSE: Keep the per-ticker record the durable source of truth while
    letting partial updates for different indicators compose without loss.

    CALLED BY: WebhookProcessor
    """

    def __init__(self, primary: Indicator = Indicator.SIGNAL) -> None:
        self.primary = primary
        self._table = SecurityRecord.__table__

    def build_upsert(self, dialect_name: str, update: IndicatorUpdate, now) -> Any:
        """
        PURPOSE: Build the single INSERT ... ON CONFLICT statement for update.

        Only columns named by the update appear in the DO UPDATE SET clause,
        so unnamed indicators keep their stored values (COALESCE semantics
        expressed by omission rather than by per-column null checks).

        Args:
            dialect_name: "sqlite" or "postgresql".
            update: Validated update.
            now: Naive UTC timestamp used for date_updated.

        Returns:
            Insert: Executable statement.

        Raises:
            StorageError: If the database dialect has no upsert support here.
        """
        insert = _INSERT_BY_DIALECT.get(dialect_name)
        if insert is None:
            raise StorageError(f"unsupported database dialect: {dialect_name}", ticker=update.ticker)

        columns = update.column_values()
        touches_primary = update.touches(self.primary)

        stmt = insert(self._table).values(
            ticker=update.ticker,
            date_updated=now,
            signal_changed_at=initial_transition_timestamp(touches_primary, now),
            **columns,
        )

        set_: Dict[str, Any] = {name: stmt.excluded[name] for name in columns}
        set_["date_updated"] = stmt.excluded["date_updated"]
        if touches_primary:
            set_["signal_changed_at"] = transition_timestamp_clause(
                self._table, stmt.excluded, self.primary
            )

        return stmt.on_conflict_do_update(index_elements=[self._table.c.ticker], set_=set_)

    async def apply(self, db: AsyncSession, update: IndicatorUpdate) -> MergeResult:
        """
        Apply update in one transaction and return the committed record.

        PURPOSE: Atomic upsert. Every indicator pair of a multi-signal update
        is written by the same statement, so either all land or none do.

        CALLED BY: WebhookProcessor.process()

        Args:
            db: Async database session
            update: Validated IndicatorUpdate

        Returns:
            MergeResult: Committed record and whether the primary signal transitioned

        Raises:
            StorageError: On any database failure (the transaction is rolled back)
        """
        now = storage_now()
        logger.info(
            "state_merge_started",
            ticker=update.ticker,
            columns=sorted(update.column_values()),
        )

        try:
            stmt = self.build_upsert(db.get_bind().dialect.name, update, now)
            await db.execute(stmt)

            result = await db.execute(
                select(SecurityRecord)
                .where(SecurityRecord.ticker == update.ticker)
                .execution_options(populate_existing=True)
            )
            record = result.scalar_one()
            await db.commit()

        except SQLAlchemyError as e:
            logger.error(
                "state_merge_failed",
                ticker=update.ticker,
                error=str(e),
                exception_type=type(e).__name__,
            )
            await db.rollback()
            raise StorageError(f"failed to store update for {update.ticker}", ticker=update.ticker) from e

        transitioned = update.touches(self.primary) and record.signal_changed_at == now

        logger.info(
            "state_merged",
            ticker=update.ticker,
            date_updated=record.date_updated.isoformat(),
            transitioned=transitioned,
        )
        if transitioned:
            logger.info(
                "signal_transition",
                ticker=update.ticker,
                indicator=self.primary.value,
                signal=record.indicator_value(self.primary),
            )

        return MergeResult(record=record, transitioned=transitioned)
