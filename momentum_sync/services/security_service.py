"""
Read and maintenance operations on the securities table.

PURPOSE: Back the GET (full table) and DELETE-by-ticker endpoints. Writes of
indicator values go through StateMerger, never through here.

CALLED BY: api/routes_webhook.py
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from momentum_sync.core.errors import StorageError
from momentum_sync.models.security import SecurityRecord
from momentum_sync.utils.logger import get_logger


logger = get_logger("services.security")


class SecurityService:
    """Stateless helpers over the securities table."""

    @staticmethod
    async def list_records(db: AsyncSession) -> list[SecurityRecord]:
        """
        Retrieve every tracked ticker, ordered by ticker.

        CALLED BY: GET /webhook

        Raises:
            StorageError: If the query fails
        """
        try:
            result = await db.execute(select(SecurityRecord).order_by(SecurityRecord.ticker))
            records = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("list_records_error", error=str(e))
            raise StorageError("failed to read securities") from e

        logger.info("records_listed", count=len(records))
        return records

    @staticmethod
    async def get_record(db: AsyncSession, ticker: str) -> Optional[SecurityRecord]:
        try:
            result = await db.execute(
                select(SecurityRecord)
                .where(SecurityRecord.ticker == ticker)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("get_record_error", error=str(e), ticker=ticker)
            raise StorageError(f"failed to read {ticker}", ticker=ticker) from e

    @staticmethod
    async def delete_record(db: AsyncSession, ticker: str) -> bool:
        """
        Delete one ticker's row.

        CALLED BY: DELETE /webhook/{ticker}

        Returns:
            bool: True if a row was removed

        Raises:
            StorageError: If the delete fails (rolled back)
        """
        try:
            result = await db.execute(delete(SecurityRecord).where(SecurityRecord.ticker == ticker))
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("delete_record_error", error=str(e), ticker=ticker)
            await db.rollback()
            raise StorageError(f"failed to delete {ticker}", ticker=ticker) from e

        deleted = result.rowcount > 0
        logger.info("record_deleted" if deleted else "record_not_found", ticker=ticker)
        return deleted
