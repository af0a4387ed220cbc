"""
PURPOSE: Mirror one ticker's committed record onto its row in the Google Sheet.

The sheet has no index, so each reconciliation scans the ticker column,
updates the matching row in place, or appends a new row when none matches.
Scan and write are two separate API calls; they run under a per-ticker lock
so that two webhooks for the same new instrument cannot both decide "not
found" and append duplicate rows. The stored record is re-read under that
lock, and a rate-limited or 5xx attempt is retried as a whole (rescan, then
write) without releasing it.

Local storage is the source of truth. A failed reconciliation never touches
the local record; it raises ExternalSyncError and the next successful
reconciliation for the ticker rewrites the whole row.

CALLED BY:
    - webhook/processor.py (after StateMerger commits)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from momentum_sync.core.errors import ExternalSyncError, TransientSheetError
from momentum_sync.core.locks import KeyedLockRegistry
from momentum_sync.models.indicators import Indicator
from momentum_sync.models.security import SecurityRecord
from momentum_sync.sync.sheets_client import SheetClient
from momentum_sync.utils.decorators import retry, timed
from momentum_sync.utils.logger import get_logger
from momentum_sync.utils.time_utils import format_sheet_timestamp

logger = get_logger(__name__)

# First eleven columns reproduce the original A:K layout; columns added by
# later schema versions go to the right so existing sheets keep positions.
SHEET_COLUMNS: tuple[str, ...] = (
    "ticker",
    Indicator.SMA_STRATEGY.value,
    Indicator.OCC.value,
    Indicator.ADAPTIVE_SUPERTREND.value,
    Indicator.RANGE_FILTER_DAILY.value,
    Indicator.RANGE_FILTER_WEEKLY.value,
    Indicator.PMAX.value,
    Indicator.SHINOHARA_INTENSITY_RATIO.value,
    Indicator.OSCILLATORS_DAILY_WEEKLY.value,
    Indicator.MONTHLY_OSCILLATOR.value,
    "date_updated",
    Indicator.SIGNAL.value,
    "analyst_price_target",
    "signal_changed_at",
)

# Row 1 holds the header
FIRST_DATA_ROW = 2

RecordLoader = Callable[[str], Awaitable[Optional[SecurityRecord]]]


@dataclass(frozen=True)
class SyncOutcome:
    """
    Result of one reconciliation.

    Attributes:
        ticker: Ticker as stored locally
        action: "updated" or "appended"
        row: 1-based sheet row that now holds the ticker (None after append,
             the API decides where INSERT_ROWS lands)
    """

    ticker: str
    action: str
    row: Optional[int] = None


def normalize_identity(ticker: str) -> str:
    """
    PURPOSE: Identity used to match a ticker against sheet rows and locks.

    Trims, collapses internal whitespace and case-folds, so "aapl ", "AAPL"
    and "ASX:  Meeka" / "asx: meeka" map to one row.
    """
    return " ".join(str(ticker).split()).casefold()


def column_letter(position: int) -> str:
    """
    PURPOSE: Convert a 1-based column position to A1 letters (1 -> A, 27 -> AA).
    """
    if position < 1:
        raise ValueError("column position must be >= 1")
    letters = ""
    while position:
        position, remainder = divmod(position - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return format_sheet_timestamp(value)
    return value


def _as_mapping(record: Union[SecurityRecord, Mapping[str, Any]]) -> Dict[str, Any]:
    return record.to_dict() if isinstance(record, SecurityRecord) else dict(record)


def record_to_row(record: Mapping[str, Any]) -> List[Any]:
    """
    PURPOSE: Project a named-field record onto the fixed sheet column order.

    Operates on the field map rather than on ORM attributes so schema
    versions that add fields only need a SHEET_COLUMNS entry.

    Args:
        record: Field map from SecurityRecord.to_dict() (missing keys render empty).

    Returns:
        List[Any]: One cell per SHEET_COLUMNS entry.
    """
    return [_cell(record.get(name)) for name in SHEET_COLUMNS]


def find_row_index(
    column_values: Sequence[Sequence[Any]],
    ticker: str,
    first_row: int = FIRST_DATA_ROW,
) -> Optional[int]:
    """
    PURPOSE: Locate the sheet row holding ticker.

    Args:
        column_values: Values returned for the ticker column, starting at first_row.
                       Blank rows come back as empty lists.
        ticker: Ticker to look for.
        first_row: Sheet row number of column_values[0].

    Returns:
        Optional[int]: 1-based row number of the first match, or None.
    """
    wanted = normalize_identity(ticker)
    for offset, row in enumerate(column_values):
        if row and normalize_identity(row[0]) == wanted:
            return first_row + offset
    return None


class SheetReconciler:
    """
    PURPOSE: Serialized scan-then-write of one ticker row in the mirror sheet.

    One instance is shared across requests so that its lock registry covers
    every concurrent webhook handled by this process. The row written is the
    record as committed when the lock is taken, not the snapshot the caller
    held while waiting, so an older request cannot overwrite a newer row.

    Attributes:
        sheet_name: Tab holding the mirror (e.g. "Sheet2").
        _client: Spreadsheet client (GoogleSheetsClient or a test double).
        _locks: Per-ticker lock registry keyed by normalize_identity().
    """

    def __init__(
        self,
        client: SheetClient,
        sheet_name: str = "Sheet2",
        locks: Optional[KeyedLockRegistry] = None,
    ) -> None:
        self.sheet_name = sheet_name
        self._client = client
        self._locks = locks or KeyedLockRegistry()
        self._last_column = column_letter(len(SHEET_COLUMNS))

    # ════════════════════════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════════════════════════

    @timed("sheet_reconcile_timed")
    async def reconcile(
        self,
        record: Union[SecurityRecord, Mapping[str, Any]],
        loader: Optional[RecordLoader] = None,
    ) -> SyncOutcome:
        """
        PURPOSE: Make the sheet row for record's ticker match the stored record.

        CALLED BY: WebhookProcessor.process()

        Args:
            record: Committed SecurityRecord, or its to_dict() field map.
            loader: Coroutine function returning the current stored record for
                    a ticker. Called once the ticker's lock is held; record is
                    used as-is when no loader is given or the row is gone.

        Returns:
            SyncOutcome: Whether the row was updated in place or appended.

        Raises:
            ExternalSyncError: The Sheets API failed, timed out or rejected the call.
        """
        snapshot = _as_mapping(record)
        ticker = snapshot["ticker"]
        key = normalize_identity(ticker)

        try:
            async with self._locks.hold(key):
                outcome = await self._sync_row(snapshot, loader)

        except ExternalSyncError as e:
            logger.error("sheet_reconcile_failed", ticker=ticker, error=e.message)
            if e.ticker is None:
                e.ticker = ticker
            raise
        except Exception as e:
            logger.error(
                "sheet_reconcile_failed",
                ticker=ticker,
                error=str(e),
                exception_type=type(e).__name__,
            )
            raise ExternalSyncError(f"sheet reconciliation failed for {ticker}", ticker=ticker) from e

        return outcome

    # ════════════════════════════════════════════════════════════════
    # Internal Helpers
    # ════════════════════════════════════════════════════════════════

    @retry(max_retries=1, delay=0.25, backoff=2.0, exceptions=(TransientSheetError,))
    async def _sync_row(
        self,
        snapshot: Dict[str, Any],
        loader: Optional[RecordLoader],
    ) -> SyncOutcome:
        # Caller holds the ticker lock. A retry rescans first, so an append
        # that landed before its error response is updated, not repeated.
        ticker = snapshot["ticker"]
        data = snapshot
        if loader is not None:
            current = await loader(ticker)
            if current is None:
                logger.warning("sheet_reconcile_record_missing", ticker=ticker)
            else:
                data = _as_mapping(current)
        row = record_to_row(data)

        column = await self._client.get_range(self._a1(f"A{FIRST_DATA_ROW}:A"))
        row_index = find_row_index(column, ticker)

        if row_index is None:
            await self._client.append_rows(self._row_range(FIRST_DATA_ROW), [row])
            logger.info("sheet_row_appended", ticker=ticker, sheet=self.sheet_name)
            return SyncOutcome(ticker=ticker, action="appended")

        await self._client.update_range(self._row_range(row_index), [row])
        logger.info("sheet_row_updated", ticker=ticker, sheet=self.sheet_name, row=row_index)
        return SyncOutcome(ticker=ticker, action="updated", row=row_index)

    def _a1(self, cells: str) -> str:
        name = self.sheet_name
        if not name.replace("_", "").isalnum():
            name = "'" + name.replace("'", "''") + "'"
        return f"{name}!{cells}"

    def _row_range(self, row: int) -> str:
        return self._a1(f"A{row}:{self._last_column}{row}")
