"""
PURPOSE: Error taxonomy for the webhook ingest and sheet sync pipeline.

Three failure families are kept distinct so the HTTP layer can tell callers
where a request stopped:
    - ValidationError:   caller sent something unusable (client error, no retry)
    - StorageError:      local persistence failed (nothing was committed)
    - ExternalSyncError: local state is committed but the sheet mirror lagged
"""

from typing import Optional


class MomentumSyncError(Exception):
    """Base class for all errors raised by momentum-sync."""

    code: str = "MomentumSyncError"

    def __init__(self, message: str, *, ticker: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.ticker = ticker


class ValidationError(MomentumSyncError):
    """Payload could not be turned into an IndicatorUpdate."""

    code = "ValidationError"


class InvalidIndicator(ValidationError):
    """Indicator name is not part of the tracked indicator set."""

    code = "InvalidIndicator"

    def __init__(self, indicator: str, *, ticker: Optional[str] = None) -> None:
        super().__init__(f"invalid indicator: {indicator}", ticker=ticker)
        self.indicator = indicator


class InvalidSignal(ValidationError):
    """Signal value rejected by the configured signal policy."""

    code = "InvalidSignal"

    def __init__(self, signal: str, *, ticker: Optional[str] = None) -> None:
        super().__init__(f"invalid signal: {signal}", ticker=ticker)
        self.signal = signal


class StorageError(MomentumSyncError):
    """Local database write or read failed; the update was rolled back."""

    code = "StorageError"


class ExternalSyncError(MomentumSyncError):
    """
    Spreadsheet mirror could not be reconciled.

    Raised only after the local record has been committed, so retrying the
    whole request is safe: the merge is idempotent and the reconciler
    re-derives the row from the stored record.
    """

    code = "ExternalSyncError"
    retryable: bool = True


class TransientSheetError(ExternalSyncError):
    """Rate-limited or 5xx response from the Sheets API; eligible for retry."""

    code = "TransientSheetError"
