"""
PURPOSE: Google Sheets client for the external mirror of the securities table.

Exposes the three calls the reconciler needs (get range, update range, append
rows) as coroutines. The Google client library is synchronous, so each call
runs in a worker thread. The timeout is enforced on the HTTP transport, and a
call that overruns it is still awaited to completion before the error is
raised, so no write is in flight once the caller moves on. Reads and range
updates are idempotent and retried on rate-limit and 5xx responses; appends
are not retried here (the reconciler rescans before trying again).

CALLED BY:
    - sync/reconciler.py (through the SheetClient protocol)
    - webhook/processor.py (construction from settings)
"""

import asyncio
import base64
import json
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from momentum_sync.config.settings import Settings
from momentum_sync.core.errors import ExternalSyncError, TransientSheetError
from momentum_sync.utils.decorators import retry
from momentum_sync.utils.logger import get_logger

logger = get_logger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Sheets API statuses worth retrying: quota exhaustion and server-side errors
_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class SheetClient(Protocol):
    """Minimal spreadsheet surface used by the reconciler."""

    async def get_range(self, range_name: str) -> List[List[Any]]:
        ...

    async def update_range(self, range_name: str, rows: List[List[Any]]) -> None:
        ...

    async def append_rows(self, range_name: str, rows: List[List[Any]]) -> None:
        ...


def load_credentials(cfg: Settings) -> service_account.Credentials:
    """
    PURPOSE: Build service-account credentials from configuration.

    GOOGLE_CREDS_BASE64 (base64 of the service-account JSON, as injected by
    the container secret) wins over GOOGLE_CREDENTIALS_FILE.

    Args:
        cfg: Application settings.

    Returns:
        service_account.Credentials: Credentials scoped for Sheets read/write.

    Raises:
        ExternalSyncError: If the credential blob is missing or unusable.
    """
    if cfg.GOOGLE_CREDS_BASE64.strip():
        source = "GOOGLE_CREDS_BASE64"
        try:
            info = json.loads(base64.b64decode(cfg.GOOGLE_CREDS_BASE64, validate=False))
        except ValueError as e:
            raise ExternalSyncError("GOOGLE_CREDS_BASE64 is not base64-encoded JSON") from e
    else:
        source = cfg.GOOGLE_CREDENTIALS_FILE
        try:
            info = json.loads(Path(cfg.GOOGLE_CREDENTIALS_FILE).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ExternalSyncError(
                f"cannot read Google credentials from {cfg.GOOGLE_CREDENTIALS_FILE}"
            ) from e

    try:
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SHEETS_SCOPES)
    except (ValueError, KeyError, TypeError) as e:
        raise ExternalSyncError(f"invalid service account credentials in {source}") from e

    logger.info("google_credentials_loaded", source=source)
    return credentials


class GoogleSheetsClient:
    """
    PURPOSE: Async facade over the Sheets v4 values API for one spreadsheet.

    googleapiclient service objects are not thread-safe, so one is built per
    worker thread and cached in thread-local storage. Credentials are loaded
    once, on first use, so the service can start without them when the
    mirror is not yet configured.

    Attributes:
        spreadsheet_id: Target spreadsheet.
        timeout: Per-call bound in seconds; exceeding it is an ExternalSyncError.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        credentials_factory: Callable[[], Any],
        timeout: float = 15.0,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self._credentials_factory = credentials_factory
        self._credentials: Optional[Any] = None
        self._credentials_lock = threading.Lock()
        self._local = threading.local()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "GoogleSheetsClient":
        return cls(
            spreadsheet_id=cfg.SPREADSHEET_ID,
            credentials_factory=lambda: load_credentials(cfg),
            timeout=cfg.SHEETS_TIMEOUT_SECONDS,
        )

    # ════════════════════════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════════════════════════

    async def get_range(self, range_name: str) -> List[List[Any]]:
        response = await self._call_idempotent(
            "get",
            lambda values: values.get(spreadsheetId=self.spreadsheet_id, range=range_name),
        )
        return response.get("values", []) if response else []

    async def update_range(self, range_name: str, rows: List[List[Any]]) -> None:
        await self._call_idempotent(
            "update",
            lambda values: values.update(
                spreadsheetId=self.spreadsheet_id,
                range=range_name,
                valueInputOption="USER_ENTERED",
                body={"values": rows},
            ),
        )

    async def append_rows(self, range_name: str, rows: List[List[Any]]) -> None:
        await self._call(
            "append",
            lambda values: values.append(
                spreadsheetId=self.spreadsheet_id,
                range=range_name,
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ),
        )

    # ════════════════════════════════════════════════════════════════
    # Internal Helpers
    # ════════════════════════════════════════════════════════════════

    @retry(max_retries=2, delay=0.5, backoff=2.0, exceptions=(TransientSheetError,))
    async def _call_idempotent(self, operation: str, make_request: Callable[[Any], Any]) -> Any:
        return await self._call(operation, make_request)

    async def _call(self, operation: str, make_request: Callable[[Any], Any]) -> Any:
        worker = asyncio.ensure_future(asyncio.to_thread(self._execute, operation, make_request))
        done, _ = await asyncio.wait({worker}, timeout=self.timeout)
        if worker in done:
            return worker.result()

        logger.error("sheets_call_timeout", operation=operation, timeout=self.timeout)
        # The worker thread cannot be cancelled; the transport timeout bounds it
        try:
            await worker
        except ExternalSyncError as late:
            logger.warning("sheets_call_failed_after_timeout", operation=operation, error=late.message)
        else:
            logger.warning("sheets_call_completed_after_timeout", operation=operation)
        raise ExternalSyncError(f"Sheets {operation} timed out after {self.timeout}s")

    def _execute(self, operation: str, make_request: Callable[[Any], Any]) -> Any:
        try:
            values = self._service().spreadsheets().values()
            return make_request(values).execute()
        except HttpError as e:
            status = int(getattr(e.resp, "status", 0) or 0)
            logger.warning("sheets_http_error", operation=operation, status=status, error=str(e))
            if status in _RETRYABLE_STATUSES:
                raise TransientSheetError(f"Sheets {operation} failed with HTTP {status}") from e
            raise ExternalSyncError(f"Sheets {operation} rejected with HTTP {status}") from e
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            logger.warning(
                "sheets_transport_error",
                operation=operation,
                error=str(e),
                exception_type=type(e).__name__,
            )
            raise ExternalSyncError(f"Sheets {operation} failed: {type(e).__name__}") from e

    def _service(self) -> Any:
        service = getattr(self._local, "service", None)
        if service is None:
            http = google_auth_httplib2.AuthorizedHttp(
                self._get_credentials(),
                http=httplib2.Http(timeout=self.timeout),
            )
            service = build("sheets", "v4", http=http, cache_discovery=False)
            self._local.service = service
        return service

    def _get_credentials(self) -> Any:
        with self._credentials_lock:
            if self._credentials is None:
                self._credentials = self._credentials_factory()
            return self._credentials
