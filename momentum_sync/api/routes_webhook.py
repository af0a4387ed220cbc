"""
PURPOSE: TradingView webhook API routes for momentum-sync.

Provides the inbound alert endpoint and read/maintenance endpoints over the
securities table:
    POST   /webhook            store an alert and mirror it to the sheet
    GET    /webhook            full current table
    GET    /webhook/status     processor counters
    GET    /webhook/{ticker}   one record
    DELETE /webhook/{ticker}   remove one record

Errors from the pipeline (ValidationError, StorageError, ExternalSyncError)
propagate to the app-level handler in main.py, which maps each family to its
own status code.

CALLED BY:
    - TradingView alert webhooks (POST)
    - Operators and dashboards (GET / DELETE)
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from momentum_sync.core.rate_limit import READ_LIMIT, WEBHOOK_LIMIT, limiter
from momentum_sync.db.engine import get_db
from momentum_sync.schemas.security import SecurityResponse
from momentum_sync.services.security_service import SecurityService
from momentum_sync.utils.logger import get_logger
from momentum_sync.webhook.processor import WebhookProcessor, get_webhook_processor

logger = get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


# ════════════════════════════════════════════════════════════════
# Inbound Endpoint
# ════════════════════════════════════════════════════════════════


@router.post("")
@limiter.limit(WEBHOOK_LIMIT)
async def receive_alert(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> Dict[str, Any]:
    """
    PURPOSE: Receive a TradingView alert, merge it into the ticker's record and sync the sheet.

    Accepts either payload shape:
      - {"ticker", "indicator"?, "signal", "analystPriceTarget"?, "strength"?, "comment"?}
      - {"ticker", "signals": [{"indicator", "signal"}, ...], ...}

    Args:
        request: FastAPI Request (required by slowapi rate limiter).
        payload: Decoded JSON object.

    Returns:
        dict: {"status": "ok", "ticker", "stored", "sync", "transition", "skipped_signals"}

    Raises:
        HTTP 400: Unknown indicator, rejected signal or unusable payload (nothing stored).
        HTTP 422: Body is not a JSON object.
        HTTP 429: Rate limit exceeded.
        HTTP 500: Local storage failed (nothing stored).
        HTTP 502: Stored locally, sheet sync failed (safe to retry).
    """
    logger.info(
        "webhook_alert_received",
        ticker=payload.get("ticker"),
        indicator=payload.get("indicator"),
        multi_signal="signals" in payload,
    )

    result = await processor.process(db, payload)

    logger.info(
        "webhook_processed",
        ticker=result.record.ticker,
        sync=result.sync,
        transition=result.transitioned,
    )
    return result.to_response()


# ════════════════════════════════════════════════════════════════
# Read / Maintenance Endpoints
# ════════════════════════════════════════════════════════════════


@router.get("", response_model=List[SecurityResponse])
@limiter.limit(READ_LIMIT)
async def list_securities(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> List[SecurityResponse]:
    """
    PURPOSE: Return the full current securities table.

    CALLED BY: Dashboards, spreadsheet rebuild scripts.
    """
    records = await SecurityService.list_records(db)
    return [SecurityResponse.model_validate(record) for record in records]


@router.get("/status")
async def get_webhook_status(
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> Dict[str, Any]:
    """
    PURPOSE: Return webhook processor counters and sync configuration.
    """
    status_data = processor.get_status()
    status_data["webhook_url_hint"] = "/webhook"
    return status_data


@router.get("/{ticker:path}", response_model=SecurityResponse)
async def get_security(
    ticker: str,
    db: AsyncSession = Depends(get_db),
) -> SecurityResponse:
    """
    PURPOSE: Return one ticker's record.

    Raises:
        HTTP 404: Ticker has never been stored.
    """
    record = await SecurityService.get_record(db, ticker)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Ticker '{ticker}' not found")
    return SecurityResponse.model_validate(record)


@router.delete("/{ticker:path}")
async def delete_security(
    ticker: str,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    PURPOSE: Delete one ticker's record. The sheet row is left for the operator.

    Raises:
        HTTP 404: Ticker has never been stored.
    """
    deleted = await SecurityService.delete_record(db, ticker)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Ticker '{ticker}' not found")
    return {"status": "deleted", "ticker": ticker}
