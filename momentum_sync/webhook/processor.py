"""
PURPOSE: TradingView webhook processor for momentum-sync.

Runs one inbound alert through the pipeline:
    normalize -> merge into the securities table -> reconcile the sheet row.
The merge commits before the sheet is touched, so a Sheets failure leaves
the local record intact and surfaces as ExternalSyncError.

CALLED BY:
    - api/routes_webhook.py (POST /webhook)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from momentum_sync.config.settings import Settings, settings
from momentum_sync.core.errors import ExternalSyncError
from momentum_sync.models.indicators import Indicator
from momentum_sync.models.security import SecurityRecord
from momentum_sync.schemas.update import SkippedSignal
from momentum_sync.services.security_service import SecurityService
from momentum_sync.services.state_merger import StateMerger
from momentum_sync.sync.reconciler import SheetReconciler, SyncOutcome
from momentum_sync.sync.sheets_client import GoogleSheetsClient
from momentum_sync.utils.logger import get_logger
from momentum_sync.webhook.normalizer import SignalPolicy, normalize_alert

logger = get_logger(__name__)


@dataclass
class ProcessResult:
    """
    Outcome of a fully processed alert.

    Attributes:
        record: Committed SecurityRecord
        transitioned: Whether the primary signal changed with this alert
        sync: "synced" or "skipped" (no spreadsheet configured)
        sync_outcome: Reconciler result when synced
        skipped: Multi-signal entries dropped by the normalizer
    """

    record: SecurityRecord
    transitioned: bool
    sync: str
    sync_outcome: Optional[SyncOutcome] = None
    skipped: List[SkippedSignal] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "status": "ok",
            "message": "Webhook processed successfully",
            "ticker": self.record.ticker,
            "stored": True,
            "sync": self.sync,
            "transition": self.transitioned,
            "skipped_signals": [item.to_dict() for item in self.skipped],
        }
        if self.sync_outcome is not None:
            body["sheet_action"] = self.sync_outcome.action
        return body


class WebhookProcessor:
    """
    PURPOSE: Processes TradingView webhook alerts into stored and mirrored state.

    Holds the validation policy, the state merger and (when a spreadsheet is
    configured) the shared sheet reconciler, plus simple counters for the
    status endpoint.

    Attributes:
        policy: Signal validation policy.
        merger: StateMerger for the configured primary indicator.
        reconciler: SheetReconciler, or None when the mirror is disabled.
    """

    def __init__(
        self,
        policy: SignalPolicy,
        merger: StateMerger,
        reconciler: Optional[SheetReconciler] = None,
    ) -> None:
        self.policy = policy
        self.merger = merger
        self.reconciler = reconciler

        self._total_received: int = 0
        self._sync_failures: int = 0
        self._last_alert_time: Optional[str] = None

    @classmethod
    def from_settings(cls, cfg: Settings) -> "WebhookProcessor":
        """
        PURPOSE: Build the processor wired to Google Sheets when configured.

        CALLED BY: get_webhook_processor()
        """
        reconciler: Optional[SheetReconciler] = None
        if cfg.sheets_enabled():
            reconciler = SheetReconciler(
                client=GoogleSheetsClient.from_settings(cfg),
                sheet_name=cfg.SHEET_NAME,
            )
        else:
            logger.warning("sheet_sync_disabled", reason="SPREADSHEET_ID not set")

        return cls(
            policy=SignalPolicy.from_settings(cfg),
            merger=StateMerger(primary=Indicator(cfg.PRIMARY_INDICATOR)),
            reconciler=reconciler,
        )

    # ════════════════════════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════════════════════════

    async def process(self, db: AsyncSession, payload: Mapping[str, Any]) -> ProcessResult:
        """
        PURPOSE: Validate, store and mirror one webhook payload.

        CALLED BY: POST /webhook route handler

        Args:
            db: Async database session for the merge.
            payload: Decoded JSON body.

        Returns:
            ProcessResult: Committed record, transition flag and sync status.

        Raises:
            ValidationError: Payload rejected before any storage access.
            StorageError: Merge failed and was rolled back.
            ExternalSyncError: Merge committed but the sheet could not be reconciled.
        """
        self._total_received += 1
        self._last_alert_time = datetime.now(timezone.utc).isoformat()

        normalized = normalize_alert(payload, self.policy)
        update = normalized.update

        logger.info(
            "webhook_alert_accepted",
            ticker=update.ticker,
            indicators={indicator.value: value for indicator, value in update.values.items()},
            strength=update.strength,
            comment=update.comment,
        )

        merge = await self.merger.apply(db, update)

        if self.reconciler is None:
            return ProcessResult(
                record=merge.record,
                transitioned=merge.transitioned,
                sync="skipped",
                skipped=normalized.skipped,
            )

        try:
            outcome = await self.reconciler.reconcile(
                merge.record,
                loader=lambda ticker: SecurityService.get_record(db, ticker),
            )
        except ExternalSyncError:
            self._sync_failures += 1
            logger.warning("webhook_stored_but_not_synced", ticker=update.ticker)
            raise

        return ProcessResult(
            record=merge.record,
            transitioned=merge.transitioned,
            sync="synced",
            sync_outcome=outcome,
            skipped=normalized.skipped,
        )

    def get_status(self) -> Dict[str, Any]:
        """
        PURPOSE: Return current processor status.

        CALLED BY: GET /webhook/status

        Returns:
            dict: {total_received, sync_failures, last_alert_time, sheet_sync_enabled,
                   primary_indicator, signal_policy}
        """
        return {
            "total_received": self._total_received,
            "sync_failures": self._sync_failures,
            "last_alert_time": self._last_alert_time,
            "sheet_sync_enabled": self.reconciler is not None,
            "primary_indicator": self.merger.primary.value,
            "signal_policy": self.policy.mode,
        }


# ════════════════════════════════════════════════════════════════
# Module-level singleton
# ════════════════════════════════════════════════════════════════

_processor_instance: Optional[WebhookProcessor] = None


def get_webhook_processor() -> WebhookProcessor:
    """
    PURPOSE: Return the module-level WebhookProcessor singleton.

    Creates the instance on first call; subsequent calls return the same
    object, so every request shares one reconciler and its lock registry.

    CALLED BY: routes_webhook.py route handlers (FastAPI Depends)

    Returns:
        WebhookProcessor: Singleton processor instance.
    """
    global _processor_instance
    if _processor_instance is None:
        _processor_instance = WebhookProcessor.from_settings(settings)
    return _processor_instance
