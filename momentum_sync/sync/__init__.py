"""
PURPOSE: External spreadsheet mirror: Sheets client, credentials and the per-ticker reconciler.
"""

from momentum_sync.sync.reconciler import SheetReconciler, SyncOutcome, normalize_identity
from momentum_sync.sync.sheets_client import GoogleSheetsClient, SheetClient, load_credentials

__all__ = [
    "GoogleSheetsClient",
    "SheetClient",
    "SheetReconciler",
    "SyncOutcome",
    "load_credentials",
    "normalize_identity",
]
