"""
Business logic layer for momentum-sync.

PURPOSE: Services sit between the webhook processor / API routes and the
securities table. They are stateless and take the session as an argument.

CALLED BY: webhook/processor.py, api/routes_webhook.py

Services:
    - StateMerger: Column-scoped upsert of indicator updates
    - SecurityService: Table reads and delete-by-ticker
"""

from momentum_sync.services.security_service import SecurityService
from momentum_sync.services.state_merger import MergeResult, StateMerger

__all__ = [
    "MergeResult",
    "SecurityService",
    "StateMerger",
]
