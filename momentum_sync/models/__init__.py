"""Database models for momentum-sync.

Import all models here so Alembic can detect them during migration generation.
"""

from momentum_sync.models.indicators import Indicator
from momentum_sync.models.security import SecurityRecord

__all__ = [
    "Indicator",
    "SecurityRecord",
]
