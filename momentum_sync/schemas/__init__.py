"""
Pydantic schemas and update types for the momentum-sync API.
"""

from .alert import MultiSignalAlert, SingleIndicatorAlert
from .security import SecurityResponse
from .update import IndicatorUpdate, NormalizedAlert, SkippedSignal

__all__ = [
    # Inbound payloads
    "SingleIndicatorAlert",
    "MultiSignalAlert",
    # Normalized updates
    "IndicatorUpdate",
    "NormalizedAlert",
    "SkippedSignal",
    # Responses
    "SecurityResponse",
]
