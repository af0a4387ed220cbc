"""
Response schemas for the securities table.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SecurityResponse(BaseModel):
    """
    Current indicator state for one ticker.

    Attributes:
        ticker: Instrument identity as supplied by the webhook
        signal .. monthly_oscillator: Latest value per tracked indicator ("" if never set)
        analyst_price_target: Latest price target, null if never supplied
        date_updated: Last time any field of the record was written
        signal_changed_at: Last time the primary signal changed value
    """

    model_config = ConfigDict(from_attributes=True)

    ticker: str
    signal: str
    sma_strategy: str
    occ: str
    adaptive_supertrend: str
    range_filter_daily: str
    range_filter_weekly: str
    pmax: str
    shinohara_intensity_ratio: str
    oscillators_daily_weekly: str
    monthly_oscillator: str
    analyst_price_target: Optional[float] = None
    date_updated: datetime
    signal_changed_at: Optional[datetime] = None
