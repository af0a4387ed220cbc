from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from momentum_sync.db.base import Base
from momentum_sync.models.indicators import Indicator


def _indicator_column() -> Mapped[str]:
    return mapped_column(Text, nullable=False, default="", server_default="")


class SecurityRecord(Base):
    """Current indicator state for one ticker (one row per instrument)."""

    __tablename__ = "securities"

    ticker: Mapped[str] = mapped_column(String(128), primary_key=True)

    signal: Mapped[str] = _indicator_column()
    sma_strategy: Mapped[str] = _indicator_column()
    occ: Mapped[str] = _indicator_column()
    adaptive_supertrend: Mapped[str] = _indicator_column()
    range_filter_daily: Mapped[str] = _indicator_column()
    range_filter_weekly: Mapped[str] = _indicator_column()
    pmax: Mapped[str] = _indicator_column()
    shinohara_intensity_ratio: Mapped[str] = _indicator_column()
    oscillators_daily_weekly: Mapped[str] = _indicator_column()
    monthly_oscillator: Mapped[str] = _indicator_column()

    analyst_price_target: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Last-modified: advanced on every successful merge
    date_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    # Transition timestamp: set only when the primary signal changes
    signal_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def indicator_value(self, indicator: Indicator) -> str:
        return getattr(self, indicator.column)

    def to_dict(self) -> Dict[str, Any]:
        """Named-field map of the record, used by the API and the sheet mirror."""
        data: Dict[str, Any] = {"ticker": self.ticker}
        for indicator in Indicator:
            data[indicator.column] = getattr(self, indicator.column)
        data["analyst_price_target"] = self.analyst_price_target
        data["date_updated"] = self.date_updated
        data["signal_changed_at"] = self.signal_changed_at
        return data
