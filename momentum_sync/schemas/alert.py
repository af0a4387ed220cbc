"""
Inbound webhook payload schemas.

TradingView alert templates are hand-written per indicator, so two payload
shapes reach the endpoint:
    - single-indicator: {"ticker", "indicator"?, "signal", ...}
    - multi-signal:     {"ticker", "signals": [{"indicator", "signal"}, ...], ...}

These models only pin down the envelope. Indicator names, signal values and
numeric fields are typed loosely here and normalized by
webhook/normalizer.py, which decides what is rejected and what is skipped.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _AlertEnvelope(BaseModel):
    """
    Fields shared by both payload shapes.

    Attributes:
        ticker: Instrument identity exactly as TradingView sends it
        comment: Free-text note from the alert template (logged, not stored)
        strength: Optional signal strength (logged, not stored)
        analyst_price_target: Raw price target; accepts "", "false", null
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ticker: str
    comment: Optional[str] = None
    strength: Optional[Any] = None
    analyst_price_target: Optional[Any] = Field(default=None, alias="analystPriceTarget")

    @field_validator('ticker')
    @classmethod
    def validate_ticker(cls, v: str) -> str:
        """Ticker must contain something other than whitespace; stored as supplied."""
        if not v.strip():
            raise ValueError('ticker must not be empty')
        return v

    @field_validator('comment', mode='before')
    @classmethod
    def coerce_comment(cls, v: Any) -> Optional[str]:
        """Comments sometimes arrive as numbers from Pine placeholders."""
        if v is None or isinstance(v, str):
            return v
        return str(v)


class SingleIndicatorAlert(_AlertEnvelope):
    """
    One indicator/signal pair for one ticker.

    Attributes:
        indicator: Indicator column name; omitted means the primary signal
        signal: Signal value (string or numeric code)
    """

    indicator: Optional[Any] = None
    signal: Any = None


class MultiSignalAlert(_AlertEnvelope):
    """
    Several indicator/signal pairs for one ticker.

    Attributes:
        signals: Raw entries; each is validated individually by the normalizer
    """

    signals: List[Any]
