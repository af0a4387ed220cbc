"""
PURPOSE: Closed set of tracked indicators and their storage columns.

Every indicator accepted from a webhook must be a member of Indicator; the
member value is also the column name on the securities table. SQL column
lists are always built from these members, never from request strings.
"""

from enum import Enum
from typing import Optional


class Indicator(str, Enum):
    """Tracked indicator columns, in storage order."""

    SIGNAL = "signal"
    SMA_STRATEGY = "sma_strategy"
    OCC = "occ"
    ADAPTIVE_SUPERTREND = "adaptive_supertrend"
    RANGE_FILTER_DAILY = "range_filter_daily"
    RANGE_FILTER_WEEKLY = "range_filter_weekly"
    PMAX = "pmax"
    SHINOHARA_INTENSITY_RATIO = "shinohara_intensity_ratio"
    OSCILLATORS_DAILY_WEEKLY = "oscillators_daily_weekly"
    MONTHLY_OSCILLATOR = "monthly_oscillator"

    @property
    def column(self) -> str:
        return self.value

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)

    @classmethod
    def parse(cls, name: object) -> Optional["Indicator"]:
        """
        PURPOSE: Look up an indicator by its wire name.

        Matching is exact after trimming surrounding whitespace; TradingView
        alert templates send the column name verbatim.

        Args:
            name: Raw indicator field from the payload.

        Returns:
            Optional[Indicator]: The member, or None if the name is not tracked.
        """
        if not isinstance(name, str):
            return None
        try:
            return cls(name.strip())
        except ValueError:
            return None
