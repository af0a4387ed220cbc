"""
Validated update types handed from the normalizer to the state merger.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from momentum_sync.models.indicators import Indicator


@dataclass(frozen=True)
class IndicatorUpdate:
    """
    A validated, column-scoped instruction for one ticker.

    Attributes:
        ticker: Instrument identity as supplied
        values: Indicator -> signal value, always a subset of Indicator
        analyst_price_target: Parsed target, None when absent
        strength: Auxiliary strength token (not persisted)
        comment: Auxiliary comment (not persisted)
    """

    ticker: str
    values: Dict[Indicator, str]
    analyst_price_target: Optional[float] = None
    strength: Optional[str] = None
    comment: Optional[str] = None

    def touches(self, indicator: Indicator) -> bool:
        return indicator in self.values

    def column_values(self) -> Dict[str, object]:
        """Storage columns written by this update (indicators plus the target if present)."""
        columns: Dict[str, object] = {
            indicator.column: value for indicator, value in self.values.items()
        }
        if self.analyst_price_target is not None:
            columns["analyst_price_target"] = self.analyst_price_target
        return columns


@dataclass(frozen=True)
class SkippedSignal:
    """An entry of a multi-signal payload that was dropped with a warning."""

    index: int
    indicator: Optional[str]
    reason: str

    def to_dict(self) -> Dict[str, object]:
        return {"index": self.index, "indicator": self.indicator, "reason": self.reason}


@dataclass(frozen=True)
class NormalizedAlert:
    """Normalizer output: the update plus anything that was skipped on the way."""

    update: IndicatorUpdate
    skipped: List[SkippedSignal] = field(default_factory=list)
