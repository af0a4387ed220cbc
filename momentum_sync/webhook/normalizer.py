"""
PURPOSE: Turn raw TradingView webhook payloads into validated IndicatorUpdates.

Accepts both payload shapes (single-indicator and multi-signal), enforces the
closed indicator set and the configured signal policy, and degrades malformed
optional fields to "absent" instead of failing the alert. Pure apart from
logging: nothing here touches storage.

CALLED BY:
    - webhook/processor.py (WebhookProcessor.process)
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from momentum_sync.config.settings import Settings
from momentum_sync.core.errors import InvalidIndicator, InvalidSignal, ValidationError
from momentum_sync.models.indicators import Indicator
from momentum_sync.schemas.alert import MultiSignalAlert, SingleIndicatorAlert
from momentum_sync.schemas.update import IndicatorUpdate, NormalizedAlert, SkippedSignal
from momentum_sync.utils.logger import get_logger

logger = get_logger(__name__)

# Tokens that TradingView templates emit when a numeric placeholder has no value
_ABSENT_NUMERIC_TOKENS = {"", "false", "null", "none", "nan", "na", "n/a"}


@dataclass(frozen=True)
class SignalPolicy:
    """
    PURPOSE: How signal values are validated.

    Attributes:
        mode: "free_text" accepts any non-empty value; "enumerated" requires
              the case-folded value to be in allowed.
        allowed: Accepted values under the enumerated mode.
        primary: Indicator assumed when a single-indicator payload names none.
    """

    mode: str = "free_text"
    allowed: frozenset = frozenset()
    primary: Indicator = Indicator.SIGNAL

    @classmethod
    def from_settings(cls, settings: Settings) -> "SignalPolicy":
        return cls(
            mode=settings.SIGNAL_POLICY,
            allowed=settings.allowed_signals(),
            primary=Indicator(settings.PRIMARY_INDICATOR),
        )

    @property
    def enumerated(self) -> bool:
        return self.mode == "enumerated"


def parse_optional_number(value: Any, *, field: str = "value", ticker: Optional[str] = None) -> Optional[float]:
    """
    PURPOSE: Parse a schema-flexible numeric field.

    Numbers and numeric strings become floats. JSON null, false, "" and
    "false" mean "no value". Anything else (words, true, NaN, infinities)
    also becomes None, with a warning, so a bad optional field never blocks
    the signal it came with.

    Args:
        value: Raw payload value.
        field: Field name, for the warning.
        ticker: Ticker, for the warning.

    Returns:
        Optional[float]: Parsed finite number, or None.

    Examples:
        parse_optional_number(187.5)    -> 187.5
        parse_optional_number("187.5")  -> 187.5
        parse_optional_number("false")  -> None
        parse_optional_number(None)     -> None
    """
    if value is None or value is False:
        return None

    parsed: Optional[float] = None
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        token = value.strip()
        if token.lower() in _ABSENT_NUMERIC_TOKENS:
            return None
        try:
            parsed = float(token.replace(",", ""))
        except ValueError:
            parsed = None

    if parsed is None or not math.isfinite(parsed):
        logger.warning(
            "numeric_field_ignored",
            field=field,
            ticker=ticker,
            raw_value=repr(value),
        )
        return None
    return parsed


def coerce_signal(value: Any) -> Optional[str]:
    """
    PURPOSE: Coerce a raw signal value to a trimmed string.

    Strings are trimmed; integers and finite floats are rendered (2.0 -> "2")
    because older alert templates send numeric codes. Booleans, containers
    and blank strings yield None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        return text or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    return None


def normalize_signal(value: Any, policy: SignalPolicy) -> Optional[str]:
    """
    PURPOSE: Apply the signal policy to a raw value.

    Returns:
        Optional[str]: The value to store, or None if the policy rejects it.
    """
    text = coerce_signal(value)
    if text is None:
        return None
    if policy.enumerated:
        folded = text.casefold()
        return folded if folded in policy.allowed else None
    return text


def _coerce_strength(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value).strip() or None
    return None


def _envelope_error(exc: PydanticValidationError) -> ValidationError:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    message = first.get("msg", "invalid payload")
    return ValidationError(f"{location}: {message}")


def _normalize_single(alert: SingleIndicatorAlert, policy: SignalPolicy) -> Dict[Indicator, str]:
    if alert.indicator is None or (isinstance(alert.indicator, str) and not alert.indicator.strip()):
        indicator = policy.primary
    else:
        indicator = Indicator.parse(alert.indicator)
        if indicator is None:
            logger.warning(
                "invalid_indicator_rejected",
                ticker=alert.ticker,
                indicator=str(alert.indicator),
            )
            raise InvalidIndicator(str(alert.indicator), ticker=alert.ticker)

    if coerce_signal(alert.signal) is None:
        raise ValidationError("signal must be a non-empty string or number", ticker=alert.ticker)

    signal = normalize_signal(alert.signal, policy)
    if signal is None:
        logger.warning("invalid_signal_rejected", ticker=alert.ticker, signal=str(alert.signal))
        raise InvalidSignal(str(alert.signal), ticker=alert.ticker)

    return {indicator: signal}


def _normalize_multi(
    alert: MultiSignalAlert,
    policy: SignalPolicy,
    skipped: List[SkippedSignal],
) -> Dict[Indicator, str]:
    values: Dict[Indicator, str] = {}

    for index, entry in enumerate(alert.signals):
        if not isinstance(entry, Mapping):
            skipped.append(SkippedSignal(index, None, "entry is not an object"))
            continue

        raw_indicator = entry.get("indicator")
        indicator = Indicator.parse(raw_indicator)
        if indicator is None:
            skipped.append(SkippedSignal(index, _as_text(raw_indicator), "unknown indicator"))
            continue

        signal = normalize_signal(entry.get("signal"), policy)
        if signal is None:
            skipped.append(SkippedSignal(index, indicator.value, "invalid signal"))
            continue

        if indicator in values and values[indicator] != signal:
            logger.info(
                "duplicate_indicator_in_payload",
                ticker=alert.ticker,
                indicator=indicator.value,
                kept=signal,
                replaced=values[indicator],
            )
        # Later entries win, matching the order TradingView emitted them
        values[indicator] = signal

    for item in skipped:
        logger.warning(
            "signal_entry_skipped",
            ticker=alert.ticker,
            index=item.index,
            indicator=item.indicator,
            reason=item.reason,
        )

    return values


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def normalize_alert(payload: Mapping[str, Any], policy: SignalPolicy) -> NormalizedAlert:
    """
    PURPOSE: Validate one webhook body and build the IndicatorUpdate it describes.

    Single-indicator payloads fail hard on an unknown indicator or a rejected
    signal. Multi-signal payloads skip bad entries and keep the rest; only
    when nothing survives is the whole payload rejected.

    CALLED BY: WebhookProcessor.process()

    Args:
        payload: Decoded JSON object from the request body.
        policy: Signal validation policy.

    Returns:
        NormalizedAlert: The update plus skipped entries (multi-signal only).

    Raises:
        InvalidIndicator: Unknown indicator in a single-indicator payload.
        InvalidSignal: Signal rejected by the policy in a single-indicator payload.
        ValidationError: Missing ticker, empty signal, mixed payload shapes,
                         or a multi-signal payload with no valid entry.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("payload must be a JSON object")

    is_multi = "signals" in payload
    if is_multi and payload.get("indicator") is not None:
        raise ValidationError("payload cannot carry both 'indicator' and 'signals'")

    skipped: List[SkippedSignal] = []
    try:
        if is_multi:
            alert = MultiSignalAlert.model_validate(payload)
        else:
            alert = SingleIndicatorAlert.model_validate(payload)
    except PydanticValidationError as exc:
        raise _envelope_error(exc) from exc

    if is_multi:
        values = _normalize_multi(alert, policy, skipped)
        if not values:
            raise ValidationError("no valid signals in payload", ticker=alert.ticker)
    else:
        values = _normalize_single(alert, policy)

    update = IndicatorUpdate(
        ticker=alert.ticker,
        values=values,
        analyst_price_target=parse_optional_number(
            alert.analyst_price_target, field="analystPriceTarget", ticker=alert.ticker
        ),
        strength=_coerce_strength(alert.strength),
        comment=alert.comment,
    )

    logger.info(
        "alert_normalized",
        ticker=update.ticker,
        indicators=[indicator.value for indicator in update.values],
        has_price_target=update.analyst_price_target is not None,
        skipped=len(skipped),
    )
    return NormalizedAlert(update=update, skipped=skipped)
