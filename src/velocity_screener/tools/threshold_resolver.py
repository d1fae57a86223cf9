"""
Adaptive Threshold Resolver
Velocity Momentum Screener

Merge order (later wins): defaults -> regime adjustment -> explicit config.
The result is clamped to each field's declared range and inverted bands
are swapped, so one malformed override cannot abort a scan.
"""

from __future__ import annotations

import logging
from typing import Optional

from velocity_screener.schemas.regime_output import MarketRegime
from velocity_screener.schemas.threshold_output import (
    CONFIG_FIELD_BOUNDS,
    DEFAULT_THRESHOLDS,
    REGIME_ADJUSTMENTS,
    AdaptiveThresholds,
    ScreenerConfig,
    ThresholdValues,
)

logger = logging.getLogger(__name__)

_BANDS = (("rsi_low", "rsi_high"), ("mfi_low", "mfi_high"))


def _clamp_field(name: str, value: float) -> float:
    low, high = CONFIG_FIELD_BOUNDS[name]
    if value < low or value > high:
        clamped = min(max(value, low), high)
        logger.warning(f"[Thresholds] {name}={value} outside [{low}, {high}]; clamped to {clamped}")
        return clamped
    return value


def resolve_thresholds(
    regime: MarketRegime,
    base_config: Optional[ScreenerConfig] = None,
    defaults: ThresholdValues = DEFAULT_THRESHOLDS,
) -> AdaptiveThresholds:
    """
    Resolve the thresholds for one run.

    Args:
        regime: Detected market regime.
        base_config: Caller overrides; only non-None fields apply.
        defaults: Immutable default values (passed explicitly, never global state).

    Returns:
        Fully populated AdaptiveThresholds.
    """
    merged = defaults.model_dump(include=set(ThresholdValues.model_fields))
    merged.update(REGIME_ADJUSTMENTS.get(regime, {}))

    overridden: list[str] = []
    if base_config is not None:
        explicit = base_config.explicit_fields()
        merged.update(explicit)
        overridden = sorted(explicit)

    for name in CONFIG_FIELD_BOUNDS:
        merged[name] = _clamp_field(name, float(merged[name]))
    merged["exclude_asm_gsm"] = bool(merged["exclude_asm_gsm"])

    for low_name, high_name in _BANDS:
        if merged[low_name] > merged[high_name]:
            logger.warning(
                f"[Thresholds] {low_name}={merged[low_name]} > {high_name}={merged[high_name]}; swapped"
            )
            merged[low_name], merged[high_name] = merged[high_name], merged[low_name]

    thresholds = AdaptiveThresholds(regime=regime, overridden_fields=overridden, **merged)
    logger.info(
        f"[Thresholds] {regime.value}: ADX>={thresholds.min_adx}, "
        f"RSI {thresholds.rsi_low}-{thresholds.rsi_high}, ATR%<={thresholds.max_atr_percent}, "
        f"R:R>={thresholds.min_risk_reward}"
        + (f", overrides: {', '.join(overridden)}" if overridden else "")
    )
    return thresholds
