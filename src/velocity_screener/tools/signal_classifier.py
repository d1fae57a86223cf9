"""
Phase Pipeline Tool: Score, Signal & Rationale
Velocity Momentum Screener

Score (0-100, integer):
    phase flags (P1 10, P2 15, P3 10, P4 8, P5 7)
  + trend / momentum / volume / volatility quality terms that reward
    proximity to ideal zones rather than bare threshold crossings
  + relative strength and weekly trend adjustments
  + sector bonus (+5 / 0 / -5)
Rounded, then clamped to [0, 100].

Signal (first match wins):
    STRONG_BUY  P1-P5, score >= 80, R:R meets minimum
    BUY         P1-P5, score >= 60, R:R meets minimum
    WATCH       P1-P3
    NEUTRAL     P1
    AVOID       otherwise
"""

from __future__ import annotations

from typing import Optional, Sequence

from velocity_screener.config.constants import (
    ADX_STRENGTH_SPAN,
    BUY_MIN_SCORE,
    PENALTY_RSI_EXHAUSTION,
    PHASE_WEIGHTS,
    SCORE_MAX,
    SCORE_MIN,
    STRONG_BUY_MIN_SCORE,
    STRONG_RELATIVE_STRENGTH,
    VOLUME_TREND_SCORES,
    WEEKLY_TREND_SCORES,
    WEIGHT_ADX_STRENGTH,
    WEIGHT_ATR_HEADROOM,
    WEIGHT_CANDLESTICK,
    WEIGHT_EMA_PROXIMITY,
    WEIGHT_ICHIMOKU_ABOVE,
    WEIGHT_MACD_BULLISH,
    WEIGHT_MFI_PROXIMITY,
    WEIGHT_RELATIVE_STRENGTH,
    WEIGHT_RSI_PROXIMITY,
    WEIGHT_SAR_UP,
    WEIGHT_STOCHASTIC,
    WEIGHT_SUPERTREND_UP,
    WEIGHT_UPPER_BAND,
    WEIGHT_VOLUME_RATIO,
)
from velocity_screener.schemas.indicator_output import IndicatorSet
from velocity_screener.schemas.screener_output import (
    Phase3Details,
    Phase4VolumeDetails,
    Phase5VolatilityDetails,
    RiskParameters,
    Signal,
)
from velocity_screener.schemas.threshold_output import ThresholdValues
from velocity_screener.tools.phase_filters import PhaseOutcome


def _clamp01(x: float) -> float:
    return min(max(x, 0.0), 1.0)


def band_proximity(value: Optional[float], low: float, high: float) -> Optional[float]:
    """1.0 at the band centre falling to 0.0 at either edge; None outside the band."""
    if value is None or value < low or value > high:
        return None
    half_width = (high - low) / 2.0
    if half_width == 0:
        return 1.0
    return _clamp01(1.0 - abs(value - (low + high) / 2.0) / half_width)


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------

def calculate_score(
    phase_flags: Sequence[bool],
    ind: IndicatorSet,
    phase3: Phase3Details,
    phase4: Phase4VolumeDetails,
    phase5: Phase5VolatilityDetails,
    thresholds: ThresholdValues,
    sector_bonus: int = 0,
) -> int:
    """
    Weighted composite score.

    Args:
        phase_flags: Cascaded pass flags for phases 1-5, in order.
        ind: Indicator snapshot.
        phase3 / phase4 / phase5: Detail objects (always computed).
        thresholds: Resolved thresholds, for zone centres and ceilings.
        sector_bonus: Sector rotation bonus, added last.
    """
    score = 0.0

    # Phase flags
    for weight, passed in zip(PHASE_WEIGHTS.values(), phase_flags):
        if passed:
            score += weight

    # Trend quality
    if ind.macd_bullish:
        score += WEIGHT_MACD_BULLISH
    if ind.supertrend_direction == "up":
        score += WEIGHT_SUPERTREND_UP
    if ind.sar_trend == "up":
        score += WEIGHT_SAR_UP
    if ind.ichimoku_signal == "above":
        score += WEIGHT_ICHIMOKU_ABOVE
    if ind.adx14 is not None:
        score += WEIGHT_ADX_STRENGTH * _clamp01((ind.adx14 - thresholds.min_adx) / ADX_STRENGTH_SPAN)

    # Momentum quality
    rsi_fit = band_proximity(phase3.rsi_value, thresholds.rsi_low, thresholds.rsi_high)
    if rsi_fit is not None:
        score += WEIGHT_RSI_PROXIMITY * rsi_fit
    elif phase3.rsi_value is not None and phase3.rsi_value > thresholds.rsi_high:
        score += PENALTY_RSI_EXHAUSTION
    if phase3.ema_proximity is not None and thresholds.max_ema_proximity > 0:
        score += WEIGHT_EMA_PROXIMITY * _clamp01(1.0 - phase3.ema_proximity / thresholds.max_ema_proximity)
    if phase3.stochastic_bullish:
        score += WEIGHT_STOCHASTIC
    if phase3.candlestick_pattern:
        score += WEIGHT_CANDLESTICK

    # Volume quality
    if phase4.volume_ratio is not None and thresholds.volume_multiplier > 0:
        excess = (phase4.volume_ratio - thresholds.volume_multiplier) / thresholds.volume_multiplier
        score += WEIGHT_VOLUME_RATIO * _clamp01(excess)
    mfi_fit = band_proximity(ind.mfi14, thresholds.mfi_low, thresholds.mfi_high)
    if mfi_fit is not None:
        score += WEIGHT_MFI_PROXIMITY * mfi_fit
    score += VOLUME_TREND_SCORES.get(phase4.volume_trend, 0.0)

    # Volatility quality
    if phase5.price_in_upper_band:
        score += WEIGHT_UPPER_BAND
    if phase5.atr_percent is not None and thresholds.max_atr_percent > 0:
        score += WEIGHT_ATR_HEADROOM * _clamp01(1.0 - phase5.atr_percent / thresholds.max_atr_percent)

    # Relative strength & higher timeframe
    if ind.relative_strength_3m is not None and ind.relative_strength_3m > STRONG_RELATIVE_STRENGTH:
        score += WEIGHT_RELATIVE_STRENGTH
    if ind.weekly_trend is not None:
        score += WEEKLY_TREND_SCORES.get(ind.weekly_trend.status, 0.0)

    score += sector_bonus

    return int(min(max(round(score), SCORE_MIN), SCORE_MAX))


# ---------------------------------------------------------------------------
# Signal
# ---------------------------------------------------------------------------

def determine_signal(phase_flags: Sequence[bool], score: int, meets_min_risk_reward: bool) -> Signal:
    """Map cascaded phase flags, score and R:R eligibility to a signal."""
    p1, p2, p3, p4, p5 = phase_flags
    if p1 and p2 and p3 and p4 and p5 and meets_min_risk_reward:
        if score >= STRONG_BUY_MIN_SCORE:
            return Signal.STRONG_BUY
        if score >= BUY_MIN_SCORE:
            return Signal.BUY
    if p1 and p2 and p3:
        return Signal.WATCH
    if p1:
        return Signal.NEUTRAL
    return Signal.AVOID


# ---------------------------------------------------------------------------
# Rationale
# ---------------------------------------------------------------------------

def generate_rationale(
    signal: Signal,
    score: int,
    phase_flags: Sequence[bool],
    outcomes: Sequence[PhaseOutcome],
    risk: RiskParameters,
    ind: IndicatorSet,
    thresholds: ThresholdValues,
    sector: str = "",
    sector_bonus: int = 0,
) -> str:
    """Deterministic summary built from phase reasons and key values."""
    segments = []
    for i, (flag, outcome) in enumerate(zip(phase_flags, outcomes), 1):
        text = "; ".join(outcome.reasons) if outcome.reasons else "-"
        if not flag and outcome.passed:
            text += f" (blocked by P{i - 1})"
        segments.append(f"P{i} {'PASS' if flag else 'FAIL'}: {text}")

    if ind.missing_fields:
        segments.append(
            f"insufficient history ({ind.bars_available} bars): "
            f"{', '.join(ind.missing_fields)} unavailable"
        )

    risk_text = (
        f"Risk: entry {risk.entry_price:.2f}, stop {risk.stop_loss:.2f}, "
        f"target {risk.target:.2f} (R:R {risk.risk_reward_ratio:.2f})"
    )
    if not risk.meets_min_risk_reward:
        risk_text += f" below minimum {thresholds.min_risk_reward:.2f}"
    segments.append(risk_text)

    if sector_bonus:
        segments.append(f"Sector {sector} {sector_bonus:+d}")

    return f"{signal.value} (score {score}/100). " + " | ".join(segments)
