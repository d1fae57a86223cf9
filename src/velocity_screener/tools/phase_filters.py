"""
Phase Pipeline Tool: Phase Filters
Velocity Momentum Screener

Pure functions for the six screening phases of one symbol:
- Phase 1: universe & liquidity
- Phase 2: trend establishment
- Phase 3: momentum signal (3 of 5)
- Phase 4: volume confirmation (2 of 3)
- Phase 5: volatility check
- Phase 6: risk parameters (always computed) and position sizing

Each evaluate_* function judges its own conditions only; the cascade
(phase N needs phase N-1) is applied by the pipeline. An unset indicator
fails the condition that needs it and is reported in ``missing``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from velocity_screener.config.constants import (
    BOLLINGER_UPPER_HALF,
    MIN_STOP_PRICE,
    PHASE3_CONDITION_COUNT,
    PHASE3_MIN_CONDITIONS,
    PHASE4_CONDITION_COUNT,
    PHASE4_MIN_CONDITIONS,
    STOCHASTIC_BULLISH_LEVEL,
)
from velocity_screener.schemas.indicator_output import IndicatorSet
from velocity_screener.schemas.market_data import StockReference
from velocity_screener.schemas.screener_output import (
    Phase3Details,
    Phase4VolumeDetails,
    Phase5VolatilityDetails,
    PositionSizing,
    RiskParameters,
)
from velocity_screener.schemas.threshold_output import ThresholdValues


@dataclass
class PhaseOutcome:
    """Pass flag plus the human-readable reasons that drove it."""

    passed: bool
    reasons: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Phase 1: Universe & Liquidity
# ---------------------------------------------------------------------------

def evaluate_phase1(stock: StockReference, thresholds: ThresholdValues) -> PhaseOutcome:
    """Turnover >= minimum (inclusive), positive price, not under ASM/GSM when excluded."""
    reasons: List[str] = []
    passed = True

    if stock.last_price <= 0:
        passed = False
        reasons.append("no valid last price")

    if stock.avg_daily_turnover >= thresholds.min_avg_daily_turnover:
        reasons.append(
            f"turnover {stock.avg_daily_turnover:.1f} Cr >= {thresholds.min_avg_daily_turnover:.1f} Cr"
        )
    else:
        passed = False
        reasons.append(
            f"turnover {stock.avg_daily_turnover:.1f} Cr < {thresholds.min_avg_daily_turnover:.1f} Cr"
        )

    if thresholds.exclude_asm_gsm and stock.is_asm_gsm:
        passed = False
        reasons.append("under ASM/GSM surveillance")

    return PhaseOutcome(passed, reasons)


# ---------------------------------------------------------------------------
# Phase 2: Trend Establishment
# ---------------------------------------------------------------------------

_PHASE2_FIELDS = ("ema20", "ema50", "ema200", "adx14", "relative_strength_3m", "weekly_trend")


def evaluate_phase2(ind: IndicatorSet, thresholds: ThresholdValues) -> PhaseOutcome:
    """EMA20 > EMA50 > EMA200, ADX >= minimum, positive 3M RS, weekly not counter-trend."""
    missing = [f for f in _PHASE2_FIELDS if getattr(ind, f) is None]
    reasons: List[str] = []
    passed = not missing

    if ind.ema20 is not None and ind.ema50 is not None and ind.ema200 is not None:
        if ind.ema20 > ind.ema50 > ind.ema200:
            reasons.append("EMA20 > EMA50 > EMA200")
        else:
            passed = False
            reasons.append(
                f"EMAs not stacked ({ind.ema20:.2f}/{ind.ema50:.2f}/{ind.ema200:.2f})"
            )

    if ind.adx14 is not None:
        if ind.adx14 >= thresholds.min_adx:
            reasons.append(f"ADX {ind.adx14:.1f} >= {thresholds.min_adx:.0f}")
        else:
            passed = False
            reasons.append(f"ADX {ind.adx14:.1f} < {thresholds.min_adx:.0f}")

    if ind.relative_strength_3m is not None:
        if ind.relative_strength_3m > 0:
            reasons.append(f"3M RS {ind.relative_strength_3m:+.1f}%")
        else:
            passed = False
            reasons.append(f"3M RS {ind.relative_strength_3m:+.1f}% not positive")

    if ind.weekly_trend is not None:
        if ind.weekly_trend.is_bearish:
            passed = False
            reasons.append("weekly trend counter-trend")
        else:
            reasons.append(f"weekly {ind.weekly_trend.status}")

    return PhaseOutcome(passed, reasons, missing)


# ---------------------------------------------------------------------------
# Phase 3: Momentum Signal
# ---------------------------------------------------------------------------

def classify_rsi(rsi: Optional[float], low: float, high: float) -> str:
    """Tier of RSI relative to the adaptive band."""
    if rsi is None:
        return "unknown"
    if rsi > high:
        return "exhaustion"
    if rsi < low:
        return "caution"
    centre = (low + high) / 2.0
    half_width = (high - low) / 2.0
    if half_width == 0 or abs(rsi - centre) <= half_width / 2.0:
        return "optimal"
    return "good"


def ema_proximity(price: float, ind: IndicatorSet) -> Optional[float]:
    """Percent distance from price to the nearer of EMA20 / EMA50."""
    distances = [
        abs(price - ema) / ema * 100.0
        for ema in (ind.ema20, ind.ema50)
        if ema is not None and ema > 0
    ]
    return min(distances) if distances else None


def analyze_phase3(stock: StockReference, ind: IndicatorSet, thresholds: ThresholdValues) -> Phase3Details:
    proximity = ema_proximity(stock.last_price, ind)
    rsi = ind.rsi14

    pullback = proximity is not None and proximity <= thresholds.max_ema_proximity
    rsi_in_zone = rsi is not None and thresholds.rsi_low <= rsi <= thresholds.rsi_high
    roc_positive = ind.roc14 is not None and ind.roc14 > 0
    di_positive = (
        ind.plus_di is not None and ind.minus_di is not None and ind.plus_di > ind.minus_di
    )
    stochastic_bullish = (
        ind.stochastic_k is not None
        and ind.stochastic_d is not None
        and ind.stochastic_k > STOCHASTIC_BULLISH_LEVEL
        and ind.stochastic_k >= ind.stochastic_d
    )
    met = sum([pullback, rsi_in_zone, roc_positive, di_positive, stochastic_bullish])

    last_volume = ind.last_volume
    volume_decline = (
        last_volume is not None and ind.volume_sma20 is not None and last_volume < ind.volume_sma20
    )

    return Phase3Details(
        pullback_to_ema=pullback,
        rsi_in_zone=rsi_in_zone,
        roc_positive=roc_positive,
        plus_di_above_minus_di=di_positive,
        stochastic_bullish=stochastic_bullish,
        conditions_met=met,
        ema_proximity=round(proximity, 4) if proximity is not None else None,
        rsi_value=rsi,
        rsi_tier=classify_rsi(rsi, thresholds.rsi_low, thresholds.rsi_high),
        macd_bullish=ind.macd_histogram is not None and ind.macd_histogram > 0,
        volume_decline=volume_decline,
        candlestick_pattern=ind.candlestick_pattern,
    )


def evaluate_phase3(details: Phase3Details) -> PhaseOutcome:
    """Pass when at least 3 of the 5 momentum sub-conditions hold."""
    labels = (
        ("EMA pullback", details.pullback_to_ema),
        ("RSI in band", details.rsi_in_zone),
        ("ROC > 0", details.roc_positive),
        ("+DI > -DI", details.plus_di_above_minus_di),
        ("stochastic bullish", details.stochastic_bullish),
    )
    held = [name for name, ok in labels if ok]
    reasons = [f"{details.conditions_met}/{PHASE3_CONDITION_COUNT} ({', '.join(held) or 'none'})"]
    return PhaseOutcome(details.conditions_met >= PHASE3_MIN_CONDITIONS, reasons)


# ---------------------------------------------------------------------------
# Phase 4: Volume Confirmation
# ---------------------------------------------------------------------------

def classify_volume_trend(
    recent3: Optional[Tuple[float, float, float]],
    vroc20: Optional[float],
) -> str:
    """accelerating: rising 3 bars and VROC20 > 100; declining: falling 3 bars; else steady."""
    if recent3 is None:
        return "steady"
    a, b, c = recent3
    if a < b < c and (vroc20 is None or vroc20 > 100.0):
        return "accelerating"
    if a > b > c:
        return "declining"
    return "steady"


def analyze_phase4(ind: IndicatorSet, thresholds: ThresholdValues) -> Phase4VolumeDetails:
    ratio: Optional[float] = None
    if ind.last_volume is not None and ind.volume_sma20:
        ratio = ind.last_volume / ind.volume_sma20

    volume_above = (
        ind.last_volume is not None
        and ind.volume_sma20 is not None
        and ind.last_volume > thresholds.volume_multiplier * ind.volume_sma20
    )
    mfi_healthy = ind.mfi14 is not None and thresholds.mfi_low <= ind.mfi14 <= thresholds.mfi_high
    obv_up = ind.obv_trend == "up"

    return Phase4VolumeDetails(
        volume_above_avg=volume_above,
        mfi_healthy=mfi_healthy,
        obv_trending_up=obv_up,
        conditions_met=sum([volume_above, mfi_healthy, obv_up]),
        volume_ratio=round(ratio, 4) if ratio is not None else None,
        volume_trend=classify_volume_trend(ind.volume_recent3, ind.vroc20),
        vroc20=ind.vroc20,
    )


def evaluate_phase4(details: Phase4VolumeDetails) -> PhaseOutcome:
    """Pass when at least 2 of the 3 volume sub-conditions hold."""
    labels = (
        ("volume above average", details.volume_above_avg),
        ("MFI healthy", details.mfi_healthy),
        ("OBV rising", details.obv_trending_up),
    )
    held = [name for name, ok in labels if ok]
    text = f"{details.conditions_met}/{PHASE4_CONDITION_COUNT} ({', '.join(held) or 'none'})"
    if details.volume_ratio is not None:
        text += f", vol {details.volume_ratio:.2f}x avg"
    return PhaseOutcome(details.conditions_met >= PHASE4_MIN_CONDITIONS, [text])


# ---------------------------------------------------------------------------
# Phase 5: Volatility Check
# ---------------------------------------------------------------------------

def analyze_phase5(
    stock: StockReference,
    ind: IndicatorSet,
    thresholds: ThresholdValues,
) -> Phase5VolatilityDetails:
    atr_percent: Optional[float] = None
    if ind.atr14 is not None and stock.last_price > 0:
        atr_percent = ind.atr14 / stock.last_price * 100.0

    return Phase5VolatilityDetails(
        atr_reasonable=atr_percent is not None and atr_percent <= thresholds.max_atr_percent,
        bollinger_expanding=(
            ind.bollinger_bandwidth is not None
            and ind.bollinger_bandwidth > thresholds.min_bollinger_bandwidth
        ),
        price_in_upper_band=(
            ind.bollinger_percent_b is not None and ind.bollinger_percent_b > BOLLINGER_UPPER_HALF
        ),
        atr_percent=round(atr_percent, 4) if atr_percent is not None else None,
    )


def evaluate_phase5(details: Phase5VolatilityDetails, thresholds: ThresholdValues) -> PhaseOutcome:
    """ATR% within the ceiling AND Bollinger bandwidth above the minimum."""
    reasons: List[str] = []
    if details.atr_percent is None:
        reasons.append("ATR unavailable")
    elif details.atr_reasonable:
        reasons.append(f"ATR {details.atr_percent:.2f}% <= {thresholds.max_atr_percent:.1f}%")
    else:
        reasons.append(f"ATR {details.atr_percent:.2f}% > {thresholds.max_atr_percent:.1f}%")
    reasons.append("bands expanding" if details.bollinger_expanding else "bands contracting")
    return PhaseOutcome(details.atr_reasonable and details.bollinger_expanding, reasons)


# ---------------------------------------------------------------------------
# Phase 6: Risk Management
# ---------------------------------------------------------------------------

def calculate_risk_parameters(
    entry_price: float,
    atr: Optional[float],
    thresholds: ThresholdValues,
) -> RiskParameters:
    """
    Stop = entry - k * ATR (floored at 0.01); target = entry + min_rr * risk.

    With no usable ATR the stop sits at the entry, R:R is 0 and the symbol
    is ineligible for BUY-class signals.
    """
    if atr is None or atr <= 0 or entry_price <= MIN_STOP_PRICE:
        return RiskParameters(
            entry_price=round(entry_price, 2),
            stop_loss=round(entry_price, 2),
            target=round(entry_price, 2),
            risk_reward_ratio=0.0,
            risk_per_share=0.0,
            atr_multiple=thresholds.atr_multiple,
            meets_min_risk_reward=False,
        )

    stop = max(entry_price - thresholds.atr_multiple * atr, MIN_STOP_PRICE)
    risk = entry_price - stop
    target = entry_price + thresholds.min_risk_reward * risk
    ratio = (target - entry_price) / risk if risk > 0 else 0.0

    return RiskParameters(
        entry_price=round(entry_price, 2),
        stop_loss=round(stop, 2),
        target=round(target, 2),
        risk_reward_ratio=round(ratio, 2),
        risk_per_share=round(risk, 2),
        atr_multiple=thresholds.atr_multiple,
        meets_min_risk_reward=risk > 0 and ratio >= thresholds.min_risk_reward - 1e-9,
    )


def calculate_position_size(
    account_equity: float,
    entry_price: float,
    risk_per_share: float,
    thresholds: ThresholdValues,
) -> PositionSizing:
    """
    Shares sized so a stop-out loses risk_per_trade_percent of equity,
    then capped so the position never exceeds max_capital_risk % of equity.
    """
    if account_equity <= 0 or entry_price <= 0 or risk_per_share <= 0:
        return PositionSizing(
            shares=0, position_value=0.0, risk_amount=0.0,
            risk_per_share=max(risk_per_share, 0.0), capital_used_percent=0.0,
        )

    budget = account_equity * thresholds.risk_per_trade_percent / 100.0
    shares = math.floor(budget / risk_per_share)

    max_value = account_equity * thresholds.max_capital_risk / 100.0
    capped = False
    if shares * entry_price > max_value:
        shares = math.floor(max_value / entry_price)
        capped = True

    position_value = shares * entry_price
    return PositionSizing(
        shares=shares,
        position_value=round(position_value, 2),
        risk_amount=round(shares * risk_per_share, 2),
        risk_per_share=round(risk_per_share, 2),
        capital_used_percent=round(position_value / account_equity * 100.0, 2),
        is_capped=capped,
    )
