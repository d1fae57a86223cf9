"""
Market Regime Tool: Benchmark Trend Classification
Velocity Momentum Screener

Pure functions for:
- Regime detection from benchmark close / EMA20 / EMA50 / ADX
- The neutral default used when benchmark data is unavailable
- Regime detection straight from benchmark daily bars
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from velocity_screener.config.constants import ADX_PERIOD, EMA_MEDIUM_PERIOD, EMA_SHORT_PERIOD
from velocity_screener.schemas.market_data import PriceBar
from velocity_screener.schemas.regime_output import BULL_MIN_ADX, MarketRegime, MarketRegimeInfo
from velocity_screener.tools import indicator_library as lib

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def detect_market_regime(
    close: float,
    ema20: float,
    ema50: float,
    adx: float,
    vix: Optional[float] = None,
) -> MarketRegimeInfo:
    """
    Classify the benchmark trend.

    BULL:     close > EMA20 > EMA50 and ADX >= 25
    BEAR:     close < EMA20 < EMA50
    SIDEWAYS: anything else (including a bullish stack with a weak ADX)

    Total over numeric inputs; never raises.
    """
    if close > ema20 > ema50 and adx >= BULL_MIN_ADX:
        regime = MarketRegime.BULL
        description = (
            f"Bullish: benchmark {close:,.2f} above EMA20 {ema20:,.2f} above "
            f"EMA50 {ema50:,.2f} with ADX {adx:.1f}"
        )
    elif close < ema20 < ema50:
        regime = MarketRegime.BEAR
        description = (
            f"Bearish: benchmark {close:,.2f} below EMA20 {ema20:,.2f} below "
            f"EMA50 {ema50:,.2f}; thresholds tightened"
        )
    else:
        regime = MarketRegime.SIDEWAYS
        description = (
            f"Sideways: no aligned trend (close {close:,.2f}, EMA20 {ema20:,.2f}, "
            f"EMA50 {ema50:,.2f}, ADX {adx:.1f})"
        )

    if vix is not None:
        description += f"; India VIX {vix:.2f}"

    return MarketRegimeInfo(
        regime=regime,
        description=description,
        benchmark_close=close,
        benchmark_ema20=ema20,
        benchmark_ema50=ema50,
        benchmark_adx=adx,
        volatility_index=vix,
    )


def default_market_regime() -> MarketRegimeInfo:
    """Neutral regime substituted when no benchmark data is available."""
    info = detect_market_regime(0.0, 0.0, 0.0, 0.0)
    return info.model_copy(update={
        "description": "Sideways: benchmark data unavailable, default thresholds in use",
    })


def regime_from_benchmark(
    bars: Sequence[PriceBar],
    vix: Optional[float] = None,
) -> MarketRegimeInfo:
    """
    Compute EMA20/EMA50/ADX14 from benchmark bars and detect the regime.

    Falls back to default_market_regime() when history is too short for
    any of the three inputs.
    """
    closes = [b.close for b in bars]
    ema20 = lib.latest(lib.ema(closes, EMA_SHORT_PERIOD))
    ema50 = lib.latest(lib.ema(closes, EMA_MEDIUM_PERIOD))
    adx = lib.latest(lib.directional_movement(
        [b.high for b in bars], [b.low for b in bars], closes, ADX_PERIOD,
    ).adx)

    if ema20 is None or ema50 is None or adx is None:
        logger.warning(
            f"[Regime] Benchmark history too short ({len(bars)} bars); using SIDEWAYS default"
        )
        return default_market_regime()

    info = detect_market_regime(closes[-1], ema20, ema50, adx, vix)
    logger.info(f"[Regime] {info.regime.value}: {info.description}")
    return info
