"""
Indicator Snapshot — Output Schema
Velocity Momentum Screener

Latest value of every technical indicator for one symbol. Every field is
Optional: an indicator whose lookback exceeds the available history is
left unset and named in ``missing_fields``, never estimated.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

Trend = Literal["up", "down", "flat"]
Direction = Literal["up", "down"]
CloudPosition = Literal["above", "below", "inside"]
WeeklyStatus = Literal["aligned", "counter-trend", "mixed"]

CANDLESTICK_PATTERNS = ("Hammer", "Bullish Engulfing", "Doji", "Morning Star")


class WeeklyTrendHealth(BaseModel):
    """Higher-timeframe confirmation computed from ISO-week candles."""

    close_above_ema20: bool
    rsi_above_40: bool
    macd_hist_positive: bool
    weekly_close: float
    weekly_ema20: float
    weekly_rsi: float
    weekly_macd_hist: float
    status: WeeklyStatus

    @property
    def is_bearish(self) -> bool:
        return self.status == "counter-trend"


class IndicatorSet(BaseModel):
    """Per-symbol indicator values at the latest bar."""

    bars_available: int = Field(0, ge=0)
    last_close: Optional[float] = None
    last_volume: Optional[float] = None

    # Moving averages
    ema20: Optional[float] = None
    ema50: Optional[float] = None
    ema200: Optional[float] = None

    # Momentum
    rsi14: Optional[float] = Field(None, ge=0.0, le=100.0)
    macd_line: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    stochastic_k: Optional[float] = None
    stochastic_d: Optional[float] = None
    williams_r: Optional[float] = None
    roc14: Optional[float] = None
    cci20: Optional[float] = None

    # Trend strength
    adx14: Optional[float] = None
    plus_di: Optional[float] = None
    minus_di: Optional[float] = None

    # Volatility
    atr14: Optional[float] = None
    bollinger_middle: Optional[float] = None
    bollinger_upper: Optional[float] = None
    bollinger_lower: Optional[float] = None
    bollinger_percent_b: Optional[float] = None
    bollinger_bandwidth: Optional[float] = None

    # Volume
    volume_sma20: Optional[float] = None
    volume_recent3: Optional[Tuple[float, float, float]] = None
    vroc20: Optional[float] = None
    obv: Optional[float] = None
    obv_trend: Optional[Trend] = None
    mfi14: Optional[float] = None
    ad_line: Optional[float] = None
    ad_trend: Optional[Trend] = None

    # Trailing / cloud systems
    supertrend: Optional[float] = None
    supertrend_direction: Optional[Direction] = None
    parabolic_sar: Optional[float] = None
    sar_trend: Optional[Direction] = None
    ichimoku_tenkan: Optional[float] = None
    ichimoku_kijun: Optional[float] = None
    ichimoku_senkou_a: Optional[float] = None
    ichimoku_senkou_b: Optional[float] = None
    ichimoku_signal: Optional[CloudPosition] = None

    # Multi-timeframe / relative
    weekly_trend: Optional[WeeklyTrendHealth] = None
    relative_strength_3m: Optional[float] = None
    week_change: Optional[float] = None

    candlestick_pattern: Optional[str] = None

    missing_fields: List[str] = Field(
        default_factory=list,
        description="Indicators left unset because history was too short",
    )

    @property
    def macd_bullish(self) -> bool:
        """MACD line above its signal line and above zero."""
        if self.macd_line is None or self.macd_signal is None:
            return False
        return self.macd_line > self.macd_signal and self.macd_line > 0
