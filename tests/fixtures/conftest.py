"""
Shared test fixtures for the momentum screener tests.
Provides deterministic bar series, indicator snapshots and stock builders.
"""

from __future__ import annotations

import math
from datetime import date
from typing import List, Optional

import pandas as pd

from velocity_screener.schemas.indicator_output import IndicatorSet, WeeklyTrendHealth
from velocity_screener.schemas.market_data import PriceBar, StockSnapshot
from velocity_screener.schemas.regime_output import MarketRegime
from velocity_screener.tools.market_regime import detect_market_regime

END_DATE = date(2024, 12, 31)


def make_bars(
    n: int,
    start: float = 100.0,
    drift: float = 0.003,
    amp: float = 0.01,
    volume: float = 1_000_000.0,
    end: date = END_DATE,
) -> List[PriceBar]:
    """
    Smooth deterministic trend: compounding drift plus a small sine wiggle.

    drift > 0 gives a steady uptrend, drift < 0 a downtrend.
    """
    dates = pd.bdate_range(end=end, periods=n)
    bars: List[PriceBar] = []
    prev_close = start
    for i, ts in enumerate(dates):
        close = start * (1.0 + drift) ** i * (1.0 + amp * math.sin(i * 0.7))
        open_ = prev_close
        bars.append(PriceBar(
            date=ts.date(),
            open=round(open_, 4),
            high=round(max(open_, close) * 1.005, 4),
            low=round(min(open_, close) * 0.995, 4),
            close=round(close, 4),
            volume=round(volume * (1.0 + 0.2 * math.sin(i * 1.3)), 0),
        ))
        prev_close = close
    return bars


def make_weekly(status: str = "aligned") -> WeeklyTrendHealth:
    flags = {
        "aligned": (True, True, True),
        "mixed": (True, False, True),
        "counter-trend": (False, False, False),
    }[status]
    return WeeklyTrendHealth(
        close_above_ema20=flags[0],
        rsi_above_40=flags[1],
        macd_hist_positive=flags[2],
        weekly_close=110.0,
        weekly_ema20=105.0 if flags[0] else 115.0,
        weekly_rsi=58.0 if flags[1] else 35.0,
        weekly_macd_hist=0.8 if flags[2] else -0.8,
        status=status,
    )


def make_indicator_set(**overrides) -> IndicatorSet:
    """
    Indicators for a healthy momentum setup at price 110:
    EMAs stacked (110 / 109.5 / 100), ADX 30, RSI 55, ROC +2, +DI > -DI,
    volume 1.5x average, MFI 60, OBV rising, ATR 3% of price, bands expanding.
    """
    defaults = dict(
        bars_available=260,
        last_close=110.0,
        last_volume=1_500_000.0,
        ema20=110.0,
        ema50=109.5,
        ema200=100.0,
        rsi14=55.0,
        macd_line=1.2,
        macd_signal=0.8,
        macd_histogram=0.4,
        stochastic_k=65.0,
        stochastic_d=60.0,
        williams_r=-25.0,
        roc14=2.0,
        cci20=80.0,
        adx14=30.0,
        plus_di=28.0,
        minus_di=15.0,
        atr14=3.3,
        bollinger_middle=107.0,
        bollinger_upper=112.0,
        bollinger_lower=102.0,
        bollinger_percent_b=0.7,
        bollinger_bandwidth=0.08,
        volume_sma20=1_000_000.0,
        volume_recent3=(1_100_000.0, 1_300_000.0, 1_500_000.0),
        vroc20=150.0,
        obv=5_000_000.0,
        obv_trend="up",
        mfi14=60.0,
        ad_line=2_000_000.0,
        ad_trend="up",
        supertrend=104.0,
        supertrend_direction="up",
        parabolic_sar=105.0,
        sar_trend="up",
        ichimoku_tenkan=108.0,
        ichimoku_kijun=106.0,
        ichimoku_senkou_a=104.0,
        ichimoku_senkou_b=101.0,
        ichimoku_signal="above",
        weekly_trend=make_weekly("aligned"),
        relative_strength_3m=6.0,
        week_change=1.5,
        candlestick_pattern=None,
        missing_fields=[],
    )
    defaults.update(overrides)
    return IndicatorSet(**defaults)


def make_stock(
    symbol: str = "TESTCO",
    sector: str = "IT Services",
    last_price: float = 110.0,
    avg_daily_turnover: float = 50.0,
    bars: Optional[List[PriceBar]] = None,
    **overrides,
) -> StockSnapshot:
    defaults = dict(
        symbol=symbol,
        name=f"{symbol} Ltd",
        sector=sector,
        last_price=last_price,
        avg_daily_turnover=avg_daily_turnover,
        bars=bars or [],
    )
    defaults.update(overrides)
    return StockSnapshot(**defaults)


def bull_regime():
    info = detect_market_regime(22500.0, 22200.0, 21800.0, 28.0, 13.5)
    assert info.regime == MarketRegime.BULL
    return info


def bear_regime():
    info = detect_market_regime(20500.0, 21000.0, 21600.0, 31.0, 19.0)
    assert info.regime == MarketRegime.BEAR
    return info
