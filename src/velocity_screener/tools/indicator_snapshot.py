"""
Indicator Library Tool: Indicator Snapshot
Velocity Momentum Screener

Pure functions for:
- Collapsing daily bars into ISO-week candles
- Weekly trend health (EMA20 / RSI / MACD histogram on weekly candles)
- compute_indicators(): daily bars -> IndicatorSet (latest values)

Indicators whose lookback exceeds the available history are left unset and
listed in ``missing_fields``. Nothing here raises for short data.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from velocity_screener.config.constants import (
    ADX_PERIOD,
    ATR_PERIOD,
    EMA_LONG_PERIOD,
    EMA_MEDIUM_PERIOD,
    EMA_SHORT_PERIOD,
    MFI_PERIOD,
    RELATIVE_STRENGTH_PERIOD,
    ROC_PERIOD,
    RSI_PERIOD,
    VOLUME_SMA_PERIOD,
    VROC_PERIOD,
    WEEK_CHANGE_PERIOD,
    WEEKLY_MIN_CANDLES,
    WEEKLY_RSI_FLOOR,
    WILLIAMS_R_PERIOD,
)
from velocity_screener.schemas.indicator_output import IndicatorSet, WeeklyTrendHealth
from velocity_screener.schemas.market_data import PriceBar
from velocity_screener.tools import indicator_library as lib

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weekly Timeframe
# ---------------------------------------------------------------------------

def aggregate_weekly(bars: Sequence[PriceBar]) -> List[PriceBar]:
    """
    Collapse daily bars into one candle per ISO week.

    Open is the first daily open of the week, close the last daily close,
    high/low the extremes and volume the sum. The candle is dated on the
    week's last trading day.
    """
    weeks: List[PriceBar] = []
    current_key = None
    bucket: List[PriceBar] = []

    def flush() -> None:
        if bucket:
            weeks.append(PriceBar(
                date=bucket[-1].date,
                open=bucket[0].open,
                high=max(b.high for b in bucket),
                low=min(b.low for b in bucket),
                close=bucket[-1].close,
                volume=sum(b.volume for b in bucket),
            ))

    for bar in bars:
        iso = bar.date.isocalendar()
        key = (iso[0], iso[1])
        if key != current_key:
            flush()
            bucket = []
            current_key = key
        bucket.append(bar)
    flush()
    return weeks


def compute_weekly_trend(bars: Sequence[PriceBar]) -> Optional[WeeklyTrendHealth]:
    """
    Weekly trend health from daily bars, or None below 35 weekly candles.

    Status:
        aligned        close > weekly EMA20, RSI > 40 and MACD histogram > 0
        counter-trend  close < weekly EMA20 with at most one flag holding
        mixed          anything else
    """
    weekly = aggregate_weekly(bars)
    if len(weekly) < WEEKLY_MIN_CANDLES:
        return None

    closes = [w.close for w in weekly]
    ema20 = lib.ema(closes, EMA_SHORT_PERIOD)
    rsi = lib.rsi(closes, RSI_PERIOD)
    macd = lib.macd(closes)
    if not ema20 or not rsi or not macd.histogram:
        return None

    weekly_close = closes[-1]
    close_above = weekly_close > ema20[-1]
    rsi_ok = rsi[-1] > WEEKLY_RSI_FLOOR
    hist_ok = macd.histogram[-1] > 0
    flags = sum([close_above, rsi_ok, hist_ok])

    if flags == 3:
        status = "aligned"
    elif weekly_close < ema20[-1] and flags <= 1:
        status = "counter-trend"
    else:
        status = "mixed"

    return WeeklyTrendHealth(
        close_above_ema20=close_above,
        rsi_above_40=rsi_ok,
        macd_hist_positive=hist_ok,
        weekly_close=round(weekly_close, 4),
        weekly_ema20=round(ema20[-1], 4),
        weekly_rsi=round(rsi[-1], 2),
        weekly_macd_hist=round(macd.histogram[-1], 4),
        status=status,
    )


# ---------------------------------------------------------------------------
# Daily Snapshot
# ---------------------------------------------------------------------------

# Fields Phase 2 through Phase 6 read; reported in missing_fields when unset.
TRACKED_FIELDS = (
    "ema20", "ema50", "ema200", "rsi14", "macd_line", "macd_signal", "macd_histogram",
    "stochastic_k", "stochastic_d", "williams_r", "roc14", "cci20",
    "adx14", "plus_di", "minus_di", "atr14",
    "bollinger_middle", "bollinger_percent_b", "bollinger_bandwidth",
    "volume_sma20", "vroc20", "obv_trend", "mfi14", "ad_trend",
    "supertrend_direction", "sar_trend", "ichimoku_signal",
    "weekly_trend", "relative_strength_3m",
)


def compute_indicators(
    bars: Sequence[PriceBar],
    benchmark_closes: Optional[Sequence[float]] = None,
) -> IndicatorSet:
    """
    Compute the latest value of every indicator for one symbol.

    Args:
        bars: Daily OHLCV bars, oldest first.
        benchmark_closes: Benchmark daily closes aligned on the same
            calendar (oldest first). Without them relative strength is unset.

    Returns:
        IndicatorSet with unset fields named in missing_fields.
    """
    n = len(bars)
    if n == 0:
        return IndicatorSet(bars_available=0, missing_fields=list(TRACKED_FIELDS))

    opens = [b.open for b in bars]
    highs = [b.high for b in bars]
    lows = [b.low for b in bars]
    closes = [b.close for b in bars]
    volumes = [b.volume for b in bars]

    values: dict = {
        "bars_available": n,
        "last_close": closes[-1],
        "last_volume": volumes[-1],
    }

    values["ema20"] = lib.latest(lib.ema(closes, EMA_SHORT_PERIOD))
    values["ema50"] = lib.latest(lib.ema(closes, EMA_MEDIUM_PERIOD))
    values["ema200"] = lib.latest(lib.ema(closes, EMA_LONG_PERIOD))
    values["rsi14"] = lib.latest(lib.rsi(closes, RSI_PERIOD))

    macd = lib.macd(closes)
    values["macd_line"] = lib.latest(macd.line) if macd.signal else None
    values["macd_signal"] = lib.latest(macd.signal)
    values["macd_histogram"] = lib.latest(macd.histogram)

    stoch = lib.stochastic(highs, lows, closes)
    values["stochastic_k"] = lib.latest(stoch.k) if stoch.d else None
    values["stochastic_d"] = lib.latest(stoch.d)
    values["williams_r"] = lib.latest(lib.williams_r(highs, lows, closes, WILLIAMS_R_PERIOD))
    values["roc14"] = lib.latest(lib.roc(closes, ROC_PERIOD))
    values["cci20"] = lib.latest(lib.cci(highs, lows, closes))

    dm = lib.directional_movement(highs, lows, closes, ADX_PERIOD)
    if dm.adx:
        values["adx14"] = dm.adx[-1]
        values["plus_di"] = dm.plus_di[-1]
        values["minus_di"] = dm.minus_di[-1]
    values["atr14"] = lib.latest(lib.atr(highs, lows, closes, ATR_PERIOD))

    bb = lib.bollinger_bands(closes)
    if bb.middle:
        values["bollinger_middle"] = bb.middle[-1]
        values["bollinger_upper"] = bb.upper[-1]
        values["bollinger_lower"] = bb.lower[-1]
        values["bollinger_percent_b"] = bb.percent_b[-1]
        values["bollinger_bandwidth"] = bb.bandwidth[-1]

    values["volume_sma20"] = lib.latest(lib.sma(volumes, VOLUME_SMA_PERIOD))
    values["volume_recent3"] = lib.last_three(volumes)
    if n > VROC_PERIOD and volumes[-1 - VROC_PERIOD] > 0:
        values["vroc20"] = volumes[-1] / volumes[-1 - VROC_PERIOD] * 100.0

    obv = lib.obv(closes, volumes)
    values["obv"] = lib.latest(obv)
    values["obv_trend"] = lib.series_trend(obv)
    values["mfi14"] = lib.latest(lib.mfi(highs, lows, closes, volumes, MFI_PERIOD))
    ad = lib.ad_line(highs, lows, closes, volumes)
    values["ad_line"] = lib.latest(ad)
    values["ad_trend"] = lib.series_trend(ad)

    st = lib.supertrend(highs, lows, closes)
    if st.values:
        values["supertrend"] = st.values[-1]
        values["supertrend_direction"] = st.direction[-1]
    sar = lib.parabolic_sar(highs, lows, closes)
    if sar:
        values["parabolic_sar"] = sar[-1]
        values["sar_trend"] = "up" if sar[-1] < closes[-1] else "down"

    cloud = lib.ichimoku_cloud(highs, lows, closes)
    if cloud is not None:
        values["ichimoku_tenkan"] = cloud.tenkan
        values["ichimoku_kijun"] = cloud.kijun
        values["ichimoku_senkou_a"] = cloud.senkou_a
        values["ichimoku_senkou_b"] = cloud.senkou_b
        values["ichimoku_signal"] = cloud.signal

    values["weekly_trend"] = compute_weekly_trend(bars)
    if benchmark_closes:
        values["relative_strength_3m"] = lib.relative_strength(
            closes, benchmark_closes, RELATIVE_STRENGTH_PERIOD,
        )
    if n > WEEK_CHANGE_PERIOD and closes[-1 - WEEK_CHANGE_PERIOD] > 0:
        values["week_change"] = (closes[-1] / closes[-1 - WEEK_CHANGE_PERIOD] - 1.0) * 100.0

    values["candlestick_pattern"] = lib.detect_candlestick_pattern(opens, highs, lows, closes)

    values["missing_fields"] = [f for f in TRACKED_FIELDS if values.get(f) is None]
    if values["missing_fields"]:
        logger.debug(f"[Indicators] {n} bars: unset {', '.join(values['missing_fields'])}")

    return IndicatorSet(**values)
