"""
Indicator Library: Technical Indicator Series
Velocity Momentum Screener

Vectorised on pandas Series. Inputs are float sequences (oldest first);
every series function returns a list aligned to the END of its input, so
``result[-1]`` is the value at the latest bar. When the input is shorter
than the lookback the result is empty; callers treat that as "not
computable" rather than estimating a value.

Exponential averages are seeded with the SMA of their first n values
(``ewm(adjust=False)`` over the seeded tail), so EMA(n) and the Wilder
smoothers first appear at bar n.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from velocity_screener.config.constants import (
    BOLLINGER_PERIOD,
    BOLLINGER_STD_DEV,
    CCI_CONSTANT,
    CCI_PERIOD,
    ICHIMOKU_DISPLACEMENT,
    ICHIMOKU_KIJUN_PERIOD,
    ICHIMOKU_SENKOU_B_PERIOD,
    ICHIMOKU_TENKAN_PERIOD,
    MACD_FAST_PERIOD,
    MACD_SIGNAL_PERIOD,
    MACD_SLOW_PERIOD,
    SAR_AF_MAX,
    SAR_AF_START,
    SAR_AF_STEP,
    STOCHASTIC_D_PERIOD,
    STOCHASTIC_K_PERIOD,
    STOCHASTIC_SMOOTH,
    SUPERTREND_ATR_PERIOD,
    SUPERTREND_MULTIPLIER,
    TREND_DEAD_BAND,
    TREND_LOOKBACK,
)

Values = Sequence[float]


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------

@dataclass
class MACDSeries:
    line: List[float]
    signal: List[float]
    histogram: List[float]


@dataclass
class DirectionalMovement:
    adx: List[float]
    plus_di: List[float]
    minus_di: List[float]


@dataclass
class BollingerSeries:
    upper: List[float]
    middle: List[float]
    lower: List[float]
    percent_b: List[float]
    bandwidth: List[float]


@dataclass
class StochasticSeries:
    k: List[float]
    d: List[float]


@dataclass
class SuperTrendSeries:
    values: List[float]
    direction: List[str]


@dataclass
class IchimokuCloud:
    """Latest Ichimoku lines; senkou spans are the ones plotted under today's bar."""

    tenkan: float
    kijun: float
    senkou_a: float
    senkou_b: float
    chikou: float
    signal: str


# ---------------------------------------------------------------------------
# Series helpers
# ---------------------------------------------------------------------------

def _to_series(values: Values) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(list(values), dtype=float)


def _seeded_ewm(s: pd.Series, period: int, **ewm_kwargs) -> pd.Series:
    """ewm(adjust=False) over s[period-1:], with the first value replaced by the SMA seed."""
    if period <= 0 or len(s) < period:
        return pd.Series(dtype=float)
    seeded = s.iloc[period - 1:].copy()
    seeded.iloc[0] = s.iloc[:period].mean()
    return seeded.ewm(adjust=False, **ewm_kwargs).mean()


def _ema_series(s: pd.Series, period: int) -> pd.Series:
    return _seeded_ewm(s, period, span=period)


def _wilder_series(s: pd.Series, period: int) -> pd.Series:
    return _seeded_ewm(s, period, alpha=1.0 / period)


def _true_range_series(high: pd.Series, low: pd.Series, close: pd.Series) -> pd.Series:
    prev_close = close.shift(1)
    tr = pd.concat(
        [high - low, (high - prev_close).abs(), (low - prev_close).abs()],
        axis=1,
    ).max(axis=1)
    return tr.iloc[1:]


def _midpoint_series(high: pd.Series, low: pd.Series, period: int) -> pd.Series:
    return (high.rolling(period).max() + low.rolling(period).min()) / 2.0


# ---------------------------------------------------------------------------
# Averages & smoothing
# ---------------------------------------------------------------------------

def sma(values: Values, period: int) -> List[float]:
    """Simple moving average."""
    s = _to_series(values)
    if period <= 0 or len(s) < period:
        return []
    return s.rolling(period).mean().iloc[period - 1:].tolist()


def ema(values: Values, period: int) -> List[float]:
    """Exponential moving average, 2/(n+1) weighting, seeded with the SMA of the first n values."""
    return _ema_series(_to_series(values), period).tolist()


def wilder_smooth(values: Values, period: int) -> List[float]:
    """Wilder's running average: seed = mean of first n, then (prev*(n-1) + x)/n."""
    return _wilder_series(_to_series(values), period).tolist()


def true_ranges(high: Values, low: Values, close: Values) -> List[float]:
    """True range from the second bar onward."""
    return _true_range_series(_to_series(high), _to_series(low), _to_series(close)).tolist()


# ---------------------------------------------------------------------------
# Momentum
# ---------------------------------------------------------------------------

def rsi(close: Values, period: int = 14) -> List[float]:
    """Relative Strength Index with Wilder smoothing. 100 on pure gains, 50 when flat."""
    changes = _to_series(close).diff().iloc[1:]
    avg_gain = _wilder_series(changes.clip(lower=0.0), period)
    avg_loss = _wilder_series((-changes).clip(lower=0.0), period)
    if avg_gain.empty:
        return []
    out = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
    no_loss = avg_loss == 0
    out = out.mask(no_loss, 100.0).mask(no_loss & (avg_gain == 0), 50.0)
    return out.tolist()


def macd(
    close: Values,
    fast: int = MACD_FAST_PERIOD,
    slow: int = MACD_SLOW_PERIOD,
    signal: int = MACD_SIGNAL_PERIOD,
) -> MACDSeries:
    """MACD line = EMA(fast) - EMA(slow); signal = EMA(signal) of the line."""
    s = _to_series(close)
    slow_ema = _ema_series(s, slow)
    if slow_ema.empty:
        return MACDSeries([], [], [])
    line = (_ema_series(s, fast) - slow_ema).dropna()
    signal_line = _ema_series(line, signal)
    if signal_line.empty:
        return MACDSeries(line.tolist(), [], [])
    histogram = (line - signal_line).dropna()
    return MACDSeries(line.tolist(), signal_line.tolist(), histogram.tolist())


def stochastic(
    high: Values,
    low: Values,
    close: Values,
    k_period: int = STOCHASTIC_K_PERIOD,
    smooth: int = STOCHASTIC_SMOOTH,
    d_period: int = STOCHASTIC_D_PERIOD,
) -> StochasticSeries:
    """Slow stochastic: raw %K over k_period, %K = SMA(smooth), %D = SMA(d_period) of %K."""
    h, l, c = _to_series(high), _to_series(low), _to_series(close)
    highest = h.rolling(k_period).max()
    lowest = l.rolling(k_period).min()
    span = highest - lowest
    raw_k = ((c - lowest) / span * 100.0).mask(span == 0, 50.0).dropna()
    k = raw_k.rolling(smooth).mean().dropna()
    d = k.rolling(d_period).mean().dropna()
    return StochasticSeries(k.tolist(), d.tolist())


def williams_r(high: Values, low: Values, close: Values, period: int = 14) -> List[float]:
    """Williams %R in [-100, 0]; the inverse view of the raw stochastic."""
    h, l, c = _to_series(high), _to_series(low), _to_series(close)
    highest = h.rolling(period).max()
    lowest = l.rolling(period).min()
    span = highest - lowest
    return ((highest - c) / span * -100.0).mask(span == 0, -50.0).dropna().tolist()


def roc(close: Values, period: int = 14) -> List[float]:
    """Rate of change, percent over ``period`` bars."""
    c = _to_series(close)
    prev = c.shift(period)
    return ((c - prev) / prev * 100.0).mask(prev == 0, 0.0).iloc[period:].tolist()


def cci(high: Values, low: Values, close: Values, period: int = CCI_PERIOD) -> List[float]:
    """Commodity Channel Index over the typical price."""
    tp = (_to_series(high) + _to_series(low) + _to_series(close)) / 3.0
    mean = tp.rolling(period).mean()
    mean_dev = tp.rolling(period).apply(lambda w: abs(w - w.mean()).mean(), raw=True)
    out = ((tp - mean) / (CCI_CONSTANT * mean_dev)).mask(mean_dev == 0, 0.0)
    return out.iloc[period - 1:].tolist()


# ---------------------------------------------------------------------------
# Trend strength & volatility
# ---------------------------------------------------------------------------

def directional_movement(
    high: Values,
    low: Values,
    close: Values,
    period: int = 14,
) -> DirectionalMovement:
    """ADX with +DI/-DI, all Wilder-smoothed from the same true ranges."""
    h, l, c = _to_series(high), _to_series(low), _to_series(close)
    smooth_tr = _wilder_series(_true_range_series(h, l, c), period)
    if smooth_tr.empty:
        return DirectionalMovement([], [], [])

    up_move = h.diff()
    down_move = -l.diff()
    plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0).iloc[1:]
    minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0).iloc[1:]

    no_range = smooth_tr == 0
    plus_di = (_wilder_series(plus_dm, period) / smooth_tr * 100.0).mask(no_range, 0.0)
    minus_di = (_wilder_series(minus_dm, period) / smooth_tr * 100.0).mask(no_range, 0.0)
    total = plus_di + minus_di
    dx = ((plus_di - minus_di).abs() / total * 100.0).mask(total == 0, 0.0)

    adx = _wilder_series(dx, period)
    return DirectionalMovement(adx.tolist(), plus_di.tolist(), minus_di.tolist())


def atr(high: Values, low: Values, close: Values, period: int = 14) -> List[float]:
    """Average True Range (Wilder)."""
    tr = _true_range_series(_to_series(high), _to_series(low), _to_series(close))
    return _wilder_series(tr, period).tolist()


def bollinger_bands(
    close: Values,
    period: int = BOLLINGER_PERIOD,
    std_dev: float = BOLLINGER_STD_DEV,
) -> BollingerSeries:
    """SMA +/- k population standard deviations, with %B and bandwidth."""
    c = _to_series(close)
    if len(c) < period:
        return BollingerSeries([], [], [], [], [])
    middle = c.rolling(period).mean()
    sd = c.rolling(period).std(ddof=0)
    upper = middle + std_dev * sd
    lower = middle - std_dev * sd
    width = upper - lower
    percent_b = ((c - lower) / width).mask(width == 0, 0.5)
    bandwidth = (width / middle).mask(middle == 0, 0.0)

    start = period - 1
    return BollingerSeries(
        upper=upper.iloc[start:].tolist(),
        middle=middle.iloc[start:].tolist(),
        lower=lower.iloc[start:].tolist(),
        percent_b=percent_b.iloc[start:].tolist(),
        bandwidth=bandwidth.iloc[start:].tolist(),
    )


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

def obv(close: Values, volume: Values) -> List[float]:
    """On-Balance Volume: cumulative volume signed by close-to-close direction."""
    c, v = _to_series(close), _to_series(volume)
    change = c.diff()
    signed = v.where(change > 0, 0.0) - v.where(change < 0, 0.0)
    return signed.cumsum().tolist()


def mfi(high: Values, low: Values, close: Values, volume: Values, period: int = 14) -> List[float]:
    """Money Flow Index: volume-weighted RSI analogue over typical price."""
    tp = (_to_series(high) + _to_series(low) + _to_series(close)) / 3.0
    raw_flow = tp * _to_series(volume)
    change = tp.diff()
    positive = raw_flow.where(change > 0, 0.0).rolling(period).sum()
    negative = raw_flow.where(change < 0, 0.0).rolling(period).sum()

    out = 100.0 - 100.0 / (1.0 + positive / negative)
    no_outflow = negative == 0
    out = out.mask(no_outflow, 100.0).mask(no_outflow & (positive == 0), 50.0)
    # First full window needs a prior bar for its first direction.
    return out.iloc[period:].tolist()


def ad_line(high: Values, low: Values, close: Values, volume: Values) -> List[float]:
    """Accumulation/Distribution line: close location value x volume, accumulated."""
    h, l, c = _to_series(high), _to_series(low), _to_series(close)
    span = h - l
    mfm = (((c - l) - (h - c)) / span).mask(span == 0, 0.0)
    return (mfm * _to_series(volume)).cumsum().tolist()


def series_trend(
    values: Values,
    lookback: int = TREND_LOOKBACK,
    dead_band: float = TREND_DEAD_BAND,
) -> Optional[str]:
    """'up'/'down'/'flat' comparing the latest value with ``lookback`` bars earlier."""
    if len(values) <= lookback:
        return None
    current = values[-1]
    reference = values[-1 - lookback]
    change = current - reference
    threshold = abs(reference) * dead_band
    if change > threshold and change != 0:
        return "up"
    if change < -threshold and change != 0:
        return "down"
    return "flat"


# ---------------------------------------------------------------------------
# Trailing stop systems
# ---------------------------------------------------------------------------

def supertrend(
    high: Values,
    low: Values,
    close: Values,
    period: int = SUPERTREND_ATR_PERIOD,
    multiplier: float = SUPERTREND_MULTIPLIER,
) -> SuperTrendSeries:
    """ATR-banded trend flip indicator around the bar midpoint (hl2)."""
    h, l, c = _to_series(high), _to_series(low), _to_series(close)
    atr_values = _wilder_series(_true_range_series(h, l, c), period)
    if atr_values.empty:
        return SuperTrendSeries([], [])

    hl2 = ((h + l) / 2.0).loc[atr_values.index]
    upper = (hl2 + multiplier * atr_values).tolist()
    lower = (hl2 - multiplier * atr_values).tolist()
    closes = c.loc[atr_values.index].tolist()
    prev_closes = c.shift(1).loc[atr_values.index].tolist()

    direction = ["up" if closes[0] > upper[0] else "down"]
    values = [lower[0] if direction[0] == "up" else upper[0]]

    for i in range(1, len(closes)):
        # Final bands only ratchet toward price unless price crossed them.
        if not (lower[i] > lower[i - 1] or prev_closes[i] < lower[i - 1]):
            lower[i] = lower[i - 1]
        if not (upper[i] < upper[i - 1] or prev_closes[i] > upper[i - 1]):
            upper[i] = upper[i - 1]

        if direction[-1] == "up":
            direction.append("down" if closes[i] < lower[i] else "up")
        else:
            direction.append("up" if closes[i] > upper[i] else "down")
        values.append(lower[i] if direction[-1] == "up" else upper[i])

    return SuperTrendSeries(values, direction)


def parabolic_sar(
    high: Values,
    low: Values,
    close: Values,
    af_start: float = SAR_AF_START,
    af_step: float = SAR_AF_STEP,
    af_max: float = SAR_AF_MAX,
) -> List[float]:
    """Wilder's Parabolic Stop-and-Reverse."""
    high, low, close = list(high), list(low), list(close)
    n = len(close)
    if n < 2:
        return []
    up = close[1] > close[0]
    af = af_start
    ep = high[0] if up else low[0]
    sar = [low[0] if up else high[0]]

    for i in range(1, n):
        current = sar[-1] + af * (ep - sar[-1])
        if up:
            current = min([current] + low[max(i - 2, 0):i])
            if low[i] < current:
                up = False
                current = ep
                ep = low[i]
                af = af_start
            elif high[i] > ep:
                ep = high[i]
                af = min(af + af_step, af_max)
        else:
            current = max([current] + high[max(i - 2, 0):i])
            if high[i] > current:
                up = True
                current = ep
                ep = high[i]
                af = af_start
            elif low[i] < ep:
                ep = low[i]
                af = min(af + af_step, af_max)
        sar.append(current)

    return sar


# ---------------------------------------------------------------------------
# Ichimoku
# ---------------------------------------------------------------------------

def ichimoku_cloud(
    high: Values,
    low: Values,
    close: Values,
    tenkan_period: int = ICHIMOKU_TENKAN_PERIOD,
    kijun_period: int = ICHIMOKU_KIJUN_PERIOD,
    senkou_b_period: int = ICHIMOKU_SENKOU_B_PERIOD,
    displacement: int = ICHIMOKU_DISPLACEMENT,
) -> Optional[IchimokuCloud]:
    """
    Latest Ichimoku lines and the position of price relative to the Kumo.

    The cloud under today's bar is the pair of spans computed
    ``displacement`` bars ago, so the longest requirement is
    senkou_b_period + displacement bars.
    """
    h, l, c = _to_series(high), _to_series(low), _to_series(close)
    if len(c) < senkou_b_period + displacement:
        return None

    tenkan = _midpoint_series(h, l, tenkan_period)
    kijun = _midpoint_series(h, l, kijun_period)
    senkou_a = ((tenkan + kijun) / 2.0).shift(displacement)
    senkou_b = _midpoint_series(h, l, senkou_b_period).shift(displacement)

    price = float(c.iloc[-1])
    span_a = float(senkou_a.iloc[-1])
    span_b = float(senkou_b.iloc[-1])
    top = max(span_a, span_b)
    bottom = min(span_a, span_b)
    if price > top:
        signal = "above"
    elif price < bottom:
        signal = "below"
    else:
        signal = "inside"

    return IchimokuCloud(
        tenkan=float(tenkan.iloc[-1]),
        kijun=float(kijun.iloc[-1]),
        senkou_a=span_a,
        senkou_b=span_b,
        chikou=price,
        signal=signal,
    )


# ---------------------------------------------------------------------------
# Relative & pattern helpers
# ---------------------------------------------------------------------------

def relative_strength(stock_close: Values, benchmark_close: Values, period: int = 63) -> Optional[float]:
    """Stock return minus benchmark return over ``period`` bars, in percent points."""
    if len(stock_close) <= period or len(benchmark_close) <= period:
        return None
    stock = _to_series(stock_close).iloc[-1 - period:]
    bench = _to_series(benchmark_close).iloc[-1 - period:]
    if stock.iloc[0] <= 0 or bench.iloc[0] <= 0:
        return None
    stock_return = (stock.iloc[-1] / stock.iloc[0] - 1.0) * 100.0
    bench_return = (bench.iloc[-1] / bench.iloc[0] - 1.0) * 100.0
    return float(stock_return - bench_return)


def detect_candlestick_pattern(
    open_: Values,
    high: Values,
    low: Values,
    close: Values,
) -> Optional[str]:
    """Bullish reversal pattern on the latest bars, or None."""
    n = len(close)
    if n < 2:
        return None

    o, h, l, c = open_[-1], high[-1], low[-1], close[-1]
    body = abs(c - o)
    span = h - l
    upper_shadow = h - max(o, c)
    lower_shadow = min(o, c) - l

    if span > 0 and body > 0 and lower_shadow >= body * 2 and upper_shadow < body * 0.5:
        return "Hammer"

    prev_open, prev_close = open_[-2], close[-2]
    if prev_close < prev_open and c > o and o < prev_close and c > prev_open:
        return "Bullish Engulfing"

    if span > 0 and body < span * 0.1:
        return "Doji"

    if n >= 3:
        first_open, first_close = open_[-3], close[-3]
        mid_body = abs(close[-2] - open_[-2])
        mid_span = high[-2] - low[-2]
        if (
            first_close < first_open
            and mid_body < mid_span * 0.3
            and c > o
            and c > (first_open + first_close) / 2.0
        ):
            return "Morning Star"

    return None


def latest(values: Sequence) -> Optional[float]:
    """Last element or None for an empty series."""
    return values[-1] if len(values) > 0 else None


def last_three(values: Values) -> Optional[Tuple[float, float, float]]:
    if len(values) < 3:
        return None
    return (values[-3], values[-2], values[-1])
