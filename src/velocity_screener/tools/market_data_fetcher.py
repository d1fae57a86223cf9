"""
Market Data Fetcher — Daily bars via yfinance.
Velocity Momentum Screener

Batch-downloads daily OHLCV history for NSE symbols, the Nifty 50
benchmark and the India VIX, and converts them into StockSnapshot /
PriceBar inputs for the screener. Callers hold the market data lock
around these functions; nothing here touches the pipeline.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence

import pandas as pd
import yfinance as yf

from velocity_screener.config.constants import TURNOVER_DIVISOR, VOLUME_SMA_PERIOD
from velocity_screener.exceptions import MarketDataError
from velocity_screener.schemas.market_data import PriceBar, StockSnapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reference Data
# ---------------------------------------------------------------------------

SECTOR_MAP: Dict[str, str] = {
    "RELIANCE": "Energy", "ONGC": "Energy",
    "INFY": "IT Services", "TCS": "IT Services", "WIPRO": "IT Services",
    "HCLTECH": "IT Services", "TECHM": "IT Services",
    "HDFCBANK": "Banking", "ICICIBANK": "Banking", "SBIN": "Banking",
    "KOTAKBANK": "Banking", "AXISBANK": "Banking",
    "BAJFINANCE": "NBFC", "BAJAJFINSV": "NBFC",
    "TATASTEEL": "Metals & Mining", "HINDALCO": "Metals & Mining", "JSWSTEEL": "Metals & Mining",
    "LT": "Infrastructure",
    "BHARTIARTL": "Telecom",
    "SUNPHARMA": "Pharma", "DRREDDY": "Pharma", "CIPLA": "Pharma",
    "MARUTI": "Automobile", "TATAMOTORS": "Automobile", "M&M": "Automobile",
    "HINDUNILVR": "FMCG", "ITC": "FMCG", "NESTLEIND": "FMCG",
    "TITAN": "Consumer", "ASIANPAINT": "Consumer",
    "ULTRACEMCO": "Cement",
    "ADANIENT": "Conglomerate",
    "POWERGRID": "Utilities", "NTPC": "Utilities",
}

DEFAULT_UNIVERSE: List[str] = list(SECTOR_MAP)

_EXCHANGE_SUFFIX = {"NSE": ".NS", "BSE": ".BO"}


def to_yahoo_symbol(symbol: str, exchange: str = "NSE") -> str:
    """RELIANCE -> RELIANCE.NS; index tickers (^NSEI) and suffixed symbols pass through."""
    if symbol.startswith("^") or "." in symbol:
        return symbol
    return f"{symbol}{_EXCHANGE_SUFFIX.get(exchange.upper(), '')}"


# ---------------------------------------------------------------------------
# DataFrame Conversion
# ---------------------------------------------------------------------------

def _frame_for(df: pd.DataFrame, ticker: str) -> Optional[pd.DataFrame]:
    """Per-ticker OHLCV frame from a (possibly multi-level) download."""
    if not isinstance(df.columns, pd.MultiIndex):
        return df
    if ticker in df.columns.get_level_values(0):
        return df[ticker]
    if df.columns.nlevels > 1 and ticker in df.columns.get_level_values(1):
        return df.xs(ticker, axis=1, level=1)
    return None


def bars_from_dataframe(df: pd.DataFrame) -> List[PriceBar]:
    """
    Convert an OHLCV frame (DatetimeIndex, Open/High/Low/Close/Volume) to bars.

    Rows without a close are dropped; a missing volume counts as 0.
    """
    if df is None or df.empty or "Close" not in df.columns:
        return []
    frame = df.dropna(subset=["Close"])

    def num(row: pd.Series, col: str, default: float) -> float:
        value = row.get(col, default)
        return default if pd.isna(value) else float(value)

    bars: List[PriceBar] = []
    for ts, row in frame.iterrows():
        close = float(row["Close"])
        bars.append(PriceBar(
            date=pd.Timestamp(ts).date(),
            open=num(row, "Open", close),
            high=num(row, "High", close),
            low=num(row, "Low", close),
            close=close,
            volume=num(row, "Volume", 0.0),
        ))
    return bars


def average_turnover_crores(bars: Sequence[PriceBar], period: int = VOLUME_SMA_PERIOD) -> float:
    """Mean of close x volume over the last ``period`` bars, in crores."""
    window = bars[-period:]
    if not window:
        return 0.0
    return sum(b.close * b.volume for b in window) / len(window) / TURNOVER_DIVISOR


def snapshot_from_bars(
    symbol: str,
    bars: List[PriceBar],
    exchange: str = "NSE",
    name: str = "",
    sector: Optional[str] = None,
) -> StockSnapshot:
    """Build a StockSnapshot whose quote fields come from the latest bars."""
    last_price = bars[-1].close
    prev_close = bars[-2].close if len(bars) > 1 else last_price
    change_pct = (last_price - prev_close) / prev_close * 100 if prev_close > 0 else 0.0
    return StockSnapshot(
        symbol=symbol,
        exchange=exchange,
        name=name or symbol,
        sector=sector or SECTOR_MAP.get(symbol, "Unknown"),
        last_price=round(last_price, 2),
        change_percent=round(change_pct, 2),
        avg_daily_turnover=round(average_turnover_crores(bars), 2),
        bars=bars,
    )


# ---------------------------------------------------------------------------
# Downloads
# ---------------------------------------------------------------------------

def _download(tickers: List[str], period: str) -> pd.DataFrame:
    try:
        df = yf.download(
            tickers,
            period=period,
            interval="1d",
            group_by="ticker",
            auto_adjust=False,
            progress=False,
            threads=True,
        )
    except Exception as e:
        raise MarketDataError(f"yfinance download failed for {len(tickers)} tickers: {e}") from e
    if df is None or df.empty:
        raise MarketDataError(f"yfinance returned an empty frame for {len(tickers)} tickers")
    return df


def fetch_stock_snapshots(
    symbols: Sequence[str],
    exchange: str = "NSE",
    period: str = "2y",
) -> List[StockSnapshot]:
    """
    Batch-download daily history and build one snapshot per symbol.

    Symbols that are missing from the download or have no usable bars are
    skipped with a log line.

    Raises:
        MarketDataError: The batch download failed or returned nothing.
    """
    if not symbols:
        return []

    tickers = [to_yahoo_symbol(s, exchange) for s in symbols]
    logger.info(f"[MarketData] Fetching {period} of daily bars for {len(tickers)} symbols via yfinance ...")
    df = _download(tickers, period)

    snapshots: List[StockSnapshot] = []
    for symbol, ticker in zip(symbols, tickers):
        sym_df = _frame_for(df, ticker)
        if sym_df is None:
            logger.warning(f"[MarketData] {symbol} ({ticker}) not in download results")
            continue
        bars = bars_from_dataframe(sym_df)
        if len(bars) < 2:
            logger.warning(f"[MarketData] {symbol} has insufficient price data ({len(bars)} bars)")
            continue
        snapshots.append(snapshot_from_bars(symbol, bars, exchange))

    logger.info(f"[MarketData] Built snapshots for {len(snapshots)}/{len(symbols)} symbols")
    return snapshots


def fetch_benchmark_bars(symbol: str = "^NSEI", period: str = "2y") -> List[PriceBar]:
    """
    Daily bars for the benchmark index.

    Raises:
        MarketDataError: Download failed or produced no bars.
    """
    df = _download([symbol], period)
    sym_df = _frame_for(df, symbol)
    bars = bars_from_dataframe(sym_df) if sym_df is not None else []
    if not bars:
        raise MarketDataError(f"No benchmark bars for {symbol}")
    logger.info(f"[MarketData] Benchmark {symbol}: {len(bars)} bars")
    return bars


def fetch_volatility_index(symbol: str = "^INDIAVIX") -> Optional[float]:
    """Latest volatility index close, or None when unavailable."""
    try:
        bars = fetch_benchmark_bars(symbol, period="5d")
    except MarketDataError as e:
        logger.warning(f"[MarketData] Volatility index unavailable: {e}")
        return None
    value = bars[-1].close
    return None if math.isnan(value) else round(value, 2)
