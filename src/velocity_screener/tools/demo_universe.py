"""
Demo Universe — deterministic synthetic market data.
Velocity Momentum Screener

Seeded random walks for a small NSE-like universe (9 sectors) and its
benchmark, used by demo mode and by tests. The same seed always produces
the same bars, so demo scans are reproducible.
"""

from __future__ import annotations

import random
from datetime import date
from typing import List, NamedTuple

import pandas as pd

from velocity_screener.schemas.market_data import PriceBar, StockSnapshot
from velocity_screener.tools.market_data_fetcher import snapshot_from_bars

DEMO_END_DATE = date(2024, 12, 31)
DEMO_BARS = 260
DEMO_SEED = 42


class DemoProfile(NamedTuple):
    symbol: str
    name: str
    sector: str
    start_price: float
    drift: float
    """Mean daily log return"""
    volatility: float
    """Daily return standard deviation"""
    turnover_cr: float
    asm_gsm: bool = False


DEMO_PROFILES: List[DemoProfile] = [
    DemoProfile("RELIANCE", "Reliance Industries", "Energy", 2400.0, 0.0011, 0.012, 850.0),
    DemoProfile("ONGC", "Oil & Natural Gas Corp", "Energy", 180.0, 0.0004, 0.016, 240.0),
    DemoProfile("TCS", "Tata Consultancy Services", "IT Services", 3300.0, 0.0014, 0.011, 620.0),
    DemoProfile("INFY", "Infosys", "IT Services", 1450.0, 0.0012, 0.013, 560.0),
    DemoProfile("WIPRO", "Wipro", "IT Services", 420.0, 0.0002, 0.015, 180.0),
    DemoProfile("HDFCBANK", "HDFC Bank", "Banking", 1550.0, 0.0006, 0.010, 980.0),
    DemoProfile("ICICIBANK", "ICICI Bank", "Banking", 950.0, 0.0013, 0.012, 760.0),
    DemoProfile("SBIN", "State Bank of India", "Banking", 580.0, 0.0009, 0.014, 690.0),
    DemoProfile("SUNPHARMA", "Sun Pharmaceutical", "Pharma", 1050.0, 0.0016, 0.012, 310.0),
    DemoProfile("CIPLA", "Cipla", "Pharma", 1150.0, 0.0003, 0.013, 150.0),
    DemoProfile("MARUTI", "Maruti Suzuki", "Automobile", 9800.0, 0.0010, 0.012, 420.0),
    DemoProfile("TATAMOTORS", "Tata Motors", "Automobile", 620.0, 0.0018, 0.018, 880.0),
    DemoProfile("HINDUNILVR", "Hindustan Unilever", "FMCG", 2550.0, -0.0003, 0.009, 300.0),
    DemoProfile("ITC", "ITC", "FMCG", 440.0, 0.0002, 0.010, 410.0),
    DemoProfile("TATASTEEL", "Tata Steel", "Metals & Mining", 120.0, -0.0008, 0.019, 520.0),
    DemoProfile("HINDALCO", "Hindalco Industries", "Metals & Mining", 480.0, -0.0005, 0.017, 280.0),
    DemoProfile("NTPC", "NTPC", "Utilities", 190.0, 0.0015, 0.013, 330.0),
    DemoProfile("POWERGRID", "Power Grid Corp", "Utilities", 210.0, 0.0011, 0.011, 220.0),
    DemoProfile("SMALLCAP", "Illiquid Smallcap", "Consumer", 85.0, 0.0012, 0.025, 4.0),
    DemoProfile("SURVEIL", "Surveillance Listed Co", "Consumer", 310.0, 0.0020, 0.022, 60.0, True),
]


def generate_bars(
    rng: random.Random,
    start_price: float,
    drift: float,
    volatility: float,
    avg_volume: float,
    n_bars: int = DEMO_BARS,
    end: date = DEMO_END_DATE,
) -> List[PriceBar]:
    """Random-walk daily OHLCV bars on business days ending at ``end``."""
    dates = pd.bdate_range(end=end, periods=n_bars)
    bars: List[PriceBar] = []
    prev_close = start_price
    for ts in dates:
        ret = rng.gauss(drift, volatility)
        close = max(prev_close * (1.0 + ret), 0.05)
        open_ = prev_close * (1.0 + rng.gauss(0.0, volatility / 3.0))
        high = max(open_, close) * (1.0 + abs(rng.gauss(0.0, volatility / 2.0)))
        low = min(open_, close) * (1.0 - abs(rng.gauss(0.0, volatility / 2.0)))
        volume = avg_volume * rng.lognormvariate(0.0, 0.3)
        bars.append(PriceBar(
            date=ts.date(),
            open=round(open_, 2),
            high=round(high, 2),
            low=round(max(low, 0.01), 2),
            close=round(close, 2),
            volume=float(int(volume)),
        ))
        prev_close = close
    return bars


def build_demo_universe(seed: int = DEMO_SEED, n_bars: int = DEMO_BARS) -> List[StockSnapshot]:
    """One StockSnapshot per demo profile, reproducible for a given seed."""
    rng = random.Random(seed)
    snapshots: List[StockSnapshot] = []
    for p in DEMO_PROFILES:
        avg_volume = p.turnover_cr * 10_000_000 / p.start_price
        bars = generate_bars(rng, p.start_price, p.drift, p.volatility, avg_volume, n_bars)
        snap = snapshot_from_bars(p.symbol, bars, name=p.name, sector=p.sector)
        if p.asm_gsm:
            snap = snap.model_copy(update={"is_asm_gsm": True})
        snapshots.append(snap)
    return snapshots


def build_demo_benchmark(seed: int = DEMO_SEED, n_bars: int = DEMO_BARS) -> List[PriceBar]:
    """Synthetic Nifty 50 with a mild uptrend."""
    rng = random.Random(seed + 1)
    return generate_bars(rng, 21500.0, 0.0005, 0.008, 250_000_000.0, n_bars)
