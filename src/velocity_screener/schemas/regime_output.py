"""
Market Regime — Output Schema
Velocity Momentum Screener

Three-state classification of the benchmark index trend, used to tighten or
relax the screener thresholds.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

BULL_MIN_ADX: float = 25.0
"""Benchmark ADX needed before an aligned uptrend counts as BULL"""


class MarketRegime(str, Enum):
    BULL = "BULL"
    BEAR = "BEAR"
    SIDEWAYS = "SIDEWAYS"


class MarketRegimeInfo(BaseModel):
    """Detected regime plus the benchmark values that produced it."""

    regime: MarketRegime
    description: str = Field(..., min_length=10)
    benchmark_close: float
    benchmark_ema20: float
    benchmark_ema50: float
    benchmark_adx: float
    volatility_index: Optional[float] = Field(None, description="India VIX; None when unavailable")
