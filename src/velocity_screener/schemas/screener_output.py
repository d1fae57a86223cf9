"""
Momentum Screener — Output Schema
Velocity Momentum Screener

Output contract for the six-phase screener pipeline: one ScreenerResult per
input symbol (input order preserved), plus the run-level ScreenerOutput and
the capped SnapshotSummary handed to the snapshot store.

Five signals:
  STRONG_BUY — phases 1-5 pass, score >= 80, R:R meets minimum
  BUY        — phases 1-5 pass, score >= 60, R:R meets minimum
  WATCH      — phases 1-3 pass
  NEUTRAL    — phase 1 passes
  AVOID      — phase 1 fails
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from velocity_screener.schemas.indicator_output import IndicatorSet
from velocity_screener.schemas.market_data import StockReference
from velocity_screener.schemas.regime_output import MarketRegimeInfo
from velocity_screener.schemas.sector_output import SectorRanking
from velocity_screener.schemas.threshold_output import AdaptiveThresholds


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Signal(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    WATCH = "WATCH"
    NEUTRAL = "NEUTRAL"
    AVOID = "AVOID"


BUY_CLASS_SIGNALS = (Signal.STRONG_BUY, Signal.BUY)

RsiTier = Literal["optimal", "good", "caution", "exhaustion", "unknown"]
VolumeTrend = Literal["accelerating", "steady", "declining"]


# ---------------------------------------------------------------------------
# Phase Detail Models
# ---------------------------------------------------------------------------

class Phase3Details(BaseModel):
    """Momentum sub-conditions (3 of 5 required) plus scoring extras."""

    pullback_to_ema: bool
    rsi_in_zone: bool
    roc_positive: bool
    plus_di_above_minus_di: bool
    stochastic_bullish: bool
    conditions_met: int = Field(..., ge=0, le=5)
    ema_proximity: Optional[float] = Field(None, ge=0.0, description="% distance to nearest of EMA20/EMA50")
    rsi_value: Optional[float] = None
    rsi_tier: RsiTier = "unknown"
    macd_bullish: bool = False
    volume_decline: bool = False
    candlestick_pattern: Optional[str] = None


class Phase4VolumeDetails(BaseModel):
    """Volume sub-conditions (2 of 3 required) plus scoring extras."""

    volume_above_avg: bool
    mfi_healthy: bool
    obv_trending_up: bool
    conditions_met: int = Field(..., ge=0, le=3)
    volume_ratio: Optional[float] = Field(None, ge=0.0)
    volume_trend: VolumeTrend = "steady"
    vroc20: Optional[float] = None


class Phase5VolatilityDetails(BaseModel):
    atr_reasonable: bool
    bollinger_expanding: bool
    price_in_upper_band: bool
    atr_percent: Optional[float] = Field(None, ge=0.0)


class RiskParameters(BaseModel):
    """Phase 6: always computed, never gated."""

    entry_price: float = Field(..., ge=0.0)
    stop_loss: float = Field(..., ge=0.0)
    target: float = Field(..., ge=0.0)
    risk_reward_ratio: float = Field(..., ge=0.0)
    risk_per_share: float = Field(..., ge=0.0)
    atr_multiple: float
    meets_min_risk_reward: bool


class PositionSizing(BaseModel):
    shares: int = Field(..., ge=0)
    position_value: float = Field(..., ge=0.0)
    risk_amount: float = Field(..., ge=0.0)
    risk_per_share: float = Field(..., ge=0.0)
    capital_used_percent: float = Field(..., ge=0.0)
    is_capped: bool = Field(False, description="Share count reduced by the max capital cap")


# ---------------------------------------------------------------------------
# Result Models
# ---------------------------------------------------------------------------

class ScreenerResult(BaseModel):
    """Full evaluation of one symbol."""

    stock: StockReference
    indicators: IndicatorSet
    phase1_pass: bool
    phase2_pass: bool
    phase3_pass: bool
    phase3_details: Phase3Details
    phase4_pass: bool
    phase4_details: Phase4VolumeDetails
    phase5_pass: bool
    phase5_details: Phase5VolatilityDetails
    phase6: RiskParameters
    position_sizing: Optional[PositionSizing] = None
    sector_bonus: int = 0
    overall_score: int = Field(..., ge=0, le=100)
    signal: Signal
    rationale: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_signal_consistency(self) -> "ScreenerResult":
        """BUY-class signals require phases 1-5 and an acceptable R:R."""
        if self.signal in BUY_CLASS_SIGNALS:
            if not self.all_phases_pass:
                raise ValueError(f"{self.signal.value} requires phases 1-5 to pass")
            if not self.phase6.meets_min_risk_reward:
                raise ValueError(f"{self.signal.value} requires the minimum risk:reward")
        return self

    @property
    def all_phases_pass(self) -> bool:
        return (
            self.phase1_pass and self.phase2_pass and self.phase3_pass
            and self.phase4_pass and self.phase5_pass
        )


class PipelineFunnel(BaseModel):
    """How many symbols survived each phase."""

    total_scanned: int = Field(..., ge=0)
    phase1: int = Field(..., ge=0)
    phase2: int = Field(..., ge=0)
    phase3: int = Field(..., ge=0)
    phase4: int = Field(..., ge=0)
    phase5: int = Field(..., ge=0)


class SnapshotEntry(BaseModel):
    symbol: str
    name: str
    sector: str
    signal: Signal
    overall_score: int
    entry_price: float
    stop_loss: float
    target: float
    risk_reward_ratio: float


class SnapshotSummary(BaseModel):
    """Capped top-N summary persisted after a scan."""

    created_at: datetime
    mode: Literal["live", "demo"]
    regime: str
    total_scanned: int = Field(..., ge=0)
    signal_counts: Dict[str, int]
    pipeline: PipelineFunnel
    top_signals: List[SnapshotEntry] = Field(default_factory=list)


class ScreenerOutput(BaseModel):
    """Everything a boundary layer needs to render one scan."""

    timestamp: datetime
    mode: Literal["live", "demo"]
    total_scanned: int = Field(..., ge=0)
    market_regime: MarketRegimeInfo
    adaptive_thresholds: AdaptiveThresholds
    sector_rankings: Dict[str, SectorRanking] = Field(default_factory=dict)
    pipeline: PipelineFunnel
    signal_counts: Dict[str, int]
    results: List[ScreenerResult] = Field(default_factory=list)
    errors: List[dict] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_totals(self) -> "ScreenerOutput":
        if self.total_scanned != len(self.results):
            raise ValueError(
                f"total_scanned {self.total_scanned} != {len(self.results)} results"
            )
        return self
