"""
Screener Thresholds — Config & Resolved Schema
Velocity Momentum Screener

ScreenerConfig is the caller-facing partial override (every field optional).
AdaptiveThresholds is the fully resolved set actually used for one run:
defaults, then the regime adjustment, then explicit overrides, clamped.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from velocity_screener.schemas.regime_output import MarketRegime


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Declared range per numeric field; resolved values are clamped into it.
CONFIG_FIELD_BOUNDS: Dict[str, Tuple[float, float]] = {
    "min_avg_daily_turnover": (0.0, 10_000.0),
    "min_adx": (0.0, 100.0),
    "rsi_low": (0.0, 100.0),
    "rsi_high": (0.0, 100.0),
    "max_ema_proximity": (0.0, 100.0),
    "volume_multiplier": (0.0, 100.0),
    "mfi_low": (0.0, 100.0),
    "mfi_high": (0.0, 100.0),
    "max_atr_percent": (0.0, 100.0),
    "min_bollinger_bandwidth": (0.0, 1.0),
    "atr_multiple": (0.0, 100.0),
    "min_risk_reward": (0.0, 100.0),
    "max_capital_risk": (0.0, 100.0),
    "risk_per_trade_percent": (0.0, 100.0),
}

# Fields where a larger value is stricter / a smaller value is stricter.
# Used by tests of the BEAR-vs-BULL tightening property.
STRICTER_WHEN_HIGHER = ("min_adx", "rsi_low", "volume_multiplier", "mfi_low", "min_risk_reward")
STRICTER_WHEN_LOWER = ("rsi_high", "mfi_high", "max_atr_percent", "max_capital_risk", "risk_per_trade_percent")

# Per-regime deltas applied on top of the defaults.
REGIME_ADJUSTMENTS: Dict[MarketRegime, Dict[str, float]] = {
    MarketRegime.BULL: {
        "min_adx": 22.0,
        "rsi_high": 78.0,
        "volume_multiplier": 1.1,
        "max_atr_percent": 5.5,
    },
    MarketRegime.SIDEWAYS: {},
    MarketRegime.BEAR: {
        "min_adx": 30.0,
        "rsi_low": 45.0,
        "rsi_high": 70.0,
        "volume_multiplier": 1.5,
        "mfi_low": 45.0,
        "mfi_high": 75.0,
        "max_atr_percent": 4.0,
        "min_risk_reward": 2.5,
        "max_capital_risk": 5.0,
        "risk_per_trade_percent": 1.0,
    },
}


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ScreenerConfig(BaseModel):
    """Partial threshold override. None means 'not set'."""

    model_config = ConfigDict(extra="forbid")

    # Phase 1: Liquidity
    min_avg_daily_turnover: Optional[float] = None
    exclude_asm_gsm: Optional[bool] = None
    # Phase 2: Trend
    min_adx: Optional[float] = None
    # Phase 3: Momentum
    rsi_low: Optional[float] = None
    rsi_high: Optional[float] = None
    max_ema_proximity: Optional[float] = None
    # Phase 4: Volume
    volume_multiplier: Optional[float] = None
    mfi_low: Optional[float] = None
    mfi_high: Optional[float] = None
    # Phase 5: Volatility
    max_atr_percent: Optional[float] = None
    min_bollinger_bandwidth: Optional[float] = None
    # Phase 6: Risk
    atr_multiple: Optional[float] = None
    min_risk_reward: Optional[float] = None
    max_capital_risk: Optional[float] = None
    risk_per_trade_percent: Optional[float] = None

    def explicit_fields(self) -> Dict[str, object]:
        """Fields the caller actually set."""
        return {k: v for k, v in self.model_dump().items() if v is not None}


class ThresholdValues(BaseModel):
    """Fully populated threshold values (no optional fields)."""

    model_config = ConfigDict(frozen=True)

    min_avg_daily_turnover: float
    exclude_asm_gsm: bool
    min_adx: float
    rsi_low: float
    rsi_high: float
    max_ema_proximity: float
    volume_multiplier: float
    mfi_low: float
    mfi_high: float
    max_atr_percent: float
    min_bollinger_bandwidth: float
    atr_multiple: float
    min_risk_reward: float
    max_capital_risk: float
    risk_per_trade_percent: float

    @model_validator(mode="after")
    def validate_bands(self) -> "ThresholdValues":
        if self.rsi_low > self.rsi_high:
            raise ValueError(f"rsi_low {self.rsi_low} > rsi_high {self.rsi_high}")
        if self.mfi_low > self.mfi_high:
            raise ValueError(f"mfi_low {self.mfi_low} > mfi_high {self.mfi_high}")
        return self


class AdaptiveThresholds(ThresholdValues):
    """The thresholds used for one evaluation run, with their provenance."""

    regime: MarketRegime
    overridden_fields: List[str] = Field(default_factory=list)


DEFAULT_THRESHOLDS = ThresholdValues(
    min_avg_daily_turnover=20.0,
    exclude_asm_gsm=True,
    min_adx=25.0,
    rsi_low=40.0,
    rsi_high=75.0,
    max_ema_proximity=3.0,
    volume_multiplier=1.2,
    mfi_low=40.0,
    mfi_high=80.0,
    max_atr_percent=5.0,
    min_bollinger_bandwidth=0.02,
    atr_multiple=1.5,
    min_risk_reward=2.0,
    max_capital_risk=8.0,
    risk_per_trade_percent=1.5,
)
