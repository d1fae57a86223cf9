"""
Centralized configuration for the Velocity momentum screener.

This module defines the lookback periods, phase vote counts, score weights
and signal cut points used throughout the screener. Centralizing these
values makes it easier to tune the system and to test decision boundaries
independently.

Threshold DEFAULTS (turnover, ADX, RSI band, ...) live with their contract
in ``velocity_screener.schemas.threshold_output``.
"""

# ============================================================================
# INDICATOR LOOKBACKS
# ============================================================================

EMA_SHORT_PERIOD = 20
EMA_MEDIUM_PERIOD = 50
EMA_LONG_PERIOD = 200
"""EMA200 needs 200 bars; shorter histories leave it unset"""

RSI_PERIOD = 14
ADX_PERIOD = 14
ATR_PERIOD = 14

MACD_FAST_PERIOD = 12
MACD_SLOW_PERIOD = 26
MACD_SIGNAL_PERIOD = 9

BOLLINGER_PERIOD = 20
BOLLINGER_STD_DEV = 2.0

MFI_PERIOD = 14

STOCHASTIC_K_PERIOD = 14
STOCHASTIC_SMOOTH = 3
STOCHASTIC_D_PERIOD = 3

CCI_PERIOD = 20
CCI_CONSTANT = 0.015
"""Lambert's constant: scales CCI so ~75% of values fall within +/-100"""

WILLIAMS_R_PERIOD = 14
ROC_PERIOD = 14

SUPERTREND_ATR_PERIOD = 10
SUPERTREND_MULTIPLIER = 3.0

SAR_AF_START = 0.02
SAR_AF_STEP = 0.02
SAR_AF_MAX = 0.20

ICHIMOKU_TENKAN_PERIOD = 9
ICHIMOKU_KIJUN_PERIOD = 26
ICHIMOKU_SENKOU_B_PERIOD = 52
ICHIMOKU_DISPLACEMENT = 26

RELATIVE_STRENGTH_PERIOD = 63
"""~3 months of trading days"""

VOLUME_SMA_PERIOD = 20
VROC_PERIOD = 20
WEEK_CHANGE_PERIOD = 5

TREND_LOOKBACK = 10
"""OBV and A/D line trend compare the latest value with 10 bars earlier"""

TREND_DEAD_BAND = 0.01
"""Relative change inside +/-1% is reported as a flat trend"""

WEEKLY_MIN_CANDLES = 35
"""Weekly MACD(12,26,9) needs 34 candles; one more for a stable EMA seed"""

WEEKLY_RSI_FLOOR = 40.0

# ============================================================================
# PHASE VOTES
# ============================================================================

PHASE3_CONDITION_COUNT = 5
PHASE3_MIN_CONDITIONS = 3
"""Momentum phase passes when at least 3 of the 5 sub-conditions hold"""

PHASE4_CONDITION_COUNT = 3
PHASE4_MIN_CONDITIONS = 2
"""Volume phase passes when at least 2 of the 3 sub-conditions hold"""

STOCHASTIC_BULLISH_LEVEL = 50.0
BOLLINGER_UPPER_HALF = 0.5

MIN_STOP_PRICE = 0.01
"""Stop-loss never goes below one paisa/cent"""

# ============================================================================
# SIGNAL CUT POINTS
# ============================================================================

STRONG_BUY_MIN_SCORE = 80
BUY_MIN_SCORE = 60
SCORE_MIN = 0
SCORE_MAX = 100

# ============================================================================
# SCORE WEIGHTS
# ============================================================================

PHASE_WEIGHTS: dict[str, float] = {
    "phase1": 10.0,
    "phase2": 15.0,
    "phase3": 10.0,
    "phase4": 8.0,
    "phase5": 7.0,
}

WEIGHT_MACD_BULLISH = 3.0
WEIGHT_SUPERTREND_UP = 3.0
WEIGHT_SAR_UP = 2.0
WEIGHT_ICHIMOKU_ABOVE = 2.0
WEIGHT_ADX_STRENGTH = 4.0
ADX_STRENGTH_SPAN = 15.0
"""ADX this far above the minimum earns the full ADX strength weight"""

WEIGHT_RSI_PROXIMITY = 6.0
PENALTY_RSI_EXHAUSTION = -3.0
WEIGHT_EMA_PROXIMITY = 4.0
WEIGHT_STOCHASTIC = 2.0
WEIGHT_CANDLESTICK = 2.0

WEIGHT_VOLUME_RATIO = 5.0
WEIGHT_MFI_PROXIMITY = 3.0
VOLUME_TREND_SCORES: dict[str, float] = {
    "accelerating": 4.0,
    "steady": 2.0,
    "declining": 0.0,
}

WEIGHT_UPPER_BAND = 3.0
WEIGHT_ATR_HEADROOM = 3.0

STRONG_RELATIVE_STRENGTH = 5.0
WEIGHT_RELATIVE_STRENGTH = 2.0

WEEKLY_TREND_SCORES: dict[str, float] = {
    "aligned": 2.0,
    "mixed": 0.0,
    "counter-trend": -5.0,
}

# ============================================================================
# SECTOR ROTATION
# ============================================================================

SECTOR_BONUS = 5
SECTOR_BONUS_COUNT = 3
"""Top 3 sectors get +5, bottom 3 get -5"""

SECTOR_MIN_FOR_BONUS = 6
"""Fewer distinct sectors than this: no bonuses or penalties"""

SECTOR_RS_WEIGHT = 0.6
SECTOR_BREADTH_WEIGHT = 0.4

UNRANKED_SECTORS = {"", "Unknown", "UNKNOWN"}

# ============================================================================
# SNAPSHOTS
# ============================================================================

MAX_SIGNALS_PER_SNAPSHOT = 50
SNAPSHOT_SIGNALS = ("STRONG_BUY", "BUY", "WATCH")
SNAPSHOT_JOIN_TIMEOUT_SECONDS = 5.0
"""How long the CLI waits for the background snapshot writer before exiting"""

# ============================================================================
# MARKET DATA LOCK
# ============================================================================

LOCK_DEFAULT_TIMEOUT_SECONDS = 300.0
LOCK_STALE_AFTER_SECONDS = 600.0
"""A holder past this age is treated as abandoned and force-released"""

TURNOVER_DIVISOR = 10_000_000
"""Rupees per crore"""
