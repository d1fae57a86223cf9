"""
Runtime settings read from the environment.

The CLI loads a ``.env`` file first (python-dotenv), so every value below
can be set either in the shell or in ``.env``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from velocity_screener.exceptions import EnvConfigError


class RuntimeSettings(BaseModel):
    """Collaborator settings for a scan (data source, workers, snapshots)."""

    benchmark_symbol: str = Field("^NSEI", description="Benchmark index ticker (Nifty 50)")
    vix_symbol: str = Field("^INDIAVIX", description="Volatility index ticker")
    exchange: str = Field("NSE", description="Exchange code for universe symbols")
    history_period: str = Field("2y", description="yfinance period for daily bars")
    max_workers: int = Field(1, ge=1, description="Per-symbol evaluation threads")
    lock_timeout_seconds: float = Field(300.0, gt=0)
    snapshot_dir: Path = Field(Path("output/snapshots"))
    snapshot_top_n: int = Field(50, ge=1)


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise EnvConfigError(f"{name} must be an integer, got '{raw}'") from e


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise EnvConfigError(f"{name} must be a number, got '{raw}'") from e


def load_settings(env: Optional[Mapping[str, str]] = None) -> RuntimeSettings:
    """
    Build RuntimeSettings from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ).

    Raises:
        EnvConfigError: A numeric variable could not be parsed or is out of range.
    """
    env = os.environ if env is None else env
    max_workers = _env_int(env, "SCREENER_MAX_WORKERS", 1)
    top_n = _env_int(env, "SCREENER_SNAPSHOT_TOP_N", 50)
    timeout = _env_float(env, "SCREENER_LOCK_TIMEOUT_SECONDS", 300.0)
    if max_workers < 1:
        raise EnvConfigError(f"SCREENER_MAX_WORKERS must be >= 1, got {max_workers}")
    if top_n < 1:
        raise EnvConfigError(f"SCREENER_SNAPSHOT_TOP_N must be >= 1, got {top_n}")
    if timeout <= 0:
        raise EnvConfigError(f"SCREENER_LOCK_TIMEOUT_SECONDS must be > 0, got {timeout}")

    return RuntimeSettings(
        benchmark_symbol=env.get("SCREENER_BENCHMARK_SYMBOL") or "^NSEI",
        vix_symbol=env.get("SCREENER_VIX_SYMBOL") or "^INDIAVIX",
        exchange=env.get("SCREENER_EXCHANGE") or "NSE",
        history_period=env.get("SCREENER_HISTORY_PERIOD") or "2y",
        max_workers=max_workers,
        lock_timeout_seconds=timeout,
        snapshot_dir=Path(env.get("SCREENER_SNAPSHOT_DIR") or "output/snapshots"),
        snapshot_top_n=top_n,
    )
