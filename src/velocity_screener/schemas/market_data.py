"""
Market Data — Input Schema
Velocity Momentum Screener

Point-in-time inputs to one evaluation run: daily OHLCV bars and the
per-symbol snapshot (quote fields + history). Snapshots are immutable once
built; the pipeline never mutates them.
"""

from __future__ import annotations

from datetime import date
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class PriceBar(BaseModel):
    """One daily OHLCV bar."""

    model_config = ConfigDict(frozen=True)

    date: date
    open: float = Field(..., ge=0.0)
    high: float = Field(..., ge=0.0)
    low: float = Field(..., ge=0.0)
    close: float = Field(..., ge=0.0)
    volume: float = Field(0.0, ge=0.0)


class StockSnapshot(BaseModel):
    """A symbol with its quote fields and ordered daily history (oldest first)."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1, max_length=20)
    exchange: str = "NSE"
    name: str = ""
    sector: str = "Unknown"
    last_price: float = Field(..., ge=0.0)
    change_percent: float = 0.0
    market_cap: float = Field(0.0, ge=0.0, description="Crores; 0 when unknown")
    avg_daily_turnover: float = Field(..., ge=0.0, description="20-day average, crores")
    is_asm_gsm: bool = Field(False, description="Under ASM/GSM surveillance")
    bars: List[PriceBar] = Field(default_factory=list)

    @property
    def last_volume(self) -> float:
        """Latest session volume, 0 when no history is attached."""
        return self.bars[-1].volume if self.bars else 0.0


class StockReference(BaseModel):
    """The snapshot's descriptive fields, without the bar history."""

    symbol: str
    exchange: str
    name: str
    sector: str
    last_price: float
    change_percent: float
    market_cap: float
    avg_daily_turnover: float
    is_asm_gsm: bool = False

    @classmethod
    def from_snapshot(cls, stock: StockSnapshot) -> "StockReference":
        return cls(
            symbol=stock.symbol,
            exchange=stock.exchange,
            name=stock.name or stock.symbol,
            sector=stock.sector,
            last_price=stock.last_price,
            change_percent=stock.change_percent,
            market_cap=stock.market_cap,
            avg_daily_turnover=stock.avg_daily_turnover,
            is_asm_gsm=stock.is_asm_gsm,
        )
