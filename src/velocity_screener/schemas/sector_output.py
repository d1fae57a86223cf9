"""
Sector Rotation — Output Schema
Velocity Momentum Screener

Sector-relative strength ranking. The top sectors earn a score bonus and
the bottom sectors a penalty for every member symbol.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

VALID_SCORE_BONUSES = (-5, 0, 5)


class SectorRanking(BaseModel):
    """One sector's rotation metrics."""

    sector: str = Field(..., min_length=1)
    member_count: int = Field(..., ge=1)
    relative_strength: float = Field(..., description="Mean 3M relative strength of members, %")
    breadth: float = Field(..., ge=0.0, le=1.0, description="Fraction of members above EMA50")
    momentum_score: float
    momentum_rank: int = Field(..., ge=1)
    score_bonus: int = Field(0, description="+5 top sectors, -5 bottom sectors, else 0")
    top_symbols: List[str] = Field(default_factory=list)


# Sector name -> ranking, iteration order = momentum rank.
SectorRankings = Dict[str, SectorRanking]


def normalize_sector(sector: Optional[str]) -> str:
    """Sector name as ranked: surrounding whitespace removed, None -> ""."""
    return (sector or "").strip()


def sector_bonus_for(sector: Optional[str], rankings: SectorRankings) -> int:
    """Score bonus for a symbol's sector; unranked sectors get 0."""
    ranking = rankings.get(normalize_sector(sector))
    return ranking.score_bonus if ranking is not None else 0
