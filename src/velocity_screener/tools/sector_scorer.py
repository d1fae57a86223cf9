"""
Sector Ranking Tool: Sector Scorer
Velocity Momentum Screener

Formula: momentum = (avg_rs * 0.6) + (breadth_component * 0.4)
where breadth_component = (breadth_pct - 50) / 5 rescales breadth onto a
+/-10 band comparable with relative-strength percent points.

Ordering: momentum desc, member count desc, sector name asc.
Top 3 sectors earn +5, bottom 3 earn -5, only when 6+ sectors are ranked.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from velocity_screener.config.constants import (
    SECTOR_BONUS,
    SECTOR_BONUS_COUNT,
    SECTOR_BREADTH_WEIGHT,
    SECTOR_MIN_FOR_BONUS,
    SECTOR_RS_WEIGHT,
    UNRANKED_SECTORS,
)
from velocity_screener.schemas.indicator_output import IndicatorSet
from velocity_screener.schemas.market_data import StockSnapshot
from velocity_screener.schemas.sector_output import SectorRanking, SectorRankings, normalize_sector
from velocity_screener.tools.indicator_snapshot import compute_indicators

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sector Score Formula
# ---------------------------------------------------------------------------

def sector_momentum_score(relative_strength: float, breadth: float) -> float:
    """
    Composite of mean relative strength and breadth.

    breadth is a 0-1 fraction of members above their EMA50.
    """
    breadth_component = (breadth * 100.0 - 50.0) / 5.0
    return relative_strength * SECTOR_RS_WEIGHT + breadth_component * SECTOR_BREADTH_WEIGHT


# ---------------------------------------------------------------------------
# Sector Ranking
# ---------------------------------------------------------------------------

def rank_sectors(
    stocks: Sequence[StockSnapshot],
    indicator_sets: Optional[Sequence[Optional[IndicatorSet]]] = None,
    benchmark_closes: Optional[Sequence[float]] = None,
) -> SectorRankings:
    """
    Group stocks by sector, score each sector and assign bonuses.

    Args:
        stocks: Universe snapshots.
        indicator_sets: Precomputed indicators aligned with ``stocks``;
            None entries (or no list at all) are computed from the bars.
        benchmark_closes: Used only when indicators must be computed here.

    Returns:
        Dict sector -> SectorRanking in momentum-rank order. "Unknown" and
        blank sectors are left out (their members get no bonus).
    """
    if indicator_sets is None:
        indicator_sets = [None] * len(stocks)
    elif len(indicator_sets) != len(stocks):
        raise ValueError(
            f"indicator_sets has {len(indicator_sets)} entries for {len(stocks)} snapshots"
        )

    # Group by sector
    members: dict[str, list[tuple[StockSnapshot, IndicatorSet]]] = {}
    for stock, ind in zip(stocks, indicator_sets):
        sec = normalize_sector(stock.sector)
        if sec in UNRANKED_SECTORS:
            continue
        if ind is None:
            ind = compute_indicators(stock.bars, benchmark_closes)
        members.setdefault(sec, []).append((stock, ind))

    # Score each sector
    scored: list[dict] = []
    for sec, sec_members in members.items():
        rs_values = [
            ind.relative_strength_3m for _, ind in sec_members
            if ind.relative_strength_3m is not None
        ]
        avg_rs = sum(rs_values) / len(rs_values) if rs_values else 0.0

        above = sum(
            1 for stock, ind in sec_members
            if ind.ema50 is not None and stock.last_price > ind.ema50
        )
        breadth = above / len(sec_members)

        ranked_members = sorted(
            sec_members,
            key=lambda m: (
                m[1].relative_strength_3m if m[1].relative_strength_3m is not None else float("-inf"),
                m[0].symbol,
            ),
            reverse=True,
        )

        scored.append({
            "sector": sec,
            "member_count": len(sec_members),
            "relative_strength": round(avg_rs, 2),
            "breadth": round(breadth, 4),
            "momentum_score": round(sector_momentum_score(avg_rs, breadth), 4),
            "top_symbols": [m[0].symbol for m in ranked_members[:5]],
        })

    scored.sort(key=lambda x: (-x["momentum_score"], -x["member_count"], x["sector"]))

    apply_bonus = len(scored) >= SECTOR_MIN_FOR_BONUS
    if not apply_bonus and scored:
        logger.info(
            f"[Sectors] Only {len(scored)} sectors ranked (< {SECTOR_MIN_FOR_BONUS}); no bonuses applied"
        )

    rankings: SectorRankings = {}
    for i, s in enumerate(scored, 1):
        bonus = 0
        if apply_bonus:
            if i <= SECTOR_BONUS_COUNT:
                bonus = SECTOR_BONUS
            elif i > len(scored) - SECTOR_BONUS_COUNT:
                bonus = -SECTOR_BONUS
        rankings[s["sector"]] = SectorRanking(momentum_rank=i, score_bonus=bonus, **s)

    if rankings:
        leaders = [name for name, r in rankings.items() if r.score_bonus > 0]
        laggards = [name for name, r in rankings.items() if r.score_bonus < 0]
        logger.info(
            f"[Sectors] Ranked {len(rankings)} sectors; leaders: {', '.join(leaders) or '-'}; "
            f"laggards: {', '.join(laggards) or '-'}"
        )
    return rankings
