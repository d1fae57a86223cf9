"""
Result Aggregator Tool
Velocity Momentum Screener

Pure functions for:
- Phase funnel counters
- Signal counts (all five keys, zeros included)
- Presentation ordering (score desc, symbol asc)
- Capped top-N snapshot summary
- Run-level ScreenerOutput assembly
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from velocity_screener.config.constants import MAX_SIGNALS_PER_SNAPSHOT, SNAPSHOT_SIGNALS
from velocity_screener.exceptions import ProcessingError
from velocity_screener.schemas.regime_output import MarketRegimeInfo
from velocity_screener.schemas.screener_output import (
    PipelineFunnel,
    ScreenerOutput,
    ScreenerResult,
    Signal,
    SnapshotEntry,
    SnapshotSummary,
)
from velocity_screener.schemas.sector_output import SectorRankings
from velocity_screener.schemas.threshold_output import AdaptiveThresholds


def build_pipeline_funnel(results: Sequence[ScreenerResult]) -> PipelineFunnel:
    """Count symbols passing each of phases 1-5."""
    return PipelineFunnel(
        total_scanned=len(results),
        phase1=sum(1 for r in results if r.phase1_pass),
        phase2=sum(1 for r in results if r.phase2_pass),
        phase3=sum(1 for r in results if r.phase3_pass),
        phase4=sum(1 for r in results if r.phase4_pass),
        phase5=sum(1 for r in results if r.phase5_pass),
    )


def count_signals(results: Sequence[ScreenerResult]) -> Dict[Signal, int]:
    counts = {signal: 0 for signal in Signal}
    for r in results:
        counts[r.signal] += 1
    return counts


def sort_results_by_score(results: Sequence[ScreenerResult]) -> List[ScreenerResult]:
    """Presentation order; the pipeline's own output keeps input order."""
    return sorted(results, key=lambda r: (-r.overall_score, r.stock.symbol))


def build_snapshot_summary(
    results: Sequence[ScreenerResult],
    regime: MarketRegimeInfo,
    mode: str = "demo",
    top_n: int = MAX_SIGNALS_PER_SNAPSHOT,
    created_at: Optional[datetime] = None,
) -> SnapshotSummary:
    """
    Capped summary persisted after a scan.

    Only STRONG_BUY/BUY/WATCH results are kept, best score first, at most
    ``top_n`` of them. Signal counts and the funnel cover every result.
    """
    actionable = [r for r in sort_results_by_score(results) if r.signal.value in SNAPSHOT_SIGNALS]
    entries = [
        SnapshotEntry(
            symbol=r.stock.symbol,
            name=r.stock.name,
            sector=r.stock.sector,
            signal=r.signal,
            overall_score=r.overall_score,
            entry_price=r.phase6.entry_price,
            stop_loss=r.phase6.stop_loss,
            target=r.phase6.target,
            risk_reward_ratio=r.phase6.risk_reward_ratio,
        )
        for r in actionable[:max(top_n, 0)]
    ]
    return SnapshotSummary(
        created_at=created_at or datetime.now(),
        mode=mode,
        regime=regime.regime.value,
        total_scanned=len(results),
        signal_counts={s.value: n for s, n in count_signals(results).items()},
        pipeline=build_pipeline_funnel(results),
        top_signals=entries,
    )


def build_screener_output(
    results: Sequence[ScreenerResult],
    regime: MarketRegimeInfo,
    thresholds: AdaptiveThresholds,
    sector_rankings: SectorRankings,
    mode: str = "demo",
    errors: Optional[Sequence[ProcessingError]] = None,
    timestamp: Optional[datetime] = None,
) -> ScreenerOutput:
    """Wrap one scan's results with its run-level context."""
    return ScreenerOutput(
        timestamp=timestamp or datetime.now(),
        mode=mode,
        total_scanned=len(results),
        market_regime=regime,
        adaptive_thresholds=thresholds,
        sector_rankings=dict(sector_rankings),
        pipeline=build_pipeline_funnel(results),
        signal_counts={s.value: n for s, n in count_signals(results).items()},
        results=list(results),
        errors=[e.to_dict() for e in (errors or [])],
    )
