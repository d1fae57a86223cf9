"""
Momentum Screener
Six-Phase Momentum Screening Pipeline — Velocity Momentum Screener

Classifies every symbol in a universe into exactly one of 5 signals:
  STRONG_BUY, BUY, WATCH, NEUTRAL, AVOID

Two entry points:
1. run_screener_pipeline(): pure evaluation of in-memory snapshots. No I/O,
   no shared state; symbols may be fanned out across worker threads and
   results still come back in input order.
2. run_screener_scan(): fetch (live, under the market data lock) or build
   (demo) the universe, detect the regime, resolve thresholds, rank
   sectors, run the pipeline, aggregate and persist a snapshot in the
   background.

A symbol whose evaluation fails unexpectedly is reported as AVOID with a
ProcessingError; it never aborts the rest of the scan.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar

from velocity_screener.config.settings import RuntimeSettings, load_settings
from velocity_screener.exceptions import ErrorSeverity, MarketDataError, ProcessingError
from velocity_screener.schemas.indicator_output import IndicatorSet
from velocity_screener.schemas.market_data import PriceBar, StockReference, StockSnapshot
from velocity_screener.schemas.regime_output import MarketRegimeInfo
from velocity_screener.schemas.screener_output import (
    Phase3Details,
    Phase4VolumeDetails,
    Phase5VolatilityDetails,
    ScreenerOutput,
    ScreenerResult,
    Signal,
)
from velocity_screener.schemas.sector_output import SectorRankings, sector_bonus_for
from velocity_screener.schemas.threshold_output import AdaptiveThresholds, ScreenerConfig
from velocity_screener.tools.demo_universe import DEMO_SEED, build_demo_benchmark, build_demo_universe
from velocity_screener.tools.fetch_lock import FetchLock, market_data_lock
from velocity_screener.tools.indicator_snapshot import TRACKED_FIELDS, compute_indicators
from velocity_screener.tools.market_data_fetcher import (
    DEFAULT_UNIVERSE,
    fetch_benchmark_bars,
    fetch_stock_snapshots,
    fetch_volatility_index,
)
from velocity_screener.tools.market_regime import default_market_regime, regime_from_benchmark
from velocity_screener.tools.phase_filters import (
    analyze_phase3,
    analyze_phase4,
    analyze_phase5,
    calculate_position_size,
    calculate_risk_parameters,
    evaluate_phase1,
    evaluate_phase2,
    evaluate_phase3,
    evaluate_phase4,
    evaluate_phase5,
)
from velocity_screener.tools.result_aggregator import (
    build_pipeline_funnel,
    build_screener_output,
    build_snapshot_summary,
    count_signals,
)
from velocity_screener.tools.sector_scorer import rank_sectors
from velocity_screener.tools.signal_classifier import (
    calculate_score,
    determine_signal,
    generate_rationale,
)
from velocity_screener.tools.snapshot_store import save_snapshot_async
from velocity_screener.tools.threshold_resolver import resolve_thresholds

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ordered_map(fn: Callable[[T], R], items: Sequence[T], max_workers: int) -> List[R]:
    """map() that fans out over threads when max_workers > 1; order is preserved."""
    if max_workers <= 1 or len(items) <= 1:
        return [fn(item) for item in items]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(fn, items))


def compute_indicator_sets(
    stocks: Sequence[StockSnapshot],
    benchmark_closes: Optional[Sequence[float]] = None,
    max_workers: int = 1,
    errors: Optional[List[ProcessingError]] = None,
) -> List[IndicatorSet]:
    """Indicators for every snapshot, aligned with ``stocks``; a failing symbol gets an empty set."""

    def _compute(stock: StockSnapshot) -> IndicatorSet:
        try:
            return compute_indicators(stock.bars, benchmark_closes)
        except Exception as e:
            logger.warning(f"[Screener] Indicator computation failed for {stock.symbol}: {e}")
            if errors is not None:
                errors.append(ProcessingError.from_exception(
                    stock.symbol, "INDICATOR_ERROR", e, ErrorSeverity.WARNING,
                    context={"bars": len(stock.bars)},
                ))
            return IndicatorSet(bars_available=len(stock.bars), missing_fields=list(TRACKED_FIELDS))

    return _ordered_map(_compute, list(stocks), max_workers)


def evaluate_stock(
    stock: StockSnapshot,
    ind: IndicatorSet,
    thresholds: AdaptiveThresholds,
    sector_rankings: SectorRankings,
    account_equity: Optional[float] = None,
) -> ScreenerResult:
    """Run phases 1-6, score, classify and explain one symbol."""
    ref = StockReference.from_snapshot(stock)

    p1 = evaluate_phase1(ref, thresholds)
    p2 = evaluate_phase2(ind, thresholds)
    p3_details = analyze_phase3(ref, ind, thresholds)
    p3 = evaluate_phase3(p3_details)
    p4_details = analyze_phase4(ind, thresholds)
    p4 = evaluate_phase4(p4_details)
    p5_details = analyze_phase5(ref, ind, thresholds)
    p5 = evaluate_phase5(p5_details, thresholds)

    # Cascade: a phase only passes when every earlier phase passed.
    flags: List[bool] = []
    for outcome in (p1, p2, p3, p4, p5):
        flags.append(outcome.passed and (not flags or flags[-1]))

    risk = calculate_risk_parameters(ref.last_price, ind.atr14, thresholds)
    sizing = None
    if account_equity is not None:
        sizing = calculate_position_size(account_equity, risk.entry_price, risk.risk_per_share, thresholds)

    bonus = sector_bonus_for(ref.sector, sector_rankings)
    score = calculate_score(flags, ind, p3_details, p4_details, p5_details, thresholds, bonus)
    signal = determine_signal(flags, score, risk.meets_min_risk_reward)
    rationale = generate_rationale(
        signal, score, flags, (p1, p2, p3, p4, p5), risk, ind, thresholds, ref.sector, bonus,
    )
    logger.debug(f"[Screener] {ref.symbol}: {signal.value} score={score} phases={flags}")

    return ScreenerResult(
        stock=ref,
        indicators=ind,
        phase1_pass=flags[0],
        phase2_pass=flags[1],
        phase3_pass=flags[2],
        phase3_details=p3_details,
        phase4_pass=flags[3],
        phase4_details=p4_details,
        phase5_pass=flags[4],
        phase5_details=p5_details,
        phase6=risk,
        position_sizing=sizing,
        sector_bonus=bonus,
        overall_score=score,
        signal=signal,
        rationale=rationale,
    )


def _failed_result(
    stock: StockSnapshot,
    ind: IndicatorSet,
    thresholds: AdaptiveThresholds,
    message: str,
) -> ScreenerResult:
    """AVOID placeholder for a symbol whose evaluation raised."""
    return ScreenerResult(
        stock=StockReference.from_snapshot(stock),
        indicators=ind,
        phase1_pass=False,
        phase2_pass=False,
        phase3_pass=False,
        phase3_details=Phase3Details(
            pullback_to_ema=False, rsi_in_zone=False, roc_positive=False,
            plus_di_above_minus_di=False, stochastic_bullish=False, conditions_met=0,
        ),
        phase4_pass=False,
        phase4_details=Phase4VolumeDetails(
            volume_above_avg=False, mfi_healthy=False, obv_trending_up=False, conditions_met=0,
        ),
        phase5_pass=False,
        phase5_details=Phase5VolatilityDetails(
            atr_reasonable=False, bollinger_expanding=False, price_in_upper_band=False,
        ),
        phase6=calculate_risk_parameters(stock.last_price, None, thresholds),
        overall_score=0,
        signal=Signal.AVOID,
        rationale=f"AVOID (score 0/100). Evaluation error: {message}",
    )


# ---------------------------------------------------------------------------
# Deterministic Pipeline
# ---------------------------------------------------------------------------

def run_screener_pipeline(
    stocks: Sequence[StockSnapshot],
    config: Optional[ScreenerConfig] = None,
    thresholds: Optional[AdaptiveThresholds] = None,
    sector_rankings: Optional[SectorRankings] = None,
    regime: Optional[MarketRegimeInfo] = None,
    benchmark_closes: Optional[Sequence[float]] = None,
    account_equity: Optional[float] = None,
    max_workers: int = 1,
    indicator_sets: Optional[Sequence[IndicatorSet]] = None,
    errors: Optional[List[ProcessingError]] = None,
) -> List[ScreenerResult]:
    """
    Evaluate every snapshot and return one result per input, in input order.

    Args:
        stocks: Universe snapshots (point-in-time, not mutated).
        config: Partial threshold overrides; ignored when ``thresholds`` is given.
        thresholds: Precomputed thresholds to reuse across invocations.
        sector_rankings: Precomputed rankings; computed from ``stocks`` when None.
        regime: Regime used to resolve thresholds; SIDEWAYS default when None.
        benchmark_closes: Benchmark daily closes for 3M relative strength.
        account_equity: When given, position sizing is attached to each result.
        max_workers: Worker threads for the per-symbol fan-out.
        indicator_sets: Precomputed indicators, one per snapshot in ``stocks`` order.
        errors: Optional list that collects absorbed per-symbol failures.

    Returns:
        List of ScreenerResult, same length and order as ``stocks``.

    Raises:
        ValueError: ``indicator_sets`` does not have one entry per snapshot.
    """
    if not stocks:
        logger.info("[Screener] Empty universe, nothing to evaluate")
        return []

    if thresholds is None:
        regime_info = regime or default_market_regime()
        thresholds = resolve_thresholds(regime_info.regime, config)
    elif config is not None:
        logger.debug("[Screener] Precomputed thresholds supplied; config overrides ignored")

    if indicator_sets is None:
        indicator_sets = compute_indicator_sets(stocks, benchmark_closes, max_workers, errors)
    elif len(indicator_sets) != len(stocks):
        raise ValueError(
            f"indicator_sets has {len(indicator_sets)} entries for {len(stocks)} snapshots"
        )

    if sector_rankings is None:
        sector_rankings = rank_sectors(stocks, indicator_sets)

    # Paired by position so repeated symbols (e.g. NSE and BSE listings) stay distinct.
    def _evaluate(pair: tuple[StockSnapshot, IndicatorSet]) -> ScreenerResult:
        stock, ind = pair
        try:
            return evaluate_stock(stock, ind, thresholds, sector_rankings, account_equity)
        except Exception as e:
            logger.warning(f"[Screener] Evaluation failed for {stock.symbol}: {e}")
            if errors is not None:
                errors.append(ProcessingError.from_exception(
                    stock.symbol, "EVALUATION_ERROR", e, ErrorSeverity.WARNING,
                    context={"bars": len(stock.bars)},
                ))
            return _failed_result(stock, ind, thresholds, str(e))

    logger.info(f"[Screener] Evaluating {len(stocks)} symbols ({thresholds.regime.value} thresholds) ...")
    results = _ordered_map(_evaluate, list(zip(stocks, indicator_sets)), max_workers)

    funnel = build_pipeline_funnel(results)
    counts = count_signals(results)
    logger.info(
        f"[Screener] Funnel: {funnel.total_scanned} -> P1 {funnel.phase1} -> P2 {funnel.phase2} "
        f"-> P3 {funnel.phase3} -> P4 {funnel.phase4} -> P5 {funnel.phase5}"
    )
    logger.info(
        "[Screener] Signals: " + ", ".join(f"{s.value} {n}" for s, n in counts.items())
    )
    return results


# ---------------------------------------------------------------------------
# Full Scan
# ---------------------------------------------------------------------------

def _load_live(
    symbols: Sequence[str],
    settings: RuntimeSettings,
    lock: FetchLock,
) -> tuple[List[StockSnapshot], List[PriceBar], Optional[float]]:
    with lock.hold("screener", settings.lock_timeout_seconds):
        stocks = fetch_stock_snapshots(symbols, settings.exchange, settings.history_period)
        try:
            benchmark = fetch_benchmark_bars(settings.benchmark_symbol, settings.history_period)
        except MarketDataError as e:
            logger.warning(f"[Screener] Benchmark unavailable, using default regime: {e}")
            benchmark = []
        vix = fetch_volatility_index(settings.vix_symbol)
    return stocks, benchmark, vix


def _load_demo(
    symbols: Optional[Sequence[str]],
    seed: int,
) -> tuple[List[StockSnapshot], List[PriceBar], Optional[float]]:
    stocks = build_demo_universe(seed)
    if symbols:
        wanted = {s.upper() for s in symbols}
        unknown = wanted - {s.symbol for s in stocks}
        if unknown:
            logger.warning(f"[Screener] Not in demo universe: {', '.join(sorted(unknown))}")
        stocks = [s for s in stocks if s.symbol in wanted]
    return stocks, build_demo_benchmark(seed), None


def run_screener_scan(
    symbols: Optional[Sequence[str]] = None,
    config: Optional[ScreenerConfig] = None,
    live: bool = False,
    account_equity: Optional[float] = None,
    settings: Optional[RuntimeSettings] = None,
    lock: FetchLock = market_data_lock,
    persist_snapshot: bool = True,
    seed: int = DEMO_SEED,
) -> ScreenerOutput:
    """
    Run one complete scan.

    Args:
        symbols: Universe; defaults to the built-in list (live) or the
            whole demo universe (demo).
        config: Partial threshold overrides.
        live: Fetch from yfinance under the market data lock when True,
            otherwise use the seeded demo universe.
        account_equity: Enables position sizing.
        settings: Runtime settings; read from the environment when None.
        lock: Lock held around the live fetch.
        persist_snapshot: Save the top-N summary on a background thread.
        seed: Demo universe seed.

    Raises:
        LockTimeoutError: Live mode could not acquire the lock in time.
        MarketDataError: Live stock download failed entirely.
    """
    settings = settings or load_settings()
    mode = "live" if live else "demo"
    logger.info(f"[Screener] Starting {mode} scan ...")

    if live:
        stocks, benchmark, vix = _load_live(list(symbols or DEFAULT_UNIVERSE), settings, lock)
    else:
        stocks, benchmark, vix = _load_demo(symbols, seed)

    regime = regime_from_benchmark(benchmark, vix) if benchmark else default_market_regime()
    thresholds = resolve_thresholds(regime.regime, config)
    benchmark_closes = [b.close for b in benchmark] or None

    errors: List[ProcessingError] = []
    indicator_sets = compute_indicator_sets(stocks, benchmark_closes, settings.max_workers, errors)
    rankings = rank_sectors(stocks, indicator_sets)

    results = run_screener_pipeline(
        stocks,
        thresholds=thresholds,
        sector_rankings=rankings,
        regime=regime,
        benchmark_closes=benchmark_closes,
        account_equity=account_equity,
        max_workers=settings.max_workers,
        indicator_sets=indicator_sets,
        errors=errors,
    )

    if persist_snapshot:
        summary = build_snapshot_summary(results, regime, mode, settings.snapshot_top_n)
        save_snapshot_async(summary, settings.snapshot_dir)

    output = build_screener_output(results, regime, thresholds, rankings, mode, errors)
    logger.info(
        f"[Screener] Scan complete: {output.total_scanned} symbols, regime {regime.regime.value}, "
        f"{len(errors)} errors"
    )
    return output
