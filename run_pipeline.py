"""Run the Momentum Screener and write output to JSON and Excel.

Usage:
    python run_pipeline.py                                  # demo universe
    python run_pipeline.py --live                           # yfinance, default NSE universe
    python run_pipeline.py --live --symbols TCS INFY SBIN   # live, custom universe
    python run_pipeline.py --config '{"min_adx": 30}'       # threshold overrides (JSON or file)
    python run_pipeline.py --equity 500000 --workers 4 --output results
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv
load_dotenv()

import pandas as pd
from openpyxl.styles import Font, PatternFill
from pydantic import ValidationError

from velocity_screener.agents.momentum_screener import run_screener_scan
from velocity_screener.config.constants import SNAPSHOT_JOIN_TIMEOUT_SECONDS
from velocity_screener.config.settings import load_settings
from velocity_screener.exceptions import ScreenerException
from velocity_screener.schemas.screener_output import ScreenerOutput
from velocity_screener.schemas.threshold_output import ScreenerConfig
from velocity_screener.tools.result_aggregator import build_snapshot_summary, sort_results_by_score
from velocity_screener.tools.snapshot_store import save_snapshot_async

DEFAULT_OUTPUT_DIR = "output"


# ---------------------------------------------------------------------------
# CLI Argument Parsing
# ---------------------------------------------------------------------------

def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Velocity Momentum Screener — Six-Phase Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  python run_pipeline.py                          demo universe, default thresholds
  python run_pipeline.py --live                   live NSE data via yfinance
  python run_pipeline.py --config overrides.json  threshold overrides from a file
""",
    )
    parser.add_argument(
        "--symbols", nargs="+", default=None, metavar="SYM",
        help="Symbols to screen (default: built-in universe)",
    )
    parser.add_argument(
        "--live", action="store_true", default=False,
        help="Fetch live daily bars via yfinance instead of the demo universe",
    )
    parser.add_argument(
        "--config", default=None,
        help="Threshold overrides as a JSON object or a path to a JSON file",
    )
    parser.add_argument(
        "--equity", type=float, default=None,
        help="Account equity; enables position sizing",
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Worker threads for per-symbol evaluation (default: SCREENER_MAX_WORKERS or 1)",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output directory (default: output); snapshots go to <output>/snapshots "
             "when given, otherwise to SCREENER_SNAPSHOT_DIR",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", default=False,
        help="Debug logging",
    )
    return parser.parse_args(argv)


def load_config(raw: Optional[str]) -> Optional[ScreenerConfig]:
    """Parse --config: inline JSON or a JSON file path."""
    if not raw:
        return None
    path = Path(raw)
    text = path.read_text(encoding="utf-8") if path.exists() else raw
    return ScreenerConfig.model_validate(json.loads(text))


# ---------------------------------------------------------------------------
# Excel Output
# ---------------------------------------------------------------------------

_DARK_GREEN = PatternFill(start_color="006400", end_color="006400", fill_type="solid")
_LIGHT_GREEN = PatternFill(start_color="90EE90", end_color="90EE90", fill_type="solid")
_YELLOW = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")
_RED = PatternFill(start_color="FF0000", end_color="FF0000", fill_type="solid")
_WHITE_FONT = Font(color="FFFFFF")

# Map column header -> {cell value -> (fill, use_white_font)}
_COLOR_MAP = {
    "Signal": {
        "STRONG_BUY": (_DARK_GREEN, True),
        "BUY": (_LIGHT_GREEN, False),
        "WATCH": (_YELLOW, False),
        "AVOID": (_RED, True),
    },
    "Bonus": {
        5: (_LIGHT_GREEN, False),
        -5: (_RED, True),
    },
}


def _apply_color_formatting(ws) -> None:
    header_map = {}
    for col_idx in range(1, ws.max_column + 1):
        header = ws.cell(row=1, column=col_idx).value
        if header in _COLOR_MAP:
            header_map[col_idx] = _COLOR_MAP[header]

    for row_idx in range(2, ws.max_row + 1):
        for col_idx, value_map in header_map.items():
            cell = ws.cell(row=row_idx, column=col_idx)
            if cell.value in value_map:
                fill, use_white = value_map[cell.value]
                cell.fill = fill
                if use_white:
                    cell.font = _WHITE_FONT


def _write_screener_excel(output: ScreenerOutput, out_path: Path) -> Path:
    """Write the scan to Summary / Results / Sector Rankings sheets."""
    today = date.today().isoformat()
    filepath = out_path / f"screener_{today}.xlsx"

    # --- Results (best score first) ---
    result_rows = []
    for rank, r in enumerate(sort_results_by_score(output.results), 1):
        ind = r.indicators
        result_rows.append({
            "Rank": rank,
            "Symbol": r.stock.symbol,
            "Name": r.stock.name,
            "Sector": r.stock.sector,
            "Signal": r.signal.value,
            "Score": r.overall_score,
            "Last Price": r.stock.last_price,
            "Turnover (Cr)": r.stock.avg_daily_turnover,
            "P1": "PASS" if r.phase1_pass else "FAIL",
            "P2": "PASS" if r.phase2_pass else "FAIL",
            "P3": "PASS" if r.phase3_pass else "FAIL",
            "P4": "PASS" if r.phase4_pass else "FAIL",
            "P5": "PASS" if r.phase5_pass else "FAIL",
            "Entry": r.phase6.entry_price,
            "Stop": r.phase6.stop_loss,
            "Target": r.phase6.target,
            "R:R": r.phase6.risk_reward_ratio,
            "Shares": r.position_sizing.shares if r.position_sizing else None,
            "RSI": round(ind.rsi14, 1) if ind.rsi14 is not None else None,
            "ADX": round(ind.adx14, 1) if ind.adx14 is not None else None,
            "RS 3M %": round(ind.relative_strength_3m, 2) if ind.relative_strength_3m is not None else None,
            "ATR %": r.phase5_details.atr_percent,
            "Weekly": ind.weekly_trend.status if ind.weekly_trend else None,
            "Sector Bonus": r.sector_bonus,
            "Rationale": r.rationale,
        })
    df_results = pd.DataFrame(result_rows)

    # --- Sector Rankings ---
    sector_rows = [
        {
            "Rank": s.momentum_rank,
            "Sector": s.sector,
            "Members": s.member_count,
            "Avg RS 3M %": s.relative_strength,
            "Breadth %": round(s.breadth * 100, 1),
            "Momentum": s.momentum_score,
            "Bonus": s.score_bonus,
            "Top Symbols": ", ".join(s.top_symbols),
        }
        for s in output.sector_rankings.values()
    ]
    df_sectors = pd.DataFrame(sector_rows)

    # --- Summary ---
    th = output.adaptive_thresholds
    funnel = output.pipeline
    summary_rows = [
        {"Field": "Timestamp", "Value": output.timestamp.isoformat(timespec="seconds")},
        {"Field": "Mode", "Value": output.mode},
        {"Field": "Market Regime", "Value": output.market_regime.regime.value},
        {"Field": "Regime Detail", "Value": output.market_regime.description},
        {"Field": "Total Scanned", "Value": output.total_scanned},
        {"Field": "Funnel", "Value": (
            f"{funnel.total_scanned} -> P1 {funnel.phase1} -> P2 {funnel.phase2} -> "
            f"P3 {funnel.phase3} -> P4 {funnel.phase4} -> P5 {funnel.phase5}"
        )},
    ]
    for signal, count in output.signal_counts.items():
        summary_rows.append({"Field": signal, "Value": count})
    summary_rows.extend([
        {"Field": "", "Value": ""},
        {"Field": "Min Turnover (Cr)", "Value": th.min_avg_daily_turnover},
        {"Field": "Min ADX", "Value": th.min_adx},
        {"Field": "RSI Band", "Value": f"{th.rsi_low} - {th.rsi_high}"},
        {"Field": "MFI Band", "Value": f"{th.mfi_low} - {th.mfi_high}"},
        {"Field": "Max ATR %", "Value": th.max_atr_percent},
        {"Field": "Min R:R", "Value": th.min_risk_reward},
        {"Field": "Overrides", "Value": ", ".join(th.overridden_fields) or "None"},
        {"Field": "Errors", "Value": len(output.errors)},
    ])
    df_summary = pd.DataFrame(summary_rows)

    # --- Write ---
    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        df_summary.to_excel(writer, sheet_name="Summary", index=False)
        df_results.to_excel(writer, sheet_name="Results", index=False)
        if not df_sectors.empty:
            df_sectors.to_excel(writer, sheet_name="Sector Rankings", index=False)

        for sheet_name in ["Results", "Sector Rankings"]:
            if sheet_name in writer.book.sheetnames:
                _apply_color_formatting(writer.book[sheet_name])

    return filepath


def _write_screener_json(output: ScreenerOutput, out_path: Path) -> Path:
    today = date.today().isoformat()
    filepath = out_path / f"screener_{today}.json"
    filepath.write_text(output.model_dump_json(indent=2), encoding="utf-8")
    return filepath


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (ValidationError, json.JSONDecodeError) as e:
        print(f"\nERROR: invalid --config: {e}")
        return 2

    try:
        settings = load_settings()
        if args.workers is not None:
            settings = settings.model_copy(update={"max_workers": max(args.workers, 1)})
        out_path = Path(args.output or DEFAULT_OUTPUT_DIR)
        out_path.mkdir(parents=True, exist_ok=True)
        if args.output is not None:
            settings = settings.model_copy(update={"snapshot_dir": out_path / "snapshots"})

        mode = "live" if args.live else "demo"
        print(f"[Screener] Running {mode} scan ...")
        output = run_screener_scan(
            symbols=args.symbols,
            config=config,
            live=args.live,
            account_equity=args.equity,
            settings=settings,
            persist_snapshot=False,
        )
    except ScreenerException as e:
        print(f"\nERROR [{e.error_code}]: {e.message}")
        return 1

    counts = ", ".join(f"{k} {v}" for k, v in output.signal_counts.items())
    print(f"[Screener] Done — {output.total_scanned} symbols, "
          f"regime {output.market_regime.regime.value}; {counts}")

    json_file = _write_screener_json(output, out_path)
    print(f"[Screener] Saved: {json_file}")
    excel_file = _write_screener_excel(output, out_path)
    print(f"[Screener] Saved: {excel_file}")

    # The writer is a daemon thread; give it a bounded chance to finish before exit.
    summary = build_snapshot_summary(
        output.results, output.market_regime, output.mode, settings.snapshot_top_n,
    )
    writer = save_snapshot_async(summary, settings.snapshot_dir)
    writer.join(timeout=SNAPSHOT_JOIN_TIMEOUT_SECONDS)
    if writer.is_alive():
        print(f"[Screener] Snapshot still writing after {SNAPSHOT_JOIN_TIMEOUT_SECONDS:.0f}s; it may be lost")

    print(f"\nOutput directory: {out_path}/")
    return 0


if __name__ == "__main__":
    sys.exit(main())
