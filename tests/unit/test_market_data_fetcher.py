"""
Tests for the Market Data Fetcher.
Level 2: yfinance is mocked; DataFrame conversion runs for real.

Symbol mapping, frame-to-bar conversion, turnover and snapshot building,
and the failure paths of the batch download.
"""

from unittest.mock import patch

import pandas as pd
import pytest

from velocity_screener.exceptions import MarketDataError
from velocity_screener.tools.market_data_fetcher import (
    DEFAULT_UNIVERSE,
    SECTOR_MAP,
    average_turnover_crores,
    bars_from_dataframe,
    fetch_benchmark_bars,
    fetch_stock_snapshots,
    fetch_volatility_index,
    snapshot_from_bars,
    to_yahoo_symbol,
)

from tests.fixtures.conftest import make_bars

_DOWNLOAD = "velocity_screener.tools.market_data_fetcher.yf.download"


def _ohlcv_frame(n=30, start=100.0, volume=2_000_000.0):
    index = pd.bdate_range(end="2024-12-31", periods=n)
    closes = [start + i for i in range(n)]
    return pd.DataFrame(
        {
            "Open": closes,
            "High": [c + 1 for c in closes],
            "Low": [c - 1 for c in closes],
            "Close": closes,
            "Adj Close": closes,
            "Volume": [volume] * n,
        },
        index=index,
    )


def _multi_frame(frames):
    """Mimic yf.download(group_by='ticker'): (ticker, field) columns."""
    return pd.concat(frames, axis=1)


class TestSymbols:

    @pytest.mark.schema
    @pytest.mark.parametrize("symbol,exchange,expected", [
        ("RELIANCE", "NSE", "RELIANCE.NS"),
        ("RELIANCE", "BSE", "RELIANCE.BO"),
        ("M&M", "NSE", "M&M.NS"),
        ("^NSEI", "NSE", "^NSEI"),
        ("TCS.NS", "NSE", "TCS.NS"),
    ])
    def test_to_yahoo_symbol(self, symbol, exchange, expected):
        assert to_yahoo_symbol(symbol, exchange) == expected

    @pytest.mark.schema
    def test_default_universe_mapped(self):
        assert set(DEFAULT_UNIVERSE) == set(SECTOR_MAP)
        assert SECTOR_MAP["HDFCBANK"] == "Banking"


class TestConversion:

    @pytest.mark.schema
    def test_bars_from_dataframe(self):
        bars = bars_from_dataframe(_ohlcv_frame(5))
        assert len(bars) == 5
        assert bars[0].close == 100.0
        assert bars[-1].high == 105.0
        assert bars[0].date < bars[-1].date

    @pytest.mark.schema
    def test_nan_close_dropped_nan_volume_zero(self):
        df = _ohlcv_frame(5)
        df.iloc[2, df.columns.get_loc("Close")] = float("nan")
        df.iloc[3, df.columns.get_loc("Volume")] = float("nan")
        bars = bars_from_dataframe(df)
        assert len(bars) == 4
        assert bars[2].volume == 0.0

    @pytest.mark.schema
    def test_empty_frame(self):
        assert bars_from_dataframe(pd.DataFrame()) == []

    @pytest.mark.schema
    def test_average_turnover_crores(self):
        bars = make_bars(30, start=100.0, drift=0.0, amp=0.0, volume=1_000_000.0)
        # 100 x 10L shares = 10 Cr per day (volume wiggle averages out loosely)
        assert average_turnover_crores(bars) == pytest.approx(10.0, rel=0.1)
        assert average_turnover_crores([]) == 0.0

    @pytest.mark.schema
    def test_snapshot_from_bars(self):
        bars = make_bars(30)
        snap = snapshot_from_bars("INFY", bars)
        assert snap.sector == "IT Services"
        assert snap.name == "INFY"
        assert snap.last_price == round(bars[-1].close, 2)
        expected_change = (bars[-1].close - bars[-2].close) / bars[-2].close * 100
        assert snap.change_percent == pytest.approx(expected_change, abs=0.01)
        assert snap.bars == bars

    @pytest.mark.schema
    def test_unknown_symbol_sector(self):
        assert snapshot_from_bars("NEWCO", make_bars(5)).sector == "Unknown"


class TestDownloads:

    @pytest.mark.integration
    def test_fetch_stock_snapshots(self):
        df = _multi_frame({"TCS.NS": _ohlcv_frame(30), "INFY.NS": _ohlcv_frame(30, start=50.0)})
        with patch(_DOWNLOAD, return_value=df) as mock_dl:
            snaps = fetch_stock_snapshots(["TCS", "INFY"])
        assert [s.symbol for s in snaps] == ["TCS", "INFY"]
        assert snaps[1].last_price == 79.0
        assert len(snaps[0].bars) == 30
        args, kwargs = mock_dl.call_args
        assert args[0] == ["TCS.NS", "INFY.NS"]
        assert kwargs["interval"] == "1d"
        assert kwargs["group_by"] == "ticker"

    @pytest.mark.integration
    def test_missing_symbol_skipped(self):
        df = _multi_frame({"TCS.NS": _ohlcv_frame(30)})
        with patch(_DOWNLOAD, return_value=df):
            snaps = fetch_stock_snapshots(["TCS", "GHOST"])
        assert [s.symbol for s in snaps] == ["TCS"]

    @pytest.mark.integration
    def test_single_bar_symbol_skipped(self):
        df = _multi_frame({"TCS.NS": _ohlcv_frame(30), "IPO.NS": _ohlcv_frame(1)})
        with patch(_DOWNLOAD, return_value=df):
            snaps = fetch_stock_snapshots(["TCS", "IPO"])
        assert [s.symbol for s in snaps] == ["TCS"]

    @pytest.mark.integration
    def test_download_exception_wrapped(self):
        with patch(_DOWNLOAD, side_effect=ConnectionError("rate limited")):
            with pytest.raises(MarketDataError, match="rate limited"):
                fetch_stock_snapshots(["TCS"])

    @pytest.mark.integration
    def test_empty_download_raises(self):
        with patch(_DOWNLOAD, return_value=pd.DataFrame()):
            with pytest.raises(MarketDataError):
                fetch_stock_snapshots(["TCS"])

    @pytest.mark.integration
    def test_no_symbols_no_download(self):
        with patch(_DOWNLOAD) as mock_dl:
            assert fetch_stock_snapshots([]) == []
        mock_dl.assert_not_called()

    @pytest.mark.integration
    def test_benchmark_flat_columns(self):
        with patch(_DOWNLOAD, return_value=_ohlcv_frame(60, start=21000.0)):
            bars = fetch_benchmark_bars("^NSEI")
        assert len(bars) == 60
        assert bars[-1].close == 21059.0

    @pytest.mark.integration
    def test_volatility_index(self):
        with patch(_DOWNLOAD, return_value=_ohlcv_frame(5, start=13.0)):
            assert fetch_volatility_index() == 17.0

    @pytest.mark.integration
    def test_volatility_index_unavailable(self):
        with patch(_DOWNLOAD, side_effect=RuntimeError("down")):
            assert fetch_volatility_index() is None
