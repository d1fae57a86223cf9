"""
Tests for the Indicator Library — series functions.
Level 1: Pure arithmetic, no I/O.

Known-value checks for each formula plus the minimum-history edge cases
(empty result when the input is shorter than the lookback).
"""

import pytest

from velocity_screener.tools import indicator_library as lib

from tests.fixtures.conftest import make_bars


def _hlc(bars):
    return [b.high for b in bars], [b.low for b in bars], [b.close for b in bars]


# ---------------------------------------------------------------------------
# Averages & smoothing
# ---------------------------------------------------------------------------

class TestAverages:

    @pytest.mark.schema
    def test_sma_known_values(self):
        assert lib.sma([1, 2, 3, 4, 5], 3) == [2.0, 3.0, 4.0]

    @pytest.mark.schema
    def test_ema_seeded_with_sma(self):
        # seed = mean(1,2,3) = 2; k = 0.5
        assert lib.ema([1, 2, 3, 4, 5], 3) == pytest.approx([2.0, 3.0, 4.0])

    @pytest.mark.schema
    def test_ema_uses_two_over_n_plus_one(self):
        out = lib.ema([10, 10, 10, 10, 20], 4)
        assert out[-1] == pytest.approx(10 + (20 - 10) * 2 / 5)

    @pytest.mark.schema
    def test_wilder_smooth_known_values(self):
        assert lib.wilder_smooth([1, 2, 3, 4], 2) == pytest.approx([1.5, 2.25, 3.125])

    @pytest.mark.schema
    @pytest.mark.parametrize("fn", [lib.sma, lib.ema, lib.wilder_smooth])
    def test_short_input_returns_empty(self, fn):
        assert fn([1.0, 2.0], 3) == []

    @pytest.mark.schema
    def test_ema200_needs_200_values(self):
        closes = [b.close for b in make_bars(199)]
        assert lib.ema(closes, 200) == []
        assert len(lib.ema(closes + [closes[-1]], 200)) == 1

    @pytest.mark.schema
    def test_true_range_uses_previous_close(self):
        trs = lib.true_ranges([10, 12], [9, 11], [9.5, 11.5])
        # gap up: high 12 - prev close 9.5 = 2.5 beats high-low 1
        assert trs == [pytest.approx(2.5)]


# ---------------------------------------------------------------------------
# Momentum
# ---------------------------------------------------------------------------

class TestMomentum:

    @pytest.mark.schema
    def test_rsi_all_gains_is_100(self):
        out = lib.rsi([float(i) for i in range(1, 20)], 14)
        assert out[-1] == 100.0

    @pytest.mark.schema
    def test_rsi_flat_is_50(self):
        assert lib.rsi([100.0] * 20, 14)[-1] == 50.0

    @pytest.mark.schema
    def test_rsi_minimum_bars(self):
        assert lib.rsi([1.0] * 14, 14) == []
        assert len(lib.rsi([1.0] * 15, 14)) == 1

    @pytest.mark.schema
    def test_rsi_bounded(self):
        closes = [b.close for b in make_bars(120, drift=-0.002, amp=0.03)]
        assert all(0.0 <= v <= 100.0 for v in lib.rsi(closes))

    @pytest.mark.schema
    def test_macd_minimum_bars(self):
        assert lib.macd([100.0 + i for i in range(33)]).histogram == []
        result = lib.macd([100.0 + i for i in range(34)])
        assert len(result.histogram) == 1
        assert result.histogram[-1] == pytest.approx(result.line[-1] - result.signal[-1])

    @pytest.mark.schema
    def test_macd_positive_in_uptrend(self):
        closes = [b.close for b in make_bars(100, drift=0.004, amp=0.002)]
        result = lib.macd(closes)
        assert result.line[-1] > 0

    @pytest.mark.schema
    def test_stochastic_minimum_bars(self):
        bars = make_bars(18)
        assert len(lib.stochastic(*_hlc(bars)).d) == 1
        assert lib.stochastic(*_hlc(bars[:17])).d == []

    @pytest.mark.schema
    def test_stochastic_at_range_high(self):
        highs = [float(i + 1) for i in range(20)]
        lows = [float(i) for i in range(20)]
        closes = highs[:]
        out = lib.stochastic(highs, lows, closes)
        assert out.k[-1] == pytest.approx(100.0)

    @pytest.mark.schema
    def test_williams_r_extremes(self):
        highs = [10.0] * 14
        lows = [5.0] * 14
        assert lib.williams_r(highs, lows, [10.0] * 14)[-1] == pytest.approx(0.0)
        assert lib.williams_r(highs, lows, [5.0] * 14)[-1] == pytest.approx(-100.0)

    @pytest.mark.schema
    def test_roc_percent_change(self):
        assert lib.roc([100.0, 110.0], 1) == [pytest.approx(10.0)]
        assert lib.roc([100.0] * 14, 14) == []

    @pytest.mark.schema
    def test_cci_flat_is_zero(self):
        out = lib.cci([10.0] * 20, [10.0] * 20, [10.0] * 20)
        assert out == [0.0]


# ---------------------------------------------------------------------------
# Trend strength & volatility
# ---------------------------------------------------------------------------

class TestTrendAndVolatility:

    @pytest.mark.schema
    def test_adx_minimum_bars(self):
        bars = make_bars(28)
        assert len(lib.directional_movement(*_hlc(bars)).adx) == 1
        assert lib.directional_movement(*_hlc(bars[:27])).adx == []

    @pytest.mark.schema
    def test_adx_strong_in_clean_uptrend(self):
        bars = make_bars(80, drift=0.01, amp=0.002)
        dm = lib.directional_movement(*_hlc(bars))
        assert dm.adx[-1] > 25
        assert dm.plus_di[-1] > dm.minus_di[-1]

    @pytest.mark.schema
    def test_atr_constant_range(self):
        highs = [11.0] * 20
        lows = [9.0] * 20
        closes = [10.0] * 20
        assert lib.atr(highs, lows, closes, 14)[-1] == pytest.approx(2.0)

    @pytest.mark.schema
    def test_bollinger_flat_series(self):
        bb = lib.bollinger_bands([50.0] * 20)
        assert bb.percent_b == [0.5]
        assert bb.bandwidth == [0.0]
        assert bb.upper[-1] == bb.middle[-1] == bb.lower[-1] == 50.0

    @pytest.mark.schema
    def test_bollinger_population_std(self):
        closes = [1.0, 3.0] * 10
        bb = lib.bollinger_bands(closes)
        # mean 2, population sd 1 -> bands at 0 and 4
        assert bb.upper[-1] == pytest.approx(4.0)
        assert bb.lower[-1] == pytest.approx(0.0)
        assert bb.bandwidth[-1] == pytest.approx(2.0)

    @pytest.mark.schema
    def test_supertrend_up_in_uptrend(self):
        bars = make_bars(60, drift=0.01, amp=0.002)
        st = lib.supertrend(*_hlc(bars))
        assert st.direction[-1] == "up"
        assert st.values[-1] < bars[-1].close

    @pytest.mark.schema
    def test_supertrend_minimum_bars(self):
        assert lib.supertrend(*_hlc(make_bars(10))).values == []
        assert len(lib.supertrend(*_hlc(make_bars(11))).values) == 1

    @pytest.mark.schema
    def test_parabolic_sar_below_price_in_uptrend(self):
        bars = make_bars(60, drift=0.01, amp=0.002)
        sar = lib.parabolic_sar(*_hlc(bars))
        assert len(sar) == 60
        assert sar[-1] < bars[-1].close

    @pytest.mark.schema
    def test_parabolic_sar_above_price_in_downtrend(self):
        bars = make_bars(60, drift=-0.01, amp=0.002)
        sar = lib.parabolic_sar(*_hlc(bars))
        assert sar[-1] > bars[-1].close


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

class TestVolume:

    @pytest.mark.schema
    def test_obv_signed_accumulation(self):
        assert lib.obv([1, 2, 1, 1], [10, 20, 30, 40]) == [0.0, 20.0, -10.0, -10.0]

    @pytest.mark.schema
    def test_mfi_all_inflow_is_100(self):
        n = 20
        highs = [float(i + 2) for i in range(n)]
        lows = [float(i) for i in range(n)]
        closes = [float(i + 1) for i in range(n)]
        out = lib.mfi(highs, lows, closes, [1000.0] * n)
        assert out[-1] == 100.0

    @pytest.mark.schema
    def test_mfi_minimum_bars(self):
        assert lib.mfi([1.0] * 14, [1.0] * 14, [1.0] * 14, [1.0] * 14) == []
        assert len(lib.mfi([1.0] * 15, [1.0] * 15, [1.0] * 15, [1.0] * 15)) == 1

    @pytest.mark.schema
    def test_ad_line_close_at_high_adds_volume(self):
        out = lib.ad_line([10.0, 10.0], [8.0, 8.0], [10.0, 8.0], [100.0, 50.0])
        assert out == [100.0, 50.0]

    @pytest.mark.schema
    @pytest.mark.parametrize("last,expected", [
        (102.0, "up"),
        (98.0, "down"),
        (100.5, "flat"),
    ])
    def test_series_trend_dead_band(self, last, expected):
        assert lib.series_trend([100.0] * 10 + [last]) == expected

    @pytest.mark.schema
    def test_series_trend_short_is_none(self):
        assert lib.series_trend([1.0] * 10) is None


# ---------------------------------------------------------------------------
# Ichimoku, relative strength, patterns
# ---------------------------------------------------------------------------

class TestIchimokuAndPatterns:

    @pytest.mark.schema
    def test_ichimoku_needs_78_bars(self):
        assert lib.ichimoku_cloud(*_hlc(make_bars(77))) is None
        assert lib.ichimoku_cloud(*_hlc(make_bars(78))) is not None

    @pytest.mark.schema
    def test_ichimoku_above_cloud_in_uptrend(self):
        cloud = lib.ichimoku_cloud(*_hlc(make_bars(120, drift=0.005, amp=0.002)))
        assert cloud.signal == "above"
        assert cloud.tenkan > cloud.kijun

    @pytest.mark.schema
    def test_ichimoku_below_cloud_in_downtrend(self):
        cloud = lib.ichimoku_cloud(*_hlc(make_bars(120, drift=-0.005, amp=0.002)))
        assert cloud.signal == "below"

    @pytest.mark.schema
    def test_relative_strength_difference_of_returns(self):
        stock = [100.0] * 63 + [120.0]
        bench = [100.0] * 63 + [105.0]
        assert lib.relative_strength(stock, bench, 63) == pytest.approx(15.0)

    @pytest.mark.schema
    def test_relative_strength_needs_period_plus_one(self):
        assert lib.relative_strength([1.0] * 63, [1.0] * 100, 63) is None

    @pytest.mark.schema
    def test_hammer(self):
        assert lib.detect_candlestick_pattern(
            [101.0, 100.0], [101.5, 101.2], [99.0, 97.0], [100.5, 101.0],
        ) == "Hammer"

    @pytest.mark.schema
    def test_bullish_engulfing(self):
        assert lib.detect_candlestick_pattern(
            [102.0, 99.5], [102.2, 103.2], [99.8, 99.4], [100.0, 103.0],
        ) == "Bullish Engulfing"

    @pytest.mark.schema
    def test_doji(self):
        assert lib.detect_candlestick_pattern(
            [100.0, 100.0], [101.0, 101.0], [99.0, 99.0], [100.0, 100.05],
        ) == "Doji"

    @pytest.mark.schema
    def test_no_pattern(self):
        assert lib.detect_candlestick_pattern(
            [100.0, 100.0], [101.0, 104.2], [99.0, 99.8], [100.5, 104.0],
        ) is None

    @pytest.mark.schema
    def test_latest_and_last_three(self):
        assert lib.latest([]) is None
        assert lib.latest([1.0, 2.0]) == 2.0
        assert lib.last_three([1.0, 2.0]) is None
        assert lib.last_three([1.0, 2.0, 3.0, 4.0]) == (2.0, 3.0, 4.0)
