"""
Tests for the Sector Scorer.
Level 1: Pure functions over precomputed indicator sets.

Bonus assignment (top 3 +5, bottom 3 -5, only with 6+ sectors), ordering
tie-breaks, breadth and the exclusion of unknown sectors.
"""

import pytest

from velocity_screener.schemas.sector_output import VALID_SCORE_BONUSES, sector_bonus_for
from velocity_screener.tools.sector_scorer import rank_sectors, sector_momentum_score

from tests.fixtures.conftest import make_bars, make_indicator_set, make_stock


def _universe(sector_rs):
    """One stock per sector with the given 3M relative strength."""
    stocks = []
    indicators = []
    for i, (sector, rs) in enumerate(sector_rs):
        sym = f"S{i:02d}"
        stocks.append(make_stock(symbol=sym, sector=sector))
        indicators.append(make_indicator_set(relative_strength_3m=rs))
    return stocks, indicators


EIGHT_SECTORS = [
    ("Banking", 12.0), ("IT Services", 9.0), ("Pharma", 6.0), ("Auto", 3.0),
    ("FMCG", 0.0), ("Metals", -3.0), ("Energy", -6.0), ("Realty", -9.0),
]


class TestSectorMomentumScore:

    @pytest.mark.schema
    def test_formula(self):
        # breadth 100% -> component +10
        assert sector_momentum_score(10.0, 1.0) == pytest.approx(10.0 * 0.6 + 10.0 * 0.4)
        # breadth 50% -> component 0
        assert sector_momentum_score(5.0, 0.5) == pytest.approx(3.0)
        # breadth 0% -> component -10
        assert sector_momentum_score(0.0, 0.0) == pytest.approx(-4.0)


class TestRankSectors:

    @pytest.mark.schema
    def test_ranked_order_and_bonuses(self):
        stocks, ind = _universe(EIGHT_SECTORS)
        rankings = rank_sectors(stocks, ind)
        assert list(rankings) == [s for s, _ in EIGHT_SECTORS]
        bonuses = [r.score_bonus for r in rankings.values()]
        assert bonuses == [5, 5, 5, 0, 0, -5, -5, -5]
        assert [r.momentum_rank for r in rankings.values()] == list(range(1, 9))

    @pytest.mark.schema
    def test_bonus_exclusive_and_valid(self):
        stocks, ind = _universe(EIGHT_SECTORS)
        for r in rank_sectors(stocks, ind).values():
            assert r.score_bonus in VALID_SCORE_BONUSES

    @pytest.mark.schema
    def test_six_sectors_all_get_bonus(self):
        stocks, ind = _universe(EIGHT_SECTORS[:6])
        bonuses = [r.score_bonus for r in rank_sectors(stocks, ind).values()]
        assert bonuses == [5, 5, 5, -5, -5, -5]

    @pytest.mark.schema
    def test_fewer_than_six_sectors_no_bonus(self):
        stocks, ind = _universe(EIGHT_SECTORS[:5])
        rankings = rank_sectors(stocks, ind)
        assert len(rankings) == 5
        assert all(r.score_bonus == 0 for r in rankings.values())

    @pytest.mark.schema
    def test_tie_break_member_count_then_name(self):
        stocks, ind = _universe([("Zeta", 5.0), ("Alpha", 5.0), ("Beta", 5.0), ("Beta", 5.0)])
        assert list(rank_sectors(stocks, ind)) == ["Beta", "Alpha", "Zeta"]

    @pytest.mark.schema
    def test_unknown_sector_excluded(self):
        stocks, ind = _universe(EIGHT_SECTORS + [("Unknown", 50.0), ("", 40.0)])
        rankings = rank_sectors(stocks, ind)
        assert "Unknown" not in rankings
        assert "" not in rankings
        assert sector_bonus_for("Unknown", rankings) == 0

    @pytest.mark.schema
    def test_sector_bonus_lookup(self):
        stocks, ind = _universe(EIGHT_SECTORS)
        rankings = rank_sectors(stocks, ind)
        assert sector_bonus_for("Banking", rankings) == 5
        assert sector_bonus_for("Realty", rankings) == -5
        assert sector_bonus_for("Textiles", rankings) == 0

    @pytest.mark.schema
    def test_breadth_and_average(self):
        stocks = [
            make_stock(symbol="A", sector="Banking", last_price=110.0),
            make_stock(symbol="B", sector="Banking", last_price=100.0),
        ]
        ind = [
            make_indicator_set(relative_strength_3m=8.0, ema50=105.0),
            make_indicator_set(relative_strength_3m=2.0, ema50=105.0),
        ]
        ranking = rank_sectors(stocks, ind)["Banking"]
        assert ranking.member_count == 2
        assert ranking.breadth == pytest.approx(0.5)
        assert ranking.relative_strength == pytest.approx(5.0)
        assert ranking.top_symbols == ["A", "B"]

    @pytest.mark.schema
    def test_same_symbol_on_two_exchanges_keeps_both(self):
        stocks = [
            make_stock(symbol="RELIANCE", sector="Energy", exchange="NSE"),
            make_stock(symbol="RELIANCE", sector="Energy", exchange="BSE"),
        ]
        ind = [
            make_indicator_set(relative_strength_3m=10.0),
            make_indicator_set(relative_strength_3m=0.0),
        ]
        ranking = rank_sectors(stocks, ind)["Energy"]
        assert ranking.member_count == 2
        assert ranking.relative_strength == pytest.approx(5.0)

    @pytest.mark.schema
    def test_misaligned_indicator_sets_rejected(self):
        stocks, ind = _universe(EIGHT_SECTORS)
        with pytest.raises(ValueError, match="7 entries for 8 snapshots"):
            rank_sectors(stocks, ind[:7])

    @pytest.mark.schema
    def test_padded_sector_name_gets_its_bonus(self):
        padded = [("Banking ", 12.0)] + EIGHT_SECTORS[1:]
        stocks, ind = _universe(padded)
        rankings = rank_sectors(stocks, ind)
        assert "Banking" in rankings
        assert sector_bonus_for("Banking ", rankings) == 5
        assert sector_bonus_for(" Realty", rankings) == -5
        assert sector_bonus_for(None, rankings) == 0

    @pytest.mark.schema
    def test_missing_relative_strength_counts_as_zero_average(self):
        stocks = [make_stock(symbol="A", sector="Banking")]
        ind = [make_indicator_set(relative_strength_3m=None)]
        ranking = rank_sectors(stocks, ind)["Banking"]
        assert ranking.relative_strength == 0.0

    @pytest.mark.schema
    def test_top_symbols_capped_at_five(self):
        stocks, ind = _universe([("Banking", float(i)) for i in range(7)])
        ranking = rank_sectors(stocks, ind)["Banking"]
        assert ranking.member_count == 7
        assert ranking.top_symbols == ["S06", "S05", "S04", "S03", "S02"]

    @pytest.mark.schema
    def test_computes_missing_indicators_from_bars(self):
        bars = make_bars(260)
        bench = [b.close for b in make_bars(260, drift=0.0005)]
        stock = make_stock(symbol="A", sector="Banking", last_price=bars[-1].close, bars=bars)
        ranking = rank_sectors([stock], benchmark_closes=bench)["Banking"]
        assert ranking.relative_strength > 0
        assert ranking.breadth == 1.0

    @pytest.mark.schema
    def test_empty_universe(self):
        assert rank_sectors([]) == {}
