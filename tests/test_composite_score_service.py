"""
Unit tests for CompositeScoringModel
"""

import pytest

from conftest import build_fundamentals, build_quote, build_series
from equity_scorer.src.models.score_models import MoatRating, Recommendation
from equity_scorer.src.models.technical_indicators import TechnicalIndicators
from equity_scorer.src.services.scoring.composite_score_service import (
    CompositeScoringModel,
    recommendation_for,
    tier_at_least,
    tier_below,
)
from equity_scorer.src.services.scoring.insights import build_explanation


class TestTiers:
    def test_first_matching_tier_wins(self):
        tiers = ((0.20, 8), (0.15, 6), (0.10, 4))
        assert tier_at_least(0.25, tiers) == 8
        assert tier_at_least(0.15, tiers) == 6
        assert tier_at_least(0.05, tiers) == 0

    def test_missing_value_scores_zero(self):
        assert tier_at_least(None, ((0, 5),)) == 0
        assert tier_below(None, ((100, 5),)) == 0

    def test_below_tiers_are_exclusive(self):
        tiers = ((15, 8), (20, 6))
        assert tier_below(14.9, tiers) == 8
        assert tier_below(15, tiers) == 6
        assert tier_below(20, tiers) == 0


class TestFinancialHealth:
    def test_strong_balance_sheet_scores_full_marks(self):
        fundamentals = build_fundamentals(
            return_on_equity=0.22, debt_to_equity=0.2, current_ratio=2.1, profit_margin=0.25
        )
        assert CompositeScoringModel.score_financial_health(fundamentals) == 25

    def test_score_is_clamped_to_cap(self):
        fundamentals = build_fundamentals(
            return_on_equity=0.5,
            return_on_assets=0.2,
            debt_to_equity=0.0,
            current_ratio=5.0,
            profit_margin=0.5,
        )
        assert CompositeScoringModel.score_financial_health(fundamentals) == 25

    def test_negative_equity_is_not_rewarded(self):
        fundamentals = build_fundamentals(debt_to_equity=-2.0)
        assert CompositeScoringModel.score_financial_health(fundamentals) == 0

    def test_missing_metrics_score_zero(self):
        assert CompositeScoringModel.score_financial_health(build_fundamentals()) == 0


class TestMoat:
    @pytest.mark.parametrize(
        "overall,expected",
        [(100, 20), (0, 0), (50, 10), (72, 14), (73, 15), (2.6, 1)],
    )
    def test_rating_maps_onto_twenty_points(self, overall, expected):
        rating = MoatRating(symbol="TEST", overall_score=overall)
        assert CompositeScoringModel.score_moat(build_fundamentals(), rating) == expected

    def test_estimate_from_margins_without_rating(self):
        fundamentals = build_fundamentals(
            gross_margin=0.55, operating_margin=0.30, free_cash_flow=25.0, revenue=100.0
        )
        assert CompositeScoringModel.score_moat(fundamentals) == 20

    def test_estimate_ignores_fcf_without_revenue(self):
        fundamentals = build_fundamentals(gross_margin=0.35, free_cash_flow=10.0, revenue=0)
        assert CompositeScoringModel.score_moat(fundamentals) == 4


class TestGrowthAndValuation:
    def test_growth_caps_at_fifteen(self):
        fundamentals = build_fundamentals(revenue_growth=0.5, earnings_growth=0.5)
        assert CompositeScoringModel.score_growth(fundamentals) == 15

    def test_valuation_components(self):
        quote = build_quote(price=60.0, pe_ratio=14.0, week52_high=100.0, week52_low=50.0)
        fundamentals = build_fundamentals(peg_ratio=1.2, price_to_book=2.0)
        # P/E 8 + PEG 4 + P/B 2 + range position 0.2 -> 3
        assert CompositeScoringModel.score_valuation(quote, fundamentals) == 17

    def test_flat_52_week_range_is_skipped(self):
        quote = build_quote(price=50.0, week52_high=50.0, week52_low=50.0)
        assert CompositeScoringModel.score_valuation(quote, build_fundamentals()) == 0

    def test_negative_pe_scores_nothing(self):
        quote = build_quote(pe_ratio=-5.0)
        assert CompositeScoringModel.score_valuation(quote, build_fundamentals()) == 0

    def test_forward_pe_used_when_quote_has_none(self):
        quote = build_quote(pe_ratio=None)
        fundamentals = build_fundamentals(forward_pe=18.0)
        assert CompositeScoringModel.score_valuation(quote, fundamentals) == 6


class TestTechnical:
    def test_ideal_setup_scores_twenty(self):
        indicators = TechnicalIndicators(trend="bullish", rsi=55, support=98.0, volatility=0.01)
        assert CompositeScoringModel.score_technical(100.0, indicators) == 20

    def test_oversold_bearish_setup(self):
        indicators = TechnicalIndicators(trend="bearish", rsi=25, support=85.0, volatility=0.05)
        assert CompositeScoringModel.score_technical(100.0, indicators) == 2

    def test_neutral_indicators(self):
        assert CompositeScoringModel.score_technical(100.0, TechnicalIndicators.neutral()) == 8


class TestRecommendation:
    @pytest.mark.parametrize(
        "total,quality,expected",
        [
            (85, 50, Recommendation.STRONG_BUY),
            (85, 44, Recommendation.BUY),
            (72, 40, Recommendation.BUY),
            (72, 39, Recommendation.HOLD),
            (50, 0, Recommendation.HOLD),
            (49, 30, Recommendation.SELL),
            (30, 10, Recommendation.SELL),
            (29, 29, Recommendation.STRONG_SELL),
        ],
    )
    def test_recommendation_table(self, total, quality, expected):
        assert recommendation_for(total, quality) == expected


class TestCalculateScore:
    def test_all_missing_fundamentals_still_produce_a_score(self):
        score = CompositeScoringModel.calculate_score(
            build_quote(), build_fundamentals(), build_series([100.0] * 5)
        )

        assert score.financial_health == 0
        assert score.growth == 0
        assert score.moat == 0
        assert score.total == score.business_quality + score.timing
        assert score.recommendation == Recommendation.STRONG_SELL
        assert score.moat_source == "estimate"

    def test_quality_company_in_uptrend(self):
        closes = [100 + i * 0.2 + (0.3 if i % 2 else -0.3) for i in range(252)]
        quote = build_quote(price=closes[-1], pe_ratio=18.0)
        fundamentals = build_fundamentals(
            return_on_equity=0.22,
            debt_to_equity=0.2,
            current_ratio=2.1,
            profit_margin=0.25,
            revenue_growth=0.18,
            earnings_growth=0.20,
            peg_ratio=1.1,
        )
        rating = MoatRating(symbol="TEST", overall_score=80, strength="Strong")

        score = CompositeScoringModel.calculate_score(
            quote, fundamentals, build_series(closes), moat_rating=rating
        )

        assert score.financial_health == 25
        assert score.moat == 16
        assert score.growth == 11
        assert score.business_quality == 52
        assert score.technical >= 12
        assert score.total == score.business_quality + score.timing
        assert score.moat_source == "rating"
        assert "Price in a bullish trend" in score.strengths
        assert any("moat" in s for s in score.strengths)
        assert score.weaknesses == []
        assert str(score.total) in score.explanation

    def test_estimated_fundamentals_are_flagged(self):
        fundamentals = build_fundamentals(is_estimated=True)
        score = CompositeScoringModel.calculate_score(build_quote(), fundamentals, build_series([]))
        assert score.fundamentals_estimated is True
        assert score.data_source == "fake"


def test_explanation_bands():
    assert "exceptional" in build_explanation("AAPL", 85, 55, 30)
    assert "strong candidate" in build_explanation("AAPL", 72, 45, 27)
    assert "mixed" in build_explanation("AAPL", 55, 35, 20)
    assert "concerns" in build_explanation("AAPL", 20, 10, 10)
