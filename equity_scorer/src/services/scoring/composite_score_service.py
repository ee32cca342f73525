"""
Composite Scoring Model

Combines fundamentals, an optional moat rating and technical indicators
into a 0-100 score:

    business quality (max 60) = financial health (25) + moat (20) + growth (15)
    timing           (max 40) = valuation (20) + technical (20)

Every metric is scored with a tier table of (threshold, points) pairs where
the first matching tier wins. A missing metric contributes 0 points.
"""

import math
from typing import List, Optional, Sequence, Tuple

from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.models.market_data import Fundamentals, PriceSeries, Quote
from equity_scorer.src.models.score_models import MoatRating, Recommendation, Score
from equity_scorer.src.models.technical_indicators import TechnicalIndicators
from equity_scorer.src.services.scoring.insights import (
    build_explanation,
    identify_strengths,
    identify_weaknesses,
)
from equity_scorer.src.services.technical_analysis.technical_analysis_lib import (
    TechnicalAnalysisLib,
)

Tiers = Sequence[Tuple[float, int]]

# Caps per component
FINANCIAL_HEALTH_MAX = 25
MOAT_MAX = 20
GROWTH_MAX = 15
VALUATION_MAX = 20
TECHNICAL_MAX = 20
BUSINESS_QUALITY_MAX = 60
TIMING_MAX = 40

# Financial health: value >= threshold
ROE_TIERS: Tiers = ((0.20, 8), (0.15, 6), (0.10, 4), (0.05, 2))
ROA_TIERS: Tiers = ((0.10, 5), (0.07, 4), (0.05, 3), (0.03, 1))
CURRENT_RATIO_TIERS: Tiers = ((2.0, 5), (1.5, 3), (1.0, 1))
PROFIT_MARGIN_TIERS: Tiers = ((0.20, 6), (0.10, 4), (0.05, 2))
# Financial health: value < threshold
DEBT_TO_EQUITY_TIERS: Tiers = ((0.3, 6), (0.5, 5), (1.0, 3), (1.5, 1))

# Moat estimate when no rating is available: value >= threshold
GROSS_MARGIN_TIERS: Tiers = ((0.50, 8), (0.40, 6), (0.30, 4), (0.20, 2))
OPERATING_MARGIN_TIERS: Tiers = ((0.25, 6), (0.15, 4), (0.10, 2))
FCF_MARGIN_TIERS: Tiers = ((0.20, 6), (0.15, 4), (0.10, 2))

# Growth: value >= threshold
REVENUE_GROWTH_TIERS: Tiers = ((0.20, 8), (0.15, 6), (0.10, 4), (0.05, 2))
EARNINGS_GROWTH_TIERS: Tiers = ((0.25, 7), (0.15, 5), (0.10, 3), (0.05, 1))

# Valuation: value < threshold
PE_TIERS: Tiers = ((15, 8), (20, 6), (25, 4), (30, 2))
PEG_TIERS: Tiers = ((1.0, 6), (1.5, 4), (2.0, 2))
PRICE_TO_BOOK_TIERS: Tiers = ((1.5, 3), (3.0, 2), (5.0, 1))
RANGE_POSITION_TIERS: Tiers = ((0.3, 3), (0.5, 2), (0.7, 1))

# Technical: value < threshold
SUPPORT_DISTANCE_TIERS: Tiers = ((0.05, 4), (0.10, 2))
VOLATILITY_TIERS: Tiers = ((0.02, 4), (0.04, 2))
TREND_POINTS = {"bullish": 8, "neutral": 4, "bearish": 0}

# (min total, min business quality, recommendation), first match wins
RECOMMENDATION_TABLE: List[Tuple[int, int, Recommendation]] = [
    (80, 45, Recommendation.STRONG_BUY),
    (70, 40, Recommendation.BUY),
    (50, 0, Recommendation.HOLD),
    (30, 0, Recommendation.SELL),
]


def tier_at_least(value: Optional[float], tiers: Tiers) -> int:
    """Points of the first tier whose threshold ``value`` reaches."""
    if value is None:
        return 0
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0


def tier_below(value: Optional[float], tiers: Tiers) -> int:
    """Points of the first tier whose threshold ``value`` stays under."""
    if value is None:
        return 0
    for threshold, points in tiers:
        if value < threshold:
            return points
    return 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def recommendation_for(total: int, business_quality: int) -> Recommendation:
    """Map a total and business-quality score onto a recommendation."""
    for min_total, min_quality, recommendation in RECOMMENDATION_TABLE:
        if total >= min_total and business_quality >= min_quality:
            return recommendation
    return Recommendation.STRONG_SELL


class CompositeScoringModel:
    """Pure scoring functions; no I/O."""

    @classmethod
    def calculate_score(
        cls,
        quote: Quote,
        fundamentals: Fundamentals,
        history: PriceSeries,
        moat_rating: Optional[MoatRating] = None,
        indicators: Optional[TechnicalIndicators] = None,
    ) -> Score:
        """
        Score one symbol.

        Args:
            quote: Latest quote
            fundamentals: Fundamentals (fields may be None)
            history: Daily bars used for technical indicators
            moat_rating: External moat rating; estimated from margins when None
            indicators: Precomputed indicators for ``history``

        Returns:
            Score with sub-components, recommendation and insights
        """
        if indicators is None:
            indicators = TechnicalAnalysisLib.calculate_indicators(history)

        financial_health = cls.score_financial_health(fundamentals)
        moat = cls.score_moat(fundamentals, moat_rating)
        growth = cls.score_growth(fundamentals)
        valuation = cls.score_valuation(quote, fundamentals)
        technical = cls.score_technical(quote.price, indicators)

        business_quality = min(BUSINESS_QUALITY_MAX, financial_health + moat + growth)
        timing = min(TIMING_MAX, valuation + technical)
        total = min(100, business_quality + timing)

        score = Score(
            symbol=quote.symbol,
            total=total,
            business_quality=business_quality,
            timing=timing,
            financial_health=financial_health,
            moat=moat,
            growth=growth,
            valuation=valuation,
            technical=technical,
            recommendation=recommendation_for(total, business_quality),
            explanation=build_explanation(quote.symbol, total, business_quality, timing),
            strengths=identify_strengths(quote, fundamentals, indicators, moat_rating),
            weaknesses=identify_weaknesses(quote, fundamentals, indicators),
            technical_indicators=indicators,
            moat_source="rating" if moat_rating is not None else "estimate",
            data_source=quote.source,
            fundamentals_estimated=fundamentals.is_estimated,
            price=quote.price,
        )

        logger.debug(
            f"Scored {quote.symbol}: total={total} (quality={business_quality}, timing={timing}) "
            f"fh={financial_health} moat={moat} growth={growth} val={valuation} tech={technical}"
        )
        return score

    @staticmethod
    def score_financial_health(fundamentals: Fundamentals) -> int:
        debt_to_equity = fundamentals.debt_to_equity
        if debt_to_equity is not None and debt_to_equity < 0:
            # Negative equity is not low leverage
            debt_to_equity = None

        points = (
            tier_at_least(fundamentals.return_on_equity, ROE_TIERS)
            + tier_at_least(fundamentals.return_on_assets, ROA_TIERS)
            + tier_below(debt_to_equity, DEBT_TO_EQUITY_TIERS)
            + tier_at_least(fundamentals.current_ratio, CURRENT_RATIO_TIERS)
            + tier_at_least(fundamentals.profit_margin, PROFIT_MARGIN_TIERS)
        )
        return min(FINANCIAL_HEALTH_MAX, points)

    @staticmethod
    def score_moat(fundamentals: Fundamentals, moat_rating: Optional[MoatRating] = None) -> int:
        if moat_rating is not None:
            overall = min(100.0, max(0.0, moat_rating.overall_score))
            return min(MOAT_MAX, round_half_up(overall / 100 * MOAT_MAX))

        fcf_margin = None
        if fundamentals.free_cash_flow is not None and fundamentals.revenue:
            fcf_margin = fundamentals.free_cash_flow / fundamentals.revenue

        points = (
            tier_at_least(fundamentals.gross_margin, GROSS_MARGIN_TIERS)
            + tier_at_least(fundamentals.operating_margin, OPERATING_MARGIN_TIERS)
            + tier_at_least(fcf_margin, FCF_MARGIN_TIERS)
        )
        return min(MOAT_MAX, points)

    @staticmethod
    def score_growth(fundamentals: Fundamentals) -> int:
        points = tier_at_least(fundamentals.revenue_growth, REVENUE_GROWTH_TIERS) + tier_at_least(
            fundamentals.earnings_growth, EARNINGS_GROWTH_TIERS
        )
        return min(GROWTH_MAX, points)

    @staticmethod
    def score_valuation(quote: Quote, fundamentals: Fundamentals) -> int:
        pe = quote.pe_ratio if quote.pe_ratio is not None else fundamentals.forward_pe
        if pe is not None and pe <= 0:
            pe = None
        peg = fundamentals.peg_ratio
        if peg is not None and peg <= 0:
            peg = None
        price_to_book = fundamentals.price_to_book
        if price_to_book is not None and price_to_book <= 0:
            price_to_book = None

        range_position = None
        high, low = quote.week52_high, quote.week52_low
        if high is not None and low is not None and high - low > 0:
            range_position = (quote.price - low) / (high - low)

        points = (
            tier_below(pe, PE_TIERS)
            + tier_below(peg, PEG_TIERS)
            + tier_below(price_to_book, PRICE_TO_BOOK_TIERS)
            + tier_below(range_position, RANGE_POSITION_TIERS)
        )
        return min(VALUATION_MAX, points)

    @staticmethod
    def score_technical(price: float, indicators: TechnicalIndicators) -> int:
        points = TREND_POINTS.get(indicators.trend, 0)

        if 30 < indicators.rsi < 70:
            points += 4
        elif indicators.rsi <= 30:
            points += 2

        if indicators.support > 0 and price > 0:
            distance = (price - indicators.support) / price
            if distance >= 0:
                points += tier_below(distance, SUPPORT_DISTANCE_TIERS)

        # 0 means no history to measure
        if indicators.volatility > 0:
            points += tier_below(indicators.volatility, VOLATILITY_TIERS)

        return min(TECHNICAL_MAX, points)
