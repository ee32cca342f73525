"""
Data models for the equity scoring pipeline.
"""
from equity_scorer.src.models.market_data import (
    Fundamentals,
    MarketSnapshot,
    PricePoint,
    PriceSeries,
    Quote,
)
from equity_scorer.src.models.score_models import (
    CalculationProgress,
    MoatRating,
    Recommendation,
    RunSummary,
    Score,
)
from equity_scorer.src.models.technical_indicators import TechnicalIndicators

__all__ = [
    'Fundamentals',
    'MarketSnapshot',
    'PricePoint',
    'PriceSeries',
    'Quote',
    'CalculationProgress',
    'MoatRating',
    'Recommendation',
    'RunSummary',
    'Score',
    'TechnicalIndicators',
]
