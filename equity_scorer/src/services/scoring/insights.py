"""
Human-readable insights attached to a score.
"""

from typing import List, Optional

from equity_scorer.src.models.market_data import Fundamentals, Quote
from equity_scorer.src.models.score_models import MoatRating
from equity_scorer.src.models.technical_indicators import TechnicalIndicators


def _pe(quote: Quote, fundamentals: Fundamentals) -> Optional[float]:
    pe = quote.pe_ratio if quote.pe_ratio is not None else fundamentals.forward_pe
    return pe if pe is not None and pe > 0 else None


def identify_strengths(
    quote: Quote,
    fundamentals: Fundamentals,
    indicators: TechnicalIndicators,
    moat_rating: Optional[MoatRating] = None,
) -> List[str]:
    strengths: List[str] = []

    roe = fundamentals.return_on_equity
    if roe is not None and roe >= 0.15:
        strengths.append(f"High return on equity ({roe * 100:.1f}%)")

    de = fundamentals.debt_to_equity
    if de is not None and 0 <= de < 0.5:
        strengths.append(f"Low debt-to-equity ({de:.2f})")

    growth = fundamentals.revenue_growth
    if growth is not None and growth >= 0.15:
        strengths.append(f"Strong revenue growth ({growth * 100:.1f}%)")

    if indicators.trend == "bullish":
        strengths.append("Price in a bullish trend")

    pe = _pe(quote, fundamentals)
    if pe is not None and pe < 20:
        strengths.append(f"Attractive P/E ratio ({pe:.1f})")

    if moat_rating is not None and moat_rating.overall_score >= 70:
        strengths.append(f"Durable competitive moat (rated {moat_rating.overall_score:.0f}/100)")

    return strengths


def identify_weaknesses(
    quote: Quote,
    fundamentals: Fundamentals,
    indicators: TechnicalIndicators,
) -> List[str]:
    weaknesses: List[str] = []

    roe = fundamentals.return_on_equity
    if roe is not None and roe < 0.10:
        weaknesses.append(f"Low return on equity ({roe * 100:.1f}%)")

    de = fundamentals.debt_to_equity
    if de is not None and (de > 1 or de < 0):
        weaknesses.append(f"High leverage (debt-to-equity {de:.2f})")

    growth = fundamentals.revenue_growth
    if growth is not None and growth < 0.05:
        weaknesses.append(f"Weak revenue growth ({growth * 100:.1f}%)")

    if indicators.trend == "bearish":
        weaknesses.append("Price in a bearish trend")

    pe = _pe(quote, fundamentals)
    if pe is not None and pe > 30:
        weaknesses.append(f"Expensive P/E ratio ({pe:.1f})")

    return weaknesses


def build_explanation(symbol: str, total: int, business_quality: int, timing: int) -> str:
    """One or two sentences describing the score band."""
    if total >= 80:
        headline = f"{symbol} is an exceptional opportunity"
    elif total >= 70:
        headline = f"{symbol} is a strong candidate"
    elif total >= 50:
        headline = f"{symbol} is a fair holding with mixed signals"
    else:
        headline = f"{symbol} shows significant concerns"

    if timing >= 30:
        timing_note = "entry timing looks favourable"
    elif timing >= 20:
        timing_note = "entry timing is neutral"
    else:
        timing_note = "entry timing is unfavourable"

    return (
        f"{headline} with a score of {total}/100. "
        f"Business quality is {business_quality}/60 and {timing_note} ({timing}/40)."
    )
