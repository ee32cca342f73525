"""
Market data value types.

Every provider converts its raw payload into these models before returning,
so nothing downstream handles vendor-specific dictionaries.
"""

import datetime as dt
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Quote(BaseModel):
    """Latest quote snapshot for a symbol."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: Optional[str] = None
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    day_high: Optional[float] = None
    day_low: Optional[float] = None
    week52_high: Optional[float] = None
    week52_low: Optional[float] = None
    volume: Optional[float] = None
    market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None
    eps: Optional[float] = None
    dividend_yield: Optional[float] = None
    previous_close: Optional[float] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    earnings_date: Optional[datetime] = None
    is_earnings_date_estimate: Optional[bool] = None
    source: str
    updated_at: datetime = Field(default_factory=_utcnow)


class Fundamentals(BaseModel):
    """
    Fundamental ratios for a symbol.

    All metrics are nullable: a missing value means the provider did not
    report it and scores 0 points. ``debt_to_equity`` is a plain ratio
    (0.5 means 50%). ``is_estimated`` marks industry-typical placeholders
    rather than reported figures.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    source: str
    is_estimated: bool = False

    gross_margin: Optional[float] = None
    operating_margin: Optional[float] = None
    profit_margin: Optional[float] = None
    return_on_equity: Optional[float] = None
    return_on_assets: Optional[float] = None
    debt_to_equity: Optional[float] = None
    current_ratio: Optional[float] = None
    quick_ratio: Optional[float] = None
    price_to_book: Optional[float] = None
    price_to_sales: Optional[float] = None
    peg_ratio: Optional[float] = None
    forward_pe: Optional[float] = None
    revenue_growth: Optional[float] = None
    earnings_growth: Optional[float] = None
    free_cash_flow: Optional[float] = None
    operating_cash_flow: Optional[float] = None
    total_cash: Optional[float] = None
    total_debt: Optional[float] = None
    revenue: Optional[float] = None
    net_income: Optional[float] = None
    updated_at: datetime = Field(default_factory=_utcnow)


class PricePoint(BaseModel):
    """One daily OHLCV bar."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class PriceSeries(BaseModel):
    """Daily bars ordered by strictly increasing date."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    source: str
    points: List[PricePoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_order(self) -> "PriceSeries":
        for previous, current in zip(self.points, self.points[1:]):
            if current.date <= previous.date:
                raise ValueError(
                    f"PriceSeries for {self.symbol} is not strictly increasing: "
                    f"{previous.date} followed by {current.date}"
                )
        return self

    @classmethod
    def from_points(cls, symbol: str, source: str, points: Iterable[PricePoint]) -> "PriceSeries":
        """
        Build a series from unordered bars.

        Bars are sorted by date; when a date repeats, the last bar wins.
        """
        by_date: Dict[dt.date, PricePoint] = {}
        for point in points:
            by_date[point.date] = point
        ordered = [by_date[d] for d in sorted(by_date)]
        return cls(symbol=symbol, source=source, points=ordered)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def closes(self) -> List[float]:
        return [p.close for p in self.points]

    @property
    def highs(self) -> List[float]:
        return [p.high for p in self.points]

    @property
    def lows(self) -> List[float]:
        return [p.low for p in self.points]

    @property
    def volumes(self) -> List[float]:
        return [p.volume for p in self.points]


class MarketSnapshot(BaseModel):
    """Quote, fundamentals and history for one symbol, all from one provider."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    source: str
    quote: Quote
    fundamentals: Fundamentals
    history: PriceSeries

    @model_validator(mode="after")
    def _check_single_source(self) -> "MarketSnapshot":
        sources = {self.quote.source, self.fundamentals.source, self.history.source}
        if sources != {self.source}:
            raise ValueError(
                f"Snapshot for {self.symbol} mixes providers: {sorted(sources)}"
            )
        return self

    def to_json(self) -> str:
        return self.model_dump_json()
