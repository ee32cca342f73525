"""
Shared fakes and factories for the scoring pipeline tests.
No test touches the network or AWS.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import pytest

from equity_scorer.src.common.errors import MarketDataError
from equity_scorer.src.models.market_data import (
    Fundamentals,
    MarketSnapshot,
    PricePoint,
    PriceSeries,
    Quote,
)
from equity_scorer.src.models.score_models import Score
from equity_scorer.src.services.market_data.base_provider import MarketDataProvider


def build_series(
    closes: Sequence[float],
    symbol: str = "TEST",
    source: str = "fake",
    start: date = date(2024, 1, 1),
) -> PriceSeries:
    points = [
        PricePoint(
            date=start + timedelta(days=i),
            open=close,
            high=close * 1.01,
            low=close * 0.99,
            close=close,
            volume=1_000_000,
        )
        for i, close in enumerate(closes)
    ]
    return PriceSeries(symbol=symbol, source=source, points=points)


def build_quote(symbol: str = "TEST", price: float = 100.0, source: str = "fake", **fields) -> Quote:
    return Quote(symbol=symbol, price=price, source=source, **fields)


def build_fundamentals(symbol: str = "TEST", source: str = "fake", **fields) -> Fundamentals:
    return Fundamentals(symbol=symbol, source=source, **fields)


def build_snapshot(symbol: str = "TEST", source: str = "fake", closes: Optional[Sequence[float]] = None) -> MarketSnapshot:
    closes = list(closes) if closes is not None else [100 + i * 0.1 for i in range(60)]
    return MarketSnapshot(
        symbol=symbol,
        source=source,
        quote=build_quote(symbol, price=closes[-1], source=source, pe_ratio=18.0),
        fundamentals=build_fundamentals(
            symbol, source, return_on_equity=0.18, debt_to_equity=0.4, revenue_growth=0.12
        ),
        history=build_series(closes, symbol=symbol, source=source),
    )


class FakeProvider(MarketDataProvider):
    """Provider whose outcome per call is scripted."""

    def __init__(self, name: str = "fake", configured: bool = True, outcomes: Optional[List] = None):
        self.name = name
        self.configured = configured
        self.outcomes = list(outcomes or [])
        self.calls: List[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def get_quote(self, symbol):  # pragma: no cover - fetch_snapshot is overridden
        raise NotImplementedError

    async def get_fundamentals(self, symbol):  # pragma: no cover
        raise NotImplementedError

    async def get_history(self, symbol, period):  # pragma: no cover
        raise NotImplementedError

    async def fetch_snapshot(self, symbol: str, period: str) -> MarketSnapshot:
        self.calls.append(symbol)
        outcome = self.outcomes.pop(0) if self.outcomes else build_snapshot(symbol, self.name)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeScoreRepository:
    """In-memory stand-in for ScoreRepository."""

    def __init__(self, stale: Optional[List[str]] = None, save_errors: Optional[List[Exception]] = None):
        self.stale = stale
        self.save_errors = list(save_errors or [])
        self.scores: Dict[str, Score] = {}
        self.stale_queries: List[List[str]] = []

    async def save_score(self, score: Score) -> None:
        if self.save_errors:
            raise self.save_errors.pop(0)
        self.scores[score.symbol] = score

    async def get_score(self, symbol: str) -> Optional[Score]:
        return self.scores.get(symbol)

    async def get_stale_symbols(self, symbols, max_age_hours=24, now=None) -> List[str]:
        self.stale_queries.append(list(symbols))
        if self.stale is not None:
            return list(self.stale)
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
        return [s for s in symbols if s not in self.scores or self.scores[s].calculated_at < cutoff]

    async def delete_old_scores(self, older_than_days: int = 30) -> int:
        return 0


class FakeUniverse:
    def __init__(self, symbols: List[str]):
        self.symbols = symbols
        self.calls = 0

    async def get_symbols(self, force_refresh: bool = False) -> List[str]:
        self.calls += 1
        return list(self.symbols)


class BrokenStore:
    """Cache store whose every operation fails."""

    async def get(self, key):
        raise ConnectionError("cache down")

    async def set(self, key, value, ttl=None):
        raise ConnectionError("cache down")

    async def delete(self, key):
        raise ConnectionError("cache down")


class RecordingSleep:
    """Replaces asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


def provider_error(cls, message: str = "boom", source: str = "fake") -> MarketDataError:
    return cls(message, symbol="TEST", source=source)
