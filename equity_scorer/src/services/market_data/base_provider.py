"""
Market data provider interface.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, List

from equity_scorer.src.common.errors import IncompleteDataError
from equity_scorer.src.models.market_data import (
    Fundamentals,
    MarketSnapshot,
    PriceSeries,
    Quote,
)


class MarketDataProvider(ABC):
    """
    A source of quotes, fundamentals and daily history.

    Implementations raise the types in ``common.errors``; they never return
    partially filled raw payloads.
    """

    name: str = "base"

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider has what it needs (credentials etc.) to be tried."""

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        ...

    @abstractmethod
    async def get_fundamentals(self, symbol: str) -> Fundamentals:
        ...

    @abstractmethod
    async def get_history(self, symbol: str, period: str) -> PriceSeries:
        ...

    async def fetch_snapshot(self, symbol: str, period: str) -> MarketSnapshot:
        """Fetch all three artifacts concurrently from this provider."""
        quote, fundamentals, history = await gather_or_cancel(
            self.get_quote(symbol),
            self.get_fundamentals(symbol),
            self.get_history(symbol, period),
        )
        if quote.price <= 0:
            raise IncompleteDataError(
                f"{self.name} returned a non-positive price for {symbol}",
                symbol=symbol,
                source=self.name,
            )
        return MarketSnapshot(
            symbol=symbol,
            source=self.name,
            quote=quote,
            fundamentals=fundamentals,
            history=history,
        )


_PERIOD_DAYS = {
    "1mo": 31,
    "3mo": 92,
    "6mo": 183,
    "1y": 366,
    "2y": 731,
    "5y": 1827,
}


def period_to_days(period: str) -> int:
    """Translate a yfinance-style period ("6mo", "1y") into calendar days."""
    try:
        return _PERIOD_DAYS[period]
    except KeyError:
        raise ValueError(
            f"Unsupported history period '{period}', expected one of {sorted(_PERIOD_DAYS)}"
        ) from None


async def gather_or_cancel(*aws: Awaitable[Any]) -> List[Any]:
    """
    Like ``asyncio.gather`` but the first failure cancels the siblings, so
    no request keeps running against a provider that already failed.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
