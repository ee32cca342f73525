"""
Tests for the default MarketDataProvider snapshot fetch
"""

import asyncio

import pytest

from conftest import build_fundamentals, build_quote, build_series
from equity_scorer.src.common.errors import IncompleteDataError, RateLimitedError
from equity_scorer.src.services.market_data.base_provider import (
    MarketDataProvider,
    gather_or_cancel,
    period_to_days,
)


class PagingProvider(MarketDataProvider):
    """Quote fails (or not) quickly while history pages slowly."""

    name = "paging"

    def __init__(self, quote_error=None, price=100.0, pages=3):
        self.quote_error = quote_error
        self.price = price
        self.pages = pages
        self.history_requests = 0
        self.history_cancelled = False

    def is_configured(self):
        return True

    async def get_quote(self, symbol):
        await asyncio.sleep(0)
        if self.quote_error is not None:
            raise self.quote_error
        return build_quote(symbol, price=self.price, source=self.name)

    async def get_fundamentals(self, symbol):
        return build_fundamentals(symbol, source=self.name)

    async def get_history(self, symbol, period):
        try:
            for _ in range(self.pages):
                await asyncio.sleep(0.01)
                self.history_requests += 1
        except asyncio.CancelledError:
            self.history_cancelled = True
            raise
        return build_series([100.0] * 30, symbol=symbol, source=self.name)


@pytest.mark.asyncio
async def test_snapshot_combines_all_artifacts():
    provider = PagingProvider()

    snapshot = await provider.fetch_snapshot("AAPL", "1y")

    assert snapshot.source == "paging"
    assert len(snapshot.history) == 30
    assert provider.history_requests == 3


@pytest.mark.asyncio
async def test_failed_quote_stops_history_paging():
    provider = PagingProvider(quote_error=RateLimitedError("429", symbol="AAPL", source="paging"))

    with pytest.raises(RateLimitedError):
        await provider.fetch_snapshot("AAPL", "1y")
    await asyncio.sleep(0.05)

    assert provider.history_cancelled
    assert provider.history_requests == 0


@pytest.mark.asyncio
async def test_non_positive_price_is_incomplete():
    provider = PagingProvider(price=0.0, pages=1)

    with pytest.raises(IncompleteDataError):
        await provider.fetch_snapshot("AAPL", "1y")


@pytest.mark.asyncio
async def test_gather_or_cancel_returns_results_in_order():
    async def value(v, delay):
        await asyncio.sleep(delay)
        return v

    assert await gather_or_cancel(value(1, 0.02), value(2, 0.0)) == [1, 2]


@pytest.mark.asyncio
async def test_gather_or_cancel_cancels_siblings_on_failure():
    finished = []

    async def fail():
        raise ValueError("bad payload")

    async def slow():
        await asyncio.sleep(1)
        finished.append(True)

    sibling = asyncio.ensure_future(slow())
    with pytest.raises(ValueError):
        await gather_or_cancel(fail(), sibling)

    assert sibling.cancelled()
    assert finished == []


@pytest.mark.parametrize("period, days", [("1mo", 31), ("1y", 366), ("5y", 1827)])
def test_period_to_days(period, days):
    assert period_to_days(period) == days


def test_unknown_period_is_rejected():
    with pytest.raises(ValueError):
        period_to_days("10y")
