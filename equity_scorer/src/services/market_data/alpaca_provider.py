"""
Alpaca market data provider.

Quotes and daily bars come from the Alpaca data API. Alpaca has no
fundamentals endpoint, so ``get_fundamentals`` returns industry-typical
placeholders tagged ``is_estimated=True``.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import aiohttp

from equity_scorer.src.common.errors import (
    IncompleteDataError,
    ProviderUnavailableError,
    RateLimitedError,
    TransientIOError,
)
from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.config import constants
from equity_scorer.src.models.market_data import (
    Fundamentals,
    MarketSnapshot,
    PricePoint,
    PriceSeries,
    Quote,
)
from equity_scorer.src.services.market_data.base_provider import (
    MarketDataProvider,
    period_to_days,
)

# Placeholders used in place of reported fundamentals
DEFAULT_FUNDAMENTALS: Dict[str, float] = {
    "gross_margin": 0.40,
    "operating_margin": 0.20,
    "profit_margin": 0.15,
    "return_on_equity": 0.15,
    "return_on_assets": 0.08,
    "price_to_book": 3.0,
    "price_to_sales": 5.0,
    "peg_ratio": 1.5,
    "forward_pe": 20.0,
    "current_ratio": 1.5,
    "quick_ratio": 1.2,
    "debt_to_equity": 0.5,
    "total_cash": 1e10,
    "total_debt": 5e9,
    "free_cash_flow": 1e9,
    "revenue_growth": 0.10,
    "earnings_growth": 0.12,
    "revenue": 1e10,
    "net_income": 2e9,
    "operating_cash_flow": 1.5e9,
}


class AlpacaDataProvider(MarketDataProvider):
    """Market data from the Alpaca v2 stocks API."""

    name = "alpaca"

    _max_attempts = 2
    _server_error_delay = 0.5

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        feed: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = constants.ALPACA_API_KEY if api_key is None else api_key
        self.api_secret = constants.ALPACA_API_SECRET if api_secret is None else api_secret
        self.base_url = (base_url or constants.ALPACA_DATA_URL).rstrip("/")
        self.feed = feed or constants.ALPACA_FEED
        self.timeout_seconds = timeout_seconds or constants.PROVIDER_TIMEOUT_SECONDS

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _headers(self) -> Dict[str, str]:
        # Environment variables use underscores, Alpaca headers require hyphens
        return {
            "accept": "application/json",
            "APCA-API-KEY-ID": self.api_key or "",
            "APCA-API-SECRET-KEY": self.api_secret or "",
        }

    async def _get_json(self, symbol: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET a JSON document, translating HTTP failures into pipeline errors.

        5xx responses and timeouts are retried once here; 429 is raised
        immediately so the crawler can back off for the whole symbol.
        """
        if not self.is_configured():
            raise ProviderUnavailableError(
                "Alpaca credentials are not configured", symbol=symbol, source=self.name
            )

        url = f"{self.base_url}{path}"
        last_error: Optional[Exception] = None

        for attempt in range(self._max_attempts):
            try:
                timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.get(url, headers=self._headers(), params=params) as response:
                        if response.status == 200:
                            return await response.json()

                        error_text = await response.text()
                        logger.warning(
                            f"Alpaca API error for {symbol}: HTTP {response.status} - {error_text[:200]}"
                        )

                        if response.status == 429:
                            raise RateLimitedError(
                                f"Alpaca rate limited {symbol}: Too Many Requests",
                                symbol=symbol,
                                source=self.name,
                            )
                        if response.status in (401, 403):
                            raise ProviderUnavailableError(
                                f"Alpaca rejected credentials (HTTP {response.status})",
                                symbol=symbol,
                                source=self.name,
                            )
                        if response.status == 404 or response.status == 422:
                            raise IncompleteDataError(
                                f"Alpaca has no data for {symbol} (HTTP {response.status})",
                                symbol=symbol,
                                source=self.name,
                            )
                        last_error = TransientIOError(
                            f"Alpaca HTTP {response.status} for {symbol}",
                            symbol=symbol,
                            source=self.name,
                        )
                        if response.status < 500:
                            raise last_error

            except asyncio.TimeoutError:
                logger.warning(
                    f"Alpaca request timeout for {symbol} (attempt {attempt + 1}/{self._max_attempts})"
                )
                last_error = TransientIOError(
                    f"Alpaca request timed out for {symbol}", symbol=symbol, source=self.name
                )
            except aiohttp.ClientError as e:
                logger.warning(
                    f"Alpaca client error for {symbol}: {e} (attempt {attempt + 1}/{self._max_attempts})"
                )
                last_error = TransientIOError(
                    f"Alpaca client error for {symbol}: {e}", symbol=symbol, source=self.name
                )

            if attempt < self._max_attempts - 1:
                await asyncio.sleep(self._server_error_delay)

        raise last_error

    async def get_quote(self, symbol: str) -> Quote:
        data = await self._get_json(
            symbol, f"/v2/stocks/{symbol}/snapshot", params={"feed": self.feed}
        )

        latest_trade = data.get("latestTrade") or {}
        minute_bar = data.get("minuteBar") or {}
        daily_bar = data.get("dailyBar") or {}
        prev_daily_bar = data.get("prevDailyBar") or {}

        price = latest_trade.get("p") or minute_bar.get("c") or daily_bar.get("c")
        if not price:
            raise IncompleteDataError(
                f"Alpaca snapshot for {symbol} has no price", symbol=symbol, source=self.name
            )

        previous_close = prev_daily_bar.get("c")
        change = price - previous_close if previous_close else 0.0
        change_percent = (change / previous_close * 100) if previous_close else 0.0

        return Quote(
            symbol=symbol,
            price=float(price),
            change=float(change),
            change_percent=float(change_percent),
            day_high=daily_bar.get("h"),
            day_low=daily_bar.get("l"),
            volume=daily_bar.get("v"),
            previous_close=previous_close,
            source=self.name,
        )

    async def get_fundamentals(self, symbol: str) -> Fundamentals:
        if not self.is_configured():
            raise ProviderUnavailableError(
                "Alpaca credentials are not configured", symbol=symbol, source=self.name
            )
        logger.debug(f"Alpaca has no fundamentals endpoint, using estimated defaults for {symbol}")
        return Fundamentals(
            symbol=symbol, source=self.name, is_estimated=True, **DEFAULT_FUNDAMENTALS
        )

    async def get_history(self, symbol: str, period: str) -> PriceSeries:
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=period_to_days(period))
        params: Dict[str, Any] = {
            "timeframe": "1Day",
            "start": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "end": end.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "adjustment": "split",
            "feed": self.feed,
            "limit": 10000,
        }

        points: List[PricePoint] = []
        while True:
            data = await self._get_json(symbol, f"/v2/stocks/{symbol}/bars", params=params)
            for bar in data.get("bars") or []:
                point = self._bar_to_point(bar)
                if point is not None:
                    points.append(point)
            next_page_token = data.get("next_page_token")
            if not next_page_token:
                break
            params["page_token"] = next_page_token

        if not points:
            raise IncompleteDataError(
                f"Alpaca returned no daily bars for {symbol}", symbol=symbol, source=self.name
            )
        return PriceSeries.from_points(symbol, self.name, points)

    @staticmethod
    def _bar_to_point(bar: Dict[str, Any]) -> Optional[PricePoint]:
        try:
            bar_date = date.fromisoformat(str(bar["t"])[:10])
            return PricePoint(
                date=bar_date,
                open=float(bar["o"]),
                high=float(bar["h"]),
                low=float(bar["l"]),
                close=float(bar["c"]),
                volume=float(bar.get("v") or 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed Alpaca bar {bar!r}: {e}")
            return None

    async def fetch_snapshot(self, symbol: str, period: str) -> MarketSnapshot:
        snapshot = await super().fetch_snapshot(symbol, period)

        # The snapshot endpoint has no 52-week range; derive it from the bars
        # when the window covers a year
        history = snapshot.history
        if history.points and period_to_days(period) >= 365:
            trailing = [p for p in history.points if p.date >= history.points[-1].date - timedelta(days=365)]
            quote = snapshot.quote.model_copy(
                update={
                    "week52_high": max(p.high for p in trailing),
                    "week52_low": min(p.low for p in trailing),
                }
            )
            snapshot = snapshot.model_copy(update={"quote": quote})
        return snapshot
