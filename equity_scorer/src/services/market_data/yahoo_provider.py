"""
Yahoo Finance provider backed by yfinance.

yfinance is synchronous, so every call runs in a worker thread. Raw
``Ticker.info`` fields are normalised here: missing or non-finite values
become None and ``debtToEquity`` (reported as a percentage) becomes a ratio.
"""

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import pandas as pd
import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from equity_scorer.src.common.errors import (
    IncompleteDataError,
    MarketDataError,
    RateLimitedError,
    TransientIOError,
)
from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.models.market_data import (
    Fundamentals,
    MarketSnapshot,
    PricePoint,
    PriceSeries,
    Quote,
)
from equity_scorer.src.services.market_data.base_provider import (
    MarketDataProvider,
    gather_or_cancel,
    period_to_days,
)

_RATE_LIMIT_MARKERS = ("Too Many Requests", "429", "Rate limited")


def _num(value: Any) -> Optional[float]:
    """Coerce a Yahoo field to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class YahooFinanceProvider(MarketDataProvider):
    """Quotes, fundamentals and history from Yahoo Finance."""

    name = "yahoo"

    def __init__(self, ticker_factory: Callable[[str], Any] = yf.Ticker):
        self._ticker_factory = ticker_factory

    def is_configured(self) -> bool:
        # No credentials needed
        return True

    def _translate_error(self, symbol: str, error: Exception) -> MarketDataError:
        if isinstance(error, MarketDataError):
            return error
        message = str(error)
        if isinstance(error, YFRateLimitError) or any(m in message for m in _RATE_LIMIT_MARKERS):
            return RateLimitedError(
                f"Yahoo Finance rate limited {symbol}: {message}", symbol=symbol, source=self.name
            )
        return TransientIOError(
            f"Yahoo Finance request failed for {symbol}: {type(error).__name__}: {message}",
            symbol=symbol,
            source=self.name,
        )

    async def _load_info(self, symbol: str) -> Dict[str, Any]:
        def _fetch() -> Dict[str, Any]:
            return self._ticker_factory(symbol).info or {}

        try:
            info = await asyncio.to_thread(_fetch)
        except Exception as e:
            raise self._translate_error(symbol, e) from e

        if not info:
            raise IncompleteDataError(
                f"Yahoo Finance returned no data for {symbol}", symbol=symbol, source=self.name
            )
        return info

    async def _load_history_frame(self, symbol: str, period: str) -> pd.DataFrame:
        period_to_days(period)  # rejects unsupported periods

        def _fetch() -> pd.DataFrame:
            return self._ticker_factory(symbol).history(
                period=period, interval="1d", auto_adjust=False
            )

        try:
            return await asyncio.to_thread(_fetch)
        except Exception as e:
            raise self._translate_error(symbol, e) from e

    def _quote_from_info(self, symbol: str, info: Dict[str, Any]) -> Quote:
        price = _num(info.get("regularMarketPrice")) or _num(info.get("currentPrice"))
        if not price:
            raise IncompleteDataError(
                f"Yahoo Finance quote for {symbol} has no price", symbol=symbol, source=self.name
            )

        earnings_date = None
        earnings_ts = _num(info.get("earningsTimestamp"))
        if earnings_ts:
            earnings_date = datetime.fromtimestamp(earnings_ts, tz=timezone.utc)

        return Quote(
            symbol=symbol,
            name=info.get("longName") or info.get("shortName"),
            price=price,
            change=_num(info.get("regularMarketChange")) or 0.0,
            change_percent=_num(info.get("regularMarketChangePercent")) or 0.0,
            day_high=_num(info.get("dayHigh") or info.get("regularMarketDayHigh")),
            day_low=_num(info.get("dayLow") or info.get("regularMarketDayLow")),
            week52_high=_num(info.get("fiftyTwoWeekHigh")),
            week52_low=_num(info.get("fiftyTwoWeekLow")),
            volume=_num(info.get("regularMarketVolume") or info.get("volume")),
            market_cap=_num(info.get("marketCap")),
            pe_ratio=_num(info.get("trailingPE")),
            eps=_num(info.get("trailingEps")),
            dividend_yield=_num(info.get("dividendYield")),
            previous_close=_num(info.get("regularMarketPreviousClose") or info.get("previousClose")),
            sector=info.get("sector"),
            industry=info.get("industry"),
            earnings_date=earnings_date,
            is_earnings_date_estimate=info.get("isEarningsDateEstimate"),
            source=self.name,
        )

    def _fundamentals_from_info(self, symbol: str, info: Dict[str, Any]) -> Fundamentals:
        debt_to_equity = _num(info.get("debtToEquity"))
        if debt_to_equity is not None:
            # Yahoo reports D/E as a percentage (150.0 == 1.5x)
            debt_to_equity = debt_to_equity / 100

        return Fundamentals(
            symbol=symbol,
            source=self.name,
            is_estimated=False,
            gross_margin=_num(info.get("grossMargins")),
            operating_margin=_num(info.get("operatingMargins")),
            profit_margin=_num(info.get("profitMargins")),
            return_on_equity=_num(info.get("returnOnEquity")),
            return_on_assets=_num(info.get("returnOnAssets")),
            debt_to_equity=debt_to_equity,
            current_ratio=_num(info.get("currentRatio")),
            quick_ratio=_num(info.get("quickRatio")),
            price_to_book=_num(info.get("priceToBook")),
            price_to_sales=_num(info.get("priceToSalesTrailing12Months")),
            peg_ratio=_num(info.get("pegRatio")) or _num(info.get("trailingPegRatio")),
            forward_pe=_num(info.get("forwardPE")),
            revenue_growth=_num(info.get("revenueGrowth")),
            earnings_growth=_num(info.get("earningsGrowth")),
            free_cash_flow=_num(info.get("freeCashflow")),
            operating_cash_flow=_num(info.get("operatingCashflow")),
            total_cash=_num(info.get("totalCash")),
            total_debt=_num(info.get("totalDebt")),
            revenue=_num(info.get("totalRevenue")),
            net_income=_num(info.get("netIncomeToCommon")),
        )

    def _series_from_frame(self, symbol: str, frame: pd.DataFrame) -> PriceSeries:
        if frame is None or frame.empty:
            raise IncompleteDataError(
                f"Yahoo Finance returned no daily bars for {symbol}", symbol=symbol, source=self.name
            )

        frame = frame.dropna(subset=["Open", "High", "Low", "Close"])
        points = [
            PricePoint(
                date=index.date(),
                open=float(row["Open"]),
                high=float(row["High"]),
                low=float(row["Low"]),
                close=float(row["Close"]),
                volume=float(row.get("Volume", 0) or 0),
            )
            for index, row in frame.iterrows()
        ]
        if not points:
            raise IncompleteDataError(
                f"Yahoo Finance bars for {symbol} are all empty", symbol=symbol, source=self.name
            )
        return PriceSeries.from_points(symbol, self.name, points)

    async def get_quote(self, symbol: str) -> Quote:
        info = await self._load_info(symbol)
        return self._quote_from_info(symbol, info)

    async def get_fundamentals(self, symbol: str) -> Fundamentals:
        info = await self._load_info(symbol)
        return self._fundamentals_from_info(symbol, info)

    async def get_history(self, symbol: str, period: str) -> PriceSeries:
        frame = await self._load_history_frame(symbol, period)
        return self._series_from_frame(symbol, frame)

    async def fetch_snapshot(self, symbol: str, period: str) -> MarketSnapshot:
        # One info call feeds both the quote and the fundamentals
        info, frame = await gather_or_cancel(
            self._load_info(symbol),
            self._load_history_frame(symbol, period),
        )
        quote = self._quote_from_info(symbol, info)
        fundamentals = self._fundamentals_from_info(symbol, info)
        history = self._series_from_frame(symbol, frame)

        logger.debug(
            f"Yahoo Finance snapshot for {symbol}: price={quote.price}, bars={len(history)}"
        )
        return MarketSnapshot(
            symbol=symbol,
            source=self.name,
            quote=quote,
            fundamentals=fundamentals,
            history=history,
        )
