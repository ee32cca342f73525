"""
Technical Analysis Library

Pure, deterministic indicator calculations over a daily ``PriceSeries``:
simple/exponential moving averages, Wilder RSI, MACD, Bollinger bands,
realised volatility, trend classification and support/resistance levels.

Nothing here performs I/O or raises for short series: fewer than
``MIN_BARS`` bars yields the neutral indicator set.
"""

from typing import Sequence

import numpy as np

from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.models.market_data import PriceSeries
from equity_scorer.src.models.technical_indicators import (
    BollingerBands,
    MacdValues,
    TechnicalIndicators,
    Trend,
)
from equity_scorer.src.services.technical_analysis.support_resistance import (
    SupportResistanceAnalyzer,
)


class TechnicalAnalysisLib:
    """Indicator calculations used by the composite score."""

    MIN_BARS = 20

    # Default periods for indicators
    _default_periods = {
        "sma": (20, 50, 150, 200),
        "rsi": 14,
        "macd": (12, 26, 9),
        "bollinger": (20, 2),
    }

    @classmethod
    def calculate_indicators(cls, series: PriceSeries) -> TechnicalIndicators:
        """
        Calculate the full indicator set for a series.

        Args:
            series: Daily bars ordered by date

        Returns:
            TechnicalIndicators; neutral defaults when fewer than MIN_BARS bars
        """
        if len(series) < cls.MIN_BARS:
            logger.debug(
                f"Only {len(series)} bars for {series.symbol}, returning neutral indicators"
            )
            return TechnicalIndicators.neutral()

        closes = np.asarray(series.closes, dtype=float)
        price = float(closes[-1])

        sma20, sma50, sma150, sma200 = (
            cls.sma(closes, period) for period in cls._default_periods["sma"]
        )
        support, resistance = SupportResistanceAnalyzer.find_levels(series)

        return TechnicalIndicators(
            sma20=sma20,
            sma50=sma50,
            sma150=sma150,
            sma200=sma200,
            rsi=cls.rsi(closes, cls._default_periods["rsi"]),
            macd=cls.macd(closes),
            bollinger=cls.bollinger(closes),
            support=support,
            resistance=resistance,
            trend=cls.trend(price, sma20, sma50, sma200),
            volatility=cls.volatility(closes),
        )

    @staticmethod
    def sma(prices: Sequence[float], period: int) -> float:
        """Mean of the last ``period`` prices, 0 until that many exist."""
        if len(prices) < period:
            return 0.0
        return float(np.mean(np.asarray(prices, dtype=float)[-period:]))

    @staticmethod
    def ema_series(prices: Sequence[float], period: int) -> np.ndarray:
        """EMA seeded with the first price, multiplier 2/(period+1)."""
        values = np.asarray(prices, dtype=float)
        if values.size == 0:
            return values
        multiplier = 2.0 / (period + 1)
        ema = np.empty_like(values)
        ema[0] = values[0]
        for i in range(1, values.size):
            ema[i] = values[i] * multiplier + ema[i - 1] * (1 - multiplier)
        return ema

    @classmethod
    def ema(cls, prices: Sequence[float], period: int) -> float:
        series = cls.ema_series(prices, period)
        return float(series[-1]) if series.size else 0.0

    @staticmethod
    def rsi(prices: Sequence[float], period: int = 14) -> float:
        """
        Relative Strength Index with Wilder smoothing.

        The first averages are plain means over the first ``period`` deltas;
        later ones use avg = (avg * (period - 1) + current) / period.
        Returns 50 without enough data and 100 when the average loss is 0.
        """
        values = np.asarray(prices, dtype=float)
        if values.size < period + 1:
            return 50.0

        deltas = np.diff(values)
        gains = np.where(deltas > 0, deltas, 0.0)
        losses = np.where(deltas < 0, -deltas, 0.0)

        avg_gain = float(np.mean(gains[:period]))
        avg_loss = float(np.mean(losses[:period]))
        for i in range(period, deltas.size):
            avg_gain = (avg_gain * (period - 1) + gains[i]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i]) / period

        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return float(100 - 100 / (1 + rs))

    @classmethod
    def macd(cls, prices: Sequence[float]) -> MacdValues:
        """MACD line (EMA12 - EMA26), its EMA9 signal line and the histogram."""
        fast, slow, signal_period = cls._default_periods["macd"]
        if len(prices) == 0:
            return MacdValues()
        macd_line = cls.ema_series(prices, fast) - cls.ema_series(prices, slow)
        signal_line = cls.ema_series(macd_line, signal_period)
        value = float(macd_line[-1])
        signal = float(signal_line[-1])
        return MacdValues(value=value, signal=signal, histogram=value - signal)

    @classmethod
    def bollinger(cls, prices: Sequence[float]) -> BollingerBands:
        """SMA20 +/- 2 population standard deviations of the last 20 closes."""
        period, width = cls._default_periods["bollinger"]
        if len(prices) < period:
            return BollingerBands()
        window = np.asarray(prices, dtype=float)[-period:]
        middle = float(np.mean(window))
        std = float(np.std(window))
        return BollingerBands(
            upper=middle + width * std,
            middle=middle,
            lower=middle - width * std,
        )

    @staticmethod
    def volatility(prices: Sequence[float]) -> float:
        """Population standard deviation of daily simple returns."""
        values = np.asarray(prices, dtype=float)
        if values.size < 2:
            return 0.0
        previous = values[:-1]
        valid = previous > 0
        if not valid.any():
            return 0.0
        returns = (values[1:][valid] - previous[valid]) / previous[valid]
        return float(np.std(returns))

    @staticmethod
    def trend(price: float, sma20: float, sma50: float, sma200: float) -> Trend:
        """
        Classify the trend from price against its moving averages.

        With SMA200: bullish when price > SMA50 > SMA200, bearish when
        price < SMA50 < SMA200, otherwise the side of SMA200 the price is on.
        Without SMA200 the side of SMA50 (or SMA20) decides.
        """
        if sma200 > 0:
            if price > sma50 > sma200:
                return "bullish"
            if price < sma50 < sma200:
                return "bearish"
            return "bullish" if price > sma200 else "bearish"

        reference = sma50 if sma50 > 0 else sma20
        if reference <= 0:
            return "neutral"
        return "bullish" if price > reference else "bearish"
