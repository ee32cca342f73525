"""
Data Source Selector

Tries market data providers in a configured order and returns the first
complete snapshot. A snapshot always comes from a single provider; fields
are never merged across providers.
"""

from typing import Dict, List, Optional, Sequence

from equity_scorer.src.common.errors import (
    IncompleteDataError,
    MarketDataError,
    ProviderUnavailableError,
    RateLimitedError,
    TransientIOError,
)
from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.config import constants
from equity_scorer.src.models.market_data import MarketSnapshot
from equity_scorer.src.services.market_data.alpaca_provider import AlpacaDataProvider
from equity_scorer.src.services.market_data.base_provider import MarketDataProvider
from equity_scorer.src.services.market_data.yahoo_provider import YahooFinanceProvider


class DataSourceSelector:
    """Ordered fallback over market data providers."""

    def __init__(self, providers: Sequence[MarketDataProvider]):
        if not providers:
            raise ValueError("DataSourceSelector needs at least one provider")
        self.providers: List[MarketDataProvider] = list(providers)

    @classmethod
    def from_config(cls, order: Optional[Sequence[str]] = None) -> "DataSourceSelector":
        """Build the selector from provider names, e.g. ["alpaca", "yahoo"]."""
        registry: Dict[str, type] = {
            AlpacaDataProvider.name: AlpacaDataProvider,
            YahooFinanceProvider.name: YahooFinanceProvider,
        }
        names = list(order or constants.DATA_SOURCE_ORDER)
        unknown = [name for name in names if name not in registry]
        if unknown:
            raise ValueError(f"Unknown data sources {unknown}, expected names from {sorted(registry)}")
        return cls([registry[name]() for name in names])

    @property
    def candidate_names(self) -> List[str]:
        return [provider.name for provider in self.providers]

    async def fetch_snapshot(self, symbol: str, period: str) -> MarketSnapshot:
        """
        Fetch quote, fundamentals and history for ``symbol``.

        Unconfigured providers are skipped. Any error from a provider moves on
        to the next one; errors outside ``common.errors`` (a malformed payload
        tripping a conversion, say) count as ``TransientIOError``.

        Raises:
            RateLimitedError: every provider failed and at least one was throttled
            TransientIOError: otherwise, when at least one failure is worth retrying
            IncompleteDataError: every provider failed and at least one had incomplete data
            ProviderUnavailableError: no provider was usable
            MarketDataError: the last provider error otherwise
        """
        failures: List[MarketDataError] = []

        for provider in self.providers:
            if not provider.is_configured():
                logger.debug(f"Skipping {provider.name} for {symbol}: not configured")
                failures.append(
                    ProviderUnavailableError(
                        f"{provider.name} is not configured", symbol=symbol, source=provider.name
                    )
                )
                continue

            try:
                snapshot = await provider.fetch_snapshot(symbol, period)
            except MarketDataError as e:
                logger.warning(
                    f"⚠️ {provider.name} failed for {symbol} ({type(e).__name__}): {e}"
                )
                failures.append(e)
                continue
            except Exception as e:
                logger.warning(
                    f"⚠️ {provider.name} returned unusable data for {symbol} ({type(e).__name__}): {e}"
                )
                failures.append(
                    TransientIOError(
                        f"{type(e).__name__}: {e}", symbol=symbol, source=provider.name
                    )
                )
                continue

            if failures:
                logger.info(
                    f"Using fallback source {provider.name} for {symbol} after "
                    f"{len(failures)} failed candidate(s)"
                )
            return snapshot

        raise self._combine_failures(symbol, failures)

    @staticmethod
    def _combine_failures(symbol: str, failures: List[MarketDataError]) -> MarketDataError:
        summary = "; ".join(f"{e.source or '?'}: {e}" for e in failures)
        message = f"All data sources failed for {symbol}: {summary}"

        if any(isinstance(e, RateLimitedError) for e in failures):
            return RateLimitedError(message, symbol=symbol)
        if any(isinstance(e, TransientIOError) for e in failures):
            return TransientIOError(message, symbol=symbol)
        if any(isinstance(e, IncompleteDataError) for e in failures):
            return IncompleteDataError(message, symbol=symbol)
        if all(isinstance(e, ProviderUnavailableError) for e in failures):
            return ProviderUnavailableError(message, symbol=symbol)
        last = failures[-1]
        return type(last)(message, symbol=symbol, source=last.source)
