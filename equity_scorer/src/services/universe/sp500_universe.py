"""
S&P 500 symbol universe.

The constituents list is read from the public ``datasets/s-and-p-500-companies``
CSV, cached for two days and backed up to DynamoDB so a crawl can still run
when GitHub is unreachable.
"""

import asyncio
import io
from typing import List, Optional

import aiohttp
import pandas as pd

from equity_scorer.src.common.errors import (
    IncompleteDataError,
    PersistenceError,
    ProviderUnavailableError,
    TransientIOError,
)
from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.config import constants
from equity_scorer.src.db.universe_repository import UniverseRepository
from equity_scorer.src.services.cache.market_data_cache import CacheAsideLayer


class SP500UniverseService:
    """Provides the list of symbols to score."""

    timeout_seconds = 15

    def __init__(
        self,
        cache: CacheAsideLayer,
        backup: Optional[UniverseRepository] = None,
        url: str = constants.SP500_CONSTITUENTS_URL,
    ):
        self.cache = cache
        self.backup = backup
        self.url = url

    async def get_symbols(self, force_refresh: bool = False) -> List[str]:
        """
        Current constituents: cache, then the live CSV, then the backup.

        Raises:
            ProviderUnavailableError: no source produced a list
        """
        if not force_refresh:
            cached = await self.cache.get_universe()
            if cached:
                logger.debug(f"Using cached S&P 500 list ({len(cached)} symbols)")
                return cached

        try:
            symbols = await self._fetch_live()
        except (TransientIOError, IncompleteDataError) as e:
            logger.warning(f"⚠️ Live S&P 500 list unavailable, trying backup: {e}")
            return await self._load_backup()

        logger.info(f"📥 Fetched {len(symbols)} S&P 500 constituents")
        await self.cache.set_universe(symbols)
        await self._save_backup(symbols)
        return symbols

    async def _fetch_csv(self) -> str:
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.url) as response:
                    if response.status != 200:
                        raise TransientIOError(
                            f"Constituents download failed: HTTP {response.status}"
                        )
                    return await response.text()
        except asyncio.TimeoutError as e:
            raise TransientIOError("Constituents download timed out") from e
        except aiohttp.ClientError as e:
            raise TransientIOError(f"Constituents download failed: {e}") from e

    @staticmethod
    def parse_constituents(csv_text: str) -> List[str]:
        """Symbols from the constituents CSV, upper-cased, de-duplicated, in file order."""
        try:
            frame = pd.read_csv(io.StringIO(csv_text))
        except ValueError as e:
            raise IncompleteDataError(f"Constituents CSV is unreadable: {e}") from e

        if "Symbol" not in frame.columns:
            raise IncompleteDataError(
                f"Constituents CSV has no Symbol column (columns: {list(frame.columns)})"
            )

        symbols = (
            frame["Symbol"].dropna().astype(str).str.strip().str.upper()
        )
        unique = list(dict.fromkeys(s for s in symbols if s))
        if not unique:
            raise IncompleteDataError("Constituents CSV contains no symbols")
        return unique

    async def _fetch_live(self) -> List[str]:
        return self.parse_constituents(await self._fetch_csv())

    async def _save_backup(self, symbols: List[str]) -> None:
        if self.backup is None:
            return
        try:
            await self.backup.save_symbols(symbols)
        except PersistenceError as e:
            logger.warning(f"Could not back up S&P 500 list: {e}")

    async def _load_backup(self) -> List[str]:
        symbols: List[str] = []
        if self.backup is not None:
            try:
                symbols = await self.backup.load_symbols()
            except PersistenceError as e:
                logger.error(f"❌ S&P 500 backup unreadable: {e}")

        if not symbols:
            raise ProviderUnavailableError("No S&P 500 constituents available from any source")

        logger.info(f"Using backed-up S&P 500 list ({len(symbols)} symbols)")
        return symbols
