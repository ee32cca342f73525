"""
Cache-aside layer in front of providers, scores, moat ratings and the
symbol universe.

Values are stored as JSON strings under ``{artifact}:{symbol}[:{period}]``
keys. The cache is an optimisation only: every store failure is logged and
reported to the caller as a miss.
"""

import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Type, TypeVar

from pydantic import BaseModel

from equity_scorer.src.common.errors import CacheFaultError
from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.common.ttl_cache import AsyncTTLCache
from equity_scorer.src.config import constants
from equity_scorer.src.models.market_data import (
    Fundamentals,
    MarketSnapshot,
    PriceSeries,
    Quote,
)
from equity_scorer.src.models.score_models import MoatRating, Score

M = TypeVar("M", bound=BaseModel)

UNIVERSE_KEY = "universe:sp500"


class CacheStore(Protocol):
    """Minimal key/value contract; AsyncTTLCache satisfies it."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        ...

    async def delete(self, key: str) -> bool:
        ...


def cache_key(artifact: str, symbol: str, period: Optional[str] = None) -> str:
    """Build a cache key, e.g. ``history:AAPL:1y``."""
    key = f"{artifact}:{symbol.upper()}"
    return f"{key}:{period}" if period else key


class CacheAsideLayer:
    """Typed, fault-tolerant access to the cache store."""

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        quote_ttl: int = constants.QUOTE_TTL_SECONDS,
        fundamentals_ttl: int = constants.FUNDAMENTALS_TTL_SECONDS,
        history_ttl: int = constants.HISTORY_TTL_SECONDS,
        score_ttl: int = constants.SCORE_TTL_SECONDS,
        universe_ttl: int = constants.UNIVERSE_TTL_SECONDS,
    ):
        self.store: CacheStore = store if store is not None else AsyncTTLCache(
            maxsize=constants.CACHE_MAX_ENTRIES
        )
        self.quote_ttl = quote_ttl
        self.fundamentals_ttl = fundamentals_ttl
        self.history_ttl = history_ttl
        self.score_ttl = score_ttl
        self.universe_ttl = universe_ttl

    # ------------------------------------------------------------------
    # Raw access, never raises
    # ------------------------------------------------------------------

    @staticmethod
    async def _store_call(operation: str, key: str, method: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        try:
            return await method(*args)
        except Exception as e:
            raise CacheFaultError(f"Cache {operation} failed for {key}: {type(e).__name__}: {e}") from e

    async def _get_raw(self, key: str) -> Optional[str]:
        try:
            return await self._store_call("read", key, self.store.get, key)
        except CacheFaultError as e:
            logger.warning(f"⚠️ {e}, treating as miss")
            return None

    async def _set_raw(self, key: str, value: str, ttl: float) -> bool:
        try:
            await self._store_call("write", key, self.store.set, key, value, ttl)
            return True
        except CacheFaultError as e:
            logger.warning(f"⚠️ {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._store_call("delete", key, self.store.delete, key))
        except CacheFaultError as e:
            logger.warning(f"⚠️ {e}")
            return False

    async def _get_model(self, key: str, model_cls: Type[M]) -> Optional[M]:
        raw = await self._get_raw(key)
        if raw is None:
            return None
        try:
            return model_cls.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"⚠️ Discarding unreadable cache entry {key}: {e}")
            await self.delete(key)
            return None

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    async def get_snapshot(self, symbol: str, period: str) -> Optional[MarketSnapshot]:
        """
        Cached snapshot, only if all three artifacts are present and came
        from the same provider.
        """
        quote = await self._get_model(cache_key("quote", symbol), Quote)
        fundamentals = await self._get_model(cache_key("fundamentals", symbol), Fundamentals)
        history = await self._get_model(cache_key("history", symbol, period), PriceSeries)

        if quote is None or fundamentals is None or history is None:
            return None

        sources = {quote.source, fundamentals.source, history.source}
        if len(sources) != 1:
            logger.debug(f"Cached artifacts for {symbol} come from {sorted(sources)}, ignoring")
            return None

        return MarketSnapshot(
            symbol=symbol,
            source=quote.source,
            quote=quote,
            fundamentals=fundamentals,
            history=history,
        )

    async def set_snapshot(self, snapshot: MarketSnapshot, period: str) -> None:
        symbol = snapshot.symbol
        await self._set_raw(cache_key("quote", symbol), snapshot.quote.model_dump_json(), self.quote_ttl)
        await self._set_raw(
            cache_key("fundamentals", symbol),
            snapshot.fundamentals.model_dump_json(),
            self.fundamentals_ttl,
        )
        await self._set_raw(
            cache_key("history", symbol, period), snapshot.history.model_dump_json(), self.history_ttl
        )

    # ------------------------------------------------------------------
    # Scores and moat ratings
    # ------------------------------------------------------------------

    async def get_score(self, symbol: str) -> Optional[Score]:
        return await self._get_model(cache_key("score", symbol), Score)

    async def set_score(self, score: Score) -> bool:
        return await self._set_raw(cache_key("score", score.symbol), score.to_json(), self.score_ttl)

    async def get_moat(self, symbol: str) -> Optional[MoatRating]:
        """
        Moat rating written by the external analysis job.

        Accepts a bare number or an object carrying ``overall_score`` (or
        ``overallScore``). Anything else is a miss.
        """
        raw = await self._get_raw(cache_key("moat", symbol))
        if raw is None:
            return None
        try:
            return self._parse_moat(symbol, json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"⚠️ Ignoring unreadable moat rating for {symbol}: {e}")
            return None

    @staticmethod
    def _parse_moat(symbol: str, data: Any) -> Optional[MoatRating]:
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return MoatRating(symbol=symbol, overall_score=min(100.0, max(0.0, float(data))))
        if not isinstance(data, dict):
            return None

        overall = data.get("overall_score", data.get("overallScore"))
        if overall is None:
            return None
        strength = data.get("strength")
        if strength not in ("Strong", "Moderate", "Weak"):
            strength = None
        return MoatRating(
            symbol=symbol,
            overall_score=min(100.0, max(0.0, float(overall))),
            strength=strength,
            summary=data.get("summary"),
        )

    async def set_moat(self, rating: MoatRating, ttl: float = 7 * 86400) -> bool:
        return await self._set_raw(cache_key("moat", rating.symbol), rating.model_dump_json(), ttl)

    # ------------------------------------------------------------------
    # Universe
    # ------------------------------------------------------------------

    async def get_universe(self) -> Optional[List[str]]:
        raw = await self._get_raw(UNIVERSE_KEY)
        if raw is None:
            return None
        try:
            symbols = json.loads(raw)
        except ValueError as e:
            logger.warning(f"⚠️ Ignoring unreadable universe cache entry: {e}")
            return None
        if not isinstance(symbols, list) or not symbols:
            return None
        return [str(s) for s in symbols]

    async def set_universe(self, symbols: Sequence[str]) -> bool:
        return await self._set_raw(UNIVERSE_KEY, json.dumps(list(symbols)), self.universe_ttl)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate_symbol(self, symbol: str, periods: Sequence[str] = (constants.HISTORY_PERIOD,)) -> int:
        """Drop every cached artifact of ``symbol``. Returns the number of keys removed."""
        keys = [cache_key(artifact, symbol) for artifact in ("quote", "fundamentals", "score", "moat")]
        keys.extend(cache_key("history", symbol, period) for period in periods)
        removed = 0
        for key in keys:
            if await self.delete(key):
                removed += 1
        logger.debug(f"Invalidated {removed} cache entries for {symbol}")
        return removed

    async def stats(self) -> Dict[str, Any]:
        stats = getattr(self.store, "stats", None)
        if stats is None:
            return {}
        try:
            return await stats()
        except Exception as e:
            logger.warning(f"⚠️ Cache stats unavailable: {e}")
            return {}
