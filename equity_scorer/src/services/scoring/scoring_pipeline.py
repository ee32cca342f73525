"""
Per-symbol scoring pipeline.

snapshot (cache, then providers) -> indicators -> cached moat rating ->
composite score -> persistence -> score cache.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.config import constants
from equity_scorer.src.db.score_repository import ScoreRepository
from equity_scorer.src.models.market_data import MarketSnapshot
from equity_scorer.src.models.score_models import Score
from equity_scorer.src.services.cache.market_data_cache import CacheAsideLayer
from equity_scorer.src.services.market_data.data_source_selector import DataSourceSelector
from equity_scorer.src.services.scoring.composite_score_service import CompositeScoringModel
from equity_scorer.src.services.technical_analysis.technical_analysis_lib import (
    TechnicalAnalysisLib,
)


class ScoringPipeline:
    """Fetches, scores and stores one symbol at a time."""

    def __init__(
        self,
        selector: DataSourceSelector,
        cache: CacheAsideLayer,
        repository: ScoreRepository,
        history_period: str = constants.HISTORY_PERIOD,
    ):
        self.selector = selector
        self.cache = cache
        self.repository = repository
        self.history_period = history_period

    async def get_snapshot(self, symbol: str, force_refresh: bool = False) -> MarketSnapshot:
        """Cached snapshot when complete, otherwise a fresh one from the providers."""
        if not force_refresh:
            cached = await self.cache.get_snapshot(symbol, self.history_period)
            if cached is not None:
                logger.debug(f"Cache hit for {symbol} market data ({cached.source})")
                return cached

        snapshot = await self.selector.fetch_snapshot(symbol, self.history_period)
        await self.cache.set_snapshot(snapshot, self.history_period)
        return snapshot

    async def score_symbol(self, symbol: str, force_refresh: bool = False) -> Score:
        """
        Compute, persist and cache a fresh score.

        Raises:
            MarketDataError: no provider produced a snapshot, or the score
                could not be persisted (PersistenceError)
        """
        symbol = symbol.upper()
        snapshot = await self.get_snapshot(symbol, force_refresh=force_refresh)

        indicators = TechnicalAnalysisLib.calculate_indicators(snapshot.history)
        moat_rating = await self.cache.get_moat(symbol)

        score = CompositeScoringModel.calculate_score(
            snapshot.quote,
            snapshot.fundamentals,
            snapshot.history,
            moat_rating=moat_rating,
            indicators=indicators,
        )

        await self.repository.save_score(score)
        await self.cache.set_score(score)

        logger.info(
            f"✅ {symbol}: {score.total}/100 {score.recommendation.value} "
            f"(quality {score.business_quality}/60, timing {score.timing}/40, source {snapshot.source})"
        )
        return score

    async def get_score(
        self, symbol: str, max_age_hours: float = constants.STALENESS_HOURS
    ) -> Score:
        """
        Read-through score lookup: cache, then persisted score if fresh,
        otherwise a new calculation.
        """
        symbol = symbol.upper()
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)

        cached = await self.cache.get_score(symbol)
        if cached is not None and cached.calculated_at >= cutoff:
            return cached

        stored = await self.repository.get_score(symbol)
        if stored is not None and stored.calculated_at >= cutoff:
            await self.cache.set_score(stored)
            return stored

        return await self.score_symbol(symbol)
