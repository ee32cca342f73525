"""
Tests for ScoringPipeline
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import (
    BrokenStore,
    FakeProvider,
    FakeScoreRepository,
    build_snapshot,
    provider_error,
)
from equity_scorer.src.common.errors import PersistenceError, RateLimitedError
from equity_scorer.src.common.ttl_cache import AsyncTTLCache
from equity_scorer.src.models.score_models import MoatRating
from equity_scorer.src.services.cache.market_data_cache import CacheAsideLayer
from equity_scorer.src.services.market_data.data_source_selector import DataSourceSelector
from equity_scorer.src.services.scoring.scoring_pipeline import ScoringPipeline


def make_pipeline(provider=None, store=None, repository=None):
    provider = provider or FakeProvider("alpha")
    cache = CacheAsideLayer(store if store is not None else AsyncTTLCache(maxsize=100))
    repository = repository or FakeScoreRepository()
    pipeline = ScoringPipeline(DataSourceSelector([provider]), cache, repository, history_period="1y")
    return pipeline, provider, cache, repository


@pytest.mark.asyncio
async def test_score_symbol_persists_and_caches():
    pipeline, provider, cache, repository = make_pipeline()

    score = await pipeline.score_symbol("aapl")

    assert score.symbol == "AAPL"
    assert score.total == score.business_quality + score.timing
    assert score.data_source == "alpha"
    assert provider.calls == ["AAPL"]
    assert repository.scores["AAPL"] == score
    assert (await cache.get_score("AAPL")).to_dict() == score.to_dict()


@pytest.mark.asyncio
async def test_cached_snapshot_skips_providers():
    pipeline, provider, _, _ = make_pipeline()

    await pipeline.score_symbol("MSFT")
    await pipeline.score_symbol("MSFT")

    assert provider.calls == ["MSFT"]


@pytest.mark.asyncio
async def test_force_refresh_goes_to_providers():
    pipeline, provider, _, _ = make_pipeline()

    await pipeline.score_symbol("MSFT")
    await pipeline.score_symbol("MSFT", force_refresh=True)

    assert provider.calls == ["MSFT", "MSFT"]


@pytest.mark.asyncio
async def test_cached_moat_rating_is_used():
    pipeline, _, cache, _ = make_pipeline()
    await cache.set_moat(MoatRating(symbol="KO", overall_score=100))

    score = await pipeline.score_symbol("KO")

    assert score.moat_source == "rating"
    assert score.moat == 20


@pytest.mark.asyncio
async def test_without_moat_rating_moat_is_estimated():
    pipeline, _, _, _ = make_pipeline()

    score = await pipeline.score_symbol("KO")

    assert score.moat_source == "estimate"


@pytest.mark.asyncio
async def test_persistence_failure_propagates_and_nothing_is_cached():
    repository = FakeScoreRepository(save_errors=[PersistenceError("throttled")])
    pipeline, _, cache, _ = make_pipeline(repository=repository)

    with pytest.raises(PersistenceError):
        await pipeline.score_symbol("AAPL")

    assert await cache.get_score("AAPL") is None


@pytest.mark.asyncio
async def test_provider_failure_propagates():
    provider = FakeProvider("alpha", outcomes=[provider_error(RateLimitedError, source="alpha")])
    pipeline, _, _, repository = make_pipeline(provider=provider)

    with pytest.raises(RateLimitedError):
        await pipeline.score_symbol("TEST")

    assert repository.scores == {}


@pytest.mark.asyncio
async def test_broken_cache_does_not_block_scoring():
    pipeline, provider, _, repository = make_pipeline(store=BrokenStore())

    score = await pipeline.score_symbol("AAPL")

    assert repository.scores["AAPL"] == score
    assert provider.calls == ["AAPL"]


@pytest.mark.asyncio
async def test_get_snapshot_ignores_mixed_source_cache():
    provider = FakeProvider("alpha")
    pipeline, _, cache, _ = make_pipeline(provider=provider)
    await cache.set_snapshot(build_snapshot("AAPL", source="beta"), "1y")
    await cache.store.set("quote:AAPL", build_snapshot("AAPL", source="alpha").quote.model_dump_json())

    snapshot = await pipeline.get_snapshot("AAPL")

    assert provider.calls == ["AAPL"]
    assert snapshot.source == "alpha"


@pytest.mark.asyncio
async def test_get_score_prefers_fresh_cache():
    pipeline, provider, _, _ = make_pipeline()
    first = await pipeline.score_symbol("AAPL")

    again = await pipeline.get_score("AAPL")

    assert again.to_dict() == first.to_dict()
    assert provider.calls == ["AAPL"]


@pytest.mark.asyncio
async def test_get_score_uses_fresh_stored_score_when_cache_is_empty():
    repository = FakeScoreRepository()
    pipeline, provider, cache, _ = make_pipeline(repository=repository)
    stored = await pipeline.score_symbol("AAPL")
    await cache.delete("score:AAPL")
    provider.calls.clear()

    result = await pipeline.get_score("AAPL")

    assert result == stored
    assert provider.calls == []
    assert (await cache.get_score("AAPL")).to_dict() == stored.to_dict()


@pytest.mark.asyncio
async def test_get_score_recalculates_stale_scores():
    repository = FakeScoreRepository()
    pipeline, provider, cache, _ = make_pipeline(repository=repository)
    old = await pipeline.score_symbol("AAPL")
    stale = old.model_copy(update={"calculated_at": datetime.now(timezone.utc) - timedelta(hours=48)})
    repository.scores["AAPL"] = stale
    await cache.set_score(stale)

    result = await pipeline.get_score("AAPL", max_age_hours=24)

    assert result.calculated_at > stale.calculated_at
    assert repository.scores["AAPL"] == result
