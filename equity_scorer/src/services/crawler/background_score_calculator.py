"""
Background Score Calculator

Recomputes scores for every stale symbol in the universe. Symbols are
processed in small concurrent batches with a pause between batches; each
symbol gets a bounded number of attempts with exponential backoff when
the provider rate limits and a flat delay for other transient failures.
"""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Optional, Sequence

from equity_scorer.src.common.errors import (
    IncompleteDataError,
    ProviderUnavailableError,
    RateLimitedError,
)
from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.common.logging_utils import (
    log_batch_progress,
    log_error_with_context,
    log_run_summary,
)
from equity_scorer.src.config.crawler_config import CrawlerConfig
from equity_scorer.src.db.score_repository import ScoreRepository
from equity_scorer.src.models.score_models import CalculationProgress, RunSummary
from equity_scorer.src.services.scoring.scoring_pipeline import ScoringPipeline
from equity_scorer.src.services.universe.sp500_universe import SP500UniverseService

SleepFn = Callable[[float], Awaitable[Any]]


class CrawlerState(str, Enum):
    IDLE = "idle"
    LISTING = "listing"
    BATCHING = "batching"
    REPORTING = "reporting"


class BackgroundScoreCalculator:
    """Orchestrates one scoring run at a time."""

    def __init__(
        self,
        pipeline: ScoringPipeline,
        repository: ScoreRepository,
        universe: SP500UniverseService,
        config: Optional[CrawlerConfig] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """
        Args:
            pipeline: Scores and persists a single symbol
            repository: Answers which symbols are stale
            universe: Lists the symbols to consider
            config: Batch size, delays, retry cap and staleness threshold
            sleep: Awaitable sleep, replaced in tests
        """
        self.pipeline = pipeline
        self.repository = repository
        self.universe = universe
        self.config = config or CrawlerConfig.from_env()
        self._sleep = sleep
        self._progress: Optional[CalculationProgress] = None
        self.state = CrawlerState.IDLE

    def get_progress(self) -> Optional[Dict[str, Any]]:
        """Snapshot of the active run, None when idle."""
        if self._progress is None:
            return None
        snapshot = self._progress.snapshot()
        snapshot["state"] = self.state.value
        return snapshot

    async def run(self, symbols: Optional[Sequence[str]] = None) -> RunSummary:
        """
        Score every stale symbol.

        Args:
            symbols: Restrict the run to these symbols instead of the universe

        Returns:
            RunSummary; ``skipped`` is set when nothing was stale
        """
        return await self._execute(self._run(symbols))

    async def retry_failed(self, summary: RunSummary) -> RunSummary:
        """Re-run only the symbols that failed in ``summary``."""
        failed = list(dict.fromkeys(summary.failed_symbols))
        if not failed:
            logger.info("No failed symbols to retry")
            return RunSummary.empty()
        logger.info(f"🔁 Retrying {len(failed)} failed symbols: {', '.join(failed)}")
        return await self._execute(self._process(failed))

    async def _execute(self, work: Coroutine[Any, Any, RunSummary]) -> RunSummary:
        if self.state is not CrawlerState.IDLE:
            work.close()
            raise RuntimeError(f"A score run is already in progress (state={self.state.value})")

        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        self.state = CrawlerState.LISTING
        try:
            if self.config.deadline_seconds > 0:
                try:
                    return await asyncio.wait_for(work, timeout=self.config.deadline_seconds)
                except asyncio.TimeoutError:
                    logger.error(
                        f"⏰ Score run exceeded its {self.config.deadline_seconds:.0f}s deadline, "
                        f"in-flight work cancelled"
                    )
                    return self._summarize(started_at, time.monotonic() - start, timed_out=True)
            return await work
        finally:
            self.state = CrawlerState.IDLE
            self._progress = None

    async def _run(self, symbols: Optional[Sequence[str]]) -> RunSummary:
        if symbols is None:
            symbols = await self.universe.get_symbols()

        stale = await self.repository.get_stale_symbols(
            list(symbols), max_age_hours=self.config.staleness_hours
        )
        if not stale:
            logger.info("✨ All scores are fresh, nothing to calculate")
            return RunSummary.empty()

        return await self._process(stale)

    async def _process(self, symbols: List[str]) -> RunSummary:
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        progress = CalculationProgress(total=len(symbols), start_time=started_at)
        self._progress = progress
        self.state = CrawlerState.BATCHING

        batch_size = self.config.batch_size
        batches = [symbols[i:i + batch_size] for i in range(0, len(symbols), batch_size)]
        logger.info(
            f"🚀 Scoring {len(symbols)} symbols in {len(batches)} batches of up to {batch_size}"
        )

        for number, batch in enumerate(batches, start=1):
            log_batch_progress(
                number, len(batches), batch, progress.completed, progress.failed, progress.total
            )

            results = await asyncio.gather(
                *(self._calculate_with_retry(symbol, progress) for symbol in batch),
                return_exceptions=True,
            )
            for symbol, result in zip(batch, results):
                if isinstance(result, BaseException):
                    # _calculate_with_retry records its own failures; this only
                    # catches a task cancelled on its own
                    await progress.mark_failed(symbol, f"{type(result).__name__}: {result}")

            if number < len(batches) and self.config.rate_limit_delay > 0:
                await self._sleep(self.config.rate_limit_delay)

        self.state = CrawlerState.REPORTING
        return self._summarize(started_at, time.monotonic() - start)

    def _summarize(self, started_at: datetime, duration: float, timed_out: bool = False) -> RunSummary:
        progress = self._progress
        if progress is None:
            summary = RunSummary.empty()
            summary.timed_out = timed_out
            return summary

        summary = RunSummary(
            total=progress.total,
            completed=progress.completed,
            failed=progress.failed,
            duration_seconds=duration,
            errors=list(progress.errors),
            started_at=progress.start_time,
            finished_at=datetime.now(timezone.utc),
            timed_out=timed_out,
        )
        log_run_summary(
            summary.total,
            summary.completed,
            summary.failed,
            summary.duration_seconds,
            summary.success_rate,
            summary.errors,
        )
        return summary

    async def _calculate_with_retry(self, symbol: str, progress: CalculationProgress) -> bool:
        """
        Score ``symbol`` with up to ``max_retries`` attempts.

        Returns:
            True when scored; failures are recorded in ``progress``
        """
        await progress.mark_started(symbol)
        max_attempts = self.config.max_retries
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                await self.pipeline.score_symbol(symbol)
                await progress.mark_completed(symbol)
                return True
            except IncompleteDataError as e:
                logger.warning(f"⏭️ Skipping {symbol}, incomplete data: {e}")
                await progress.mark_failed(symbol, f"IncompleteDataError: {e}")
                return False
            except ProviderUnavailableError as e:
                logger.warning(f"⏭️ Skipping {symbol}, no data source available: {e}")
                await progress.mark_failed(symbol, f"ProviderUnavailableError: {e}")
                return False
            except RateLimitedError as e:
                last_error = e
                delay = self.config.retry_delay * (2 ** (attempt - 1))
                reason = "rate limited"
            except Exception as e:
                last_error = e
                delay = self.config.retry_delay
                reason = type(e).__name__

            if attempt < max_attempts:
                logger.warning(
                    f"🔄 {symbol} attempt {attempt}/{max_attempts} failed ({reason}), "
                    f"retrying in {delay:.0f}s"
                )
                await self._sleep(delay)

        log_error_with_context(
            last_error,
            context=f"scoring {symbol} after {max_attempts} attempts",
            component="BackgroundScoreCalculator",
            symbol=symbol,
        )
        await progress.mark_failed(symbol, f"{type(last_error).__name__}: {last_error}")
        return False
