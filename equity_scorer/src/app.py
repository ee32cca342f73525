"""
Equity Scorer
Entry point for the background scoring job and single-symbol lookups.

    python -m equity_scorer.src.app run
    python -m equity_scorer.src.app run --symbols AAPL MSFT --retry-failed
    python -m equity_scorer.src.app score AAPL --refresh
    python -m equity_scorer.src.app cleanup --days 30
"""
import argparse
import asyncio
import json
import signal
import sys
from typing import Any, Awaitable, List, Optional

from equity_scorer.src.common.loguru_logger import logger
from equity_scorer.src.common.logging_utils import log_error_with_context, log_operation
from equity_scorer.src.config.crawler_config import CrawlerConfig
from equity_scorer.src.db.dynamodb_client import DynamoDBClient
from equity_scorer.src.db.score_repository import ScoreRepository
from equity_scorer.src.db.universe_repository import UniverseRepository
from equity_scorer.src.services.cache.market_data_cache import CacheAsideLayer
from equity_scorer.src.services.crawler.background_score_calculator import (
    BackgroundScoreCalculator,
)
from equity_scorer.src.services.market_data.data_source_selector import DataSourceSelector
from equity_scorer.src.services.scoring.scoring_pipeline import ScoringPipeline
from equity_scorer.src.services.universe.sp500_universe import SP500UniverseService

# Set by signal handlers to request a graceful stop
_shutdown_event: Optional[asyncio.Event] = None


def setup_signal_handlers(loop: asyncio.AbstractEventLoop):
    """Request a graceful stop on SIGINT/SIGTERM."""

    def signal_handler(sig: signal.Signals):
        logger.info(f"Received shutdown signal ({sig.name}), cancelling in-flight work...")
        if _shutdown_event:
            _shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)


def build_calculator(config: CrawlerConfig) -> BackgroundScoreCalculator:
    """Wire the production services together."""
    dynamodb_client = DynamoDBClient()
    cache = CacheAsideLayer()
    repository = ScoreRepository(dynamodb_client)
    pipeline = ScoringPipeline(
        DataSourceSelector.from_config(config.data_source_order),
        cache,
        repository,
        history_period=config.history_period,
    )
    universe = SP500UniverseService(cache, backup=UniverseRepository(dynamodb_client))
    return BackgroundScoreCalculator(pipeline, repository, universe, config=config)


async def run_until_shutdown(work: Awaitable[Any]) -> Any:
    """
    Await ``work`` unless a shutdown signal arrives first, in which case
    it is cancelled and CancelledError propagates.
    """
    task = asyncio.ensure_future(work)
    stopper = asyncio.ensure_future(_shutdown_event.wait())
    try:
        done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if task not in done:
            task.cancel()
        return await task
    finally:
        stopper.cancel()


async def command_run(calculator: BackgroundScoreCalculator, args: argparse.Namespace) -> int:
    symbols: Optional[List[str]] = [s.upper() for s in args.symbols] if args.symbols else None

    summary = await run_until_shutdown(calculator.run(symbols))
    if args.retry_failed and summary.failed:
        retry_summary = await run_until_shutdown(calculator.retry_failed(summary))
        logger.info(f"Retry pass: {retry_summary}")
        summary = retry_summary if not retry_summary.skipped else summary

    print(summary.to_json())
    return 0 if summary.failed == 0 and not summary.timed_out else 2


async def command_score(calculator: BackgroundScoreCalculator, args: argparse.Namespace) -> int:
    symbol = args.symbol.upper()
    if args.refresh:
        score = await run_until_shutdown(
            calculator.pipeline.score_symbol(symbol, force_refresh=True)
        )
    else:
        score = await run_until_shutdown(
            calculator.pipeline.get_score(symbol, max_age_hours=calculator.config.staleness_hours)
        )
    print(json.dumps(score.to_dict(), indent=2))
    return 0


async def command_cleanup(calculator: BackgroundScoreCalculator, args: argparse.Namespace) -> int:
    deleted = await run_until_shutdown(calculator.repository.delete_old_scores(args.days))
    print(json.dumps({"deleted": deleted}))
    return 0


COMMANDS = {
    "run": command_run,
    "score": command_score,
    "cleanup": command_cleanup,
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="equity-scorer", description="Composite quality + timing scores for equities"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Recalculate every stale score")
    run_parser.add_argument("--symbols", nargs="+", help="Only consider these symbols")
    run_parser.add_argument(
        "--retry-failed", action="store_true", help="Retry failed symbols once after the run"
    )
    run_parser.add_argument("--deadline", type=float, help="Abort the run after this many seconds")
    run_parser.add_argument("--batch-size", type=int, help="Symbols per concurrent batch")

    score_parser = subparsers.add_parser("score", help="Score a single symbol")
    score_parser.add_argument("symbol")
    score_parser.add_argument(
        "--refresh", action="store_true", help="Ignore cached data and stored scores"
    )

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old scores")
    cleanup_parser.add_argument("--days", type=int, default=30)

    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    args = parse_args(argv)

    config = CrawlerConfig()
    if getattr(args, "deadline", None) is not None:
        config.deadline_seconds = args.deadline
    if getattr(args, "batch_size", None) is not None:
        config.batch_size = args.batch_size
    config.validate()

    logger.info("=" * 80)
    logger.info(f"Equity Scorer starting: {args.command}")
    logger.info("=" * 80)

    log_operation(operation_type="service_configuration", component="MainApplication", status="started")
    calculator = build_calculator(config)
    log_operation(
        operation_type="service_configuration",
        component="MainApplication",
        status="completed",
        details={"data_sources": config.data_source_order, "history_period": config.history_period},
    )

    setup_signal_handlers(asyncio.get_running_loop())

    try:
        return await COMMANDS[args.command](calculator, args)
    except asyncio.CancelledError:
        logger.warning("Stopped by shutdown signal")
        return 130
    except Exception as e:
        log_error_with_context(
            e, context=f"running command {args.command}", component="MainApplication", with_traceback=True
        )
        return 1
    finally:
        logger.info("Equity Scorer stopped")


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
