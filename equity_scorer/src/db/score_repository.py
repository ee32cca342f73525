"""
Repository for the latest score per symbol.

One item per symbol in the scores table; saving a score replaces the
previous one. Staleness is judged from ``calculated_at``.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from loguru import logger

from equity_scorer.src.common.errors import PersistenceError
from equity_scorer.src.config import constants
from equity_scorer.src.db.dynamodb_client import DynamoDBClient
from equity_scorer.src.models.score_models import Score


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ScoreRepository:
    """Persists and queries scores in DynamoDB."""

    def __init__(
        self,
        dynamodb_client: Optional[DynamoDBClient] = None,
        table_name: str = constants.SCORES_TABLE_NAME,
    ):
        """
        Args:
            dynamodb_client: Client to use (a new one is created when omitted)
            table_name: Name of the scores table (partition key ``symbol``)
        """
        self.client = dynamodb_client or DynamoDBClient()
        self.table_name = table_name

    async def save_score(self, score: Score) -> None:
        """
        Store ``score`` as the latest score for its symbol.

        ``put_item`` overwrites the existing item atomically, so readers
        never observe the symbol without a score.

        Raises:
            PersistenceError: the write failed
        """
        item = score.to_dict()
        item["symbol"] = score.symbol.upper()
        await self.client.put_item(self.table_name, item)
        logger.debug(f"💾 Saved score for {score.symbol}: {score.total}/100")

    async def get_score(self, symbol: str) -> Optional[Score]:
        item = await self.client.get_item(self.table_name, {"symbol": symbol.upper()})
        if item is None:
            return None
        try:
            return Score.model_validate(item)
        except ValueError as e:
            logger.warning(f"Stored score for {symbol} is unreadable, treating as missing: {e}")
            return None

    async def _calculated_at_by_symbol(self) -> Dict[str, Optional[datetime]]:
        items = await self.client.scan(
            self.table_name,
            projection_expression="#s, #c",
            expression_attribute_names={"#s": "symbol", "#c": "calculated_at"},
        )
        return {
            str(item["symbol"]).upper(): _parse_timestamp(item.get("calculated_at"))
            for item in items
            if item.get("symbol")
        }

    async def get_stale_symbols(
        self,
        symbols: Sequence[str],
        max_age_hours: float = constants.STALENESS_HOURS,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """
        Symbols whose score is older than ``max_age_hours`` or missing.

        Stale symbols come first, then symbols with no score at all, each
        group in the order given.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=max_age_hours)
        stored = await self._calculated_at_by_symbol()

        stale: List[str] = []
        missing: List[str] = []
        unique = list(dict.fromkeys(s.upper() for s in symbols))
        for symbol in unique:
            if symbol not in stored:
                missing.append(symbol)
                continue
            calculated_at = stored[symbol]
            if calculated_at is None or calculated_at < cutoff:
                stale.append(symbol)

        logger.info(
            f"📋 Staleness check: {len(stale)} stale, {len(missing)} missing, "
            f"{len(unique) - len(stale) - len(missing)} fresh (max age {max_age_hours}h)"
        )
        return stale + missing

    async def is_score_fresh(
        self, symbol: str, max_age_hours: float = constants.STALENESS_HOURS
    ) -> bool:
        score = await self.get_score(symbol)
        if score is None:
            return False
        return score.calculated_at >= datetime.now(timezone.utc) - timedelta(hours=max_age_hours)

    async def delete_old_scores(self, older_than_days: int = 30) -> int:
        """Remove scores older than ``older_than_days``. Returns the number deleted."""
        if older_than_days <= 0:
            raise ValueError("older_than_days must be positive")

        cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
        stored = await self._calculated_at_by_symbol()
        expired = [s for s, ts in stored.items() if ts is None or ts < cutoff]

        deleted = 0
        for symbol in expired:
            try:
                await self.client.delete_item(self.table_name, {"symbol": symbol})
                deleted += 1
            except PersistenceError as e:
                logger.warning(f"Could not delete old score for {symbol}: {e}")

        logger.info(f"🧹 Deleted {deleted}/{len(expired)} scores older than {older_than_days} days")
        return deleted
