"""
Durable backup of the symbol universe, used when the live list is unreachable.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from loguru import logger

from equity_scorer.src.config import constants
from equity_scorer.src.db.dynamodb_client import DynamoDBClient


class UniverseRepository:
    """Stores each named symbol list as a single item keyed by ``list_id``."""

    def __init__(
        self,
        dynamodb_client: Optional[DynamoDBClient] = None,
        table_name: str = constants.UNIVERSE_TABLE_NAME,
    ):
        self.client = dynamodb_client or DynamoDBClient()
        self.table_name = table_name

    async def save_symbols(self, symbols: Sequence[str], list_id: str = "sp500") -> None:
        await self.client.put_item(
            self.table_name,
            {
                "list_id": list_id,
                "symbols": list(symbols),
                "count": len(symbols),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        logger.debug(f"Backed up {len(symbols)} {list_id} symbols")

    async def load_symbols(self, list_id: str = "sp500") -> List[str]:
        """Backed-up symbols, or an empty list when there is no backup."""
        item = await self.client.get_item(self.table_name, {"list_id": list_id})
        if not item:
            return []
        return [str(s) for s in item.get("symbols") or []]
