"""
DynamoDB client for the equity scoring pipeline.
Provides async operations for score persistence with error handling and logging.
"""
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from equity_scorer.src.common.errors import PersistenceError
from equity_scorer.src.config import constants


def _convert_floats_to_decimals(obj: Any) -> Any:
    """
    Recursively convert all float values to Decimal for DynamoDB compatibility.
    DynamoDB doesn't support native Python float types.
    """
    if isinstance(obj, dict):
        return {k: _convert_floats_to_decimals(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_floats_to_decimals(item) for item in obj]
    elif isinstance(obj, float):
        return Decimal(str(obj))
    else:
        return obj


def _convert_decimals_to_floats(obj: Any) -> Any:
    """Inverse of ``_convert_floats_to_decimals`` for items read back."""
    if isinstance(obj, dict):
        return {k: _convert_decimals_to_floats(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_decimals_to_floats(item) for item in obj]
    elif isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    else:
        return obj


class DynamoDBClient:
    """
    Async DynamoDB client.

    Provides operations: put_item, get_item, delete_item, scan.
    Failures are logged with structured context and re-raised as
    ``PersistenceError`` so callers can retry.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        """Initialize DynamoDB client with AWS credentials from environment."""
        self.aws_region = region or constants.AWS_DEFAULT_REGION
        self.endpoint_url = endpoint_url or constants.DYNAMODB_ENDPOINT_URL

        if not constants.AWS_ACCESS_KEY_ID or not constants.AWS_SECRET_ACCESS_KEY:
            logger.warning("AWS credentials not found in environment variables")

        self.session = aioboto3.Session(
            aws_access_key_id=constants.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=constants.AWS_SECRET_ACCESS_KEY or None,
            region_name=self.aws_region,
        )

        logger.info(f"DynamoDB client initialized for region: {self.aws_region}")

    @asynccontextmanager
    async def _table(self, table_name: str) -> AsyncIterator[Any]:
        async with self.session.resource("dynamodb", endpoint_url=self.endpoint_url) as dynamodb:
            yield await dynamodb.Table(table_name)

    @staticmethod
    def _failure(operation: str, table_name: str, error: Exception) -> PersistenceError:
        """Log a failed operation and build the error to raise."""
        if isinstance(error, ClientError):
            code = error.response["Error"]["Code"]
            message = error.response["Error"]["Message"]
            logger.bind(
                operation=operation,
                table=table_name,
                status="failed",
                error_code=code,
                error_message=message,
            ).error(f"DynamoDB ClientError in {operation}: {message}")
            return PersistenceError(f"DynamoDB {operation} on {table_name} failed: {code}: {message}")

        kind = "BotoCoreError" if isinstance(error, BotoCoreError) else "unexpected error"
        logger.bind(
            operation=operation, table=table_name, status="failed", error=str(error)
        ).error(f"DynamoDB {kind} in {operation}: {error}")
        return PersistenceError(f"DynamoDB {operation} on {table_name} failed: {error}")

    @staticmethod
    def _success(operation: str, table_name: str, **fields: Any) -> None:
        logger.bind(operation=operation, table=table_name, status="success", **fields).debug(
            f"DynamoDB {operation} successful"
        )

    async def put_item(self, table_name: str, item: Dict[str, Any]) -> None:
        """Insert (or overwrite) an item."""
        try:
            async with self._table(table_name) as table:
                await table.put_item(Item=_convert_floats_to_decimals(item))
        except (ClientError, BotoCoreError) as e:
            raise self._failure("put_item", table_name, e) from e
        self._success("put_item", table_name)

    async def get_item(self, table_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Retrieve an item by key.

        Returns:
            Item dictionary with Decimals converted back to numbers, None if absent
        """
        try:
            async with self._table(table_name) as table:
                response = await table.get_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._failure("get_item", table_name, e) from e

        item = response.get("Item")
        self._success("get_item", table_name, found=item is not None)
        return _convert_decimals_to_floats(item) if item else None

    async def delete_item(self, table_name: str, key: Dict[str, Any]) -> None:
        """Delete an item by key. Deleting a missing item is not an error."""
        try:
            async with self._table(table_name) as table:
                await table.delete_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._failure("delete_item", table_name, e) from e
        self._success("delete_item", table_name)

    async def scan(
        self,
        table_name: str,
        projection_expression: Optional[str] = None,
        filter_expression: Optional[Any] = None,
        expression_attribute_names: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Scan a whole table, following ``LastEvaluatedKey`` pagination.

        Args:
            table_name: Name of the DynamoDB table
            projection_expression: Optional attributes to return
            filter_expression: Optional boto3 condition (e.g. ``Attr("x").lt(1)``)
            expression_attribute_names: Placeholders for reserved words
        """
        scan_params: Dict[str, Any] = {}
        if projection_expression:
            scan_params["ProjectionExpression"] = projection_expression
        if filter_expression is not None:
            scan_params["FilterExpression"] = filter_expression
        if expression_attribute_names:
            scan_params["ExpressionAttributeNames"] = expression_attribute_names

        items: List[Dict[str, Any]] = []
        try:
            async with self._table(table_name) as table:
                while True:
                    response = await table.scan(**scan_params)
                    items.extend(response.get("Items", []))
                    last_key = response.get("LastEvaluatedKey")
                    if not last_key:
                        break
                    scan_params["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._failure("scan", table_name, e) from e

        self._success("scan", table_name, items_count=len(items))
        return [_convert_decimals_to_floats(item) for item in items]
