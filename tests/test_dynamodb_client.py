"""
Tests for DynamoDBClient conversions and error translation
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from equity_scorer.src.common.errors import PersistenceError, TransientIOError
from equity_scorer.src.db.dynamodb_client import (
    DynamoDBClient,
    _convert_decimals_to_floats,
    _convert_floats_to_decimals,
)


def test_floats_become_decimals_recursively():
    converted = _convert_floats_to_decimals(
        {"total": 72, "price": 189.5, "nested": {"rsi": 55.25}, "levels": [1.5, "x"]}
    )
    assert converted == {
        "total": 72,
        "price": Decimal("189.5"),
        "nested": {"rsi": Decimal("55.25")},
        "levels": [Decimal("1.5"), "x"],
    }


def test_decimals_come_back_as_numbers():
    converted = _convert_decimals_to_floats(
        {"total": Decimal("72"), "price": Decimal("189.5"), "items": [Decimal("3")]}
    )
    assert converted == {"total": 72, "price": 189.5, "items": [3]}
    assert isinstance(converted["total"], int)
    assert isinstance(converted["price"], float)


class FakeResource:
    def __init__(self, table):
        self.table = table

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def Table(self, name):
        return self.table


@pytest.fixture
def table():
    return MagicMock()


@pytest.fixture
def client(table):
    c = DynamoDBClient(region="us-east-1")
    c.session = MagicMock()
    c.session.resource.return_value = FakeResource(table)
    return c


@pytest.mark.asyncio
async def test_put_item_converts_floats(client, table):
    table.put_item = AsyncMock()

    await client.put_item("Scores", {"symbol": "AAPL", "price": 1.5})

    table.put_item.assert_awaited_once_with(Item={"symbol": "AAPL", "price": Decimal("1.5")})


@pytest.mark.asyncio
async def test_get_item_missing_returns_none(client, table):
    table.get_item = AsyncMock(return_value={})
    assert await client.get_item("Scores", {"symbol": "AAPL"}) is None


@pytest.mark.asyncio
async def test_client_error_becomes_persistence_error(client, table):
    table.put_item = AsyncMock(
        side_effect=ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "PutItem",
        )
    )

    with pytest.raises(PersistenceError) as exc_info:
        await client.put_item("Scores", {"symbol": "AAPL"})

    assert isinstance(exc_info.value, TransientIOError)
    assert "ProvisionedThroughputExceededException" in str(exc_info.value)


@pytest.mark.asyncio
async def test_botocore_error_becomes_persistence_error(client, table):
    table.get_item = AsyncMock(side_effect=EndpointConnectionError(endpoint_url="http://localhost"))

    with pytest.raises(PersistenceError):
        await client.get_item("Scores", {"symbol": "AAPL"})


@pytest.mark.asyncio
async def test_scan_follows_pagination(client, table):
    table.scan = AsyncMock(
        side_effect=[
            {"Items": [{"symbol": "AAPL", "total": Decimal("70")}], "LastEvaluatedKey": {"symbol": "AAPL"}},
            {"Items": [{"symbol": "MSFT", "total": Decimal("65.5")}]},
        ]
    )

    items = await client.scan("Scores", projection_expression="#s", expression_attribute_names={"#s": "symbol"})

    assert items == [{"symbol": "AAPL", "total": 70}, {"symbol": "MSFT", "total": 65.5}]
    second_call = table.scan.await_args_list[1].kwargs
    assert second_call["ExclusiveStartKey"] == {"symbol": "AAPL"}
    assert second_call["ProjectionExpression"] == "#s"
