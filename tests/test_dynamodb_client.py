"""
tests/test_dynamodb_client.py — DynamoDB adapter against a mocked boto3 resource
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from app.clients.dynamodb_client import DynamoDBStore
from app.core.exceptions import StoreError, StoreResourceMissingError
from app.models import Cemetery, PersonRole


def _client_error(code: str, operation: str = "GetItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def table():
    return MagicMock()


@pytest.fixture
def dynamo(table):
    resource = MagicMock()
    resource.Table.return_value = table
    return DynamoDBStore(table_prefix="deluge-test", resource=resource)


def test_table_names(dynamo):
    assert dynamo.table_name("rate-limits") == "deluge-test-rate-limits"


def test_get_person_maps_item(dynamo, table):
    table.get_item.return_value = {"Item": {
        "PK": "PERSON#p1", "SK": "METADATA",
        "personId": "p1", "firstName": "John", "lastInitial": "D",
        "yearOfDeath": Decimal("1987"), "role": "priest",
        "cemeteryId": "c1", "cemeteryName": "Holy Spirit",
        "prayerCount": Decimal("4"),
        "createdAt": "2024-01-01T00:00:00", "updatedAt": "2024-01-02T00:00:00",
    }}
    person = dynamo.get_person("p1")
    assert person.first_name == "John"
    assert person.prayer_count == 4
    assert person.year_of_death == 1987
    table.get_item.assert_called_once_with(Key={"PK": "PERSON#p1", "SK": "METADATA"})


def test_get_person_missing_or_deleted(dynamo, table):
    table.get_item.return_value = {}
    assert dynamo.get_person("p1") is None
    table.get_item.return_value = {"Item": {"personId": "p1", "deletedAt": "2024-01-01T00:00:00"}}
    assert dynamo.get_person("p1") is None


def test_create_cemetery_sends_decimals(dynamo, table):
    cemetery = Cemetery(name="Holy Spirit", city="Atlanta", state="GA",
                        latitude=33.749, longitude=-84.388, archdiocese="Atlanta")
    dynamo.create_cemetery(cemetery)
    item = table.put_item.call_args.kwargs["Item"]
    assert item["PK"] == f"CEMETERY#{cemetery.cemetery_id}"
    assert item["latitude"] == Decimal("33.749")
    assert "address" not in item


def test_missing_table_raises_resource_missing(dynamo, table):
    table.get_item.side_effect = _client_error("ResourceNotFoundException")
    with pytest.raises(StoreResourceMissingError) as exc_info:
        dynamo.get_counter("session:s", "2024-01-15T10")
    assert exc_info.value.table == "deluge-test-rate-limits"


def test_other_client_errors_raise_store_error(dynamo, table):
    table.get_item.side_effect = _client_error("ProvisionedThroughputExceededException")
    with pytest.raises(StoreError) as exc_info:
        dynamo.get_cemetery("c1")
    assert not isinstance(exc_info.value, StoreResourceMissingError)


def test_increment_counter(dynamo, table):
    table.update_item.return_value = {"Attributes": {"requestCount": Decimal("3")}}
    assert dynamo.increment_counter("ip:h", "2024-01-15T10", 1705320000) == 3
    kwargs = table.update_item.call_args.kwargs
    assert kwargs["Key"] == {"PK": "ip:h", "SK": "2024-01-15T10"}
    assert kwargs["ExpressionAttributeValues"][":ttl"] == 1705320000


def test_get_counter_defaults_to_zero(dynamo, table):
    table.get_item.return_value = {}
    assert dynamo.get_counter("ip:h", "2024-01-15T10") == 0


def test_conditional_failures_are_ignored(dynamo, table):
    table.update_item.side_effect = _client_error("ConditionalCheckFailedException", "UpdateItem")
    dynamo.update_priority_stats("p1", 2, datetime(2024, 1, 15))
    dynamo.set_priority_active("p1", False)
    assert dynamo.soft_delete_person("p1", datetime(2024, 1, 15)) is False


def test_query_active_candidates_pages(dynamo, table):
    def item(pid):
        return {"personId": pid, "prayerCount": Decimal("0"), "cemeteryId": "c1",
                "role": "priest", "isActive": True}

    table.scan.side_effect = [
        {"Items": [item("a"), item("b")], "LastEvaluatedKey": {"PK": "PERSON#b"}},
        {"Items": [item("c")]},
    ]
    records = dynamo.query_active_candidates(limit=100)
    assert [r.person_id for r in records] == ["a", "b", "c"]
    assert table.scan.call_args_list[1].kwargs["ExclusiveStartKey"] == {"PK": "PERSON#b"}


def test_update_person_sets_named_attributes(dynamo, table):
    table.update_item.return_value = {"Attributes": {
        "PK": "PERSON#p1", "SK": "METADATA",
        "personId": "p1", "firstName": "Jonathan", "lastInitial": "D",
        "yearOfDeath": Decimal("1987"), "role": "bishop",
        "cemeteryId": "c1", "cemeteryName": "Holy Spirit",
        "prayerCount": Decimal("0"),
        "createdAt": "2024-01-01T00:00:00+00:00", "updatedAt": "2024-01-02T00:00:00+00:00",
    }}
    person = dynamo.update_person("p1", {"first_name": "Jonathan", "role": PersonRole.BISHOP})

    assert person.first_name == "Jonathan"
    assert person.role == PersonRole.BISHOP
    kwargs = table.update_item.call_args.kwargs
    assert kwargs["Key"] == {"PK": "PERSON#p1", "SK": "METADATA"}
    assert set(kwargs["ExpressionAttributeNames"].values()) == {"firstName", "role", "updatedAt"}
    assert "bishop" in kwargs["ExpressionAttributeValues"].values()
    assert "attribute_not_exists(deletedAt)" in kwargs["ConditionExpression"]


def test_update_person_missing_returns_none(dynamo, table):
    table.update_item.side_effect = _client_error("ConditionalCheckFailedException", "UpdateItem")
    assert dynamo.update_person("p1", {"first_name": "Jonathan"}) is None
    dynamo.update_priority_placement("p1", "c2", PersonRole.PRIEST)
