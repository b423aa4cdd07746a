"""
app/clients/dynamodb_client.py — DynamoDB-backed KeyValueStore
Tables are named "{DYNAMODB_TABLE_PREFIX}-{suffix}":
  deceased             PK=PERSON#<id>    SK=METADATA   GSI cemetery-index
  cemeteries           PK=CEMETERY#<id>  SK=METADATA   GSI archdiocese-index
  prayers              PK=PRAYER#<id>    SK=METADATA   GSI person-prayers-index,
                                                       cemetery-prayers-index (KEYS_ONLY)
  assignment-priority  PK=PERSON#<id>
  rate-limits          PK=<identifier>   SK=<hour bucket>   TTL attribute expiresAt
"""
from __future__ import annotations

import time
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from app.config import get_settings
from app.core.exceptions import StoreError, StoreResourceMissingError
from app.core.logging import log_store_operation
from app.models import AssignmentPriority, Cemetery, DeceasedPerson, PersonRole, Prayer
from app.utils.timezone import utc_now

T = TypeVar("T")

PERSON_PREFIX = "PERSON#"
CEMETERY_PREFIX = "CEMETERY#"
PRAYER_PREFIX = "PRAYER#"
SK_METADATA = "METADATA"

TABLE_DECEASED = "deceased"
TABLE_CEMETERIES = "cemeteries"
TABLE_PRAYERS = "prayers"
TABLE_PRIORITY = "assignment-priority"
TABLE_RATE_LIMITS = "rate-limits"


# ──────────────────────────────────────────────────────────────────────────────
# Item conversion
# ──────────────────────────────────────────────────────────────────────────────

_PERSON_FIELDS = {
    "person_id": "personId",
    "first_name": "firstName",
    "last_initial": "lastInitial",
    "year_of_death": "yearOfDeath",
    "role": "role",
    "cemetery_id": "cemeteryId",
    "cemetery_name": "cemeteryName",
    "prayer_count": "prayerCount",
    "last_prayed_at": "lastPrayedAt",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "deleted_at": "deletedAt",
}

_CEMETERY_FIELDS = {
    "cemetery_id": "cemeteryId",
    "name": "name",
    "address": "address",
    "city": "city",
    "state": "state",
    "zip_code": "zipCode",
    "latitude": "latitude",
    "longitude": "longitude",
    "archdiocese": "archdiocese",
    "total_deceased": "totalDeceased",
    "total_prayers": "totalPrayers",
    "unique_prayed_for": "uniquePrayedFor",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "deleted_at": "deletedAt",
}

_PRAYER_FIELDS = {
    "prayer_id": "prayerId",
    "person_id": "personId",
    "cemetery_id": "cemeteryId",
    "prayer_type": "prayerType",
    "session_id": "sessionId",
    "ip_address_hash": "ipAddressHash",
    "user_agent": "userAgent",
    "user_id": "userId",
    "metadata": "metadata",
    "created_at": "createdAt",
    "deleted_at": "deletedAt",
}

_PRIORITY_FIELDS = {
    "person_id": "personId",
    "prayer_count": "prayerCount",
    "last_prayed_at": "lastPrayedAt",
    "cemetery_id": "cemeteryId",
    "role": "role",
    "is_active": "isActive",
}


def _to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; numbers travel as Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


def _model_to_item(model: Any, fields: dict[str, str], **keys: str) -> dict[str, Any]:
    data = model.model_dump(mode="json")
    item: dict[str, Any] = dict(keys)
    for attr, name in fields.items():
        value = data.get(attr)
        if value is not None:  # absent attributes stand in for null
            item[name] = _to_dynamo(value)
    return item


def _item_to_dict(item: dict[str, Any], fields: dict[str, str]) -> dict[str, Any]:
    return {
        attr: _from_dynamo(item[name])
        for attr, name in fields.items()
        if name in item
    }


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def _attribute_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _iso(value)
    return _to_dynamo(value)


# ──────────────────────────────────────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────────────────────────────────────

class DynamoDBStore:
    def __init__(
        self,
        table_prefix: Optional[str] = None,
        region_name: Optional[str] = None,
        resource: Any = None,
    ) -> None:
        settings = get_settings()
        prefix = table_prefix or settings.dynamodb_table_prefix
        if not prefix:
            raise ValueError("DYNAMODB_TABLE_PREFIX is not set")
        self._prefix = prefix
        self._resource = resource or boto3.resource(
            "dynamodb", region_name=region_name or settings.aws_region
        )

    def table_name(self, suffix: str) -> str:
        return f"{self._prefix}-{suffix}"

    def _table(self, suffix: str):
        return self._resource.Table(self.table_name(suffix))

    def _call(self, suffix: str, operation: str, fn: Callable[[], T]) -> T:
        """Run one DynamoDB call, translating ClientError into StoreError."""
        table = self.table_name(suffix)
        started = time.monotonic()
        try:
            result = fn()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            latency_ms = (time.monotonic() - started) * 1000
            log_store_operation(table, operation, False, latency_ms, error=code or str(exc))
            if code == "ResourceNotFoundException":
                raise StoreResourceMissingError(f"Table {table} does not exist", table=table) from exc
            raise StoreError(f"{operation} on {table} failed: {code or exc}", table=table) from exc
        log_store_operation(table, operation, True, (time.monotonic() - started) * 1000)
        return result

    # ── Deceased ──────────────────────────────────────────────────────────────

    def _get_person_item(self, person_id: str) -> Optional[dict[str, Any]]:
        res = self._call(TABLE_DECEASED, "get", lambda: self._table(TABLE_DECEASED).get_item(
            Key={"PK": f"{PERSON_PREFIX}{person_id}", "SK": SK_METADATA},
        ))
        return res.get("Item")

    def get_person(self, person_id: str) -> Optional[DeceasedPerson]:
        item = self._get_person_item(person_id)
        if not item or item.get("deletedAt"):
            return None
        return DeceasedPerson(**_item_to_dict(item, _PERSON_FIELDS))

    def create_person(self, person: DeceasedPerson) -> DeceasedPerson:
        item = _model_to_item(
            person, _PERSON_FIELDS,
            PK=f"{PERSON_PREFIX}{person.person_id}", SK=SK_METADATA,
        )
        self._call(TABLE_DECEASED, "put", lambda: self._table(TABLE_DECEASED).put_item(Item=item))
        return person

    def soft_delete_person(self, person_id: str, deleted_at: datetime) -> bool:
        try:
            self._call(TABLE_DECEASED, "update", lambda: self._table(TABLE_DECEASED).update_item(
                Key={"PK": f"{PERSON_PREFIX}{person_id}", "SK": SK_METADATA},
                UpdateExpression="SET deletedAt = :ts, updatedAt = :ts",
                ConditionExpression="attribute_exists(PK) AND attribute_not_exists(deletedAt)",
                ExpressionAttributeValues={":ts": _iso(deleted_at)},
            ))
        except StoreError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    def update_person(self, person_id: str, updates: dict[str, Any]) -> Optional[DeceasedPerson]:
        fields = {**updates, "updated_at": utc_now()}
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        clauses: list[str] = []
        for n, (attr, value) in enumerate(fields.items()):
            names[f"#f{n}"] = _PERSON_FIELDS[attr]
            values[f":v{n}"] = _attribute_value(value)
            clauses.append(f"#f{n} = :v{n}")
        try:
            res = self._call(TABLE_DECEASED, "update", lambda: self._table(TABLE_DECEASED).update_item(
                Key={"PK": f"{PERSON_PREFIX}{person_id}", "SK": SK_METADATA},
                UpdateExpression="SET " + ", ".join(clauses),
                ConditionExpression="attribute_exists(PK) AND attribute_not_exists(deletedAt)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            ))
        except StoreError as exc:
            if _is_conditional_failure(exc):
                return None
            raise
        return DeceasedPerson(**_item_to_dict(res["Attributes"], _PERSON_FIELDS))

    def list_people_by_cemetery(self, cemetery_id: str) -> list[DeceasedPerson]:
        items = self._query_all(TABLE_DECEASED, {
            "IndexName": "cemetery-index",
            "KeyConditionExpression": Key("cemeteryId").eq(cemetery_id),
            "FilterExpression": Attr("deletedAt").not_exists(),
        })
        return [DeceasedPerson(**_item_to_dict(i, _PERSON_FIELDS)) for i in items]

    def increment_person_prayer_count(self, person_id: str, prayed_at: datetime) -> int:
        res = self._call(TABLE_DECEASED, "update", lambda: self._table(TABLE_DECEASED).update_item(
            Key={"PK": f"{PERSON_PREFIX}{person_id}", "SK": SK_METADATA},
            UpdateExpression=(
                "SET prayerCount = if_not_exists(prayerCount, :zero) + :inc, "
                "lastPrayedAt = :ts, updatedAt = :ts"
            ),
            ExpressionAttributeValues={":zero": 0, ":inc": 1, ":ts": _iso(prayed_at)},
            ReturnValues="UPDATED_NEW",
        ))
        return int(res["Attributes"]["prayerCount"])

    # ── Cemeteries ────────────────────────────────────────────────────────────

    def get_cemetery(self, cemetery_id: str) -> Optional[Cemetery]:
        res = self._call(TABLE_CEMETERIES, "get", lambda: self._table(TABLE_CEMETERIES).get_item(
            Key={"PK": f"{CEMETERY_PREFIX}{cemetery_id}", "SK": SK_METADATA},
        ))
        item = res.get("Item")
        if not item or item.get("deletedAt"):
            return None
        return Cemetery(**_item_to_dict(item, _CEMETERY_FIELDS))

    def create_cemetery(self, cemetery: Cemetery) -> Cemetery:
        item = _model_to_item(
            cemetery, _CEMETERY_FIELDS,
            PK=f"{CEMETERY_PREFIX}{cemetery.cemetery_id}", SK=SK_METADATA,
        )
        self._call(TABLE_CEMETERIES, "put", lambda: self._table(TABLE_CEMETERIES).put_item(Item=item))
        return cemetery

    def list_cemeteries_by_archdiocese(self, archdiocese: str) -> list[Cemetery]:
        items = self._query_all(TABLE_CEMETERIES, {
            "IndexName": "archdiocese-index",
            "KeyConditionExpression": Key("archdiocese").eq(archdiocese),
            "FilterExpression": Attr("deletedAt").not_exists(),
        })
        return [Cemetery(**_item_to_dict(i, _CEMETERY_FIELDS)) for i in items]

    def increment_cemetery_totals(
        self,
        cemetery_id: str,
        prayers: int = 0,
        unique_prayed_for: int = 0,
        deceased: int = 0,
    ) -> None:
        self._call(TABLE_CEMETERIES, "update", lambda: self._table(TABLE_CEMETERIES).update_item(
            Key={"PK": f"{CEMETERY_PREFIX}{cemetery_id}", "SK": SK_METADATA},
            UpdateExpression=(
                "SET totalPrayers = if_not_exists(totalPrayers, :zero) + :p, "
                "uniquePrayedFor = if_not_exists(uniquePrayedFor, :zero) + :u, "
                "totalDeceased = if_not_exists(totalDeceased, :zero) + :d, "
                "updatedAt = :ts"
            ),
            ExpressionAttributeValues={
                ":zero": 0,
                ":p": prayers,
                ":u": unique_prayed_for,
                ":d": deceased,
                ":ts": _iso(utc_now()),
            },
        ))

    # ── Prayers ───────────────────────────────────────────────────────────────

    def create_prayer(self, prayer: Prayer) -> Prayer:
        item = _model_to_item(
            prayer, _PRAYER_FIELDS,
            PK=f"{PRAYER_PREFIX}{prayer.prayer_id}", SK=SK_METADATA,
        )
        self._call(TABLE_PRAYERS, "put", lambda: self._table(TABLE_PRAYERS).put_item(Item=item))
        return prayer

    def _get_prayer_item(self, pk: str, sk: str) -> Optional[dict[str, Any]]:
        res = self._call(TABLE_PRAYERS, "get", lambda: self._table(TABLE_PRAYERS).get_item(
            Key={"PK": pk, "SK": sk},
        ))
        return res.get("Item")

    def get_prayer(self, prayer_id: str) -> Optional[Prayer]:
        item = self._get_prayer_item(f"{PRAYER_PREFIX}{prayer_id}", SK_METADATA)
        if not item or item.get("deletedAt"):
            return None
        return Prayer(**_item_to_dict(item, _PRAYER_FIELDS))

    def list_prayers_by_person(self, person_id: str, limit: int = 10) -> list[Prayer]:
        res = self._call(TABLE_PRAYERS, "query", lambda: self._table(TABLE_PRAYERS).query(
            IndexName="person-prayers-index",
            KeyConditionExpression=Key("personId").eq(person_id),
            ScanIndexForward=False,
            Limit=limit,
        ))
        return [
            Prayer(**_item_to_dict(i, _PRAYER_FIELDS))
            for i in res.get("Items", [])
            if not i.get("deletedAt")
        ]

    def list_prayers_by_cemetery(self, cemetery_id: str, limit: int = 5) -> list[Prayer]:
        # cemetery-prayers-index is KEYS_ONLY: resolve each key to the full item
        res = self._call(TABLE_PRAYERS, "query", lambda: self._table(TABLE_PRAYERS).query(
            IndexName="cemetery-prayers-index",
            KeyConditionExpression=Key("cemeteryId").eq(cemetery_id),
            ScanIndexForward=False,
            Limit=limit,
        ))
        prayers: list[Prayer] = []
        for row in res.get("Items", []):
            item = self._get_prayer_item(row["PK"], row["SK"])
            if item and not item.get("deletedAt"):
                prayers.append(Prayer(**_item_to_dict(item, _PRAYER_FIELDS)))
        return prayers

    # ── Assignment priority ───────────────────────────────────────────────────

    def get_priority(self, person_id: str) -> Optional[AssignmentPriority]:
        res = self._call(TABLE_PRIORITY, "get", lambda: self._table(TABLE_PRIORITY).get_item(
            Key={"PK": f"{PERSON_PREFIX}{person_id}"},
        ))
        item = res.get("Item")
        if not item:
            return None
        return AssignmentPriority(**_item_to_dict(item, _PRIORITY_FIELDS))

    def put_priority(self, record: AssignmentPriority) -> None:
        item = _model_to_item(record, _PRIORITY_FIELDS, PK=f"{PERSON_PREFIX}{record.person_id}")
        self._call(TABLE_PRIORITY, "put", lambda: self._table(TABLE_PRIORITY).put_item(Item=item))

    def update_priority_stats(
        self,
        person_id: str,
        prayer_count: int,
        last_prayed_at: datetime,
    ) -> None:
        try:
            self._call(TABLE_PRIORITY, "update", lambda: self._table(TABLE_PRIORITY).update_item(
                Key={"PK": f"{PERSON_PREFIX}{person_id}"},
                UpdateExpression="SET prayerCount = :pc, lastPrayedAt = :ts",
                ConditionExpression="attribute_exists(PK) AND prayerCount < :pc",
                ExpressionAttributeValues={":pc": prayer_count, ":ts": _iso(last_prayed_at)},
            ))
        except StoreError as exc:
            # A newer count is already stored (or the record is gone)
            if not _is_conditional_failure(exc):
                raise

    def set_priority_active(self, person_id: str, is_active: bool) -> None:
        try:
            self._call(TABLE_PRIORITY, "update", lambda: self._table(TABLE_PRIORITY).update_item(
                Key={"PK": f"{PERSON_PREFIX}{person_id}"},
                UpdateExpression="SET isActive = :active",
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeValues={":active": is_active},
            ))
        except StoreError as exc:
            if not _is_conditional_failure(exc):
                raise

    def update_priority_placement(self, person_id: str, cemetery_id: str, role: PersonRole) -> None:
        try:
            self._call(TABLE_PRIORITY, "update", lambda: self._table(TABLE_PRIORITY).update_item(
                Key={"PK": f"{PERSON_PREFIX}{person_id}"},
                UpdateExpression="SET cemeteryId = :cid, #role = :role",
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeNames={"#role": "role"},
                ExpressionAttributeValues={":cid": cemetery_id, ":role": role.value},
            ))
        except StoreError as exc:
            if not _is_conditional_failure(exc):
                raise

    def query_active_candidates(self, limit: int = 100) -> list[AssignmentPriority]:
        # Scan Limit applies before the filter, so keep paging until `limit` matches
        table = self._table(TABLE_PRIORITY)
        scan_args: dict[str, Any] = {"FilterExpression": Attr("isActive").eq(True), "Limit": limit}
        records: list[AssignmentPriority] = []
        while len(records) < limit:
            res = self._call(TABLE_PRIORITY, "scan", lambda: table.scan(**scan_args))
            for item in res.get("Items", []):
                records.append(AssignmentPriority(**_item_to_dict(item, _PRIORITY_FIELDS)))
            last_key = res.get("LastEvaluatedKey")
            if not last_key:
                break
            scan_args["ExclusiveStartKey"] = last_key
        return records[:limit]

    # ── Rate-limit counters ───────────────────────────────────────────────────

    def get_counter(self, identifier: str, window_key: str) -> int:
        res = self._call(TABLE_RATE_LIMITS, "get", lambda: self._table(TABLE_RATE_LIMITS).get_item(
            Key={"PK": identifier, "SK": window_key},
        ))
        item = res.get("Item") or {}
        return int(item.get("requestCount", 0))

    def increment_counter(self, identifier: str, window_key: str, expires_at: int) -> int:
        res = self._call(TABLE_RATE_LIMITS, "update", lambda: self._table(TABLE_RATE_LIMITS).update_item(
            Key={"PK": identifier, "SK": window_key},
            UpdateExpression="SET requestCount = if_not_exists(requestCount, :zero) + :inc, expiresAt = :ttl",
            ExpressionAttributeValues={":zero": 0, ":inc": 1, ":ttl": expires_at},
            ReturnValues="UPDATED_NEW",
        ))
        return int(res["Attributes"]["requestCount"])

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _query_all(self, suffix: str, query_args: dict[str, Any]) -> list[dict[str, Any]]:
        table = self._table(suffix)
        items: list[dict[str, Any]] = []
        while True:
            res = self._call(suffix, "query", lambda: table.query(**query_args))
            items.extend(res.get("Items", []))
            last_key = res.get("LastEvaluatedKey")
            if not last_key:
                return items
            query_args = {**query_args, "ExclusiveStartKey": last_key}


def _is_conditional_failure(exc: StoreError) -> bool:
    cause = exc.__cause__
    return (
        isinstance(cause, ClientError)
        and cause.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"
    )
