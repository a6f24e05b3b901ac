import asyncio
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from loguru import logger

from medisync.domain.models import AppointmentRecord, AppointmentStatus


def _to_record(item: dict[str, Any]) -> AppointmentRecord:
    """Build a record from a DynamoDB item (numbers come back as Decimal)."""
    return AppointmentRecord(
        id=str(item["id"]),
        insured_id=str(item["insuredId"]),
        schedule_id=int(item["scheduleId"]),
        country_iso=str(item["countryISO"]),
        status=str(item["status"]),
        created_at=str(item["createdAt"]),
        updated_at=str(item["updatedAt"]),
    )


class DynamoDBAppointmentTable:
    """Appointment table on DynamoDB, keyed by ``id`` with an insuredId GSI."""

    def __init__(
        self,
        table_name: str,
        *,
        index_name: str = "insuredId-index",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        table: Any = None,
    ) -> None:
        if table is None:
            resource = boto3.resource("dynamodb", region_name=region, endpoint_url=endpoint_url)
            table = resource.Table(table_name)
        self._table = table
        self._index_name = index_name

    async def put(self, record: AppointmentRecord) -> None:
        item = record.model_dump(mode="json", by_alias=True)
        await asyncio.to_thread(self._table.put_item, Item=item, ReturnValues="NONE")

    async def query_by_insured_id(self, insured_id: str) -> list[AppointmentRecord]:
        kwargs: dict[str, Any] = {
            "IndexName": self._index_name,
            "KeyConditionExpression": Key("insuredId").eq(insured_id),
        }
        items: list[dict[str, Any]] = []
        while True:
            resp: dict[str, Any] = await asyncio.to_thread(self._table.query, **kwargs)
            items.extend(resp.get("Items") or [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return [_to_record(item) for item in items]

    async def update_status_if(
        self,
        record_id: str,
        expected: AppointmentStatus,
        new: AppointmentStatus,
        updated_at: str,
    ) -> AppointmentRecord | None:
        try:
            resp: dict[str, Any] = await asyncio.to_thread(
                self._table.update_item,
                Key={"id": record_id},
                UpdateExpression="SET #s = :new, updatedAt = :now",
                ConditionExpression="#s = :expected",
                ExpressionAttributeNames={"#s": "status"},
                ExpressionAttributeValues={
                    ":expected": expected.value,
                    ":new": new.value,
                    ":now": updated_at,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                logger.debug("Conditional update rejected for appointment {}", record_id)
                return None
            raise

        attributes: dict[str, Any] | None = resp.get("Attributes")
        return _to_record(attributes) if attributes else None
