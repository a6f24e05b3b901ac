import asyncio
import json
from typing import Any

import boto3
from loguru import logger

from medisync.domain.exceptions import PublishError
from medisync.domain.models import ProcessedEventMessage

DETAIL_TYPE = "AppointmentProcessed"


class EventBridgeProcessedEmitter:
    """Emits ``AppointmentProcessed`` events onto an EventBridge bus."""

    def __init__(
        self,
        *,
        event_bus_name: str = "default",
        source: str = "appointment",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        self._event_bus_name = event_bus_name
        self._source = source
        self._client = client or boto3.client(
            "events", region_name=region, endpoint_url=endpoint_url
        )

    async def emit_processed(self, message: ProcessedEventMessage) -> None:
        payload = message.to_payload()
        logger.debug("Emitting processed event: {}", payload)
        try:
            resp: dict[str, Any] = await asyncio.to_thread(
                self._client.put_events,
                Entries=[
                    {
                        "Source": self._source,
                        "DetailType": DETAIL_TYPE,
                        "Detail": json.dumps(payload),
                        "EventBusName": self._event_bus_name,
                    }
                ],
            )
        except Exception as exc:
            raise PublishError(
                f"EventBridge put_events failed: {exc}", country_iso=message.country_iso.value
            ) from exc

        # put_events reports per-entry rejections in the response body.
        if resp.get("FailedEntryCount"):
            entries: list[dict[str, Any]] = resp.get("Entries") or []
            reason = "; ".join(
                e.get("ErrorMessage", e.get("ErrorCode", "")) for e in entries if "ErrorCode" in e
            )
            raise PublishError(
                f"EventBridge rejected the event: {reason or 'unknown error'}",
                country_iso=message.country_iso.value,
            )

        logger.info("AppointmentProcessed event emitted successfully")
