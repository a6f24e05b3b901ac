import asyncio
import json
from typing import Any

import boto3
from loguru import logger

from medisync.domain.exceptions import PublishError
from medisync.domain.models import AppointmentRequest

ROUTING_ATTRIBUTE = "countryISO"


class SNSAppointmentPublisher:
    """Publishes accepted requests to an SNS topic with a country routing attribute.

    Each country queue subscribes with a filter policy on ``countryISO``.
    """

    def __init__(
        self,
        topic_arn: str,
        *,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        if not topic_arn:
            raise ValueError("TOPIC_ARN must be configured for the SNS publisher")
        self._topic_arn = topic_arn
        self._client = client or boto3.client("sns", region_name=region, endpoint_url=endpoint_url)

    async def publish_appointment(self, request: AppointmentRequest) -> None:
        payload = request.to_payload()
        logger.debug("Publishing appointment: {}", payload)
        try:
            await asyncio.to_thread(
                self._client.publish,
                TopicArn=self._topic_arn,
                Message=json.dumps(payload),
                MessageAttributes={
                    ROUTING_ATTRIBUTE: {
                        "DataType": "String",
                        "StringValue": request.country_iso.value,
                    },
                },
            )
        except Exception as exc:
            raise PublishError(
                f"SNS publish failed: {exc}", country_iso=request.country_iso.value
            ) from exc

        logger.info(
            "Appointment for countryISO [{}] published successfully", request.country_iso.value
        )
