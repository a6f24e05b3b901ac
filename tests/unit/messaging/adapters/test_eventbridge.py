import json
from unittest.mock import MagicMock

import pytest

from medisync.domain.exceptions import PublishError
from medisync.domain.models import CountryISO, ProcessedEventMessage
from medisync.messaging.adapters.eventbridge import EventBridgeProcessedEmitter


@pytest.fixture
def events_client() -> MagicMock:
    client = MagicMock()
    client.put_events.return_value = {"FailedEntryCount": 0, "Entries": [{"EventId": "e-1"}]}
    return client


@pytest.fixture
def emitter(events_client: MagicMock) -> EventBridgeProcessedEmitter:
    return EventBridgeProcessedEmitter(event_bus_name="appointments", client=events_client)


@pytest.fixture
def message() -> ProcessedEventMessage:
    return ProcessedEventMessage(insured_id="12345", schedule_id=99, country_iso=CountryISO.CL)


class TestEmitProcessed:
    @pytest.mark.asyncio
    async def test_puts_appointment_processed_event(
        self,
        emitter: EventBridgeProcessedEmitter,
        events_client: MagicMock,
        message: ProcessedEventMessage,
    ) -> None:
        await emitter.emit_processed(message)

        (entry,) = events_client.put_events.call_args.kwargs["Entries"]
        assert entry["Source"] == "appointment"
        assert entry["DetailType"] == "AppointmentProcessed"
        assert entry["EventBusName"] == "appointments"
        assert json.loads(entry["Detail"]) == {
            "insuredId": "12345",
            "scheduleId": 99,
            "countryISO": "CL",
        }

    @pytest.mark.asyncio
    async def test_rejected_entry_raises(
        self,
        emitter: EventBridgeProcessedEmitter,
        events_client: MagicMock,
        message: ProcessedEventMessage,
    ) -> None:
        events_client.put_events.return_value = {
            "FailedEntryCount": 1,
            "Entries": [{"ErrorCode": "InternalFailure", "ErrorMessage": "try again"}],
        }

        with pytest.raises(PublishError, match="try again"):
            await emitter.emit_processed(message)

    @pytest.mark.asyncio
    async def test_wraps_transport_failure(
        self,
        emitter: EventBridgeProcessedEmitter,
        events_client: MagicMock,
        message: ProcessedEventMessage,
    ) -> None:
        events_client.put_events.side_effect = RuntimeError("socket closed")

        with pytest.raises(PublishError, match="socket closed"):
            await emitter.emit_processed(message)
