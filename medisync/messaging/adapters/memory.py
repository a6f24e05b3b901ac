import itertools
import json
from dataclasses import dataclass

from loguru import logger

from medisync.domain.models import (
    AppointmentRequest,
    BatchResponse,
    CountryISO,
    ProcessedEventMessage,
    QueueEvent,
    QueueRecord,
)
from medisync.messaging.adapters.eventbridge import DETAIL_TYPE
from medisync.messaging.adapters.sns import ROUTING_ATTRIBUTE

_message_ids = itertools.count(1)


@dataclass
class _Queued:
    body: str
    receives: int = 0


class MemoryQueue:
    """At-least-once queue with a redrive limit, for local runs and tests.

    ``receive`` hands out everything visible as one batch; ``settle`` deletes
    the handled messages and makes the failed ones visible again, moving them
    to ``dead_letters`` once they were received ``max_receives`` times.
    """

    def __init__(self, name: str, *, max_receives: int = 3) -> None:
        self.name = name
        self.max_receives = max_receives
        self.dead_letters: list[str] = []
        self._visible: list[_Queued] = []
        self._in_flight: dict[str, _Queued] = {}

    def __len__(self) -> int:
        return len(self._visible)

    def send(self, body: str) -> None:
        self._visible.append(_Queued(body))

    def receive(self) -> QueueEvent:
        records: list[QueueRecord] = []
        for item in self._visible:
            item.receives += 1
            message_id = f"{self.name}-{next(_message_ids)}"
            self._in_flight[message_id] = item
            records.append(QueueRecord(message_id=message_id, body=item.body))
        self._visible = []
        return QueueEvent(records=records)

    def settle(self, response: BatchResponse) -> None:
        failed = set(response.failed_ids)
        for message_id, item in self._in_flight.items():
            if message_id not in failed:
                continue
            if item.receives >= self.max_receives:
                logger.warning("[{}] Message moved to dead letters: {}", self.name, item.body)
                self.dead_letters.append(item.body)
            else:
                self._visible.append(item)
        self._in_flight = {}


class InMemoryTopic:
    """In-memory fan-out topic with one attribute-filtered queue per country.

    Set ``publish_error`` to make the next publish raise. ``published`` records
    every request handed to the topic.
    """

    def __init__(self, *, max_receives: int = 3) -> None:
        self.published: list[AppointmentRequest] = []
        self.publish_error: Exception | None = None
        self.queues: dict[CountryISO, MemoryQueue] = {
            country: MemoryQueue(f"appointment-{country.value.lower()}", max_receives=max_receives)
            for country in CountryISO
        }

    async def publish_appointment(self, request: AppointmentRequest) -> None:
        if self.publish_error:
            raise self.publish_error
        self.published.append(request)

        attributes = {ROUTING_ATTRIBUTE: request.country_iso.value}
        body = json.dumps(request.to_payload())
        for country, queue in self.queues.items():
            if attributes[ROUTING_ATTRIBUTE] == country.value:
                queue.send(body)


class InMemoryEventBus:
    """In-memory processed-event bus delivering EventBridge-shaped envelopes."""

    def __init__(self, source: str = "appointment", *, max_receives: int = 3) -> None:
        self.source = source
        self.emitted: list[ProcessedEventMessage] = []
        self.emit_error: Exception | None = None
        self.queue = MemoryQueue("appointment-status", max_receives=max_receives)

    async def emit_processed(self, message: ProcessedEventMessage) -> None:
        if self.emit_error:
            raise self.emit_error
        self.emitted.append(message)
        envelope = {
            "source": self.source,
            "detail-type": DETAIL_TYPE,
            "detail": message.to_payload(),
        }
        self.queue.send(json.dumps(envelope))
