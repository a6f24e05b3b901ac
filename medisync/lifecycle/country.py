from collections.abc import Mapping
from typing import Any

from loguru import logger

from medisync.domain.models import (
    BatchResponse,
    CountryISO,
    ProcessedEventMessage,
    QueueEvent,
    QueueRecord,
)
from medisync.domain.validation import parse_routed_message
from medisync.lifecycle.batch import process_batch
from medisync.messaging.ports import ProcessedEventEmitterProtocol
from medisync.storage.countries import CountryStore


class CountryBatchProcessor:
    """Consumes the routed messages of one country.

    Each message is validated again, appended to the country partition and
    followed by a processed event. A failed emit after a successful append is
    reported as a failure; the redelivered duplicate is absorbed downstream by
    the conditional completion.
    """

    def __init__(
        self,
        country: CountryISO,
        store: CountryStore,
        emitter: ProcessedEventEmitterProtocol,
    ) -> None:
        self.country = country
        self._store = store
        self._emitter = emitter

    async def _handle(self, record: QueueRecord) -> None:
        request = parse_routed_message(record.body)
        await self._store.append(self.country, request)
        message = ProcessedEventMessage.model_validate(request.to_payload())
        await self._emitter.emit_processed(message)
        logger.debug("[{}] Message {} processed", self.country.value, record.message_id)

    async def process(self, event: QueueEvent | Mapping[str, Any]) -> BatchResponse:
        return await process_batch(event, self._handle, label=self.country.value)
