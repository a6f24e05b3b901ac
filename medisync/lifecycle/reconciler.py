from collections.abc import Mapping
from typing import Any

from loguru import logger

from medisync.domain.models import BatchResponse, QueueEvent, QueueRecord
from medisync.domain.validation import parse_processed_event
from medisync.lifecycle.batch import process_batch
from medisync.storage.ports import AbstractAppointmentStore


class StatusReconciler:
    """Completes pending appointments from processed-event batches.

    Finding nothing pending is a normal outcome (duplicate delivery, already
    completed, unknown appointment) and is never reported as a failure. Only
    malformed envelopes and storage errors are.
    """

    def __init__(self, store: AbstractAppointmentStore) -> None:
        self._store = store

    async def _handle(self, record: QueueRecord) -> None:
        message = parse_processed_event(record.body)
        completed = await self._store.complete_if_pending(message)
        if completed is None:
            logger.info(
                "No pending appointment for message {} (insuredId [{}]), skipping",
                record.message_id,
                message.insured_id,
            )

    async def process(self, event: QueueEvent | Mapping[str, Any]) -> BatchResponse:
        return await process_batch(event, self._handle, label="status")
