import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from loguru import logger

from medisync.domain.exceptions import AppointmentValidationError
from medisync.domain.models import BatchItemFailure, BatchResponse, QueueEvent, QueueRecord

ItemHandler = Callable[[QueueRecord], Awaitable[None]]


def as_queue_event(event: QueueEvent | Mapping[str, Any]) -> QueueEvent:
    if isinstance(event, QueueEvent):
        return event
    return QueueEvent.model_validate(event)


async def _attempt(record: QueueRecord, handle: ItemHandler, label: str) -> bool:
    """Run one item. Returns False when the item must be redelivered."""
    try:
        await handle(record)
    except AppointmentValidationError as exc:
        logger.warning(
            "[{}] Rejected message {}: {}", label, record.message_id, "; ".join(exc.violations)
        )
        return False
    except Exception:
        logger.exception("[{}] Failed to process message {}", label, record.message_id)
        return False
    return True


async def process_batch(
    event: QueueEvent | Mapping[str, Any],
    handle: ItemHandler,
    *,
    label: str,
) -> BatchResponse:
    """Apply ``handle`` to every message of a batch independently.

    A failing message never prevents its siblings from being attempted.
    Failed message ids are reported in message order so the transport can
    redeliver exactly those.
    """
    records = as_queue_event(event).records
    results = await asyncio.gather(*(_attempt(r, handle, label) for r in records))

    failures = [
        BatchItemFailure(item_identifier=record.message_id)
        for record, ok in zip(records, results)
        if not ok
    ]
    logger.info(
        "[{}] Batch processed: {} message(s), {} failure(s)", label, len(records), len(failures)
    )
    return BatchResponse(batch_item_failures=failures)
