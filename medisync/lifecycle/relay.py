import asyncio

from loguru import logger

from medisync.domain.models import CountryISO
from medisync.lifecycle.country import CountryBatchProcessor
from medisync.lifecycle.reconciler import StatusReconciler
from medisync.messaging.adapters.memory import InMemoryEventBus, InMemoryTopic


class LocalRelay:
    """Drives the in-memory transport through the consumers inside one process."""

    def __init__(
        self,
        topic: InMemoryTopic,
        bus: InMemoryEventBus,
        processors: dict[CountryISO, CountryBatchProcessor],
        reconciler: StatusReconciler,
    ) -> None:
        self._topic = topic
        self._bus = bus
        self._processors = processors
        self._reconciler = reconciler

    async def pump_once(self) -> int:
        """Deliver one batch to every consumer with visible messages.

        Returns the number of messages delivered.
        """
        delivered = 0
        for country, processor in self._processors.items():
            queue = self._topic.queues[country]
            if not len(queue):
                continue
            event = queue.receive()
            queue.settle(await processor.process(event))
            delivered += len(event.records)

        if len(self._bus.queue):
            event = self._bus.queue.receive()
            self._bus.queue.settle(await self._reconciler.process(event))
            delivered += len(event.records)
        return delivered

    async def drain(self, max_rounds: int = 10) -> int:
        """Pump until every queue is empty or ``max_rounds`` is reached."""
        total = 0
        for _ in range(max_rounds):
            delivered = await self.pump_once()
            total += delivered
            if not delivered:
                break
        return total

    async def run(self, interval: float) -> None:
        logger.info("Local relay started (interval={}s)", interval)
        try:
            while True:
                await self.pump_once()
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Local relay stopped")
            raise
