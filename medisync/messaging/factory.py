from typing import Callable

from loguru import logger

from medisync.config import AppConfig, MessagingBackend
from medisync.messaging.adapters.eventbridge import EventBridgeProcessedEmitter
from medisync.messaging.adapters.memory import InMemoryEventBus, InMemoryTopic
from medisync.messaging.adapters.sns import SNSAppointmentPublisher
from medisync.messaging.ports import AppointmentPublisherProtocol, ProcessedEventEmitterProtocol

Messaging = tuple[AppointmentPublisherProtocol, ProcessedEventEmitterProtocol]


def _build_aws(config: AppConfig) -> Messaging:
    publisher = SNSAppointmentPublisher(
        config.topic_arn,
        region=config.aws.region,
        endpoint_url=config.aws.endpoint_url,
    )
    emitter = EventBridgeProcessedEmitter(
        event_bus_name=config.event_bus_name,
        source=config.event_source,
        region=config.aws.region,
        endpoint_url=config.aws.endpoint_url,
    )
    return publisher, emitter


def _build_memory(config: AppConfig) -> Messaging:
    return InMemoryTopic(), InMemoryEventBus(source=config.event_source)


_BUILDERS: dict[MessagingBackend, Callable[[AppConfig], Messaging]] = {
    MessagingBackend.AWS: _build_aws,
    MessagingBackend.MEMORY: _build_memory,
}


def build_messaging(config: AppConfig) -> Messaging:
    """Build the fan-out publisher and the processed-event emitter selected by config."""
    backend = config.messaging_backend
    logger.info("Building messaging with backend: {}", backend.value)
    return _BUILDERS[backend](config)
