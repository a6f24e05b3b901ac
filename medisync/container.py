from dataclasses import dataclass, field

from loguru import logger

from medisync.config import AppConfig
from medisync.domain.models import CountryISO
from medisync.lifecycle.country import CountryBatchProcessor
from medisync.lifecycle.intake import IntakeOrchestrator
from medisync.lifecycle.reconciler import StatusReconciler
from medisync.lifecycle.relay import LocalRelay
from medisync.logging_setup import configure_logging
from medisync.messaging.adapters.memory import InMemoryEventBus, InMemoryTopic
from medisync.messaging.factory import build_messaging
from medisync.messaging.ports import AppointmentPublisherProtocol, ProcessedEventEmitterProtocol
from medisync.storage.countries import CountryStore
from medisync.storage.factory import build_appointment_store, build_country_store
from medisync.storage.ports import AbstractAppointmentStore


@dataclass
class Services:
    """Everything one process needs, wired from a single configuration."""

    config: AppConfig
    appointments: AbstractAppointmentStore
    countries: CountryStore
    publisher: AppointmentPublisherProtocol
    emitter: ProcessedEventEmitterProtocol
    intake: IntakeOrchestrator = field(init=False)
    processors: dict[CountryISO, CountryBatchProcessor] = field(init=False)
    reconciler: StatusReconciler = field(init=False)

    def __post_init__(self) -> None:
        self.intake = IntakeOrchestrator(self.appointments, self.publisher)
        self.processors = {
            country: CountryBatchProcessor(country, self.countries, self.emitter)
            for country in CountryISO
        }
        self.reconciler = StatusReconciler(self.appointments)

    def local_relay(self) -> LocalRelay | None:
        """Return a relay when both transports are in-memory, else None."""
        if isinstance(self.publisher, InMemoryTopic) and isinstance(self.emitter, InMemoryEventBus):
            return LocalRelay(self.publisher, self.emitter, self.processors, self.reconciler)
        return None

    async def close(self) -> None:
        await self.countries.close()


def build_services(config: AppConfig) -> Services:
    publisher, emitter = build_messaging(config)
    return Services(
        config=config,
        appointments=build_appointment_store(config),
        countries=build_country_store(config),
        publisher=publisher,
        emitter=emitter,
    )


_services: Services | None = None


def get_services() -> Services:
    """Return the process-wide services, building them on first use."""
    global _services
    if _services is None:
        config = AppConfig()
        configure_logging(config.log_level)
        logger.info("Initializing services")
        _services = build_services(config)
    return _services


def set_services(services: Services | None) -> None:
    """Replace (or with None, forget) the process-wide services."""
    global _services
    _services = services
