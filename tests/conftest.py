import itertools

import pytest

from medisync.config import AppConfig
from medisync.container import Services
from medisync.domain.models import AppointmentRequest, CountryISO
from medisync.messaging.adapters.memory import InMemoryEventBus, InMemoryTopic
from medisync.storage.adapters.memory import InMemoryAppointmentTable, InMemoryPartitionRegistry
from medisync.storage.appointments import AppointmentStore
from medisync.storage.countries import CountryStore


@pytest.fixture
def appointment_table() -> InMemoryAppointmentTable:
    return InMemoryAppointmentTable()


@pytest.fixture
def appointment_store(appointment_table: InMemoryAppointmentTable) -> AppointmentStore:
    ticks = itertools.count(1_700_000_000_000)
    ids = (f"appt-{n}" for n in itertools.count(1))
    return AppointmentStore(
        appointment_table, clock=lambda: next(ticks), id_factory=lambda: next(ids)
    )


@pytest.fixture
def partitions() -> InMemoryPartitionRegistry:
    return InMemoryPartitionRegistry()


@pytest.fixture
def country_store(partitions: InMemoryPartitionRegistry) -> CountryStore:
    return CountryStore(partitions)


@pytest.fixture
def topic() -> InMemoryTopic:
    return InMemoryTopic()


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def services(
    appointment_store: AppointmentStore,
    country_store: CountryStore,
    topic: InMemoryTopic,
    bus: InMemoryEventBus,
) -> Services:
    return Services(
        config=AppConfig(),
        appointments=appointment_store,
        countries=country_store,
        publisher=topic,
        emitter=bus,
    )


@pytest.fixture
def pe_request() -> AppointmentRequest:
    return AppointmentRequest(insured_id="01234", schedule_id=123, country_iso=CountryISO.PE)
