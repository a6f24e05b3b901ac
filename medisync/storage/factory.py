from typing import Callable

from loguru import logger

from medisync.config import (
    AppConfig,
    AppointmentStoreBackend,
    CountryStoreBackend,
    country_database_config,
)
from medisync.domain.models import CountryISO
from medisync.storage.adapters.dynamodb import DynamoDBAppointmentTable
from medisync.storage.adapters.memory import InMemoryAppointmentTable, InMemoryPartitionRegistry
from medisync.storage.adapters.sql import SqlCountryPartition
from medisync.storage.appointments import AppointmentStore
from medisync.storage.countries import CountryStore


def _build_dynamodb(config: AppConfig) -> AppointmentStore:
    table = DynamoDBAppointmentTable(
        config.appointments_table,
        index_name=config.appointments_index,
        region=config.aws.region,
        endpoint_url=config.aws.endpoint_url,
    )
    return AppointmentStore(table)


def _build_memory_appointments(config: AppConfig) -> AppointmentStore:
    return AppointmentStore(InMemoryAppointmentTable())


def _sql_partition(country: CountryISO) -> SqlCountryPartition:
    db = country_database_config(country)
    return SqlCountryPartition.from_url(country, db.database_url, pool_size=db.connection_limit)


def _build_sql_countries(config: AppConfig) -> CountryStore:
    return CountryStore(_sql_partition)


def _build_memory_countries(config: AppConfig) -> CountryStore:
    return CountryStore(InMemoryPartitionRegistry())


_APPOINTMENT_BUILDERS: dict[AppointmentStoreBackend, Callable[[AppConfig], AppointmentStore]] = {
    AppointmentStoreBackend.DYNAMODB: _build_dynamodb,
    AppointmentStoreBackend.MEMORY: _build_memory_appointments,
}

_COUNTRY_BUILDERS: dict[CountryStoreBackend, Callable[[AppConfig], CountryStore]] = {
    CountryStoreBackend.SQL: _build_sql_countries,
    CountryStoreBackend.MEMORY: _build_memory_countries,
}


def build_appointment_store(config: AppConfig) -> AppointmentStore:
    """Build the appointment store selected by config."""
    backend = config.appointment_store_backend
    logger.info("Building appointment store with backend: {}", backend.value)
    return _APPOINTMENT_BUILDERS[backend](config)


def build_country_store(config: AppConfig) -> CountryStore:
    """Build the country store selected by config."""
    backend = config.country_store_backend
    logger.info("Building country store with backend: {}", backend.value)
    return _COUNTRY_BUILDERS[backend](config)
