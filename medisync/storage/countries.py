import datetime as dt
from typing import Callable

from loguru import logger

from medisync.domain.exceptions import (
    AppointmentValidationError,
    StorageReadError,
    StorageWriteError,
)
from medisync.domain.models import AppointmentRequest, CountryAppointmentRow, CountryISO
from medisync.storage.ports import CountryPartitionProtocol

PartitionFactory = Callable[[CountryISO], CountryPartitionProtocol]


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class CountryStore:
    """Per-country append-only log of accepted requests.

    Partitions are opened lazily on first use and reused afterwards. A row is
    only ever written to, and read from, the partition of its own country.
    """

    def __init__(
        self,
        partition_factory: PartitionFactory,
        *,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self._partition_factory = partition_factory
        self._clock = clock
        self._partitions: dict[CountryISO, CountryPartitionProtocol] = {}

    def partition(self, country: CountryISO) -> CountryPartitionProtocol:
        partition = self._partitions.get(country)
        if partition is None:
            logger.info("Opening country partition [{}]", country.value)
            partition = self._partition_factory(country)
            self._partitions[country] = partition
        return partition

    async def append(self, country: CountryISO, request: AppointmentRequest) -> None:
        """Insert one row into the partition of ``country``.

        Raises:
            AppointmentValidationError: If the request belongs to another country.
            StorageWriteError: If the insert fails.
        """
        if request.country_iso != country:
            raise AppointmentValidationError(
                [
                    f"countryISO: {request.country_iso.value} cannot be stored "
                    f"in the {country.value} partition"
                ]
            )

        try:
            await self.partition(country).insert(request, self._clock())
        except StorageWriteError:
            raise
        except Exception as exc:
            logger.error("[{}] Failed to store appointment", country.value)
            raise StorageWriteError(reason=str(exc), insured_id=request.insured_id) from exc

        logger.info(
            "[{}] Stored appointment for insuredId [{}]", country.value, request.insured_id
        )

    async def list_by_country(self, country: CountryISO) -> list[CountryAppointmentRow]:
        """Return every row of ``country``, newest first.

        Raises:
            StorageReadError: If the partition cannot be read.
        """
        try:
            return await self.partition(country).select_all()
        except StorageReadError:
            raise
        except Exception as exc:
            logger.error("[{}] Failed to list appointments", country.value)
            raise StorageReadError(reason=str(exc)) from exc

    async def close(self) -> None:
        for partition in self._partitions.values():
            await partition.close()
        self._partitions.clear()
