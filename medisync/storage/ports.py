import datetime as dt
from abc import ABC, abstractmethod
from typing import Protocol

from medisync.domain.models import (
    AppointmentRecord,
    AppointmentRequest,
    AppointmentStatus,
    CountryAppointmentRow,
)


class AbstractAppointmentStore(ABC):
    """Durable appointment records with an insuredId lookup and a guarded completion."""

    @abstractmethod
    async def create(self, request: AppointmentRequest) -> AppointmentRecord:
        """Store a new pending appointment.

        Args:
            request: The validated appointment request.

        Returns:
            The stored record with its freshly assigned ID.

        Raises:
            StorageWriteError: If the record cannot be written. Callers must not
                assume it was partially stored.
        """

    @abstractmethod
    async def find_by_insured_id(self, insured_id: str) -> list[AppointmentRecord]:
        """Return every appointment of an insured, in any status.

        Raises:
            StorageReadError: If the lookup fails.
        """

    @abstractmethod
    async def complete_if_pending(self, request: AppointmentRequest) -> AppointmentRecord | None:
        """Move the matching pending appointment to completed.

        Args:
            request: The (insuredId, scheduleId, countryISO) correlation triple.

        Returns:
            The completed record, or None when no appointment was pending for the
            triple (unknown, or already completed by an earlier delivery).

        Raises:
            StorageReadError: If the candidates cannot be read.
            StorageWriteError: If the conditional write fails for any reason
                other than the precondition.
        """


class AppointmentTableProtocol(Protocol):
    """Low-level keyed table holding appointment records."""

    async def put(self, record: AppointmentRecord) -> None:
        """Write a record unconditionally."""
        ...

    async def query_by_insured_id(self, insured_id: str) -> list[AppointmentRecord]:
        """Read all records of an insured through the secondary index."""
        ...

    async def update_status_if(
        self,
        record_id: str,
        expected: AppointmentStatus,
        new: AppointmentStatus,
        updated_at: str,
    ) -> AppointmentRecord | None:
        """Set ``status`` to ``new`` only if it is still ``expected`` at write time.

        Returns the updated record, or None if the precondition did not hold.
        """
        ...


class CountryPartitionProtocol(Protocol):
    """Append-only log of accepted requests for a single country."""

    async def insert(self, request: AppointmentRequest, created_at: dt.datetime) -> None:
        """Insert one row."""
        ...

    async def select_all(self) -> list[CountryAppointmentRow]:
        """Return every row of the partition, newest first."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...
