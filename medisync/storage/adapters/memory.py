import datetime as dt

from medisync.domain.models import (
    AppointmentRecord,
    AppointmentRequest,
    AppointmentStatus,
    CountryAppointmentRow,
    CountryISO,
)


class InMemoryAppointmentTable:
    """In-memory implementation of AppointmentTableProtocol.

    Set ``put_error``, ``query_error`` or ``update_error`` to make the
    corresponding method raise. ``records`` maps id to the stored record.
    """

    def __init__(self) -> None:
        self.records: dict[str, AppointmentRecord] = {}
        self.update_calls: list[str] = []

        self.put_error: Exception | None = None
        self.query_error: Exception | None = None
        self.update_error: Exception | None = None

    async def put(self, record: AppointmentRecord) -> None:
        if self.put_error:
            raise self.put_error
        self.records[record.id] = record

    async def query_by_insured_id(self, insured_id: str) -> list[AppointmentRecord]:
        if self.query_error:
            raise self.query_error
        return [r for r in self.records.values() if r.insured_id == insured_id]

    async def update_status_if(
        self,
        record_id: str,
        expected: AppointmentStatus,
        new: AppointmentStatus,
        updated_at: str,
    ) -> AppointmentRecord | None:
        if self.update_error:
            raise self.update_error
        self.update_calls.append(record_id)

        # No await between the check and the write.
        current = self.records.get(record_id)
        if current is None or current.status != expected:
            return None
        updated = current.model_copy(update={"status": new, "updated_at": updated_at})
        self.records[record_id] = updated
        return updated


class InMemoryCountryPartition:
    """In-memory implementation of CountryPartitionProtocol for one country."""

    def __init__(self, country: CountryISO) -> None:
        self.country = country
        self.rows: list[CountryAppointmentRow] = []
        self.closed: bool = False

        self.insert_error: Exception | None = None
        self.select_error: Exception | None = None

    async def insert(self, request: AppointmentRequest, created_at: dt.datetime) -> None:
        if self.insert_error:
            raise self.insert_error
        self.rows.append(
            CountryAppointmentRow(
                insured_id=request.insured_id,
                schedule_id=request.schedule_id,
                country_iso=request.country_iso,
                created_at=created_at,
            )
        )

    async def select_all(self) -> list[CountryAppointmentRow]:
        if self.select_error:
            raise self.select_error
        # Rows inserted later win ties on created_at.
        return sorted(reversed(self.rows), key=lambda r: r.created_at, reverse=True)

    async def close(self) -> None:
        self.closed = True


class InMemoryPartitionRegistry:
    """Partition factory that hands out (and remembers) in-memory partitions."""

    def __init__(self) -> None:
        self.partitions: dict[CountryISO, InMemoryCountryPartition] = {}

    def __call__(self, country: CountryISO) -> InMemoryCountryPartition:
        if country not in self.partitions:
            self.partitions[country] = InMemoryCountryPartition(country)
        return self.partitions[country]
