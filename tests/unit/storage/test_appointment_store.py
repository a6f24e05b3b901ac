import pytest

from medisync.domain.exceptions import StorageReadError, StorageWriteError
from medisync.domain.models import AppointmentRequest, AppointmentStatus, CountryISO
from medisync.storage.adapters.memory import InMemoryAppointmentTable
from medisync.storage.appointments import AppointmentStore

# Fixtures (appointment_table, appointment_store, pe_request) provided by tests/conftest.py


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_pending_record(
        self, appointment_store: AppointmentStore, pe_request: AppointmentRequest
    ) -> None:
        record = await appointment_store.create(pe_request)

        assert record.id == "appt-1"
        assert record.status == AppointmentStatus.PENDING
        assert record.created_at == record.updated_at == "1700000000000"

    @pytest.mark.asyncio
    async def test_created_record_is_found_by_insured_id(
        self, appointment_store: AppointmentStore, pe_request: AppointmentRequest
    ) -> None:
        created = await appointment_store.create(pe_request)

        found = await appointment_store.find_by_insured_id("01234")

        assert found == [created]
        assert found[0].matches(pe_request)

    @pytest.mark.asyncio
    async def test_wraps_write_failure(
        self,
        appointment_store: AppointmentStore,
        appointment_table: InMemoryAppointmentTable,
        pe_request: AppointmentRequest,
    ) -> None:
        appointment_table.put_error = RuntimeError("throttled")

        with pytest.raises(StorageWriteError, match="throttled"):
            await appointment_store.create(pe_request)

        assert appointment_table.records == {}


class TestFindByInsuredId:
    @pytest.mark.asyncio
    async def test_returns_empty_for_unknown_insured(
        self, appointment_store: AppointmentStore
    ) -> None:
        assert await appointment_store.find_by_insured_id("99999") == []

    @pytest.mark.asyncio
    async def test_wraps_read_failure(
        self, appointment_store: AppointmentStore, appointment_table: InMemoryAppointmentTable
    ) -> None:
        appointment_table.query_error = RuntimeError("timeout")

        with pytest.raises(StorageReadError, match="timeout"):
            await appointment_store.find_by_insured_id("01234")


class TestCompleteIfPending:
    @pytest.mark.asyncio
    async def test_completes_matching_record(
        self, appointment_store: AppointmentStore, pe_request: AppointmentRequest
    ) -> None:
        created = await appointment_store.create(pe_request)

        completed = await appointment_store.complete_if_pending(pe_request)

        assert completed is not None
        assert completed.id == created.id
        assert completed.status == AppointmentStatus.COMPLETED
        assert int(completed.updated_at) > int(created.created_at)

    @pytest.mark.asyncio
    async def test_second_completion_is_a_no_op(
        self,
        appointment_store: AppointmentStore,
        appointment_table: InMemoryAppointmentTable,
        pe_request: AppointmentRequest,
    ) -> None:
        created = await appointment_store.create(pe_request)
        await appointment_store.complete_if_pending(pe_request)

        assert await appointment_store.complete_if_pending(pe_request) is None
        assert appointment_table.records[created.id].status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_ignores_other_schedule_and_country(
        self, appointment_store: AppointmentStore, pe_request: AppointmentRequest
    ) -> None:
        other_schedule = AppointmentRequest(
            insured_id="01234", schedule_id=7, country_iso=CountryISO.PE
        )
        other_country = AppointmentRequest(
            insured_id="01234", schedule_id=123, country_iso=CountryISO.CL
        )
        await appointment_store.create(other_schedule)
        await appointment_store.create(other_country)

        assert await appointment_store.complete_if_pending(pe_request) is None

    @pytest.mark.asyncio
    async def test_unknown_appointment_returns_none(
        self, appointment_store: AppointmentStore, pe_request: AppointmentRequest
    ) -> None:
        assert await appointment_store.complete_if_pending(pe_request) is None

    @pytest.mark.asyncio
    async def test_duplicates_complete_oldest_first(
        self, appointment_store: AppointmentStore, pe_request: AppointmentRequest
    ) -> None:
        first = await appointment_store.create(pe_request)
        second = await appointment_store.create(pe_request)

        one = await appointment_store.complete_if_pending(pe_request)
        two = await appointment_store.complete_if_pending(pe_request)

        assert one is not None and one.id == first.id
        assert two is not None and two.id == second.id

    @pytest.mark.asyncio
    async def test_lost_race_returns_none(
        self,
        appointment_store: AppointmentStore,
        appointment_table: InMemoryAppointmentTable,
        pe_request: AppointmentRequest,
    ) -> None:
        created = await appointment_store.create(pe_request)
        stale = [created]

        async def stale_query(insured_id: str) -> list:
            return stale

        appointment_table.query_by_insured_id = stale_query  # type: ignore[method-assign]
        await appointment_store.complete_if_pending(pe_request)

        assert await appointment_store.complete_if_pending(pe_request) is None
        assert appointment_table.update_calls == [created.id, created.id]

    @pytest.mark.asyncio
    async def test_wraps_update_failure(
        self,
        appointment_store: AppointmentStore,
        appointment_table: InMemoryAppointmentTable,
        pe_request: AppointmentRequest,
    ) -> None:
        await appointment_store.create(pe_request)
        appointment_table.update_error = RuntimeError("connection reset")

        with pytest.raises(StorageWriteError, match="connection reset"):
            await appointment_store.complete_if_pending(pe_request)

    @pytest.mark.asyncio
    async def test_updated_at_never_precedes_created_at(
        self, appointment_table: InMemoryAppointmentTable, pe_request: AppointmentRequest
    ) -> None:
        ticks = iter([2_000, 1_000])
        store = AppointmentStore(appointment_table, clock=lambda: next(ticks))
        created = await store.create(pe_request)

        completed = await store.complete_if_pending(pe_request)

        assert completed is not None
        assert completed.updated_at == created.created_at == "2000"
