import json

import pytest

from medisync.domain.models import AppointmentRequest, AppointmentStatus
from medisync.lifecycle.reconciler import StatusReconciler
from medisync.storage.adapters.memory import InMemoryAppointmentTable
from medisync.storage.appointments import AppointmentStore


def _event(*bodies: object) -> dict:
    return {
        "Records": [
            {"messageId": f"m{i}", "body": json.dumps(b)} for i, b in enumerate(bodies)
        ]
    }


def _processed(request: AppointmentRequest) -> dict:
    return {"detail-type": "AppointmentProcessed", "detail": request.to_payload()}


@pytest.fixture
def reconciler(appointment_store: AppointmentStore) -> StatusReconciler:
    return StatusReconciler(appointment_store)


class TestStatusReconciler:
    @pytest.mark.asyncio
    async def test_completes_pending_appointment(
        self,
        reconciler: StatusReconciler,
        appointment_store: AppointmentStore,
        appointment_table: InMemoryAppointmentTable,
        pe_request: AppointmentRequest,
    ) -> None:
        created = await appointment_store.create(pe_request)

        response = await reconciler.process(_event(_processed(pe_request)))

        assert response.failed_ids == []
        assert appointment_table.records[created.id].status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_malformed_message_only_fails_itself(
        self, reconciler: StatusReconciler
    ) -> None:
        response = await reconciler.process(
            _event(
                {"detail": {"insuredId": "01234", "scheduleId": 1, "countryISO": "PE"}},
                {"noDetail": True},
            )
        )

        assert response.to_payload() == {"batchItemFailures": [{"itemIdentifier": "m1"}]}

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_not_a_failure(
        self,
        reconciler: StatusReconciler,
        appointment_store: AppointmentStore,
        appointment_table: InMemoryAppointmentTable,
        pe_request: AppointmentRequest,
    ) -> None:
        created = await appointment_store.create(pe_request)

        first = await reconciler.process(_event(_processed(pe_request), _processed(pe_request)))
        second = await reconciler.process(_event(_processed(pe_request)))

        assert first.failed_ids == []
        assert second.failed_ids == []
        assert appointment_table.records[created.id].status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_storage_error_is_a_failure(
        self,
        reconciler: StatusReconciler,
        appointment_table: InMemoryAppointmentTable,
        pe_request: AppointmentRequest,
    ) -> None:
        appointment_table.query_error = RuntimeError("throttled")

        response = await reconciler.process(_event(_processed(pe_request)))

        assert response.failed_ids == ["m0"]
