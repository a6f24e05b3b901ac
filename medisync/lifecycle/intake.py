from loguru import logger

from medisync.domain.exceptions import DispatchError, PublishError
from medisync.domain.models import AppointmentRecord, IntakeAcknowledgment
from medisync.domain.validation import parse_appointment_request, validate_insured_id_path
from medisync.messaging.ports import AppointmentPublisherProtocol
from medisync.storage.ports import AbstractAppointmentStore


class IntakeOrchestrator:
    """Accepts appointment requests: validate, store as pending, then fan out."""

    def __init__(
        self,
        store: AbstractAppointmentStore,
        publisher: AppointmentPublisherProtocol,
    ) -> None:
        self._store = store
        self._publisher = publisher

    async def submit(self, raw: object) -> IntakeAcknowledgment:
        """Accept a decoded request body.

        The store write is the durability boundary: nothing is published for a
        request that was not stored, and a failed publish after a successful
        write is raised as DispatchError, carrying the new record id.

        Raises:
            AppointmentValidationError: If the body is invalid (nothing is stored).
            StorageWriteError: If the record cannot be stored (nothing is published).
            DispatchError: If the record was stored but could not be published.
        """
        request = parse_appointment_request(raw)
        record = await self._store.create(request)

        try:
            await self._publisher.publish_appointment(request)
        except Exception as exc:
            reason = exc.reason if isinstance(exc, PublishError) else str(exc)
            logger.error(
                "Appointment {} stored but not dispatched to [{}]: {}",
                record.id,
                request.country_iso.value,
                reason,
            )
            raise DispatchError(
                reason, record_id=record.id, country_iso=request.country_iso.value
            ) from exc

        return IntakeAcknowledgment(id=record.id, status=record.status, request=request)

    async def list_for_insured(self, insured_id: str) -> list[AppointmentRecord]:
        """Return every appointment of an insured after checking the id format."""
        return await self._store.find_by_insured_id(validate_insured_id_path(insured_id))
