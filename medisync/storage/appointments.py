import time
import uuid
from typing import Callable

from loguru import logger

from medisync.domain.exceptions import StorageReadError, StorageWriteError
from medisync.domain.models import AppointmentRecord, AppointmentRequest, AppointmentStatus
from medisync.storage.ports import AbstractAppointmentStore, AppointmentTableProtocol


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class AppointmentStore(AbstractAppointmentStore):
    """Appointment store that delegates to a table backend and owns the status rules."""

    def __init__(
        self,
        table: AppointmentTableProtocol,
        *,
        clock: Callable[[], int] = epoch_millis,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._table = table
        self._clock = clock
        self._id_factory = id_factory

    async def create(self, request: AppointmentRequest) -> AppointmentRecord:
        now = str(self._clock())
        record = AppointmentRecord(
            id=self._id_factory(),
            insured_id=request.insured_id,
            schedule_id=request.schedule_id,
            country_iso=request.country_iso,
            status=AppointmentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        logger.debug("Saving appointment: {}", record.model_dump(by_alias=True))

        try:
            await self._table.put(record)
        except StorageWriteError:
            raise
        except Exception as exc:
            logger.error("Failed to save appointment for insuredId [{}]", request.insured_id)
            raise StorageWriteError(reason=str(exc), insured_id=request.insured_id) from exc

        logger.info("Appointment saved: id={}", record.id)
        return record

    async def find_by_insured_id(self, insured_id: str) -> list[AppointmentRecord]:
        logger.info("Querying appointments for insuredId [{}]", insured_id)

        try:
            return await self._table.query_by_insured_id(insured_id)
        except StorageReadError:
            raise
        except Exception as exc:
            logger.error("Failed to get appointments for insuredId [{}]", insured_id)
            raise StorageReadError(reason=str(exc), insured_id=insured_id) from exc

    async def complete_if_pending(self, request: AppointmentRequest) -> AppointmentRecord | None:
        candidates = [
            r
            for r in await self.find_by_insured_id(request.insured_id)
            if r.matches(request) and r.status == AppointmentStatus.PENDING
        ]
        if not candidates:
            logger.info("No pending appointment found for insuredId [{}]", request.insured_id)
            return None

        # Oldest first; iteration order of the index is not stable.
        candidates.sort(key=lambda r: (int(r.created_at), r.id))
        if len(candidates) > 1:
            logger.warning(
                "{} pending appointments share insuredId [{}] scheduleId [{}] countryISO [{}], "
                "completing the oldest: id={}",
                len(candidates),
                request.insured_id,
                request.schedule_id,
                request.country_iso.value,
                candidates[0].id,
            )
        match = candidates[0]
        updated_at = str(max(self._clock(), int(match.created_at)))

        try:
            updated = await self._table.update_status_if(
                match.id,
                expected=AppointmentStatus.PENDING,
                new=AppointmentStatus.COMPLETED,
                updated_at=updated_at,
            )
        except StorageWriteError:
            raise
        except Exception as exc:
            logger.error(
                "Failed to update appointment status for insuredId [{}]", request.insured_id
            )
            raise StorageWriteError(reason=str(exc), insured_id=request.insured_id) from exc

        if updated is None:
            logger.info("Appointment {} was completed concurrently, nothing to do", match.id)
            return None

        logger.info("Appointment completed: id={}", updated.id)
        return updated
