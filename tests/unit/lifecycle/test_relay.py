import json

import pytest

from medisync.container import Services
from medisync.domain.models import AppointmentStatus, CountryISO
from medisync.lifecycle.relay import LocalRelay
from medisync.messaging.adapters.memory import InMemoryEventBus, InMemoryTopic


@pytest.fixture
def relay(services: Services) -> LocalRelay:
    relay = services.local_relay()
    assert relay is not None
    return relay


class TestLocalRelay:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, services: Services, relay: LocalRelay) -> None:
        ack = await services.intake.submit(
            {"insuredId": "01234", "scheduleId": 123, "countryISO": "PE"}
        )

        delivered = await relay.drain()

        assert delivered == 2
        rows = await services.countries.list_by_country(CountryISO.PE)
        assert [(r.insured_id, r.schedule_id, r.country_iso) for r in rows] == [
            ("01234", 123, CountryISO.PE)
        ]
        assert await services.countries.list_by_country(CountryISO.CL) == []
        (record,) = await services.appointments.find_by_insured_id("01234")
        assert record.id == ack.id
        assert record.status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_transient_emit_failure_is_redelivered(
        self, services: Services, relay: LocalRelay, bus: InMemoryEventBus
    ) -> None:
        await services.intake.submit({"insuredId": "01234", "scheduleId": 1, "countryISO": "CL"})
        bus.emit_error = RuntimeError("bus unavailable")
        await relay.pump_once()
        bus.emit_error = None

        await relay.drain()

        # Redelivery stores the row a second time; completion stays single.
        assert len(await services.countries.list_by_country(CountryISO.CL)) == 2
        (record,) = await services.appointments.find_by_insured_id("01234")
        assert record.status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_poison_message_ends_in_dead_letters(
        self, relay: LocalRelay, topic: InMemoryTopic
    ) -> None:
        topic.queues[CountryISO.PE].send(json.dumps({"insuredId": "1"}))

        await relay.drain()

        assert len(topic.queues[CountryISO.PE].dead_letters) == 1

    def test_no_relay_for_external_transports(self, services: Services) -> None:
        services.publisher = object()  # type: ignore[assignment]

        assert services.local_relay() is None
