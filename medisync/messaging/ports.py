from typing import Protocol

from medisync.domain.models import AppointmentRequest, ProcessedEventMessage


class AppointmentPublisherProtocol(Protocol):
    """Fans an accepted request out to the country channels."""

    async def publish_appointment(self, request: AppointmentRequest) -> None:
        """Hand the request to the transport, routed by its ``countryISO``.

        Raises:
            PublishError: If the transport did not accept the message.
        """
        ...


class ProcessedEventEmitterProtocol(Protocol):
    """Signals that a country partition has stored a request."""

    async def emit_processed(self, message: ProcessedEventMessage) -> None:
        """Hand the processed event to the transport.

        Raises:
            PublishError: If the transport did not accept the event.
        """
        ...
