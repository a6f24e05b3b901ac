class AppointmentError(Exception):
    """Base exception for all appointment lifecycle errors."""


class AppointmentValidationError(AppointmentError):
    """Raised when a request or message does not have the expected shape.

    Terminal: retrying the same input can never succeed.
    """

    def __init__(self, violations: list[str], message: str | None = None) -> None:
        self.violations = violations
        self.message = message or "; ".join(violations)
        super().__init__(self.message)


class MalformedMessageError(AppointmentValidationError):
    """Raised when a queue message envelope cannot be decoded."""


class StorageError(AppointmentError):
    """Base exception for durable store failures."""

    action = "access storage"

    def __init__(self, reason: str, insured_id: str | None = None) -> None:
        self.reason = reason
        self.insured_id = insured_id
        super().__init__(f"Failed to {self.action}: {reason}")


class StorageWriteError(StorageError):
    """Raised when a record cannot be written."""

    action = "write appointment"


class StorageReadError(StorageError):
    """Raised when records cannot be read."""

    action = "read appointments"


class PublishError(AppointmentError):
    """Raised when a message cannot be handed to the transport."""

    def __init__(self, reason: str, country_iso: str | None = None) -> None:
        self.reason = reason
        self.country_iso = country_iso
        super().__init__(f"Failed to publish message: {reason}")


class DispatchError(PublishError):
    """Raised when a request was stored but could not be announced downstream."""

    def __init__(self, reason: str, record_id: str, country_iso: str | None = None) -> None:
        super().__init__(reason, country_iso=country_iso)
        self.record_id = record_id
