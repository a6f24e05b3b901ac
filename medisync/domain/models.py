import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CountryISO(str, Enum):
    """Countries that run their own appointment partition."""

    PE = "PE"
    CL = "CL"


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment record."""

    PENDING = "pending"
    COMPLETED = "completed"


class AppointmentRequest(BaseModel):
    """The validated triple that travels through every stage of the pipeline."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    insured_id: str = Field(alias="insuredId", min_length=5, max_length=5)
    schedule_id: int = Field(alias="scheduleId", gt=0)
    country_iso: CountryISO = Field(alias="countryISO")

    @field_validator("schedule_id", mode="before")
    @classmethod
    def _reject_bool(cls, value: object) -> object:
        if isinstance(value, bool):
            raise ValueError("scheduleId must be a number")
        return value

    def to_payload(self) -> dict[str, str | int]:
        return self.model_dump(mode="json", by_alias=True)


class AppointmentRecord(BaseModel):
    """A stored appointment, owned by the appointment store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    insured_id: str = Field(alias="insuredId")
    schedule_id: int = Field(alias="scheduleId")
    country_iso: CountryISO = Field(alias="countryISO")
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @property
    def request(self) -> AppointmentRequest:
        return AppointmentRequest(
            insured_id=self.insured_id,
            schedule_id=self.schedule_id,
            country_iso=self.country_iso,
        )

    def matches(self, request: AppointmentRequest) -> bool:
        return (
            self.insured_id == request.insured_id
            and self.schedule_id == request.schedule_id
            and self.country_iso == request.country_iso
        )


class CountryAppointmentRow(BaseModel):
    """An accepted request persisted in a country partition. Never updated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    insured_id: str = Field(alias="insuredId")
    schedule_id: int = Field(alias="scheduleId")
    country_iso: CountryISO = Field(alias="countryISO")
    created_at: dt.datetime = Field(alias="createdAt")


class ProcessedEventMessage(AppointmentRequest):
    """Signal emitted once a country partition has stored the request."""


class IntakeAcknowledgment(BaseModel):
    """Response returned to the client once the request has been accepted."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: AppointmentStatus
    request: AppointmentRequest


class QueueRecord(BaseModel):
    """A single message of a queue batch, as delivered by the transport."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    message_id: str = Field(alias="messageId")
    body: str = ""


class QueueEvent(BaseModel):
    """A batch of queue messages handed to a consumer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    records: list[QueueRecord] = Field(default_factory=list, alias="Records")


class BatchItemFailure(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item_identifier: str = Field(alias="itemIdentifier")


class BatchResponse(BaseModel):
    """Partial-failure result: only the listed messages are redelivered."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    batch_item_failures: list[BatchItemFailure] = Field(
        default_factory=list, alias="batchItemFailures"
    )

    @property
    def failed_ids(self) -> list[str]:
        return [f.item_identifier for f in self.batch_item_failures]

    def to_payload(self) -> dict[str, list[dict[str, str]]]:
        return self.model_dump(mode="json", by_alias=True)
