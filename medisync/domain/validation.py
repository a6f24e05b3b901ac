import json
import re
from typing import Any

from pydantic import ValidationError

from medisync.domain.exceptions import AppointmentValidationError, MalformedMessageError
from medisync.domain.models import AppointmentRequest, CountryISO, ProcessedEventMessage

_INSURED_ID_PATH = re.compile(r"[0-9]{5}")
INVALID_FIELDS = "One or more fields are invalid"
INVALID_JSON = "Invalid JSON body"


def _violations(exc: ValidationError) -> list[str]:
    """Flatten a pydantic error into ``"field: message"`` strings."""
    violations: list[str] = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        violations.append(f"{field}: {error['msg']}")
    return violations


def parse_appointment_request(raw: object) -> AppointmentRequest:
    """Validate a decoded payload, reporting every violation at once.

    Raises:
        AppointmentValidationError: If any field is missing or out of range.
    """
    if not isinstance(raw, dict):
        raise AppointmentValidationError(["body: must be a JSON object"], INVALID_FIELDS)
    try:
        return AppointmentRequest.model_validate(raw)
    except ValidationError as exc:
        raise AppointmentValidationError(_violations(exc), INVALID_FIELDS) from exc


def decode_json(text: str | bytes | None) -> Any:
    """Decode a JSON document, raising MalformedMessageError on bad input."""
    if not text:
        raise MalformedMessageError(["body: empty"], INVALID_JSON)
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MalformedMessageError([f"body: {exc}"], INVALID_JSON) from exc


def parse_routed_message(body: str) -> AppointmentRequest:
    """Decode and validate a fanned-out appointment message."""
    return parse_appointment_request(decode_json(body))


def parse_processed_event(body: str) -> ProcessedEventMessage:
    """Extract the correlation triple from a processed-event envelope.

    The envelope carries the triple under ``detail``.

    Raises:
        MalformedMessageError: If the envelope or its ``detail`` is unusable.
    """
    envelope = decode_json(body)
    if not isinstance(envelope, dict):
        raise MalformedMessageError(["envelope: must be a JSON object"])

    detail = envelope.get("detail")
    if not isinstance(detail, dict):
        raise MalformedMessageError(["detail: field is missing"])
    try:
        return ProcessedEventMessage.model_validate(detail)
    except ValidationError as exc:
        raise MalformedMessageError([f"detail.{v}" for v in _violations(exc)]) from exc


def validate_insured_id_path(value: str) -> str:
    if not _INSURED_ID_PATH.fullmatch(value):
        raise AppointmentValidationError(
            ["insuredId path parameter must be exactly five digits"]
        )
    return value


def parse_country(value: str) -> CountryISO:
    try:
        return CountryISO(value.upper())
    except ValueError as exc:
        allowed = ", ".join(c.value for c in CountryISO)
        raise AppointmentValidationError(
            [f"countryISO path parameter must be one of: {allowed}"]
        ) from exc
