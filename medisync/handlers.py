"""Queue entry points.

Each handler takes an SQS-shaped event (``{"Records": [{"messageId", "body"}]}``)
and returns ``{"batchItemFailures": [{"itemIdentifier": ...}]}``. They share one
event loop per process so pooled connections survive between invocations.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from medisync.container import get_services
from medisync.domain.models import BatchResponse, CountryISO

T = TypeVar("T")

_loop: asyncio.AbstractEventLoop | None = None


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run on the process-wide loop; it is never closed so warm invocations reuse pools."""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


async def handle_status_event(event: dict[str, Any]) -> BatchResponse:
    return await get_services().reconciler.process(event)


async def handle_country_event(country: CountryISO, event: dict[str, Any]) -> BatchResponse:
    return await get_services().processors[country].process(event)


def status_handler(event: dict[str, Any], context: object = None) -> dict[str, Any]:
    """Consumes processed events and completes the matching appointments."""
    return _run(handle_status_event(event)).to_payload()


def country_pe_handler(event: dict[str, Any], context: object = None) -> dict[str, Any]:
    return _run(handle_country_event(CountryISO.PE, event)).to_payload()


def country_cl_handler(event: dict[str, Any], context: object = None) -> dict[str, Any]:
    return _run(handle_country_event(CountryISO.CL, event)).to_payload()
