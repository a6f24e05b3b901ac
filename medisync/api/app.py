import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from medisync.container import Services, get_services
from medisync.domain.exceptions import (
    AppointmentValidationError,
    DispatchError,
    StorageReadError,
    StorageWriteError,
)
from medisync.domain.validation import decode_json, parse_country


def _json(status_code: int, body: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


def services_dependency(request: Request) -> Services:
    return request.app.state.services


def create_app(services: Services | None = None) -> FastAPI:
    """Build the intake API. Without ``services`` the process-wide ones are used."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        relay = app.state.services.local_relay()
        relay_task: asyncio.Task[None] | None = None
        if relay is not None:
            relay_task = asyncio.create_task(
                relay.run(app.state.services.config.relay_interval_seconds)
            )
        try:
            yield
        finally:
            if relay_task is not None:
                relay_task.cancel()
                try:
                    await relay_task
                except asyncio.CancelledError:
                    pass
            await app.state.services.close()

    app = FastAPI(title="medisync", version="0.1.0", lifespan=lifespan)
    app.state.services = services or get_services()

    @app.exception_handler(AppointmentValidationError)
    async def validation_error_handler(
        request: Request, exc: AppointmentValidationError
    ) -> JSONResponse:
        logger.warning("Rejected {} {}: {}", request.method, request.url.path, exc.violations)
        return _json(400, {"message": exc.message, "errors": exc.violations})

    @app.exception_handler(StorageWriteError)
    async def storage_write_error_handler(request: Request, exc: StorageWriteError) -> JSONResponse:
        return _json(500, {"message": "Appointment not saved. Internal server error."})

    @app.exception_handler(StorageReadError)
    async def storage_read_error_handler(request: Request, exc: StorageReadError) -> JSONResponse:
        return _json(500, {"message": "Appointments could not be read. Internal server error."})

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
        return _json(
            500,
            {
                "message": "Appointment saved but could not be dispatched. Internal server error.",
                "id": exc.record_id,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return _json(404, {"message": "Not Found"})
        return _json(exc.status_code, {"message": exc.detail})

    @app.post("/appointments", status_code=202)
    async def create_appointment(
        request: Request, services: Services = Depends(services_dependency)
    ) -> JSONResponse:
        """Accept an appointment request; processing continues asynchronously."""
        raw = decode_json(await request.body())
        ack = await services.intake.submit(raw)
        return _json(202, ack.model_dump(mode="json", by_alias=True))

    @app.get("/appointments/{insured_id}")
    async def list_appointments(
        insured_id: str, services: Services = Depends(services_dependency)
    ) -> JSONResponse:
        records = await services.intake.list_for_insured(insured_id)
        return _json(200, {"items": [r.model_dump(mode="json", by_alias=True) for r in records]})

    @app.get("/countries/{country_iso}/appointments")
    async def list_country_appointments(
        country_iso: str, services: Services = Depends(services_dependency)
    ) -> JSONResponse:
        """Rows stored in one country partition, newest first."""
        rows = await services.countries.list_by_country(parse_country(country_iso))
        return _json(200, {"items": [r.model_dump(mode="json", by_alias=True) for r in rows]})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
