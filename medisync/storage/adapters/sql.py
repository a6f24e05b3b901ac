import asyncio
import datetime as dt

from loguru import logger
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    insert,
    select,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from medisync.domain.models import AppointmentRequest, CountryAppointmentRow, CountryISO

metadata = MetaData()

appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        Integer().with_variant(BigInteger(), "mysql"),
        primary_key=True,
        autoincrement=True,
    ),
    Column("insured_id", String(5), nullable=False, index=True),
    Column("schedule_id", Integer, nullable=False),
    Column("country_iso", String(2), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


class SqlCountryPartition:
    """Country partition backed by its own relational database."""

    def __init__(self, country: CountryISO, engine: AsyncEngine) -> None:
        self._country = country
        self._engine = engine
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @classmethod
    def from_url(
        cls, country: CountryISO, url: str, *, pool_size: int = 2
    ) -> "SqlCountryPartition":
        options: dict[str, object] = {"pool_pre_ping": True}
        if not url.startswith("sqlite"):
            options.update(pool_size=pool_size, max_overflow=0)
        return cls(country, create_async_engine(url, **options))

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
            self._schema_ready = True
        logger.debug("[{}] Country partition schema ready", self._country.value)

    async def insert(self, request: AppointmentRequest, created_at: dt.datetime) -> None:
        await self._ensure_schema()
        async with self._engine.begin() as conn:
            await conn.execute(
                insert(appointments).values(
                    insured_id=request.insured_id,
                    schedule_id=request.schedule_id,
                    country_iso=request.country_iso.value,
                    created_at=created_at,
                )
            )

    async def select_all(self) -> list[CountryAppointmentRow]:
        await self._ensure_schema()
        query = (
            select(
                appointments.c.insured_id,
                appointments.c.schedule_id,
                appointments.c.country_iso,
                appointments.c.created_at,
            )
            .where(appointments.c.country_iso == self._country.value)
            .order_by(appointments.c.created_at.desc(), appointments.c.id.desc())
        )
        async with self._engine.connect() as conn:
            result = await conn.execute(query)
            rows = result.all()

        return [
            CountryAppointmentRow(
                insured_id=str(row.insured_id),
                schedule_id=int(row.schedule_id),
                country_iso=str(row.country_iso),
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("[{}] Country partition closed", self._country.value)
