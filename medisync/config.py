from enum import Enum
from urllib.parse import quote_plus

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from medisync.domain.models import CountryISO


class AppointmentStoreBackend(Enum):
    DYNAMODB = "dynamodb"
    MEMORY = "memory"


class CountryStoreBackend(Enum):
    SQL = "sql"
    MEMORY = "memory"


class MessagingBackend(Enum):
    AWS = "aws"
    MEMORY = "memory"


class AWSConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AWS_", env_file=".env", extra="ignore")

    region: str = "us-east-1"
    endpoint_url: str | None = None


class CountryDatabaseConfig(BaseSettings):
    """Connection settings for one country partition, read from ``<ISO>_MYSQL_*``."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    db: str = "appointments"
    connection_limit: int = 2
    url: str | None = None

    @property
    def database_url(self) -> str:
        if self.url:
            return self.url
        credentials = quote_plus(self.user)
        if self.password:
            credentials = f"{credentials}:{quote_plus(self.password)}"
        return f"mysql+aiomysql://{credentials}@{self.host}:{self.port}/{self.db}"


def country_database_config(country: CountryISO) -> CountryDatabaseConfig:
    return CountryDatabaseConfig(_env_prefix=f"{country.value}_MYSQL_")  # type: ignore[call-arg]


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"

    appointments_table: str = "appointments"
    appointments_index: str = "insuredId-index"
    topic_arn: str = ""
    event_bus_name: str = "default"
    event_source: str = "appointment"

    appointment_store_backend: AppointmentStoreBackend = AppointmentStoreBackend.DYNAMODB
    country_store_backend: CountryStoreBackend = CountryStoreBackend.SQL
    messaging_backend: MessagingBackend = MessagingBackend.AWS

    relay_interval_seconds: float = 1.0

    aws: AWSConfig = Field(default_factory=lambda: AWSConfig())
