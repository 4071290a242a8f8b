"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveFloat = Annotated[float, Field(gt=0.0)]
PortInt = Annotated[int, Field(gt=0, le=65_535)]
BcryptRounds = Annotated[int, Field(ge=4, le=31)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    api_host: NonEmptyStr = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: PortInt = Field(default=8000, validation_alias="API_PORT")
    db_statement_timeout_seconds: PositiveFloat = Field(
        default=3.0,
        validation_alias="DB_STATEMENT_TIMEOUT_SECONDS",
    )
    bcrypt_rounds: BcryptRounds = Field(default=12, validation_alias="BCRYPT_ROUNDS")
    shutdown_drain_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        validation_alias="SHUTDOWN_DRAIN_TIMEOUT_SECONDS",
    )
    smtp_host: NonEmptyStr | None = Field(default=None, validation_alias="SMTP_HOST")
    smtp_port: PortInt = Field(default=587, validation_alias="SMTP_PORT")
    smtp_username: NonEmptyStr | None = Field(default=None, validation_alias="SMTP_USERNAME")
    smtp_password: NonEmptyStr | None = Field(default=None, validation_alias="SMTP_PASSWORD")
    smtp_sender: NonEmptyStr | None = Field(default=None, validation_alias="SMTP_SENDER")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
