"""Configuration management for the application."""

import logging
import re
from datetime import timedelta
from functools import lru_cache
from typing import Any

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

logger = logging.getLogger(__name__)

LOCAL_ENVIRONMENT = "Local"

LOG_LEVELS = ("trace", "debug", "info", "warning", "error", "fatal", "panic")

_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a Go-style duration string such as ``3s``, ``60m`` or ``1h30m``."""
    value = text.strip()
    sign = 1
    if value[:1] in ("+", "-"):
        sign = -1 if value[0] == "-" else 1
        value = value[1:]
    if value == "0":
        return timedelta(0)
    if not value:
        raise ValueError(f"invalid duration {text!r}")

    total = timedelta(0)
    pos = 0
    while pos < len(value):
        match = _DURATION_PART.match(value, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return sign * total


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service
    environment: str = Field(default=LOCAL_ENVIRONMENT)
    host: str = Field(default=":9001")
    log_level: str = Field(default="Info")
    request_timeout_seconds: float = Field(default=60.0)

    # Database
    db_host: str = Field(default="localhost")
    db_user: str = Field(default="")
    db_pass: str = Field(default="")
    db_name: str = Field(default="userapi")
    db_max_conn: int = Field(default=25)
    db_max_idle_conn: int = Field(default=5)
    database_url: str | None = Field(default=None)

    # Tokens
    access_token_validity_duration: timedelta = Field(default=timedelta(minutes=60))

    # Valid pairs API
    valid_pairs_url: str = Field(default="https://shapeshift.io/validpairs")

    @model_validator(mode="before")
    @classmethod
    def warn_missing_values(cls, data: Any) -> Any:
        """Log the default taken by every variable that is not set at all."""
        if isinstance(data, dict):
            for name, field in cls.model_fields.items():
                # DATABASE_URL is an optional override of the DB_* parts
                if name not in data and field.default is not None:
                    logger.warning(
                        f"No value set for env var {name.upper()}. Defaulting to {field.default}"
                    )
        return data

    @field_validator("*", mode="before")
    @classmethod
    def strip_blank_values(cls, value: Any, info: ValidationInfo) -> Any:
        """Trim values and fall back to the default for blank ones."""
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                default = cls.model_fields[info.field_name].default
                logger.warning(
                    f"No value set for env var {info.field_name.upper()}. Defaulting to {default}"
                )
                return default
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() not in LOG_LEVELS:
            logger.warning(
                "Invalid value set for env var LOG_LEVEL. "
                "Valid options: Trace, Debug, Info, Warning, Error, Fatal and Panic, Defaulting to Info"
            )
            return "Info"
        return value

    @field_validator("request_timeout_seconds", mode="before")
    @classmethod
    def validate_request_timeout(cls, value: Any) -> Any:
        try:
            float(str(value).strip())
        except ValueError:
            logger.warning(
                "Invalid value set for env var REQUEST_TIMEOUT_SECONDS. "
                "Valid options: Number of seconds. Defaulting to 60"
            )
            return 60.0
        return value

    @field_validator("db_max_conn", mode="before")
    @classmethod
    def validate_db_max_conn(cls, value: Any) -> Any:
        if not _is_int(value):
            logger.warning(
                "Invalid value set for env var DB_MAX_CONN. Valid options: Number; "
                "A rule of thumb is (Max DB connection-10)/max number of instance. Defaulting to 25"
            )
            return 25
        return value

    @field_validator("db_max_idle_conn", mode="before")
    @classmethod
    def validate_db_max_idle_conn(cls, value: Any) -> Any:
        if not _is_int(value):
            logger.warning(
                "Invalid value set for env var DB_MAX_IDLE_CONN. "
                "Valid options: Number less than DB_MAX_CONN. Defaulting to 5"
            )
            return 5
        return value

    @field_validator("access_token_validity_duration", mode="before")
    @classmethod
    def validate_token_validity(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return parse_duration(value)
            except ValueError:
                logger.warning(
                    "Invalid value set for env var ACCESS_TOKEN_VALIDITY_DURATION. "
                    "Valid format: <number><s/m/h>. Defaulting to 60m (60 minutes)"
                )
                return timedelta(minutes=60)
        return value

    @property
    def database_url_resolved(self) -> str:
        """SQLAlchemy URL built from the DB_* settings unless DATABASE_URL is set."""
        if self.database_url:
            return self.database_url

        return URL.create(
            "postgresql+psycopg2",
            username=self.db_user or None,
            password=(self.db_pass or None) if self.db_user else None,
            host=self.db_host,
            database=self.db_name,
        ).render_as_string(hide_password=False)

    @property
    def listen_address(self) -> tuple[str, int]:
        """Host and port to bind, parsed from ``[host]:port``."""
        host, _, port = self.host.rpartition(":")
        return host or "0.0.0.0", int(port)  # noqa: S104


def _is_int(value: Any) -> bool:
    if isinstance(value, int):
        return True
    try:
        int(str(value).strip())
    except ValueError:
        return False
    return True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
