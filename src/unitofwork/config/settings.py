from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from pathlib import Path
from typing import Literal
from functools import lru_cache
from sqlalchemy.engine import make_url
from ..validators.config_validators import to_uppercase, to_lowercase, blank_to_none


class Settings(BaseSettings):
    """
    Application settings loaded from environment.
    """

    # Environment
    ENV: Literal["development", "testing", "staging", "production"] = "development"

    # Database configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./unitofwork.db"
    DATABASE_USER: str | None = None
    DATABASE_PASSWORD: str | None = None
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_PRE_PING: bool = True

    # SQLAlchemy
    SQLALCHEMY_ECHO: bool = False

    # Unit of work
    SESSION_FACTORY_NAME: str = "default"
    LAZY_LOADING_ENABLED: bool = True

    # Health check
    VALIDATION_QUERY: str = "SELECT 1"
    VALIDATION_QUERY_TIMEOUT: float = 5.0

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/unitofwork")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    ENABLE_SQL_LOGGING: bool = False

    # --- Derived settings ---
    @property
    def database_url(self) -> str:
        """
        Return DATABASE_URL with DATABASE_USER / DATABASE_PASSWORD applied.

        Credentials given separately override the ones embedded in the URL, so
        secrets can live in their own environment variables.
        """
        url = make_url(self.DATABASE_URL)
        if self.DATABASE_USER:
            url = url.set(username=self.DATABASE_USER)
        if self.DATABASE_PASSWORD:
            url = url.set(password=self.DATABASE_PASSWORD)
        return url.render_as_string(hide_password=False)

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.DATABASE_URL).get_backend_name() == "sqlite"

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Normalize LOG_LEVEL to uppercase before validation, since the logging
        module expects level names like "DEBUG" or "INFO".
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", mode="before")
    def normalize_log_format(cls, v: str | None) -> str | None:
        return to_lowercase(v)

    @field_validator("DATABASE_USER", "DATABASE_PASSWORD", mode="before")
    def empty_credentials_are_unset(cls, v: str | None) -> str | None:
        return blank_to_none(v)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Settings come from the environment only, so one instance per process is enough.
@lru_cache()
def get_settings() -> Settings:
    return Settings()
