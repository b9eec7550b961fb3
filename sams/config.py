"""Application configuration from environment variables."""

import logging
from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Pydantic loads values from OS environment variables first and then from
    the .env file. Instantiate through get_settings() so the .env file has
    already been loaded by the entry point.
    """

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./sams.db",
        description="SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/sams.log", description="Server log file")

    # Locale
    locale: str = Field(default="es_MX", description="Locale for currency formatting")
    timezone: str = Field(
        default="America/Cancun",
        description="Timezone used to interpret business dates",
    )

    # Import
    import_data_path: str = Field(
        default="data/import",
        description="Directory holding legacy JSON exports, one subdirectory per client",
    )
    import_max_errors: int = Field(
        default=3, description="Abort an import component after this many failures"
    )

    # API
    api_title: str = Field(default="SAMS API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")


@lru_cache
def get_settings() -> Settings:
    """Return the lazily created settings instance."""
    settings = Settings()
    logger.debug("Settings loaded (database_url=%s)", settings.database_url)
    return settings


__all__ = ["Settings", "get_settings"]
