"""Configuration management for pairplan."""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="./data/pairplan.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    environment: str = Field(default="development", description="Deployment environment name")

    # Period keys, weekday gates and daily windows are all computed in this zone
    reference_timezone: str = Field(default="UTC", description="IANA timezone used for calendar-day granularity")

    # Scheduler Configuration
    enable_scheduler: bool = Field(default=True, description="Run periodic jobs inside the API process")
    task_promotion_interval_minutes: int = Field(
        default=5, ge=1, description="How often assigned tasks are checked for a reached start time"
    )

    @field_validator("reference_timezone")
    @classmethod
    def validate_reference_timezone(cls, v: str) -> str:
        """Validate the timezone names a real IANA zone."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_FORBIDDEN: int = 403
    HTTP_NOT_FOUND: int = 404
    HTTP_CONFLICT: int = 409
    HTTP_UNPROCESSABLE_ENTITY: int = 422

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500  # Upper bound on tasks fetched per couple

    # Display formats
    DISPLAY_DATETIME_FORMAT: str = "%Y-%m-%d %H:%M"
    DISPLAY_TIME_FORMAT: str = "%H:%M"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
