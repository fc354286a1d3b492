"""Runtime configuration for maritime safety service."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    service_name: str = "maritime-safety-service"
    service_version: str = "0.1.0"
    log_level: str = "INFO"
    metrics_enabled: bool = True
    event_produced_by: str = "services/maritime-safety-service"

    database_url: str = "sqlite:///./maritime_safety.db"
    sql_echo: bool = False

    openweather_api_key: str | None = None
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    weather_timeout_seconds: float = Field(default=5.0, gt=0.0)

    lookup_workers: int = Field(default=6, ge=1)
    lookup_timeout_seconds: float = Field(default=6.0, gt=0.0)

    notification_base_url: str | None = None
    notification_timeout_seconds: float = 8.0

    model_config = SettingsConfigDict(env_prefix="MARITIME_SAFETY_", extra="ignore")


def get_settings() -> Settings:
    """Return settings object."""

    return Settings()
