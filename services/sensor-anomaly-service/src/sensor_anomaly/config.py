"""Runtime configuration for sensor anomaly detection."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    service_name: str = "sensor-anomaly-service"
    service_version: str = "0.1.0"
    log_level: str = "INFO"
    metrics_enabled: bool = True
    event_produced_by: str = "services/sensor-anomaly-service"

    database_url: str = "sqlite:///./sensor_anomaly.db"
    sql_echo: bool = False

    profiles_path: str | None = None

    history_window_days: int = Field(default=30, ge=1)
    history_max_rows: int = Field(default=720, ge=1)
    history_min_samples: int = Field(default=2, ge=1)
    lookup_timeout_seconds: float = Field(default=3.0, gt=0.0)

    record_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    alert_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)

    notification_base_url: str | None = None
    notification_timeout_seconds: float = 8.0

    model_config = SettingsConfigDict(env_prefix="SENSOR_ANOMALY_", extra="ignore")


def get_settings() -> Settings:
    """Return settings object."""

    return Settings()
