from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./pegplug.db"
    database_echo: bool = False
    log_level: str = "INFO"
    api_host: str = "127.0.0.1"
    api_port: int = Field(8000, gt=0, lt=65536)

    # Internal API security
    session_api_key: str = ""

    # Redemption lifecycle
    redemption_validity_minutes: int = Field(120, gt=0)
    reminder_lead_minutes: int = Field(10, ge=0)
    reminder_min_delay_seconds: int = Field(30, ge=0)

    # Spin allotments and odds
    basic_daily_spins: int = Field(1, ge=0)
    premium_daily_spins: int = Field(3, ge=0)
    basic_win_chance: float = Field(0.3, ge=0.0, le=1.0)
    premium_win_chance: float = Field(0.4, ge=0.0, le=1.0)
    reel_match_probability: float = Field(0.0, ge=0.0, le=1.0)

    # Geofencing
    default_geofence_radius_miles: float = Field(0.5, gt=0.0)

    # Notifications
    daily_spins_reminder_hour: int = Field(10, ge=0, le=23)
    notifications_dry_run: bool = False

    # Store lookups
    lookup_chunk_size: int = Field(10, gt=0)

    # Tracing
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
