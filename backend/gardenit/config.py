"""Application configuration."""
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Gardenit"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./data/gardenit.db"

    # Weather
    weather_base_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_timeout_seconds: float = 10.0

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 15 * 60
    deliver_reminders: bool = True

    # Email
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "no-reply@gardenit.app"
    smtp_use_tls: bool = True
    email_subject_prefix: str = "[Gardenit]"

    # Paths
    base_dir: Path = Path(__file__).parent
    built_in_rules_path: Path = base_dir / "configs" / "built_in_rules.yaml"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("scheduler_interval_seconds")
    @classmethod
    def validate_scheduler_interval(cls, value: int) -> int:
        """Reject intervals shorter than the schedule minute tolerance allows."""
        if value < 60:
            raise ValueError("SCHEDULER_INTERVAL_SECONDS must be at least 60.")
        return value

    @field_validator("weather_timeout_seconds")
    @classmethod
    def validate_weather_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("WEATHER_TIMEOUT_SECONDS must be positive.")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
