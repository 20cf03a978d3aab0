"""Process-wide settings, read once from the environment (and ``.env``)."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from scrapers.normalize import COVERAGE_AREA_CITIES, NYACK_PROPER_CITIES

DEFAULT_USER_AGENT = "NyackToday/1.0 (Events Aggregator)"


class Settings(BaseSettings):
    """Immutable configuration handed to the orchestrator, scrapers and API."""

    database_path: Path = Field(Path("events.db"))
    timezone: str = "America/New_York"
    home_city: str = "Nyack"
    nyack_proper_cities: tuple[str, ...] = NYACK_PROPER_CITIES
    coverage_cities: tuple[str, ...] = COVERAGE_AREA_CITIES

    #: Per-request timeout in seconds, and the longer one for slow sites.
    request_timeout: float = 10.0
    slow_request_timeout: float = 15.0
    max_retries: int = 2
    retry_backoff: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT

    #: Events that started more than this many days ago are cleaned up.
    retention_days: int = 7

    scraper_api_key: str | None = None
    admin_password: str | None = None

    discord_webhook_url: str | None = None
    slack_webhook_url: str | None = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Return the settings for this process, building them on first use."""
    return Settings()
