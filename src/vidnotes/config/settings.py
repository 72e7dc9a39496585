"""Application settings loaded from environment variables and config files."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, NonNegativeFloat, NonNegativeInt, PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

from vidnotes.config import CONFIG_ROOT

DEFAULT_DEDUP_STORE_PATH = Path.home() / ".vidnotes" / "imported_videos.json"


class ImportTiming(BaseModel):
    """Fixed delays (in seconds) applied while driving the work page."""

    listing_settle: NonNegativeFloat = 3.0
    item_settle: NonNegativeFloat = 2.0
    scrape_settle: NonNegativeFloat = 2.0
    scroll_steps: NonNegativeInt = 3
    scroll_step_delay: NonNegativeFloat = 1.0
    transcript_load: NonNegativeFloat = 5.0
    segment_render: NonNegativeFloat = 1.0
    description_expand: NonNegativeFloat = 0.5

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def immediate(cls) -> "ImportTiming":
        """Return a timing profile with every delay disabled."""

        return cls(
            listing_settle=0,
            item_settle=0,
            scrape_settle=0,
            scroll_step_delay=0,
            transcript_load=0,
            segment_render=0,
            description_expand=0,
        )


def _load_payload_template(template_path: Path) -> Dict[str, Any]:
    if not template_path.exists():
        return {"content": "{{content}}"}

    raw_data = yaml.safe_load(template_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw_data, dict):
        raise ValueError(f"Payload template must be a mapping: {template_path}")
    return raw_data


class Settings(BaseSettings):
    """Primary application settings for Vidnotes."""

    notes_api_endpoint: HttpUrl = Field(default="http://localhost:8080/notes", alias="NOTES_API_ENDPOINT")
    notes_api_timeout_seconds: PositiveFloat = Field(default=30.0, alias="NOTES_API_TIMEOUT_SECONDS")
    dedup_store_path: Path = Field(default=DEFAULT_DEDUP_STORE_PATH, alias="DEDUP_STORE_PATH")
    dedup_precheck: bool = Field(default=False, alias="DEDUP_PRECHECK")
    default_import_limit: PositiveInt = Field(default=20, alias="DEFAULT_IMPORT_LIMIT")
    max_import_limit: PositiveInt = Field(default=500, alias="MAX_IMPORT_LIMIT")
    navigation_timeout_seconds: PositiveFloat = Field(default=30.0, alias="NAVIGATION_TIMEOUT_SECONDS")
    browser_headless: bool = Field(default=True, alias="BROWSER_HEADLESS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    timing: ImportTiming = Field(default_factory=ImportTiming)
    payload_template: Dict[str, Any] = Field(
        default_factory=lambda: _load_payload_template(CONFIG_ROOT / "payload_template.yaml")
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def service_logging(self) -> bool:
        """Whether services should emit their progress log lines (``DEBUG`` and ``INFO`` levels)."""

        return self.log_level.strip().upper() in {"DEBUG", "INFO"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()


__all__ = ["ImportTiming", "Settings", "get_settings"]
