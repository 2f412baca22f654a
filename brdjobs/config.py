"""Client configuration.

Values come from constructor keyword arguments first, then environment
variables (``BRIGHTDATA_*``, plus the unprefixed ``WEB_UNLOCKER_ZONE`` and
``SERP_ZONE``), then a local ``.env`` file, then the defaults below.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    API_BASE_URL,
    DEFAULT_CONCURRENCY,
    DEFAULT_SERP_ZONE,
    DEFAULT_TIMEOUT_SECS,
    DEFAULT_WEB_UNLOCKER_ZONE,
    MAX_RETRIES,
    POLL_MAX_SECS,
    POLL_MIN_SECS,
    RETRY_BACKOFF_FACTOR,
)


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BRIGHTDATA_",
        extra="ignore",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    api_token: Optional[str] = Field(default=None, description="Bearer token for the API.")
    web_unlocker_zone: str = Field(
        default=DEFAULT_WEB_UNLOCKER_ZONE,
        validation_alias=AliasChoices("web_unlocker_zone", "WEB_UNLOCKER_ZONE", "BRIGHTDATA_WEB_UNLOCKER_ZONE"),
    )
    serp_zone: str = Field(
        default=DEFAULT_SERP_ZONE,
        validation_alias=AliasChoices("serp_zone", "SERP_ZONE", "BRIGHTDATA_SERP_ZONE"),
    )
    base_url: str = Field(default=API_BASE_URL, min_length=8)

    timeout: float = Field(default=DEFAULT_TIMEOUT_SECS, gt=0, description="Per-request timeout (seconds).")
    max_retries: int = Field(default=MAX_RETRIES, ge=0, le=10)
    backoff_factor: float = Field(default=RETRY_BACKOFF_FACTOR, ge=1.0)
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1, le=500)
    auto_create_zones: bool = True

    poll_min_secs: float = Field(default=POLL_MIN_SECS, ge=0)
    poll_max_secs: float = Field(default=POLL_MAX_SECS, ge=0)

    log_level: str = Field(default="INFO")
    structured_logging: bool = True
    verbose: bool = False

    @model_validator(mode="after")
    def _check_poll_bounds(self) -> "ClientSettings":
        if self.poll_max_secs < self.poll_min_secs:
            raise ValueError("poll_max_secs must be >= poll_min_secs")
        self.log_level = self.log_level.upper()
        return self
