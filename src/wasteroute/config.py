"""Application configuration and settings management."""

import re
from typing import Any, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

RESET_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="WR_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Waste Collection Routing Core"
    log_level: str = Field(default="INFO", description="Root log level used by configure_logging().")

    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000). "
        "When unset, great-circle distances are used instead.",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving-hgv",
        description="OSRM profile to use when computing distance matrices.",
    )
    osrm_max_retries: int = Field(default=3, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    osrm_timeout_seconds: float = Field(default=15.0, gt=0.0)
    routing_max_locations: int = Field(
        default=10,
        ge=2,
        description="Maximum number of locations accepted by one distance-matrix request.",
    )

    capacity_unit_factor: int = Field(
        default=1000,
        ge=1,
        description="Bin capacity units per truck capacity unit.",
    )
    kmeans_max_iterations: int = Field(default=100, ge=1)
    kmeans_tolerance: float = Field(default=1e-4, gt=0.0)
    kmeans_random_state: int = 42
    scoring_failure_penalty: float = Field(default=1_000_000.0, ge=0.0)
    scoring_max_workers: int = Field(default=4, ge=1)

    default_reset_time: str = Field(default="00:00", description="Daily cluster reset time (HH:MM).")
    sweep_interval_minutes: int = Field(default=60, ge=1)
    collection_window_minutes: int = Field(
        default=1440,
        ge=1,
        description="Minutes after collection_time before a not-collected cluster is marked missed.",
    )

    @field_validator("default_reset_time", mode="before")
    @classmethod
    def _validate_reset_time(cls, value: Any) -> str:
        text = str(value).strip()
        if not RESET_TIME_PATTERN.match(text):
            raise ValueError(f"Invalid reset time '{value}'. Use HH:MM format (e.g., '02:30').")
        return text

    @field_validator("osrm_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text.rstrip("/") or None


settings = Settings()
