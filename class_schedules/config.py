"""Runtime configuration, read from ``CLASS_SCHEDULES_*`` environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CLASS_SCHEDULES_", env_file=".env", extra="ignore")

    app_title: str = Field(default="Class Schedule Service")
    log_level: str = Field(default="INFO")

    # Session expansion window around the reference day
    session_lookback_days: int = Field(default=1, ge=0)
    session_horizon_days: int = Field(default=14, ge=0)

    seed_demo_data: bool = Field(default=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
