from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "ProjectFlow"
    debug: bool = False

    # API
    frontend_url: str = "http://localhost:3000"

    # Anthropic
    anthropic_api_key: str = ""
    planner_model: str = "claude-sonnet-4-20250514"
    ai_timeout_seconds: float = 60.0
    ai_max_tokens: int = 4096

    # Storage
    storage_backend: Literal["memory", "redis"] = "memory"  # env: STORAGE_BACKEND
    storage_key: str = "projects"
    redis_url: str = "redis://localhost:6379"
    redis_key_prefix: str = "projectflow:"
    # Cross-worker mutation lock (redis backend only)
    store_lock_ttl_seconds: int = 30
    store_lock_wait_seconds: float = 10.0

    # Reject bulk replacements that break dense ordering (warn only when False)
    strict_ordering_checks: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
