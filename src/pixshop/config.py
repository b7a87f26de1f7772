"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    supabase_storage_table: str = "local_storage"
    storage_profile: str = "default"
    billing_base_url: str = "http://localhost:3001"
    initial_credits: int = 3
    purchase_credits: int = 50
    snapshot_ttl_minutes: float = 7 * 24 * 60
    snapshot_max_age_minutes: float = 120
    snapshot_size_limit_bytes: int = 4 * 1024 * 1024
    image_max_dimension: int = 1024
    image_quality: float = 0.8
    image_retry_quality: float = 0.6
    max_sessions_per_owner: int = 10
    liveness_ttl_minutes: float = 8 * 60
    inactivity_timeout_minutes: float = 30
    credits_cache_ttl_minutes: float = 24 * 60
    rate_limit_requests: int = 10
    rate_limit_window_seconds: float = 60
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
