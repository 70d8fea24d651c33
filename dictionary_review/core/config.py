from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "dictionary-review-api"
    environment: str = "dev"
    store_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_command_timeout_seconds: float = 15.0
    transaction_max_retries: int = Field(default=5, ge=0)
    word_approve_threshold: int = Field(default=5, ge=1)
    word_reject_threshold: int = Field(default=5, ge=1)
    correction_approve_threshold: int = Field(default=3, ge=1)
    correction_reject_threshold: int = Field(default=3, ge=1)
    require_comment_on_reject: bool = True
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    auth_timeout_seconds: float = 5.0
    otel_enabled: bool = True
    otel_service_name: str = "dictionary-review-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: dict[str, str] = Field(default_factory=dict)
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="DR_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
