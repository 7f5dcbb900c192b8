from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "safehire-api"
    environment: str = "dev"
    store_backend: Literal["memory", "postgres"] = "memory"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    auth_timeout_seconds: float = 5.0
    # Comma-separated emails that resolve to the admin role.
    bootstrap_admin_emails: str | None = None
    otel_enabled: bool = True
    otel_service_name: str = "safehire-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="SH_", extra="ignore")

    @property
    def bootstrap_admins(self) -> list[str]:
        if not self.bootstrap_admin_emails:
            return []
        return [item.strip() for item in self.bootstrap_admin_emails.split(",") if item.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
