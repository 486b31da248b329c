from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "getwork-api"
    environment: str = "dev"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_role_key: str | None = None
    auth_timeout_seconds: float = 5.0
    access_cookie_name: str = "gw-access-token"
    refresh_cookie_name: str = "gw-refresh-token"
    code_verifier_cookie_name: str = "gw-code-verifier"
    cookie_secure: bool = False
    session_refresh_leeway_seconds: int = 60
    recovery_api_base_url: str = "https://getwork-backend.onrender.com/api"
    recovery_timeout_seconds: float = 10.0
    inbox_poll_interval_seconds: int = 30
    otel_enabled: bool = True
    otel_service_name: str = "getwork-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="GW_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
