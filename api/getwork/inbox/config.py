from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class InboxSettings(BaseSettings):
    environment: str = "dev"
    api_base_url: str = "http://localhost:8000"
    access_token: str | None = None
    poll_interval_seconds: float = 30.0
    page_size: int = 50
    request_timeout_seconds: float = 10.0
    otel_enabled: bool = True
    otel_service_name: str = "getwork-inbox"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="GW_INBOX_", extra="ignore")


@lru_cache
def get_inbox_settings() -> InboxSettings:
    return InboxSettings()
