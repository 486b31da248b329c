from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from opentelemetry import trace
from starlette.requests import Request

from getwork.api.router import api_router
from getwork.core.config import get_settings
from getwork.core.session import refresh_session_middleware
from getwork.core.telemetry import (
    TelemetryRuntime,
    configure_logging,
    setup_api_telemetry,
    shutdown_api_telemetry,
)
from getwork.services.recovery import get_recovery_client
from getwork.services.repository import get_repository
from getwork.services.supabase import get_supabase_client

settings = get_settings()
configure_logging()
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        yield
    finally:
        if _telemetry_runtime is not None:
            shutdown_api_telemetry(app, _telemetry_runtime)
        await get_repository().close()
        get_repository.cache_clear()
        get_supabase_client.cache_clear()
        get_recovery_client.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry_runtime = setup_api_telemetry(app, settings)

# Registered first so it runs inside the request span below.
app.middleware("http")(refresh_session_middleware)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    with tracer.start_as_current_span("http.request") as span:
        span.set_attribute("http.method", request.method)
        span.set_attribute("http.route", request.url.path)
        response = await call_next(request)
        span.set_attribute("http.status_code", response.status_code)
        elapsed_ms = (time.perf_counter() - started_at) * 1000.0
        logger.info(
            "http request method=%s path=%s status=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
    return response


app.include_router(api_router)
