"""Fixed-interval inbox poller.

Every cycle fetches unread notifications and logs the ones it has not logged
before. There is no backoff: a failed cycle is logged and the next one runs
after the same interval.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from opentelemetry import trace

from getwork.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from getwork.inbox.client import InboxClient
from getwork.inbox.config import InboxSettings, get_inbox_settings

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def poll_once(client: InboxClient, seen: set[str], *, page_size: int = 50) -> list[dict[str, Any]]:
    inbox = await client.get_inbox(unread_only=True, limit=page_size)
    notifications = inbox.get("notifications") or []

    fresh = [item for item in notifications if item.get("id") not in seen]
    for item in fresh:
        logger.info(
            "notification id=%s type=%s action_status=%s message=%s",
            item.get("id"),
            item.get("type"),
            item.get("action_status"),
            item.get("message"),
        )

    # Ids that left the unread page are forgotten.
    seen.intersection_update(item.get("id") for item in notifications)
    seen.update(item["id"] for item in fresh if item.get("id"))
    if fresh:
        logger.info("inbox unread_count=%s new=%s", inbox.get("unread_count"), len(fresh))
    return fresh


async def run_inbox_poller(
    settings: InboxSettings | None = None,
    *,
    client: InboxClient | None = None,
    max_cycles: int | None = None,
) -> None:
    settings = settings or get_inbox_settings()
    if client is None:
        if not settings.access_token:
            raise RuntimeError("GW_INBOX_ACCESS_TOKEN is required")
        client = InboxClient(
            settings.api_base_url,
            settings.access_token,
            timeout_seconds=settings.request_timeout_seconds,
        )

    seen: set[str] = set()
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        try:
            with tracer.start_as_current_span("inbox.poll_cycle"):
                await poll_once(client, seen, page_size=settings.page_size)
        except httpx.HTTPError as exc:
            logger.warning("inbox poll failed: %s", exc)
        cycles += 1
        if max_cycles is not None and cycles >= max_cycles:
            break
        await asyncio.sleep(settings.poll_interval_seconds)


def main() -> None:
    settings = get_inbox_settings()
    configure_logging()
    runtime = setup_telemetry(
        enabled=settings.otel_enabled,
        service_name=settings.otel_service_name,
        environment=settings.environment,
        sample_ratio=settings.otel_trace_sample_ratio,
        log_correlation=settings.otel_log_correlation,
        exporter_endpoint=settings.otel_exporter_otlp_endpoint,
        exporter_headers=settings.otel_exporter_otlp_headers,
    )
    try:
        asyncio.run(run_inbox_poller(settings))
    except KeyboardInterrupt:
        logger.info("inbox poller stopped")
    finally:
        shutdown_telemetry(runtime)


if __name__ == "__main__":
    main()
