"""Ingestion metrics for observability.

Prometheus counters and gauges for the telemetry pipeline:
- Messages received by decode outcome (readings, self_test, non_json, ...)
- Poll fetches by status (success, failure)
- Readings appended to the window
- Connection state per source (one-hot gauge)

Metrics are aggregated counts only; no payload content is exported.
"""

from __future__ import annotations

import logging

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

from ..core.domain import ConnectionState

logger = logging.getLogger(__name__)

MESSAGES_RECEIVED = Counter(
    "airsense_messages_received_total",
    "Total transport messages received",
    ["outcome"],  # readings, self_test, non_json, no_valid_fields
)
POLL_FETCHES = Counter(
    "airsense_poll_fetches_total",
    "Total device poll fetches",
    ["status"],  # success, failure
)
READINGS_INGESTED = Counter(
    "airsense_readings_ingested_total",
    "Total channel readings appended to the window",
)
CONNECTION_STATE = Gauge(
    "airsense_connection_state",
    "Connection state of the active source (1 = current state)",
    ["source", "state"],
)


def record_message(outcome: str) -> None:
    MESSAGES_RECEIVED.labels(outcome=outcome).inc()


def record_poll_fetch(success: bool) -> None:
    POLL_FETCHES.labels(status="success" if success else "failure").inc()


def record_readings_ingested(count: int) -> None:
    if count > 0:
        READINGS_INGESTED.inc(count)


def set_connection_state(source: str, state: ConnectionState) -> None:
    for candidate in ConnectionState:
        CONNECTION_STATE.labels(source=source, state=candidate.value).set(
            1 if candidate is state else 0
        )


def render_latest() -> tuple[bytes, str]:
    """Payload y content-type para el endpoint /metrics."""
    return generate_latest(), CONTENT_TYPE_LATEST
