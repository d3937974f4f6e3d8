"""Métricas Prometheus del pipeline de telemetría."""

from .ingestion_metrics import (
    record_message,
    record_poll_fetch,
    record_readings_ingested,
    render_latest,
    set_connection_state,
)

__all__ = [
    "record_message",
    "record_poll_fetch",
    "record_readings_ingested",
    "render_latest",
    "set_connection_state",
]
