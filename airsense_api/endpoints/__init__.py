"""Routers HTTP/WebSocket de la API de telemetría."""

from .control import router as control_router
from .health import router as health_router
from .stream import router as stream_router
from .telemetry import router as telemetry_router

__all__ = ["control_router", "health_router", "stream_router", "telemetry_router"]
