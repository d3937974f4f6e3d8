"""Estados de conexión de las fuentes de ingesta."""

from __future__ import annotations

from enum import Enum


class ConnectionState(Enum):
    """Estado de conexión de una fuente (MQTT o polling).

    Exactamente un valor a la vez; las transiciones las dispara el transporte.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
