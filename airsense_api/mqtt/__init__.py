"""Ingesta push por MQTT.

Este módulo proporciona:
- Transporte paho-mqtt (WebSocket seguro por defecto)
- Decodificación y validación de payloads
- Máquina de estados de conexión con self-test y publicación
- Log acotado de mensajes recientes

Estructura modular:
- events.py: Eventos tipados del transporte
- transport.py: Adaptador paho → eventos
- validators.py: Decodificación de payloads
- message_log.py: Últimos N mensajes
- connection_manager.py: Estados, suscripción y entrega al sink
"""

from .connection_manager import ConnectionManager
from .events import (
    MessageReceived,
    SubscriptionResult,
    TransportClosed,
    TransportConnected,
    TransportError,
    TransportEvent,
    TransportOffline,
    TransportReconnecting,
)
from .message_log import MessageLog
from .receiver_stats import ReceiverStats
from .transport import MQTTTransport, Transport
from .validators import AirsensePayload, DecodeOutcome, DecodeResult, decode_message

__all__ = [
    "ConnectionManager",
    "MQTTTransport",
    "Transport",
    "MessageLog",
    "ReceiverStats",
    "AirsensePayload",
    "DecodeOutcome",
    "DecodeResult",
    "decode_message",
    "MessageReceived",
    "SubscriptionResult",
    "TransportClosed",
    "TransportConnected",
    "TransportError",
    "TransportEvent",
    "TransportOffline",
    "TransportReconnecting",
]
