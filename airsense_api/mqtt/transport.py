"""Transporte MQTT (paho-mqtt) sobre WebSocket seguro.

Los callbacks de paho corren en el hilo de red de paho (loop_start). Este
adaptador no toca estado de la aplicación: solo traduce cada callback a un
TransportEvent y lo entrega a `emit`, que lo encola en el event loop.

La reconexión automática es responsabilidad de paho; aquí solo se observa
(on_disconnect inesperado → TransportOffline + TransportReconnecting).
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol
from urllib.parse import urlparse

import paho.mqtt.client as mqtt

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

logger = logging.getLogger(__name__)

EventSink = Callable[[TransportEvent], None]

_DEFAULT_PORTS = {"ws": 80, "wss": 443, "mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883}


class Transport(Protocol):
    """Lo que ConnectionManager necesita de un transporte pub/sub."""

    def connect(self, emit: EventSink) -> None:
        ...

    def subscribe(self, topic: str) -> None:
        ...

    def publish(self, topic: str, payload: str) -> bool:
        ...

    def close(self) -> None:
        ...


class MQTTTransport:
    """Cliente paho-mqtt que emite TransportEvents.

    Soporta URLs ws://, wss://, mqtt:// y mqtts://. Para wss/mqtts se
    activa TLS con la configuración por defecto del sistema.
    """

    def __init__(
        self,
        broker_url: str = "wss://tigoe.net/mqtt",
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "airsense-ingest",
        connect_timeout: float = 10.0,
        keepalive: int = 60,
    ):
        parsed = urlparse(broker_url)
        scheme = (parsed.scheme or "mqtt").lower()
        if scheme not in _DEFAULT_PORTS:
            raise ValueError(f"Unsupported broker URL scheme: {scheme!r}")

        self.broker_url = broker_url
        self.host = parsed.hostname or "localhost"
        self.port = parsed.port or _DEFAULT_PORTS[scheme]
        self.ws_path = parsed.path or "/mqtt"
        self.use_websockets = scheme in ("ws", "wss")
        self.use_tls = scheme in ("wss", "mqtts", "ssl")

        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self.connect_timeout = connect_timeout
        self.keepalive = keepalive

        self._client: Optional[mqtt.Client] = None
        self._emit: Optional[EventSink] = None
        self._closing = False
        # mid → topic; paho puede entregar el SUBACK antes de que subscribe() retorne.
        self._pending_subs: Dict[int, str] = {}
        self._subs_lock = threading.Lock()

    def connect(self, emit: EventSink) -> None:
        """Crea el cliente y arranca el loop de red de paho (no bloquea)."""
        self._emit = emit
        self._closing = False

        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            transport="websockets" if self.use_websockets else "tcp",
            clean_session=True,
        )
        if self.use_websockets:
            client.ws_set_options(path=self.ws_path)
        if self.use_tls:
            client.tls_set()
        if self.username and self.password:
            client.username_pw_set(self.username, self.password)

        client.connect_timeout = self.connect_timeout
        client.reconnect_delay_set(min_delay=1, max_delay=30)

        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message

        self._client = client

        logger.info("[MQTT] Connecting to %s (client_id=%s)", self.broker_url, self.client_id)
        client.connect_async(self.host, self.port, keepalive=self.keepalive)
        client.loop_start()

    def subscribe(self, topic: str) -> None:
        if self._client is None:
            raise RuntimeError("MQTT client not connected")
        with self._subs_lock:
            rc, mid = self._client.subscribe(topic, qos=0)
            if rc != mqtt.MQTT_ERR_SUCCESS:
                self._send(SubscriptionResult(topic=topic, granted=False, error=mqtt.error_string(rc)))
                return
            self._pending_subs[mid] = topic

    def publish(self, topic: str, payload: str) -> bool:
        if self._client is None:
            return False
        info = self._client.publish(topic, payload, qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("[MQTT] Publish to %s failed: %s", topic, mqtt.error_string(info.rc))
            return False
        return True

    def close(self) -> None:
        """Cierra la conexión y detiene el hilo de red."""
        self._closing = True
        if self._client:
            try:
                self._client.disconnect()
                self._client.loop_stop()
            except Exception as e:
                logger.warning("[MQTT] Disconnect error: %s", e)
        self._client = None
        with self._subs_lock:
            self._pending_subs.clear()

    # ------------------------------------------------------------ callbacks
    def _send(self, event: TransportEvent) -> None:
        if self._emit is not None:
            self._emit(event)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error("[MQTT] Connection refused: %s", reason_code)
            self._send(TransportError(message=f"Connection refused: {reason_code}"))
            return
        logger.info("[MQTT] Connected to broker")
        self._send(TransportConnected())

    def _on_connect_fail(self, client, userdata):
        logger.error("[MQTT] Connection to %s failed", self.broker_url)
        self._send(TransportError(message=f"Unable to connect to {self.broker_url}"))

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        logger.warning("[MQTT] Disconnected (rc=%s)", reason_code)
        self._send(TransportClosed(reason=str(reason_code)))
        if not self._closing:
            # paho reintenta solo mientras el loop sigue vivo.
            self._send(TransportOffline())
            self._send(TransportReconnecting())

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        with self._subs_lock:
            topic = self._pending_subs.pop(mid, None)
        if topic is None:
            return
        failures = [rc for rc in reason_code_list if rc.is_failure]
        if failures:
            self._send(SubscriptionResult(topic=topic, granted=False, error=str(failures[0])))
        else:
            self._send(SubscriptionResult(topic=topic, granted=True))

    def _on_message(self, client, userdata, msg):
        self._send(MessageReceived(topic=msg.topic, payload=bytes(msg.payload)))
