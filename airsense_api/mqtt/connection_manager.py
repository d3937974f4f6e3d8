"""Máquina de estados de la conexión MQTT (ingesta push).

Estados:
  disconnected → connecting → connected
  error        ← cualquier estado ante fallo del transporte
  connecting   ← connected ante notificación de reconexión del transporte

Flujo de eventos:
  paho (hilo de red) → MQTTTransport → emit() → asyncio.Queue
  → run() (event loop, secuencial) → handle_event()

Mensajes:
  MessageReceived → decode_message → MessageLog → sink(ReadingSet) si es reenviable

No hay reintentos propios: la reconexión, si existe, la hace el transporte
y aquí solo se observa vía TransportReconnecting.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Iterable, List, Optional, Set

import orjson

from ..core.domain import ConnectionState, ReadingSet
from ..core.domain.reading import utcnow
from ..metrics.ingestion_metrics import record_message, set_connection_state
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
from .transport import Transport
from .validators import DecodeOutcome, decode_message

logger = logging.getLogger(__name__)

ReadingSink = Callable[[ReadingSet], Any]

DEFAULT_TOPICS = ("airsense", "airsense/#")
DEFAULT_PUBLISH_TOPIC = "airsense"
SELF_TEST_MESSAGE = "Self-test from airsense ingest"

_STOP = object()


class ConnectionManager:
    """Gestiona el ciclo de vida de la conexión push y entrega muestras al sink.

    Uso:
        manager = ConnectionManager(MQTTTransport(url), sink=engine.ingest)
        await manager.connect()
        ...
        await manager.disconnect()
    """

    def __init__(
        self,
        transport: Transport,
        sink: ReadingSink,
        topics: Iterable[str] = DEFAULT_TOPICS,
        publish_topic: str = DEFAULT_PUBLISH_TOPIC,
        message_log: Optional[MessageLog] = None,
        selftest_delay: float = 1.0,
        source_name: str = "mqtt",
    ):
        self._transport = transport
        self._sink = sink
        self._topics: List[str] = list(dict.fromkeys(topics))
        self._publish_topic = publish_topic
        self._message_log = message_log or MessageLog()
        self._selftest_delay = selftest_delay
        self._source_name = source_name

        self._state = ConnectionState.DISCONNECTED
        self._error_message = ""
        self._subscribed = False
        self._subscribed_topics: Set[str] = set()
        self._transport_active = False
        # Se incrementa al cerrar cada cliente; los eventos de clientes viejos se descartan.
        self._generation = 0

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._selftest_handle: Optional[asyncio.TimerHandle] = None

        self._stats = ReceiverStats()
        set_connection_state(self._source_name, self._state)

    # ------------------------------------------------------------ lifecycle
    async def connect(self) -> None:
        """Inicia la conexión. El resultado llega como eventos del transporte."""
        self._loop = asyncio.get_running_loop()
        self._ensure_consumer()

        if self._transport_active:
            self._cancel_self_test()
            await self._close_transport()

        self._error_message = ""
        self._set_state(ConnectionState.CONNECTING)

        try:
            self._transport.connect(functools.partial(self._enqueue, self._generation))
            self._transport_active = True
        except Exception as e:
            logger.exception("[MQTT] Failed to create MQTT client: %s", e)
            self._error_message = f"Failed to initialize MQTT client: {e}"
            self._set_state(ConnectionState.ERROR)

    async def disconnect(self) -> None:
        """Libera la conexión, cancela el self-test y detiene el consumidor."""
        self._cancel_self_test()
        try:
            await self._close_transport()
        finally:
            self._subscribed = False
            self._subscribed_topics.clear()
            self._set_state(ConnectionState.DISCONNECTED)
            await self._stop_consumer()
        logger.info("[MQTT] Stopped. %s", self._stats)

    def submit(self, event: TransportEvent) -> None:
        """Encola un evento del transporte. Seguro desde cualquier hilo."""
        self._enqueue(self._generation, event)

    def _enqueue(self, generation: int, event: TransportEvent) -> None:
        loop, queue = self._loop, self._queue
        if loop is None or queue is None:
            logger.debug("[MQTT] No consumer running, dropping %s", type(event).__name__)
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, (generation, event))
        except RuntimeError:
            logger.debug("[MQTT] Event loop closed, dropping %s", type(event).__name__)

    async def run(self) -> None:
        """Consume eventos de la cola de forma secuencial hasta el stop."""
        queue = self._queue
        while True:
            item = await queue.get()
            if item is _STOP:
                break
            generation, event = item
            if generation != self._generation:
                logger.debug("[MQTT] Dropping %s from a replaced client", type(event).__name__)
                continue
            try:
                self.handle_event(event)
            except Exception as e:
                logger.exception("[MQTT] Error handling %s: %s", type(event).__name__, e)

    def _ensure_consumer(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            return
        self._queue = asyncio.Queue()
        self._consumer = asyncio.get_running_loop().create_task(self.run())

    async def _stop_consumer(self) -> None:
        consumer, queue = self._consumer, self._queue
        self._consumer = None
        if consumer is None or consumer.done():
            return
        queue.put_nowait(_STOP)
        try:
            await asyncio.wait_for(consumer, timeout=1.0)
        except asyncio.TimeoutError:
            logger.warning("[MQTT] Event consumer did not stop in time, cancelled")

    async def _close_transport(self) -> None:
        if not self._transport_active:
            return
        self._transport_active = False
        self._generation += 1
        # close() espera al hilo de red de paho; fuera del event loop.
        await asyncio.to_thread(self._transport.close)

    # ------------------------------------------------------- state machine
    def handle_event(self, event: TransportEvent) -> None:
        """Única función de transición; se ejecuta siempre en el event loop."""
        if isinstance(event, MessageReceived):
            self._on_message(event)
        elif isinstance(event, TransportConnected):
            self._on_connected()
        elif isinstance(event, SubscriptionResult):
            self._on_subscription(event)
        elif isinstance(event, TransportError):
            logger.error("[MQTT] Transport error: %s", event.message)
            self._error_message = f"Connection error: {event.message}"
            self._set_state(ConnectionState.ERROR)
        elif isinstance(event, (TransportClosed, TransportOffline)):
            self._cancel_self_test()
            self._subscribed = False
            self._subscribed_topics.clear()
            self._set_state(ConnectionState.DISCONNECTED)
        elif isinstance(event, TransportReconnecting):
            self._stats.reconnects += 1
            self._set_state(ConnectionState.CONNECTING)
        else:
            logger.warning("[MQTT] Unknown transport event: %r", event)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("[MQTT] State %s -> %s", self._state.value, state.value)
        self._state = state
        set_connection_state(self._source_name, state)

    def _on_connected(self) -> None:
        self._set_state(ConnectionState.CONNECTED)
        for topic in list(self._topics):
            self._subscribe(topic)
        self._schedule_self_test()

    def _subscribe(self, topic: str) -> None:
        try:
            self._transport.subscribe(topic)
        except Exception as e:
            logger.error("[MQTT] Subscription error for %s: %s", topic, e)
            self._error_message = f"Failed to subscribe to {topic}: {e}"

    def _on_subscription(self, event: SubscriptionResult) -> None:
        if event.granted:
            logger.info("[MQTT] Subscribed to %s", event.topic)
            self._subscribed = True
            self._subscribed_topics.add(event.topic)
        else:
            logger.error("[MQTT] Subscription error for %s: %s", event.topic, event.error)
            self._error_message = f"Failed to subscribe to {event.topic}: {event.error}"

    # ------------------------------------------------------------ self-test
    def _schedule_self_test(self) -> None:
        self._cancel_self_test()
        loop = asyncio.get_running_loop()
        self._selftest_handle = loop.call_later(self._selftest_delay, self._publish_self_test)

    def _cancel_self_test(self) -> None:
        if self._selftest_handle is not None:
            self._selftest_handle.cancel()
            self._selftest_handle = None

    def _publish_self_test(self) -> None:
        self._selftest_handle = None
        if self._state is not ConnectionState.CONNECTED:
            return
        payload = orjson.dumps({
            "test": True,
            "time": utcnow().isoformat(),
            "message": SELF_TEST_MESSAGE,
        }).decode()
        logger.info("[MQTT] Publishing self-test message to %s", self._publish_topic)
        try:
            if not self._transport.publish(self._publish_topic, payload):
                self._error_message = f"Failed to publish self-test to {self._publish_topic}"
        except Exception as e:
            logger.error("[MQTT] Self-test publish error: %s", e)
            self._error_message = f"Failed to publish: {e}"

    # ------------------------------------------------------------ messages
    def _on_message(self, event: MessageReceived) -> None:
        self._stats.received += 1
        self._stats.last_message_at = time.time()

        if not event.payload:
            logger.debug("[MQTT] Empty message on %s", event.topic)
            return

        result = decode_message(event.topic, event.payload)
        record_message(result.outcome.value)
        self._message_log.add(result.to_message(event.received_at))

        if result.forwardable:
            try:
                self._sink(result.to_reading_set(event.received_at))
                self._stats.processed += 1
            except Exception as e:
                logger.exception("[MQTT] Processing error: %s", e)
                self._stats.failed += 1
            return

        if result.outcome is DecodeOutcome.SELF_TEST:
            self._stats.self_tests += 1
        elif result.outcome is DecodeOutcome.NON_JSON:
            self._stats.non_json += 1
        else:
            logger.warning("[MQTT] Invalid sensor data on %s: %s", event.topic, result.error)
            self._stats.failed += 1

    # ------------------------------------------------------------ commands
    def publish(self, text: str) -> bool:
        """Publica un mensaje de aplicación. Solo se permite con suscripción activa."""
        if not self._subscribed or not text or not text.strip():
            logger.warning("[MQTT] Publish rejected (subscribed=%s)", self._subscribed)
            self._stats.publish_rejected += 1
            return False

        payload = orjson.dumps({"time": utcnow().isoformat(), "message": text}).decode()
        try:
            ok = self._transport.publish(self._publish_topic, payload)
        except Exception as e:
            logger.error("[MQTT] Publish error: %s", e)
            ok = False
        if not ok:
            self._error_message = f"Failed to publish to {self._publish_topic}"
        return ok

    def add_topic(self, topic: str) -> bool:
        """Agrega un topic a la suscripción; suscribe ya si hay conexión."""
        topic = (topic or "").strip()
        if not topic or topic in self._topics:
            return False
        self._topics.append(topic)
        if self._state is ConnectionState.CONNECTED:
            self._subscribe(topic)
        return True

    def set_publish_topic(self, topic: str) -> None:
        """Cambia el topic de publicación (self-test y mensajes de aplicación)."""
        topic = (topic or "").strip()
        if not topic:
            raise ValueError("publish topic must not be empty")
        if "+" in topic or "#" in topic:
            raise ValueError(f"publish topic must not contain wildcards: {topic!r}")
        logger.info("[MQTT] Publish topic %s -> %s", self._publish_topic, topic)
        self._publish_topic = topic

    # ------------------------------------------------------------ properties
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def error_message(self) -> str:
        return self._error_message

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed

    @property
    def topics(self) -> List[str]:
        return list(self._topics)

    @property
    def subscribed_topics(self) -> List[str]:
        return [t for t in self._topics if t in self._subscribed_topics]

    @property
    def publish_topic(self) -> str:
        return self._publish_topic

    @property
    def message_log(self) -> MessageLog:
        return self._message_log

    @property
    def stats(self) -> dict:
        return {
            "source": self._source_name,
            "state": self._state.value,
            "subscribed": self._subscribed,
            "topics": self.topics,
            "publish_topic": self._publish_topic,
            "error_message": self._error_message,
            **self._stats.to_dict(),
        }

    def health_check(self) -> dict:
        return {
            "healthy": self._state is ConnectionState.CONNECTED and self._subscribed,
            "state": self._state.value,
            "subscribed": self._subscribed,
            "messages_processed": self._stats.processed,
            "messages_failed": self._stats.failed,
            "last_message_age_seconds": (
                time.time() - self._stats.last_message_at if self._stats.last_message_at > 0 else None
            ),
        }
