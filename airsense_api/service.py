"""Servicio de telemetría: cablea una fuente con el motor de agregación.

Una sola fuente activa por despliegue (AIRSENSE_SOURCE):
- mqtt: ConnectionManager + MQTTTransport (push)
- poll: PollingIngestor (pull)

Cada instancia es dueña de su propio motor; no hay singletons de módulo.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

import httpx

from common.config import SOURCE_MQTT, Settings
from .aggregation import AggregationEngine, RollingWindowStore, SmoothingAggregator
from .core.domain import ConnectionState
from .mqtt import ConnectionManager, MessageLog, MQTTTransport, Transport
from .polling import PollingIngestor

logger = logging.getLogger(__name__)


class SourceNotSupportedError(RuntimeError):
    """La operación no aplica a la fuente configurada."""


class TelemetryService:
    """Uso:
        service = TelemetryService(get_settings())
        await service.start()
        snapshot = service.engine.snapshot()
        await service.stop()
    """

    def __init__(
        self,
        settings: Settings,
        mqtt_transport: Optional[Transport] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.engine = AggregationEngine(
            smoother=SmoothingAggregator(
                alpha=settings.smoothing_alpha,
                jitter_fraction=settings.jitter_fraction,
                seed=settings.jitter_seed,
            ),
            store=RollingWindowStore(capacity=settings.window_capacity),
        )
        self.message_log = MessageLog(capacity=settings.message_log_capacity)

        self.manager: Optional[ConnectionManager] = None
        self.poller: Optional[PollingIngestor] = None

        if settings.source == SOURCE_MQTT:
            transport = mqtt_transport or MQTTTransport(
                broker_url=settings.mqtt_broker_url,
                username=settings.mqtt_username,
                password=settings.mqtt_password,
                connect_timeout=settings.mqtt_connect_timeout,
            )
            self.manager = ConnectionManager(
                transport,
                sink=self.engine.ingest,
                topics=settings.mqtt_topics,
                publish_topic=settings.mqtt_publish_topic,
                message_log=self.message_log,
                selftest_delay=settings.mqtt_selftest_delay,
            )
        else:
            self.poller = PollingIngestor(
                sink=self.engine.ingest,
                device_ip=settings.device_ip,
                interval_ms=settings.poll_interval_ms,
                timeout_ms=settings.poll_timeout_ms,
                transport=http_transport,
            )

        self._started = False

    @property
    def source_name(self) -> str:
        return self.settings.source

    @property
    def source(self) -> Union[ConnectionManager, PollingIngestor]:
        return self.manager if self.manager is not None else self.poller

    @property
    def state(self) -> ConnectionState:
        return self.source.state

    # ------------------------------------------------------------ lifecycle
    async def start(self) -> None:
        logger.info("[SERVICE] Starting source=%s", self.source_name)
        await self.source.connect()
        self._started = True

    async def stop(self) -> None:
        if not self._started:
            return
        try:
            await self.source.disconnect()
        finally:
            self._started = False
            logger.info("[SERVICE] Stopped source=%s", self.source_name)

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Arranca y espera hasta stop_event (o cancelación); siempre libera."""
        stop_event = stop_event or asyncio.Event()
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    # ------------------------------------------------------------ commands
    def publish(self, text: str) -> bool:
        if self.manager is None:
            raise SourceNotSupportedError("Publishing requires the mqtt source")
        return self.manager.publish(text)

    def add_topic(self, topic: str) -> bool:
        if self.manager is None:
            raise SourceNotSupportedError("Topics require the mqtt source")
        return self.manager.add_topic(topic)

    def set_publish_topic(self, topic: str) -> None:
        if self.manager is None:
            raise SourceNotSupportedError("Publish topic requires the mqtt source")
        self.manager.set_publish_topic(topic)

    def set_device_ip(self, device_ip: str) -> None:
        if self.poller is None:
            raise SourceNotSupportedError("Device IP requires the poll source")
        self.poller.set_device_ip(device_ip)

    # ------------------------------------------------------------ status
    def connection_info(self) -> dict:
        info = {
            "source": self.source_name,
            "state": self.state.value,
            "error_message": self.source.error_message,
        }
        if self.manager is not None:
            info.update(
                subscribed=self.manager.is_subscribed,
                topics=self.manager.topics,
                publish_topic=self.manager.publish_topic,
            )
        else:
            last = self.poller.last_updated
            info.update(
                device_ip=self.poller.device_ip,
                last_updated=last.isoformat() if last else None,
            )
        return info

    def health_check(self) -> dict:
        source_health = self.source.health_check()
        return {
            "status": "ok" if source_health["healthy"] else "degraded",
            "source": self.source_name,
            **source_health,
        }

    @property
    def stats(self) -> dict:
        return {
            "source": self.source.stats,
            "aggregation": self.engine.stats,
            "message_log_size": len(self.message_log),
        }
