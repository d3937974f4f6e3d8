"""Ingesta pull: polling HTTP periódico del dispositivo.

Flujo:
  connect() → fetch inmediato → cada interval_ms: GET http://<device-ip>/
  → parse_device_document (los cuatro campos obligatorios)
  → sink(ReadingSet)

El timer es el único mecanismo de reintento: un fallo deja el estado en
disconnected y el siguiente tick vuelve a intentarlo. Los fetches nunca se
solapan; si uno tarda más que el intervalo, el siguiente arranca al terminar.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Optional

import httpx

from ..core.domain import ConnectionState, ReadingSet
from ..metrics.ingestion_metrics import record_poll_fetch, set_connection_state
from .validators import DeviceDocumentError, parse_device_document

logger = logging.getLogger(__name__)

ReadingSink = Callable[[ReadingSet], Any]

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class PollFetchError(Exception):
    """Fallo de un ciclo de polling (red, HTTP, cuerpo o validación)."""


class PollingIngestor:
    """Consulta el dispositivo a intervalo fijo y entrega muestras completas.

    Uso:
        ingestor = PollingIngestor(sink=engine.ingest, device_ip="192.168.1.167")
        await ingestor.connect()
        ...
        await ingestor.disconnect()
    """

    def __init__(
        self,
        sink: ReadingSink,
        device_ip: str = "192.168.1.167",
        interval_ms: int = 2000,
        timeout_ms: int = 10000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        source_name: str = "poll",
    ):
        if interval_ms <= 0 or timeout_ms <= 0:
            raise ValueError("interval_ms and timeout_ms must be positive")

        self._sink = sink
        self._device_ip = device_ip
        self._interval = interval_ms / 1000
        self._timeout = timeout_ms / 1000
        self._transport = transport
        self._source_name = source_name

        self._state = ConnectionState.DISCONNECTED
        self._client: Optional[httpx.AsyncClient] = None
        self._task: Optional[asyncio.Task] = None
        self._url: Optional[str] = None

        self._last_updated: Optional[datetime] = None
        self._last_error = ""
        self._fetches = 0
        self._succeeded = 0
        self._failed = 0
        self._last_success_at: float = 0

        set_connection_state(self._source_name, self._state)

    # ------------------------------------------------------------ lifecycle
    async def connect(self) -> None:
        """(Re)inicia el polling contra la IP configurada."""
        await self._cancel_task()
        await self._close_client()

        self._url = f"http://{self._device_ip}/"
        self._last_error = ""
        self._set_state(ConnectionState.CONNECTING)
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=NO_CACHE_HEADERS,
            transport=self._transport,
        )
        logger.info("[POLL] Polling %s every %.1fs", self._url, self._interval)
        self._task = asyncio.create_task(self._run())

    async def disconnect(self) -> None:
        """Cancela el timer (y el fetch en curso) y cierra el cliente HTTP."""
        try:
            await self._cancel_task()
        finally:
            await self._close_client()
            self._set_state(ConnectionState.DISCONNECTED)
        logger.info(
            "[POLL] Stopped. fetches=%d ok=%d failed=%d",
            self._fetches, self._succeeded, self._failed,
        )

    def set_device_ip(self, device_ip: str) -> None:
        """Cambia la IP; aplica en el próximo connect()."""
        device_ip = (device_ip or "").strip()
        if not device_ip:
            raise ValueError("device_ip must not be empty")
        try:
            host = httpx.URL(f"http://{device_ip}/").host
        except httpx.InvalidURL as e:
            raise ValueError(f"Invalid device address {device_ip!r}: {e}") from e
        if not host:
            raise ValueError(f"Invalid device address {device_ip!r}")
        self._device_ip = device_ip

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            await self.poll_once()
            next_at += self._interval
            delay = next_at - loop.time()
            if delay < 0:
                next_at = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    # ------------------------------------------------------------ fetch
    async def poll_once(self) -> Optional[ReadingSet]:
        """Un ciclo de polling. Devuelve la muestra entregada o None si falló."""
        self._fetches += 1
        try:
            sample = await self._fetch()
        except PollFetchError as e:
            self._failed += 1
            self._last_error = str(e)
            record_poll_fetch(False)
            logger.warning("[POLL] Fetch from %s failed: %s", self._url, e)
            self._set_state(ConnectionState.DISCONNECTED)
            return None

        self._succeeded += 1
        self._last_success_at = time.time()
        self._last_updated = sample.timestamp
        self._last_error = ""
        record_poll_fetch(True)
        self._set_state(ConnectionState.CONNECTED)

        try:
            self._sink(sample)
        except Exception as e:
            logger.exception("[POLL] Processing error: %s", e)
        return sample

    async def _fetch(self) -> ReadingSet:
        if self._client is None or self._url is None:
            raise PollFetchError("Polling client not started")

        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PollFetchError(f"HTTP error! status: {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise PollFetchError(f"{type(e).__name__}: {e}") from e

        try:
            payload = parse_device_document(response.content)
        except DeviceDocumentError as e:
            raise PollFetchError(str(e)) from e

        return payload.to_reading_set()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("[POLL] State %s -> %s", self._state.value, state.value)
        self._state = state
        set_connection_state(self._source_name, state)

    # ------------------------------------------------------------ properties
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def device_ip(self) -> str:
        return self._device_ip

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._last_updated

    @property
    def error_message(self) -> str:
        return self._last_error

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stats(self) -> dict:
        return {
            "source": self._source_name,
            "state": self._state.value,
            "device_ip": self._device_ip,
            "url": self._url,
            "interval_seconds": self._interval,
            "fetches": self._fetches,
            "succeeded": self._succeeded,
            "failed": self._failed,
            "last_updated": self._last_updated.isoformat() if self._last_updated else None,
            "error_message": self._last_error,
        }

    def health_check(self) -> dict:
        return {
            "healthy": self._state is ConnectionState.CONNECTED,
            "state": self._state.value,
            "running": self.is_running,
            "fetches_failed": self._failed,
            "last_success_age_seconds": (
                time.time() - self._last_success_at if self._last_success_at > 0 else None
            ),
        }
