"""WebSocket de snapshots: un documento JSON por actualización del motor.

Cada cliente tiene una cola acotada; si el cliente no da abasto se
descarta el snapshot más antiguo pendiente.
"""

from __future__ import annotations

import asyncio
import logging

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..core.domain import DashboardSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])

MAX_PENDING = 10


def _encode(snapshot: DashboardSnapshot) -> str:
    return orjson.dumps(snapshot.to_dict()).decode()


async def _pump(websocket: WebSocket, queue: "asyncio.Queue[DashboardSnapshot]") -> None:
    while True:
        snapshot = await queue.get()
        await websocket.send_text(_encode(snapshot))


@router.websocket("/ws/snapshots")
async def snapshot_stream(websocket: WebSocket):
    service = websocket.app.state.service
    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue(maxsize=MAX_PENDING)

    def on_snapshot(snapshot: DashboardSnapshot) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)

    unsubscribe = service.engine.subscribe(on_snapshot)
    sender = None
    logger.info("[WebSocket] Snapshot subscriber connected")

    try:
        await websocket.send_text(_encode(service.engine.snapshot()))
        sender = asyncio.create_task(_pump(websocket, queue))
        # Los mensajes del cliente se ignoran; receive detecta el cierre.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("[WebSocket] Snapshot subscriber disconnected")
    finally:
        unsubscribe()
        if sender is not None:
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)
