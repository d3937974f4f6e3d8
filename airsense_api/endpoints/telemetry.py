"""Lectura del estado agregado: snapshot, log de mensajes y conexión."""

from fastapi import APIRouter, Depends, Query

from ..service import TelemetryService
from .deps import get_service

router = APIRouter(tags=["telemetry"])


@router.get("/snapshot")
def snapshot(service: TelemetryService = Depends(get_service)):
    return service.engine.snapshot().to_dict()


@router.get("/messages")
def messages(
    limit: int = Query(default=20, ge=1, le=1000),
    service: TelemetryService = Depends(get_service),
):
    """Mensajes recientes, el más nuevo primero."""
    return {"messages": [m.to_dict() for m in service.message_log.recent(limit)]}


@router.get("/connection")
def connection(service: TelemetryService = Depends(get_service)):
    return service.connection_info()
