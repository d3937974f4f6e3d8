"""Health and metrics endpoints."""

from fastapi import APIRouter, Depends, Response

from ..metrics import render_latest
from ..service import TelemetryService
from .deps import get_service

router = APIRouter(tags=["health"])


@router.get("/health")
def health(service: TelemetryService = Depends(get_service)):
    """Liveness + estado de la fuente activa. Siempre 200 si el proceso vive."""
    return service.health_check()


@router.get("/metrics")
def metrics():
    """Prometheus text format."""
    payload, content_type = render_latest()
    return Response(content=payload, media_type=content_type)
