from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from common.config import Settings, get_settings
from .endpoints import control_router, health_router, stream_router, telemetry_router
from .service import TelemetryService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service: TelemetryService = app.state.service
    await service.start()
    try:
        yield
    finally:
        await service.stop()


def create_app(
    service: Optional[TelemetryService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Construye la app con su propio servicio (uno por proceso en producción)."""
    app = FastAPI(title="Airsense Telemetry Service", version="0.1.0", lifespan=lifespan)
    app.state.service = service or TelemetryService(settings or get_settings())

    app.include_router(health_router)
    app.include_router(telemetry_router)
    app.include_router(control_router)
    app.include_router(stream_router)

    logger.info("[SERVICE] API ready source=%s", app.state.service.source_name)
    return app


app = create_app()
