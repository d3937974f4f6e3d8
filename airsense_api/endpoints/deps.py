from __future__ import annotations

from fastapi import Request

from ..service import TelemetryService


def get_service(request: Request) -> TelemetryService:
    return request.app.state.service
