"""Comandos sobre la fuente activa (publish, topics, connect/disconnect)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..schemas import ConnectIn, PublishIn, PublishResult, TopicIn, TopicsResult
from ..service import SourceNotSupportedError, TelemetryService
from .deps import get_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["control"])


@router.post("/publish", response_model=PublishResult)
async def publish(payload: PublishIn, service: TelemetryService = Depends(get_service)):
    try:
        published = service.publish(payload.message)
    except SourceNotSupportedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not published:
        # Rechazo local: sin suscripción activa o mensaje vacío.
        raise HTTPException(status_code=409, detail="Not subscribed or empty message")
    return PublishResult(published=True, topic=service.manager.publish_topic)


@router.post("/topics", response_model=TopicsResult)
async def add_topic(payload: TopicIn, service: TelemetryService = Depends(get_service)):
    try:
        added = service.add_topic(payload.topic)
    except SourceNotSupportedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return TopicsResult(added=added, topics=service.manager.topics)


@router.put("/publish-topic")
async def set_publish_topic(payload: TopicIn, service: TelemetryService = Depends(get_service)):
    try:
        service.set_publish_topic(payload.topic)
    except SourceNotSupportedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return service.connection_info()


@router.post("/connect")
async def connect(
    payload: Optional[ConnectIn] = None,
    service: TelemetryService = Depends(get_service),
):
    if payload is not None and payload.device_ip:
        try:
            service.set_device_ip(payload.device_ip)
        except SourceNotSupportedError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    await service.start()
    logger.info("[API] Connect requested source=%s", service.source_name)
    return service.connection_info()


@router.post("/disconnect")
async def disconnect(service: TelemetryService = Depends(get_service)):
    await service.stop()
    logger.info("[API] Disconnect requested source=%s", service.source_name)
    return service.connection_info()
