"""Validación estricta del documento JSON que sirve el dispositivo.

A diferencia de la ruta push, aquí los cuatro campos son obligatorios:
si falta alguno o no es numérico el ciclo de polling entero falla.

Formato esperado (GET http://<device-ip>/):
{
    "temperature": 22.31,
    "humidity": 41.2,
    "pressure": 1013.4,
    "gasResistance": 51234.0
}
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.domain import Channel, ReadingSet
from ..core.domain.reading import utcnow
from ..mqtt.validators import is_number


class DeviceDocumentError(ValueError):
    """El cuerpo de la respuesta no es un documento de lecturas válido."""


class DevicePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    temperature: float
    humidity: float
    pressure: float
    gas_resistance: float = Field(alias="gasResistance")

    @field_validator("temperature", "humidity", "pressure", "gas_resistance", mode="before")
    @classmethod
    def must_be_number(cls, v):
        if not is_number(v):
            raise ValueError("must be a finite number")
        return float(v)

    def to_reading_set(self, timestamp: Optional[datetime] = None) -> ReadingSet:
        return ReadingSet(
            values={
                Channel.TEMPERATURE: self.temperature,
                Channel.HUMIDITY: self.humidity,
                Channel.PRESSURE: self.pressure,
                Channel.GAS: self.gas_resistance,
            },
            timestamp=timestamp or utcnow(),
        )


def parse_device_document(content: Union[bytes, str]) -> DevicePayload:
    """Parsea y valida el cuerpo de la respuesta.

    Raises:
        DeviceDocumentError: cuerpo vacío, JSON inválido o campos faltantes
    """
    if not content or not content.strip():
        raise DeviceDocumentError("Empty response body")

    try:
        data = orjson.loads(content)
    except orjson.JSONDecodeError as e:
        raise DeviceDocumentError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DeviceDocumentError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return DevicePayload.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise DeviceDocumentError(f"Invalid data format: {fields or e}") from e
