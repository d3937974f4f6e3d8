"""Decodificador de payloads MQTT para ingesta.

Clasifica cada payload del transporte en uno de cuatro resultados:

- READINGS:         al menos un canal resolvió a número → se reenvía
- SELF_TEST:        sonda de vida publicada tras conectar → se descarta
- NON_JSON:         texto que no es JSON → solo va al log de mensajes
- NO_VALID_FIELDS:  JSON sin ningún canal numérico → se descarta

El decodificador nunca lanza excepciones; siempre devuelve un DecodeResult.

Formato esperado:
{
    "temperature": 22.31,
    "humidity": 41.2,
    "pressure": 1013.4,
    "gasResistance": 51234.0      # o "gas"
}
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.domain import Channel, Message, ReadingSet
from ..core.domain.reading import utcnow

logger = logging.getLogger(__name__)


def is_number(value: Any) -> bool:
    """True para int/float finitos. bool y strings numéricos no cuentan."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


class DecodeOutcome(str, Enum):
    READINGS = "readings"
    SELF_TEST = "self_test"
    NON_JSON = "non_json"
    NO_VALID_FIELDS = "no_valid_fields"


class AirsensePayload(BaseModel):
    """Schema de validación para lecturas publicadas por el sensor.

    Los campos numéricos inválidos se resuelven a None ("sin actualización
    este ciclo") en lugar de invalidar el mensaje completo.
    """

    model_config = ConfigDict(extra="allow")

    test: Any = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    gas: Optional[float] = None
    gas_resistance: Optional[float] = Field(default=None, alias="gasResistance")

    @field_validator(
        "temperature", "humidity", "pressure", "gas", "gas_resistance", mode="before"
    )
    @classmethod
    def numeric_or_unresolved(cls, v):
        if is_number(v):
            return float(v)
        return None

    @property
    def is_self_test(self) -> bool:
        return bool(self.test)

    def channel_values(self) -> Dict[Channel, float]:
        """Canales que resolvieron a número. Gas: gasResistance antes que gas."""
        values: Dict[Channel, float] = {}
        if self.temperature is not None:
            values[Channel.TEMPERATURE] = self.temperature
        if self.humidity is not None:
            values[Channel.HUMIDITY] = self.humidity
        if self.pressure is not None:
            values[Channel.PRESSURE] = self.pressure

        gas = self.gas_resistance if self.gas_resistance is not None else self.gas
        if gas is not None:
            values[Channel.GAS] = gas
        return values


@dataclass
class DecodeResult:
    """Resultado de decodificación."""

    outcome: DecodeOutcome
    topic: str
    payload: Any = None
    values: Dict[Channel, float] = field(default_factory=dict)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def is_json(self) -> bool:
        return self.outcome != DecodeOutcome.NON_JSON

    @property
    def forwardable(self) -> bool:
        return self.outcome == DecodeOutcome.READINGS and bool(self.values)

    def to_message(self, received_at: Optional[datetime] = None) -> Message:
        return Message(
            topic=self.topic,
            payload=self.payload,
            is_json=self.is_json,
            received_at=received_at or utcnow(),
        )

    def to_reading_set(self, timestamp: Optional[datetime] = None) -> ReadingSet:
        if not self.forwardable:
            raise ValueError(f"Decode outcome {self.outcome.value} is not forwardable")
        return ReadingSet(values=self.values, timestamp=timestamp or utcnow())


def _as_text(payload: Union[bytes, bytearray, str, None]) -> str:
    if payload is None:
        return ""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return str(payload)


def decode_message(topic: str, payload: Union[bytes, bytearray, str, None]) -> DecodeResult:
    """Decodifica un payload del transporte.

    Args:
        topic: Topic de origen
        payload: Bytes o texto crudo del mensaje

    Returns:
        DecodeResult con la clasificación (nunca lanza)
    """
    text = _as_text(payload)

    try:
        data = orjson.loads(text)
    except orjson.JSONDecodeError:
        logger.debug("[DECODER] Non-JSON message on %s: %.80s", topic, text)
        return DecodeResult(outcome=DecodeOutcome.NON_JSON, topic=topic, payload=text)

    if not isinstance(data, dict):
        return DecodeResult(
            outcome=DecodeOutcome.NO_VALID_FIELDS,
            topic=topic,
            payload=data,
            error=f"Expected a JSON object, got {type(data).__name__}",
        )

    try:
        model = AirsensePayload.model_validate(data)
    except Exception as e:
        logger.warning("[DECODER] Validation failed on %s: %s", topic, e)
        return DecodeResult(
            outcome=DecodeOutcome.NO_VALID_FIELDS,
            topic=topic,
            payload=data,
            error=str(e),
        )

    if model.is_self_test:
        logger.debug("[DECODER] Self-test message discarded (topic=%s)", topic)
        return DecodeResult(outcome=DecodeOutcome.SELF_TEST, topic=topic, payload=data)

    values = model.channel_values()
    warnings = [
        f"Field {name!r} is not a number"
        for channel in Channel
        for name in channel.field_names
        if name in data and not is_number(data[name])
    ]

    if not values:
        return DecodeResult(
            outcome=DecodeOutcome.NO_VALID_FIELDS,
            topic=topic,
            payload=data,
            error="No numeric sensor fields",
            warnings=warnings,
        )

    return DecodeResult(
        outcome=DecodeOutcome.READINGS,
        topic=topic,
        payload=data,
        values=values,
        warnings=warnings,
    )
