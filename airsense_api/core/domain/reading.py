"""Modelo de dominio para lecturas de sensores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

from .channel import Channel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Reading:
    """Lectura suavizada de un canal - inmutable una vez almacenada."""

    channel: Channel
    raw_value: float
    smoothed_value: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "channel": self.channel.value,
            "raw_value": self.raw_value,
            "smoothed_value": self.smoothed_value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ReadingSet:
    """Muestra cruda decodificada que una fuente entrega al motor de agregación.

    Puede contener solo un subconjunto de canales (ruta push); los canales
    ausentes significan "sin actualización en este ciclo".
    """

    values: Mapping[Channel, float]
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        # El motor recibe la muestra por valor.
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def channels(self) -> tuple:
        return tuple(ch for ch in Channel if ch in self.values)

    @property
    def is_complete(self) -> bool:
        return all(ch in self.values for ch in Channel)
