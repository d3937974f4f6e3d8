"""Mensaje recibido por el transporte, tal como se muestra en el log de auditoría."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .reading import utcnow


@dataclass(frozen=True)
class Message:
    """Mensaje crudo o decodificado de un topic.

    payload es el valor JSON decodificado cuando is_json es True,
    o el texto crudo en caso contrario.
    """

    topic: str
    payload: Any
    is_json: bool
    received_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "topic": self.topic,
            "payload": self.payload,
            "is_json": self.is_json,
            "received_at": self.received_at.isoformat(),
        }
