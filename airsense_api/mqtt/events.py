"""Typed transport events.

The transport adapter turns paho callbacks into these events and puts them
on a queue; ConnectionManager consumes them one at a time on the event loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from ..core.domain.reading import utcnow


@dataclass(frozen=True)
class TransportConnected:
    """Conexión establecida con el broker."""


@dataclass(frozen=True)
class TransportClosed:
    reason: str = ""


@dataclass(frozen=True)
class TransportOffline:
    """El cliente perdió la conexión de red."""


@dataclass(frozen=True)
class TransportReconnecting:
    """El transporte reintenta conectar por su cuenta."""


@dataclass(frozen=True)
class TransportError:
    message: str


@dataclass(frozen=True)
class SubscriptionResult:
    topic: str
    granted: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class MessageReceived:
    topic: str
    payload: bytes
    received_at: datetime = field(default_factory=utcnow)


TransportEvent = Union[
    TransportConnected,
    TransportClosed,
    TransportOffline,
    TransportReconnecting,
    TransportError,
    SubscriptionResult,
    MessageReceived,
]
