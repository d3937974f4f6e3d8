"""Log acotado de mensajes recientes (más nuevo primero).

Independiente de la ventana de agregación: guarda también mensajes no JSON
y descartados para inspección.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List

from ..core.domain import Message

DEFAULT_CAPACITY = 20


class MessageLog:
    """Últimos N mensajes, el más reciente en la posición 0."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._messages: Deque[Message] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._messages.maxlen

    def add(self, message: Message) -> Message:
        # appendleft con maxlen expulsa por la derecha (el más antiguo).
        self._messages.appendleft(message)
        return message

    def recent(self, limit: int | None = None) -> List[Message]:
        items = list(self._messages)
        if limit is not None:
            return items[: max(0, limit)]
        return items

    def __len__(self) -> int:
        return len(self._messages)

    def clear(self) -> None:
        self._messages.clear()
