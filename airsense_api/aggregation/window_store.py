"""Ventana FIFO acotada por canal.

Cada canal guarda sus valores suavizados en un deque acotado; los
timestamps viven en una secuencia compartida que avanza una vez por
mensaje. Como un mensaje puede actualizar solo algunos canales, las
secuencias de canal pueden ser más cortas que la de timestamps.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Deque, Dict, List, Mapping, Optional

from ..core.domain import Channel

DEFAULT_CAPACITY = 100


class RollingWindowStore:
    """Historial ordenado por canal con capacidad fija.

    Garantías:
    - Longitud ≤ capacity en todo momento (deque con maxlen, la expulsión
      ocurre dentro del propio append).
    - Expulsión FIFO (el más antiguo primero), sin reordenamiento.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._values: Dict[Channel, Deque[float]] = {
            ch: deque(maxlen=capacity) for ch in Channel
        }
        self._timestamps: Deque[datetime] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, channel: Channel, value: float, timestamp: datetime) -> None:
        """Agrega un valor al final del canal y su timestamp a la secuencia compartida."""
        self.append_many({channel: value}, timestamp)

    def append_many(self, values: Mapping[Channel, float], timestamp: datetime) -> None:
        """Agrega un mensaje completo: un timestamp y un valor por canal presente."""
        if not values:
            return
        self._timestamps.append(timestamp)
        for channel in Channel:
            if channel in values:
                self._values[channel].append(float(values[channel]))

    def latest(self, channel: Channel) -> Optional[float]:
        """Último valor suavizado, o None si el canal no tiene datos."""
        buf = self._values[channel]
        return buf[-1] if buf else None

    def all(self, channel: Channel) -> List[float]:
        return list(self._values[channel])

    def timestamps(self) -> List[datetime]:
        return list(self._timestamps)

    def length(self, channel: Channel) -> int:
        return len(self._values[channel])

    def __len__(self) -> int:
        return len(self._timestamps)

    def clear(self) -> None:
        for buf in self._values.values():
            buf.clear()
        self._timestamps.clear()
