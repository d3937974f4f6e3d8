"""Chart-ready series built from the window.

A ChartSeries is a finite, restartable sequence of (timestamp, value)
points: every iteration starts over from the data captured at build time,
so there is no hidden iterator state.

Pairing policy for partial-channel updates: value index ``i`` maps to
``timestamps[min(i, len(timestamps) - 1)]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Sequence, Tuple

from ..core.domain import Channel, NO_DATA
from ..core.domain.snapshot import StatValue
from .window_store import RollingWindowStore


@dataclass(frozen=True)
class ChartPoint:
    x: datetime
    y: float

    def to_dict(self) -> dict:
        return {"x": self.x.isoformat(), "y": self.y}


class ChartSeries:
    """Serie de puntos de un canal, inmutable y re-iterable."""

    def __init__(self, channel: Channel, values: Sequence[float], timestamps: Sequence[datetime]):
        self.channel = channel
        self._values: Tuple[float, ...] = tuple(values)
        self._timestamps: Tuple[datetime, ...] = tuple(timestamps)

    def __iter__(self) -> Iterator[ChartPoint]:
        if not self._timestamps:
            return
        last = len(self._timestamps) - 1
        for i, value in enumerate(self._values):
            yield ChartPoint(x=self._timestamps[min(i, last)], y=value)

    def __len__(self) -> int:
        return len(self._values) if self._timestamps else 0

    def converted(self, fn: Callable[[float], float]) -> "ChartSeries":
        """Serie con una conversión de unidades aplicada a cada valor."""
        return ChartSeries(self.channel, [fn(v) for v in self._values], self._timestamps)

    def to_list(self) -> List[dict]:
        return [point.to_dict() for point in self]


class ChartSeriesBuilder:
    """Pure function of the current window state."""

    def build(self, store: RollingWindowStore, channel: Channel) -> ChartSeries:
        return ChartSeries(channel, store.all(channel), store.timestamps())

    def build_all(self, store: RollingWindowStore) -> Dict[Channel, ChartSeries]:
        timestamps = store.timestamps()
        return {ch: ChartSeries(ch, store.all(ch), timestamps) for ch in Channel}


def celsius_to_fahrenheit(value: StatValue) -> StatValue:
    if value == NO_DATA:
        return NO_DATA
    return float(value) * 9 / 5 + 32
