"""Rolling statistics over the current window contents.

Full recompute on every update: the window is bounded, so O(window size)
per reading is fine.
"""

from __future__ import annotations

from statistics import mean
from typing import Sequence

from ..core.domain import Channel, StatsSnapshot
from .window_store import RollingWindowStore


class StatisticsCalculator:
    """min / max / avg rounded to 2 decimals, or the "--" sentinel when empty."""

    precision = 2

    def compute(self, values: Sequence[float]) -> StatsSnapshot:
        if not values:
            return StatsSnapshot.empty()
        return StatsSnapshot(
            min=round(min(values), self.precision),
            max=round(max(values), self.precision),
            avg=round(mean(values), self.precision),
        )

    def for_channel(self, store: RollingWindowStore, channel: Channel) -> StatsSnapshot:
        return self.compute(store.all(channel))

    def for_all(self, store: RollingWindowStore) -> dict:
        return {ch: self.for_channel(store, ch) for ch in Channel}
