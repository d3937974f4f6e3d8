"""Motor de agregación - dueño único de la ventana y de los snapshots.

Flujo por muestra:
  ReadingSet (por valor)
  → SmoothingAggregator (contra el último valor suavizado del canal)
  → RollingWindowStore.append_many (un timestamp por mensaje)
  → StatisticsCalculator + ChartSeriesBuilder
  → DashboardSnapshot a los suscriptores

Todo corre en el event loop: nunca hay dos ingestas concurrentes, así que
no hace falta lock.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..core.domain import Channel, DashboardSnapshot, NO_DATA, Reading, ReadingSet
from ..metrics.ingestion_metrics import record_readings_ingested
from .chart_series import ChartSeriesBuilder
from .smoothing import SmoothingAggregator
from .statistics import StatisticsCalculator
from .window_store import RollingWindowStore

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[DashboardSnapshot], None]


class AggregationEngine:
    """Owns the Window and exposes snapshot/subscribe.

    Uso:
        engine = AggregationEngine()
        unsubscribe = engine.subscribe(render)
        engine.ingest(ReadingSet({Channel.TEMPERATURE: 21.5}))
    """

    def __init__(
        self,
        smoother: Optional[SmoothingAggregator] = None,
        store: Optional[RollingWindowStore] = None,
        statistics: Optional[StatisticsCalculator] = None,
        series_builder: Optional[ChartSeriesBuilder] = None,
    ):
        self._smoother = smoother or SmoothingAggregator()
        self._store = store or RollingWindowStore()
        self._statistics = statistics or StatisticsCalculator()
        self._series_builder = series_builder or ChartSeriesBuilder()

        self._listeners: List[SnapshotListener] = []
        self._last_readings: Dict[Channel, Reading] = {}
        self._ingested = 0

    @property
    def store(self) -> RollingWindowStore:
        return self._store

    @property
    def last_readings(self) -> Dict[Channel, Reading]:
        return dict(self._last_readings)

    def ingest(self, sample: ReadingSet) -> DashboardSnapshot:
        """Suaviza, almacena y publica una muestra. Devuelve el snapshot resultante."""
        if not sample.values:
            logger.debug("[AGG] Empty sample ignored")
            return self.snapshot()

        smoothed: Dict[Channel, float] = {}
        for channel in sample.channels:
            raw = float(sample.values[channel])
            value = self._smoother.smooth(raw, self._store.latest(channel))
            smoothed[channel] = value
            self._last_readings[channel] = Reading(
                channel=channel,
                raw_value=raw,
                smoothed_value=value,
                timestamp=sample.timestamp,
            )

        self._store.append_many(smoothed, sample.timestamp)
        self._ingested += 1
        record_readings_ingested(len(smoothed))

        logger.debug(
            "[AGG] Ingested channels=%s window=%d",
            ",".join(ch.value for ch in smoothed),
            len(self._store),
        )

        snapshot = self.snapshot()
        self._notify(snapshot)
        return snapshot

    def snapshot(self) -> DashboardSnapshot:
        current = {}
        for channel in Channel:
            latest = self._store.latest(channel)
            current[channel] = NO_DATA if latest is None else latest

        return DashboardSnapshot(
            current_values=current,
            series_by_channel=self._series_builder.build_all(self._store),
            stats_by_channel=self._statistics.for_all(self._store),
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Registra un listener; devuelve la función para darlo de baja."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, snapshot: DashboardSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.exception("[AGG] Snapshot listener failed: %s", e)

    def reset(self) -> None:
        self._store.clear()
        self._last_readings.clear()
        self._ingested = 0

    @property
    def stats(self) -> dict:
        return {
            "samples_ingested": self._ingested,
            "window_size": len(self._store),
            "window_capacity": self._store.capacity,
            "listeners": len(self._listeners),
        }
