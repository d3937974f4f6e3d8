"""Snapshots derivados de la ventana - contrato con la capa de presentación."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Union

from .channel import Channel, NO_DATA
from .reading import utcnow

StatValue = Union[float, str]


def format_value(value: StatValue) -> str:
    """Formatea un valor con 2 decimales; el sentinel pasa sin cambios."""
    if value == NO_DATA:
        return NO_DATA
    return f"{float(value):.2f}"


@dataclass(frozen=True)
class StatsSnapshot:
    """min/max/avg de la ventana actual de un canal.

    Cada campo es un float redondeado a 2 decimales, o NO_DATA ("--")
    para los tres cuando la ventana está vacía.
    """

    min: StatValue
    max: StatValue
    avg: StatValue

    @classmethod
    def empty(cls) -> "StatsSnapshot":
        return cls(min=NO_DATA, max=NO_DATA, avg=NO_DATA)

    @property
    def is_empty(self) -> bool:
        return self.avg == NO_DATA

    def to_dict(self) -> Dict[str, str]:
        return {
            "min": format_value(self.min),
            "max": format_value(self.max),
            "avg": format_value(self.avg),
        }


@dataclass(frozen=True)
class DashboardSnapshot:
    """Vista completa que consumen los colaboradores de render.

    - current_values: último valor suavizado por canal (o NO_DATA)
    - series_by_channel: ChartSeries por canal
    - stats_by_channel: StatsSnapshot por canal
    """

    current_values: Mapping[Channel, StatValue]
    series_by_channel: Mapping[Channel, Any]
    stats_by_channel: Mapping[Channel, StatsSnapshot]
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_values": {
                ch.value: format_value(v) for ch, v in self.current_values.items()
            },
            "series_by_channel": {
                ch.value: series.to_list() for ch, series in self.series_by_channel.items()
            },
            "stats_by_channel": {
                ch.value: stats.to_dict() for ch, stats in self.stats_by_channel.items()
            },
            "updated_at": self.updated_at.isoformat(),
        }
