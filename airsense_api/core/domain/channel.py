"""Canales de telemetría del sensor ambiental.

Conjunto fijo: temperatura, humedad, presión y resistencia de gas.
Cada canal conoce su unidad, su color de display y los nombres de campo
aceptados en el payload.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple


# Sentinel "sin datos" que consumen los colaboradores de presentación.
NO_DATA = "--"


class Channel(str, Enum):
    """Canales de telemetría."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PRESSURE = "pressure"
    GAS = "gas"

    @property
    def unit(self) -> str:
        return _UNITS[self]

    @property
    def color(self) -> str:
        return _COLORS[self]

    @property
    def field_names(self) -> Tuple[str, ...]:
        """Campos del payload que resuelven este canal, en orden de preferencia."""
        return _FIELD_NAMES[self]


_UNITS = {
    Channel.TEMPERATURE: "°C",
    Channel.HUMIDITY: "%",
    Channel.PRESSURE: "hPa",
    Channel.GAS: "Ω",
}

_COLORS = {
    Channel.TEMPERATURE: "#FFB3BA",
    Channel.HUMIDITY: "#B3E2CC",
    Channel.PRESSURE: "#FFDF8C",
    Channel.GAS: "#C6A3D1",
}

_FIELD_NAMES = {
    Channel.TEMPERATURE: ("temperature",),
    Channel.HUMIDITY: ("humidity",),
    Channel.PRESSURE: ("pressure",),
    # El firmware publica gasResistance; clientes antiguos usan gas.
    Channel.GAS: ("gasResistance", "gas"),
}
