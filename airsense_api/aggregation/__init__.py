"""Pipeline de agregación: suavizado, ventana, estadísticas y series.

Estructura modular:
- smoothing.py: EMA + jitter
- window_store.py: ventana FIFO acotada por canal
- statistics.py: min/max/avg sobre la ventana
- chart_series.py: series (timestamp, valor) para gráficas
- engine.py: dueño de la ventana, snapshot/subscribe
"""

from .chart_series import ChartPoint, ChartSeries, ChartSeriesBuilder, celsius_to_fahrenheit
from .engine import AggregationEngine
from .smoothing import SmoothingAggregator
from .statistics import StatisticsCalculator
from .window_store import RollingWindowStore

__all__ = [
    "AggregationEngine",
    "ChartPoint",
    "ChartSeries",
    "ChartSeriesBuilder",
    "RollingWindowStore",
    "SmoothingAggregator",
    "StatisticsCalculator",
    "celsius_to_fahrenheit",
]
