"""Suavizado EMA con jitter acotado.

    smoothed = α·raw + (1−α)·previous      (previous = None → smoothed = raw)
    output   = smoothed + smoothed·jitter_fraction·u,   u ~ U[−1, 1]

α menor ⇒ más suavizado. El jitter existe solo para dar vida visual a las
gráficas; la fuente aleatoria es inyectable para tests deterministas.
"""

from __future__ import annotations

import logging
import random
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_ALPHA = 0.4
DEFAULT_JITTER_FRACTION = 0.005


class RandomSource(Protocol):
    def uniform(self, a: float, b: float) -> float:
        ...


class SmoothingAggregator:
    """Aplica EMA + jitter a un valor crudo dado el valor suavizado previo.

    No guarda estado propio ni escribe en la ventana: el valor previo lo
    aporta quien llama (RollingWindowStore.latest).
    """

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        jitter_fraction: float = DEFAULT_JITTER_FRACTION,
        rng: Optional[RandomSource] = None,
        seed: Optional[int] = None,
    ):
        if not (0.0 < alpha <= 1.0):
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if jitter_fraction < 0:
            raise ValueError(f"jitter_fraction must be >= 0, got {jitter_fraction}")

        self.alpha = alpha
        self.jitter_fraction = jitter_fraction
        # Nunca el generador global del módulo random.
        self._rng: RandomSource = rng if rng is not None else random.Random(seed)

    def ema(self, raw: float, previous: Optional[float]) -> float:
        if previous is None:
            return raw
        return self.alpha * raw + (1 - self.alpha) * previous

    def jitter(self, value: float) -> float:
        if self.jitter_fraction == 0:
            return value
        u = self._rng.uniform(-1.0, 1.0)
        return value + value * self.jitter_fraction * u

    def smooth(self, raw: float, previous: Optional[float]) -> float:
        """EMA seguido de jitter."""
        return self.jitter(self.ema(raw, previous))
