"""Fixtures compartidos."""

import asyncio
import dataclasses
from typing import Callable, List, Tuple

import pytest

from airsense_api.aggregation import AggregationEngine, SmoothingAggregator
from airsense_api.mqtt import TransportClosed
from common.config import Settings


class FixedRandom:
    """Fuente aleatoria determinista: uniform() siempre devuelve u."""

    def __init__(self, u: float = 0.0):
        self.u = u

    def uniform(self, a: float, b: float) -> float:
        return self.u


class FakeTransport:
    """Transporte en memoria que registra lo que ConnectionManager le pide."""

    def __init__(self, fail_connect: bool = False, publish_ok: bool = True):
        self.fail_connect = fail_connect
        self.publish_ok = publish_ok
        self.emit = None
        self.connects = 0
        self.closed = 0
        self.subscribed: List[str] = []
        self.published: List[Tuple[str, str]] = []

    def connect(self, emit):
        if self.fail_connect:
            raise OSError("network unreachable")
        self.connects += 1
        self.emit = emit

    def subscribe(self, topic: str) -> None:
        self.subscribed.append(topic)

    def publish(self, topic: str, payload: str) -> bool:
        self.published.append((topic, payload))
        return self.publish_ok

    def close(self) -> None:
        # paho llama on_disconnect también en un cierre pedido.
        self.closed += 1
        if self.emit is not None:
            self.emit(TransportClosed(reason="requested"))


BASE_SETTINGS = Settings(
    source="mqtt",
    mqtt_broker_url="wss://broker.test/mqtt",
    mqtt_username=None,
    mqtt_password=None,
    mqtt_topics=("airsense", "airsense/#"),
    mqtt_publish_topic="airsense",
    mqtt_connect_timeout=10.0,
    mqtt_selftest_delay=60.0,
    device_ip="192.168.1.167",
    poll_interval_ms=60000,
    poll_timeout_ms=1000,
    smoothing_alpha=0.4,
    jitter_fraction=0.0,
    jitter_seed=None,
    window_capacity=100,
    message_log_capacity=20,
)


def make_settings(**overrides) -> Settings:
    return dataclasses.replace(BASE_SETTINGS, **overrides).validate()


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> bool:
    """Cede el loop hasta que predicate() sea True o venza el timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.005)
    return True


@pytest.fixture
def fixed_rng() -> FixedRandom:
    return FixedRandom(0.0)


@pytest.fixture
def engine() -> AggregationEngine:
    """Motor sin jitter: los valores suavizados son EMA exactos."""
    return AggregationEngine(smoother=SmoothingAggregator(jitter_fraction=0.0))


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
