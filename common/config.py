from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


SOURCE_MQTT = "mqtt"
SOURCE_POLL = "poll"


class ConfigError(ValueError):
    """Valor de configuración inválido."""


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    source: str

    # Push (MQTT over WebSocket)
    mqtt_broker_url: str
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    mqtt_topics: Tuple[str, ...]
    mqtt_publish_topic: str
    mqtt_connect_timeout: float
    mqtt_selftest_delay: float

    # Pull (HTTP polling)
    device_ip: str
    poll_interval_ms: int
    poll_timeout_ms: int

    # Aggregation
    smoothing_alpha: float
    jitter_fraction: float
    jitter_seed: Optional[int]
    window_capacity: int
    message_log_capacity: int

    def validate(self) -> "Settings":
        if self.source not in (SOURCE_MQTT, SOURCE_POLL):
            raise ConfigError(f"AIRSENSE_SOURCE must be 'mqtt' or 'poll', got {self.source!r}")
        if not (0.0 < self.smoothing_alpha <= 1.0):
            raise ConfigError(f"SMOOTHING_ALPHA must be in (0, 1], got {self.smoothing_alpha}")
        if self.jitter_fraction < 0:
            raise ConfigError("JITTER_FRACTION must be >= 0")
        if self.poll_interval_ms <= 0 or self.poll_timeout_ms <= 0:
            raise ConfigError("POLL_INTERVAL_MS and POLL_TIMEOUT_MS must be positive")
        if self.window_capacity <= 0 or self.message_log_capacity <= 0:
            raise ConfigError("WINDOW_CAPACITY and MESSAGE_LOG_CAPACITY must be positive")
        if self.source == SOURCE_MQTT and not self.mqtt_topics:
            raise ConfigError("MQTT_TOPICS must name at least one topic")
        return self


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("AIRSENSE_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    source = os.getenv("AIRSENSE_SOURCE", SOURCE_MQTT).strip().lower()

    topics_raw = os.getenv("MQTT_TOPICS", "airsense,airsense/#")
    topics = tuple(t.strip() for t in topics_raw.split(",") if t.strip())

    seed_raw = os.getenv("JITTER_SEED", "").strip()
    jitter_seed = int(seed_raw) if seed_raw.lstrip("-").isdigit() else None

    settings = Settings(
        source=source,
        mqtt_broker_url=os.getenv("MQTT_BROKER_URL", "wss://tigoe.net/mqtt"),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        mqtt_topics=topics,
        mqtt_publish_topic=os.getenv("MQTT_PUBLISH_TOPIC", "airsense"),
        mqtt_connect_timeout=_env_float("MQTT_CONNECT_TIMEOUT", "10"),
        mqtt_selftest_delay=_env_float("MQTT_SELFTEST_DELAY", "1.0"),
        device_ip=os.getenv("DEVICE_IP", "192.168.1.167"),
        poll_interval_ms=_env_int("POLL_INTERVAL_MS", "2000"),
        poll_timeout_ms=_env_int("POLL_TIMEOUT_MS", "10000"),
        smoothing_alpha=_env_float("SMOOTHING_ALPHA", "0.4"),
        jitter_fraction=_env_float("JITTER_FRACTION", "0.005"),
        jitter_seed=jitter_seed,
        window_capacity=_env_int("WINDOW_CAPACITY", "100"),
        message_log_capacity=_env_int("MESSAGE_LOG_CAPACITY", "20"),
    )
    return settings.validate()
