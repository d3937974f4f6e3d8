"""CLI entry point: corre una fuente sin API HTTP y loguea cada snapshot."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from typing import Optional

from common.config import SOURCE_MQTT, SOURCE_POLL, get_settings
from .core.domain import DashboardSnapshot
from .core.domain.snapshot import format_value
from .service import TelemetryService

logger = logging.getLogger(__name__)


def _log_snapshot(snapshot: DashboardSnapshot) -> None:
    logger.info(
        "Snapshot: %s",
        " ".join(
            f"{ch.value}={format_value(v)}{ch.unit}" for ch, v in snapshot.current_values.items()
        ),
    )


async def _run(service: TelemetryService, duration: Optional[float]) -> None:
    stop = asyncio.Event()
    if duration is not None:
        asyncio.get_running_loop().call_later(duration, stop.set)
    unsubscribe = service.engine.subscribe(_log_snapshot)
    try:
        await service.run_forever(stop)
    finally:
        unsubscribe()
        logger.info("Final stats: %s", service.stats)


def main(argv=None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Airsense telemetry ingest (headless)")
    p.add_argument("--source", choices=[SOURCE_MQTT, SOURCE_POLL], default=None)
    p.add_argument("--broker-url", default=None)
    p.add_argument("--device-ip", default=None)
    p.add_argument("--duration", type=float, default=None, help="seconds to run before exiting")
    args = p.parse_args(argv)

    settings = get_settings()
    overrides = {
        "source": args.source,
        "mqtt_broker_url": args.broker_url,
        "device_ip": args.device_ip,
    }
    settings = dataclasses.replace(
        settings, **{k: v for k, v in overrides.items() if v is not None}
    ).validate()

    service = TelemetryService(settings)
    logger.info("Airsense ingest started (source=%s)", settings.source)
    try:
        asyncio.run(_run(service, args.duration))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
