"""Ingesta pull por polling HTTP del dispositivo."""

from .ingestor import NO_CACHE_HEADERS, PollFetchError, PollingIngestor
from .validators import DeviceDocumentError, DevicePayload, parse_device_document

__all__ = [
    "NO_CACHE_HEADERS",
    "PollFetchError",
    "PollingIngestor",
    "DeviceDocumentError",
    "DevicePayload",
    "parse_device_document",
]
