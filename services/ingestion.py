"""Per-request orchestration of telemetry ingestion."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from functools import lru_cache
from threading import Lock
from typing import ContextManager, Dict, Iterator, Optional

from datastore.alert_log import build_default_alert_log
from datastore.device_registry import build_default_registry
from models.records import Device, TelemetryReading
from services.anomaly import AnomalyDetector
from services.credentials import CredentialResolver, DeviceRegistry
from services.errors import IngestionError, StorageError
from services.validator import PayloadValidator
from services.writer import AlertSink, TelemetryStore, TelemetryWriter
from settings import get_settings
from storage.telemetry_store import build_default_store

logger = logging.getLogger(__name__)


class IngestionService:
    """Authenticates, validates, classifies and persists one reading at a time.

    The service keeps no state between requests apart from the optional
    per-device locks; everything else lives in the injected collaborators.
    The read of the previous reading and the insert are not atomic, so two
    concurrent requests for one device may both compare against the same
    previous row unless ``serialize_per_device`` is enabled, and even then
    only within this process.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        store: TelemetryStore,
        alert_sink: Optional[AlertSink] = None,
        detector: Optional[AnomalyDetector] = None,
        serialize_per_device: bool = False,
    ) -> None:
        self.registry = registry
        self.store = store
        self.resolver = CredentialResolver(registry)
        self.validator = PayloadValidator()
        self.detector = detector or AnomalyDetector()
        self.writer = TelemetryWriter(store, alert_sink)
        self.serialize_per_device = serialize_per_device
        self._device_locks: Dict[str, Lock] = {}
        self._device_locks_lock = Lock()

    def ingest(self, api_key: Optional[str], body: bytes) -> TelemetryReading:
        """Run one request through the pipeline and return the stored reading.

        Raises an ``IngestionError`` subclass for every anticipated failure.
        """
        start_time = time.perf_counter()
        try:
            device = self.resolver.resolve(api_key)
            payload = self.validator.parse(body)

            with self._device_guard(device.id):
                previous = self.store.latest_for_device(device.id)
                timestamp = payload.timestamp or datetime.now(timezone.utc)
                result = self.detector.detect(previous, payload, device, timestamp)
                reading = TelemetryReading(
                    device_id=device.id,
                    timestamp=timestamp,
                    gps_lat=payload.gps_lat,
                    gps_lng=payload.gps_lng,
                    fuel_level_percent=payload.fuel_level_percent,
                    engine_rpm=payload.engine_rpm,
                    speed_kmh=payload.speed_kmh,
                    engine_hours_total=payload.engine_hours_total,
                    ignition_on=result.ignition_on,
                )
                self.writer.write(reading, result.anomaly)
        except StorageError as exc:
            logger.error(
                "Telemetry insert failed",
                extra={"status": exc.status_code, "error": exc.message},
            )
            raise
        except IngestionError as exc:
            logger.warning(
                "Rejected telemetry: %s",
                exc.message,
                extra={"status": exc.status_code, "field": getattr(exc, "field", None)},
            )
            raise

        logger.info(
            "Telemetry accepted",
            extra={
                "device_id": device.id,
                "asset_id": device.asset_id,
                "status": "anomaly" if result.anomaly else "ok",
                "ingest_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return reading

    def get_device(self, device_id: str) -> Device:
        device = self.registry.get_device(device_id)
        if device is None:
            raise KeyError(f"Device {device_id!r} not found.")
        return device

    def latest_reading(self, device_id: str) -> TelemetryReading:
        self.get_device(device_id)
        reading = self.store.latest_for_device(device_id)
        if reading is None:
            raise KeyError(f"No telemetry recorded for device {device_id!r}.")
        return reading

    def recent_readings(self, device_id: str, limit: int = 50) -> list[TelemetryReading]:
        self.get_device(device_id)
        return self.store.list_for_device(device_id, limit=limit)

    def _device_guard(self, device_id: str) -> ContextManager[None]:
        if not self.serialize_per_device:
            return nullcontext()
        return self._locked(device_id)

    @contextmanager
    def _locked(self, device_id: str) -> Iterator[None]:
        with self._device_locks_lock:
            lock = self._device_locks.setdefault(device_id, Lock())
        with lock:
            yield


@lru_cache
def build_default_ingestion_service() -> IngestionService:
    """Factory that wires the service with the default mock collaborators."""
    settings = get_settings()
    detector = AnomalyDetector(
        ignition_rpm_threshold=settings.ignition_rpm_threshold,
        fuel_drop_threshold=settings.fuel_drop_threshold,
        mode=settings.anomaly_mode,
        fuel_drop_rate_threshold=settings.fuel_drop_rate_threshold,
    )
    return IngestionService(
        registry=build_default_registry(),
        store=build_default_store(),
        alert_sink=build_default_alert_log(),
        detector=detector,
        serialize_per_device=settings.serialize_per_device,
    )
