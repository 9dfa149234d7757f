"""Persistence of accepted readings and best-effort alert emission."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from models.records import AnomalyEvent, TelemetryReading

logger = logging.getLogger(__name__)


class TelemetryStore(Protocol):
    def append(self, reading: TelemetryReading) -> None: ...

    def latest_for_device(self, device_id: str) -> Optional[TelemetryReading]: ...

    def list_for_device(self, device_id: str, limit: int = 50) -> list[TelemetryReading]: ...


class AlertSink(Protocol):
    def emit(self, event: AnomalyEvent) -> None: ...


class TelemetryWriter:
    def __init__(self, store: TelemetryStore, alert_sink: Optional[AlertSink] = None) -> None:
        self.store = store
        self.alert_sink = alert_sink

    def write(self, reading: TelemetryReading, anomaly: Optional[AnomalyEvent] = None) -> None:
        """Append the reading, then emit its anomaly if one was flagged.

        Storage failures propagate. Alert failures are logged and dropped
        because the reading is already stored.
        """
        self.store.append(reading)

        if anomaly is None or self.alert_sink is None:
            return
        try:
            self.alert_sink.emit(anomaly)
        except Exception as exc:  # noqa: BLE001 - alerts must not fail ingestion
            logger.error(
                "Alert emission failed; reading kept",
                exc_info=True,
                extra={
                    "device_id": reading.device_id,
                    "fuel_drop": anomaly.fuel_drop_percent,
                    "error": type(exc).__name__,
                },
            )
