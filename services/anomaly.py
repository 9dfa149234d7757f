"""Fuel anomaly classification between consecutive readings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.records import AnomalyEvent, Device, TelemetryPayload, TelemetryReading

IGNITION_RPM_THRESHOLD = 300.0
FUEL_DROP_THRESHOLD = 5.0
FUEL_DROP_RATE_THRESHOLD = 10.0


@dataclass(frozen=True)
class DetectionResult:
    ignition_on: bool
    anomaly: Optional[AnomalyEvent] = None


class AnomalyDetector:
    """Pure classifier; it never persists anything.

    ``absolute`` mode flags any drop larger than ``fuel_drop_threshold``
    percentage points regardless of how far apart the readings are, so a
    device that reports weekly is judged the same as one reporting every
    minute. ``rate`` mode instead compares the drop per hour against
    ``fuel_drop_rate_threshold``.
    """

    def __init__(
        self,
        ignition_rpm_threshold: float = IGNITION_RPM_THRESHOLD,
        fuel_drop_threshold: float = FUEL_DROP_THRESHOLD,
        mode: str = "absolute",
        fuel_drop_rate_threshold: float = FUEL_DROP_RATE_THRESHOLD,
    ) -> None:
        if mode not in {"absolute", "rate"}:
            raise ValueError(f"Unknown anomaly mode {mode!r}.")
        self.ignition_rpm_threshold = ignition_rpm_threshold
        self.fuel_drop_threshold = fuel_drop_threshold
        self.mode = mode
        self.fuel_drop_rate_threshold = fuel_drop_rate_threshold

    def is_ignition_on(self, engine_rpm: float) -> bool:
        return engine_rpm > self.ignition_rpm_threshold

    def detect(
        self,
        previous: Optional[TelemetryReading],
        current: TelemetryPayload,
        device: Device,
        timestamp: datetime,
    ) -> DetectionResult:
        ignition_on = self.is_ignition_on(current.engine_rpm)
        if previous is None:
            return DetectionResult(ignition_on=ignition_on)

        drop = previous.fuel_level_percent - current.fuel_level_percent
        elapsed = (timestamp - previous.timestamp).total_seconds()
        if not self._is_suspicious(drop, elapsed):
            return DetectionResult(ignition_on=ignition_on)

        anomaly = AnomalyEvent(
            device_id=device.id,
            asset_id=device.asset_id,
            triggering_reading_timestamp=timestamp,
            fuel_drop_percent=drop,
            previous_fuel_level_percent=previous.fuel_level_percent,
            current_fuel_level_percent=current.fuel_level_percent,
            elapsed_seconds=elapsed,
        )
        return DetectionResult(ignition_on=ignition_on, anomaly=anomaly)

    def _is_suspicious(self, drop: float, elapsed_seconds: float) -> bool:
        if drop <= 0:
            return False
        if self.mode == "rate" and elapsed_seconds > 0:
            return drop / (elapsed_seconds / 3600.0) > self.fuel_drop_rate_threshold
        return drop > self.fuel_drop_threshold
