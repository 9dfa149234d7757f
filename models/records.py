"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True, slots=True)
class Device:
    """A tracking unit bound to one fleet asset."""

    id: str
    api_key: str = field(repr=False)
    asset_id: str


@dataclass(frozen=True, slots=True)
class TelemetryPayload:
    """A validated reading as sent by a device, before it is bound to one."""

    gps_lat: float
    gps_lng: float
    fuel_level_percent: float
    engine_rpm: float
    speed_kmh: float
    engine_hours_total: float
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class TelemetryReading:
    """One stored point-in-time sensor snapshot."""

    device_id: str
    timestamp: datetime
    gps_lat: float
    gps_lng: float
    fuel_level_percent: float
    engine_rpm: float
    speed_kmh: float
    engine_hours_total: float
    ignition_on: bool


@dataclass(frozen=True, slots=True)
class AnomalyEvent:
    """A suspected fuel theft or leak between two consecutive readings."""

    device_id: str
    triggering_reading_timestamp: datetime
    fuel_drop_percent: float
    previous_fuel_level_percent: float
    current_fuel_level_percent: float
    elapsed_seconds: float
    asset_id: Optional[str] = None
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
