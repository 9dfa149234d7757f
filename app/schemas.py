"""Pydantic schemas for the HTTP API layer and persisted rows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.records import AnomalyEvent, Device, TelemetryPayload, TelemetryReading


class IngestResponse(BaseModel):
    """Acknowledgement returned once a reading has been persisted."""

    success: bool = True


class ErrorResponse(BaseModel):
    """Stable error shape returned to devices."""

    error: str


class DeviceRecord(BaseModel):
    """Stored device registration."""

    id: str
    api_key: str
    asset_id: str

    @classmethod
    def from_device(cls, device: Device) -> "DeviceRecord":
        return cls(id=device.id, api_key=device.api_key, asset_id=device.asset_id)

    def to_device(self) -> Device:
        return Device(id=self.id, api_key=self.api_key, asset_id=self.asset_id)


class TelemetryPayloadIn(BaseModel):
    """Inbound reading as devices send it (camelCase wire names).

    Numbers are strict: booleans and numeric strings are rejected, and out of
    range values fail validation instead of being clamped.
    """

    model_config = ConfigDict(allow_inf_nan=False)

    gps_lat: float = Field(..., alias="gpsLat", strict=True, ge=-90, le=90)
    gps_lng: float = Field(..., alias="gpsLng", strict=True, ge=-180, le=180)
    fuel_level_percent: float = Field(..., alias="fuelLevel", strict=True, ge=0, le=100)
    engine_rpm: float = Field(..., alias="engineRpm", strict=True, ge=0)
    speed_kmh: float = Field(..., alias="speed", strict=True, ge=0)
    engine_hours_total: float = Field(..., alias="engineHours", strict=True, ge=0)
    timestamp: Optional[datetime] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _require_iso_string(cls, value: object) -> object:
        if value is None or isinstance(value, (str, datetime)):
            return value
        raise ValueError("timestamp must be an ISO-8601 string")

    @field_validator("timestamp")
    @classmethod
    def _normalise_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        try:
            return value.astimezone(timezone.utc)
        except OverflowError as exc:
            raise ValueError("timestamp is out of range") from exc

    def to_payload(self) -> TelemetryPayload:
        return TelemetryPayload(
            gps_lat=self.gps_lat,
            gps_lng=self.gps_lng,
            fuel_level_percent=self.fuel_level_percent,
            engine_rpm=self.engine_rpm,
            speed_kmh=self.speed_kmh,
            engine_hours_total=self.engine_hours_total,
            timestamp=self.timestamp,
        )


class TelemetryRow(BaseModel):
    """Telemetry store row; also the read API's reading representation."""

    device_id: str
    timestamp: datetime
    gps_lat: float
    gps_lng: float
    fuel_level_percent: float = Field(..., ge=0, le=100)
    engine_rpm: float = Field(..., ge=0)
    speed_kmh: float = Field(..., ge=0)
    engine_hours_total: float = Field(..., ge=0)
    is_ignition_on: bool

    @classmethod
    def from_reading(cls, reading: TelemetryReading) -> "TelemetryRow":
        return cls(
            device_id=reading.device_id,
            timestamp=reading.timestamp,
            gps_lat=reading.gps_lat,
            gps_lng=reading.gps_lng,
            fuel_level_percent=reading.fuel_level_percent,
            engine_rpm=reading.engine_rpm,
            speed_kmh=reading.speed_kmh,
            engine_hours_total=reading.engine_hours_total,
            is_ignition_on=reading.ignition_on,
        )

    def to_reading(self) -> TelemetryReading:
        return TelemetryReading(
            device_id=self.device_id,
            timestamp=self.timestamp,
            gps_lat=self.gps_lat,
            gps_lng=self.gps_lng,
            fuel_level_percent=self.fuel_level_percent,
            engine_rpm=self.engine_rpm,
            speed_kmh=self.speed_kmh,
            engine_hours_total=self.engine_hours_total,
            ignition_on=self.is_ignition_on,
        )


class AlertRecord(BaseModel):
    """A recorded fuel anomaly."""

    device_id: str
    asset_id: Optional[str] = None
    triggering_reading_timestamp: datetime
    fuel_drop_percent: float
    previous_fuel_level_percent: float
    current_fuel_level_percent: float
    elapsed_seconds: float
    detected_at: datetime

    @classmethod
    def from_event(cls, event: AnomalyEvent) -> "AlertRecord":
        return cls(
            device_id=event.device_id,
            asset_id=event.asset_id,
            triggering_reading_timestamp=event.triggering_reading_timestamp,
            fuel_drop_percent=event.fuel_drop_percent,
            previous_fuel_level_percent=event.previous_fuel_level_percent,
            current_fuel_level_percent=event.current_fuel_level_percent,
            elapsed_seconds=event.elapsed_seconds,
            detected_at=event.detected_at,
        )
