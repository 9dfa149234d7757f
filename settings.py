from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_REGISTRY_PATH_ENV = "DEVICE_REGISTRY_PATH"
_STORE_PATH_ENV = "TELEMETRY_STORE_PATH"
_ALERT_LOG_PATH_ENV = "ALERT_LOG_PATH"
_IGNITION_RPM_ENV = "IGNITION_RPM_THRESHOLD"
_FUEL_DROP_ENV = "FUEL_DROP_THRESHOLD"
_ANOMALY_MODE_ENV = "ANOMALY_MODE"
_FUEL_DROP_RATE_ENV = "FUEL_DROP_RATE_THRESHOLD"
_SERIALIZE_ENV = "INGEST_SERIALIZE_PER_DEVICE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

ANOMALY_MODES = ("absolute", "rate")


@dataclass(frozen=True)
class Settings:
    registry_path: Optional[str]
    store_path: Optional[str]
    alert_log_path: Optional[str]
    ignition_rpm_threshold: float
    fuel_drop_threshold: float
    anomaly_mode: str
    fuel_drop_rate_threshold: float
    serialize_per_device: bool
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_anomaly_mode(default: str) -> str:
    value = os.getenv(_ANOMALY_MODE_ENV)
    if value is None:
        return default
    candidate = value.strip().lower()
    return candidate if candidate in ANOMALY_MODES else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        registry_path=_read_optional_env(_REGISTRY_PATH_ENV, "./tmp/devices.json"),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/telemetry.jsonl"),
        alert_log_path=_read_optional_env(_ALERT_LOG_PATH_ENV, "./tmp/alerts.json"),
        ignition_rpm_threshold=_read_float(_IGNITION_RPM_ENV, 300.0),
        fuel_drop_threshold=_read_float(_FUEL_DROP_ENV, 5.0),
        anomaly_mode=_read_anomaly_mode("absolute"),
        fuel_drop_rate_threshold=_read_float(_FUEL_DROP_RATE_ENV, 10.0),
        serialize_per_device=_read_bool(_SERIALIZE_ENV, False),
        log_level=_read_log_level("INFO"),
    )
