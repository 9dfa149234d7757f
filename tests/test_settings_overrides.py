from __future__ import annotations

from typing import Iterable

from datastore.alert_log import build_default_alert_log
from datastore.device_registry import build_default_registry
from services.ingestion import build_default_ingestion_service
from settings import get_settings
from storage.telemetry_store import build_default_store


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


CACHES = (
    get_settings,
    build_default_registry,
    build_default_store,
    build_default_alert_log,
    build_default_ingestion_service,
)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    registry_path = tmp_path / "devices.json"
    store_path = tmp_path / "telemetry.jsonl"
    alert_path = tmp_path / "alerts.json"

    monkeypatch.setenv("DEVICE_REGISTRY_PATH", str(registry_path))
    monkeypatch.setenv("TELEMETRY_STORE_PATH", str(store_path))
    monkeypatch.setenv("ALERT_LOG_PATH", str(alert_path))
    monkeypatch.setenv("IGNITION_RPM_THRESHOLD", "450")
    monkeypatch.setenv("FUEL_DROP_THRESHOLD", "7.5")
    monkeypatch.setenv("ANOMALY_MODE", "Rate")
    monkeypatch.setenv("FUEL_DROP_RATE_THRESHOLD", "12")
    monkeypatch.setenv("INGEST_SERIALIZE_PER_DEVICE", "true")
    _clear_caches(CACHES)

    try:
        service = build_default_ingestion_service()

        assert service.registry.persistence_path == registry_path
        assert service.store.persistence_path == store_path
        assert service.writer.alert_sink.persistence_path == alert_path
        assert service.detector.ignition_rpm_threshold == 450
        assert service.detector.fuel_drop_threshold == 7.5
        assert service.detector.mode == "rate"
        assert service.detector.fuel_drop_rate_threshold == 12
        assert service.serialize_per_device is True
    finally:
        _clear_caches(CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("IGNITION_RPM_THRESHOLD", "lots")
    monkeypatch.setenv("FUEL_DROP_THRESHOLD", "-3")
    monkeypatch.setenv("ANOMALY_MODE", "median")
    monkeypatch.setenv("INGEST_SERIALIZE_PER_DEVICE", "maybe")
    monkeypatch.setenv("TELEMETRY_STORE_PATH", "  ")
    get_settings.cache_clear()

    try:
        settings = get_settings()

        assert settings.ignition_rpm_threshold == 300
        assert settings.fuel_drop_threshold == 5.0
        assert settings.anomaly_mode == "absolute"
        assert settings.serialize_per_device is False
        assert settings.store_path is None
    finally:
        get_settings.cache_clear()


def test_default_store_path_is_json_lines(monkeypatch) -> None:
    monkeypatch.delenv("TELEMETRY_STORE_PATH", raising=False)
    get_settings.cache_clear()

    try:
        assert get_settings().store_path == "./tmp/telemetry.jsonl"
    finally:
        get_settings.cache_clear()
