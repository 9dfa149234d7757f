import errno
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from datastore.alert_log import MockAlertLog
from datastore.device_registry import MockDeviceRegistry
from models.records import AnomalyEvent, Device, TelemetryReading
from services.errors import AlertEmissionError, StorageError
from storage.telemetry_store import MockTelemetryStore

T0 = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def _reading(device_id: str = "dev-1", minutes: int = 0, fuel: float = 80.0) -> TelemetryReading:
    return TelemetryReading(
        device_id=device_id,
        timestamp=T0 + timedelta(minutes=minutes),
        gps_lat=17.45,
        gps_lng=78.32,
        fuel_level_percent=fuel,
        engine_rpm=1200,
        speed_kmh=8.0,
        engine_hours_total=100.0,
        ignition_on=True,
    )


def test_registry_lookup_is_exact_match() -> None:
    registry = MockDeviceRegistry()
    registry.put_device(Device(id="dev-1", api_key="Key-ABC", asset_id="machine-1"))

    assert registry.get_by_api_key("Key-ABC") == Device(
        id="dev-1", api_key="Key-ABC", asset_id="machine-1"
    )
    assert registry.get_by_api_key("key-abc") is None
    assert registry.get_by_api_key("Key-AB") is None
    assert registry.get_by_api_key(" Key-ABC") is None


def test_registry_rotating_key_drops_old_key() -> None:
    registry = MockDeviceRegistry()
    registry.put_device(Device(id="dev-1", api_key="old", asset_id="machine-1"))
    registry.put_device(Device(id="dev-1", api_key="new", asset_id="machine-1"))

    assert registry.get_by_api_key("old") is None
    assert registry.get_by_api_key("new") is not None


def test_registry_rejects_shared_key() -> None:
    registry = MockDeviceRegistry()
    registry.put_device(Device(id="dev-1", api_key="K1", asset_id="machine-1"))

    with pytest.raises(ValueError):
        registry.put_device(Device(id="dev-2", api_key="K1", asset_id="machine-2"))


def test_registry_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "devices.json"
    registry = MockDeviceRegistry(persistence_path=path)
    registry.put_device(Device(id="dev-1", api_key="K1", asset_id="machine-1"))

    reloaded = MockDeviceRegistry(persistence_path=path)

    assert reloaded.get_by_api_key("K1") == Device(id="dev-1", api_key="K1", asset_id="machine-1")
    assert reloaded.get_device("dev-1") is not None
    assert reloaded.get_device("dev-2") is None


def test_device_repr_hides_api_key() -> None:
    assert "secret" not in repr(Device(id="dev-1", api_key="secret", asset_id="m"))


def test_store_latest_is_by_timestamp_not_insert_order() -> None:
    store = MockTelemetryStore()
    store.append(_reading(minutes=10, fuel=70.0))
    store.append(_reading(minutes=0, fuel=80.0))

    latest = store.latest_for_device("dev-1")

    assert latest is not None
    assert latest.fuel_level_percent == 70.0


def test_store_latest_tie_prefers_last_inserted() -> None:
    store = MockTelemetryStore()
    store.append(_reading(minutes=5, fuel=70.0))
    store.append(_reading(minutes=5, fuel=65.0))

    latest = store.latest_for_device("dev-1")

    assert latest is not None
    assert latest.fuel_level_percent == 65.0


def test_store_keeps_devices_separate() -> None:
    store = MockTelemetryStore()
    store.append(_reading(device_id="dev-1"))

    assert store.latest_for_device("dev-2") is None
    assert store.count("dev-1") == 1
    assert store.count("dev-2") == 0


def test_store_keeps_duplicate_rows() -> None:
    store = MockTelemetryStore()
    reading = _reading()

    store.append(reading)
    store.append(reading)

    assert store.count() == 2


def test_store_lists_newest_first_with_limit() -> None:
    store = MockTelemetryStore()
    for minutes in (0, 20, 10):
        store.append(_reading(minutes=minutes))

    listed = store.list_for_device("dev-1", limit=2)

    assert [reading.timestamp for reading in listed] == [
        T0 + timedelta(minutes=20),
        T0 + timedelta(minutes=10),
    ]


def test_store_persists_json_lines_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "telemetry.jsonl"
    store = MockTelemetryStore(persistence_path=path)
    store.append(_reading(minutes=0))
    store.append(_reading(minutes=5, fuel=75.0))

    assert len(path.read_text().splitlines()) == 2
    assert '"is_ignition_on":true' in path.read_text()

    reloaded = MockTelemetryStore(persistence_path=path)
    latest = reloaded.latest_for_device("dev-1")
    assert latest == _reading(minutes=5, fuel=75.0)


def test_store_write_failure_raises_storage_error(tmp_path: Path) -> None:
    path = tmp_path / "telemetry.jsonl"
    store = MockTelemetryStore(persistence_path=path)
    path.mkdir()

    with pytest.raises(StorageError):
        store.append(_reading())

    assert store.count() == 0


class HalfWriteFile:
    """Writes half of each chunk to the real file, then fails like a full disk."""

    def __init__(self, handle) -> None:
        self._handle = handle

    def __enter__(self) -> "HalfWriteFile":
        return self

    def __exit__(self, *exc_info) -> None:
        self._handle.close()

    def tell(self) -> int:
        return self._handle.tell()

    def truncate(self, size: int) -> int:
        return self._handle.truncate(size)

    def write(self, data) -> int:
        self._handle.write(bytes(data[: len(data) // 2]))
        raise OSError(errno.ENOSPC, "No space left on device")


def test_store_partial_write_does_not_corrupt_next_row(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "telemetry.jsonl"
    store = MockTelemetryStore(persistence_path=path)
    store.append(_reading(minutes=0))

    real_open = Path.open
    monkeypatch.setattr(
        Path, "open", lambda self, *args, **kwargs: HalfWriteFile(real_open(self, *args, **kwargs))
    )
    with pytest.raises(StorageError, match="No space left on device"):
        store.append(_reading(minutes=5))
    monkeypatch.undo()

    store.append(_reading(minutes=10, fuel=70.0))

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    reloaded = MockTelemetryStore(persistence_path=path)
    assert reloaded.count("dev-1") == 2
    assert reloaded.latest_for_device("dev-1") == _reading(minutes=10, fuel=70.0)


def _event(device_id: str = "dev-1", minutes: int = 0) -> AnomalyEvent:
    return AnomalyEvent(
        device_id=device_id,
        asset_id="machine-1",
        triggering_reading_timestamp=T0 + timedelta(minutes=minutes),
        fuel_drop_percent=8.0,
        previous_fuel_level_percent=90.0,
        current_fuel_level_percent=82.0,
        elapsed_seconds=600.0,
    )


def test_alert_log_lists_newest_first_and_filters(tmp_path: Path) -> None:
    path = tmp_path / "alerts.json"
    alert_log = MockAlertLog(persistence_path=path)
    alert_log.emit(_event(minutes=0))
    alert_log.emit(_event(device_id="dev-2", minutes=5))

    events = alert_log.list_events()
    assert [event.device_id for event in events] == ["dev-2", "dev-1"]
    assert [event.device_id for event in alert_log.list_events("dev-1")] == ["dev-1"]

    reloaded = MockAlertLog(persistence_path=path)
    assert len(reloaded.list_events()) == 2


def test_alert_log_write_failure_raises_alert_error(tmp_path: Path) -> None:
    path = tmp_path / "alerts.json"
    alert_log = MockAlertLog(persistence_path=path)
    path.mkdir()

    with pytest.raises(AlertEmissionError):
        alert_log.emit(_event())

    assert alert_log.list_events() == []
