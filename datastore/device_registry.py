from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from app.schemas import DeviceRecord
from models.records import Device
from settings import get_settings


class MockDeviceRegistry:
    """Device table keyed by id with an exact-match index on the API key.

    Devices are provisioned out-of-band; the ingestion pipeline only reads.
    """

    def __init__(self, name: str = "devices", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._devices: Dict[str, DeviceRecord] = {}
        self._by_key: Dict[str, str] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_device(self, device: Device) -> None:
        record = DeviceRecord.from_device(device)
        with self._lock:
            existing = self._devices.get(record.id)
            if existing is not None:
                self._by_key.pop(existing.api_key, None)
            owner = self._by_key.get(record.api_key)
            if owner is not None and owner != record.id:
                raise ValueError(f"API key already assigned to device {owner!r}.")
            self._devices[record.id] = record
            self._by_key[record.api_key] = record.id
            self._persist()

    def get_device(self, device_id: str) -> Optional[Device]:
        with self._lock:
            record = self._devices.get(device_id)
            return record.to_device() if record is not None else None

    def get_by_api_key(self, api_key: str) -> Optional[Device]:
        with self._lock:
            device_id = self._by_key.get(api_key)
            if device_id is None:
                return None
            return self._devices[device_id].to_device()

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            device_id: record.model_dump(mode="json")
            for device_id, record in self._devices.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for device_id, payload in data.items():
            record = DeviceRecord.model_validate(payload)
            self._devices[device_id] = record
            self._by_key[record.api_key] = device_id


@lru_cache
def build_default_registry(path: Optional[str] = None) -> MockDeviceRegistry:
    settings = get_settings()
    registry_path = settings.registry_path if path is None else path
    persistence = Path(registry_path) if registry_path else None
    return MockDeviceRegistry(persistence_path=persistence)
