from __future__ import annotations
from collections import defaultdict
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from app.schemas import TelemetryRow
from models.records import TelemetryReading
from services.errors import StorageError
from settings import get_settings


class MockTelemetryStore:
    """Append-only telemetry table persisted as JSON lines.

    Rows are never updated or deleted. Identical readings are stored as
    separate rows.
    """

    def __init__(self, name: str = "telemetry", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._rows: Dict[str, List[TelemetryRow]] = defaultdict(list)
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def append(self, reading: TelemetryReading) -> None:
        row = TelemetryRow.from_reading(reading)
        with self._lock:
            if self.persistence_path:
                try:
                    self._write_line((row.model_dump_json() + "\n").encode("utf-8"))
                except OSError as exc:
                    raise StorageError(f"Failed to insert telemetry: {exc.strerror or exc}") from exc
            self._rows[row.device_id].append(row)

    def _write_line(self, data: bytes) -> None:
        # A failed write is cut back so the next row starts on a fresh line.
        with self.persistence_path.open("ab", buffering=0) as handle:
            start = handle.tell()
            try:
                view = memoryview(data)
                while view:
                    written = handle.write(view)
                    view = view[written:]
            except OSError:
                handle.truncate(start)
                raise

    def latest_for_device(self, device_id: str) -> Optional[TelemetryReading]:
        """Most recent reading by timestamp; on ties the last inserted wins."""

        with self._lock:
            rows = self._rows.get(device_id)
            if not rows:
                return None
            latest = rows[-1]
            for row in reversed(rows):
                if row.timestamp > latest.timestamp:
                    latest = row
            return latest.to_reading()

    def list_for_device(self, device_id: str, limit: int = 50) -> list[TelemetryReading]:
        with self._lock:
            rows = list(reversed(self._rows.get(device_id, [])))
        rows.sort(key=lambda row: row.timestamp, reverse=True)
        return [row.to_reading() for row in rows[:limit]]

    def count(self, device_id: Optional[str] = None) -> int:
        with self._lock:
            if device_id is not None:
                return len(self._rows.get(device_id, []))
            return sum(len(rows) for rows in self._rows.values())

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            lines = self.persistence_path.read_text(encoding="utf-8").splitlines()
        except OSError:
            lines = []

        for line in lines:
            if not line.strip():
                continue
            try:
                row = TelemetryRow.model_validate_json(line)
            except ValueError:
                continue
            self._rows[row.device_id].append(row)


@lru_cache
def build_default_store(path: Optional[str] = None) -> MockTelemetryStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return MockTelemetryStore(persistence_path=persistence)
