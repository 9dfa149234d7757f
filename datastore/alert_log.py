from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import List, Optional

from app.schemas import AlertRecord
from models.records import AnomalyEvent
from services.errors import AlertEmissionError
from settings import get_settings

logger = logging.getLogger(__name__)


class MockAlertLog:
    """Append-only record of fuel anomalies, standing in for a notification sink."""

    def __init__(self, name: str = "alerts", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._events: List[AlertRecord] = []
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def emit(self, event: AnomalyEvent) -> None:
        record = AlertRecord.from_event(event)
        with self._lock:
            self._events.append(record)
            try:
                self._persist()
            except OSError as exc:
                self._events.pop()
                raise AlertEmissionError(f"Failed to record alert: {exc}") from exc
        logger.warning(
            "Potential fuel theft detected",
            extra={
                "device_id": event.device_id,
                "asset_id": event.asset_id,
                "fuel_drop": event.fuel_drop_percent,
                "elapsed_seconds": event.elapsed_seconds,
            },
        )

    def list_events(self, device_id: Optional[str] = None) -> list[AlertRecord]:
        """Return copies of recorded alerts, newest first."""

        with self._lock:
            events = [
                record.model_copy(deep=True)
                for record in self._events
                if device_id is None or record.device_id == device_id
            ]
        events.reverse()
        return events

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [record.model_dump(mode="json") for record in self._events]
        self.persistence_path.write_text(json.dumps(payload, indent=2))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = []

        for payload in data:
            self._events.append(AlertRecord.model_validate(payload))


@lru_cache
def build_default_alert_log(path: Optional[str] = None) -> MockAlertLog:
    settings = get_settings()
    log_path = settings.alert_log_path if path is None else path
    persistence = Path(log_path) if log_path else None
    return MockAlertLog(persistence_path=persistence)
