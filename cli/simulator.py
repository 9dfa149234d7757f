"""Simple machine model that produces plausible readings for a device."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Dict, Optional


@dataclass
class MachineState:
    """Excavator-like machine idling and working around a fixed site.

    Fuel burns in proportion to engine load; ``siphon`` removes fuel at once
    to emulate theft.
    """

    gps_lat: float = 17.45
    gps_lng: float = 78.32
    fuel_level: float = 90.0
    engine_rpm: float = 0.0
    speed_kmh: float = 0.0
    engine_hours: float = 100.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rng: random.Random = field(default_factory=random.Random, repr=False)

    # tank percent per engine hour at full load
    BURN_RATE: ClassVar[float] = 6.0
    WORK_RPM: ClassVar[float] = 1800.0

    def step(self, minutes: float) -> None:
        hours = minutes / 60.0
        working = self.rng.random() > 0.3
        if working:
            self.engine_rpm = max(0.0, self.WORK_RPM + self.rng.uniform(-150.0, 150.0))
            self.speed_kmh = max(0.0, self.rng.uniform(0.0, 12.0))
            self.engine_hours += hours
        else:
            self.engine_rpm = 0.0
            self.speed_kmh = 0.0

        load = self.engine_rpm / self.WORK_RPM
        self.fuel_level = max(0.0, self.fuel_level - self.BURN_RATE * load * hours)
        if self.speed_kmh > 0:
            self.gps_lat += self.rng.uniform(-0.0005, 0.0005)
            self.gps_lng += self.rng.uniform(-0.0005, 0.0005)
        self.timestamp += timedelta(minutes=minutes)

    def siphon(self, percent: float) -> None:
        self.fuel_level = max(0.0, self.fuel_level - percent)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "gpsLat": round(self.gps_lat, 6),
            "gpsLng": round(self.gps_lng, 6),
            "fuelLevel": round(self.fuel_level, 2),
            "engineRpm": round(self.engine_rpm),
            "speed": round(self.speed_kmh, 1),
            "engineHours": round(self.engine_hours, 2),
        }


def build_state(seed: Optional[int] = None, fuel_level: float = 90.0) -> MachineState:
    return MachineState(fuel_level=fuel_level, rng=random.Random(seed))
