"""
Device state management and snapshot generation.
"""

import random
from datetime import UTC, datetime
from typing import Any

from .models import AnomalyType


class DeviceState:
    """Tracks the state of a device over time for realistic evolution"""

    def __init__(self, device_id: str):
        self.device_id = device_id

        # Base values (these evolve slowly)
        self.base_cpu = random.uniform(0.10, 0.30)
        self.base_memory = random.uniform(0.40, 0.55)
        self.base_temp = random.uniform(30, 38)
        self.battery_level = random.uniform(60, 100)
        self.charging = False

        # Current anomaly state
        self.active_anomaly: AnomalyType | None = None
        self.anomaly_duration: int = 0
        self.leaked_memory = 0.0

    def generate_snapshot(
        self,
        inject_anomaly: AnomalyType | None = None,
        timestamp: datetime | None = None,
        interval_seconds: float = 10.0,
    ) -> dict[str, Any]:
        """Generate a realistic snapshot with optional anomaly injection

        Args:
            inject_anomaly: Optional anomaly type to inject
            timestamp: Optional custom timestamp (for simulated time)
            interval_seconds: Time elapsed since the previous snapshot
        """

        # Handle anomaly injection
        if inject_anomaly:
            self.active_anomaly = inject_anomaly
            self.anomaly_duration = random.randint(6, 18)  # anomaly lasts 6-18 samples

        cpu_mult = 1.0
        temp_offset = 0.0
        drain_per_hour = random.uniform(2, 6)

        if self.active_anomaly:
            if self.active_anomaly == AnomalyType.CPU_SPIKE:
                cpu_mult = random.uniform(3.5, 5.0)
                temp_offset = random.uniform(5, 10)
                drain_per_hour *= 3
            elif self.active_anomaly == AnomalyType.MEMORY_LEAK:
                self.leaked_memory = min(0.45, self.leaked_memory + random.uniform(0.03, 0.06))
            elif self.active_anomaly == AnomalyType.THERMAL_THROTTLE:
                temp_offset = random.uniform(45, 60)
            elif self.active_anomaly == AnomalyType.BATTERY_DRAIN:
                drain_per_hour = random.uniform(45, 70)

            self.anomaly_duration -= 1
            if self.anomaly_duration <= 0:
                self.active_anomaly = None
                self.leaked_memory = 0.0

        # Occasionally plug in or unplug the charger
        if random.random() < 0.005:
            self.charging = not self.charging

        if self.charging:
            self.battery_level += random.uniform(20, 40) * interval_seconds / 3600
        else:
            self.battery_level -= drain_per_hour * interval_seconds / 3600
        self.battery_level = min(100.0, max(1.0, self.battery_level))

        # Calculate final values with bounds checking
        cpu_load = min(1.0, max(0.01, (self.base_cpu + random.uniform(-0.05, 0.05)) * cpu_mult))
        mem_used = min(
            0.99, max(0.05, self.base_memory + self.leaked_memory + random.uniform(-0.02, 0.02))
        )
        thermal = self.base_temp + temp_offset + random.uniform(-1, 1)

        return {
            "type": "device_snapshot",
            "timestamp": (timestamp or datetime.now(UTC)).isoformat(),
            "device_id": self.device_id,
            "cpu_load": round(cpu_load, 4),
            "mem_used_ratio": round(mem_used, 4),
            "battery_level": round(self.battery_level, 2),
            "battery_charging": self.charging,
            "thermal_celsius": round(thermal, 1),
        }
