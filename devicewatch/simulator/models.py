"""
Data models and enums for the device simulator.
"""

from dataclasses import dataclass
from enum import Enum


class AnomalyType(Enum):
    """Types of anomalies that can be injected"""

    CPU_SPIKE = "cpu_spike"
    MEMORY_LEAK = "memory_leak"
    THERMAL_THROTTLE = "thermal_throttle"
    BATTERY_DRAIN = "battery_drain"
    LOG_BURST = "log_burst"


# Anomalies affecting the device metrics, the others only affect the log stream
DEVICE_ANOMALIES = (
    AnomalyType.CPU_SPIKE,
    AnomalyType.MEMORY_LEAK,
    AnomalyType.THERMAL_THROTTLE,
    AnomalyType.BATTERY_DRAIN,
)


@dataclass
class SimulatorConfig:
    """Configuration for the device simulator"""

    # Kafka settings
    kafka_bootstrap_servers: str = "localhost:9092"
    snapshot_topic: str = "device-snapshots"
    log_topic: str = "device-logs"

    # Generation settings
    device_id: str = "sim-device-01"
    sampling_interval_seconds: float = 10.0
    time_scale: float = 1.0  # Simulated seconds per wall-clock second

    # Anomaly settings
    anomaly_probability: float = 0.02  # 2% chance of anomaly per tick
    enabled_anomalies: list[AnomalyType] | None = None

    # Processes emitting log lines
    processes: list[str] | None = None

    def __post_init__(self):
        if self.enabled_anomalies is None:
            self.enabled_anomalies = list(AnomalyType)
        if self.processes is None:
            self.processes = [
                "system_server",
                "com.android.systemui",
                "com.google.android.gms",
                "com.social.media.app",
                "com.music.player",
            ]
        if not 0.0 <= self.anomaly_probability <= 1.0:
            raise ValueError("anomaly_probability must be in [0, 1]")
        if self.sampling_interval_seconds <= 0 or self.time_scale <= 0:
            raise ValueError("sampling_interval_seconds and time_scale must be positive")
