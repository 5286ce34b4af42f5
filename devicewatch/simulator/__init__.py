"""
Device Simulator for Kafka
Simulates device snapshots and process log lines with configurable anomalies.
"""

from .config import (
    BATTERY_FOCUS_CONFIG,
    CHAOS_CONFIG,
    CPU_FOCUS_CONFIG,
    DEV_CONFIG,
    NORMAL_CONFIG,
)
from .device_state import DeviceState
from .models import AnomalyType, SimulatorConfig
from .process_state import ProcessState
from .simulator import DeviceSimulator

__all__ = [
    "AnomalyType",
    "SimulatorConfig",
    "DeviceState",
    "ProcessState",
    "DeviceSimulator",
    "NORMAL_CONFIG",
    "CHAOS_CONFIG",
    "CPU_FOCUS_CONFIG",
    "BATTERY_FOCUS_CONFIG",
    "DEV_CONFIG",
]
