"""
Predefined configurations for different simulation scenarios.
"""

from .models import AnomalyType, SimulatorConfig

# Normal operation (low anomaly rate)
NORMAL_CONFIG = SimulatorConfig(
    anomaly_probability=0.005,
    sampling_interval_seconds=10.0,
)


# Chaos mode (high anomaly rate, all types, accelerated clock)
CHAOS_CONFIG = SimulatorConfig(
    anomaly_probability=0.08,
    time_scale=10.0,
)


# Focus on CPU issues with a matching log burst
CPU_FOCUS_CONFIG = SimulatorConfig(
    anomaly_probability=0.03,
    enabled_anomalies=[AnomalyType.CPU_SPIKE],
    time_scale=5.0,
)


# Power issues only
BATTERY_FOCUS_CONFIG = SimulatorConfig(
    anomaly_probability=0.03,
    enabled_anomalies=[AnomalyType.BATTERY_DRAIN, AnomalyType.THERMAL_THROTTLE],
    time_scale=5.0,
)


# Development/Testing (fast, frequent anomalies)
DEV_CONFIG = SimulatorConfig(
    anomaly_probability=0.05, sampling_interval_seconds=2.0, time_scale=2.0
)
