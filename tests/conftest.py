"""
Pytest configuration and shared fixtures.
"""

import pytest

from devicewatch.pipeline.config import CategoryConfig, PipelineConfig
from devicewatch.simulator.models import AnomalyType, SimulatorConfig


# Pipeline fixtures
@pytest.fixture
def cpu_category():
    """Single CPU category scored by its mean load."""
    return CategoryConfig(name="cpu", method_config={"features": ["cpu_mean"]})


@pytest.fixture
def pipeline_config(cpu_category):
    """One-snapshot windows, k=2, synchronous scoring for predictable tests."""
    return PipelineConfig(
        window_seconds=10.0,
        sampling_interval_seconds=10.0,
        scoring_timeout_seconds=None,
        categories=[cpu_category],
    )


@pytest.fixture
def snapshot_payload():
    """Wire payload of a healthy snapshot."""
    return {
        "timestamp": "2025-10-02T12:00:00Z",
        "cpu_load": 0.25,
        "mem_used_ratio": 0.5,
        "battery_level": 80,
        "battery_charging": False,
        "thermal_celsius": 35.0,
    }


# Simulator fixtures
@pytest.fixture
def simulator_config():
    """Simulator configuration without random anomalies."""
    return SimulatorConfig(
        kafka_bootstrap_servers="localhost:9092",
        snapshot_topic="test-snapshots",
        log_topic="test-logs",
        sampling_interval_seconds=10.0,
        anomaly_probability=0.0,
        processes=["proc.a", "proc.b"],
    )


@pytest.fixture
def all_anomaly_types():
    """List of all anomaly types."""
    return list(AnomalyType)
