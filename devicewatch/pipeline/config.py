"""
Configuration for the telemetry-to-alert pipeline.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .models import FEATURE_NAMES

EMIT_MODES = ("sliding", "tumbling")
OVERFLOW_POLICIES = ("drop_oldest", "reject")


@dataclass
class CategoryConfig:
    """One logical anomaly category, scored by its own method and scorer state"""

    name: str
    method_name: str = "feature_level"
    method_config: dict = field(default_factory=dict)

    # Decision policy overrides, None falls back to the pipeline defaults
    cutoff: float | None = None
    hysteresis_margin: float | None = None
    consecutive_windows: int | None = None

    def __post_init__(self):
        features = self.method_config.get("features", ())
        unknown = set(features) - set(FEATURE_NAMES)
        if unknown:
            raise ValueError(f"Category '{self.name}' uses unknown features: {sorted(unknown)}")


def default_categories(method_name: str = "feature_level") -> list[CategoryConfig]:
    """CPU, memory, battery drain and thermal categories scored by the same method"""
    features = {
        "cpu": ["cpu_mean"],
        "memory": ["mem_mean"],
        "battery": ["battery_drain"],
        "thermal": ["thermal_mean"],
    }
    return [
        CategoryConfig(name=name, method_name=method_name, method_config={"features": selected})
        for name, selected in features.items()
    ]


@dataclass
class PipelineConfig:
    """Configuration for the pipeline orchestrator and its components"""

    device_id: str = "local-device"

    # Feature windowing
    window_seconds: float = 60.0
    sampling_interval_seconds: float = 10.0
    emit_mode: str = "sliding"

    # Anomaly scoring
    cutoff: float = 0.8
    hysteresis_margin: float = 0.1
    consecutive_windows: int = 2
    scoring_timeout_seconds: float | None = 1.0

    # Log correlation
    correlation_lookback_seconds: float = 300.0
    correlator_capacity: int = 5000
    correlator_horizon_seconds: float = 600.0
    min_relevance: float = 1.0
    ignored_processes: list[str] = field(default_factory=list)

    # Alert lifecycle
    reopen_window_seconds: float = 600.0
    retention_seconds: float = 86400.0

    # Ingestion queues
    snapshot_queue_capacity: int = 1000
    log_queue_capacity: int = 10000
    overflow_policy: str = "drop_oldest"

    # Redis model cache, None disables loading pre-trained baselines
    redis_host: str | None = None
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None

    categories: list[CategoryConfig] = field(default_factory=default_categories)

    def __post_init__(self):
        if self.window_seconds <= 0 or self.sampling_interval_seconds <= 0:
            raise ValueError("window_seconds and sampling_interval_seconds must be positive")
        if self.emit_mode not in EMIT_MODES:
            raise ValueError(f"emit_mode must be one of {EMIT_MODES}, got '{self.emit_mode}'")
        if not 0.0 < self.cutoff <= 1.0:
            raise ValueError(f"cutoff must be in (0, 1], got {self.cutoff}")
        if not 0.0 <= self.hysteresis_margin < self.cutoff:
            raise ValueError("hysteresis_margin must be in [0, cutoff)")
        if self.consecutive_windows < 1:
            raise ValueError("consecutive_windows must be at least 1")
        if self.correlator_horizon_seconds < self.correlation_lookback_seconds:
            raise ValueError("correlator_horizon_seconds must cover the correlation lookback")
        if self.snapshot_queue_capacity < 1 or self.log_queue_capacity < 1:
            raise ValueError("Queue capacities must be at least 1")
        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(f"overflow_policy must be one of {OVERFLOW_POLICIES}")
        names = [c.name for c in self.categories]
        if not names or len(names) != len(set(names)):
            raise ValueError("At least one category is required and names must be unique")

    @property
    def window_size(self) -> int:
        """Number of snapshots in one window"""
        return max(1, round(self.window_seconds / self.sampling_interval_seconds))

    @classmethod
    def from_env(cls, prefix: str = "DEVICEWATCH_", **overrides) -> "PipelineConfig":
        """Build a configuration from environment variables (a .env file is honored)

        Every scalar field maps to ``<prefix><FIELD_NAME>``, e.g.
        ``DEVICEWATCH_WINDOW_SECONDS=30``. Keyword overrides win over the environment.
        """
        load_dotenv()

        values = {}
        for name, cast in _ENV_FIELDS.items():
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = cast(raw)

        method_name = os.getenv(f"{prefix}METHOD")
        if method_name:
            values["categories"] = default_categories(method_name)

        ignored = os.getenv(f"{prefix}IGNORED_PROCESSES")
        if ignored:
            values["ignored_processes"] = [p.strip() for p in ignored.split(",") if p.strip()]

        values.update(overrides)
        return cls(**values)


_ENV_FIELDS = {
    "device_id": str,
    "window_seconds": float,
    "sampling_interval_seconds": float,
    "emit_mode": str,
    "cutoff": float,
    "hysteresis_margin": float,
    "consecutive_windows": int,
    "scoring_timeout_seconds": float,
    "correlation_lookback_seconds": float,
    "correlator_capacity": int,
    "correlator_horizon_seconds": float,
    "min_relevance": float,
    "reopen_window_seconds": float,
    "retention_seconds": float,
    "snapshot_queue_capacity": int,
    "log_queue_capacity": int,
    "overflow_policy": str,
    "redis_host": str,
    "redis_port": int,
    "redis_db": int,
    "redis_password": str,
}
