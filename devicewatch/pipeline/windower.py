"""
Feature windowing: turns a stream of snapshots into normalized feature vectors.

Normalization uses fixed ranges so that vectors are comparable across devices:

    cpu_mean, cpu_peak      cpu_load, already in [0, 1]
    mem_mean, mem_peak      mem_used_ratio, already in [0, 1]
    battery_level           last battery_level in [0, 100], divided by 100
    battery_drain           discharge in %/hour while not charging, [0, 50] scaled to [0, 1]
    charging_ratio          share of samples taken while charging
    thermal_mean            thermal_celsius, [20, 100] scaled to [0, 1]

Every dimension is clipped to [0, 1].
"""

from collections import deque
from datetime import timedelta

import numpy as np
import structlog

from .config import PipelineConfig
from .errors import InvalidSnapshot
from .models import FEATURE_NAMES, FeatureVector, Snapshot

logger = structlog.get_logger(__name__)

MAX_DRAIN_PERCENT_PER_HOUR = 50.0
THERMAL_RANGE_CELSIUS = (20.0, 100.0)

# A gap wider than this many expected intervals degrades the next vector
GAP_TOLERANCE = 2.0


def _forward_fill(values: list) -> list:
    """Replace missing values by the last valid value, leading gaps stay None"""
    filled = []
    last = None
    for value in values:
        if value is not None:
            last = value
        filled.append(last)
    return filled


def _clip(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


class FeatureWindower:
    """Ring buffer of the last N snapshots emitting one FeatureVector per window"""

    def __init__(
        self,
        window_size: int,
        sampling_interval_seconds: float,
        emit_mode: str = "sliding",
    ):
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        if emit_mode not in ("sliding", "tumbling"):
            raise ValueError(f"Unknown emit mode '{emit_mode}'")

        self.window_size = window_size
        self.expected_interval = timedelta(seconds=sampling_interval_seconds)
        self.emit_mode = emit_mode

        self._buffer: deque[Snapshot] = deque(maxlen=window_size)
        self._last_timestamp = None
        self._gap_pending = False
        self._since_emit = 0

        self.stats = {"pushed": 0, "emitted": 0, "degraded": 0, "gaps": 0}

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "FeatureWindower":
        return cls(
            window_size=config.window_size,
            sampling_interval_seconds=config.sampling_interval_seconds,
            emit_mode=config.emit_mode,
        )

    def push(self, snapshot: Snapshot) -> FeatureVector | None:
        """Add a snapshot and return a FeatureVector if a window is complete

        Raises:
            InvalidSnapshot: If the snapshot is not later than the previous one
        """
        if self._last_timestamp is not None:
            if snapshot.timestamp <= self._last_timestamp:
                raise InvalidSnapshot(
                    f"Snapshot at {snapshot.timestamp.isoformat()} is not later than "
                    f"{self._last_timestamp.isoformat()}"
                )
            gap = snapshot.timestamp - self._last_timestamp
            if gap > self.expected_interval * GAP_TOLERANCE:
                self._gap_pending = True
                self.stats["gaps"] += 1
                logger.debug(
                    "Sampling gap detected",
                    gap_sec=gap.total_seconds(),
                    expected_sec=self.expected_interval.total_seconds(),
                )

        self._last_timestamp = snapshot.timestamp
        self._buffer.append(snapshot)
        self._since_emit += 1
        self.stats["pushed"] += 1

        if len(self._buffer) < self.window_size:
            return None
        if self.emit_mode == "tumbling" and self._since_emit < self.window_size:
            return None

        vector = self._build_vector()
        self._since_emit = 0
        self._gap_pending = False

        self.stats["emitted"] += 1
        if vector.degraded:
            self.stats["degraded"] += 1
        return vector

    def _build_vector(self) -> FeatureVector:
        samples = list(self._buffer)
        degraded = self._gap_pending

        cpu = [v for v in _forward_fill([s.cpu_load for s in samples]) if v is not None]
        mem = [v for v in _forward_fill([s.mem_used_ratio for s in samples]) if v is not None]
        levels = _forward_fill([s.battery_level for s in samples])
        charging = _forward_fill([s.battery_charging for s in samples])
        thermal = [v for v in _forward_fill([s.thermal_celsius for s in samples]) if v is not None]

        features = dict.fromkeys(FEATURE_NAMES, 0.0)

        if cpu:
            features["cpu_mean"] = _clip(np.mean(cpu))
            features["cpu_peak"] = _clip(np.max(cpu))
        else:
            degraded = True

        if mem:
            features["mem_mean"] = _clip(np.mean(mem))
            features["mem_peak"] = _clip(np.max(mem))
        else:
            degraded = True

        valid_levels = [v for v in levels if v is not None]
        if valid_levels:
            features["battery_level"] = _clip(valid_levels[-1] / 100.0)
            features["battery_drain"] = _clip(
                self._drain_rate(samples, levels, charging) / MAX_DRAIN_PERCENT_PER_HOUR
            )
        else:
            degraded = True

        valid_charging = [v for v in charging if v is not None]
        if valid_charging:
            features["charging_ratio"] = _clip(sum(valid_charging) / len(valid_charging))
        else:
            degraded = True

        # Thermal sensors are optional, an absent reading does not degrade the vector
        if thermal:
            low, high = THERMAL_RANGE_CELSIUS
            features["thermal_mean"] = _clip((np.mean(thermal) - low) / (high - low))

        return FeatureVector(
            values=tuple(features[name] for name in FEATURE_NAMES),
            window_start=samples[0].timestamp,
            window_end=samples[-1].timestamp,
            degraded=degraded,
            sample_count=len(samples),
        )

    @staticmethod
    def _drain_rate(samples: list[Snapshot], levels: list, charging: list) -> float:
        """Battery discharge in percent per hour over the window, ignoring charging spans"""
        span_hours = (samples[-1].timestamp - samples[0].timestamp).total_seconds() / 3600.0
        if span_hours <= 0:
            return 0.0

        drop = 0.0
        for i in range(1, len(samples)):
            if levels[i - 1] is None or levels[i] is None or charging[i]:
                continue
            drop += max(0.0, levels[i - 1] - levels[i])
        return drop / span_hours
