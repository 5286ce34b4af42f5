"""
Data models of the telemetry-to-alert pipeline.

Snapshots and log events flow in, alert snapshots flow out. Everything handed
across a component boundary is immutable; the only mutable model is Alert,
which is owned by the AlertLifecycleManager.
"""

import math
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import numpy as np

from .errors import InvalidSnapshot

# Ordered layout of a FeatureVector, see windower.py for the normalization ranges
FEATURE_NAMES = (
    "cpu_mean",
    "cpu_peak",
    "mem_mean",
    "mem_peak",
    "battery_level",
    "battery_drain",
    "charging_ratio",
    "thermal_mean",
)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string, epoch seconds or datetime into an aware UTC datetime

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if hasattr(value, "to_pydatetime"):  # pandas.Timestamp
        ts = value.to_pydatetime()
    elif isinstance(value, datetime):
        ts = value
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"Invalid timestamp: {value!r}")
        return datetime.fromtimestamp(value, UTC)
    elif isinstance(value, str):
        ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _check_metric(name: str, value: Any, low: float, high: float) -> float | None:
    if _is_missing(value):
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        raise InvalidSnapshot(f"{name} is not numeric: {value!r}")
    value = float(value)
    if not math.isfinite(value) or not low <= value <= high:
        raise InvalidSnapshot(f"{name} out of range [{low}, {high}]: {value}")
    return value


def _check_flag(name: str, value: Any) -> bool | None:
    if _is_missing(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float, np.integer)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise InvalidSnapshot(f"{name} is not a boolean: {value!r}")


# Accepted range per snapshot metric
METRIC_RANGES = {
    "cpu_load": (0.0, 1.0),
    "mem_used_ratio": (0.0, 1.0),
    "battery_level": (0.0, 100.0),
    "thermal_celsius": (-40.0, 150.0),
}


@dataclass(frozen=True)
class Snapshot:
    """One sample of device health metrics. Metrics set to None are missing."""

    timestamp: datetime
    cpu_load: float | None = None
    mem_used_ratio: float | None = None
    battery_level: float | None = None
    battery_charging: bool | None = None
    thermal_celsius: float | None = None

    def __post_init__(self):
        try:
            timestamp = parse_timestamp(self.timestamp)
        except (TypeError, ValueError) as e:
            raise InvalidSnapshot(f"Invalid timestamp: {e}") from e

        # Frozen, so normalized values are written through object.__setattr__
        object.__setattr__(self, "timestamp", timestamp)
        for name, (low, high) in METRIC_RANGES.items():
            object.__setattr__(self, name, _check_metric(name, getattr(self, name), low, high))
        object.__setattr__(
            self, "battery_charging", _check_flag("battery_charging", self.battery_charging)
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Snapshot":
        """Build a Snapshot from a wire payload

        The memory ratio is read from ``mem_used_ratio`` or derived as
        ``(total - available) / total`` from ``mem_total_bytes`` and
        ``mem_available_bytes``.

        Raises:
            InvalidSnapshot: If the payload is malformed or a metric is out of range
        """
        if not isinstance(payload, dict):
            raise InvalidSnapshot(f"Snapshot payload must be a dict, got {type(payload).__name__}")

        mem_used_ratio = payload.get("mem_used_ratio")
        if _is_missing(mem_used_ratio):
            total = _check_metric("mem_total_bytes", payload.get("mem_total_bytes"), 0.0, math.inf)
            available = _check_metric(
                "mem_available_bytes", payload.get("mem_available_bytes"), 0.0, math.inf
            )
            if total and available is not None:
                if available > total:
                    raise InvalidSnapshot("mem_available_bytes exceeds mem_total_bytes")
                mem_used_ratio = (total - available) / total

        return cls(
            timestamp=payload.get("timestamp"),
            cpu_load=payload.get("cpu_load"),
            mem_used_ratio=mem_used_ratio,
            battery_level=payload.get("battery_level"),
            battery_charging=payload.get("battery_charging"),
            thermal_celsius=payload.get("thermal_celsius"),
        )


@dataclass(frozen=True)
class FeatureVector:
    """Normalized features of one window, ordered as FEATURE_NAMES"""

    values: tuple[float, ...]
    window_start: datetime
    window_end: datetime
    degraded: bool = False
    sample_count: int = 0

    @property
    def window_ref(self) -> tuple[datetime, datetime]:
        return (self.window_start, self.window_end)

    def feature(self, name: str) -> float:
        return self.values[FEATURE_NAMES.index(name)]

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)


class AnomalySignal(Enum):
    """Graded anomaly signal reported by the scorer"""

    CLEAR = "clear"
    SUSPECTED = "suspected"  # anomalous, fewer than k consecutive windows
    CONFIRMED = "confirmed"  # anomalous for at least k consecutive windows


@dataclass(frozen=True)
class AnomalyScore:
    """Outcome of scoring one FeatureVector for one category"""

    raw_score: float
    window_ref: tuple[datetime, datetime]
    is_anomalous: bool
    category: str = "device"
    signal: AnomalySignal = AnomalySignal.CLEAR
    consecutive: int = 0
    degraded: bool = False
    available: bool = True

    @property
    def window_start(self) -> datetime:
        return self.window_ref[0]

    @property
    def window_end(self) -> datetime:
        return self.window_ref[1]


class Severity(Enum):
    """Log severity levels, ordered from least to most severe"""

    VERBOSE = "verbose"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def weight(self) -> float:
        return SEVERITY_WEIGHTS[self]

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Parse a logcat letter (V/D/I/W/E/F) or a level name"""
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Invalid severity: {value!r}")
        key = value.strip().upper()
        if key in _SEVERITY_ALIASES:
            return _SEVERITY_ALIASES[key]
        raise ValueError(f"Invalid severity: {value!r}")


SEVERITY_WEIGHTS = {
    Severity.VERBOSE: 0.05,
    Severity.DEBUG: 0.1,
    Severity.INFO: 0.25,
    Severity.WARN: 0.5,
    Severity.ERROR: 1.0,
    Severity.FATAL: 1.5,
}

_SEVERITY_ALIASES = {
    "V": Severity.VERBOSE,
    "VERBOSE": Severity.VERBOSE,
    "D": Severity.DEBUG,
    "DEBUG": Severity.DEBUG,
    "I": Severity.INFO,
    "INFO": Severity.INFO,
    "W": Severity.WARN,
    "WARN": Severity.WARN,
    "WARNING": Severity.WARN,
    "E": Severity.ERROR,
    "ERROR": Severity.ERROR,
    "F": Severity.FATAL,
    "A": Severity.FATAL,
    "FATAL": Severity.FATAL,
    "CRITICAL": Severity.FATAL,
    "ASSERT": Severity.FATAL,
}


@dataclass(frozen=True)
class LogEvent:
    """A parsed log line. Owned by the log source, never modified here."""

    timestamp: datetime
    source_process: str
    severity: Severity
    message: str = ""

    def __post_init__(self):
        if not self.source_process or not isinstance(self.source_process, str):
            raise ValueError(f"Log event has no source process: {self.source_process!r}")
        object.__setattr__(self, "timestamp", parse_timestamp(self.timestamp))
        object.__setattr__(self, "severity", Severity.parse(self.severity))
        object.__setattr__(self, "message", "" if self.message is None else str(self.message))

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "LogEvent":
        """Build a LogEvent from a wire payload

        Raises:
            ValueError: If the payload is not a dict, or the timestamp, process or
                severity is missing or invalid
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Log event payload must be a dict, got {type(payload).__name__}")

        return cls(
            timestamp=payload.get("timestamp"),
            source_process=payload.get("source_process") or payload.get("process"),
            severity=payload.get("severity", payload.get("level")),
            message=payload.get("message") or "",
        )


@dataclass(frozen=True)
class CandidateCulprit:
    """Best-effort attribution of an anomaly to a process"""

    process: str
    score: float
    event_count: int
    trigger: LogEvent

    @property
    def justification(self) -> str:
        return (
            f"{self.event_count} log event(s) from {self.process} in the anomaly window, "
            f"most relevant: [{self.trigger.severity.name}] {self.trigger.message}"
        )


class AlertState(Enum):
    """Lifecycle states of an alert. IDLE means no alert exists for the category."""

    IDLE = "idle"
    OPEN = "open"
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    EVICTED = "evicted"


OPEN_STATES = (AlertState.OPEN, AlertState.ACTIVE, AlertState.ACKNOWLEDGED)


@dataclass(frozen=True)
class AlertSnapshot:
    """Immutable view of an Alert handed to subscribers on every transition"""

    id: str
    category: str
    state: AlertState
    first_seen: datetime
    last_seen: datetime
    peak_score: float
    candidate_culprit: str | None
    culprit_justification: str | None
    occurrence_count: int

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dict"""
        data = asdict(self)
        data["state"] = self.state.value
        data["first_seen"] = self.first_seen.isoformat()
        data["last_seen"] = self.last_seen.isoformat()
        return data


@dataclass
class Alert:
    """A durable, deduplicated alert. Mutated only by the AlertLifecycleManager."""

    id: str
    category: str
    state: AlertState
    first_seen: datetime
    last_seen: datetime
    peak_score: float
    candidate_culprit: CandidateCulprit | None = None
    occurrence_count: int = 1
    resolved_at: datetime | None = None

    def snapshot(self) -> AlertSnapshot:
        culprit = self.candidate_culprit
        return AlertSnapshot(
            id=self.id,
            category=self.category,
            state=self.state,
            first_seen=self.first_seen,
            last_seen=self.last_seen,
            peak_score=self.peak_score,
            candidate_culprit=culprit.process if culprit else None,
            culprit_justification=culprit.justification if culprit else None,
            occurrence_count=self.occurrence_count,
        )


@dataclass(frozen=True)
class PipelineEvent:
    """Observable failure or recovery notification"""

    kind: str
    timestamp: datetime
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "timestamp": self.timestamp.isoformat(), **self.detail}
