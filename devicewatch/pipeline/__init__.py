"""
Telemetry-to-alert pipeline.

Snapshots are windowed into feature vectors, scored per category, and turned
into lifecycle-managed alerts attributed to a culprit process from the log
stream.
"""

from .alerts import AlertLifecycleManager, make_alert_id
from .config import CategoryConfig, PipelineConfig, default_categories
from .correlator import LogCorrelator
from .errors import (
    CorrelationUnavailable,
    InvalidSnapshot,
    PipelineError,
    QueueOverflow,
    ScoringUnavailable,
)
from .models import (
    FEATURE_NAMES,
    AlertSnapshot,
    AlertState,
    AnomalyScore,
    AnomalySignal,
    CandidateCulprit,
    FeatureVector,
    LogEvent,
    PipelineEvent,
    Severity,
    Snapshot,
)
from .orchestrator import PipelineOrchestrator
from .queues import BoundedQueue
from .scorer import AnomalyScorer
from .windower import FeatureWindower

__all__ = [
    "FEATURE_NAMES",
    "AlertLifecycleManager",
    "AlertSnapshot",
    "AlertState",
    "AnomalyScore",
    "AnomalyScorer",
    "AnomalySignal",
    "BoundedQueue",
    "CandidateCulprit",
    "CategoryConfig",
    "CorrelationUnavailable",
    "FeatureVector",
    "FeatureWindower",
    "InvalidSnapshot",
    "LogCorrelator",
    "LogEvent",
    "PipelineConfig",
    "PipelineError",
    "PipelineEvent",
    "PipelineOrchestrator",
    "QueueOverflow",
    "ScoringUnavailable",
    "Severity",
    "Snapshot",
    "default_categories",
    "make_alert_id",
]
