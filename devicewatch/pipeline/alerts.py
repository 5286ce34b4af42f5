"""
Alert lifecycle state machine.

One alert slot per category:

    IDLE -> OPEN -> ACTIVE -> ACKNOWLEDGED -> RESOLVED -> (evicted)
                 \\________________________/
                     RESOLVED on a clear score
    RESOLVED -> OPEN  re-open on recurrence within the re-open window

- OPEN on the first anomalous score of a category
- ACTIVE on a CONFIRMED, non-degraded score; the log correlator is queried
  once at that moment
- ACKNOWLEDGED only through acknowledge(), it does not change detection
- RESOLVED when the scorer reports the category clear
- a recurrence within reopen_window keeps the alert id and increments
  occurrence_count, later recurrences open a new alert id
- resolved alerts are evicted once retention has elapsed
"""

import dataclasses
import hashlib
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from .config import PipelineConfig
from .models import (
    OPEN_STATES,
    Alert,
    AlertSnapshot,
    AlertState,
    AnomalyScore,
    AnomalySignal,
    CandidateCulprit,
)

logger = structlog.get_logger(__name__)

Correlate = Callable[[datetime, datetime], CandidateCulprit | None]


def make_alert_id(category: str, window_start: datetime, window_end: datetime) -> str:
    """Stable id derived from the category and the first-trigger window"""
    key = f"{category}|{window_start.isoformat()}|{window_end.isoformat()}"
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]


class AlertLifecycleManager:
    """Owns every Alert. No other component mutates alerts."""

    def __init__(
        self,
        correlate: Correlate | None = None,
        reopen_window_seconds: float = 600.0,
        retention_seconds: float = 86400.0,
    ):
        self.correlate = correlate
        self.reopen_window = timedelta(seconds=reopen_window_seconds)
        self.retention = timedelta(seconds=retention_seconds)

        self._alerts: dict[str, Alert] = {}
        self._current: dict[str, str] = {}  # category -> id of its latest alert

        self.stats = {
            "opened": 0,
            "activated": 0,
            "acknowledged": 0,
            "resolved": 0,
            "reopened": 0,
            "evicted": 0,
        }

    @classmethod
    def from_config(
        cls, config: PipelineConfig, correlate: Correlate | None = None
    ) -> "AlertLifecycleManager":
        return cls(
            correlate=correlate,
            reopen_window_seconds=config.reopen_window_seconds,
            retention_seconds=config.retention_seconds,
        )

    def state(self, category: str) -> AlertState:
        alert = self._current_alert(category)
        return alert.state if alert else AlertState.IDLE

    def is_open(self, category: str) -> bool:
        return self.state(category) in OPEN_STATES

    def get(self, alert_id: str) -> AlertSnapshot | None:
        alert = self._alerts.get(alert_id)
        return alert.snapshot() if alert else None

    def alerts(self) -> list[AlertSnapshot]:
        return [alert.snapshot() for alert in self._alerts.values()]

    def handle(self, score: AnomalyScore) -> list[AlertSnapshot]:
        """Apply one scored window, returning a snapshot per state transition"""
        alert = self._current_alert(score.category)

        if not score.is_anomalous:
            if alert is not None and alert.state in OPEN_STATES:
                alert.state = AlertState.RESOLVED
                alert.resolved_at = max(score.window_end, alert.last_seen)
                self.stats["resolved"] += 1
                logger.info("Alert resolved", alert_id=alert.id, category=alert.category)
                return [alert.snapshot()]
            return []

        now = score.window_end
        updates = []

        if alert is None or (
            alert.state is AlertState.RESOLVED and now - alert.resolved_at > self.reopen_window
        ):
            alert = self._open(score)
            updates.append(alert.snapshot())

        elif alert.state is AlertState.RESOLVED:
            # Degraded windows never re-trigger a resolved alert
            if score.degraded:
                return []
            alert.state = AlertState.OPEN
            alert.resolved_at = None
            alert.occurrence_count += 1
            self.stats["reopened"] += 1
            logger.warning(
                "Alert re-opened",
                alert_id=alert.id,
                category=alert.category,
                occurrence_count=alert.occurrence_count,
            )
            updates.append(alert.snapshot())

        alert.last_seen = max(alert.last_seen, now)
        alert.peak_score = max(alert.peak_score, score.raw_score)

        if (
            alert.state is AlertState.OPEN
            and score.signal is AnomalySignal.CONFIRMED
            and not score.degraded
        ):
            self._activate(alert, score)
            updates.append(alert.snapshot())

        return updates

    def acknowledge(self, alert_id: str) -> AlertSnapshot | None:
        """Mark an active alert as seen. Returns None if the transition is not allowed."""
        alert = self._alerts.get(alert_id)
        if alert is None:
            logger.warning("Acknowledge for unknown alert", alert_id=alert_id)
            return None
        if alert.state is not AlertState.ACTIVE:
            logger.warning(
                "Alert cannot be acknowledged", alert_id=alert_id, state=alert.state.value
            )
            return None

        alert.state = AlertState.ACKNOWLEDGED
        self.stats["acknowledged"] += 1
        logger.info("Alert acknowledged", alert_id=alert_id, category=alert.category)
        return alert.snapshot()

    def evict_expired(self, now: datetime) -> list[AlertSnapshot]:
        """Remove resolved alerts whose retention has elapsed"""
        expired = [
            alert
            for alert in self._alerts.values()
            if alert.state is AlertState.RESOLVED and now >= alert.resolved_at + self.retention
        ]

        evicted = []
        for alert in expired:
            del self._alerts[alert.id]
            if self._current.get(alert.category) == alert.id:
                del self._current[alert.category]
            self.stats["evicted"] += 1
            logger.debug("Alert evicted", alert_id=alert.id, category=alert.category)
            evicted.append(dataclasses.replace(alert.snapshot(), state=AlertState.EVICTED))
        return evicted

    def _current_alert(self, category: str) -> Alert | None:
        alert_id = self._current.get(category)
        return self._alerts.get(alert_id) if alert_id else None

    def _open(self, score: AnomalyScore) -> Alert:
        alert = Alert(
            id=make_alert_id(score.category, score.window_start, score.window_end),
            category=score.category,
            state=AlertState.OPEN,
            first_seen=score.window_end,
            last_seen=score.window_end,
            peak_score=score.raw_score,
        )
        self._alerts[alert.id] = alert
        self._current[alert.category] = alert.id
        self.stats["opened"] += 1

        logger.info(
            "Alert opened",
            alert_id=alert.id,
            category=alert.category,
            score=round(score.raw_score, 3),
            degraded=score.degraded,
        )
        return alert

    def _activate(self, alert: Alert, score: AnomalyScore) -> None:
        alert.state = AlertState.ACTIVE
        if self.correlate is not None:
            alert.candidate_culprit = self.correlate(score.window_start, score.window_end)
        self.stats["activated"] += 1

        culprit = alert.candidate_culprit
        logger.warning(
            "Alert active",
            alert_id=alert.id,
            category=alert.category,
            peak_score=round(alert.peak_score, 3),
            occurrence_count=alert.occurrence_count,
            culprit=culprit.process if culprit else None,
        )
