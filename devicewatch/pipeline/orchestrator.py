"""
Pipeline orchestrator: snapshot -> window -> score -> alert -> subscribers.

Producers only enqueue (submit_snapshot, submit_log, acknowledge). A single
consumer, either the caller of process_pending() or the worker thread started
by start(), performs every state mutation: windowing, scoring, correlator
indexing and alert transitions. No locks guard the pipeline state itself.
"""

import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from .alerts import AlertLifecycleManager
from .config import PipelineConfig
from .correlator import LogCorrelator
from .errors import CorrelationUnavailable, InvalidSnapshot, QueueOverflow, ScoringUnavailable
from .methods import get_method
from .models import (
    AlertSnapshot,
    AlertState,
    CandidateCulprit,
    FeatureVector,
    LogEvent,
    PipelineEvent,
    Snapshot,
)
from .queues import BoundedQueue
from .scorer import AnomalyScorer, ScoringFunction
from .windower import FeatureWindower

logger = structlog.get_logger(__name__)

AlertSubscriber = Callable[[AlertSnapshot], None]
EventListener = Callable[[PipelineEvent], None]


class PipelineOrchestrator:
    """Owns all mutable pipeline state and drives the processing loop"""

    def __init__(
        self,
        config: PipelineConfig,
        scoring_functions: dict[str, ScoringFunction] | None = None,
        subscribers: list[AlertSubscriber] | None = None,
        poll_interval_seconds: float = 0.5,
    ):
        self.config = config
        self.poll_interval_seconds = poll_interval_seconds

        self._wakeup = threading.Event()
        self._shutdown = threading.Event()
        self._worker: threading.Thread | None = None

        self.snapshot_queue: BoundedQueue[Snapshot | dict] = BoundedQueue(
            "snapshots", config.snapshot_queue_capacity, config.overflow_policy, self._wakeup
        )
        self.log_queue: BoundedQueue[LogEvent | dict] = BoundedQueue(
            "log_events", config.log_queue_capacity, config.overflow_policy, self._wakeup
        )
        self._commands: BoundedQueue[tuple[str, str]] = BoundedQueue(
            "commands", 1000, "reject", self._wakeup
        )

        self.windower = FeatureWindower.from_config(config)
        self.correlator = LogCorrelator.from_config(config)
        self._alerts = AlertLifecycleManager.from_config(config, correlate=self._correlate)

        scoring_functions = scoring_functions or {}
        self.scorers = [
            AnomalyScorer.for_category(
                category,
                config,
                scoring_functions.get(category.name)
                or get_method(category.method_name, category.method_config),
            )
            for category in config.categories
        ]

        self._subscribers: list[AlertSubscriber] = list(subscribers or [])
        self._listeners: list[EventListener] = []
        self._reported_drops = {self.snapshot_queue.name: 0, self.log_queue.name: 0}

        self.stats = {
            "snapshots_processed": 0,
            "invalid_snapshots": 0,
            "vectors_scored": 0,
            "scoring_unavailable": 0,
            "correlation_unavailable": 0,
            "log_events_indexed": 0,
            "invalid_log_events": 0,
            "alerts_emitted": 0,
            "subscriber_errors": 0,
            "processing_errors": 0,
        }

        logger.info(
            "Pipeline initialized",
            device_id=config.device_id,
            window_size=config.window_size,
            emit_mode=config.emit_mode,
            categories=[s.category for s in self.scorers],
        )

    # Producer side: enqueue only

    def submit_snapshot(self, snapshot: Snapshot | dict) -> bool:
        """Enqueue a snapshot. Returns False if it was refused by a full queue."""
        return self._enqueue(self.snapshot_queue, snapshot)

    def submit_log(self, event: LogEvent | dict) -> bool:
        """Enqueue a log event. Returns False if it was refused by a full queue."""
        return self._enqueue(self.log_queue, event)

    def acknowledge(self, alert_id: str) -> None:
        """Request that an active alert be marked as acknowledged"""
        self._commands.put(("acknowledge", alert_id))

    def subscribe(self, subscriber: AlertSubscriber) -> None:
        self._subscribers.append(subscriber)

    def add_event_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def _enqueue(self, queue: BoundedQueue, item: Any) -> bool:
        try:
            queue.put(item)
            return True
        except QueueOverflow as e:
            logger.debug("Item refused by full queue", queue=queue.name, error=str(e))
            return False

    # Read-only views

    @property
    def dropped_samples(self) -> int:
        return self.snapshot_queue.dropped

    @property
    def dropped_log_events(self) -> int:
        return self.log_queue.dropped

    def alert_state(self, category: str) -> AlertState:
        return self._alerts.state(category)

    def current_alerts(self) -> list[AlertSnapshot]:
        return self._alerts.alerts()

    def get_stats(self) -> dict:
        return {
            **self.stats,
            "dropped_samples": self.dropped_samples,
            "dropped_log_events": self.dropped_log_events,
            "windower": dict(self.windower.stats),
            "correlator": dict(self.correlator.stats),
            "alerts": dict(self._alerts.stats),
            "scorers": {s.category: dict(s.stats) for s in self.scorers},
            "queues": {
                q.name: q.get_stats() for q in (self.snapshot_queue, self.log_queue)
            },
        }

    # Consumer side: the only place pipeline state is mutated

    def process_pending(self) -> int:
        """Process everything queued so far on the calling thread

        Returns:
            Number of snapshots and log events consumed
        """
        for command, alert_id in self._commands.drain():
            if command == "acknowledge":
                snapshot = self._alerts.acknowledge(alert_id)
                if snapshot is not None:
                    self._publish([snapshot])

        self._report_overflow()

        events = self.log_queue.drain()
        for event in events:
            try:
                self._index_log(event)
            except Exception as e:
                self.stats["processing_errors"] += 1
                logger.error("Failed to process log event", error=str(e), exc_info=True)

        snapshots = self.snapshot_queue.drain()
        for snapshot in snapshots:
            try:
                self._process_snapshot(snapshot)
            except Exception as e:
                self.stats["processing_errors"] += 1
                logger.error("Failed to process snapshot", error=str(e), exc_info=True)

        return len(events) + len(snapshots)

    def _index_log(self, item: LogEvent | dict) -> None:
        try:
            event = item if isinstance(item, LogEvent) else LogEvent.from_dict(item)
        except (TypeError, ValueError) as e:
            self.stats["invalid_log_events"] += 1
            logger.debug("Invalid log event dropped", error=str(e))
            return

        self.correlator.index(event)
        self.stats["log_events_indexed"] += 1

    def _process_snapshot(self, item: Snapshot | dict) -> None:
        try:
            snapshot = item if isinstance(item, Snapshot) else Snapshot.from_dict(item)
            vector = self.windower.push(snapshot)
        except InvalidSnapshot as e:
            self.stats["invalid_snapshots"] += 1
            logger.warning("Invalid snapshot dropped", error=str(e))
            self._emit_event("invalid_snapshot", error=str(e))
            return

        self.stats["snapshots_processed"] += 1
        self._publish(self._alerts.evict_expired(snapshot.timestamp))

        if vector is None:
            return

        self.stats["vectors_scored"] += 1
        for scorer in self.scorers:
            self._score(scorer, vector)

    def _score(self, scorer: AnomalyScorer, vector: FeatureVector) -> None:
        was_available = scorer.available
        try:
            score = scorer.score(vector)
        except ScoringUnavailable as e:
            self.stats["scoring_unavailable"] += 1
            if was_available:
                self._emit_event("scoring_unavailable", category=scorer.category, error=str(e))
            score = scorer.fail_open(vector)
        else:
            if not was_available:
                self._emit_event("scoring_recovered", category=scorer.category)

        if score.is_anomalous or self._alerts.is_open(score.category):
            self._publish(self._alerts.handle(score))

    def _correlate(self, window_start: datetime, window_end: datetime) -> CandidateCulprit | None:
        try:
            return self.correlator.correlate(window_start, window_end)
        except CorrelationUnavailable as e:
            self.stats["correlation_unavailable"] += 1
            logger.info("Correlation unavailable, alert has no culprit", error=str(e))
            self._emit_event("correlation_unavailable", error=str(e))
            return None

    def _publish(self, updates: list[AlertSnapshot]) -> None:
        for update in updates:
            self.stats["alerts_emitted"] += 1
            for subscriber in self._subscribers:
                try:
                    subscriber(update)
                except Exception as e:
                    self.stats["subscriber_errors"] += 1
                    logger.error(
                        "Alert subscriber failed",
                        subscriber=repr(subscriber),
                        alert_id=update.id,
                        error=str(e),
                    )

    def _emit_event(self, kind: str, **detail) -> None:
        event = PipelineEvent(kind=kind, timestamp=datetime.now(UTC), detail=detail)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error("Event listener failed", kind=kind, error=str(e))

    def _report_overflow(self) -> None:
        for queue in (self.snapshot_queue, self.log_queue):
            total = queue.dropped
            new = total - self._reported_drops[queue.name]
            if new > 0:
                self._reported_drops[queue.name] = total
                logger.warning("Queue overflow, items dropped", queue=queue.name, dropped=new, total=total)
                self._emit_event("queue_overflow", queue=queue.name, dropped=new, total=total)

    # Loop control

    def run(self, duration_seconds: float | None = None) -> None:
        """Run the consumer loop until stop() is called or the duration elapses

        Args:
            duration_seconds: Optional duration in seconds. If None, runs until stopped.
        """
        logger.info(
            "Starting pipeline loop",
            device_id=self.config.device_id,
            duration=duration_seconds if duration_seconds else "indefinite",
        )

        start_time = time.time()
        last_log_time = start_time

        try:
            while not self._shutdown.is_set():
                self._wakeup.wait(timeout=self.poll_interval_seconds)
                self._wakeup.clear()
                if self._shutdown.is_set():
                    break

                self.process_pending()

                elapsed = time.time() - start_time
                if time.time() - last_log_time >= 30:
                    logger.info(
                        "Pipeline stats",
                        snapshots_processed=self.stats["snapshots_processed"],
                        vectors_scored=self.stats["vectors_scored"],
                        alerts_emitted=self.stats["alerts_emitted"],
                        dropped_samples=self.dropped_samples,
                        elapsed_sec=round(elapsed, 1),
                    )
                    last_log_time = time.time()

                if duration_seconds and elapsed >= duration_seconds:
                    logger.info("Duration limit reached", duration_seconds=duration_seconds)
                    break

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping pipeline")

        finally:
            discarded = (
                self.snapshot_queue.clear() + self.log_queue.clear() + self._commands.clear()
            )
            for scorer in self.scorers:
                scorer.close()

            logger.info(
                "Pipeline stopped",
                discarded=discarded,
                snapshots_processed=self.stats["snapshots_processed"],
                alerts_emitted=self.stats["alerts_emitted"],
                elapsed_sec=round(time.time() - start_time, 1),
            )

    def start(self) -> None:
        """Run the consumer loop on a background worker thread"""
        if self._worker is not None and self._worker.is_alive():
            raise RuntimeError("Pipeline is already running")
        self._shutdown.clear()
        self._worker = threading.Thread(target=self.run, name="devicewatch-pipeline", daemon=True)
        self._worker.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal shutdown and wait for the worker, unprocessed items are discarded"""
        self._shutdown.set()
        self._wakeup.set()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None
