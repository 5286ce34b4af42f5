"""
Culprit correlation against a bounded index of recent log events.

For an anomaly window [start, end] the correlator looks at events in
[start - lookback, end], groups them by source process and ranks each group by

    relevance = sum(severity_weight * recency) * burst_factor

    recency      = exp(-(end - ts) / (lookback / 2))
    burst_factor = 1 + ln(1 + recent / (expected + 1))

where ``recent`` is the number of the group's events inside the window and
``expected`` is how many the group's background rate over the rest of the
lookback predicts for a window of the same span. A process that suddenly
bursts scores higher than one logging at a steady pace.

The result is a hint, never a certainty claim: groups below ``min_relevance``
yield no culprit.
"""

import bisect
import math
from collections import defaultdict, deque
from datetime import datetime, timedelta
from itertools import islice

import structlog

from .config import PipelineConfig
from .errors import CorrelationUnavailable
from .models import CandidateCulprit, LogEvent

logger = structlog.get_logger(__name__)


def _event_time(event: LogEvent) -> datetime:
    return event.timestamp


class LogCorrelator:
    """Time-ordered, capacity-limited index of recent log events"""

    def __init__(
        self,
        capacity: int = 5000,
        lookback_seconds: float = 300.0,
        horizon_seconds: float = 600.0,
        min_relevance: float = 1.0,
        ignored_processes: list[str] | None = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if lookback_seconds <= 0 or horizon_seconds < lookback_seconds:
            raise ValueError("horizon_seconds must be at least lookback_seconds, both positive")

        self.capacity = capacity
        self.lookback = timedelta(seconds=lookback_seconds)
        self.horizon = timedelta(seconds=horizon_seconds)
        self.min_relevance = min_relevance
        self.ignored_processes = set(ignored_processes or ())

        self._events: deque[LogEvent] = deque()

        self.stats = {"indexed": 0, "evicted": 0, "out_of_order": 0, "queries": 0, "attributed": 0}

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "LogCorrelator":
        return cls(
            capacity=config.correlator_capacity,
            lookback_seconds=config.correlation_lookback_seconds,
            horizon_seconds=config.correlator_horizon_seconds,
            min_relevance=config.min_relevance,
            ignored_processes=config.ignored_processes,
        )

    def __len__(self) -> int:
        return len(self._events)

    def index(self, event: LogEvent) -> None:
        """Add a log event, evicting the oldest events beyond capacity or horizon"""
        if self._events and event.timestamp < self._events[-1].timestamp:
            position = bisect.bisect_right(self._events, event.timestamp, key=_event_time)
            self._events.insert(position, event)
            self.stats["out_of_order"] += 1
        else:
            self._events.append(event)
        self.stats["indexed"] += 1

        while len(self._events) > self.capacity:
            self._events.popleft()
            self.stats["evicted"] += 1

        oldest_kept = self._events[-1].timestamp - self.horizon
        while self._events and self._events[0].timestamp < oldest_kept:
            self._events.popleft()
            self.stats["evicted"] += 1

    def correlate(self, window_start: datetime, window_end: datetime) -> CandidateCulprit | None:
        """Rank processes for an anomaly window and return the most plausible culprit

        Returns:
            The top-ranked process with its triggering event, or None if no
            process reaches the minimum relevance

        Raises:
            CorrelationUnavailable: If the index is empty or the query fails
        """
        self.stats["queries"] += 1

        if not self._events:
            raise CorrelationUnavailable("Log index is empty")

        try:
            culprit = self._rank(window_start, window_end)
        except Exception as e:
            raise CorrelationUnavailable(f"Correlation query failed: {e}") from e

        if culprit is None or culprit.score < self.min_relevance:
            logger.debug(
                "No culprit above relevance threshold",
                window_end=window_end.isoformat(),
                best_score=round(culprit.score, 3) if culprit else None,
            )
            return None

        self.stats["attributed"] += 1
        logger.debug(
            "Culprit correlated",
            process=culprit.process,
            score=round(culprit.score, 3),
            events=culprit.event_count,
        )
        return culprit

    def _rank(self, window_start: datetime, window_end: datetime) -> CandidateCulprit | None:
        lookback_start = window_start - self.lookback
        lo = bisect.bisect_left(self._events, lookback_start, key=_event_time)
        hi = bisect.bisect_right(self._events, window_end, key=_event_time)

        groups: dict[str, list[LogEvent]] = defaultdict(list)
        for event in islice(self._events, lo, hi):
            if event.source_process not in self.ignored_processes:
                groups[event.source_process].append(event)

        tau = self.lookback.total_seconds() / 2.0
        window_span = max((window_end - window_start).total_seconds(), 1.0)
        background_span = self.lookback.total_seconds()

        best = None
        for process, events in groups.items():
            weighted = [
                (e.severity.weight * math.exp(-(window_end - e.timestamp).total_seconds() / tau), e)
                for e in events
            ]
            recent = sum(1 for e in events if e.timestamp >= window_start)
            expected = (len(events) - recent) / background_span * window_span
            burst_factor = 1.0 + math.log1p(recent / (expected + 1.0))

            score = sum(w for w, _ in weighted) * burst_factor
            trigger = max(weighted, key=lambda item: (item[0], item[1].timestamp))[1]

            if best is None or score > best.score:
                best = CandidateCulprit(
                    process=process, score=score, event_count=len(events), trigger=trigger
                )

        return best
