"""
Process state management and log event generation.
"""

import random
from datetime import UTC, datetime, timedelta
from typing import Any

from .models import AnomalyType

MESSAGES = {
    "I": ["Activity resumed", "Sync completed", "Job scheduled", "Connection established"],
    "W": ["Slow frame detected", "Retrying request", "Wakelock held longer than expected"],
    "E": ["Unhandled exception in worker", "Failed to allocate buffer", "Request timed out"],
}


class ProcessState:
    """Tracks the logging behavior of one process"""

    def __init__(self, process_name: str):
        self.process_name = process_name

        # Base values
        self.base_rate = random.uniform(0.05, 0.3)  # Log lines per second
        self.base_error_share = random.uniform(0.01, 0.05)

        # Active anomaly
        self.active_anomaly: AnomalyType | None = None
        self.anomaly_duration: int = 0

    @property
    def misbehaving(self) -> bool:
        return self.active_anomaly is not None

    def generate_log_events(
        self,
        inject_anomaly: AnomalyType | None = None,
        timestamp: datetime | None = None,
        interval_seconds: float = 10.0,
    ) -> list[dict[str, Any]]:
        """Generate the log lines this process wrote during one sampling interval"""

        if inject_anomaly:
            self.active_anomaly = inject_anomaly
            self.anomaly_duration = random.randint(6, 18)

        rate_mult = 1.0
        error_share = self.base_error_share

        if self.active_anomaly:
            rate_mult = random.uniform(5.0, 15.0)
            error_share = random.uniform(0.4, 0.8)

            self.anomaly_duration -= 1
            if self.anomaly_duration <= 0:
                self.active_anomaly = None

        end = timestamp or datetime.now(UTC)
        count = int(self.base_rate * rate_mult * interval_seconds * random.uniform(0.5, 1.5))

        events = []
        for offset in sorted(random.uniform(0, interval_seconds) for _ in range(count)):
            roll = random.random()
            if roll < error_share:
                severity = "E"
            elif roll < error_share + 0.1:
                severity = "W"
            else:
                severity = "I"
            events.append(
                {
                    "type": "log_event",
                    "timestamp": (end - timedelta(seconds=interval_seconds - offset)).isoformat(),
                    "source_process": self.process_name,
                    "severity": severity,
                    "message": random.choice(MESSAGES[severity]),
                }
            )
        return events
