"""
Builders shared by the test modules.
"""

from datetime import UTC, datetime, timedelta

from devicewatch.pipeline.models import LogEvent, Severity, Snapshot

T0 = datetime(2025, 10, 2, 12, 0, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    """Timestamp ``seconds`` after the test epoch."""
    return T0 + timedelta(seconds=seconds)


def make_snapshot(seconds: float, cpu: float = 0.2, **fields) -> Snapshot:
    """Healthy snapshot at ``seconds`` with overridable metrics."""
    values = {
        "cpu_load": cpu,
        "mem_used_ratio": 0.5,
        "battery_level": 80.0,
        "battery_charging": False,
        "thermal_celsius": 35.0,
    }
    values.update(fields)
    return Snapshot(timestamp=at(seconds), **values)


def make_log(
    seconds: float, process: str, severity: Severity = Severity.ERROR, message: str = "boom"
) -> LogEvent:
    return LogEvent(
        timestamp=at(seconds), source_process=process, severity=severity, message=message
    )
