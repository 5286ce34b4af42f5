"""
Ingestion producers feeding the orchestrator queues.

- KafkaSource: background thread reading JSON messages from a topic
- replay_csv: offline replay of recorded snapshots and log events
"""

import heapq
import json
import threading
from collections.abc import Callable

import pandas as pd
import structlog
from kafka import KafkaConsumer

from .orchestrator import PipelineOrchestrator

logger = structlog.get_logger(__name__)


class KafkaSource:
    """Consumes JSON messages from a Kafka topic and hands them to ``submit``

    The source only enqueues; it never touches pipeline state.
    """

    def __init__(
        self,
        name: str,
        bootstrap_servers: str,
        topic: str,
        group_id: str,
        submit: Callable[[dict], bool],
        auto_offset_reset: str = "latest",
    ):
        self.name = name
        self.topic = topic
        self.submit = submit

        try:
            self.consumer = KafkaConsumer(
                topic,
                bootstrap_servers=bootstrap_servers,
                group_id=group_id,
                auto_offset_reset=auto_offset_reset,
                enable_auto_commit=True,
                consumer_timeout_ms=1000,  # Lets the loop notice stop()
            )
            logger.info(
                "Kafka source initialized",
                source=name,
                bootstrap_servers=bootstrap_servers,
                topic=topic,
                group_id=group_id,
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka consumer", source=name, error=str(e))
            raise

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

        self.stats = {"consumed": 0, "refused": 0, "parse_errors": 0}

    def handle_message(self, raw: bytes) -> None:
        """Decode one message and enqueue it"""
        self.stats["consumed"] += 1
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self.stats["parse_errors"] += 1
            logger.debug("Undecodable message skipped", source=self.name, error=str(e))
            return

        if not self.submit(payload):
            self.stats["refused"] += 1

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                for message in self.consumer:
                    self.handle_message(message.value)
                    if self._stop.is_set():
                        break
        except Exception as e:
            logger.error("Kafka source failed", source=self.name, error=str(e), exc_info=True)
        finally:
            self.consumer.close()
            logger.info("Kafka source stopped", source=self.name, **self.stats)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name=f"source-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


def load_records(path: str) -> list[dict]:
    """Load a CSV recording as time-ordered records, missing cells become None

    The file must have an ISO-8601 ``timestamp`` column; every other column is
    passed through as a payload field.
    """
    df = pd.read_csv(path)
    if "timestamp" not in df.columns:
        raise ValueError(f"{path} has no 'timestamp' column")

    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df = df.sort_values("timestamp", kind="stable")
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict("records")


def replay_csv(
    orchestrator: PipelineOrchestrator,
    snapshots_path: str,
    logs_path: str | None = None,
) -> dict:
    """Replay recorded snapshots (and log events) through the pipeline in time order

    Log events are indexed before any snapshot that is not older than them, and
    the pipeline is drained after every snapshot so queue capacity never limits
    a replay.

    Returns:
        Replay statistics
    """
    snapshots = load_records(snapshots_path)
    logs = load_records(logs_path) if logs_path else []

    logger.info("Starting replay", snapshots=len(snapshots), log_events=len(logs))

    # Logs sort before snapshots with the same timestamp
    tagged_logs = ((record["timestamp"], 0, record) for record in logs)
    tagged_snapshots = ((record["timestamp"], 1, record) for record in snapshots)

    for _, kind, record in heapq.merge(tagged_logs, tagged_snapshots, key=lambda t: t[:2]):
        if kind == 0:
            orchestrator.submit_log(record)
        else:
            orchestrator.submit_snapshot(record)
            orchestrator.process_pending()

    orchestrator.process_pending()

    stats = {"snapshots": len(snapshots), "log_events": len(logs), **orchestrator.get_stats()}
    logger.info(
        "Replay completed",
        snapshots=len(snapshots),
        log_events=len(logs),
        alerts_emitted=stats["alerts_emitted"],
    )
    return stats
