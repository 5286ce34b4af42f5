"""
Ready-made alert subscribers.

A subscriber is any callable taking an AlertSnapshot; these two cover the
common sinks: the structured log and a Kafka topic read by the UI,
notification and explanation services.
"""

import json

import structlog
from kafka import KafkaProducer

from .models import AlertSnapshot, AlertState, PipelineEvent

logger = structlog.get_logger(__name__)


class LoggingSubscriber:
    """Logs every alert transition"""

    def __call__(self, alert: AlertSnapshot) -> None:
        log = logger.warning if alert.state is AlertState.ACTIVE else logger.info
        log(
            "Alert update",
            alert_id=alert.id,
            category=alert.category,
            state=alert.state.value,
            peak_score=round(alert.peak_score, 3),
            occurrence_count=alert.occurrence_count,
            culprit=alert.candidate_culprit,
        )

    def on_event(self, event: PipelineEvent) -> None:
        logger.info("Pipeline event", kind=event.kind, **event.detail)


class KafkaAlertPublisher:
    """Publishes alert snapshots as JSON to a Kafka topic, keyed by alert id"""

    def __init__(self, bootstrap_servers: str, topic: str, device_id: str):
        self.topic = topic
        self.device_id = device_id

        try:
            self.producer = KafkaProducer(
                bootstrap_servers=bootstrap_servers,
                key_serializer=lambda k: k.encode("utf-8"),
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            )
            logger.info(
                "Kafka alert publisher initialized",
                bootstrap_servers=bootstrap_servers,
                topic=topic,
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka producer", error=str(e))
            raise

    def __call__(self, alert: AlertSnapshot) -> None:
        self.producer.send(
            self.topic,
            key=alert.id,
            value={"type": "alert", "device_id": self.device_id, **alert.to_dict()},
        )

    def on_event(self, event: PipelineEvent) -> None:
        self.producer.send(
            self.topic,
            key=event.kind,
            value={"type": "pipeline_event", "device_id": self.device_id, **event.to_dict()},
        )

    def close(self) -> None:
        self.producer.flush()
        self.producer.close()
