"""
Device simulator publishing snapshots and log events to Kafka.
"""

import json
import random
import time
from datetime import UTC, datetime, timedelta

import structlog
from kafka import KafkaProducer

from .device_state import DeviceState
from .models import DEVICE_ANOMALIES, AnomalyType, SimulatorConfig
from .process_state import ProcessState

logger = structlog.get_logger(__name__)


class DeviceSimulator:
    """Simulates one device: a snapshot per tick plus the log lines of its processes

    Device anomalies are paired with a log burst from a random process, so the
    pipeline has a culprit to find.
    """

    def __init__(self, config: SimulatorConfig, producer: KafkaProducer | None = None):
        self.config = config
        logger.info("Initializing device simulator", config=config)

        if producer is None:
            try:
                producer = KafkaProducer(
                    bootstrap_servers=config.kafka_bootstrap_servers,
                    value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                    compression_type="gzip",
                )
                logger.info(
                    "Kafka producer initialized",
                    bootstrap_servers=config.kafka_bootstrap_servers,
                    snapshot_topic=config.snapshot_topic,
                    log_topic=config.log_topic,
                )
            except Exception as e:
                logger.error("Failed to initialize Kafka producer", error=str(e))
                raise
        self.producer = producer

        self.device = DeviceState(config.device_id)
        self.processes = [ProcessState(name) for name in config.processes]
        self.clock = datetime.now(UTC)

        logger.info(
            "Anomaly configuration",
            probability=config.anomaly_probability,
            enabled_anomalies=[a.value for a in config.enabled_anomalies],
            processes=len(self.processes),
        )

    def pick_anomaly(self) -> AnomalyType | None:
        if random.random() >= self.config.anomaly_probability:
            return None
        return random.choice(self.config.enabled_anomalies)

    def generate_event(self, anomaly: AnomalyType | None = None) -> int:
        """Generate and send one tick: a snapshot and the interval's log lines

        Returns:
            Number of messages sent
        """
        interval = self.config.sampling_interval_seconds
        self.clock += timedelta(seconds=interval)

        device_anomaly = anomaly if anomaly in DEVICE_ANOMALIES else None
        culprit = None
        if anomaly is not None:
            culprit = random.choice(self.processes)
            logger.warning(
                "Anomaly injected",
                anomaly_type=anomaly.value,
                device_id=self.device.device_id,
                process=culprit.process_name,
            )

        log_events = []
        for process in self.processes:
            burst = AnomalyType.LOG_BURST if process is culprit else None
            log_events.extend(
                process.generate_log_events(
                    inject_anomaly=burst, timestamp=self.clock, interval_seconds=interval
                )
            )

        # Logs first, so they are indexed before the snapshot that closes the window
        for event in sorted(log_events, key=lambda e: e["timestamp"]):
            self.producer.send(self.config.log_topic, value=event)

        snapshot = self.device.generate_snapshot(
            inject_anomaly=device_anomaly, timestamp=self.clock, interval_seconds=interval
        )
        self.producer.send(self.config.snapshot_topic, value=snapshot)

        self.producer.flush()
        return len(log_events) + 1

    def run(self, duration_seconds: int | None = None):
        """Run the simulator continuously or for a specified duration

        Args:
            duration_seconds: Optional duration in seconds. If None, runs indefinitely.
        """

        logger.info(
            "Starting simulator",
            device_id=self.config.device_id,
            duration=duration_seconds if duration_seconds else "indefinite",
        )

        start_time = time.time()
        message_count = 0
        last_log_time = start_time

        try:
            while True:
                message_count += self.generate_event(self.pick_anomaly())

                elapsed = time.time() - start_time

                # Log stats every 10 seconds
                if time.time() - last_log_time >= 10:
                    logger.info(
                        "Simulator stats",
                        total_messages=message_count,
                        simulated_time=self.clock.isoformat(),
                        elapsed_sec=round(elapsed, 1),
                    )
                    last_log_time = time.time()

                if duration_seconds and elapsed >= duration_seconds:
                    logger.info("Duration limit reached", duration_seconds=duration_seconds)
                    break

                time.sleep(self.config.sampling_interval_seconds / self.config.time_scale)

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping simulator")

        except Exception as e:
            logger.error("Simulator error", error=str(e), exc_info=True)
            raise

        finally:
            self.producer.close()
            logger.info(
                "Simulator stopped",
                total_messages=message_count,
                elapsed_sec=round(time.time() - start_time, 1),
            )
