"""
CLI for the telemetry-to-alert pipeline.

Usage:
    python -m devicewatch.pipeline.run [options]
"""

import argparse
import logging
import os
import sys

import structlog

from devicewatch.core.logger import setup_logging

from .cache import RedisModelCache
from .config import PipelineConfig, default_categories
from .methods import BaselineZScoreMethod, get_method, list_methods
from .orchestrator import PipelineOrchestrator
from .sources import KafkaSource, replay_csv
from .subscribers import KafkaAlertPublisher, LoggingSubscriber

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="On-device telemetry-to-alert pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Consume snapshots and logs from Kafka, publish alerts back
        python -m devicewatch.pipeline.run --kafka-servers kafka:9092

        # Replay a recording offline
        python -m devicewatch.pipeline.run \\
            --replay-snapshots snapshots.csv \\
            --replay-logs logs.csv

        # Score against baselines cached in Redis
        python -m devicewatch.pipeline.run --method baseline_zscore --redis-host redis
        """,
    )

    # Sources
    parser.add_argument(
        "--replay-snapshots",
        help="CSV of recorded snapshots to replay instead of consuming Kafka",
    )
    parser.add_argument("--replay-logs", help="CSV of recorded log events for the replay")

    # Kafka settings
    parser.add_argument(
        "--kafka-servers",
        default=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
        help="Kafka bootstrap servers (default: localhost:9092)",
    )
    parser.add_argument(
        "--snapshot-topic",
        default=os.getenv("SNAPSHOT_TOPIC", "device-snapshots"),
        help="Topic carrying telemetry snapshots (default: device-snapshots)",
    )
    parser.add_argument(
        "--log-topic",
        default=os.getenv("LOG_TOPIC", "device-logs"),
        help="Topic carrying parsed log events (default: device-logs)",
    )
    parser.add_argument(
        "--alert-topic",
        default=os.getenv("ALERT_TOPIC", "device-alerts"),
        help="Topic receiving alert updates (default: device-alerts)",
    )
    parser.add_argument(
        "--group-id",
        default="devicewatch-pipeline",
        help="Kafka consumer group ID",
    )

    # Method configuration
    parser.add_argument(
        "--method",
        default=os.getenv("DEVICEWATCH_METHOD", "feature_level"),
        choices=list_methods(),
        help="Scoring method for every category (default: feature_level)",
    )
    parser.add_argument(
        "--redis-host",
        default=os.getenv("REDIS_HOST"),
        help="Redis host holding pre-trained baselines (default: none, use priors)",
    )

    # Decision policy
    parser.add_argument("--cutoff", type=float, help="Anomaly cutoff (default: 0.8)")
    parser.add_argument("--margin", type=float, help="Hysteresis margin (default: 0.1)")
    parser.add_argument(
        "--consecutive", type=int, help="Consecutive anomalous windows to confirm (default: 2)"
    )

    # Windowing and lifecycle
    parser.add_argument("--window-seconds", type=float, help="Window duration (default: 60)")
    parser.add_argument(
        "--interval-seconds", type=float, help="Expected sampling interval (default: 10)"
    )
    parser.add_argument(
        "--lookback-seconds", type=float, help="Log correlation lookback (default: 300)"
    )

    # Runtime settings
    parser.add_argument(
        "--duration",
        type=int,
        help="Run for N seconds then stop (default: infinite)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    """Build configuration from environment and arguments"""
    overrides = {"categories": default_categories(args.method)}
    if args.redis_host:
        overrides["redis_host"] = args.redis_host

    optional = {
        "cutoff": args.cutoff,
        "hysteresis_margin": args.margin,
        "consecutive_windows": args.consecutive,
        "window_seconds": args.window_seconds,
        "sampling_interval_seconds": args.interval_seconds,
        "correlation_lookback_seconds": args.lookback_seconds,
    }
    overrides.update({k: v for k, v in optional.items() if v is not None})

    return PipelineConfig.from_env(**overrides)


def build_scoring_functions(config: PipelineConfig) -> dict:
    """Create one scoring method per category, loading cached baselines when available"""
    functions = {
        category.name: get_method(category.method_name, category.method_config)
        for category in config.categories
    }
    wanted = {
        name: method.name
        for name, method in functions.items()
        if isinstance(method, BaselineZScoreMethod)
    }
    if not config.redis_host or not wanted:
        return functions

    baselines = RedisModelCache(config).load_baselines(wanted)
    for name in wanted:
        model = baselines.get(name)
        if model is None:
            logger.warning("No cached baseline, using priors", device_id=config.device_id, category=name)
            continue
        try:
            functions[name].load_components(model)
        except ValueError as e:
            logger.warning("Cached baseline rejected, using priors", category=name, error=str(e))
    return functions


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    setup_logging(level=getattr(logging, args.log_level))

    logger.info("Starting devicewatch pipeline")

    try:
        config = build_config(args)
        orchestrator = PipelineOrchestrator(config, build_scoring_functions(config))

        log_subscriber = LoggingSubscriber()
        orchestrator.subscribe(log_subscriber)
        orchestrator.add_event_listener(log_subscriber.on_event)

        if args.replay_snapshots:
            replay_csv(orchestrator, args.replay_snapshots, args.replay_logs)
            logger.info("Replay finished", **orchestrator.stats)
            return 0

        publisher = KafkaAlertPublisher(args.kafka_servers, args.alert_topic, config.device_id)
        orchestrator.subscribe(publisher)
        orchestrator.add_event_listener(publisher.on_event)

        sources = [
            KafkaSource(
                "snapshots",
                args.kafka_servers,
                args.snapshot_topic,
                args.group_id,
                orchestrator.submit_snapshot,
            ),
            KafkaSource(
                "logs",
                args.kafka_servers,
                args.log_topic,
                args.group_id,
                orchestrator.submit_log,
            ),
        ]
        for source in sources:
            source.start()

        try:
            orchestrator.run(duration_seconds=args.duration)
        finally:
            for source in sources:
                source.stop()
            publisher.close()

        logger.info("Pipeline completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Pipeline failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
