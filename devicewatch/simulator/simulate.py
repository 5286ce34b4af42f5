"""
Device Simulator - CLI Entry Point
Publishes synthetic device snapshots and log lines with configurable anomalies
"""

import argparse
import dataclasses
import logging
import sys

import structlog

from devicewatch.core.logger import setup_logging
from devicewatch.simulator import (
    BATTERY_FOCUS_CONFIG,
    CHAOS_CONFIG,
    CPU_FOCUS_CONFIG,
    DEV_CONFIG,
    NORMAL_CONFIG,
    AnomalyType,
    DeviceSimulator,
    SimulatorConfig,
)

logger = structlog.get_logger(__name__)


# Predefined configurations
CONFIGS = {
    "normal": NORMAL_CONFIG,
    "chaos": CHAOS_CONFIG,
    "cpu": CPU_FOCUS_CONFIG,
    "battery": BATTERY_FOCUS_CONFIG,
    "dev": DEV_CONFIG,
}


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Device Simulator for Kafka",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Use predefined normal config
            python -m devicewatch.simulator.simulate --config normal

            # Use chaos config for 300 seconds
            python -m devicewatch.simulator.simulate --config chaos --duration 300

            # Custom configuration
            python -m devicewatch.simulator.simulate --interval 5 --anomaly-prob 0.05 \\
                --anomalies cpu_spike log_burst
        """,
    )

    # Predefined config
    parser.add_argument(
        "--config", choices=list(CONFIGS.keys()), help="Use a predefined configuration"
    )

    # Kafka settings
    parser.add_argument(
        "--kafka-servers",
        default="localhost:9092",
        help="Kafka bootstrap servers (default: localhost:9092)",
    )
    parser.add_argument("--snapshot-topic", help="Snapshot topic (default: device-snapshots)")
    parser.add_argument("--log-topic", help="Log topic (default: device-logs)")

    # Generation settings
    parser.add_argument("--device-id", help="Simulated device ID")
    parser.add_argument("--interval", type=float, help="Simulated seconds between snapshots")
    parser.add_argument(
        "--time-scale", type=float, help="Simulated seconds per wall-clock second"
    )

    # Anomaly settings
    parser.add_argument(
        "--anomaly-prob", type=float, help="Probability of anomaly injection (0.0 to 1.0)"
    )
    parser.add_argument(
        "--anomalies",
        nargs="+",
        choices=[a.value for a in AnomalyType],
        help="Specific anomaly types to enable",
    )

    # Runtime settings
    parser.add_argument(
        "--duration", type=int, help="Duration to run in seconds (default: infinite)"
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config_from_args(args) -> SimulatorConfig:
    """Build a SimulatorConfig from command-line arguments"""

    # Start with predefined config if specified
    if args.config:
        config = CONFIGS[args.config]
        logger.info("Using predefined configuration", config_name=args.config)
    else:
        config = SimulatorConfig()
        logger.info("Using default configuration")

    # Override with command-line arguments
    overrides = {
        "kafka_bootstrap_servers": args.kafka_servers,
        "snapshot_topic": args.snapshot_topic,
        "log_topic": args.log_topic,
        "device_id": args.device_id,
        "sampling_interval_seconds": args.interval,
        "time_scale": args.time_scale,
        "anomaly_probability": args.anomaly_prob,
    }
    if args.anomalies:
        overrides["enabled_anomalies"] = [AnomalyType(a) for a in args.anomalies]

    return dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    setup_logging(level=getattr(logging, args.log_level))

    logger.info("Starting Device Simulator")

    try:
        config = build_config_from_args(args)
        simulator = DeviceSimulator(config)
        simulator.run(duration_seconds=args.duration)

        logger.info("Simulator completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Simulator failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
