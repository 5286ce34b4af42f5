"""
Tests for ingestion sources.
"""

import time
from unittest.mock import MagicMock, patch

import pytest
from helpers import at

from devicewatch.pipeline.config import PipelineConfig
from devicewatch.pipeline.models import AlertState
from devicewatch.pipeline.orchestrator import PipelineOrchestrator
from devicewatch.pipeline.sources import KafkaSource, load_records, replay_csv


class TestKafkaSource:
    """Tests for KafkaSource."""

    @patch("devicewatch.pipeline.sources.KafkaConsumer")
    def test_initialization(self, mock_consumer_class):
        """Test consumer creation."""
        KafkaSource("snapshots", "kafka:9092", "device-snapshots", "group", MagicMock())

        args, kwargs = mock_consumer_class.call_args
        assert args == ("device-snapshots",)
        assert kwargs["bootstrap_servers"] == "kafka:9092"
        assert kwargs["group_id"] == "group"

    @patch("devicewatch.pipeline.sources.KafkaConsumer")
    def test_handle_message(self, mock_consumer_class):
        """Test that decoded payloads are submitted."""
        submit = MagicMock(return_value=True)
        source = KafkaSource("snapshots", "kafka:9092", "device-snapshots", "group", submit)

        source.handle_message(b'{"timestamp": "2025-10-02T12:00:00Z", "cpu_load": 0.5}')

        submit.assert_called_once_with({"timestamp": "2025-10-02T12:00:00Z", "cpu_load": 0.5})
        assert source.stats == {"consumed": 1, "refused": 0, "parse_errors": 0}

    @patch("devicewatch.pipeline.sources.KafkaConsumer")
    def test_handle_undecodable_message(self, mock_consumer_class):
        """Test that invalid JSON is counted and skipped."""
        submit = MagicMock()
        source = KafkaSource("logs", "kafka:9092", "device-logs", "group", submit)

        source.handle_message(b"{broken")
        source.handle_message(b"\xff\xfe")

        submit.assert_not_called()
        assert source.stats["parse_errors"] == 2

    @patch("devicewatch.pipeline.sources.KafkaConsumer")
    def test_refused_messages_counted(self, mock_consumer_class):
        """Test that refusals from a full queue are counted."""
        source = KafkaSource("logs", "kafka:9092", "device-logs", "group", MagicMock(return_value=False))

        source.handle_message(b"{}")

        assert source.stats["refused"] == 1

    @patch("devicewatch.pipeline.sources.KafkaConsumer")
    def test_run_consumes_until_stopped(self, mock_consumer_class):
        """Test the background consumer thread."""
        message = MagicMock(value=b'{"a": 1}')
        mock_consumer = mock_consumer_class.return_value
        mock_consumer.__iter__.return_value = iter([message, message])
        submit = MagicMock(return_value=True)
        source = KafkaSource("logs", "kafka:9092", "device-logs", "group", submit)

        source.start()
        deadline = time.time() + 5
        while submit.call_count < 2 and time.time() < deadline:
            time.sleep(0.01)
        source.stop()

        assert submit.call_count == 2
        mock_consumer.close.assert_called_once()


class TestReplay:
    """Tests for CSV replay."""

    @pytest.fixture
    def recording(self, tmp_path):
        snapshots = tmp_path / "snapshots.csv"
        snapshots.write_text(
            "timestamp,cpu_load,mem_used_ratio,battery_level,battery_charging,thermal_celsius\n"
            "2025-10-02T12:00:20Z,0.95,0.5,80,False,\n"
            "2025-10-02T12:00:00Z,0.90,0.5,80,False,\n"
            "2025-10-02T12:00:10Z,0.92,0.5,80,False,\n"
            "2025-10-02T12:00:30Z,0.95,0.5,80,False,\n"
        )
        logs = tmp_path / "logs.csv"
        logs.write_text(
            "timestamp,source_process,severity,message\n"
            + "".join(
                f"2025-10-02T12:00:{s}Z,com.social.media.app,E,ANR\n" for s in (21, 22, 23, 24, 25)
            )
        )
        return str(snapshots), str(logs)

    def test_load_records_sorted_with_none(self, recording):
        """Test that records are time-ordered and empty cells become None."""
        records = load_records(recording[0])

        assert [r["timestamp"].to_pydatetime() for r in records] == [at(0), at(10), at(20), at(30)]
        assert records[0]["thermal_celsius"] is None
        assert records[0]["cpu_load"] == pytest.approx(0.9)

    def test_load_records_requires_timestamp(self, tmp_path):
        """Test that a file without timestamps is rejected."""
        path = tmp_path / "bad.csv"
        path.write_text("cpu_load\n0.5\n")

        with pytest.raises(ValueError, match="timestamp"):
            load_records(str(path))

    def test_replay_raises_alert_with_culprit(self, recording, cpu_category):
        """Test an offline replay end to end."""
        config = PipelineConfig(
            window_seconds=30.0,
            sampling_interval_seconds=10.0,
            scoring_timeout_seconds=None,
            categories=[cpu_category],
        )
        alerts = []
        orchestrator = PipelineOrchestrator(config, subscribers=[alerts.append])

        stats = replay_csv(orchestrator, *recording)

        assert stats["snapshots"] == 4
        assert stats["log_events"] == 5
        assert stats["log_events_indexed"] == 5
        assert stats["invalid_snapshots"] == 0
        assert [a.state for a in alerts] == [AlertState.OPEN, AlertState.ACTIVE]
        assert alerts[-1].candidate_culprit == "com.social.media.app"

    def test_replay_without_logs(self, recording, cpu_category):
        """Test replaying snapshots only."""
        config = PipelineConfig(
            window_seconds=30.0,
            sampling_interval_seconds=10.0,
            scoring_timeout_seconds=None,
            categories=[cpu_category],
        )
        orchestrator = PipelineOrchestrator(config)

        stats = replay_csv(orchestrator, recording[0])

        assert stats["snapshots_processed"] == 4
        assert stats["correlation_unavailable"] == 1
