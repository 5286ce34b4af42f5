"""
Tests for alert subscribers.
"""

import json
from unittest.mock import patch

import pytest
from helpers import T0, at

from devicewatch.pipeline.models import AlertSnapshot, AlertState, PipelineEvent
from devicewatch.pipeline.subscribers import KafkaAlertPublisher, LoggingSubscriber


@pytest.fixture
def alert_snapshot():
    return AlertSnapshot(
        id="abc123",
        category="cpu",
        state=AlertState.ACTIVE,
        first_seen=at(0),
        last_seen=at(60),
        peak_score=0.93,
        candidate_culprit="com.social.media.app",
        culprit_justification="5 log event(s)",
        occurrence_count=1,
    )


class TestLoggingSubscriber:
    """Tests for LoggingSubscriber."""

    @patch("devicewatch.pipeline.subscribers.logger")
    def test_active_alert_logged_as_warning(self, mock_logger, alert_snapshot):
        """Test that active alerts are logged at warning level."""
        LoggingSubscriber()(alert_snapshot)

        mock_logger.warning.assert_called_once()
        kwargs = mock_logger.warning.call_args.kwargs
        assert kwargs["alert_id"] == "abc123"
        assert kwargs["state"] == "active"
        assert kwargs["culprit"] == "com.social.media.app"

    @patch("devicewatch.pipeline.subscribers.logger")
    def test_other_states_logged_as_info(self, mock_logger, alert_snapshot):
        """Test that other transitions are logged at info level."""
        resolved = AlertSnapshot(**{**alert_snapshot.__dict__, "state": AlertState.RESOLVED})

        LoggingSubscriber()(resolved)

        mock_logger.info.assert_called_once()
        mock_logger.warning.assert_not_called()

    @patch("devicewatch.pipeline.subscribers.logger")
    def test_on_event(self, mock_logger):
        """Test pipeline event logging."""
        LoggingSubscriber().on_event(
            PipelineEvent(kind="queue_overflow", timestamp=T0, detail={"dropped": 5})
        )

        mock_logger.info.assert_called_once_with("Pipeline event", kind="queue_overflow", dropped=5)


class TestKafkaAlertPublisher:
    """Tests for KafkaAlertPublisher."""

    @patch("devicewatch.pipeline.subscribers.KafkaProducer")
    def test_initialization(self, mock_producer_class):
        """Test producer creation."""
        KafkaAlertPublisher("kafka:9092", "device-alerts", "pixel-7")

        kwargs = mock_producer_class.call_args.kwargs
        assert kwargs["bootstrap_servers"] == "kafka:9092"
        assert kwargs["value_serializer"]({"a": 1}) == b'{"a": 1}'
        assert kwargs["key_serializer"]("abc") == b"abc"

    @patch("devicewatch.pipeline.subscribers.KafkaProducer")
    def test_initialization_failure(self, mock_producer_class):
        """Test that producer errors are raised."""
        mock_producer_class.side_effect = RuntimeError("no brokers")

        with pytest.raises(RuntimeError, match="no brokers"):
            KafkaAlertPublisher("kafka:9092", "device-alerts", "pixel-7")

    @patch("devicewatch.pipeline.subscribers.KafkaProducer")
    def test_publish_alert(self, mock_producer_class, alert_snapshot):
        """Test that alerts are sent keyed by id."""
        publisher = KafkaAlertPublisher("kafka:9092", "device-alerts", "pixel-7")

        publisher(alert_snapshot)

        producer = mock_producer_class.return_value
        topic = producer.send.call_args.args[0]
        kwargs = producer.send.call_args.kwargs
        assert topic == "device-alerts"
        assert kwargs["key"] == "abc123"
        assert kwargs["value"]["type"] == "alert"
        assert kwargs["value"]["device_id"] == "pixel-7"
        assert kwargs["value"]["state"] == "active"
        json.dumps(kwargs["value"])

    @patch("devicewatch.pipeline.subscribers.KafkaProducer")
    def test_publish_event(self, mock_producer_class):
        """Test that pipeline events are sent on the same topic."""
        publisher = KafkaAlertPublisher("kafka:9092", "device-alerts", "pixel-7")

        publisher.on_event(PipelineEvent(kind="scoring_unavailable", timestamp=T0))

        kwargs = mock_producer_class.return_value.send.call_args.kwargs
        assert kwargs["key"] == "scoring_unavailable"
        assert kwargs["value"]["type"] == "pipeline_event"

    @patch("devicewatch.pipeline.subscribers.KafkaProducer")
    def test_close_flushes(self, mock_producer_class):
        """Test that close flushes pending messages."""
        publisher = KafkaAlertPublisher("kafka:9092", "device-alerts", "pixel-7")

        publisher.close()

        mock_producer_class.return_value.flush.assert_called_once()
        mock_producer_class.return_value.close.assert_called_once()
