"""
Tests for the pipeline CLI.
"""

from unittest.mock import MagicMock, patch

from devicewatch.pipeline.config import PipelineConfig
from devicewatch.pipeline.methods import BaselineZScoreMethod, FeatureLevelMethod, ModelComponents
from devicewatch.pipeline.run import build_config, build_scoring_functions, main, parse_arguments


class TestArguments:
    """Tests for argument parsing and configuration."""

    def test_defaults(self):
        """Test default arguments."""
        args = parse_arguments([])

        assert args.method == "feature_level"
        assert args.snapshot_topic == "device-snapshots"
        assert args.replay_snapshots is None
        assert args.cutoff is None

    def test_build_config_overrides(self):
        """Test that explicit arguments override the defaults."""
        args = parse_arguments(
            ["--method", "baseline_zscore", "--cutoff", "0.7", "--consecutive", "3", "--window-seconds", "30"]
        )

        config = build_config(args)

        assert config.cutoff == 0.7
        assert config.consecutive_windows == 3
        assert config.window_seconds == 30.0
        assert config.hysteresis_margin == 0.1
        assert all(c.method_name == "baseline_zscore" for c in config.categories)


class TestScoringFunctions:
    """Tests for scoring function construction."""

    def test_without_redis(self):
        """Test that methods use their defaults without a cache."""
        functions = build_scoring_functions(PipelineConfig())

        assert set(functions) == {"cpu", "memory", "battery", "thermal"}
        assert all(isinstance(f, FeatureLevelMethod) for f in functions.values())

    @patch("devicewatch.pipeline.run.RedisModelCache")
    def test_loads_cached_baselines(self, mock_cache_class):
        """Test that cached baselines are loaded into z-score methods."""
        model = ModelComponents(
            method_name="baseline_zscore",
            device_id="local-device",
            category="cpu",
            components={"means": {"cpu_mean": 0.5}, "stds": {"cpu_mean": 0.05}},
            trained_at="yesterday",
            metadata={},
        )
        mock_cache_class.return_value.load_baselines.return_value = {"cpu": model}
        args = parse_arguments(["--method", "baseline_zscore", "--redis-host", "redis"])

        functions = build_scoring_functions(build_config(args))

        assert isinstance(functions["cpu"], BaselineZScoreMethod)
        assert functions["cpu"].baseline_source == "local-device@yesterday"
        assert functions["memory"].baseline_source == "defaults"
        wanted = mock_cache_class.return_value.load_baselines.call_args[0][0]
        assert wanted == {
            "cpu": "baseline_zscore",
            "memory": "baseline_zscore",
            "battery": "baseline_zscore",
            "thermal": "baseline_zscore",
        }

    @patch("devicewatch.pipeline.run.RedisModelCache")
    def test_incomplete_baseline_falls_back_to_priors(self, mock_cache_class):
        """Test that a baseline missing features is ignored."""
        model = ModelComponents(
            method_name="baseline_zscore",
            device_id="local-device",
            category="cpu",
            components={"means": {}, "stds": {}},
            trained_at="yesterday",
            metadata={},
        )
        mock_cache_class.return_value.load_baselines.return_value = {"cpu": model}
        args = parse_arguments(["--method", "baseline_zscore", "--redis-host", "redis"])

        functions = build_scoring_functions(build_config(args))

        assert functions["cpu"].baseline_source == "defaults"

    @patch("devicewatch.pipeline.run.RedisModelCache")
    def test_feature_level_never_touches_redis(self, mock_cache_class):
        """Test that no connection is made when no method needs a baseline."""
        args = parse_arguments(["--redis-host", "redis"])

        build_scoring_functions(build_config(args))

        mock_cache_class.assert_not_called()


class TestMain:
    """Tests for the entry point."""

    @patch("devicewatch.pipeline.run.replay_csv")
    def test_replay_mode(self, mock_replay):
        """Test that replay mode does not touch Kafka."""
        with patch("devicewatch.pipeline.run.KafkaSource") as mock_source:
            assert main(["--replay-snapshots", "snapshots.csv"]) == 0

        mock_replay.assert_called_once()
        assert mock_replay.call_args.args[1:] == ("snapshots.csv", None)
        mock_source.assert_not_called()

    @patch("devicewatch.pipeline.run.PipelineOrchestrator")
    @patch("devicewatch.pipeline.run.KafkaAlertPublisher")
    @patch("devicewatch.pipeline.run.KafkaSource")
    def test_kafka_mode(self, mock_source_class, mock_publisher_class, mock_orchestrator_class):
        """Test that sources are started, the loop runs and everything is closed."""
        sources = [MagicMock(), MagicMock()]
        mock_source_class.side_effect = sources

        assert main(["--duration", "1"]) == 0

        mock_orchestrator_class.return_value.run.assert_called_once_with(duration_seconds=1)
        for source in sources:
            source.start.assert_called_once()
            source.stop.assert_called_once()
        mock_publisher_class.return_value.close.assert_called_once()

    @patch("devicewatch.pipeline.run.KafkaAlertPublisher")
    def test_failure_returns_one(self, mock_publisher_class):
        """Test that startup failures give exit code 1."""
        mock_publisher_class.side_effect = RuntimeError("no brokers")

        assert main([]) == 1

    @patch("devicewatch.pipeline.run.replay_csv")
    def test_keyboard_interrupt_is_clean(self, mock_replay):
        """Test that an interrupt stops cleanly."""
        mock_replay.side_effect = KeyboardInterrupt

        assert main(["--replay-snapshots", "snapshots.csv"]) == 0
