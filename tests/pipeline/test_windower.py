"""
Tests for FeatureWindower.
"""

import pytest
from helpers import at, make_snapshot

from devicewatch.pipeline.config import PipelineConfig
from devicewatch.pipeline.errors import InvalidSnapshot
from devicewatch.pipeline.models import FEATURE_NAMES
from devicewatch.pipeline.windower import FeatureWindower


@pytest.fixture
def windower():
    """Window of 3 snapshots sampled every 10 seconds."""
    return FeatureWindower(window_size=3, sampling_interval_seconds=10.0)


class TestEmission:
    """Tests for window emission."""

    def test_no_vector_until_window_full(self, windower):
        """Test that the first N-1 snapshots emit nothing."""
        assert windower.push(make_snapshot(0)) is None
        assert windower.push(make_snapshot(10)) is None
        assert windower.push(make_snapshot(20)) is not None

    def test_sliding_emits_on_every_sample(self, windower):
        """Test that a full sliding window emits once per new sample."""
        vectors = [windower.push(make_snapshot(10 * i)) for i in range(6)]

        emitted = [v for v in vectors if v is not None]
        assert len(emitted) == 4
        assert emitted[0].window_ref == (at(0), at(20))
        assert emitted[-1].window_ref == (at(30), at(50))
        assert all(v.sample_count == 3 for v in emitted)

    def test_tumbling_emits_every_n_samples(self):
        """Test non-overlapping windows in tumbling mode."""
        windower = FeatureWindower(3, 10.0, emit_mode="tumbling")

        vectors = [windower.push(make_snapshot(10 * i)) for i in range(9)]

        emitted = [v for v in vectors if v is not None]
        assert [v.window_ref for v in emitted] == [
            (at(0), at(20)),
            (at(30), at(50)),
            (at(60), at(80)),
        ]

    def test_from_config(self):
        """Test construction from PipelineConfig."""
        config = PipelineConfig(window_seconds=60, sampling_interval_seconds=10, emit_mode="tumbling")
        windower = FeatureWindower.from_config(config)

        assert windower.window_size == 6
        assert windower.emit_mode == "tumbling"

    @pytest.mark.parametrize("kwargs", [{"window_size": 0}, {"window_size": 3, "emit_mode": "x"}])
    def test_invalid_arguments(self, kwargs):
        """Test constructor validation."""
        with pytest.raises(ValueError):
            FeatureWindower(sampling_interval_seconds=10.0, **kwargs)


class TestFeatures:
    """Tests for feature computation."""

    def test_vector_layout_and_normalization(self, windower):
        """Test every dimension on a known window."""
        windower.push(make_snapshot(0, cpu=0.2, mem_used_ratio=0.4, thermal_celsius=40.0))
        windower.push(make_snapshot(10, cpu=0.4, mem_used_ratio=0.5, thermal_celsius=60.0))
        vector = windower.push(
            make_snapshot(
                20,
                cpu=0.9,
                mem_used_ratio=0.6,
                battery_level=50.0,
                battery_charging=True,
                thermal_celsius=80.0,
            )
        )

        assert len(vector.values) == len(FEATURE_NAMES)
        assert vector.feature("cpu_mean") == pytest.approx(0.5)
        assert vector.feature("cpu_peak") == pytest.approx(0.9)
        assert vector.feature("mem_mean") == pytest.approx(0.5)
        assert vector.feature("mem_peak") == pytest.approx(0.6)
        assert vector.feature("battery_level") == pytest.approx(0.5)
        assert vector.feature("charging_ratio") == pytest.approx(1 / 3)
        assert vector.feature("thermal_mean") == pytest.approx(0.5)
        assert vector.degraded is False

    def test_values_within_unit_range(self, windower):
        """Test that every dimension is clipped to [0, 1]."""
        windower.push(make_snapshot(0, cpu=1.0, battery_level=100.0, thermal_celsius=150.0))
        windower.push(make_snapshot(10, cpu=1.0, battery_level=10.0, thermal_celsius=-40.0))
        vector = windower.push(make_snapshot(20, cpu=1.0, battery_level=1.0, thermal_celsius=150.0))

        assert all(0.0 <= v <= 1.0 for v in vector.values)
        assert vector.feature("battery_drain") == 1.0

    def test_battery_drain_rate(self, windower):
        """Test discharge in percent per hour over the window."""
        # 0.1% per 10s = 36%/h, scaled by 50%/h
        windower.push(make_snapshot(0, battery_level=80.0))
        windower.push(make_snapshot(10, battery_level=79.9))
        vector = windower.push(make_snapshot(20, battery_level=79.8))

        assert vector.feature("battery_drain") == pytest.approx(36.0 / 50.0)

    def test_charging_spans_do_not_drain(self, windower):
        """Test that level changes while charging are ignored."""
        windower.push(make_snapshot(0, battery_level=80.0, battery_charging=True))
        windower.push(make_snapshot(10, battery_level=70.0, battery_charging=True))
        vector = windower.push(make_snapshot(20, battery_level=90.0, battery_charging=True))

        assert vector.feature("battery_drain") == 0.0

    def test_constant_input_gives_identical_vectors(self, windower):
        """Test that constant input produces stable vectors."""
        vectors = [windower.push(make_snapshot(10 * i)) for i in range(6)]

        emitted = [v.values for v in vectors if v is not None]
        assert all(values == emitted[0] for values in emitted)


class TestMissingData:
    """Tests for imputation and degraded vectors."""

    def test_missing_value_forward_filled(self, windower):
        """Test that a missing metric takes the last valid value."""
        windower.push(make_snapshot(0, cpu=0.3))
        windower.push(make_snapshot(10, cpu=None))
        vector = windower.push(make_snapshot(20, cpu=0.6))

        assert vector.feature("cpu_mean") == pytest.approx(0.4)
        assert vector.degraded is False

    def test_leading_missing_values_skipped(self, windower):
        """Test that leading gaps are not imputed."""
        windower.push(make_snapshot(0, cpu=None))
        windower.push(make_snapshot(10, cpu=0.2))
        vector = windower.push(make_snapshot(20, cpu=0.4))

        assert vector.feature("cpu_mean") == pytest.approx(0.3)

    def test_metric_missing_for_whole_window_degrades(self, windower):
        """Test that a required metric absent from the window degrades the vector."""
        for i in range(3):
            vector = windower.push(make_snapshot(10 * i, mem_used_ratio=None))

        assert vector.degraded is True
        assert vector.feature("mem_mean") == 0.0
        assert windower.stats["degraded"] == 1

    def test_missing_thermal_does_not_degrade(self, windower):
        """Test that the optional thermal sensor never degrades the vector."""
        for i in range(3):
            vector = windower.push(make_snapshot(10 * i, thermal_celsius=None))

        assert vector.degraded is False
        assert vector.feature("thermal_mean") == 0.0

    def test_gap_degrades_next_vector_only(self, windower):
        """Test that a gap wider than twice the interval degrades the next vector."""
        windower.push(make_snapshot(0))
        windower.push(make_snapshot(10))
        windower.push(make_snapshot(20))
        gapped = windower.push(make_snapshot(60))
        after = windower.push(make_snapshot(70))

        assert gapped.degraded is True
        assert after.degraded is False
        assert windower.stats["gaps"] == 1

    def test_gap_within_tolerance_not_degraded(self, windower):
        """Test that a delay up to twice the interval is tolerated."""
        windower.push(make_snapshot(0))
        windower.push(make_snapshot(20))
        vector = windower.push(make_snapshot(40))

        assert vector.degraded is False


class TestOrdering:
    """Tests for out-of-order input."""

    @pytest.mark.parametrize("seconds", [10, 5])
    def test_stale_snapshot_rejected(self, windower, seconds):
        """Test that a snapshot not later than the previous one is rejected."""
        windower.push(make_snapshot(10))

        with pytest.raises(InvalidSnapshot, match="not later"):
            windower.push(make_snapshot(seconds))

        assert windower.stats["pushed"] == 1
