"""
Interval Planner Tests
======================

Tests for interval and start offset planning.
"""

import math

import pytest

from portfolio_curator.sampling.planner import (
    MIN_INTERVAL,
    IntervalPlan,
    effective_duration,
    plan,
)


class TestPlanTargetCount:
    """Tests for the target-count path (no requested rate)."""

    def test_ten_second_video(self):
        """10s at 30 target frames gives a 1/3s interval from 0.1s."""
        result = plan(10.0, target_count=30)

        assert result.interval == pytest.approx(10.0 / 30)
        assert result.start_offset == pytest.approx(0.1)
        assert result.implied_frame_count(10.0) == 30

    def test_short_video_uses_min_spacing(self):
        """A 1s clip is floored at 0.1s spacing, not 1/30s."""
        result = plan(1.0, target_count=30)

        assert result.interval == pytest.approx(0.1)
        assert result.start_offset == pytest.approx(0.1)

    def test_lead_in_capped_at_tenth_of_duration(self):
        result = plan(0.5, target_count=30)

        assert result.start_offset == pytest.approx(0.05)

    def test_long_video_bounded_by_ceiling(self):
        """10 minutes with target 30 stays at 30 frames."""
        result = plan(600.0, target_count=30, hard_ceiling=600)

        assert result.interval == pytest.approx(20.0)
        assert result.implied_frame_count(600.0) <= 600


class TestPlanDesiredRate:
    """Tests for the requested-rate path."""

    def test_rate_sets_interval(self):
        result = plan(10.0, desired_rate=2.0)

        assert result.interval == pytest.approx(0.5)

    def test_high_rate_limited_by_ceiling(self):
        """A 60fps request on a 20 minute video cannot exceed the ceiling."""
        duration = 1200.0
        result = plan(duration, desired_rate=60.0, hard_ceiling=600)

        assert result.interval == pytest.approx(2.0)
        assert result.implied_frame_count(duration) <= 600

    def test_rate_ignores_min_spacing(self):
        """An explicit rate may go below the fallback spacing."""
        result = plan(10.0, desired_rate=20.0)

        assert result.interval == pytest.approx(0.05)

    def test_extreme_rate_floored(self):
        result = plan(1.0, desired_rate=10000.0, hard_ceiling=100000)

        assert result.interval == pytest.approx(MIN_INTERVAL)

    @pytest.mark.parametrize("rate", [0.0, -1.0, math.nan, math.inf])
    def test_invalid_rate_falls_back_to_target(self, rate):
        result = plan(10.0, desired_rate=rate, target_count=30)

        assert result.interval == pytest.approx(10.0 / 30)


class TestPlanValidation:
    """Tests for rejected inputs."""

    @pytest.mark.parametrize("duration", [0.0, -1.0, math.nan, math.inf, None])
    def test_rejects_unusable_duration(self, duration):
        with pytest.raises(ValueError):
            plan(duration)

    def test_rejects_zero_target(self):
        with pytest.raises(ValueError):
            plan(10.0, target_count=0)

    def test_rejects_zero_ceiling(self):
        with pytest.raises(ValueError):
            plan(10.0, hard_ceiling=0)


class TestPlanInvariants:
    """Properties that hold for any valid input."""

    @pytest.mark.parametrize("duration", [0.05, 0.3, 1.0, 7.5, 59.9, 3600.0])
    @pytest.mark.parametrize("rate", [None, 0.5, 5.0, 120.0])
    def test_interval_positive_and_bounded(self, duration, rate):
        result = plan(duration, desired_rate=rate, hard_ceiling=600)

        assert result.interval > 0
        assert 0 <= result.start_offset <= duration / 10 + 1e-12
        assert result.implied_frame_count(duration) <= 600


class TestEffectiveDuration:
    """Tests for the fallback duration policy."""

    @pytest.mark.parametrize("reported", [None, math.nan, math.inf, 0.0, -3.0])
    def test_unusable_durations_use_default(self, reported):
        assert effective_duration(reported) == 1.0

    def test_custom_fallback(self):
        assert effective_duration(None, fallback=4.0) == 4.0

    def test_valid_duration_passes_through(self):
        assert effective_duration(12.5) == 12.5


class TestIntervalPlan:
    """Tests for IntervalPlan helpers."""

    def test_target_at(self):
        interval_plan = IntervalPlan(interval=0.5, start_offset=0.1)

        assert interval_plan.target_at(0) == pytest.approx(0.1)
        assert interval_plan.target_at(4) == pytest.approx(2.1)

    def test_implied_count_empty_span(self):
        interval_plan = IntervalPlan(interval=0.5, start_offset=2.0)

        assert interval_plan.implied_frame_count(1.0) == 0
