"""Tests for random variate generators."""

import math

import numpy as np
import pytest

from pacusim.core.distributions import (
    RandomStreams,
    adjust_for_time_of_day,
    exponential_random,
    normal_random,
    weighted_random_selection,
)


class TestNormalRandom:
    """Test clamped Box-Muller normal draws."""

    def test_zero_stddev_returns_mean(self, default_seed):
        """No spread gives the mean exactly."""
        rng = np.random.default_rng(default_seed)
        assert normal_random(rng, 45.0, 0.0) == 45.0

    def test_never_negative(self, default_seed):
        """Negative draws are clamped to zero."""
        rng = np.random.default_rng(default_seed)
        draws = [normal_random(rng, 1.0, 10.0) for _ in range(2000)]
        assert min(draws) == 0.0
        assert all(d >= 0 for d in draws)

    def test_clamping_biases_mean_upwards(self, default_seed):
        """Clamped high-variance draws average above the nominal mean."""
        rng = np.random.default_rng(default_seed)
        draws = [normal_random(rng, 0.0, 10.0) for _ in range(5000)]
        assert np.mean(draws) > 2.0

    def test_sample_mean_close(self, default_seed):
        """Low-variance draws centre on the mean."""
        rng = np.random.default_rng(default_seed)
        draws = [normal_random(rng, 100.0, 5.0) for _ in range(5000)]
        assert abs(np.mean(draws) - 100.0) < 0.5


class TestExponentialRandom:
    """Test inverse-CDF exponential draws."""

    def test_non_positive_rate_is_infinite(self, default_seed):
        """rate <= 0 means no further events."""
        rng = np.random.default_rng(default_seed)
        assert exponential_random(rng, 0.0) == math.inf
        assert exponential_random(rng, -1.0) == math.inf

    def test_sample_mean(self, default_seed):
        """Mean inter-event time is 1 / rate."""
        rng = np.random.default_rng(default_seed)
        draws = [exponential_random(rng, 0.5) for _ in range(10000)]
        assert abs(np.mean(draws) - 2.0) < 0.1


class TestWeightedSelection:
    """Test weighted category selection."""

    def test_empty_returns_none(self, default_seed):
        rng = np.random.default_rng(default_seed)
        assert weighted_random_selection(rng, {}) is None

    def test_all_zero_returns_none(self, default_seed):
        rng = np.random.default_rng(default_seed)
        assert weighted_random_selection(rng, {"A": 0.0, "B": 0.0}) is None

    def test_zero_weight_never_chosen(self, default_seed):
        """Categories with zero weight are never selected."""
        rng = np.random.default_rng(default_seed)
        picks = {weighted_random_selection(rng, {"A": 0.0, "B": 1.0}) for _ in range(200)}
        assert picks == {"B"}

    def test_proportions(self, default_seed):
        """Selection frequency follows the weights."""
        rng = np.random.default_rng(default_seed)
        picks = [weighted_random_selection(rng, {"A": 3.0, "B": 1.0}) for _ in range(8000)]
        share_a = picks.count("A") / len(picks)
        assert share_a == pytest.approx(0.75, abs=0.02)


class TestTimeOfDayAdjustment:
    """Test time-of-day duration scaling."""

    def test_no_variability_unchanged(self, default_seed):
        rng = np.random.default_rng(default_seed)
        assert adjust_for_time_of_day(rng, 60.0, 8 * 60, 0.0) == 60.0

    def test_morning_is_faster(self, default_seed):
        """Starts at 07-10 h shrink by at most variability / 2."""
        rng = np.random.default_rng(default_seed)
        for _ in range(200):
            adjusted = adjust_for_time_of_day(rng, 100.0, 8 * 60, 0.4)
            assert 80.0 <= adjusted <= 100.0

    def test_afternoon_is_slower(self, default_seed):
        """Starts at 15-19 h grow by at most variability."""
        rng = np.random.default_rng(default_seed)
        for _ in range(200):
            adjusted = adjust_for_time_of_day(rng, 100.0, 16 * 60, 0.4)
            assert 100.0 <= adjusted <= 140.0

    def test_midday_unchanged(self, default_seed):
        """Starts outside both windows keep their duration."""
        rng = np.random.default_rng(default_seed)
        assert adjust_for_time_of_day(rng, 100.0, 12 * 60, 0.4) == 100.0

    def test_uses_clock_time_on_later_days(self, default_seed):
        """Hour is taken modulo one day."""
        rng = np.random.default_rng(default_seed)
        assert adjust_for_time_of_day(rng, 100.0, 1440 + 12 * 60, 0.4) == 100.0

    def test_floor_at_half_duration(self, default_seed):
        """Large variability never shrinks below half."""
        rng = np.random.default_rng(default_seed)
        for _ in range(200):
            assert adjust_for_time_of_day(rng, 100.0, 9 * 60, 3.0) >= 50.0


class TestRandomStreams:
    """Test per-run stream creation."""

    def test_same_seed_same_streams(self, default_seed):
        """Streams built from one seed repeat exactly."""
        a = RandomStreams.from_seed(default_seed)
        b = RandomStreams.from_seed(default_seed)
        assert a.durations.random() == b.durations.random()
        assert a.cancellation.random() == b.cancellation.random()

    def test_streams_are_independent(self, default_seed):
        """Each concern gets its own generator."""
        streams = RandomStreams.from_seed(default_seed)
        assert streams.schedule.random() != streams.durations.random()
