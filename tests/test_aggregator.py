"""Tests for aggregator module."""

import pytest

from aggregator import (
    PLACEHOLDER_IMPEDANCE_OHM,
    AggregateState,
    ReadingAggregator,
    estimate_impedance,
)
from candidates import IMPEDANCE16_RANGE_OHM, in_range
from composition import ImpedanceSource, Sex, UserProfile
from decode import Measurement

MALE = UserProfile(age=30, height_cm=170, sex=Sex.MALE)


class TestEstimateImpedance:
    """Tests for estimate_impedance function."""

    def test_male_estimate(self):
        """1.70^2 * 1000 / (72 * 0.8) is about 50.2 ohm."""
        assert estimate_impedance(170, 72.0, Sex.MALE) == pytest.approx(50.17, abs=0.01)

    def test_female_factor(self):
        assert estimate_impedance(170, 72.0, Sex.FEMALE) == pytest.approx(2890 / 54, rel=1e-6)

    def test_estimate_is_outside_measured_band(self):
        """The surrogate for a typical adult is not a plausible impedance."""
        estimate = estimate_impedance(170, 72.0, Sex.MALE)
        assert not in_range(estimate, IMPEDANCE16_RANGE_OHM)

    def test_no_weight(self):
        assert estimate_impedance(170, None, Sex.MALE) is None
        assert estimate_impedance(170, 0.0, Sex.MALE) is None


class TestReadingAggregator:
    """Tests for ReadingAggregator."""

    def test_starts_empty(self):
        state = ReadingAggregator().state
        assert state == AggregateState()
        assert not state.has_weight

    def test_weight_update_preserves_impedance(self):
        aggregator = ReadingAggregator()
        aggregator.update(Measurement(weight_kg=70.0, impedance_ohm=500.0), MALE)

        state = aggregator.update(Measurement(weight_kg=71.0), MALE)

        assert state.weight_kg == 71.0
        assert state.impedance_ohm == 500.0
        assert state.impedance_source is ImpedanceSource.MEASURED

    def test_impedance_update_preserves_weight(self):
        aggregator = ReadingAggregator()
        aggregator.update(Measurement(weight_kg=72.0), MALE)

        state = aggregator.update(Measurement(impedance_ohm=520.0), MALE)

        assert state == AggregateState(72.0, 520.0, ImpedanceSource.MEASURED)

    def test_implausible_estimate_uses_default(self):
        """Weight only, the estimate (about 50 ohm) is rejected for the placeholder."""
        state = ReadingAggregator().update(Measurement(weight_kg=72.0), MALE)

        assert state.impedance_ohm == PLACEHOLDER_IMPEDANCE_OHM
        assert state.impedance_source is ImpedanceSource.DEFAULT

    def test_plausible_estimate_is_used(self):
        """A light user gets an in-band estimate: 2890 / (20 * 0.8) = 180.6."""
        state = ReadingAggregator().update(Measurement(weight_kg=20.0), MALE)

        assert state.impedance_ohm == 181.0
        assert state.impedance_source is ImpedanceSource.ESTIMATED

    def test_measured_impedance_replaces_estimate(self):
        aggregator = ReadingAggregator()
        aggregator.update(Measurement(weight_kg=20.0), MALE)

        state = aggregator.update(Measurement(impedance_ohm=450.0), MALE)

        assert state.impedance_ohm == 450.0
        assert state.impedance_source is ImpedanceSource.MEASURED

    def test_impedance_without_weight(self):
        state = ReadingAggregator().update(Measurement(impedance_ohm=520.0), MALE)

        assert state.weight_kg is None
        assert state.impedance_ohm == 520.0
        assert not state.has_weight

    def test_reset(self):
        aggregator = ReadingAggregator()
        aggregator.update(Measurement(weight_kg=72.0, impedance_ohm=520.0), MALE)

        aggregator.reset()
        state = aggregator.update(Measurement(weight_kg=72.0), MALE)

        assert state.impedance_source is ImpedanceSource.DEFAULT
