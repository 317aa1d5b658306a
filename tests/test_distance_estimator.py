"""
Unit tests for single-radio distance estimation.

Tests path-loss inversion, range rejection, confidence scoring,
calibration, statistics and reset behaviour.
"""

import math
from datetime import datetime, timedelta

import pytest

from ranging.distance import (
    DistanceEstimator,
    SignalStrength,
    classify_rssi_category,
    classify_signal_strength,
)
from ranging.models import SignalModel, get_signal_model


@pytest.fixture
def estimator():
    """Create a BLE distance estimator."""
    return DistanceEstimator('BLE')


class TestPathLossDistance:
    """Tests for log-distance path loss inversion."""

    def test_reference_rssi_gives_reference_distance(self, estimator):
        """At the reference RSSI the distance equals the reference distance."""
        result = estimator.estimate_distance(-59, use_filter=False)
        assert result.distance == pytest.approx(1.0, abs=0.1)
        assert result.error is None
        assert result.reliable is True
        assert result.model == 'Bluetooth Low Energy'

    def test_follows_log_distance_model(self, estimator):
        """10 dB below reference with n=2 should be ~3.16m."""
        result = estimator.estimate_distance(-69, use_filter=False)
        assert result.distance == 3.16

    def test_weaker_rssi_gives_larger_distance(self):
        """Distance should be monotonic in RSSI."""
        distances = [
            DistanceEstimator('BLE').estimate_distance(rssi, use_filter=False).distance
            for rssi in (-30, -45, -59, -70, -85, -99)
        ]
        assert distances == sorted(distances)

    def test_monotonic_with_filter(self):
        """Filtered first readings should also be monotonic."""
        close = DistanceEstimator('BLE').estimate_distance(-50)
        far = DistanceEstimator('BLE').estimate_distance(-70)
        assert close.distance <= far.distance

    def test_different_radio_types_differ(self):
        """Same RSSI should map to different distances per radio."""
        ble = DistanceEstimator('BLE').estimate_distance(-60, use_filter=False)
        wifi = DistanceEstimator('WIFI_2G').estimate_distance(-60, use_filter=False)
        lora = DistanceEstimator('LORA').estimate_distance(-60, use_filter=False)
        assert ble.distance != wifi.distance
        assert wifi.distance != lora.distance

    def test_unknown_radio_type_uses_ble_model(self):
        """Unknown radio types should estimate with the BLE model."""
        estimator = DistanceEstimator('ZIGBEE')
        assert estimator.model == get_signal_model('BLE')
        assert estimator.radio_type == 'ZIGBEE'

    def test_custom_model(self):
        """A custom model should replace the built-in one."""
        model = SignalModel(
            name='Beacon',
            reference_rssi=-65,
            reference_distance=1.0,
            path_loss_exponent=3.0,
            min_rssi=-110,
            max_rssi=-30,
            max_reliable_distance=20.0,
        )
        estimator = DistanceEstimator('BLE', custom_model=model)
        assert estimator.estimate_distance(-65, use_filter=False).distance == 1.0
        assert estimator.estimate_distance(-95, use_filter=False).distance == 10.0

    def test_filtered_rssi_rounded(self, estimator):
        """Filtered RSSI should be reported to one decimal."""
        result = estimator.estimate_distance(-55)
        assert result.filtered_rssi == round(estimator.kalman_filter.estimate, 1)
        assert result.raw_rssi == -55


class TestRangeRejection:
    """Tests for out-of-range RSSI handling."""

    @pytest.mark.parametrize('rssi', [-110, -100.5, -19, -10, 5])
    def test_out_of_range_returns_null_distance(self, estimator, rssi):
        """Out-of-range RSSI should return a null distance and an error."""
        result = estimator.estimate_distance(rssi)
        assert result.distance is None
        assert result.confidence == 0
        assert result.filtered_rssi == rssi
        assert result.raw_rssi == rssi
        assert result.reliable is False
        assert result.error == 'RSSI out of valid range'
        assert result.is_valid is False

    def test_rejection_leaves_no_trace(self, estimator):
        """Rejected readings should not touch history or filter."""
        estimator.estimate_distance(-60)
        before = estimator.get_stats()
        filter_count = estimator.kalman_filter.sample_count

        for _ in range(3):
            estimator.estimate_distance(-120)
            estimator.estimate_distance(0)

        assert estimator.get_stats() == before
        assert estimator.kalman_filter.sample_count == filter_count

    def test_boundaries_accepted(self, estimator):
        """The range bounds themselves are valid."""
        assert estimator.estimate_distance(-100, use_filter=False).distance is not None
        assert estimator.estimate_distance(-20, use_filter=False).distance is not None


class TestConfidence:
    """Tests for multi-factor confidence scoring."""

    def test_first_reading_confidence(self, estimator):
        """First unfiltered reading at 1m scores 0.6."""
        # filter 0.9*0.25 + samples 0.1*0.25 + stability 0.5*0.3 + distance (1-1/60)*0.2
        result = estimator.estimate_distance(-59, use_filter=False)
        assert result.confidence == 0.6

    def test_unreliable_distance_uses_floor(self, estimator):
        """Beyond max reliable distance the distance factor is 0.1."""
        result = estimator.estimate_distance(-95, use_filter=False)
        assert result.distance > 30
        assert result.reliable is False
        # 0.225 + 0.025 + 0.15 + 0.1 * 0.2
        assert result.confidence == 0.42

    def test_confidence_increases_with_samples(self, estimator):
        """Stable readings should raise confidence over time."""
        first = estimator.estimate_distance(-60)
        for _ in range(10):
            estimator.estimate_distance(-60)
        later = estimator.estimate_distance(-60)
        assert later.confidence > first.confidence

    def test_confidence_bounded(self, estimator):
        """Confidence stays within [0, 1]."""
        for rssi in (-40, -90, -45, -85, -50, -99, -21):
            result = estimator.estimate_distance(rssi)
            assert 0 <= result.confidence <= 1

    def test_stability_default_with_few_samples(self, estimator):
        """Fewer than 3 readings give neutral stability."""
        estimator.estimate_distance(-50)
        estimator.estimate_distance(-80)
        assert estimator.calculate_rssi_stability() == 0.5

    def test_stability_from_std_dev(self, estimator):
        """Stability is 1 - stddev / 10."""
        for rssi in (-55, -60, -65, -60, -60):
            estimator.estimate_distance(rssi, use_filter=False)
        assert estimator.calculate_rssi_stability() == pytest.approx(1 - math.sqrt(10) / 10)

    def test_noisy_readings_lower_stability(self):
        """Unstable readings should score lower than stable ones."""
        stable = DistanceEstimator('BLE')
        noisy = DistanceEstimator('BLE')
        for i in range(10):
            stable.estimate_distance(-60)
            noisy.estimate_distance(-45 if i % 2 else -75)
        assert stable.calculate_rssi_stability() > noisy.calculate_rssi_stability()


class TestHistoryAndStats:
    """Tests for statistics over the reading history."""

    def test_empty_stats(self, estimator):
        """No readings gives only a sample count."""
        assert estimator.get_stats() == {'samples': 0}

    def test_stats_values(self, estimator):
        """Statistics should be computed over raw readings."""
        for rssi in (-55, -60, -65, -60, -60):
            estimator.estimate_distance(rssi, use_filter=False)

        stats = estimator.get_stats()
        assert stats['samples'] == 5
        assert stats['mean'] == pytest.approx(-60, abs=0.1)
        assert stats['min'] == -65
        assert stats['max'] == -55
        assert stats['range'] == 10
        assert stats['std_dev'] == 3.2
        # Filter untouched by unfiltered estimates
        assert stats['filtered_rssi'] == -59.0
        assert stats['filter_confidence'] == pytest.approx(0.9)

    def test_history_bounded(self, estimator):
        """Only the last 50 readings are kept."""
        for i in range(60):
            estimator.estimate_distance(-60 - (i % 5))
        assert estimator.get_stats()['samples'] == 50
        assert estimator.sample_count == 50

    def test_unfiltered_estimate_leaves_filter(self, estimator):
        """use_filter=False should not update the filter."""
        estimator.estimate_distance(-70, use_filter=False)
        assert estimator.kalman_filter.sample_count == 0
        assert estimator.kalman_filter.estimate == -59

    def test_end_to_end_scenario(self, estimator):
        """Statistics and final estimate for a short BLE session."""
        for rssi in (-55, -56, -54, -55, -57):
            estimator.estimate_distance(rssi, use_filter=False)

        stats = estimator.get_stats()
        assert stats['mean'] == pytest.approx(-55.4)
        assert stats['min'] == -57
        assert stats['max'] == -54
        assert stats['range'] == 3

        result = estimator.estimate_distance(-55)
        assert 0.8 <= result.distance <= 1.3

    def test_end_to_end_scenario_filtered_history(self, estimator):
        """Filtering every reading lags behind the -55 dBm trend."""
        for rssi in (-55, -56, -54, -55, -57):
            estimator.estimate_distance(rssi)

        result = estimator.estimate_distance(-55)
        assert result.filtered_rssi == pytest.approx(-56.4)
        assert result.distance == pytest.approx(0.74)
        assert result.confidence == pytest.approx(0.85)
        assert result.reliable is True

    def test_rssi_window(self, estimator):
        """Window min/max should ignore stale readings."""
        now = datetime.now()
        estimator.estimate_distance(-40, timestamp=now - timedelta(seconds=120))
        estimator.estimate_distance(-62, timestamp=now - timedelta(seconds=20))
        estimator.estimate_distance(-58, timestamp=now - timedelta(seconds=5))
        assert estimator.get_rssi_window(60) == (-62, -58)

    def test_estimate_range(self, estimator):
        """Best RSSI should give the closest approach."""
        closest, farthest = estimator.estimate_range(best_rssi=-50, worst_rssi=-80)
        assert closest.distance < farthest.distance
        assert farthest.distance == pytest.approx(11.22, abs=0.01)


class TestCalibration:
    """Tests for reference RSSI calibration."""

    def test_calibrate_at_one_meter(self, estimator):
        """Calibrating at 1m sets the reference RSSI to the sample mean."""
        samples = [-50, -51, -49, -50, -52, -50, -51, -49, -50, -51]
        assert estimator.calibrate(1.0, samples) is True
        assert estimator.model.reference_rssi == pytest.approx(-50, abs=1)

        result = estimator.estimate_distance(-50, use_filter=False)
        assert result.distance == pytest.approx(1.0, abs=0.1)

    def test_calibrate_resets_filter_to_mean(self, estimator):
        """Filter restarts at the calibration mean."""
        for _ in range(5):
            estimator.estimate_distance(-70)
        estimator.calibrate(1.0, [-50, -51, -49, -50, -52, -50, -51, -49, -50, -51])
        assert estimator.kalman_filter.estimate == pytest.approx(-50.3)
        assert estimator.kalman_filter.sample_count == 0

    def test_calibrate_at_other_distance(self, estimator):
        """Calibration away from 1m back-solves the reference RSSI."""
        # -65 + 10 * 2.0 * log10(2) = -58.98
        assert estimator.calibrate(2.0, [-65] * 5) is True
        assert estimator.model.reference_rssi == -59

    def test_calibrate_near_reference_distance(self, estimator):
        """Distances within 0.1m of the reference set RSSI0 directly."""
        assert estimator.calibrate(1.05, [-47] * 6) is True
        assert estimator.model.reference_rssi == -47

    def test_calibrate_requires_five_samples(self, estimator):
        """Fewer than 5 samples should fail without changes."""
        assert estimator.calibrate(1.0, [-50, -50, -50, -50]) is False
        assert estimator.model.reference_rssi == -59
        assert estimator.kalman_filter.estimate == -59

    def test_calibrate_rejects_non_positive_distance(self, estimator):
        """Zero or negative distances cannot be calibrated."""
        assert estimator.calibrate(0, [-50] * 5) is False
        assert estimator.calibrate(-2.0, [-50] * 5) is False
        assert estimator.model.reference_rssi == -59

    def test_calibration_does_not_touch_registry(self, estimator):
        """Calibration only changes this estimator's model."""
        estimator.calibrate(1.0, [-45] * 5)
        assert estimator.model.reference_rssi == -45
        assert get_signal_model('BLE').reference_rssi == -59
        assert DistanceEstimator('BLE').model.reference_rssi == -59

    def test_calibrate_from_points(self, estimator):
        """Multi-distance calibration fits RSSI0 and n."""
        points = [(d, -60 - 25 * math.log10(d)) for d in (1.0, 2.0, 4.0, 8.0) for _ in range(3)]
        fit = estimator.calibrate_from_points(points)
        assert fit is not None
        assert fit.samples == 12
        assert estimator.model.reference_rssi == -60
        assert estimator.model.path_loss_exponent == pytest.approx(2.5)
        assert estimator.kalman_filter.estimate == -60

        result = estimator.estimate_distance(-60 - 25 * math.log10(4.0), use_filter=False)
        assert result.distance == pytest.approx(4.0, abs=0.02)

    def test_calibrate_from_single_distance_fails(self, estimator):
        """One distance is not enough to fit a line."""
        assert estimator.calibrate_from_points([(2.0, -65), (2.0, -66)]) is None
        assert estimator.model == get_signal_model('BLE')


class TestModelUpdates:
    """Tests for partial model updates."""

    def test_update_model_merges_fields(self, estimator):
        """Updating one field should keep the others."""
        estimator.update_model(path_loss_exponent=3.0)
        assert estimator.model.path_loss_exponent == 3.0
        assert estimator.model.reference_rssi == -59
        # 10^(10 / 30)
        assert estimator.estimate_distance(-69, use_filter=False).distance == 2.15

    def test_update_model_unknown_field(self, estimator):
        """Unknown fields should raise ValueError."""
        with pytest.raises(ValueError):
            estimator.update_model(tx_power=4)

    def test_update_model_invalid_value(self, estimator):
        """Invalid values should raise ValueError and keep the model."""
        with pytest.raises(ValueError):
            estimator.update_model(path_loss_exponent=0)
        assert estimator.model.path_loss_exponent == 2.0

    def test_update_model_changes_valid_range(self, estimator):
        """A widened range should accept previously rejected readings."""
        assert estimator.estimate_distance(-105).distance is None
        estimator.update_model(min_rssi=-110)
        assert estimator.estimate_distance(-105).distance is not None


class TestReset:
    """Tests for estimator reset."""

    def test_reset_clears_history(self, estimator):
        """Reset should empty the history."""
        for _ in range(20):
            estimator.estimate_distance(-60)
        assert estimator.get_stats()['samples'] == 20

        estimator.reset()
        assert estimator.get_stats() == {'samples': 0}

    def test_reset_behaves_like_new(self, estimator):
        """After reset the estimator matches a fresh instance."""
        for rssi in (-70, -72, -68, -75, -71):
            estimator.estimate_distance(rssi)
        estimator.reset()

        fresh = DistanceEstimator('BLE')
        assert estimator.estimate_distance(-62) == fresh.estimate_distance(-62)

    def test_reset_keeps_calibration(self, estimator):
        """Reset should restart the filter at the calibrated reference."""
        estimator.calibrate(1.0, [-48] * 5)
        estimator.estimate_distance(-60)
        estimator.reset()
        assert estimator.model.reference_rssi == -48
        assert estimator.kalman_filter.estimate == -48


class TestClassification:
    """Tests for RSSI category and signal strength helpers."""

    @pytest.mark.parametrize('rssi,category', [
        (-40, 0),
        (-50, 0),
        (-55, 1),
        (-60, 1),
        (-70, 2),
        (-75, 3),
        (-90, 4),
        (-91, 5),
        (-120, 5),
    ])
    def test_rssi_categories(self, rssi, category):
        """Categories step every 10 dB from -50 dBm down."""
        assert classify_rssi_category(rssi) == category

    def test_unknown_rssi_is_weakest_category(self):
        """A device with no reading sorts last."""
        assert classify_rssi_category(None) == 5

    def test_signal_strength(self):
        """RSSI thresholds should map to strength classes."""
        assert classify_signal_strength(-45) == SignalStrength.STRONG
        assert classify_signal_strength(-50) == SignalStrength.STRONG
        assert classify_signal_strength(-65) == SignalStrength.MEDIUM
        assert classify_signal_strength(-70) == SignalStrength.MEDIUM
        assert classify_signal_strength(-85) == SignalStrength.WEAK

    def test_enum_str(self):
        """Enums should convert to their values."""
        assert str(SignalStrength.WEAK) == 'weak'
