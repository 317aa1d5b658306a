"""
Distance estimation from RSSI.

Provides Kalman-smoothed log-distance path loss estimation, confidence
scoring, calibration, and signal classification for a single radio.

Formula: RSSI = RSSI0 - 10 * n * log10(d / d0)
Solved for distance: d = d0 * 10^((RSSI0 - RSSI) / (10 * n))
"""

from __future__ import annotations

import dataclasses
import logging
import math
import statistics
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from .calibration import PathLossFit, fit_path_loss
from .constants import (
    CALIBRATION_DISTANCE_TOLERANCE,
    CALIBRATION_MIN_SAMPLES,
    CONFIDENCE_FULL_SAMPLE_COUNT,
    CONFIDENCE_WEIGHT_DISTANCE,
    CONFIDENCE_WEIGHT_FILTER,
    CONFIDENCE_WEIGHT_SAMPLES,
    CONFIDENCE_WEIGHT_STABILITY,
    DISTANCE_CONFIDENCE_FLOOR,
    ERROR_RSSI_OUT_OF_RANGE,
    KALMAN_MEASUREMENT_NOISE,
    KALMAN_PROCESS_NOISE,
    MAX_HISTORY_LENGTH,
    RADIO_BLE,
    RSSI_CATEGORY_THRESHOLDS,
    RSSI_CATEGORY_UNKNOWN,
    RSSI_WINDOW_SECONDS,
    SIGNAL_MEDIUM_THRESHOLD,
    SIGNAL_STRONG_THRESHOLD,
    STABILITY_DEFAULT,
    STABILITY_MAX_STD_DEV,
    STABILITY_MIN_SAMPLES,
)
from .history import ReadingHistory
from .kalman import KalmanFilter
from .models import DistanceEstimate, RadioType, SignalModel, get_signal_model

logger = logging.getLogger(__name__)


class SignalStrength(str, Enum):
    """Signal strength classes for display."""
    STRONG = 'strong'  # >= -50 dBm
    MEDIUM = 'medium'  # -50 to -70 dBm
    WEAK = 'weak'      # < -70 dBm

    def __str__(self) -> str:
        return self.value


def classify_rssi_category(rssi: Optional[float]) -> int:
    """
    Bucket an RSSI value into a sort category in 10 dB steps.

    Args:
        rssi: RSSI value in dBm, or None if the device was not heard.

    Returns:
        Category 0 (>= -50 dBm, strongest) to 5 (< -90 dBm or unknown).
    """
    if rssi is None:
        return RSSI_CATEGORY_UNKNOWN
    for category, threshold in enumerate(RSSI_CATEGORY_THRESHOLDS):
        if rssi >= threshold:
            return category
    return RSSI_CATEGORY_UNKNOWN


def classify_signal_strength(rssi: float) -> SignalStrength:
    """Classify a raw RSSI value (dBm)."""
    if rssi >= SIGNAL_STRONG_THRESHOLD:
        return SignalStrength.STRONG
    elif rssi >= SIGNAL_MEDIUM_THRESHOLD:
        return SignalStrength.MEDIUM
    return SignalStrength.WEAK


class DistanceEstimator:
    """
    Estimates distance to a single signal source from RSSI.

    Owns one signal model, one Kalman filter and one bounded reading
    history. Not thread-safe: use one instance per tracked source and
    radio type.
    """

    def __init__(
        self,
        radio_type: Union[RadioType, str] = RADIO_BLE,
        custom_model: Optional[SignalModel] = None,
        process_noise: float = KALMAN_PROCESS_NOISE,
        measurement_noise: float = KALMAN_MEASUREMENT_NOISE,
        max_history: int = MAX_HISTORY_LENGTH,
    ):
        """
        Initialize the distance estimator.

        Args:
            radio_type: Radio type used to look up the built-in model.
            custom_model: Replaces the built-in model entirely when given.
            process_noise: Kalman process noise (Q).
            measurement_noise: Kalman measurement noise (R).
            max_history: Raw readings kept for statistics.
        """
        self.radio_type = str(radio_type)
        self._model = custom_model if custom_model is not None else get_signal_model(radio_type)
        self._filter = KalmanFilter(
            process_noise=process_noise,
            measurement_noise=measurement_noise,
            initial_estimate=self._model.reference_rssi,
        )
        self._history = ReadingHistory(max_length=max_history)

    @property
    def model(self) -> SignalModel:
        """The signal model currently in use."""
        return self._model

    @property
    def kalman_filter(self) -> KalmanFilter:
        return self._filter

    @property
    def sample_count(self) -> int:
        """Number of readings in the history."""
        return len(self._history)

    def estimate_distance(
        self,
        rssi: float,
        use_filter: bool = True,
        timestamp: Optional[datetime] = None,
    ) -> DistanceEstimate:
        """
        Estimate distance from an RSSI reading.

        Readings outside the model's valid range are rejected and leave
        no trace in the history or the filter.

        Args:
            rssi: RSSI value in dBm.
            use_filter: Pass the reading through the Kalman filter. Use
                False for values that are already filtered.
            timestamp: Reading timestamp (defaults to now).

        Returns:
            DistanceEstimate; distance is None if the reading was rejected.
        """
        model = self._model
        if not model.is_valid_rssi(rssi):
            logger.debug(f"RSSI {rssi} out of valid range [{model.min_rssi}, {model.max_rssi}]")
            return DistanceEstimate(
                distance=None,
                confidence=0.0,
                filtered_rssi=rssi,
                raw_rssi=rssi,
                reliable=False,
                error=ERROR_RSSI_OUT_OF_RANGE,
                model=model.name,
            )

        self._history.append(rssi, timestamp)

        filtered_rssi = self._filter.update(rssi) if use_filter else rssi
        distance = self._path_loss_distance(filtered_rssi)
        confidence = self.calculate_confidence(filtered_rssi, distance)

        estimate = DistanceEstimate(
            distance=round(distance, 2),
            confidence=confidence,
            filtered_rssi=round(filtered_rssi, 1),
            raw_rssi=rssi,
            reliable=distance <= model.max_reliable_distance,
            model=model.name,
        )

        logger.debug(
            f"Distance estimate: {estimate.distance}m @ {confidence:.2f} confidence "
            f"from RSSI {rssi} (filtered: {estimate.filtered_rssi})"
        )
        return estimate

    def _path_loss_distance(self, rssi: float) -> float:
        """
        Invert the log-distance path loss model.

        Formula: d = d0 * 10^((RSSI0 - rssi) / (10 * n))
        """
        model = self._model
        exponent = (model.reference_rssi - rssi) / (10 * model.path_loss_exponent)
        return model.reference_distance * 10 ** exponent

    def calculate_confidence(self, filtered_rssi: float, distance: float) -> float:
        """
        Calculate confidence score for a distance estimate.

        Weighted sum of:
        - Kalman filter convergence (0.25)
        - Sample count, saturating at 10 readings (0.25)
        - RSSI stability over the history (0.30)
        - Distance reliability, closer = more reliable (0.20)

        Args:
            filtered_rssi: Filtered RSSI the distance was derived from.
            distance: Estimated distance in meters.

        Returns:
            Confidence score 0.0-1.0, rounded to 2 decimals.
        """
        filter_confidence = self._filter.get_confidence()
        sample_confidence = min(len(self._history) / CONFIDENCE_FULL_SAMPLE_COUNT, 1)
        stability_confidence = self.calculate_rssi_stability()

        max_reliable = self._model.max_reliable_distance
        if distance <= max_reliable:
            distance_confidence = 1 - (distance / max_reliable) * 0.5
        else:
            distance_confidence = DISTANCE_CONFIDENCE_FLOOR

        confidence = (
            filter_confidence * CONFIDENCE_WEIGHT_FILTER
            + sample_confidence * CONFIDENCE_WEIGHT_SAMPLES
            + stability_confidence * CONFIDENCE_WEIGHT_STABILITY
            + distance_confidence * CONFIDENCE_WEIGHT_DISTANCE
        )
        return round(confidence, 2)

    def calculate_rssi_stability(self) -> float:
        """
        Calculate RSSI stability from the history.

        Lower standard deviation = higher stability. Typical stable BLE
        readings have a 3-6 dBm standard deviation.

        Returns:
            Stability score 0.0-1.0 (0.5 with fewer than 3 readings).
        """
        if len(self._history) < STABILITY_MIN_SAMPLES:
            return STABILITY_DEFAULT

        std_dev = self._history.std_dev()
        return 1 - min(std_dev / STABILITY_MAX_STD_DEV, 1)

    def update_model(self, **changes) -> SignalModel:
        """
        Update fields of the signal model, e.g. for tuning.

        Args:
            **changes: SignalModel fields to replace.

        Returns:
            The updated model.
        """
        known = {f.name for f in dataclasses.fields(SignalModel)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown signal model field(s): {', '.join(unknown)}")

        self._model = dataclasses.replace(self._model, **changes)
        logger.debug(f"Model updated: {self._model}")
        return self._model

    def calibrate(self, known_distance: float, rssi_samples: Sequence[float]) -> bool:
        """
        Calibrate the reference RSSI from readings at a known distance.

        Call this while the source sits at a known distance.

        Args:
            known_distance: Distance to the source in meters.
            rssi_samples: RSSI readings taken at that distance (at least 5).

        Returns:
            True if the model was updated.
        """
        if len(rssi_samples) < CALIBRATION_MIN_SAMPLES:
            logger.warning(
                f"Calibration requires at least {CALIBRATION_MIN_SAMPLES} samples, "
                f"got {len(rssi_samples)}"
            )
            return False
        if known_distance <= 0:
            logger.warning(f"Calibration distance must be positive, got {known_distance}")
            return False

        mean_rssi = statistics.fmean(rssi_samples)
        model = self._model

        if abs(known_distance - model.reference_distance) < CALIBRATION_DISTANCE_TOLERANCE:
            reference_rssi = round(mean_rssi)
            logger.debug(f"Calibrated reference RSSI to {reference_rssi} at {model.reference_distance}m")
        else:
            # RSSI0 = RSSI + 10 * n * log10(d / d0)
            reference_rssi = round(
                mean_rssi
                + 10 * model.path_loss_exponent * math.log10(known_distance / model.reference_distance)
            )
            logger.debug(
                f"Calibrated reference RSSI to {reference_rssi} "
                f"from {round(mean_rssi)} at {known_distance}m"
            )

        self._model = dataclasses.replace(model, reference_rssi=reference_rssi)
        self._filter.reset(mean_rssi)
        return True

    def calibrate_from_points(
        self,
        points: Iterable[tuple[float, float]],
    ) -> Optional[PathLossFit]:
        """
        Fit reference RSSI and path-loss exponent from several distances.

        Args:
            points: (distance_m, rssi_dbm) readings at known distances.

        Returns:
            The applied PathLossFit, or None if no fit was possible.
        """
        fit = fit_path_loss(points, reference_distance=self._model.reference_distance)
        if fit is None:
            return None

        self._model = dataclasses.replace(
            self._model,
            reference_rssi=round(fit.reference_rssi),
            path_loss_exponent=fit.path_loss_exponent,
        )
        self._filter.reset(self._model.reference_rssi)
        logger.debug(
            f"Calibrated {self._model.name}: RSSI0={self._model.reference_rssi}, "
            f"n={fit.path_loss_exponent:.2f}, r2={fit.r_squared:.3f}"
        )
        return fit

    def estimate_range(
        self,
        best_rssi: float,
        worst_rssi: float,
    ) -> tuple[DistanceEstimate, DistanceEstimate]:
        """
        Estimate closest and farthest approach from the strongest and
        weakest RSSI seen for a source.

        Both readings are treated as already smoothed (no filtering).

        Returns:
            Tuple of (closest, farthest) estimates.
        """
        closest = self.estimate_distance(best_rssi, use_filter=False)
        farthest = self.estimate_distance(worst_rssi, use_filter=False)
        return closest, farthest

    def get_stats(self) -> dict:
        """
        Get statistics about recent readings.

        Returns:
            Dict of statistics; only {'samples': 0} when there are none.
        """
        stats = self._history.get_stats()
        if stats is None:
            return {'samples': 0}

        return {
            'samples': stats['samples'],
            'mean': round(stats['mean'], 1),
            'min': stats['min'],
            'max': stats['max'],
            'range': stats['range'],
            'std_dev': round(stats['std_dev'], 1),
            'filtered_rssi': round(self._filter.estimate, 1),
            'filter_confidence': self._filter.get_confidence(),
        }

    def get_rssi_window(
        self,
        window_seconds: int = RSSI_WINDOW_SECONDS,
    ) -> tuple[Optional[float], Optional[float]]:
        """Get (min, max) RSSI over the last window_seconds."""
        return self._history.get_rssi_window(window_seconds)

    def reset(self) -> None:
        """Clear the history and reset the filter to the reference RSSI."""
        self._history.clear()
        self._filter.reset(self._model.reference_rssi)
