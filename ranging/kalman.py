"""
Kalman filter for RSSI smoothing.

A scalar Kalman filter with a stationary prediction model: the transmitter
is assumed not to move between readings, so the predicted RSSI is the
current estimate and only the uncertainty grows.

State model:       x(k) = x(k-1) + w,  w ~ N(0, Q)
Observation model: z(k) = x(k) + v,    v ~ N(0, R)
"""

from __future__ import annotations

from typing import Any

from .constants import (
    KALMAN_INITIAL_ERROR,
    KALMAN_INITIAL_ESTIMATE,
    KALMAN_MAX_ERROR,
    KALMAN_MEASUREMENT_NOISE,
    KALMAN_PROCESS_NOISE,
)


class KalmanFilter:
    """
    1D Kalman filter tracking a single RSSI value.

    Filter state is only changed through update() and reset(); the
    attributes are exposed as read-only properties.
    """

    def __init__(
        self,
        process_noise: float = KALMAN_PROCESS_NOISE,
        measurement_noise: float = KALMAN_MEASUREMENT_NOISE,
        initial_estimate: float = KALMAN_INITIAL_ESTIMATE,
        initial_error: float = KALMAN_INITIAL_ERROR,
    ):
        """
        Initialize the filter.

        Args:
            process_noise: Q, expected drift of the true RSSI per reading.
            measurement_noise: R, variance of a raw reading (dBm^2).
            initial_estimate: Starting RSSI estimate (dBm).
            initial_error: Starting error covariance.
        """
        if process_noise < 0:
            raise ValueError(f"process_noise must be non-negative, got {process_noise}")
        if measurement_noise <= 0:
            raise ValueError(f"measurement_noise must be positive, got {measurement_noise}")
        if initial_error < 0:
            raise ValueError(f"initial_error must be non-negative, got {initial_error}")

        self._process_noise = float(process_noise)
        self._measurement_noise = float(measurement_noise)
        self._initial_error = float(initial_error)
        self._estimate = float(initial_estimate)
        self._error_covariance = self._initial_error
        self._sample_count = 0

    @property
    def estimate(self) -> float:
        """Current smoothed RSSI (dBm)."""
        return self._estimate

    @property
    def error_covariance(self) -> float:
        return self._error_covariance

    @property
    def process_noise(self) -> float:
        return self._process_noise

    @property
    def measurement_noise(self) -> float:
        return self._measurement_noise

    @property
    def sample_count(self) -> int:
        return self._sample_count

    def update(self, measurement: float) -> float:
        """
        Incorporate a new RSSI reading.

        Args:
            measurement: Raw RSSI value in dBm.

        Returns:
            The new filtered estimate.
        """
        # Predict: stationary model keeps the estimate, uncertainty grows by Q
        predicted_estimate = self._estimate
        predicted_error = self._error_covariance + self._process_noise

        # Correct
        kalman_gain = predicted_error / (predicted_error + self._measurement_noise)
        self._estimate = predicted_estimate + kalman_gain * (measurement - predicted_estimate)
        self._error_covariance = (1 - kalman_gain) * predicted_error

        self._sample_count += 1
        return self._estimate

    def reset(self, initial_estimate: float = KALMAN_INITIAL_ESTIMATE) -> None:
        """Reset the filter to a new starting estimate."""
        self._estimate = float(initial_estimate)
        self._error_covariance = self._initial_error
        self._sample_count = 0

    def get_confidence(self) -> float:
        """
        Get filter convergence confidence.

        Confidence rises as the error covariance shrinks toward Q.

        Returns:
            Confidence value 0.0-1.0.
        """
        confidence = 1 - min(self._error_covariance / KALMAN_MAX_ERROR, 1)
        return max(0.0, confidence)

    def get_diagnostics(self) -> dict[str, Any]:
        """Return filter state for debugging."""
        predicted_error = self._error_covariance + self._process_noise
        return {
            'estimate': round(self._estimate, 2),
            'error_covariance': round(self._error_covariance, 4),
            'next_kalman_gain': round(predicted_error / (predicted_error + self._measurement_noise), 4),
            'process_noise': self._process_noise,
            'measurement_noise': self._measurement_noise,
            'sample_count': self._sample_count,
        }
