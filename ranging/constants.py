"""
Ranging constants for RSSI distance estimation.
"""

from __future__ import annotations

# =============================================================================
# RADIO TYPES
# =============================================================================

RADIO_BLE = 'BLE'
RADIO_WIFI_2G = 'WIFI_2G'
RADIO_WIFI_5G = 'WIFI_5G'
RADIO_LORA = 'LORA'

# Unknown radio types fall back to this model
DEFAULT_RADIO_TYPE = RADIO_BLE

# =============================================================================
# KALMAN FILTER TUNING
# =============================================================================

# Process noise (Q): how much the true RSSI drifts between readings
KALMAN_PROCESS_NOISE = 0.125

# Measurement noise (R): variance of a single raw reading (dBm^2)
KALMAN_MEASUREMENT_NOISE = 4.0

# Starting estimate when no reference RSSI is supplied (dBm)
KALMAN_INITIAL_ESTIMATE = -60.0

# Error covariance after construction or reset
KALMAN_INITIAL_ERROR = 1.0

# Error covariance that maps to zero filter confidence
KALMAN_MAX_ERROR = 10.0

# =============================================================================
# READING HISTORY
# =============================================================================

# Raw readings kept per estimator for statistics
MAX_HISTORY_LENGTH = 50

# Window for best/worst RSSI lookups (seconds)
RSSI_WINDOW_SECONDS = 60

# =============================================================================
# CONFIDENCE SCORING
# =============================================================================

CONFIDENCE_WEIGHT_FILTER = 0.25
CONFIDENCE_WEIGHT_SAMPLES = 0.25
CONFIDENCE_WEIGHT_STABILITY = 0.30
CONFIDENCE_WEIGHT_DISTANCE = 0.20

# Sample count at which the sample factor saturates
CONFIDENCE_FULL_SAMPLE_COUNT = 10

# Standard deviation that maps to zero stability (dBm)
STABILITY_MAX_STD_DEV = 10.0

# Stability needs at least this many readings
STABILITY_MIN_SAMPLES = 3
STABILITY_DEFAULT = 0.5

# Distance factor used beyond the model's reliable range
DISTANCE_CONFIDENCE_FLOOR = 0.1

# =============================================================================
# CALIBRATION
# =============================================================================

CALIBRATION_MIN_SAMPLES = 5

# Known distances this close to the reference distance set RSSI0 directly (m)
CALIBRATION_DISTANCE_TOLERANCE = 0.1

# =============================================================================
# FUSION
# =============================================================================

FUSION_WEIGHTS = {
    RADIO_BLE: 1.0,
    RADIO_WIFI_2G: 0.8,
    RADIO_WIFI_5G: 0.7,
    RADIO_LORA: 0.5,
}

FUSION_DEFAULT_WEIGHT = 0.5

# Source count at which the multi-source bonus reaches 1x
FUSION_SOURCE_NORMALIZER = 3

# =============================================================================
# CLASSIFICATION THRESHOLDS
# =============================================================================

# RSSI sort categories (dBm), category 0 is strongest
RSSI_CATEGORY_THRESHOLDS = (-50, -60, -70, -80, -90)
RSSI_CATEGORY_UNKNOWN = 5

# Signal strength classes (dBm)
SIGNAL_STRONG_THRESHOLD = -50  # >= -50 dBm
SIGNAL_MEDIUM_THRESHOLD = -70  # >= -70 dBm

# =============================================================================
# ERROR MESSAGES
# =============================================================================

ERROR_RSSI_OUT_OF_RANGE = 'RSSI out of valid range'
ERROR_NO_VALID_ESTIMATES = 'No valid estimates available'
