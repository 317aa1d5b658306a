"""
RSSI ranging package.

Converts noisy RSSI readings into Kalman-smoothed, confidence-scored
distance estimates per radio type, with calibration and multi-radio fusion.
"""

from .calibration import PathLossFit, fit_path_loss
from .constants import (
    # Radio types
    RADIO_BLE,
    RADIO_WIFI_2G,
    RADIO_WIFI_5G,
    RADIO_LORA,
    # Limits
    MAX_HISTORY_LENGTH,
    CALIBRATION_MIN_SAMPLES,
    FUSION_WEIGHTS,
)
from .distance import (
    DistanceEstimator,
    SignalStrength,
    classify_rssi_category,
    classify_signal_strength,
)
from .fusion import MultiRadioEstimator
from .history import ReadingHistory
from .kalman import KalmanFilter
from .models import (
    SIGNAL_MODELS,
    DistanceEstimate,
    FusedEstimate,
    FusionSource,
    RadioType,
    SignalModel,
    get_signal_model,
)

__all__ = [
    # Signal models
    'RadioType',
    'SignalModel',
    'SIGNAL_MODELS',
    'get_signal_model',

    # Estimates
    'DistanceEstimate',
    'FusedEstimate',
    'FusionSource',

    # Filtering and history
    'KalmanFilter',
    'ReadingHistory',

    # Estimation
    'DistanceEstimator',
    'MultiRadioEstimator',
    'SignalStrength',
    'classify_rssi_category',
    'classify_signal_strength',

    # Calibration
    'PathLossFit',
    'fit_path_loss',

    # Constants
    'RADIO_BLE',
    'RADIO_WIFI_2G',
    'RADIO_WIFI_5G',
    'RADIO_LORA',
    'MAX_HISTORY_LENGTH',
    'CALIBRATION_MIN_SAMPLES',
    'FUSION_WEIGHTS',
]
