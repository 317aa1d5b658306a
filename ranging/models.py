"""
Signal models and estimate records for RSSI ranging.

Signal models hold the per-radio physical parameters of the log-distance
path loss model. Estimate records are the immutable results handed to
the map and UI layers.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

from .constants import (
    DEFAULT_RADIO_TYPE,
    RADIO_BLE,
    RADIO_LORA,
    RADIO_WIFI_2G,
    RADIO_WIFI_5G,
)

logger = logging.getLogger(__name__)


class RadioType(str, Enum):
    """Radio technologies with a built-in signal model."""
    BLE = RADIO_BLE
    WIFI_2G = RADIO_WIFI_2G
    WIFI_5G = RADIO_WIFI_5G
    LORA = RADIO_LORA

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SignalModel:
    """
    Log-distance path loss parameters for one radio type.

    RSSI = RSSI0 - 10 * n * log10(d / d0)
    """
    name: str
    reference_rssi: int          # RSSI0 (dBm) at reference_distance
    reference_distance: float    # d0 (m)
    path_loss_exponent: float    # n, free space = 2.0
    min_rssi: int                # Weakest accepted reading (dBm)
    max_rssi: int                # Strongest accepted reading (dBm)
    max_reliable_distance: float  # Beyond this, estimates are flagged unreliable

    def __post_init__(self) -> None:
        if self.path_loss_exponent <= 0:
            raise ValueError(f"path_loss_exponent must be positive, got {self.path_loss_exponent}")
        if self.reference_distance <= 0:
            raise ValueError(f"reference_distance must be positive, got {self.reference_distance}")
        if self.max_reliable_distance <= 0:
            raise ValueError(f"max_reliable_distance must be positive, got {self.max_reliable_distance}")
        if self.min_rssi > self.max_rssi:
            raise ValueError(f"min_rssi {self.min_rssi} is above max_rssi {self.max_rssi}")

    def is_valid_rssi(self, rssi: float) -> bool:
        """Check a reading against the inclusive valid range."""
        return self.min_rssi <= rssi <= self.max_rssi

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


# Starting values; calibrate per device for better accuracy
_BUILTIN_MODELS: dict[str, SignalModel] = {
    RADIO_BLE: SignalModel(
        name='Bluetooth Low Energy',
        reference_rssi=-59,
        reference_distance=1.0,
        path_loss_exponent=2.0,  # Free space = 2.0, indoor = 2.5-4.0
        min_rssi=-100,
        max_rssi=-20,
        max_reliable_distance=30.0,
    ),
    RADIO_WIFI_2G: SignalModel(
        name='WiFi 2.4GHz',
        reference_rssi=-40,
        reference_distance=1.0,
        path_loss_exponent=2.7,
        min_rssi=-100,
        max_rssi=-10,
        max_reliable_distance=50.0,
    ),
    RADIO_WIFI_5G: SignalModel(
        name='WiFi 5GHz',
        reference_rssi=-42,
        reference_distance=1.0,
        path_loss_exponent=3.0,  # Higher path loss at 5GHz
        min_rssi=-95,
        max_rssi=-10,
        max_reliable_distance=40.0,
    ),
    RADIO_LORA: SignalModel(
        name='LoRa',
        reference_rssi=-30,
        reference_distance=1.0,
        path_loss_exponent=2.3,
        min_rssi=-140,  # LoRa decodes very weak signals
        max_rssi=-10,
        max_reliable_distance=2000.0,
    ),
}

# Read-only view of the built-in models
SIGNAL_MODELS: Mapping[str, SignalModel] = MappingProxyType(_BUILTIN_MODELS)


def get_signal_model(radio_type: Union[RadioType, str]) -> SignalModel:
    """
    Look up the built-in signal model for a radio type.

    Unknown radio types fall back to the BLE model.

    Args:
        radio_type: RadioType or its string value (e.g. 'WIFI_2G').

    Returns:
        The registered SignalModel.
    """
    key = str(radio_type)
    model = SIGNAL_MODELS.get(key)
    if model is None:
        logger.debug(f"No signal model for radio type {key!r}, using {DEFAULT_RADIO_TYPE}")
        return SIGNAL_MODELS[DEFAULT_RADIO_TYPE]
    return model


# =============================================================================
# ESTIMATE RECORDS
# =============================================================================

@dataclass(frozen=True)
class DistanceEstimate:
    """Distance estimate derived from a single RSSI reading."""
    distance: Optional[float]   # Meters, None when the reading was rejected
    confidence: float           # 0.0-1.0
    filtered_rssi: float
    raw_rssi: float
    reliable: bool = False
    error: Optional[str] = None
    model: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """Whether a distance could be computed."""
        return self.distance is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'distance': self.distance,
            'confidence': self.confidence,
            'filtered_rssi': self.filtered_rssi,
            'raw_rssi': self.raw_rssi,
            'reliable': self.reliable,
            'error': self.error,
            'model': self.model,
        }


@dataclass(frozen=True)
class FusionSource:
    """One radio type's contribution to a fused estimate."""
    radio_type: str
    distance: float
    confidence: float
    weight: float

    @property
    def effective_weight(self) -> float:
        return self.weight * self.confidence

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'radio_type': self.radio_type,
            'distance': self.distance,
            'confidence': self.confidence,
            'weight': self.weight,
        }


@dataclass(frozen=True)
class FusedEstimate:
    """
    Distance estimate combined across radio types.

    Note: confidence is not clamped and can exceed 1.0 with more than
    three confident sources.
    """
    distance: Optional[float]
    confidence: float
    sources: int
    breakdown: list[FusionSource] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.distance is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'distance': self.distance,
            'confidence': self.confidence,
            'sources': self.sources,
            'breakdown': [source.to_dict() for source in self.breakdown],
            'error': self.error,
        }
