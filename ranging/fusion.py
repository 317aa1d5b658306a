"""
Multi-radio distance fusion.

Combines independently filtered estimates from several radio types
(BLE, WiFi, LoRa) into one distance, trusting some radios more than others.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Mapping, Optional, Union

from .constants import (
    ERROR_NO_VALID_ESTIMATES,
    FUSION_DEFAULT_WEIGHT,
    FUSION_SOURCE_NORMALIZER,
    FUSION_WEIGHTS,
)
from .distance import DistanceEstimator
from .models import DistanceEstimate, FusedEstimate, FusionSource, RadioType, SignalModel

logger = logging.getLogger(__name__)


class MultiRadioEstimator:
    """
    Fuses distance estimates across radio types.

    One DistanceEstimator is created per radio type on its first reading.
    """

    def __init__(
        self,
        fusion_weights: Optional[Mapping[str, float]] = None,
        models: Optional[Mapping[str, SignalModel]] = None,
    ):
        """
        Initialize the multi-radio estimator.

        Args:
            fusion_weights: Per radio type trust weights, merged over the defaults.
            models: Custom signal models for specific radio types.
        """
        self.fusion_weights: dict[str, float] = dict(FUSION_WEIGHTS)
        if fusion_weights:
            self.fusion_weights.update({str(k): v for k, v in fusion_weights.items()})
        self._models: dict[str, SignalModel] = {str(k): v for k, v in (models or {}).items()}
        self._estimators: dict[str, DistanceEstimator] = {}

    @property
    def radio_types(self) -> list[str]:
        """Radio types seen so far, in order of first reading."""
        return list(self._estimators)

    def get_weight(self, radio_type: Union[RadioType, str]) -> float:
        """Trust weight for a radio type; a configured 0.0 is kept as is."""
        return self.fusion_weights.get(str(radio_type), FUSION_DEFAULT_WEIGHT)

    def get_estimator(self, radio_type: Union[RadioType, str]) -> DistanceEstimator:
        """Get or create the estimator for a radio type."""
        key = str(radio_type)
        estimator = self._estimators.get(key)
        if estimator is None:
            estimator = DistanceEstimator(key, custom_model=self._models.get(key))
            self._estimators[key] = estimator
            logger.debug(f"Created {estimator.model.name} estimator for radio type {key}")
        return estimator

    def add_reading(
        self,
        radio_type: Union[RadioType, str],
        rssi: float,
        timestamp: Optional[datetime] = None,
    ) -> DistanceEstimate:
        """
        Add an RSSI reading for a radio type.

        Args:
            radio_type: Radio the reading came from.
            rssi: RSSI value in dBm.
            timestamp: Reading timestamp (defaults to now).

        Returns:
            Distance estimate from that radio's estimator.
        """
        return self.get_estimator(radio_type).estimate_distance(rssi, timestamp=timestamp)

    def get_fused_estimate(self) -> FusedEstimate:
        """
        Get the fused distance estimate from all radio types.

        Each source's filtered RSSI is turned back into a distance and
        weighted by radio trust * confidence. Fused confidence is the best
        source confidence scaled by sources / 3, which rewards agreement
        and is not capped at 1.0.

        Returns:
            FusedEstimate; distance is None when no source is usable.
        """
        sources: list[FusionSource] = []

        for radio_type, estimator in self._estimators.items():
            stats = estimator.get_stats()
            if stats['samples'] == 0:
                continue

            # Already filtered, so bypass the Kalman filter
            estimate = estimator.estimate_distance(stats['filtered_rssi'], use_filter=False)
            if estimate.distance is None:
                continue

            sources.append(FusionSource(
                radio_type=radio_type,
                distance=estimate.distance,
                confidence=estimate.confidence,
                weight=self.get_weight(radio_type),
            ))

        if not sources:
            return FusedEstimate(
                distance=None,
                confidence=0.0,
                sources=0,
                error=ERROR_NO_VALID_ESTIMATES,
            )

        total_weight = sum(source.effective_weight for source in sources)
        weighted_distance = sum(source.distance * source.effective_weight for source in sources)
        max_confidence = max(source.confidence for source in sources)

        fused_distance = round(weighted_distance / total_weight, 2) if total_weight > 0 else None
        confidence = round(max_confidence * len(sources) / FUSION_SOURCE_NORMALIZER, 2)

        logger.debug(
            f"Fused estimate: {fused_distance}m @ {confidence:.2f} confidence "
            f"from {len(sources)} source(s)"
        )

        return FusedEstimate(
            distance=fused_distance,
            confidence=confidence,
            sources=len(sources),
            breakdown=sources,
        )

    def reset(self) -> None:
        """Reset all estimators."""
        for estimator in self._estimators.values():
            estimator.reset()
