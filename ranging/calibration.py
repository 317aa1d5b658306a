"""
Path-loss model fitting from calibration measurements.

Fits both the reference RSSI and the path-loss exponent from readings
taken at several known distances:

    rssi = RSSI0 - 10 * n * log10(d / d0)

which is a straight line in log10(d / d0).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathLossFit:
    """Least-squares fit of the log-distance model."""
    reference_rssi: float       # RSSI0 at the reference distance (dBm)
    path_loss_exponent: float   # n
    r_squared: float            # Goodness of fit, 1.0 = perfect line
    samples: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'reference_rssi': round(self.reference_rssi, 2),
            'path_loss_exponent': round(self.path_loss_exponent, 3),
            'r_squared': round(self.r_squared, 3),
            'samples': self.samples,
        }


def fit_path_loss(
    points: Iterable[tuple[float, float]],
    reference_distance: float = 1.0,
) -> Optional[PathLossFit]:
    """
    Fit the log-distance path loss model to (distance, rssi) pairs.

    Args:
        points: (distance_m, rssi_dbm) measurements. Several readings per
            distance are fine.
        reference_distance: d0 the fitted RSSI0 refers to.

    Returns:
        PathLossFit, or None if the points span fewer than two distinct
        distances or the fitted exponent is not positive.
    """
    pairs = []
    for distance, rssi in points:
        if distance <= 0:
            logger.debug(f"Skipping calibration point with non-positive distance {distance}")
            continue
        pairs.append((float(distance), float(rssi)))

    if len({distance for distance, _ in pairs}) < 2:
        logger.warning("Path loss fit needs readings at two or more distinct distances")
        return None

    xs = np.log10(np.array([distance for distance, _ in pairs]) / reference_distance)
    ys = np.array([rssi for _, rssi in pairs])

    slope, intercept = np.polyfit(xs, ys, 1)
    exponent = float(-slope / 10.0)
    if exponent <= 0:
        logger.warning(f"Path loss fit produced non-physical exponent {exponent:.3f}")
        return None

    residuals = ys - (intercept + slope * xs)
    ss_res = float(np.sum(residuals ** 2))
    ss_tot = float(np.sum((ys - np.mean(ys)) ** 2))
    r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

    return PathLossFit(
        reference_rssi=float(intercept),
        path_loss_exponent=exponent,
        r_squared=r_squared,
        samples=len(pairs),
    )
