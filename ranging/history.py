"""
Bounded RSSI reading history.

Keeps the most recent raw readings of one estimator for statistics and
confidence scoring. The Kalman filter never reads from it.
"""

from __future__ import annotations

import statistics
from collections import deque
from datetime import datetime, timedelta
from typing import Optional

from .constants import MAX_HISTORY_LENGTH, RSSI_WINDOW_SECONDS


class ReadingHistory:
    """
    Fixed-capacity FIFO of (timestamp, rssi) readings.

    When full, appending evicts the oldest reading.
    """

    def __init__(self, max_length: int = MAX_HISTORY_LENGTH):
        """
        Initialize the history.

        Args:
            max_length: Maximum readings kept.
        """
        if max_length < 1:
            raise ValueError(f"max_length must be at least 1, got {max_length}")
        self.max_length = max_length
        self._readings: deque[tuple[datetime, float]] = deque(maxlen=max_length)

    def __len__(self) -> int:
        return len(self._readings)

    def __bool__(self) -> bool:
        return bool(self._readings)

    def append(self, rssi: float, timestamp: Optional[datetime] = None) -> None:
        """
        Record a raw reading.

        Args:
            rssi: RSSI value in dBm.
            timestamp: Reading timestamp (defaults to now).
        """
        if timestamp is None:
            timestamp = datetime.now()
        self._readings.append((timestamp, rssi))

    def values(self) -> list[float]:
        """RSSI values, oldest first."""
        return [rssi for _, rssi in self._readings]

    def readings(self) -> list[tuple[datetime, float]]:
        """(timestamp, rssi) tuples, oldest first."""
        return list(self._readings)

    def clear(self) -> None:
        self._readings.clear()

    def mean(self) -> Optional[float]:
        if not self._readings:
            return None
        return statistics.fmean(self.values())

    def std_dev(self) -> Optional[float]:
        """Population standard deviation of the stored readings."""
        if not self._readings:
            return None
        return statistics.pstdev(self.values())

    def get_stats(self) -> Optional[dict]:
        """
        Get summary statistics of the stored readings.

        Returns:
            Dict with stats or None if the history is empty.
        """
        if not self._readings:
            return None

        rssi_values = self.values()
        rssi_min = min(rssi_values)
        rssi_max = max(rssi_values)

        return {
            'samples': len(rssi_values),
            'mean': statistics.fmean(rssi_values),
            'min': rssi_min,
            'max': rssi_max,
            'range': rssi_max - rssi_min,
            'std_dev': statistics.pstdev(rssi_values),
        }

    def get_rssi_window(
        self,
        window_seconds: int = RSSI_WINDOW_SECONDS,
        now: Optional[datetime] = None,
    ) -> tuple[Optional[float], Optional[float]]:
        """
        Get min/max RSSI from the last N seconds.

        Args:
            window_seconds: Window size in seconds.
            now: Reference time (defaults to now).

        Returns:
            Tuple of (min_rssi, max_rssi) or (None, None) if no readings.
        """
        if now is None:
            now = datetime.now()

        cutoff = now - timedelta(seconds=window_seconds)
        recent_rssi = [rssi for ts, rssi in self._readings if ts >= cutoff]

        if not recent_rssi:
            return None, None

        return min(recent_rssi), max(recent_rssi)
