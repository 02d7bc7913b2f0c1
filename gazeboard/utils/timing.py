"""
Timing utilities for frame-rate estimation.
"""

import time
from typing import Optional


class FPSCounter:
    """
    Exponentially smoothed frames-per-second estimate.

    A slow landmark source lowers the effective sampling rate; the estimate
    follows it with fps = (1 - weight) * fps + weight * (1 / dt).
    """

    def __init__(self, weight: float = 0.1):
        """
        Initialize FPS counter.

        Args:
            weight: Weight of the newest frame interval (0-1)
        """
        if not 0.0 < weight <= 1.0:
            raise ValueError("weight must be in (0, 1]")

        self._weight = weight
        self._fps = 0.0
        self._last_time: Optional[float] = None

    def tick(self, timestamp: Optional[float] = None) -> float:
        """
        Register a frame and return the current estimate.

        Args:
            timestamp: Monotonic frame time in seconds (defaults to now)

        Returns:
            Current FPS estimate
        """
        current_time = time.perf_counter() if timestamp is None else timestamp

        if self._last_time is not None:
            dt = current_time - self._last_time
            if dt > 0:
                self._fps = (1.0 - self._weight) * self._fps + self._weight * (1.0 / dt)

        self._last_time = current_time
        return self._fps

    @property
    def fps(self) -> float:
        """Get current FPS estimate (0.0 before two frames)."""
        return self._fps

    def reset(self):
        """Reset FPS counter."""
        self._fps = 0.0
        self._last_time = None
