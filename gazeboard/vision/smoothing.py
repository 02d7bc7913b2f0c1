"""
Gaze smoothing and jitter control.

Reduces jitter of the predicted gaze point through an exponential moving
average, a moving-average buffer and a dead zone.
"""

from collections import deque
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from gazeboard.core.config import GazeConfig
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SmoothedGaze:
    """Smoothed gaze position in screen coordinates."""

    x: float  # Screen x coordinate (pixels)
    y: float  # Screen y coordinate (pixels)
    moved: bool  # False when the dead zone held the previous point


class GazeSmoother:
    """
    Smooth gaze predictions to reduce jitter.

    Stages:
    1. Exponential moving average (EMA), seeded by the first input
    2. Moving average over the last N EMA values
    3. Dead zone - the reported point only moves if the averaged point is
       further than dead_zone_px away
    4. Clamp to [0, width] x [0, height]
    """

    def __init__(self, config: GazeConfig, screen_width: int, screen_height: int):
        """
        Initialize smoother.

        Args:
            config: Gaze configuration
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
        """
        self._config = config
        self._screen_width = screen_width
        self._screen_height = screen_height

        # EMA accumulator
        self._ema_x = 0.0
        self._ema_y = 0.0

        # Recent EMA values
        self._buffer_x: deque = deque(maxlen=config.moving_average_size)
        self._buffer_y: deque = deque(maxlen=config.moving_average_size)

        # Last reported (stable) point
        self._output_x = 0.0
        self._output_y = 0.0

        self._first = True

        logger.info(
            f"GazeSmoother initialized: "
            f"alpha={config.smoothing_alpha:.2f}, "
            f"window={config.moving_average_size}, "
            f"dead_zone={config.dead_zone_px:.0f}px"
        )

    def smooth(self, screen_x: float, screen_y: float) -> SmoothedGaze:
        """
        Apply smoothing to a raw screen prediction.

        Args:
            screen_x: Raw screen x coordinate
            screen_y: Raw screen y coordinate

        Returns:
            Smoothed, clamped gaze position
        """
        alpha = self._config.smoothing_alpha
        moved = True

        if self._first:
            self._ema_x = screen_x
            self._ema_y = screen_y
            self._output_x = screen_x
            self._output_y = screen_y
            self._first = False
        else:
            # smoothed = alpha * new + (1 - alpha) * old
            self._ema_x = alpha * screen_x + (1.0 - alpha) * self._ema_x
            self._ema_y = alpha * screen_y + (1.0 - alpha) * self._ema_y

        self._buffer_x.append(self._ema_x)
        self._buffer_y.append(self._ema_y)

        avg_x = float(np.mean(self._buffer_x))
        avg_y = float(np.mean(self._buffer_y))

        distance = np.hypot(avg_x - self._output_x, avg_y - self._output_y)
        if distance > self._config.dead_zone_px:
            self._output_x = avg_x
            self._output_y = avg_y
        else:
            moved = False

        return SmoothedGaze(
            x=float(np.clip(self._output_x, 0, self._screen_width)),
            y=float(np.clip(self._output_y, 0, self._screen_height)),
            moved=moved,
        )

    def update_config(self, config: GazeConfig):
        """
        Update smoothing configuration.

        Changing the window size restarts the buffer.

        Args:
            config: New gaze configuration
        """
        if config.moving_average_size != self._buffer_x.maxlen:
            self._buffer_x = deque(self._buffer_x, maxlen=config.moving_average_size)
            self._buffer_y = deque(self._buffer_y, maxlen=config.moving_average_size)

        self._config = config
        logger.debug(f"Smoothing config updated: alpha={config.smoothing_alpha:.2f}")

    def reset(self):
        """Discard all smoothing history (after recalibration or a freeze)."""
        self._first = True
        self._ema_x = 0.0
        self._ema_y = 0.0
        self._output_x = 0.0
        self._output_y = 0.0
        self._buffer_x.clear()
        self._buffer_y.clear()
        logger.debug("Smoother reset")

    @property
    def current_position(self) -> Optional[Tuple[float, float]]:
        """Get last reported position, or None before the first input."""
        if self._first:
            return None
        return (self._output_x, self._output_y)
