"""
Blink and double-blink detection using the eye aspect ratio (EAR).

A blink is a run of closed frames whose length falls inside the configured
window. Shorter runs are landmark noise; longer runs are deliberate holds and
belong to closure-select (see core/tracker.py).
"""

from dataclasses import dataclass
from typing import List

import numpy as np

from gazeboard.core.config import BlinkConfig
from gazeboard.vision.landmarks import LandmarkFrame, LEFT_EYE_CONTOUR, RIGHT_EYE_CONTOUR
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


# EAR reported for a collapsed eye contour (reads as open)
DEGENERATE_EAR = 0.3


def eye_aspect_ratio(frame: LandmarkFrame, contour) -> float:
    """
    EAR of one eye.

    Args:
        frame: Landmark frame
        contour: Six indices [corner, top1, top2, corner, bottom2, bottom1]

    Returns:
        (|p1-p5| + |p2-p4|) / (2 * |p0-p3|)
    """
    p = [frame.point(i) for i in contour]
    vertical1 = np.hypot(*(p[1] - p[5]))
    vertical2 = np.hypot(*(p[2] - p[4]))
    horizontal = np.hypot(*(p[0] - p[3]))

    if horizontal < 1e-6:
        return DEGENERATE_EAR

    return float((vertical1 + vertical2) / (2.0 * horizontal))


def mean_eye_aspect_ratio(frame: LandmarkFrame) -> float:
    """EAR averaged over both eyes."""
    left = eye_aspect_ratio(frame, LEFT_EYE_CONTOUR)
    right = eye_aspect_ratio(frame, RIGHT_EYE_CONTOUR)
    return (left + right) / 2.0


@dataclass(frozen=True)
class BlinkState:
    """Per-frame blink detector output."""

    ear: float
    blink_count: int
    double_blink: bool  # True on exactly one frame per detected pair


class BlinkDetector:
    """
    Count blinks and detect double blinks.

    Feed one EAR value per frame. double_blink is an edge: it is True only
    on the frame that completes the second blink of a pair.
    """

    def __init__(self, config: BlinkConfig):
        """
        Initialize detector.

        Args:
            config: Blink configuration
        """
        self._config = config

        self._ear = 0.0
        self._blink_count = 0
        self._double_blink = False

        self._closed_frames = 0
        self._blink_times: List[float] = []

        logger.info(
            f"BlinkDetector initialized: threshold={config.ear_threshold:.2f}, "
            f"frames=[{config.min_frames}, {config.max_frames}], "
            f"window={config.double_blink_window:.2f}s"
        )

    def update(self, frame: LandmarkFrame) -> BlinkState:
        """Process one landmark frame."""
        return self.update_ear(mean_eye_aspect_ratio(frame), frame.timestamp)

    def update_ear(self, ear: float, timestamp: float) -> BlinkState:
        """
        Process one EAR value.

        Args:
            ear: Mean eye aspect ratio of this frame
            timestamp: Frame time in seconds

        Returns:
            BlinkState for this frame
        """
        self._ear = ear
        self._double_blink = False

        if ear < self._config.ear_threshold:
            self._closed_frames += 1
        else:
            if self._config.min_frames <= self._closed_frames <= self._config.max_frames:
                self._register_blink(timestamp)
            elif self._closed_frames > 0:
                logger.debug(f"Closed run of {self._closed_frames} frames discarded")
            self._closed_frames = 0

        return self.state

    def _register_blink(self, now: float):
        """Record a blink and check for a double blink."""
        window = self._config.double_blink_window

        self._blink_count += 1
        self._blink_times.append(now)

        # Keep only recent blinks
        self._blink_times = [t for t in self._blink_times if now - t < window * 2]

        if len(self._blink_times) >= 2:
            last = self._blink_times[-1]
            prev = self._blink_times[-2]
            if last - prev <= window:
                self._double_blink = True
                # A third blink must not pair with the second one again
                self._blink_times = []
                logger.debug(f"Double blink detected ({last - prev:.2f}s apart)")

    @property
    def state(self) -> BlinkState:
        """Current detector output."""
        return BlinkState(
            ear=self._ear,
            blink_count=self._blink_count,
            double_blink=self._double_blink,
        )

    @property
    def ear(self) -> float:
        return self._ear

    @property
    def blink_count(self) -> int:
        return self._blink_count

    @property
    def double_blink(self) -> bool:
        return self._double_blink

    def reset(self):
        """Reset detector state."""
        self._closed_frames = 0
        self._blink_times = []
        self._ear = 0.0
        self._blink_count = 0
        self._double_blink = False
