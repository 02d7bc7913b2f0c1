"""
Gaze feature extraction from face landmarks.

Computes the seven scalar features used by calibration and prediction.
All baselines are built from eye-corner landmarks, which stay put when the
jaw is open and when the eyelids move.
"""

from typing import Tuple

import numpy as np

from gazeboard.vision.landmarks import (
    LandmarkFrame,
    LEFT_IRIS,
    RIGHT_IRIS,
    LEFT_EYE_INNER,
    LEFT_EYE_OUTER,
    RIGHT_EYE_INNER,
    RIGHT_EYE_OUTER,
    LEFT_EYE_TOP,
    LEFT_EYE_BOTTOM,
    RIGHT_EYE_TOP,
    RIGHT_EYE_BOTTOM,
    NOSE_TIP,
)
from gazeboard.vision.schema import GazeFeatures
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


# Widths below this are treated as degenerate
MIN_EXTENT = 1e-6


def _eye_features(
    frame: LandmarkFrame,
    iris_indices,
    inner_index: int,
    outer_index: int,
    top_index: int,
    bottom_index: int,
) -> Tuple[float, float, float]:
    """
    Features of a single eye.

    Returns:
        (rx, ry, ey); neutral (0.5, 0.0, 0.0) when the eye width collapses
    """
    iris = frame.centroid(iris_indices)
    inner = frame.point(inner_index)
    outer = frame.point(outer_index)

    width = abs(float(outer[0] - inner[0]))
    if width < MIN_EXTENT:
        return 0.5, 0.0, 0.0

    corner_mid_y = (inner[1] + outer[1]) / 2.0

    rx = (iris[0] - inner[0]) / width
    ry = (iris[1] - corner_mid_y) / width
    ey = (frame.point(bottom_index)[1] - frame.point(top_index)[1]) / width

    return float(rx), float(ry), float(ey)


def extract_features(frame: LandmarkFrame) -> GazeFeatures:
    """
    Extract gaze features from one landmark frame.

    Pure function: identical landmarks give identical features.

    Args:
        frame: Landmark frame

    Returns:
        GazeFeatures

    Algorithm:
    1. Per eye, iris centroid offset from the inner corner / eye width (rx)
       and from the corner midpoint / eye width (ry)
    2. Per eye, eyelid aperture / eye width (ey); looking up opens the lid
    3. Nose tip relative to the inner-corner midpoint / inner-corner distance
    4. Average both eyes
    """
    l_rx, l_ry, l_ey = _eye_features(
        frame, LEFT_IRIS, LEFT_EYE_INNER, LEFT_EYE_OUTER, LEFT_EYE_TOP, LEFT_EYE_BOTTOM
    )
    r_rx, r_ry, r_ey = _eye_features(
        frame, RIGHT_IRIS, RIGHT_EYE_INNER, RIGHT_EYE_OUTER, RIGHT_EYE_TOP, RIGHT_EYE_BOTTOM
    )

    nose = frame.point(NOSE_TIP)
    left_inner = frame.point(LEFT_EYE_INNER)
    right_inner = frame.point(RIGHT_EYE_INNER)

    inner_mid = (left_inner + right_inner) / 2.0
    inner_dist = float(np.hypot(*(left_inner - right_inner)))

    if inner_dist < MIN_EXTENT:
        hx, hy = 0.0, 0.0
    else:
        hx = float((nose[0] - inner_mid[0]) / inner_dist)
        hy = float((nose[1] - inner_mid[1]) / inner_dist)

    return GazeFeatures(
        rx=(l_rx + r_rx) / 2.0,
        ry=(l_ry + r_ry) / 2.0,
        hx=hx,
        hy=hy,
        nx=float(nose[0]),
        ny=float(nose[1]),
        ey=(l_ey + r_ey) / 2.0,
    )


class FeatureExtractor:
    """
    Frame-loop wrapper around extract_features.

    Stateless apart from remembering the latest result for display.
    """

    def __init__(self):
        self._last_features = None
        logger.info("FeatureExtractor initialized")

    def extract(self, frame: LandmarkFrame) -> GazeFeatures:
        """Extract features and remember them."""
        features = extract_features(frame)
        self._last_features = features
        return features

    @property
    def last_features(self):
        """Most recent features, or None."""
        return self._last_features
