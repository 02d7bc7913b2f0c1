"""
Landmark frame type and MediaPipe Face Mesh landmark indices.

Frames are produced by the landmark detector (see face_tracker.py) and are
read-only to the tracking core.
"""

import numpy as np
from dataclasses import dataclass


# MediaPipe Face Mesh indices (refine_landmarks=True, 478 points)

# Six-point eye contours for EAR: [corner, top1, top2, corner, bottom2, bottom1]
LEFT_EYE_CONTOUR = (362, 385, 387, 263, 373, 380)
RIGHT_EYE_CONTOUR = (33, 160, 158, 133, 153, 144)

LEFT_IRIS = (474, 475, 476, 477)
RIGHT_IRIS = (469, 470, 471, 472)

LEFT_EYE_INNER = 362
LEFT_EYE_OUTER = 263
RIGHT_EYE_INNER = 133
RIGHT_EYE_OUTER = 33

LEFT_EYE_TOP = 386
LEFT_EYE_BOTTOM = 374
RIGHT_EYE_TOP = 159
RIGHT_EYE_BOTTOM = 145

NOSE_TIP = 4

NUM_LANDMARKS = 478


@dataclass(frozen=True)
class LandmarkFrame:
    """
    One frame of normalized face landmarks.

    Attributes:
        points: Array of shape (478, 2), camera-space coordinates in [0, 1]
        timestamp: Monotonic capture time in seconds
    """

    points: np.ndarray
    timestamp: float

    def __post_init__(self):
        points = np.asarray(self.points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] < 2 or points.shape[0] < NUM_LANDMARKS:
            raise ValueError(
                f"Expected landmark array of shape ({NUM_LANDMARKS}, 2), got {points.shape}"
            )
        points = points[:, :2].copy()
        points.setflags(write=False)
        object.__setattr__(self, "points", points)

    def point(self, index: int) -> np.ndarray:
        """Get a single landmark as (x, y)."""
        return self.points[index]

    def centroid(self, indices) -> np.ndarray:
        """Mean position of a landmark cluster."""
        return self.points[list(indices)].mean(axis=0)
