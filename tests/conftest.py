"""
Shared fixtures: synthetic MediaPipe-style landmark frames.

Geometry (normalized camera coordinates):
- Left eye corners at x=0.55 (inner) and x=0.65 (outer), y=0.40
- Right eye corners at x=0.45 (inner) and x=0.35 (outer), y=0.40
- Eye width 0.1, so EAR = eyelid opening / 0.1
- Nose tip at (0.5, 0.5)
"""

import numpy as np
import pytest

from gazeboard.core.config import AppConfig
from gazeboard.vision.landmarks import LandmarkFrame, NUM_LANDMARKS
from gazeboard.vision.schema import GazeFeatures, CalibrationSample


OPEN_HEIGHT = 0.03  # EAR 0.3
CLOSED_HEIGHT = 0.01  # EAR 0.1


def build_points(iris_dx=0.0, iris_dy=0.0, height=OPEN_HEIGHT, nose=(0.5, 0.5)):
    """Landmark array with both irises offset by (iris_dx, iris_dy)."""
    points = np.zeros((NUM_LANDMARKS, 2))
    top = 0.40 - height / 2
    bottom = 0.40 + height / 2

    # Left eye
    points[362] = (0.55, 0.40)
    points[263] = (0.65, 0.40)
    points[385] = (0.58, top)
    points[380] = (0.58, bottom)
    points[387] = (0.62, top)
    points[373] = (0.62, bottom)
    points[386] = (0.60, top)
    points[374] = (0.60, bottom)

    # Right eye
    points[133] = (0.45, 0.40)
    points[33] = (0.35, 0.40)
    points[160] = (0.38, top)
    points[144] = (0.38, bottom)
    points[158] = (0.42, top)
    points[153] = (0.42, bottom)
    points[159] = (0.40, top)
    points[145] = (0.40, bottom)

    for indices, cx in (((474, 475, 476, 477), 0.60), ((469, 470, 471, 472), 0.40)):
        center = np.array([cx + iris_dx, 0.40 + iris_dy])
        offsets = [(0.005, 0.0), (0.0, -0.005), (-0.005, 0.0), (0.0, 0.005)]
        for index, offset in zip(indices, offsets):
            points[index] = center + offset

    points[4] = nose
    return points


def make_frame(timestamp=0.0, **kwargs) -> LandmarkFrame:
    """LandmarkFrame built from build_points."""
    return LandmarkFrame(points=build_points(**kwargs), timestamp=timestamp)


def features(rx, ry, ey=0.3):
    """GazeFeatures with a fixed head pose."""
    return GazeFeatures(rx=rx, ry=ry, hx=0.0, hy=1.0, nx=0.5, ny=0.5, ey=ey)


def grid_samples(rows=4, cols=4, offset=(0.0, 0.0)):
    """Calibration samples whose targets are an exact linear function of rx, ry."""
    samples = []
    for ry in np.linspace(-0.2, 0.2, rows):
        for rx in np.linspace(-0.3, 0.3, cols):
            samples.append(
                CalibrationSample(
                    features=features(float(rx), float(ry)),
                    screen_x=960.0 + 2500.0 * rx + offset[0],
                    screen_y=540.0 + 2200.0 * ry + offset[1],
                )
            )
    return samples


@pytest.fixture
def open_frame():
    """Frame with open eyes and centered irises."""
    return make_frame()


@pytest.fixture
def closed_frame():
    """Frame with closed eyes."""
    return make_frame(height=CLOSED_HEIGHT)


@pytest.fixture
def config():
    """Default configuration."""
    return AppConfig()
