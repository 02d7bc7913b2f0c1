"""
Camera capture and digital zoom.

Frames are processed in memory only, never saved to disk.
"""

import cv2
import numpy as np
from typing import Optional
from dataclasses import dataclass

from gazeboard.core.config import CameraConfig, ZoomConfig
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CameraFrame:
    """Represents a captured camera frame with metadata."""

    image: np.ndarray  # RGB format (H, W, 3)
    timestamp: float  # Monotonic seconds
    frame_number: int


class CameraError(Exception):
    """Camera-related errors."""

    pass


class ZoomControl:
    """
    Digital zoom by center crop and rescale.

    Enlarges small faces for the landmark detector when the camera sits
    far from the user. Has no effect on the regression model.
    """

    def __init__(self, config: ZoomConfig):
        self._config = config
        self._level = self._clamp(config.initial_zoom)

    def _clamp(self, level: float) -> float:
        return round(min(self._config.max_zoom, max(self._config.min_zoom, level)), 2)

    def zoom_in(self) -> float:
        """Increase zoom by one step."""
        self._level = self._clamp(self._level + self._config.step)
        logger.info(f"Zoom: {self._level:.2f}x")
        return self._level

    def zoom_out(self) -> float:
        """Decrease zoom by one step."""
        self._level = self._clamp(self._level - self._config.step)
        logger.info(f"Zoom: {self._level:.2f}x")
        return self._level

    def set_level(self, level: float) -> float:
        """Set zoom level (clamped)."""
        self._level = self._clamp(level)
        return self._level

    def apply(self, image: np.ndarray) -> np.ndarray:
        """
        Crop the image center by 1/zoom and scale back to full size.

        Args:
            image: Image (H, W, C)

        Returns:
            Zoomed image with the input's dimensions
        """
        if self._level <= 1.0 or image is None or image.size == 0:
            return image

        height, width = image.shape[:2]
        crop_w = max(1, int(round(width / self._level)))
        crop_h = max(1, int(round(height / self._level)))
        x0 = (width - crop_w) // 2
        y0 = (height - crop_h) // 2

        cropped = image[y0:y0 + crop_h, x0:x0 + crop_w]
        return cv2.resize(cropped, (width, height), interpolation=cv2.INTER_LINEAR)

    @property
    def level(self) -> float:
        return self._level


class Camera:
    """
    Camera capture with error handling.

    Frames are never saved to disk.
    """

    def __init__(self, config: CameraConfig):
        """
        Initialize camera.

        Args:
            config: Camera configuration
        """
        self._config = config
        self._capture: Optional[cv2.VideoCapture] = None
        self._is_open = False
        self._frame_count = 0

        logger.info(f"Initializing camera {config.camera_index}")

    def open(self) -> bool:
        """
        Open camera and configure capture settings.

        Returns:
            True if successful

        Raises:
            CameraError: If camera cannot be opened
        """
        if self._is_open:
            logger.warning("Camera already open")
            return True

        try:
            self._capture = cv2.VideoCapture(self._config.camera_index)

            if not self._capture.isOpened():
                raise CameraError(
                    f"Failed to open camera {self._config.camera_index}. "
                    "Check if camera is connected and not used by another application."
                )

            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._config.frame_width)
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._config.frame_height)
            self._capture.set(cv2.CAP_PROP_FPS, self._config.target_fps)

            # Skip first frames which may be black/corrupted
            for _ in range(self._config.warmup_frames):
                self._capture.read()

            self._is_open = True
            self._frame_count = 0

            actual_width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
            actual_fps = self._capture.get(cv2.CAP_PROP_FPS)

            logger.info(
                f"Camera opened: {actual_width}x{actual_height} @ {actual_fps:.1f}fps"
            )

            return True

        except CameraError:
            self.close()
            raise
        except cv2.error as e:
            self.close()
            error_msg = f"Camera initialization failed: {e}"
            logger.error(error_msg)
            raise CameraError(error_msg) from e

    def read_frame(self) -> Optional[CameraFrame]:
        """
        Read a frame from the camera.

        Returns:
            CameraFrame in RGB format if successful, None if read failed
        """
        if not self._is_open or self._capture is None:
            logger.warning("Attempted to read from closed camera")
            return None

        ret, frame = self._capture.read()

        if not ret or frame is None:
            logger.warning("Failed to read frame from camera")
            return None

        if self._config.mirror:
            frame = cv2.flip(frame, 1)

        # Convert BGR (OpenCV default) to RGB
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        self._frame_count += 1

        return CameraFrame(
            image=frame_rgb,
            timestamp=cv2.getTickCount() / cv2.getTickFrequency(),
            frame_number=self._frame_count,
        )

    def close(self):
        """
        Release camera resources.

        Safe to call multiple times.
        """
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera closed")

        self._is_open = False

    @property
    def is_open(self) -> bool:
        """Check if camera is open."""
        return self._is_open

    @property
    def frame_count(self) -> int:
        """Get number of frames read."""
        return self._frame_count

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
