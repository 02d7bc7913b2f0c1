"""
Face landmark detection using MediaPipe Face Mesh.

No facial recognition, no biometric templates stored. Only geometric
landmarks of a single face are extracted.
"""

import numpy as np
import mediapipe as mp
from typing import Optional

from gazeboard.vision.landmarks import LandmarkFrame, NUM_LANDMARKS
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


class FaceTracker:
    """
    Landmark source backed by MediaPipe Face Mesh.

    Only processes frames in-memory. Tracks one face.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        """
        Initialize face tracker.

        Args:
            min_detection_confidence: Minimum confidence for face detection
            min_tracking_confidence: Minimum confidence for landmark tracking
        """
        # refine_landmarks=True adds the ten iris landmarks (468-477)
        self._mp_face_mesh = mp.solutions.face_mesh
        self._face_mesh = self._mp_face_mesh.FaceMesh(
            max_num_faces=1,
            refine_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

        logger.info("FaceTracker initialized with MediaPipe Face Mesh")

    def process_frame(self, image: np.ndarray, timestamp: float) -> Optional[LandmarkFrame]:
        """
        Detect landmarks in an RGB image.

        Args:
            image: RGB image (H, W, 3)
            timestamp: Capture time in seconds

        Returns:
            LandmarkFrame if a face was found, None otherwise
        """
        if image is None or image.size == 0 or self._face_mesh is None:
            return None

        results = self._face_mesh.process(image)

        if not results.multi_face_landmarks:
            return None

        face_landmarks = results.multi_face_landmarks[0]
        points = np.array(
            [[lm.x, lm.y] for lm in face_landmarks.landmark],
            dtype=np.float64,
        )

        if points.shape[0] < NUM_LANDMARKS:
            logger.debug(f"Incomplete landmark set ({points.shape[0]} points)")
            return None

        return LandmarkFrame(points=points, timestamp=timestamp)

    def close(self):
        """Release MediaPipe resources."""
        if self._face_mesh is not None:
            self._face_mesh.close()
            self._face_mesh = None
            logger.info("FaceTracker closed")
