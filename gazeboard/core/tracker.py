"""
Per-frame tracking state machine.

Runs feature extraction and blink detection on every frame, tracks eye
closure for closure-select, and gates gaze prediction with a
freeze/recovery hysteresis so that landmark noise around a blink never
reaches the predictor.

State transitions (closure axis):
    OPEN -> CLOSED   EAR drops below closure threshold (timer starts)
    CLOSED -> CLOSED elapsed >= select duration fires closure-select once
    CLOSED -> OPEN   EAR rises back (timer cleared)

Freeze gate:
    ACTIVE -> FROZEN      EAR below freeze threshold
    FROZEN -> RECOVERING  eyes reopen; stays frozen for N more frames
    RECOVERING -> ACTIVE  countdown elapsed; smoothing history discarded
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence

from gazeboard.core.config import AppConfig, ClosureConfig
from gazeboard.vision.landmarks import LandmarkFrame
from gazeboard.vision.feature_extractor import FeatureExtractor
from gazeboard.vision.blink_detector import BlinkDetector
from gazeboard.vision.calibrator import CalibrationEngine, CalibrationBatch
from gazeboard.vision.gaze_predictor import GazePredictor
from gazeboard.vision.camera import ZoomControl
from gazeboard.vision.schema import GazeFeatures, CalibrationSample
from gazeboard.utils.timing import FPSCounter
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrackerSnapshot:
    """Everything the UI needs about one frame."""

    face_detected: bool
    ear: float = 0.0
    blink_count: int = 0
    double_blink: bool = False
    features: Optional[GazeFeatures] = None
    gaze_x: float = 0.0
    gaze_y: float = 0.0
    gaze_valid: bool = False
    fps: float = 0.0
    eyes_closed: bool = False
    closed_seconds: float = 0.0
    closure_select: bool = False
    frozen: bool = False


@dataclass(frozen=True)
class ClosureState:
    """Closure monitor output for one frame."""

    eyes_closed: bool
    closed_seconds: float
    select: bool  # One-shot edge


class ClosureMonitor:
    """
    Detect sustained eye closure.

    Fires select exactly once per continuous closure that lasts at least
    select_seconds.
    """

    def __init__(self, config: ClosureConfig):
        self._config = config
        self._closed_since: Optional[float] = None
        self._fired = False

    def update(self, ear: float, timestamp: float) -> ClosureState:
        """
        Process one frame.

        Args:
            ear: Mean eye aspect ratio
            timestamp: Frame time in seconds

        Returns:
            ClosureState for this frame
        """
        if ear >= self._config.closure_ear:
            self._closed_since = None
            return ClosureState(eyes_closed=False, closed_seconds=0.0, select=False)

        if self._closed_since is None:
            self._closed_since = timestamp
            self._fired = False

        elapsed = timestamp - self._closed_since
        select = False

        if elapsed >= self._config.select_seconds and not self._fired:
            select = True
            self._fired = True
            logger.info(f"Closure-select fired after {elapsed:.2f}s")

        return ClosureState(eyes_closed=True, closed_seconds=elapsed, select=select)

    @property
    def is_closed(self) -> bool:
        return self._closed_since is not None

    def reset(self):
        self._closed_since = None
        self._fired = False


@dataclass(frozen=True)
class FreezeDecision:
    """Freeze gate output for one frame."""

    frozen: bool
    resumed: bool  # First active frame after one or more frozen frames


class FreezeGate:
    """
    Hysteresis that decides whether gaze prediction may run.

    Closing the eyes freezes instantly; after reopening, gaze stays frozen
    for recovery_frames more frames.
    """

    def __init__(self, config: ClosureConfig):
        self._config = config
        self._recovery_left = 0
        self._was_frozen = False

    def update(self, ear: float) -> FreezeDecision:
        """
        Process one frame.

        Args:
            ear: Mean eye aspect ratio

        Returns:
            FreezeDecision
        """
        eyes_closed = ear < self._config.freeze_ear

        if eyes_closed:
            frozen = True
            self._recovery_left = self._config.recovery_frames
        elif self._recovery_left > 0:
            frozen = True
            self._recovery_left -= 1
        else:
            frozen = False

        resumed = self._was_frozen and not frozen
        self._was_frozen = frozen

        return FreezeDecision(frozen=frozen, resumed=resumed)

    @property
    def recovery_left(self) -> int:
        return self._recovery_left

    def reset(self):
        self._recovery_left = 0
        self._was_frozen = False


class TrackingStateMachine:
    """
    Per-frame orchestrator of the tracking core.

    Owns every mutable tracking structure; call process() once per frame
    from a single thread.

    Order per frame:
    1. BlinkDetector (EAR, blink count, double blink)
    2. ClosureMonitor (closure-select)
    3. FreezeGate (may gaze update?)
    4. FeatureExtractor (always, calibration needs it while frozen)
    5. GazePredictor (only when active and calibrated)
    """

    def __init__(self, config: AppConfig, screen_width: int, screen_height: int):
        """
        Initialize tracker.

        Args:
            config: Application configuration
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
        """
        self._config = config

        self._extractor = FeatureExtractor()
        self._blink_detector = BlinkDetector(config.blink)
        self._closure = ClosureMonitor(config.closure)
        self._freeze_gate = FreezeGate(config.closure)
        self._engine = CalibrationEngine(config.calibration)
        self._predictor = GazePredictor(config.gaze, screen_width, screen_height)
        self._zoom = ZoomControl(config.zoom)
        self._fps_counter = FPSCounter()

        self._last_gaze = (screen_width / 2.0, screen_height / 2.0)
        self._snapshot = TrackerSnapshot(face_detected=False)

        logger.info(f"TrackingStateMachine initialized for {screen_width}x{screen_height}")

    def process(self, frame: Optional[LandmarkFrame], timestamp: Optional[float] = None) -> TrackerSnapshot:
        """
        Process one frame.

        Args:
            frame: Landmarks of this frame, or None if no face was found
            timestamp: Frame time when frame is None (seconds)

        Returns:
            TrackerSnapshot for this frame
        """
        if frame is None:
            fps = self._fps_counter.tick(timestamp)
            # Tracking loss: hold everything, surface it as a flag
            self._snapshot = replace(
                self._snapshot,
                face_detected=False,
                double_blink=False,
                closure_select=False,
                gaze_valid=False,
                fps=fps,
            )
            return self._snapshot

        fps = self._fps_counter.tick(frame.timestamp)

        blink = self._blink_detector.update(frame)
        closure = self._closure.update(blink.ear, frame.timestamp)
        freeze = self._freeze_gate.update(blink.ear)

        features = self._extractor.extract(frame)

        if not freeze.frozen and self._predictor.is_calibrated:
            if freeze.resumed:
                # Buffered values predate the closure
                self._predictor.reset_smoothing()
                logger.debug("Gaze resumed after freeze; smoothing reset")

            prediction = self._predictor.predict(features)
            self._last_gaze = (prediction.x, prediction.y)

        self._snapshot = TrackerSnapshot(
            face_detected=True,
            ear=blink.ear,
            blink_count=blink.blink_count,
            double_blink=blink.double_blink,
            features=features,
            gaze_x=self._last_gaze[0],
            gaze_y=self._last_gaze[1],
            gaze_valid=self._predictor.is_calibrated,
            fps=fps,
            eyes_closed=closure.eyes_closed,
            closed_seconds=closure.closed_seconds,
            closure_select=closure.select,
            frozen=freeze.frozen,
        )

        return self._snapshot

    def calibrate(self, samples: Sequence[CalibrationSample]) -> bool:
        """
        Fit a new model and install it in the predictor.

        Returns:
            True on success; on failure the previous model stays active
        """
        if not self._engine.calibrate(samples):
            return False

        self._predictor.set_model(self._engine.model)
        return True

    def calibrate_batches(self, batches: Sequence[CalibrationBatch]) -> bool:
        """Reduce per-target frame batches and calibrate."""
        if not self._engine.calibrate_batches(batches):
            return False

        self._predictor.set_model(self._engine.model)
        return True

    def reset_calibration(self):
        """Forget the model (before recalibrating)."""
        self._engine.reset()
        self._predictor.clear_model()

    def reset(self):
        """Reset all per-frame state, keeping the model."""
        self._blink_detector.reset()
        self._closure.reset()
        self._freeze_gate.reset()
        self._predictor.reset_smoothing()
        self._fps_counter.reset()
        self._snapshot = TrackerSnapshot(face_detected=False)

    # Properties
    @property
    def snapshot(self) -> TrackerSnapshot:
        """Most recent snapshot."""
        return self._snapshot

    @property
    def engine(self) -> CalibrationEngine:
        return self._engine

    @property
    def predictor(self) -> GazePredictor:
        return self._predictor

    @property
    def zoom(self) -> ZoomControl:
        return self._zoom

    @property
    def is_calibrated(self) -> bool:
        return self._predictor.is_calibrated
