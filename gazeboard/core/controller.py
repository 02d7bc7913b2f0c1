"""
Central controller running the frame loop.

Wires the external collaborators (camera, landmark detector) to the
tracking core, the calibration procedure and the board.
"""

from typing import Callable, Optional
from dataclasses import dataclass

import numpy as np

from gazeboard.core.config import AppConfig
from gazeboard.core.state import StateMachine, AppState, ErrorInfo
from gazeboard.core.tracker import TrackingStateMachine, TrackerSnapshot
from gazeboard.core.board import CommunicationBoard, BoardTile
from gazeboard.vision.camera import Camera, CameraError
from gazeboard.vision.calibration_session import CalibrationSession, CalibrationState
from gazeboard.vision.schema import CalibrationDiagnostics
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class FrameProcessingResult:
    """Result of processing a single frame."""

    success: bool
    snapshot: Optional[TrackerSnapshot] = None
    image: Optional[np.ndarray] = None  # Zoomed RGB frame for preview
    selection: Optional[BoardTile] = None


class Controller:
    """
    Central controller for GazeBoard.

    Manages the complete pipeline:
    camera -> zoom -> landmarks -> tracking state machine -> calibration / board

    Single-threaded: process_frame() is called from the UI event loop and
    is the only place where tracking state is mutated.
    """

    def __init__(
        self,
        config: AppConfig,
        screen_width: int,
        screen_height: int,
        camera=None,
        face_tracker=None,
        on_speak: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize controller.

        Args:
            config: Application configuration
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
            camera: Frame source (default: OpenCV Camera)
            face_tracker: Landmark source (default: MediaPipe FaceTracker)
            on_speak: Speech callback for selected board phrases
        """
        self._config = config
        self._screen_width = screen_width
        self._screen_height = screen_height

        self._state_machine = StateMachine(initial_state=AppState.LOADING)

        self._camera = camera
        self._face_tracker = face_tracker

        self._tracker = TrackingStateMachine(config, screen_width, screen_height)
        self._session = CalibrationSession(
            config.calibration,
            screen_width,
            screen_height,
            fit=self._tracker.calibrate_batches,
        )
        self._board = CommunicationBoard(config.board, screen_width, screen_height, on_speak=on_speak)

        self._cancelled = False

        logger.info(f"Controller initialized for {screen_width}x{screen_height}")

    def initialize(self) -> bool:
        """
        Open camera and landmark detector.

        Returns:
            True if successful; on failure the controller enters ERROR

        Calling again from ERROR retries from LOADING.
        """
        if self._state_machine.current_state == AppState.ERROR:
            logger.info(f"Retrying initialization after {self._state_machine.error.error_type}")
            self._state_machine.reset()

        try:
            if self._camera is None:
                self._camera = Camera(self._config.camera)
            if self._face_tracker is None:
                from gazeboard.vision.face_tracker import FaceTracker

                self._face_tracker = FaceTracker()

            self._camera.open()

        except CameraError as e:
            error_msg = f"Initialization failed: {e}"
            logger.error(error_msg)
            self._state_machine.set_error(
                ErrorInfo(
                    error_type="CameraError",
                    message=error_msg,
                    recoverable=True,
                )
            )
            return False

        except Exception as e:
            error_msg = f"Initialization failed: {e}"
            logger.error(error_msg)
            self._state_machine.set_error(
                ErrorInfo(
                    error_type="InitializationError",
                    message=error_msg,
                    recoverable=False,
                    details=type(e).__name__,
                )
            )
            return False

        self._tracker.reset()
        self._board.reset()
        self._cancelled = False
        logger.info("All components initialized successfully")
        return True

    def process_frame(self) -> FrameProcessingResult:
        """
        Process one frame of the pipeline.

        Returns:
            FrameProcessingResult with the tracker snapshot
        """
        result = FrameProcessingResult(success=False)

        if self._cancelled or self._camera is None or self._face_tracker is None:
            return result

        frame = self._camera.read_frame()
        if frame is None:
            return result

        image = self._tracker.zoom.apply(frame.image)
        landmarks = self._face_tracker.process_frame(image, frame.timestamp)
        snapshot = self._tracker.process(landmarks, frame.timestamp)

        if self._state_machine.current_state == AppState.CALIBRATING:
            self._process_calibration_frame(snapshot)
        elif self._state_machine.current_state == AppState.COMMUNICATING:
            result.selection = self._board.update(snapshot, frame.timestamp)

        result.success = True
        result.snapshot = snapshot
        result.image = image
        return result

    def _process_calibration_frame(self, snapshot: TrackerSnapshot):
        """Feed the calibration session and leave CALIBRATING when it ends."""
        self._session.add_frame(snapshot)

        if self._session.state == CalibrationState.COMPLETED:
            logger.info("Calibration completed")
            self._transition(AppState.COMMUNICATING)

        elif self._session.state == CalibrationState.FAILED:
            # Board stays usable with the previous model (if any)
            logger.warning("Calibration failed; press R to retry")
            self._transition(AppState.COMMUNICATING)

    def _transition(self, new_state: AppState) -> bool:
        if not self._state_machine.transition_to(new_state):
            return False
        logger.info(f"State {self._state_machine.previous_state.name} -> {new_state.name}")
        return True

    def start_calibration(self) -> bool:
        """
        Start the calibration procedure.

        The current model stays active until a new one is fitted.

        Returns:
            True if started
        """
        if not self._state_machine.can_transition_to(AppState.CALIBRATING):
            logger.warning(f"Cannot start calibration from state {self._state_machine.current_state}")
            return False

        self._session.start()
        self._transition(AppState.CALIBRATING)
        logger.info("Calibration started")
        return True

    def begin_calibration_point(self) -> bool:
        """Caregiver trigger: collect frames for the current target."""
        if self._state_machine.current_state != AppState.CALIBRATING:
            return False
        return self._session.begin_point()

    def cancel_calibration(self) -> bool:
        """Abort calibration and return to the board."""
        if self._state_machine.current_state != AppState.CALIBRATING:
            return False

        self._session.cancel()
        self._transition(AppState.COMMUNICATING)
        return True

    def reset_calibration(self):
        """Forget the active model; gaze is invalid until the next calibration."""
        self._tracker.reset_calibration()

    def zoom_in(self) -> float:
        return self._tracker.zoom.zoom_in()

    def zoom_out(self) -> float:
        return self._tracker.zoom.zoom_out()

    def cancel(self):
        """Stop processing; checked at the top of every frame."""
        self._cancelled = True

    def shutdown(self):
        """Clean shutdown of all components."""
        logger.info("Shutting down controller")
        self._cancelled = True

        if self._camera is not None:
            self._camera.close()

        if self._face_tracker is not None:
            self._face_tracker.close()

    # Properties
    @property
    def state(self) -> AppState:
        """Get current application state."""
        return self._state_machine.current_state

    @property
    def error(self) -> Optional[ErrorInfo]:
        """Get error information if in ERROR state."""
        return self._state_machine.error

    @property
    def session(self) -> CalibrationSession:
        """Calibration session (for UI to show targets)."""
        return self._session

    @property
    def tracker(self) -> TrackingStateMachine:
        return self._tracker

    @property
    def board(self) -> CommunicationBoard:
        """Communication board (for UI to draw tiles)."""
        return self._board

    @property
    def diagnostics(self) -> Optional[CalibrationDiagnostics]:
        """Diagnostics of the active calibration."""
        return self._tracker.engine.diagnostics

    @property
    def zoom_level(self) -> float:
        return self._tracker.zoom.level

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled
