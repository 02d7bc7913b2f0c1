"""
Guided calibration procedure.

A caregiver triggers each stage while the user looks at the target; the
session then accumulates valid frames for that target. After the last
target the collected batches are handed to the calibration engine.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, List, Optional, Tuple

from gazeboard.core.config import CalibrationConfig
from gazeboard.core.tracker import TrackerSnapshot
from gazeboard.vision.calibrator import CalibrationBatch
from gazeboard.vision.schema import GazeFeatures
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


class CalibrationState(Enum):
    """Calibration procedure states."""

    IDLE = auto()
    WAITING = auto()  # Target shown, waiting for the caregiver trigger
    COLLECTING = auto()  # Collecting frames for the current target
    COMPLETED = auto()  # Model fitted
    FAILED = auto()  # Engine rejected the samples
    CANCELLED = auto()


def generate_grid(
    rows: int,
    cols: int,
    screen_width: float,
    screen_height: float,
    margin: float = 0.1,
) -> List[Tuple[float, float]]:
    """
    Calibration targets on an evenly spaced grid, row-major.

    Args:
        rows: Grid rows (>= 2)
        cols: Grid columns (>= 2)
        screen_width: Screen width in pixels
        screen_height: Screen height in pixels
        margin: Distance of the outer targets from the edges (proportion)

    Returns:
        List of (x, y) screen positions
    """
    if rows < 2 or cols < 2:
        raise ValueError("Calibration grid needs at least 2 rows and 2 columns")

    mx = screen_width * margin
    my = screen_height * margin

    return [
        (
            mx + c * (screen_width - 2 * mx) / (cols - 1),
            my + r * (screen_height - 2 * my) / (rows - 1),
        )
        for r in range(rows)
        for c in range(cols)
    ]


@dataclass
class CalibrationTarget:
    """Single calibration target and the frames collected for it."""

    index: int
    screen_x: float
    screen_y: float
    frames: List[GazeFeatures] = field(default_factory=list)

    def to_batch(self) -> CalibrationBatch:
        return CalibrationBatch(
            frames=list(self.frames),
            screen_x=self.screen_x,
            screen_y=self.screen_y,
        )


class CalibrationSession:
    """
    Calibration procedure over a grid of targets.

    Process:
    1. start() shows the first target (WAITING)
    2. begin_point() starts collection (COLLECTING)
    3. add_frame() accepts frames with a detected face and open eyes
    4. After frames_per_point frames the next target is shown (WAITING)
    5. After the last target the batches are passed to the fit callback
    """

    def __init__(
        self,
        config: CalibrationConfig,
        screen_width: int,
        screen_height: int,
        fit: Callable[[List[CalibrationBatch]], bool],
    ):
        """
        Initialize calibration session.

        Args:
            config: Calibration configuration
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
            fit: Called with all batches; returns True if a model was fitted
        """
        self._config = config
        self._screen_width = screen_width
        self._screen_height = screen_height
        self._fit = fit

        self._state = CalibrationState.IDLE
        self._current_target_index = 0
        self._targets: List[CalibrationTarget] = []

        logger.info(f"CalibrationSession initialized for {screen_width}x{screen_height}")

    def start(self):
        """Start calibration procedure."""
        points = generate_grid(
            self._config.grid_rows,
            self._config.grid_cols,
            self._screen_width,
            self._screen_height,
            self._config.grid_margin,
        )

        self._targets = [
            CalibrationTarget(index=i, screen_x=x, screen_y=y)
            for i, (x, y) in enumerate(points)
        ]
        self._current_target_index = 0
        self._state = CalibrationState.WAITING

        logger.info(f"Calibration started: {len(self._targets)} targets")

    def begin_point(self) -> bool:
        """
        Start collecting frames for the current target.

        Returns:
            True if collection started, False if not waiting for a trigger
        """
        if self._state != CalibrationState.WAITING:
            return False

        self._targets[self._current_target_index].frames.clear()
        self._state = CalibrationState.COLLECTING
        logger.debug(f"Collecting target {self._current_target_index}")
        return True

    def add_frame(self, snapshot: TrackerSnapshot) -> bool:
        """
        Offer one tracker snapshot to the current target.

        Frames without a face or with closed eyes are skipped: iris
        landmarks are unreliable mid-blink.

        Args:
            snapshot: Tracker output of this frame

        Returns:
            True if the frame was accepted
        """
        if self._state != CalibrationState.COLLECTING:
            return False

        if not snapshot.face_detected or snapshot.eyes_closed or snapshot.features is None:
            return False

        target = self._targets[self._current_target_index]
        target.frames.append(snapshot.features)

        if len(target.frames) >= self._config.frames_per_point:
            self._complete_current_target()

        return True

    def _complete_current_target(self):
        """Complete current target and move to next."""
        logger.info(
            f"Target {self._current_target_index} completed: "
            f"{len(self._targets[self._current_target_index].frames)} frames"
        )

        self._current_target_index += 1

        if self._current_target_index >= len(self._targets):
            self._finalize_calibration()
        else:
            self._state = CalibrationState.WAITING

    def _finalize_calibration(self):
        """Fit the model from all targets."""
        batches = [target.to_batch() for target in self._targets]

        if self._fit(batches):
            self._state = CalibrationState.COMPLETED
            logger.info("Calibration finalized successfully")
        else:
            self._state = CalibrationState.FAILED
            logger.warning("Calibration finalization failed")

    def cancel(self):
        """Abort the procedure; collected frames are discarded."""
        if self._state in (CalibrationState.WAITING, CalibrationState.COLLECTING):
            logger.info("Calibration cancelled")
        self._targets = []
        self._current_target_index = 0
        self._state = CalibrationState.CANCELLED

    def get_current_target(self) -> Optional[CalibrationTarget]:
        """Get current calibration target."""
        if self.is_active and 0 <= self._current_target_index < len(self._targets):
            return self._targets[self._current_target_index]
        return None

    @property
    def state(self) -> CalibrationState:
        """Get current state."""
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in (CalibrationState.WAITING, CalibrationState.COLLECTING)

    @property
    def progress(self) -> Tuple[int, int]:
        """Get progress (current_target, total_targets)."""
        return (self._current_target_index, len(self._targets))

    @property
    def targets(self) -> List[CalibrationTarget]:
        return list(self._targets)
