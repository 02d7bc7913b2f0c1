"""
Configuration management for GazeBoard.

All tunables of the tracking core with defaults taken from field use.
Uses dataclasses for type safety and validation.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import os
from pathlib import Path


@dataclass
class CameraConfig:
    """Camera capture configuration."""

    camera_index: int = 0
    frame_width: int = 1280
    frame_height: int = 720
    target_fps: int = 30
    warmup_frames: int = 5  # Frames to skip after camera init
    mirror: bool = True  # Front camera preview is mirrored for the user


@dataclass
class ZoomConfig:
    """Digital zoom applied before landmark detection."""

    min_zoom: float = 1.0
    max_zoom: float = 3.0
    step: float = 0.25
    initial_zoom: float = 1.0


@dataclass
class BlinkConfig:
    """Blink and double-blink detection."""

    # EAR below this counts as a closed frame for blink counting
    ear_threshold: float = 0.21

    # Closed runs outside [min_frames, max_frames] are noise or a deliberate hold
    min_frames: int = 1
    max_frames: int = 5

    # Two blinks at most this far apart form a double blink (seconds)
    double_blink_window: float = 0.5


@dataclass
class ClosureConfig:
    """Eye-closure freeze/recovery and closure-select."""

    # Looser than the blink threshold: gaze freezes as soon as eyelids droop
    freeze_ear: float = 0.26

    # EAR below this counts as "eyes closed" for closure-select
    closure_ear: float = 0.26

    # Frames to keep gaze frozen after the eyes reopen
    recovery_frames: int = 8

    # Sustained closure longer than this fires a selection (seconds)
    select_seconds: float = 2.0


@dataclass
class CalibrationConfig:
    """Calibration procedure and regression configuration."""

    grid_rows: int = 4
    grid_cols: int = 4

    # Target distance from screen edges (proportion of screen size)
    grid_margin: float = 0.1

    # Valid frames collected per target
    frames_per_point: int = 30

    # Leading frames dropped while the eye settles on the target
    settle_frames: int = 5

    # Per-feature frame rejection (standard deviations from the mean)
    frame_outlier_std: float = 1.5

    # Minimum samples for a fit (11 free coefficients per axis)
    min_samples: int = 10

    # Ridge penalty on the non-bias coefficients
    ridge_lambda: float = 0.1

    # Sample rejection: residual > max(multiplier * median, floor_px)
    outlier_multiplier: float = 2.5
    outlier_floor_px: float = 50.0


@dataclass
class GazeConfig:
    """Gaze prediction smoothing configuration."""

    # Exponential moving average weight of the newest prediction
    smoothing_alpha: float = 0.05

    # Moving-average window over smoothed points
    moving_average_size: int = 15

    # Reported point moves only if displacement exceeds this (pixels)
    dead_zone_px: float = 40.0

    # Scaling around screen center (< 1 compresses edge overshoot)
    sensitivity: float = 1.0


@dataclass
class BoardCategory:
    """One category tile and the phrases behind it."""

    name: str
    items: List[str]
    emergency: bool = False


def default_categories() -> List[BoardCategory]:
    return [
        BoardCategory("Answers", ["Yes", "No", "I don't know"]),
        BoardCategory("Needs", ["I'm thirsty", "I'm hungry", "Bathroom"]),
        BoardCategory("Comfort", ["It hurts", "Too cold", "Too hot", "Move me"]),
        BoardCategory("Emergency", ["Help me", "Call the nurse"], emergency=True),
    ]


@dataclass
class BoardConfig:
    """Communication board layout and selection."""

    categories: List[BoardCategory] = field(default_factory=default_categories)
    back_label: str = "Back"

    # Tiles are laid out in this many rows
    rows: int = 2

    # Space between tiles and reserved strip above the board (pixels)
    gap_px: int = 16
    top_margin_px: int = 170

    # Tiles accept gaze this far outside their edges (pixels)
    hit_padding_px: float = 20.0

    # Minimum time between two selections (seconds)
    selection_cooldown: float = 1.5

    # Hovering a tile this long also selects it, when enabled (seconds)
    dwell_select: bool = False
    dwell_seconds: float = 1.5

    # QTextToSpeech rate in [-1.0, 1.0]
    speech_rate: float = -0.1


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_dir: Path = field(default_factory=lambda: Path.home() / ".gazeboard")
    log_filename: str = "gazeboard.log"

    # File logging is OFF by default
    enable_file_logging: bool = False

    @property
    def log_path(self) -> Path:
        """Get full path to log file."""
        return Path(self.log_dir) / self.log_filename


@dataclass
class UIConfig:
    """User interface configuration."""

    window_title: str = "GazeBoard"

    # Frame loop interval (milliseconds)
    frame_interval_ms: int = 16

    gaze_dot_radius: int = 18
    target_size: int = 25
    show_debug_panel: bool = False

    # Screen size override (None = primary screen)
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None


@dataclass
class AppConfig:
    """Main application configuration."""

    camera: CameraConfig = field(default_factory=CameraConfig)
    zoom: ZoomConfig = field(default_factory=ZoomConfig)
    blink: BlinkConfig = field(default_factory=BlinkConfig)
    closure: ClosureConfig = field(default_factory=ClosureConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    gaze: GazeConfig = field(default_factory=GazeConfig)
    board: BoardConfig = field(default_factory=BoardConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ui: UIConfig = field(default_factory=UIConfig)

    version: str = "0.1.0"

    # Log level from environment or default to WARNING
    log_level: str = field(
        default_factory=lambda: os.getenv("GAZEBOARD_LOG_LEVEL", "WARNING")
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration parameters."""
        if not 0.0 < self.gaze.smoothing_alpha <= 1.0:
            raise ValueError("smoothing_alpha must be in (0.0, 1.0]")

        if self.gaze.moving_average_size < 1:
            raise ValueError("moving_average_size must be at least 1")

        if self.gaze.dead_zone_px < 0:
            raise ValueError("dead_zone_px must be non-negative")

        if not 0.1 <= self.gaze.sensitivity <= 5.0:
            raise ValueError("sensitivity must be between 0.1 and 5.0")

        if self.blink.min_frames < 1 or self.blink.max_frames < self.blink.min_frames:
            raise ValueError("blink frame bounds must satisfy 1 <= min_frames <= max_frames")

        if self.blink.double_blink_window <= 0:
            raise ValueError("double_blink_window must be positive")

        if self.closure.recovery_frames < 0:
            raise ValueError("recovery_frames must be non-negative")

        if self.closure.select_seconds <= 0:
            raise ValueError("select_seconds must be positive")

        if self.calibration.min_samples < 10:
            raise ValueError("min_samples must be at least 10")

        if self.calibration.grid_rows < 2 or self.calibration.grid_cols < 2:
            raise ValueError("calibration grid must be at least 2x2")

        if not 0.0 <= self.calibration.grid_margin < 0.5:
            raise ValueError("grid_margin must be between 0.0 and 0.5")

        if self.calibration.frames_per_point < 1:
            raise ValueError("frames_per_point must be at least 1")

        if self.calibration.ridge_lambda < 0:
            raise ValueError("ridge_lambda must be non-negative")

        if not 1.0 <= self.zoom.min_zoom <= self.zoom.initial_zoom <= self.zoom.max_zoom:
            raise ValueError("zoom must satisfy 1.0 <= min_zoom <= initial_zoom <= max_zoom")

        if self.zoom.step <= 0:
            raise ValueError("zoom step must be positive")

        if self.camera.target_fps < 1 or self.camera.target_fps > 60:
            raise ValueError("target_fps must be between 1 and 60")

        if not self.board.categories:
            raise ValueError("board needs at least one category")

        if any(not category.items for category in self.board.categories):
            raise ValueError("every board category needs at least one item")

        if self.board.rows < 1:
            raise ValueError("board rows must be at least 1")

        if self.board.hit_padding_px < 0 or self.board.gap_px < 0:
            raise ValueError("board padding and gap must be non-negative")

        if self.board.selection_cooldown < 0:
            raise ValueError("selection_cooldown must be non-negative")

        if self.board.dwell_seconds <= 0:
            raise ValueError("dwell_seconds must be positive")

        if not -1.0 <= self.board.speech_rate <= 1.0:
            raise ValueError("speech_rate must be between -1.0 and 1.0")


def get_default_config() -> AppConfig:
    """
    Get default application configuration.

    Returns:
        AppConfig instance with default values
    """
    return AppConfig()
