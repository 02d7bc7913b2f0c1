"""
Gaze prediction: features to a smoothed screen point.

The predictor never extrapolates without a model: while uncalibrated it
returns an invalid prediction instead of a number.
"""

from dataclasses import dataclass
from typing import Tuple, Union

from gazeboard.core.config import GazeConfig
from gazeboard.vision.schema import GazeFeatures, RegressionModel
from gazeboard.vision.smoothing import GazeSmoother
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Uncalibrated:
    """No model has been fitted yet."""


@dataclass(frozen=True)
class Calibrated:
    """A fitted model is in effect."""

    model: RegressionModel


ModelState = Union[Uncalibrated, Calibrated]


@dataclass(frozen=True)
class GazePrediction:
    """Screen-space gaze point; x/y are meaningless when valid is False."""

    x: float
    y: float
    valid: bool

    @classmethod
    def invalid(cls) -> "GazePrediction":
        return cls(x=0.0, y=0.0, valid=False)


class GazePredictor:
    """
    Map gaze features to a stable screen point.

    Process:
    1. Expand and normalize features with the stored model
    2. Linear prediction per axis
    3. Sensitivity scaling around the screen center
    4. Smoothing (EMA, moving average, dead zone) and clamping
    """

    def __init__(self, config: GazeConfig, screen_width: int, screen_height: int):
        """
        Initialize predictor.

        Args:
            config: Gaze configuration
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
        """
        self._config = config
        self._screen_width = screen_width
        self._screen_height = screen_height

        self._state: ModelState = Uncalibrated()
        self._smoother = GazeSmoother(config, screen_width, screen_height)

        logger.info(f"GazePredictor initialized for {screen_width}x{screen_height}")

    def set_model(self, model: RegressionModel):
        """Install a new model and discard smoothing history."""
        self._state = Calibrated(model)
        self._smoother.reset()
        logger.info("Regression model installed")

    def clear_model(self):
        """Return to the uncalibrated state."""
        self._state = Uncalibrated()
        self._smoother.reset()

    def reset_smoothing(self):
        """Discard smoothing history but keep the model."""
        self._smoother.reset()

    def raw_prediction(self, features: GazeFeatures) -> GazePrediction:
        """
        Unsmoothed prediction after sensitivity scaling.

        Args:
            features: Gaze features

        Returns:
            GazePrediction (invalid if uncalibrated)
        """
        state = self._state
        if isinstance(state, Uncalibrated):
            return GazePrediction.invalid()

        raw_x, raw_y = state.model.predict_raw(features)

        center_x = self._screen_width / 2.0
        center_y = self._screen_height / 2.0
        sensitivity = self._config.sensitivity

        return GazePrediction(
            x=center_x + (raw_x - center_x) * sensitivity,
            y=center_y + (raw_y - center_y) * sensitivity,
            valid=True,
        )

    def predict(self, features: GazeFeatures) -> GazePrediction:
        """
        Predict the smoothed screen point for one frame.

        Args:
            features: Gaze features

        Returns:
            GazePrediction clamped to the screen (invalid if uncalibrated)
        """
        raw = self.raw_prediction(features)
        if not raw.valid:
            return raw

        smoothed = self._smoother.smooth(raw.x, raw.y)
        return GazePrediction(x=smoothed.x, y=smoothed.y, valid=True)

    def update_config(self, config: GazeConfig):
        """Update sensitivity and smoothing parameters."""
        self._config = config
        self._smoother.update_config(config)

    @property
    def state(self) -> ModelState:
        """Current model state."""
        return self._state

    @property
    def is_calibrated(self) -> bool:
        return isinstance(self._state, Calibrated)

    @property
    def screen_size(self) -> Tuple[int, int]:
        return (self._screen_width, self._screen_height)
