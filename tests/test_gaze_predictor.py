"""
Tests for gaze prediction.
"""

import pytest

from gazeboard.core.config import GazeConfig
from gazeboard.vision.calibrator import fit_ridge_model
from gazeboard.vision.gaze_predictor import GazePredictor, Uncalibrated, Calibrated

from conftest import features, grid_samples


@pytest.fixture
def model():
    return fit_ridge_model(grid_samples(), 1e-6)


def predictor(sensitivity=1.0, dead_zone=0.0):
    config = GazeConfig(
        smoothing_alpha=1.0,
        moving_average_size=1,
        dead_zone_px=dead_zone,
        sensitivity=sensitivity,
    )
    return GazePredictor(config, 1920, 1080)


class TestGazePredictor:
    """Tests for GazePredictor."""

    def test_uncalibrated_is_invalid(self):
        """No model means no number."""
        p = predictor()

        assert isinstance(p.state, Uncalibrated)
        assert not p.predict(features(0.0, 0.0)).valid
        assert not p.raw_prediction(features(0.0, 0.0)).valid

    def test_predicts_calibration_targets(self, model):
        p = predictor()
        p.set_model(model)

        assert isinstance(p.state, Calibrated)
        result = p.predict(features(0.3, 0.2))

        assert result.valid
        assert result.x == pytest.approx(1710.0, abs=0.5)
        assert result.y == pytest.approx(980.0, abs=0.5)

    def test_sensitivity_scales_around_center(self, model):
        p = predictor(sensitivity=0.5)
        p.set_model(model)

        raw = p.raw_prediction(features(0.3, 0.2))

        assert raw.x == pytest.approx(960.0 + 750.0 * 0.5, abs=0.5)
        assert raw.y == pytest.approx(540.0 + 440.0 * 0.5, abs=0.5)

    def test_output_clamped(self, model):
        """Extrapolated points stay on screen."""
        p = predictor()
        p.set_model(model)

        result = p.predict(features(1.0, -1.0))

        assert result.x == 1920.0
        assert result.y == 0.0

    def test_set_model_resets_smoothing(self, model):
        """A new model starts from a fresh seed."""
        p = predictor(dead_zone=2000.0)
        p.set_model(model)
        p.predict(features(-0.3, -0.2))

        p.set_model(model)
        result = p.predict(features(0.3, 0.2))

        assert result.x == pytest.approx(1710.0, abs=0.5)

    def test_reset_smoothing_keeps_model(self, model):
        p = predictor(dead_zone=2000.0)
        p.set_model(model)
        p.predict(features(-0.3, -0.2))

        p.reset_smoothing()
        result = p.predict(features(0.3, 0.2))

        assert p.is_calibrated
        assert result.x == pytest.approx(1710.0, abs=0.5)

    def test_update_config(self, model):
        p = predictor()
        p.set_model(model)
        p.update_config(GazeConfig(smoothing_alpha=1.0, moving_average_size=1, dead_zone_px=0.0, sensitivity=0.5))

        assert p.screen_size == (1920, 1080)
        assert p.raw_prediction(features(0.3, 0.2)).x == pytest.approx(1335.0, abs=0.5)

    def test_clear_model(self, model):
        p = predictor()
        p.set_model(model)
        p.clear_model()

        assert not p.is_calibrated
        assert not p.predict(features(0.0, 0.0)).valid
