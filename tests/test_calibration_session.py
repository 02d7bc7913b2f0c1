"""
Tests for the guided calibration procedure.
"""

import pytest

from gazeboard.core.config import CalibrationConfig
from gazeboard.core.tracker import TrackerSnapshot
from gazeboard.vision.calibration_session import (
    CalibrationSession,
    CalibrationState,
    generate_grid,
)

from conftest import features


def snapshot(rx=0.0, ry=0.0, face=True, closed=False):
    return TrackerSnapshot(
        face_detected=face,
        features=features(rx, ry) if face else None,
        eyes_closed=closed,
    )


class FitRecorder:
    """Fit callback that records its input."""

    def __init__(self, result=True):
        self.result = result
        self.batches = None

    def __call__(self, batches):
        self.batches = batches
        return self.result


@pytest.fixture
def calib_config():
    return CalibrationConfig(grid_rows=2, grid_cols=2, frames_per_point=3)


def run_all_targets(session, frames_per_point=3):
    for _ in range(len(session.targets)):
        assert session.begin_point()
        for _ in range(frames_per_point):
            session.add_frame(snapshot())


class TestGenerateGrid:
    """Tests for calibration target placement."""

    def test_four_by_four(self):
        points = generate_grid(4, 4, 1000, 500, margin=0.1)

        assert len(points) == 16
        assert points[0] == pytest.approx((100.0, 50.0))
        assert points[3] == pytest.approx((900.0, 50.0))
        assert points[-1] == pytest.approx((900.0, 450.0))
        assert points[1] == pytest.approx((100.0 + 800.0 / 3, 50.0))

    def test_row_major(self):
        points = generate_grid(2, 3, 300, 200, margin=0.0)
        assert points == [(0, 0), (150, 0), (300, 0), (0, 200), (150, 200), (300, 200)]

    def test_too_small(self):
        with pytest.raises(ValueError):
            generate_grid(1, 4, 1000, 500)


class TestCalibrationSession:
    """Tests for CalibrationSession."""

    def test_start(self, calib_config):
        session = CalibrationSession(calib_config, 1000, 500, fit=FitRecorder())
        assert session.state == CalibrationState.IDLE

        session.start()

        assert session.state == CalibrationState.WAITING
        assert session.progress == (0, 4)
        assert session.get_current_target().index == 0

    def test_frames_ignored_until_triggered(self, calib_config):
        session = CalibrationSession(calib_config, 1000, 500, fit=FitRecorder())
        session.start()

        assert not session.add_frame(snapshot())
        assert session.get_current_target().frames == []

    def test_skips_invalid_frames(self, calib_config):
        """No-face and closed-eye frames are not collected."""
        session = CalibrationSession(calib_config, 1000, 500, fit=FitRecorder())
        session.start()
        session.begin_point()

        assert not session.add_frame(snapshot(face=False))
        assert not session.add_frame(snapshot(closed=True))
        assert session.add_frame(snapshot())
        assert len(session.get_current_target().frames) == 1

    def test_advances_after_frames_per_point(self, calib_config):
        session = CalibrationSession(calib_config, 1000, 500, fit=FitRecorder())
        session.start()
        session.begin_point()

        for _ in range(3):
            session.add_frame(snapshot())

        assert session.state == CalibrationState.WAITING
        assert session.progress == (1, 4)

    def test_completes_and_fits(self, calib_config):
        fit = FitRecorder(result=True)
        session = CalibrationSession(calib_config, 1000, 500, fit=fit)
        session.start()

        run_all_targets(session)

        assert session.state == CalibrationState.COMPLETED
        assert len(fit.batches) == 4
        assert fit.batches[3].screen_x == pytest.approx(900.0)
        assert len(fit.batches[0].frames) == 3
        assert not session.is_active

    def test_fit_failure(self, calib_config):
        session = CalibrationSession(calib_config, 1000, 500, fit=FitRecorder(result=False))
        session.start()

        run_all_targets(session)

        assert session.state == CalibrationState.FAILED

    def test_cancel(self, calib_config):
        fit = FitRecorder()
        session = CalibrationSession(calib_config, 1000, 500, fit=fit)
        session.start()
        session.begin_point()
        session.add_frame(snapshot())

        session.cancel()

        assert session.state == CalibrationState.CANCELLED
        assert session.get_current_target() is None
        assert not session.begin_point()
        assert fit.batches is None
