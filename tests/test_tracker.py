"""
Tests for the per-frame tracking state machine.
"""

import pytest

from gazeboard.core.config import AppConfig, CalibrationConfig, ClosureConfig, GazeConfig
from gazeboard.core.tracker import TrackingStateMachine, ClosureMonitor, FreezeGate

from conftest import make_frame, grid_samples, CLOSED_HEIGHT

FRAME = 1.0 / 30

LOOK_TOP_LEFT = dict(iris_dx=-0.03, iris_dy=-0.02)  # rx -0.3, ry -0.2
LOOK_BOTTOM_RIGHT = dict(iris_dx=0.03, iris_dy=0.02)  # rx 0.3, ry 0.2


@pytest.fixture
def tracker():
    config = AppConfig(
        calibration=CalibrationConfig(ridge_lambda=1e-6),
        gaze=GazeConfig(smoothing_alpha=1.0, moving_average_size=1, dead_zone_px=2000.0),
    )
    return TrackingStateMachine(config, 1920, 1080)


@pytest.fixture
def calibrated(tracker):
    assert tracker.calibrate(grid_samples())
    return tracker


class TestClosureMonitor:
    """Tests for closure-select timing."""

    def test_fires_once_after_duration(self):
        monitor = ClosureMonitor(ClosureConfig())

        fired = [monitor.update(0.1, t).select for t in (0.0, 0.5, 1.0, 1.5, 2.0, 2.5)]

        assert fired == [False, False, False, False, True, False]

    def test_reports_duration(self):
        monitor = ClosureMonitor(ClosureConfig())
        monitor.update(0.1, 10.0)
        state = monitor.update(0.1, 11.25)

        assert state.eyes_closed
        assert state.closed_seconds == pytest.approx(1.25)

    def test_reopen_rearms(self):
        """A new closure can fire again."""
        monitor = ClosureMonitor(ClosureConfig())
        monitor.update(0.1, 0.0)
        assert monitor.update(0.1, 2.0).select

        opened = monitor.update(0.3, 2.1)
        assert not opened.eyes_closed
        assert opened.closed_seconds == 0.0
        assert not monitor.is_closed

        monitor.update(0.1, 3.0)
        assert not monitor.update(0.1, 4.9).select
        assert monitor.update(0.1, 5.0).select

    def test_short_closure_never_fires(self):
        monitor = ClosureMonitor(ClosureConfig())
        monitor.update(0.1, 0.0)
        monitor.update(0.1, 1.9)

        assert not monitor.update(0.3, 2.5).select


class TestFreezeGate:
    """Tests for freeze/recovery hysteresis."""

    def test_recovery_frames(self):
        gate = FreezeGate(ClosureConfig(recovery_frames=8))

        assert not gate.update(0.3).frozen
        assert gate.update(0.1).frozen

        for _ in range(8):
            decision = gate.update(0.3)
            assert decision.frozen
            assert not decision.resumed

        decision = gate.update(0.3)
        assert not decision.frozen
        assert decision.resumed

        assert not gate.update(0.3).resumed

    def test_reclosing_restarts_recovery(self):
        gate = FreezeGate(ClosureConfig(recovery_frames=3))
        gate.update(0.1)
        gate.update(0.3)
        gate.update(0.1)

        assert gate.recovery_left == 3

    def test_no_recovery(self):
        gate = FreezeGate(ClosureConfig(recovery_frames=0))
        gate.update(0.1)

        decision = gate.update(0.3)
        assert not decision.frozen
        assert decision.resumed


class TestTrackingStateMachine:
    """Tests for TrackingStateMachine.process()."""

    def test_uncalibrated_snapshot(self, tracker, open_frame):
        snapshot = tracker.process(open_frame)

        assert snapshot.face_detected
        assert snapshot.features is not None
        assert snapshot.ear == pytest.approx(0.3)
        assert not snapshot.gaze_valid
        assert (snapshot.gaze_x, snapshot.gaze_y) == (960.0, 540.0)

    def test_calibrated_gaze(self, calibrated):
        snapshot = calibrated.process(make_frame(0.0, **LOOK_BOTTOM_RIGHT))

        assert snapshot.gaze_valid
        assert snapshot.gaze_x == pytest.approx(1710.0, abs=0.5)
        assert snapshot.gaze_y == pytest.approx(980.0, abs=0.5)

    def test_freeze_holds_gaze_and_extracts_features(self, calibrated):
        """While frozen the point holds but features keep flowing."""
        first = calibrated.process(make_frame(0.0, **LOOK_TOP_LEFT))

        closed = calibrated.process(make_frame(FRAME, height=CLOSED_HEIGHT, **LOOK_BOTTOM_RIGHT))

        assert closed.frozen
        assert closed.eyes_closed
        assert closed.features is not None
        assert closed.features.rx == pytest.approx(0.3)
        assert (closed.gaze_x, closed.gaze_y) == (first.gaze_x, first.gaze_y)

    def test_recovery_then_smoothing_reset(self, calibrated):
        """After recovery the smoother restarts from the current gaze."""
        t = 0.0
        first = calibrated.process(make_frame(t, **LOOK_TOP_LEFT))
        assert first.gaze_x == pytest.approx(210.0, abs=0.5)

        t += FRAME
        calibrated.process(make_frame(t, height=CLOSED_HEIGHT))

        for _ in range(8):
            t += FRAME
            snapshot = calibrated.process(make_frame(t, **LOOK_BOTTOM_RIGHT))
            assert snapshot.frozen
            assert snapshot.gaze_x == first.gaze_x

        t += FRAME
        resumed = calibrated.process(make_frame(t, **LOOK_BOTTOM_RIGHT))

        # The dead zone would hold the old point without the reset
        assert not resumed.frozen
        assert resumed.gaze_x == pytest.approx(1710.0, abs=0.5)
        assert resumed.gaze_y == pytest.approx(980.0, abs=0.5)

    def test_closure_select(self, tracker):
        times = [0.0, 0.5, 1.0, 1.5, 2.0, 2.5]
        selects = [
            tracker.process(make_frame(t, height=CLOSED_HEIGHT)).closure_select
            for t in times
        ]

        assert selects == [False, False, False, False, True, False]

    def test_blink_in_snapshot(self, tracker):
        tracker.process(make_frame(0.0, height=CLOSED_HEIGHT))
        snapshot = tracker.process(make_frame(FRAME))

        assert snapshot.blink_count == 1

    def test_no_face(self, calibrated):
        """Tracking loss keeps the last point and flags it."""
        seen = calibrated.process(make_frame(0.0, **LOOK_BOTTOM_RIGHT))
        lost = calibrated.process(None, timestamp=FRAME)

        assert not lost.face_detected
        assert not lost.gaze_valid
        assert not lost.closure_select
        assert (lost.gaze_x, lost.gaze_y) == (seen.gaze_x, seen.gaze_y)

    def test_no_face_keeps_closure_timer(self, tracker):
        tracker.process(make_frame(0.0, height=CLOSED_HEIGHT))
        tracker.process(None, timestamp=1.0)
        snapshot = tracker.process(make_frame(2.0, height=CLOSED_HEIGHT))

        assert snapshot.closure_select

    def test_fps_estimate(self, tracker):
        for i in range(50):
            snapshot = tracker.process(make_frame(i * 0.1))

        assert 5.0 < snapshot.fps <= 10.0


    def test_reset_keeps_model(self, calibrated):
        calibrated.process(make_frame(0.0, height=CLOSED_HEIGHT))
        calibrated.process(make_frame(FRAME))

        calibrated.reset()
        snapshot = calibrated.process(make_frame(1.0, **LOOK_BOTTOM_RIGHT))

        assert calibrated.is_calibrated
        assert snapshot.blink_count == 0
        assert not snapshot.frozen
        assert snapshot.fps == 0.0


class TestTrackerCalibration:
    """Tests for model installation through the tracker."""

    def test_failed_recalibration_keeps_model(self, calibrated):
        model = calibrated.engine.model

        assert not calibrated.calibrate(grid_samples()[:5])
        assert calibrated.is_calibrated
        assert calibrated.engine.model is model

    def test_reset_calibration(self, calibrated):
        calibrated.reset_calibration()

        assert not calibrated.is_calibrated
        assert calibrated.engine.diagnostics is None
