"""
Main application window.

Threading model:
- Everything runs on the Qt main thread
- A QTimer calls Controller.process_frame() once per tick
- Selected phrases are spoken through QTextToSpeech
"""

from PyQt6.QtWidgets import (
    QApplication,
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QLabel,
    QMessageBox,
)
from PyQt6.QtCore import QTimer
from PyQt6.QtGui import QKeySequence, QShortcut
from PyQt6.QtTextToSpeech import QTextToSpeech

from gazeboard.core.controller import Controller, FrameProcessingResult
from gazeboard.core.config import AppConfig
from gazeboard.core.state import AppState
from gazeboard.vision.calibration_session import CalibrationState
from gazeboard.gui.widgets import (
    BoardWidget,
    CameraPreviewWidget,
    CalibrationTargetWidget,
    GazeOverlayWidget,
)
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


class MainWindow(QMainWindow):
    """
    Full-screen board window.

    Shortcuts:
        Space   - caregiver: start collecting the current calibration target
        R       - recalibrate (retry camera after an error)
        +/-     - zoom camera in/out
        Ctrl+D  - toggle debug panel
        Esc     - cancel calibration
        Q       - quit
    """

    def __init__(self, config: AppConfig):
        """
        Initialize main window.

        Args:
            config: Application configuration
        """
        super().__init__()

        self._config = config

        screen_geometry = QApplication.primaryScreen().geometry()
        self._screen_width = config.ui.screen_width or screen_geometry.width()
        self._screen_height = config.ui.screen_height or screen_geometry.height()

        logger.info(f"Screen size: {self._screen_width}x{self._screen_height}")

        self._speech = QTextToSpeech(self)
        self._speech.setRate(config.board.speech_rate)

        self._controller = Controller(
            config,
            self._screen_width,
            self._screen_height,
            on_speak=self._speak,
        )

        self._init_ui()
        self._setup_keyboard_shortcuts()

        self._frame_timer = QTimer(self)
        self._frame_timer.timeout.connect(self._on_frame_tick)
        self._frame_timer.setInterval(config.ui.frame_interval_ms)

    def _init_ui(self):
        """Initialize UI components."""
        self.setWindowTitle(self._config.ui.window_title)
        self.resize(self._screen_width, self._screen_height)

        central_widget = QWidget()
        central_widget.setStyleSheet("background-color: #202020;")
        self.setCentralWidget(central_widget)

        layout = QVBoxLayout(central_widget)
        layout.setContentsMargins(10, 10, 10, 10)

        status_layout = QHBoxLayout()

        self._status_label = QLabel("Loading camera...")
        self._status_label.setStyleSheet("color: #ddd; font-size: 12pt;")

        self._zoom_label = QLabel("Zoom 1.00x")
        self._zoom_label.setStyleSheet("color: #999; font-size: 10pt;")

        self._debug_label = QLabel("")
        self._debug_label.setStyleSheet("color: #8f8; font-family: monospace; font-size: 9pt;")
        self._debug_label.setVisible(self._config.ui.show_debug_panel)

        self._preview = CameraPreviewWidget()

        status_layout.addWidget(self._status_label)
        status_layout.addStretch()
        status_layout.addWidget(self._zoom_label)
        status_layout.addWidget(self._preview)

        layout.addLayout(status_layout)
        layout.addWidget(self._debug_label)
        layout.addStretch()

        self._board_widget = BoardWidget(parent=central_widget)
        self._board_widget.setVisible(False)

        self._gaze_overlay = GazeOverlayWidget(
            radius=self._config.ui.gaze_dot_radius,
            select_seconds=self._config.closure.select_seconds,
            parent=central_widget,
        )

        self._calibration_overlay = CalibrationTargetWidget(parent=central_widget)
        self._calibration_overlay.setVisible(False)

    def _setup_keyboard_shortcuts(self):
        """Setup caregiver keyboard shortcuts."""
        bindings = [
            ("Space", self._on_collect_point),
            ("R", self._on_recalibrate),
            ("+", self._on_zoom_in),
            ("=", self._on_zoom_in),
            ("-", self._on_zoom_out),
            ("Ctrl+D", self._on_toggle_debug),
            ("Esc", self._on_cancel_calibration),
            ("Q", self.close),
        ]

        self._shortcuts = []
        for key, handler in bindings:
            shortcut = QShortcut(QKeySequence(key), self)
            shortcut.activated.connect(handler)
            self._shortcuts.append(shortcut)

    def resizeEvent(self, event):
        """Keep overlays covering the whole window."""
        super().resizeEvent(event)
        rect = self.centralWidget().rect()
        self._board_widget.setGeometry(rect)
        self._gaze_overlay.setGeometry(rect)
        self._calibration_overlay.setGeometry(rect)

    def showEvent(self, event):
        """Open the camera when the window first appears."""
        super().showEvent(event)

        if self._controller.state != AppState.LOADING or self._frame_timer.isActive():
            return

        self._start()

    def _start(self):
        """Initialize the controller and start calibration and the frame loop."""
        if not self._controller.initialize():
            error = self._controller.error
            message = error.message if error else "Failed to open the camera."
            if error is None or error.recoverable:
                message += "\nPress R to retry."
            QMessageBox.critical(self, "Initialization Error", message)
            return

        self._controller.start_calibration()
        self._frame_timer.start()
        logger.info("Frame loop started")

    def _speak(self, label: str):
        self._speech.say(label)

    def _on_frame_tick(self):
        """Run one frame of the pipeline and refresh the UI."""
        result = self._controller.process_frame()
        if not result.success:
            return

        self._update_ui(result)

    def _update_ui(self, result: FrameProcessingResult):
        snapshot = result.snapshot
        self._preview.update_frame(result.image)

        self._gaze_overlay.update_gaze(
            snapshot.gaze_x,
            snapshot.gaze_y,
            snapshot.gaze_valid,
            snapshot.frozen,
            snapshot.closed_seconds,
        )

        communicating = self._controller.state == AppState.COMMUNICATING
        self._board_widget.setVisible(communicating)
        if communicating:
            self._board_widget.update_board(self._controller.board)

        if snapshot.double_blink:
            logger.info("Double blink")

        face = "Face OK" if snapshot.face_detected else "No face"
        self._status_label.setText(f"{face} | FPS {snapshot.fps:.1f}")

        if self._debug_label.isVisible():
            self._debug_label.setText(self._debug_text(snapshot))

        self._update_calibration_ui()

    def _debug_text(self, snapshot) -> str:
        lines = [
            f"EAR {snapshot.ear:.3f}  blinks {snapshot.blink_count}  "
            f"frozen {snapshot.frozen}  closed {snapshot.closed_seconds:.1f}s",
        ]
        if snapshot.features is not None:
            f = snapshot.features
            lines.append(
                f"rx {f.rx:+.3f} ry {f.ry:+.3f} hx {f.hx:+.3f} hy {f.hy:+.3f} "
                f"nx {f.nx:.3f} ny {f.ny:.3f} ey {f.ey:.3f}"
            )
        diagnostics = self._controller.diagnostics
        if diagnostics is not None:
            lines.append(f"calibration: {diagnostics.summary()}")
        return "\n".join(lines)

    def _update_calibration_ui(self):
        """Show or hide the calibration overlay."""
        session = self._controller.session

        if self._controller.state != AppState.CALIBRATING:
            if self._calibration_overlay.isVisible():
                self._calibration_overlay.setVisible(False)
                self._announce_calibration_result(session.state)
            return

        target = session.get_current_target()
        if target is None:
            return

        collecting = session.state == CalibrationState.COLLECTING
        self._calibration_overlay.set_target(
            target.screen_x,
            target.screen_y,
            size=self._config.ui.target_size,
            collecting=collecting,
        )
        self._calibration_overlay.set_instruction(
            "Collecting... keep looking at the dot"
            if collecting
            else "Caregiver: press Space when the user looks at the dot"
        )
        current, total = session.progress
        self._calibration_overlay.set_progress(f"Point {current + 1} / {total}")
        self._calibration_overlay.setVisible(True)

    def _announce_calibration_result(self, state: CalibrationState):
        if state == CalibrationState.COMPLETED:
            self._status_label.setText("Calibration complete")
        elif state == CalibrationState.FAILED:
            error = self._controller.tracker.engine.last_error
            QMessageBox.warning(
                self,
                "Calibration Failed",
                f"Calibration failed: {error}. Press R to retry.",
            )

    def _on_collect_point(self):
        self._controller.begin_calibration_point()

    def _on_recalibrate(self):
        state = self._controller.state
        if state == AppState.CALIBRATING:
            return

        if state == AppState.ERROR:
            error = self._controller.error
            if error is not None and not error.recoverable:
                return
            self._start()
            return

        self._controller.start_calibration()

    def _on_cancel_calibration(self):
        self._controller.cancel_calibration()

    def _on_zoom_in(self):
        self._zoom_label.setText(f"Zoom {self._controller.zoom_in():.2f}x")

    def _on_zoom_out(self):
        self._zoom_label.setText(f"Zoom {self._controller.zoom_out():.2f}x")

    def _on_toggle_debug(self):
        self._debug_label.setVisible(not self._debug_label.isVisible())

    def closeEvent(self, event):
        """Stop the frame loop and release the camera."""
        self._frame_timer.stop()
        self._controller.shutdown()
        logger.info("Main window closed")
        super().closeEvent(event)
