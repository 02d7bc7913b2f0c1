"""
Custom GUI widgets for GazeBoard.
"""

from typing import Optional

from PyQt6.QtWidgets import QWidget
from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QImage, QPixmap, QPainter, QPen, QColor
import numpy as np

from gazeboard.core.board import TileKind


class CameraPreviewWidget(QWidget):
    """
    Small camera preview shown in a corner of the board.

    Only displays in-memory frames, never saves to disk.
    """

    def __init__(self, width: int = 240, height: int = 135, parent=None):
        super().__init__(parent)

        self._preview_width = width
        self._preview_height = height

        self.setFixedSize(width, height)
        self.setStyleSheet("background-color: black;")

        self._current_pixmap: Optional[QPixmap] = None

    def update_frame(self, frame: np.ndarray):
        """
        Update preview with new frame.

        Args:
            frame: RGB frame (H, W, 3) as numpy array
        """
        if frame is None or frame.size == 0:
            return

        frame = np.ascontiguousarray(frame)
        height, width, channels = frame.shape

        q_image = QImage(
            frame.data,
            width,
            height,
            channels * width,
            QImage.Format.Format_RGB888,
        )

        scaled_image = q_image.scaled(
            self._preview_width,
            self._preview_height,
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )

        self._current_pixmap = QPixmap.fromImage(scaled_image)
        self.update()

    def paintEvent(self, event):
        """Paint the preview."""
        painter = QPainter(self)

        if self._current_pixmap:
            x = (self.width() - self._current_pixmap.width()) // 2
            y = (self.height() - self._current_pixmap.height()) // 2
            painter.drawPixmap(x, y, self._current_pixmap)
        else:
            painter.setPen(QColor(128, 128, 128))
            painter.drawText(
                self.rect(),
                Qt.AlignmentFlag.AlignCenter,
                "No Camera Feed",
            )


class CalibrationTargetWidget(QWidget):
    """
    Full-window overlay showing the current calibration target.
    """

    def __init__(self, parent=None):
        super().__init__(parent)

        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

        self._target_x = 0
        self._target_y = 0
        self._target_size = 25
        self._target_visible = False
        self._collecting = False

        self._instruction_text = ""
        self._progress_text = ""

    def set_target(self, x: float, y: float, size: int = 25, collecting: bool = False):
        """
        Set target position.

        Args:
            x: Target x position (pixels)
            y: Target y position (pixels)
            size: Target size (pixels)
            collecting: Draw the target in its collecting color
        """
        self._target_x = int(x)
        self._target_y = int(y)
        self._target_size = size
        self._target_visible = True
        self._collecting = collecting
        self.update()

    def set_instruction(self, text: str):
        """Set instruction text."""
        self._instruction_text = text
        self.update()

    def set_progress(self, text: str):
        """Set progress text."""
        self._progress_text = text
        self.update()

    def paintEvent(self, event):
        """Paint the calibration overlay."""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(0, 0, 0, 200))

        if self._target_visible:
            outer = QColor(0, 200, 0) if self._collecting else QColor(255, 255, 255)
            painter.setPen(QPen(outer, 3))
            painter.setBrush(outer)
            painter.drawEllipse(
                self._target_x - self._target_size,
                self._target_y - self._target_size,
                self._target_size * 2,
                self._target_size * 2,
            )

            painter.setPen(QPen(QColor(255, 0, 0), 2))
            painter.setBrush(QColor(255, 0, 0))
            painter.drawEllipse(
                self._target_x - self._target_size // 2,
                self._target_y - self._target_size // 2,
                self._target_size,
                self._target_size,
            )

        painter.setPen(QColor(255, 255, 255))
        font = painter.font()
        font.setPointSize(16)
        painter.setFont(font)

        if self._instruction_text:
            painter.drawText(
                0, 50, self.width(), 60,
                Qt.AlignmentFlag.AlignCenter,
                self._instruction_text,
            )

        if self._progress_text:
            painter.drawText(
                0, self.height() - 110, self.width(), 60,
                Qt.AlignmentFlag.AlignCenter,
                self._progress_text,
            )


class GazeOverlayWidget(QWidget):
    """
    Transparent overlay with the gaze dot and the closure-select progress bar.
    """

    def __init__(self, radius: int = 18, select_seconds: float = 2.0, parent=None):
        super().__init__(parent)

        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

        self._radius = radius
        self._select_seconds = select_seconds

        self._gaze_x = 0.0
        self._gaze_y = 0.0
        self._gaze_valid = False
        self._frozen = False
        self._closed_seconds = 0.0

    def update_gaze(self, x: float, y: float, valid: bool, frozen: bool, closed_seconds: float):
        """Update the overlay from a tracker snapshot."""
        self._gaze_x = x
        self._gaze_y = y
        self._gaze_valid = valid
        self._frozen = frozen
        self._closed_seconds = closed_seconds
        self.update()

    def paintEvent(self, event):
        """Paint gaze dot and closure progress."""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        if self._gaze_valid:
            # Frozen dot is drawn grey
            color = QColor(150, 150, 150, 180) if self._frozen else QColor(255, 60, 60, 180)
            painter.setPen(QPen(QColor(255, 255, 255, 200), 2))
            painter.setBrush(color)
            painter.drawEllipse(
                QRectF(
                    self._gaze_x - self._radius,
                    self._gaze_y - self._radius,
                    self._radius * 2,
                    self._radius * 2,
                )
            )

        if self._closed_seconds > 0:
            fraction = min(self._closed_seconds / self._select_seconds, 1.0)
            bar_width = self.width() * 0.4
            bar_x = (self.width() - bar_width) / 2
            bar_y = self.height() - 60

            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QColor(60, 60, 60, 200))
            painter.drawRect(QRectF(bar_x, bar_y, bar_width, 24))
            painter.setBrush(QColor(80, 200, 120, 230))
            painter.drawRect(QRectF(bar_x, bar_y, bar_width * fraction, 24))

            painter.setPen(QColor(255, 255, 255))
            painter.drawText(
                QRectF(bar_x, bar_y, bar_width, 24),
                Qt.AlignmentFlag.AlignCenter,
                f"Eyes closed... {self._closed_seconds:.1f}s",
            )


class BoardWidget(QWidget):
    """
    Full-window layer drawing the communication board tiles.

    Tile rectangles come from CommunicationBoard in window coordinates.
    """

    def __init__(self, parent=None):
        super().__init__(parent)

        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

        self._tiles = []
        self._hovered_index: Optional[int] = None
        self._title = ""
        self._message = ""

    def update_board(self, board):
        """Copy tiles, hover and last phrase from a CommunicationBoard."""
        self._tiles = board.tiles
        self._hovered_index = board.hovered.index if board.hovered is not None else None
        self._title = board.title
        self._message = board.last_message
        self.update()

    def paintEvent(self, event):
        """Paint tiles with hover highlight."""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        font = painter.font()
        font.setPointSize(28)
        painter.setFont(font)

        for tile in self._tiles:
            rect = QRectF(tile.x, tile.y, tile.width, tile.height)

            if tile.emergency:
                fill = QColor(150, 40, 40)
            elif tile.kind == TileKind.BACK:
                fill = QColor(70, 70, 90)
            else:
                fill = QColor(50, 60, 80)

            hovered = tile.index == self._hovered_index
            border = QColor(255, 210, 0) if hovered else QColor(90, 90, 90)
            painter.setPen(QPen(border, 6 if hovered else 2))
            painter.setBrush(fill.lighter(140) if hovered else fill)
            painter.drawRoundedRect(rect, 16, 16)

            painter.setPen(QColor(255, 255, 255))
            painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, tile.label)

        font.setPointSize(16)
        painter.setFont(font)
        painter.setPen(QColor(220, 220, 220))

        if self._title:
            painter.drawText(
                0, 60, self.width(), 40,
                Qt.AlignmentFlag.AlignCenter,
                self._title,
            )

        if self._message:
            painter.drawText(
                0, 100, self.width(), 40,
                Qt.AlignmentFlag.AlignCenter,
                f"Selected: {self._message}",
            )
