"""
Communication board driven by gaze.

The main screen shows one tile per category. Opening a category shows a
Back tile followed by its phrases; selecting a phrase hands it to the
speech callback. Selection happens on closure-select (or dwell, when
enabled) over the hovered tile, limited by a cooldown.
"""

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional, Tuple

from gazeboard.core.config import BoardConfig, BoardCategory
from gazeboard.core.tracker import TrackerSnapshot
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


class TileKind(Enum):
    CATEGORY = auto()
    BACK = auto()
    PHRASE = auto()


@dataclass(frozen=True)
class BoardTile:
    """A tile on the current screen, in screen pixels."""

    index: int
    label: str
    kind: TileKind
    x: float
    y: float
    width: float
    height: float
    emergency: bool = False

    def contains(self, px: float, py: float, padding: float = 0.0) -> bool:
        """Edge-inclusive hit test against the rectangle grown by padding."""
        return (
            self.x - padding <= px <= self.x + self.width + padding
            and self.y - padding <= py <= self.y + self.height + padding
        )

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


def layout_grid(
    count: int,
    rows: int,
    width: float,
    height: float,
    gap: float = 0.0,
    top: float = 0.0,
) -> List[Tuple[float, float, float, float]]:
    """
    Row-major rectangles for count tiles in a fixed number of rows.

    Columns grow with the tile count: cols = ceil(count / rows). Each
    cell is shrunk by half the gap on every side.

    Returns:
        List of (x, y, width, height)
    """
    if count <= 0:
        return []

    cols = math.ceil(count / rows)
    cell_w = width / cols
    cell_h = max(height - top, 0.0) / rows

    rects = []
    for i in range(count):
        row, col = divmod(i, cols)
        rects.append(
            (
                col * cell_w + gap / 2,
                top + row * cell_h + gap / 2,
                max(cell_w - gap, 0.0),
                max(cell_h - gap, 0.0),
            )
        )
    return rects


class CommunicationBoard:
    """
    Category board with padded hit-testing and cooldown-limited selection.

    Not thread-safe; updated from the frame loop only.
    """

    def __init__(
        self,
        config: BoardConfig,
        screen_width: int,
        screen_height: int,
        on_speak: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize board on its main screen.

        Args:
            config: Board configuration
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
            on_speak: Called with the label of every selected phrase
        """
        self._config = config
        self._screen_width = screen_width
        self._screen_height = screen_height
        self._on_speak = on_speak

        self._category: Optional[int] = None
        self._tiles: List[BoardTile] = []
        self._hovered: Optional[BoardTile] = None
        self._hover_started: Optional[float] = None
        self._last_selection: Optional[float] = None
        self._last_message = ""

        self._build_tiles()

    def update(self, snapshot: TrackerSnapshot, now: float) -> Optional[BoardTile]:
        """
        Hit-test the gaze point and select on closure-select or dwell.

        Args:
            snapshot: Tracker output of the current frame
            now: Timestamp of the frame (seconds)

        Returns:
            The selected tile, or None
        """
        if not snapshot.gaze_valid:
            self._set_hovered(None, now)
            return None

        self._set_hovered(self.tile_at(snapshot.gaze_x, snapshot.gaze_y), now)
        if self._hovered is None:
            return None

        if snapshot.closure_select:
            return self.select(self._hovered.index, now)

        if self._config.dwell_select and now - self._hover_started >= self._config.dwell_seconds:
            return self.select(self._hovered.index, now)

        return None

    def tile_at(self, x: float, y: float) -> Optional[BoardTile]:
        """First tile whose padded rectangle contains (x, y)."""
        padding = self._config.hit_padding_px
        for tile in self._tiles:
            if tile.contains(x, y, padding):
                return tile
        return None

    def select(self, index: int, now: float) -> Optional[BoardTile]:
        """
        Activate a tile of the current screen.

        Returns:
            The tile, or None while the cooldown is running
        """
        if not 0 <= index < len(self._tiles):
            raise IndexError(f"No tile {index} on the current screen")

        if (
            self._last_selection is not None
            and now - self._last_selection < self._config.selection_cooldown
        ):
            logger.debug(f"Selection of tile {index} ignored during cooldown")
            return None

        self._last_selection = now
        self._hover_started = now
        tile = self._tiles[index]

        if tile.kind == TileKind.CATEGORY:
            self._open(tile.index)
        elif tile.kind == TileKind.BACK:
            self._open(None)
        else:
            self._speak(tile.label)

        return tile

    def reset(self):
        """Return to the main screen and forget cooldown and last message."""
        self._last_selection = None
        self._last_message = ""
        self._open(None)

    def _open(self, category: Optional[int]):
        self._category = category
        self._set_hovered(None, None)
        self._build_tiles()
        logger.info(f"Board showing {self.title or 'main screen'}")

    def _speak(self, label: str):
        self._last_message = label
        logger.info(f"Selected phrase: {label}")

        if self._on_speak is None:
            return
        try:
            self._on_speak(label)
        except Exception as e:
            logger.warning(f"Speech failed for '{label}': {e}")

    def _set_hovered(self, tile: Optional[BoardTile], now: Optional[float]):
        if tile is None:
            self._hovered = None
            self._hover_started = None
        elif self._hovered is None or tile.index != self._hovered.index:
            self._hovered = tile
            self._hover_started = now

    def _build_tiles(self):
        if self._category is None:
            entries = [
                (category.name, TileKind.CATEGORY, category.emergency)
                for category in self._config.categories
            ]
        else:
            category = self._config.categories[self._category]
            entries = [(self._config.back_label, TileKind.BACK, False)]
            entries += [(item, TileKind.PHRASE, category.emergency) for item in category.items]

        rects = layout_grid(
            len(entries),
            self._config.rows,
            self._screen_width,
            self._screen_height,
            gap=self._config.gap_px,
            top=self._config.top_margin_px,
        )

        self._tiles = [
            BoardTile(index=i, label=label, kind=kind, x=x, y=y, width=w, height=h, emergency=emergency)
            for i, ((label, kind, emergency), (x, y, w, h)) in enumerate(zip(entries, rects))
        ]

    # Properties
    @property
    def tiles(self) -> List[BoardTile]:
        return list(self._tiles)

    @property
    def hovered(self) -> Optional[BoardTile]:
        return self._hovered

    @property
    def category(self) -> Optional[BoardCategory]:
        """Open category, None on the main screen."""
        if self._category is None:
            return None
        return self._config.categories[self._category]

    @property
    def title(self) -> str:
        category = self.category
        return category.name if category is not None else ""

    @property
    def last_message(self) -> str:
        """Most recently spoken phrase."""
        return self._last_message
