"""
Tests for the communication board.

Board geometry used below (1000x800 screen, gap 40, no top margin):
four tiles in a 2x2 grid, each 460x360, with 40px between neighbours.
    tile 0: x 20..480,  y 20..380
    tile 1: x 520..980, y 20..380
    tile 2: x 20..480,  y 420..780
    tile 3: x 520..980, y 420..780
"""

import pytest

from gazeboard.core.config import BoardConfig
from gazeboard.core.board import CommunicationBoard, TileKind, layout_grid
from gazeboard.core.tracker import TrackerSnapshot

WIDTH, HEIGHT = 1000, 800

TOP_LEFT = (250.0, 200.0)
TOP_RIGHT = (750.0, 200.0)


def board_config(**overrides):
    values = dict(gap_px=40, top_margin_px=0, hit_padding_px=10.0, selection_cooldown=1.5)
    values.update(overrides)
    return BoardConfig(**values)


def gaze(point, select=False, valid=True):
    return TrackerSnapshot(
        face_detected=True,
        gaze_x=point[0],
        gaze_y=point[1],
        gaze_valid=valid,
        closure_select=select,
    )


@pytest.fixture
def spoken():
    return []


@pytest.fixture
def board(spoken):
    return CommunicationBoard(board_config(), WIDTH, HEIGHT, on_speak=spoken.append)


class TestLayoutGrid:
    """Tests for tile rectangles."""

    def test_two_by_two(self):
        rects = layout_grid(4, 2, 1000, 800, gap=40)

        assert rects == [
            (20.0, 20.0, 460.0, 360.0),
            (520.0, 20.0, 460.0, 360.0),
            (20.0, 420.0, 460.0, 360.0),
            (520.0, 420.0, 460.0, 360.0),
        ]

    def test_columns_grow_with_count(self):
        """Five tiles in two rows need three columns."""
        rects = layout_grid(5, 2, 900, 800)

        assert len(rects) == 5
        assert rects[2] == (600.0, 0.0, 300.0, 400.0)
        assert rects[4] == (300.0, 400.0, 300.0, 400.0)

    def test_top_margin(self):
        rects = layout_grid(2, 2, 1000, 900, top=100)

        assert rects[0] == (0.0, 100.0, 1000.0, 400.0)
        assert rects[1] == (0.0, 500.0, 1000.0, 400.0)

    def test_empty(self):
        assert layout_grid(0, 2, 1000, 800) == []


class TestHitTest:
    """Tests for tile_at() and the hit padding."""

    def test_main_screen_tiles(self, board):
        tiles = board.tiles

        assert [t.label for t in tiles] == ["Answers", "Needs", "Comfort", "Emergency"]
        assert all(t.kind == TileKind.CATEGORY for t in tiles)
        assert tiles[3].emergency
        assert tiles[0].center == TOP_LEFT

    def test_inside(self, board):
        assert board.tile_at(*TOP_LEFT).label == "Answers"
        assert board.tile_at(750, 600).label == "Emergency"

    def test_padding_extends_tile(self, board):
        """Gaze just outside the edge still hits within the padding."""
        assert board.tile_at(485, 200).index == 0
        assert board.tile_at(490, 200).index == 0
        assert board.tile_at(250, 15).index == 0

    def test_beyond_padding_misses(self, board):
        assert board.tile_at(495, 200) is None
        assert board.tile_at(250, 400) is None

    def test_no_padding(self):
        board = CommunicationBoard(board_config(hit_padding_px=0.0), WIDTH, HEIGHT)

        assert board.tile_at(480, 200).index == 0
        assert board.tile_at(485, 200) is None

    def test_overlapping_padding_picks_first(self):
        board = CommunicationBoard(board_config(hit_padding_px=30.0), WIDTH, HEIGHT)

        assert board.tile_at(500, 200).index == 0

    def test_hover_follows_gaze(self, board):
        board.update(gaze(TOP_RIGHT), 0.0)
        assert board.hovered.label == "Needs"

        board.update(gaze((500, 400)), 0.1)
        assert board.hovered is None

    def test_invalid_gaze_clears_hover(self, board):
        board.update(gaze(TOP_LEFT), 0.0)
        board.update(gaze(TOP_LEFT, valid=False), 0.1)

        assert board.hovered is None


class TestSelection:
    """Tests for closure selection, navigation and speech."""

    def test_closure_opens_category(self, board, spoken):
        selected = board.update(gaze(TOP_LEFT, select=True), 0.0)

        assert selected.kind == TileKind.CATEGORY
        assert board.category.name == "Answers"
        assert board.title == "Answers"
        assert board.hovered is None
        assert [t.label for t in board.tiles] == ["Back", "Yes", "No", "I don't know"]
        assert board.tiles[0].kind == TileKind.BACK
        assert spoken == []

    def test_phrase_is_spoken(self, board, spoken):
        board.update(gaze(TOP_LEFT, select=True), 0.0)

        selected = board.update(gaze(TOP_RIGHT, select=True), 2.0)

        assert selected.kind == TileKind.PHRASE
        assert selected.label == "Yes"
        assert spoken == ["Yes"]
        assert board.last_message == "Yes"
        assert board.category.name == "Answers"

    def test_back_returns_to_main(self, board):
        board.update(gaze(TOP_LEFT, select=True), 0.0)

        selected = board.update(gaze(TOP_LEFT, select=True), 2.0)

        assert selected.kind == TileKind.BACK
        assert board.category is None
        assert board.title == ""
        assert board.tiles[0].label == "Answers"

    def test_emergency_phrases_flagged(self, board):
        board.select(3, 0.0)

        assert board.category.emergency
        assert [t.emergency for t in board.tiles] == [False, True, True]

    def test_closure_without_hover_does_nothing(self, board):
        assert board.update(gaze((500, 400), select=True), 0.0) is None
        assert board.update(gaze(TOP_LEFT, select=True, valid=False), 0.1) is None
        assert board.category is None

    def test_open_eyes_do_not_select(self, board):
        for i in range(100):
            assert board.update(gaze(TOP_LEFT), i * 0.1) is None

    def test_cooldown(self, board, spoken):
        board.update(gaze(TOP_LEFT, select=True), 0.0)

        assert board.update(gaze(TOP_RIGHT, select=True), 1.0) is None
        assert spoken == []

        assert board.update(gaze(TOP_RIGHT, select=True), 1.5).label == "Yes"
        assert spoken == ["Yes"]

    def test_cooldown_applies_to_direct_select(self, board):
        assert board.select(0, 10.0) is not None
        assert board.select(0, 10.5) is None
        assert board.category.name == "Answers"

    def test_select_out_of_range(self, board):
        with pytest.raises(IndexError):
            board.select(4, 0.0)

    def test_speech_failure_keeps_board(self):
        def broken(label):
            raise RuntimeError("no speech engine")

        board = CommunicationBoard(board_config(), WIDTH, HEIGHT, on_speak=broken)
        board.select(0, 0.0)

        assert board.select(1, 2.0).label == "Yes"
        assert board.last_message == "Yes"

    def test_reset(self, board):
        board.select(0, 0.0)
        board.select(1, 2.0)

        board.reset()

        assert board.category is None
        assert board.last_message == ""
        assert board.select(1, 2.1).label == "Needs"


class TestDwell:
    """Tests for optional dwell selection."""

    def test_disabled_by_default(self, board):
        board.update(gaze(TOP_LEFT), 0.0)

        assert board.update(gaze(TOP_LEFT), 10.0) is None

    def test_dwell_selects(self, spoken):
        board = CommunicationBoard(
            board_config(dwell_select=True, dwell_seconds=1.0, selection_cooldown=0.0),
            WIDTH,
            HEIGHT,
            on_speak=spoken.append,
        )

        assert board.update(gaze(TOP_RIGHT), 0.0) is None
        assert board.update(gaze(TOP_RIGHT), 0.5) is None
        assert board.update(gaze(TOP_RIGHT), 1.0).label == "Needs"

        # Hover restarts on the new screen
        assert board.update(gaze(TOP_RIGHT), 1.5) is None
        assert board.update(gaze(TOP_RIGHT), 2.0) is None
        assert board.update(gaze(TOP_RIGHT), 2.5).label == "I'm thirsty"
        assert spoken == ["I'm thirsty"]

    def test_moving_restarts_dwell(self):
        board = CommunicationBoard(
            board_config(dwell_select=True, dwell_seconds=1.0), WIDTH, HEIGHT
        )

        board.update(gaze(TOP_LEFT), 0.0)
        board.update(gaze(TOP_RIGHT), 0.8)

        assert board.update(gaze(TOP_RIGHT), 1.2) is None
        assert board.update(gaze(TOP_RIGHT), 1.9).label == "Needs"
