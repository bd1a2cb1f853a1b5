import logging
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import pytest  # noqa: E402

from mineassist.board import Board  # noqa: E402


@pytest.fixture
def one_mine_board() -> Board:
    """3x3 board, mine at (2, 2), (0, 0) revealed without cascading."""
    board = Board.from_mines(3, 3, [(2, 2)])
    board.reveal(0, 0, cascade=False)
    return board


@pytest.fixture
def flagged_clue_board() -> Board:
    """3x1 board: mine at (0, 0) flagged, the "1" at (1, 0) revealed, (2, 0) hidden."""
    board = Board.from_mines(3, 1, [(0, 0)])
    board.reveal(1, 0, cascade=False)
    board.toggle_flag(0, 0)
    return board


@pytest.fixture(autouse=True)
def restore_package_logger():
    """The CLI reconfigures the package logger; undo it between tests."""
    logger = logging.getLogger("mineassist")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
