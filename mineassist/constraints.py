"""Turn revealed numbered cells into local mine-count constraints."""

from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from .board import BoardView
from .errors import InvalidInputError
from .models import Coord


@dataclass(frozen=True)
class Constraint:
    """
    ``mine_count`` mines lie among ``cells`` (hidden, unflagged coordinates).

    ``source`` is the revealed cell the constraint was read from.
    """

    cells: FrozenSet[Coord]
    mine_count: int
    source: Optional[Coord] = None


@dataclass(frozen=True)
class Clue:
    """
    The unclamped view of one revealed number, used to validate sampled layouts.

    A layout is consistent with the clue iff ``known_mines`` plus the mines it
    puts on ``hidden`` equals ``adjacent_mines``.
    """

    source: Coord
    hidden: Tuple[Coord, ...]
    known_mines: int
    adjacent_mines: int


def validate_board(board: object) -> BoardView:
    """
    Check that ``board`` exposes a usable query interface.

    Raises:
        InvalidInputError: If the board is missing, of the wrong shape, or
            does not implement :class:`BoardView`.
    """
    if board is None:
        raise InvalidInputError("Board is None.")
    if not isinstance(board, BoardView):
        raise InvalidInputError(
            f"Object of type {type(board).__name__} does not implement the board interface."
        )
    width, height = board.width, board.height
    if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
        raise InvalidInputError(f"Invalid board dimensions: {width!r} x {height!r}.")
    cells = board.cells
    if len(cells) != height or any(len(row) != width for row in cells):
        raise InvalidInputError("Cell grid does not match the board dimensions.")
    return board


def validate_coordinates(board: BoardView, x: int, y: int) -> None:
    """
    Raises:
        InvalidInputError: If (x, y) lies outside the board.
    """
    if not (0 <= x < board.width and 0 <= y < board.height):
        raise InvalidInputError(f"Invalid cell coordinates: ({x}, {y}).")


def extract_constraints(board: BoardView) -> Tuple[List[Constraint], List[Coord]]:
    """
    Scan the board once and build the constraint system.

    Returns:
        Tuple of (constraints, unknowns) where unknowns are the hidden,
        unflagged coordinates in row-major order.

    Raises:
        InvalidInputError: If the board interface is unusable.
    """
    validate_board(board)
    constraints: List[Constraint] = []
    unknowns: List[Coord] = []

    for y, row in enumerate(board.cells):
        for x, cell in enumerate(row):
            if not cell.is_revealed:
                if not cell.is_flagged:
                    unknowns.append((x, y))
                continue
            if cell.is_mine:
                continue

            hidden: List[Coord] = []
            flagged = 0
            for nbr in board.adjacent_cells(x, y):
                if nbr.is_flagged:
                    flagged += 1
                elif not nbr.is_revealed:
                    hidden.append((nbr.x, nbr.y))

            if not hidden:
                continue

            required = max(0, min(cell.adjacent_mines - flagged, len(hidden)))
            constraints.append(Constraint(frozenset(hidden), required, (x, y)))

    return constraints, unknowns


def extract_clues(board: BoardView) -> List[Clue]:
    """
    Collect every revealed non-mine cell with its raw neighbor bookkeeping.

    Unlike :func:`extract_constraints`, cells without hidden neighbors are kept
    and counts are not clamped, so an inconsistent flag shows up as a clue no
    layout can satisfy.
    """
    validate_board(board)
    clues: List[Clue] = []
    for y, row in enumerate(board.cells):
        for x, cell in enumerate(row):
            if not cell.is_revealed or cell.is_mine:
                continue
            hidden: List[Coord] = []
            known = 0
            for nbr in board.adjacent_cells(x, y):
                if nbr.is_flagged or (nbr.is_revealed and nbr.is_mine):
                    known += 1
                elif not nbr.is_revealed:
                    hidden.append((nbr.x, nbr.y))
            clues.append(Clue((x, y), tuple(hidden), known, cell.adjacent_mines))
    return clues


def list_unknowns(board: BoardView) -> List[Coord]:
    """Hidden, unflagged coordinates in row-major order."""
    return [
        (x, y)
        for y, row in enumerate(board.cells)
        for x, cell in enumerate(row)
        if not cell.is_revealed and not cell.is_flagged
    ]


def count_unknowns(board: BoardView) -> int:
    return len(list_unknowns(board))
