"""Reference Minesweeper board and the read-only query interface the engine consumes."""

import random
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import (
    Deque,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Set,
    Tuple,
    runtime_checkable,
)

from .utils import get_neighborhoods


class GameState(str, Enum):
    READY = "ready"
    PLAYING = "playing"
    WON = "won"
    LOST = "lost"


@dataclass
class Cell:
    """One board square. Owned and mutated by the board only."""

    x: int
    y: int
    is_mine: bool = False
    is_revealed: bool = False
    is_flagged: bool = False
    adjacent_mines: int = 0


@runtime_checkable
class BoardView(Protocol):
    """
    Read-only board queries consumed by the probability engine and hint selector.

    ``cells`` is indexed ``[y][x]``. ``adjacent_cells`` returns the up-to-8
    neighbors of a coordinate, clipped at the edges. ``remaining_mines`` is the
    total mine count minus the number of flags currently placed.
    """

    width: int
    height: int
    mine_count: int

    @property
    def cells(self) -> Sequence[Sequence[Cell]]: ...

    @property
    def game_state(self) -> GameState: ...

    def get_cell(self, x: int, y: int) -> Optional[Cell]: ...

    def adjacent_cells(self, x: int, y: int) -> List[Cell]: ...

    def remaining_mines(self) -> int: ...


class Board:
    """Minesweeper board with first-click safety, flagging and flood-fill reveals."""

    def __init__(
        self,
        width: int,
        height: int,
        mine_count: int,
        mine_placement: str = "safe_neighborhood_rule",
        seed: Optional[int] = None,
    ) -> None:
        """
        Initialize an empty board; mines are placed on the first reveal.

        Args:
            width: Board width (number of columns), must be > 0.
            height: Board height (number of rows), must be > 0.
            mine_count: Total number of mines to place, must be >= 0.
            mine_placement: Mine placement rule; one of
                {"safe_first_action_rule", "safe_neighborhood_rule"}.
            seed: Optional seed for the placement random source.

        Raises:
            ValueError: If dimensions are invalid or the rule is unrecognized.
        """
        if width <= 0 or height <= 0:
            raise ValueError("Width and height must be positive.")
        if mine_count < 0:
            raise ValueError("mine_count must be non-negative.")
        if mine_count > width * height - 1:
            raise ValueError("mine_count leaves no safe cell for the first reveal.")
        if mine_placement not in ("safe_first_action_rule", "safe_neighborhood_rule"):
            raise ValueError(
                'mine_placement must be "safe_first_action_rule" '
                'or "safe_neighborhood_rule".'
            )

        self.width: int = width
        self.height: int = height
        self.mine_count: int = mine_count
        self.mine_placement: str = mine_placement

        self._rng = random.Random(seed)
        self._cells: List[List[Cell]] = [
            [Cell(x, y) for x in range(width)] for y in range(height)
        ]
        self._neighborhoods: Dict[
            Tuple[int, int], Tuple[Tuple[int, int], ...]
        ] = get_neighborhoods(width, height)

        self.mines_placed: bool = False
        self.unrevealed_safe_count: int = width * height - mine_count
        self._state: GameState = GameState.READY

    @classmethod
    def from_mines(
        cls, width: int, height: int, mines: Iterable[Tuple[int, int]]
    ) -> "Board":
        """
        Build a board with a fixed mine layout (no first-click relocation).

        Raises:
            ValueError: If a mine lies outside the board.
        """
        mine_set = set(mines)
        board = cls(width, height, 0)
        for mx, my in mine_set:
            if not board.is_valid_position(mx, my):
                raise ValueError(f"Mine ({mx}, {my}) is outside the board.")
            board._cells[my][mx].is_mine = True
        board.mine_count = len(mine_set)
        board.unrevealed_safe_count = width * height - len(mine_set)
        board._compute_adjacent_counts()
        board.mines_placed = True
        return board

    # -------------------------------------------------------------------------
    # Query interface
    # -------------------------------------------------------------------------

    @property
    def cells(self) -> List[List[Cell]]:
        return self._cells

    @property
    def game_state(self) -> GameState:
        return self._state

    def is_valid_position(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def neighbors(self, x: int, y: int) -> Tuple[Tuple[int, int], ...]:
        """Return precomputed neighbor coordinates for a cell."""
        return self._neighborhoods[(x, y)]

    def get_cell(self, x: int, y: int) -> Optional[Cell]:
        if not self.is_valid_position(x, y):
            return None
        return self._cells[y][x]

    def adjacent_cells(self, x: int, y: int) -> List[Cell]:
        if not self.is_valid_position(x, y):
            return []
        return [self._cells[ny][nx] for nx, ny in self.neighbors(x, y)]

    def remaining_mines(self) -> int:
        flagged = sum(1 for row in self._cells for c in row if c.is_flagged)
        return self.mine_count - flagged

    def snapshot(self) -> "BoardSnapshot":
        """Return an immutable, picklable copy with hidden mines blanked out."""
        return BoardSnapshot.from_board(self)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def place_mines(self, first_x: int, first_y: int) -> None:
        """
        Place mines (one-time), respecting the selected first-move safety rule.

        Raises:
            ValueError: If mines were already placed or cannot be placed.
        """
        if self.mines_placed:
            raise ValueError("Mines are already placed.")

        if self.mine_placement == "safe_first_action_rule":
            # Only the first clicked cell is guaranteed safe.
            safe: Set[Tuple[int, int]] = {(first_x, first_y)}
        else:
            # Safe zone = first click + its neighbors.
            safe = set(self.neighbors(first_x, first_y)) | {(first_x, first_y)}

        eligible: List[Tuple[int, int]] = [
            (x, y)
            for y in range(self.height)
            for x in range(self.width)
            if (x, y) not in safe
        ]
        if self.mine_count > len(eligible):
            raise ValueError(
                f"Cannot place {self.mine_count} mines outside the safe zone "
                f"of ({first_x}, {first_y})."
            )

        for mx, my in self._rng.sample(eligible, self.mine_count):
            self._cells[my][mx].is_mine = True

        self._compute_adjacent_counts()
        self.mines_placed = True

    def _compute_adjacent_counts(self) -> None:
        """Populate every cell with its adjacent mine count."""
        for row in self._cells:
            for cell in row:
                cell.adjacent_mines = sum(
                    1
                    for nx, ny in self.neighbors(cell.x, cell.y)
                    if self._cells[ny][nx].is_mine
                )

    def flood_fill(self, x: int, y: int) -> List[Tuple[int, int, int]]:
        """
        Reveal the connected region starting at (x, y); flagged cells stop the fill.

        Returns:
            Newly revealed cells as (x, y, adjacent_mines).
        """
        frontier: Deque[Tuple[int, int]] = deque([(x, y)])
        visited: Set[Tuple[int, int]] = {(x, y)}
        revealed_cells: List[Tuple[int, int, int]] = []

        while frontier:
            cx, cy = frontier.popleft()
            cell = self._cells[cy][cx]
            if cell.is_revealed or cell.is_flagged:
                continue

            cell.is_revealed = True
            self.unrevealed_safe_count -= 1
            revealed_cells.append((cx, cy, cell.adjacent_mines))

            if cell.adjacent_mines == 0:
                for nx, ny in self.neighbors(cx, cy):
                    nbr = self._cells[ny][nx]
                    if (nx, ny) in visited or nbr.is_revealed or nbr.is_mine:
                        continue
                    visited.add((nx, ny))
                    frontier.append((nx, ny))

        return revealed_cells

    def reveal(
        self, x: int, y: int, cascade: bool = True
    ) -> Tuple[int, Dict[str, object]]:
        """
        Reveal a single cell and return a status code plus payload.

        Args:
            x: X-coordinate of the cell to reveal.
            y: Y-coordinate of the cell to reveal.
            cascade: If False, a zero cell does not flood-fill its neighbors.

        Returns:
            Tuple of (status, payload) where status is:
                - -1: Mine hit (loss)
                - 0: Non-terminal reveal (or no-op)
                - 1: Win (all safe cells revealed)

            Payload contains:
                - For status 0 or 1: {"revealed_cells": List[(x, y, adjacent)]}
                - For status -1: {"all_mines": FrozenSet[(x, y)]}

        Raises:
            ValueError: If coordinates are out of bounds.
        """
        if not self.is_valid_position(x, y):
            raise ValueError("Cell coordinates are outside the board.")

        if self._state in (GameState.WON, GameState.LOST):
            return 0, {}

        cell = self._cells[y][x]
        if cell.is_revealed or cell.is_flagged:
            return 0, {}

        if not self.mines_placed:
            self.place_mines(x, y)
        self._state = GameState.PLAYING

        if cell.is_mine:
            cell.is_revealed = True
            self._state = GameState.LOST
            all_mines: FrozenSet[Tuple[int, int]] = frozenset(
                (c.x, c.y) for row in self._cells for c in row if c.is_mine
            )
            return -1, {"all_mines": all_mines}

        if cascade:
            revealed_cells = self.flood_fill(x, y)
        else:
            cell.is_revealed = True
            self.unrevealed_safe_count -= 1
            revealed_cells = [(x, y, cell.adjacent_mines)]

        if self.unrevealed_safe_count == 0:
            self._state = GameState.WON
            return 1, {"revealed_cells": revealed_cells}

        return 0, {"revealed_cells": revealed_cells}

    def toggle_flag(self, x: int, y: int) -> bool:
        """
        Flag or unflag a hidden cell.

        Returns:
            True if the flag state changed.
        """
        cell = self.get_cell(x, y)
        if cell is None or cell.is_revealed:
            return False
        if self._state in (GameState.WON, GameState.LOST):
            return False
        cell.is_flagged = not cell.is_flagged
        return True

    # -------------------------------------------------------------------------
    # Display methods
    # -------------------------------------------------------------------------

    _ANSI_RESET = "\033[0m"
    _ANSI_COORD = "\033[96m"
    _ANSI_MINE = "\033[91m"

    def _c(self, s: str) -> str:
        """Wrap string in coordinate color."""
        return f"{self._ANSI_COORD}{s}{self._ANSI_RESET}"

    def _m(self, s: str) -> str:
        """Wrap string in mine color (red)."""
        return f"{self._ANSI_MINE}{s}{self._ANSI_RESET}"

    def format_board(
        self,
        reveal_all: bool = False,
        marks: Optional[Mapping[Tuple[int, int], str]] = None,
    ) -> str:
        """
        Render the board as a multi-line string for terminal display.

        Args:
            reveal_all: If True, show mines and all underlying values.
            marks: Optional single-character overrides for hidden cells,
                e.g. a hint target.

        Returns:
            A formatted multi-line string with coordinate labels and the board grid.
        """
        w, h = self.width, self.height
        marks = marks or {}

        def cell_str(x: int, y: int) -> str:
            cell = self._cells[y][x]
            if reveal_all or cell.is_revealed:
                if cell.is_mine:
                    return self._m("M")
                return str(cell.adjacent_mines)
            if cell.is_flagged:
                return "F"
            return marks.get((x, y), ".")

        header_cells = " ".join(f"{x:2d}" for x in range(w))
        out = [self._c("   ") + self._c(header_cells)]
        out.append(self._c("   " + "-" * (3 * w - 1)))

        for y in range(h):
            row_cells = " ".join(f" {cell_str(x, y)}" for x in range(w))
            out.append(self._c(f"{y:2d} ") + self._c("|") + row_cells)

        return "\n".join(out)


@dataclass(frozen=True)
class BoardSnapshot:
    """
    Frozen copy of a board's visible state, safe to ship to a worker process.

    Hidden cells carry ``is_mine=False`` and ``adjacent_mines=0`` so the ground
    truth never leaves the owning board.
    """

    width: int
    height: int
    mine_count: int
    grid: Tuple[Tuple[Cell, ...], ...]
    state: GameState
    flagged_count: int

    @classmethod
    def from_board(cls, board: BoardView) -> "BoardSnapshot":
        rows: List[Tuple[Cell, ...]] = []
        flagged = 0
        for row in board.cells:
            out_row: List[Cell] = []
            for c in row:
                if c.is_flagged:
                    flagged += 1
                if c.is_revealed:
                    out_row.append(replace(c))
                else:
                    out_row.append(
                        Cell(c.x, c.y, is_mine=False, is_revealed=False,
                             is_flagged=c.is_flagged, adjacent_mines=0)
                    )
            rows.append(tuple(out_row))
        return cls(
            width=board.width,
            height=board.height,
            mine_count=board.mine_count,
            grid=tuple(rows),
            state=board.game_state,
            flagged_count=flagged,
        )

    @property
    def cells(self) -> Tuple[Tuple[Cell, ...], ...]:
        return self.grid

    @property
    def game_state(self) -> GameState:
        return self.state

    def get_cell(self, x: int, y: int) -> Optional[Cell]:
        if 0 <= x < self.width and 0 <= y < self.height:
            return self.grid[y][x]
        return None

    def adjacent_cells(self, x: int, y: int) -> List[Cell]:
        if self.get_cell(x, y) is None:
            return []
        nbrs = get_neighborhoods(self.width, self.height)[(x, y)]
        return [self.grid[ny][nx] for nx, ny in nbrs]

    def remaining_mines(self) -> int:
        return self.mine_count - self.flagged_count
