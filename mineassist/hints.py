"""Turn a probability snapshot into a ranked, justified move suggestion."""

import logging
from typing import List, Optional, Sequence

from .board import BoardView
from .constraints import validate_board, validate_coordinates
from .models import Action, MoveSuggestion, ProbabilitySnapshot

logger = logging.getLogger(__name__)


class HintEngine:
    """
    Move selection on top of a probability snapshot.

    Cells at probability 0 are certain reveals and cells at probability 1 are
    certain flags; both carry confidence 1.0. Without such a move the engine
    falls back to the least likely mine, scanning row by row so ties always
    resolve to the same cell.
    """

    # Information-gain weights
    CASCADE_SHARE = 0.3
    CASCADE_MAX_MEAN_NUMBER = 2
    CONSTRAINT_WEIGHT = 0.5
    REVEALED_NEIGHBOR_BONUS = 0.2
    # Highest score an interior cell can reach (8 hidden neighbors); frontier
    # cells are offset by it so they always outrank interior cells.
    FRONTIER_OFFSET = 1.0 + 8 * (CASCADE_SHARE + CONSTRAINT_WEIGHT)

    def generate_hint(
        self, board: BoardView, snapshot: ProbabilitySnapshot
    ) -> Optional[MoveSuggestion]:
        """
        Best single move for ``board``, or None when there is nothing to suggest.

        Never raises; internal failures are logged and yield None.
        """
        try:
            validate_board(board)
            if snapshot is None or snapshot.is_empty():
                return None

            safe_moves = self.find_safe_moves(board, snapshot)
            if safe_moves:
                return self.rank(safe_moves)[0]

            return self.find_best_probabilistic_move(board, snapshot)
        except Exception as exc:
            logger.warning("Hint generation failed: %s", exc, exc_info=True)
            return None

    def find_safe_moves(
        self, board: BoardView, snapshot: ProbabilitySnapshot
    ) -> List[MoveSuggestion]:
        """All certain moves, in row-major order."""
        safe_moves: List[MoveSuggestion] = []
        for y, row in enumerate(board.cells):
            for x, cell in enumerate(row):
                if cell.is_revealed or cell.is_flagged:
                    continue
                probability = snapshot.probabilities.get((x, y))
                if probability is None:
                    continue

                if probability == 0.0:
                    safe_moves.append(
                        MoveSuggestion(
                            cell=(x, y),
                            action=Action.REVEAL,
                            confidence=1.0,
                            reasoning=(
                                f"This cell has a {probability * 100:.2f}% chance of "
                                "containing a mine, making it safe to reveal."
                            ),
                            expected_information=self.information_gain(board, x, y),
                        )
                    )
                elif probability == 1.0:
                    # Flagging reveals nothing about other cells.
                    safe_moves.append(
                        MoveSuggestion(
                            cell=(x, y),
                            action=Action.FLAG,
                            confidence=1.0,
                            reasoning=(
                                f"This cell has a {probability * 100:.2f}% chance of "
                                "containing a mine, making it certain to be a mine."
                            ),
                            expected_information=0.0,
                        )
                    )
        return safe_moves

    def find_best_probabilistic_move(
        self, board: BoardView, snapshot: ProbabilitySnapshot
    ) -> Optional[MoveSuggestion]:
        """
        Reveal suggestion for the hidden cell least likely to be a mine.

        Cells certain to be mines are never suggested. The first minimum in
        row-major order wins.
        """
        best: Optional[MoveSuggestion] = None
        lowest = 1.0

        for y, row in enumerate(board.cells):
            for x, cell in enumerate(row):
                if cell.is_revealed or cell.is_flagged:
                    continue
                probability = snapshot.probabilities.get((x, y))
                if probability is None or probability >= lowest:
                    continue

                lowest = probability
                best = MoveSuggestion(
                    cell=(x, y),
                    action=Action.REVEAL,
                    confidence=max(0.0, 1.0 - probability),
                    reasoning=(
                        "This is the safest available move with a "
                        f"{probability * 100:.2f}% chance of containing a mine."
                    ),
                    expected_information=self.information_gain(board, x, y),
                )

        return best

    def information_gain(self, board: BoardView, x: int, y: int) -> float:
        """
        Heuristic value of revealing (x, y).

        Counts the cell itself, a likely flood-fill share when the surrounding
        numbers are low, the constraint a new number would add over its hidden
        neighbors, and a bonus per revealed neighbor. Frontier cells (any revealed
        neighbor) always score above interior cells.

        Raises:
            InvalidInputError: If (x, y) lies outside the board.
        """
        validate_coordinates(board, x, y)
        cell = board.get_cell(x, y)
        if cell is None or cell.is_revealed or cell.is_flagged:
            return 0.0

        adjacent = board.adjacent_cells(x, y)
        hidden = [c for c in adjacent if not c.is_revealed and not c.is_flagged]
        revealed = [c for c in adjacent if c.is_revealed]

        if revealed:
            mean_number = sum(c.adjacent_mines for c in revealed) / len(revealed)
        else:
            mean_number = board.mine_count / (board.width * board.height)

        potential_reveals = 1.0
        if mean_number < self.CASCADE_MAX_MEAN_NUMBER:
            potential_reveals += len(hidden) * self.CASCADE_SHARE

        constraint_value = len(hidden) * self.CONSTRAINT_WEIGHT
        revealed_bonus = (
            sum(1 for c in revealed if not c.is_mine) * self.REVEALED_NEIGHBOR_BONUS
        )
        score = potential_reveals + constraint_value + revealed_bonus
        if revealed:
            score += self.FRONTIER_OFFSET
        return score

    def rank(self, moves: Sequence[MoveSuggestion]) -> List[MoveSuggestion]:
        """
        Stable sort: confidence desc, expected information desc, reveal before flag.
        """
        return sorted(
            moves,
            key=lambda m: (
                -m.confidence,
                -m.expected_information,
                m.action != Action.REVEAL,
            ),
        )
