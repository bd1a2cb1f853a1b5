import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from mineassist.analysis import (  # noqa: E402
    compare_methods,
    format_probabilities,
    play_with_hints,
    run_hint_many_tests,
)
from mineassist.board import Board  # noqa: E402
from mineassist.calculator import ProbabilityCalculator  # noqa: E402
from mineassist.models import ProbabilitySnapshot  # noqa: E402


def test_format_probabilities(one_mine_board: Board) -> None:
    calc = ProbabilityCalculator()
    snapshot = calc.calculate(one_mine_board)
    text = format_probabilities(one_mine_board, snapshot, show_coords=False)
    rows = [row.split() for row in text.splitlines()]
    assert rows == [["0", "0", "20"], ["0", "0", "20"], ["20", "20", "20"]]


def test_format_probabilities_marks_flags_and_missing(flagged_clue_board: Board) -> None:
    text = format_probabilities(
        flagged_clue_board,
        ProbabilityCalculator().calculate(flagged_clue_board),
        show_coords=False,
    )
    assert text.split() == ["F", "1", "0"]

    board = Board.from_mines(2, 1, [(0, 0)])
    text = format_probabilities(board, ProbabilityCalculator().calculate(board.snapshot()))
    assert "?" not in text
    assert "?" in format_probabilities(board, ProbabilitySnapshot.empty())


def test_play_with_hints_finishes_small_game() -> None:
    board = Board(6, 6, 4, seed=2)
    payload = play_with_hints(board, ProbabilityCalculator(seed=2))

    assert payload["status"] in (-1, 0, 1)
    assert payload["hint_moves_count"] == len(payload["moves_sequence"]) - 1
    assert (
        payload["certain_moves_count"] + payload["guesses_count"]
        == payload["hint_moves_count"]
    )
    assert sum(payload["method_counts"].values()) >= payload["hint_moves_count"]
    assert payload["moves_sequence"][0] == (3, 3, "reveal")


def test_many_tests_statistics() -> None:
    results = run_hint_many_tests(5, 5, 3, runs=3, seed=10)
    assert 0.0 <= results["win_rate"] <= 1.0
    shares = results["exact_share"] + results["monte_carlo_share"]
    assert shares == pytest.approx(1.0) or shares == 0.0

    with pytest.raises(ValueError):
        run_hint_many_tests(5, 5, 3, runs=0)


def test_compare_methods(one_mine_board: Board) -> None:
    stats = compare_methods(one_mine_board, max_samples=5000, seed=1)
    assert stats["cells"] == 8.0
    assert stats["valid_samples"] > 0
    assert stats["max_abs_error"] < 0.1


def test_compare_methods_rejects_inconsistent_board() -> None:
    board = Board.from_mines(3, 1, [(0, 0)])
    board.reveal(1, 0, cascade=False)
    board.mine_count = 2
    with pytest.raises(ValueError):
        compare_methods(board)
