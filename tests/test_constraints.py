import pytest

from mineassist.board import Board
from mineassist.constraints import (
    Constraint,
    count_unknowns,
    extract_clues,
    extract_constraints,
    list_unknowns,
    validate_coordinates,
)
from mineassist.errors import InvalidInputError


def test_extract_constraints_one_mine_board(one_mine_board: Board) -> None:
    constraints, unknowns = extract_constraints(one_mine_board)
    assert constraints == [Constraint(frozenset({(1, 0), (0, 1), (1, 1)}), 0, (0, 0))]
    assert len(unknowns) == 8
    assert (0, 0) not in unknowns
    assert unknowns[0] == (1, 0)


def test_flags_reduce_required_count(flagged_clue_board: Board) -> None:
    constraints, unknowns = extract_constraints(flagged_clue_board)
    assert unknowns == [(2, 0)]
    assert constraints == [Constraint(frozenset({(2, 0)}), 0, (1, 0))]


def test_required_count_is_clamped() -> None:
    board = Board.from_mines(3, 1, [(0, 0)])
    board.reveal(1, 0, cascade=False)
    board.toggle_flag(0, 0)
    board.toggle_flag(2, 0)
    # Two flags around a "1": nothing hidden is left, so no constraint.
    constraints, unknowns = extract_constraints(board)
    assert constraints == []
    assert unknowns == []

    # A "2" next to a revealed mine has only one hidden neighbor left.
    board = Board.from_mines(3, 1, [(0, 0), (2, 0)])
    board.reveal(1, 0, cascade=False)
    board.reveal(0, 0)
    constraints, unknowns = extract_constraints(board)
    assert unknowns == [(2, 0)]
    assert constraints == [Constraint(frozenset({(2, 0)}), 1, (1, 0))]


def test_constraint_counts_never_negative() -> None:
    board = Board.from_mines(3, 2, [(0, 0)])
    board.reveal(2, 1, cascade=False)  # shows 0
    board.toggle_flag(1, 0)
    constraints, _ = extract_constraints(board)
    assert [c.mine_count for c in constraints] == [0]


def test_extract_clues_keeps_raw_counts(flagged_clue_board: Board) -> None:
    clues = extract_clues(flagged_clue_board)
    assert len(clues) == 1
    clue = clues[0]
    assert clue.source == (1, 0)
    assert clue.hidden == ((2, 0),)
    assert clue.known_mines == 1
    assert clue.adjacent_mines == 1


def test_unknown_listing(one_mine_board: Board) -> None:
    assert count_unknowns(one_mine_board) == 8
    assert list_unknowns(one_mine_board)[-1] == (2, 2)


@pytest.mark.parametrize("bad", [None, object(), "board"])
def test_invalid_board_is_rejected(bad: object) -> None:
    with pytest.raises(InvalidInputError):
        extract_constraints(bad)  # type: ignore[arg-type]


def test_invalid_input_is_a_value_error(one_mine_board: Board) -> None:
    with pytest.raises(ValueError):
        validate_coordinates(one_mine_board, 3, 0)
    validate_coordinates(one_mine_board, 2, 2)
