import pytest

from mineassist.board import Board, BoardSnapshot, BoardView, GameState


def test_first_reveal_is_safe_with_neighborhood_rule() -> None:
    for seed in range(10):
        board = Board(9, 9, 10, seed=seed)
        status, payload = board.reveal(4, 4)
        assert status in (0, 1)
        assert board.get_cell(4, 4).adjacent_mines == 0
        assert all(not c.is_mine for c in board.adjacent_cells(4, 4))
        assert board.game_state in (GameState.PLAYING, GameState.WON)


def test_same_seed_places_same_mines() -> None:
    a = Board(8, 8, 12, seed=42)
    b = Board(8, 8, 12, seed=42)
    a.reveal(0, 0)
    b.reveal(0, 0)
    mines_a = {(c.x, c.y) for row in a.cells for c in row if c.is_mine}
    mines_b = {(c.x, c.y) for row in b.cells for c in row if c.is_mine}
    assert mines_a == mines_b
    assert len(mines_a) == 12


def test_reveal_mine_loses_and_reports_all_mines() -> None:
    board = Board.from_mines(3, 3, [(1, 1), (2, 2)])
    status, payload = board.reveal(1, 1)
    assert status == -1
    assert payload["all_mines"] == frozenset({(1, 1), (2, 2)})
    assert board.game_state is GameState.LOST
    assert board.reveal(0, 0) == (0, {})


def test_flood_fill_and_win() -> None:
    board = Board.from_mines(3, 3, [(2, 2)])
    status, payload = board.reveal(0, 0)
    assert status == 1
    assert len(payload["revealed_cells"]) == 8
    assert board.game_state is GameState.WON


def test_no_cascade_reveals_single_cell(one_mine_board: Board) -> None:
    revealed = [(c.x, c.y) for row in one_mine_board.cells for c in row if c.is_revealed]
    assert revealed == [(0, 0)]


def test_flags_stop_flood_fill_and_count_against_remaining() -> None:
    board = Board.from_mines(4, 1, [(3, 0)])
    assert board.toggle_flag(1, 0)
    assert board.remaining_mines() == 0
    board.reveal(0, 0)
    assert not board.get_cell(1, 0).is_revealed
    assert not board.get_cell(2, 0).is_revealed
    assert board.toggle_flag(1, 0)
    assert board.remaining_mines() == 1


def test_toggle_flag_on_revealed_cell_is_refused(one_mine_board: Board) -> None:
    assert not one_mine_board.toggle_flag(0, 0)
    assert not one_mine_board.toggle_flag(5, 5)


def test_invalid_construction() -> None:
    with pytest.raises(ValueError):
        Board(0, 3, 1)
    with pytest.raises(ValueError):
        Board(3, 3, 9)
    with pytest.raises(ValueError):
        Board(3, 3, 1, mine_placement="anywhere")
    with pytest.raises(ValueError):
        Board.from_mines(3, 3, [(3, 0)])
    with pytest.raises(ValueError):
        Board(3, 3, 1).reveal(-1, 0)


def test_adjacent_cells_are_clipped_at_edges() -> None:
    board = Board(4, 3, 0)
    assert len(board.adjacent_cells(0, 0)) == 3
    assert len(board.adjacent_cells(1, 0)) == 5
    assert len(board.adjacent_cells(1, 1)) == 8
    assert board.adjacent_cells(9, 9) == []
    assert board.get_cell(4, 0) is None


def test_snapshot_hides_ground_truth(flagged_clue_board: Board) -> None:
    snap = flagged_clue_board.snapshot()
    assert isinstance(snap, BoardSnapshot)
    assert isinstance(snap, BoardView)
    assert snap.get_cell(0, 0).is_flagged
    assert not snap.get_cell(0, 0).is_mine
    assert snap.get_cell(1, 0).adjacent_mines == 1
    assert snap.remaining_mines() == 0
    assert len(snap.adjacent_cells(1, 0)) == 2
    assert snap.game_state is GameState.PLAYING


def test_format_board_marks_hidden_cells(one_mine_board: Board) -> None:
    text = one_mine_board.format_board(marks={(1, 1): "?"})
    assert "?" in text
    assert "M" not in text
    assert "M" in one_mine_board.format_board(reveal_all=True)
