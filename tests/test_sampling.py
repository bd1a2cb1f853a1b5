import time

import numpy as np
import pytest

from mineassist import sampling
from mineassist.board import Board
from mineassist.calculator import ProbabilityCalculator
from mineassist.constraints import count_unknowns
from mineassist.models import Method
from mineassist.sampling import sample_probabilities
from mineassist.utils import Deadline


def test_same_seed_replays_same_estimate(one_mine_board: Board) -> None:
    a = sample_probabilities(one_mine_board, np.random.default_rng(11), max_samples=2000)
    b = sample_probabilities(one_mine_board, np.random.default_rng(11), max_samples=2000)
    assert a == b


def test_converges_to_exact_marginals(one_mine_board: Board) -> None:
    result = sample_probabilities(
        one_mine_board, np.random.default_rng(0), max_samples=5000
    )
    assert result.drawn_samples == 5000
    assert result.valid_samples > 0
    assert not result.uniform
    for cell in [(1, 0), (0, 1), (1, 1)]:
        assert result.probabilities[cell] == 0.0
    for cell in [(2, 0), (2, 1), (0, 2), (1, 2), (2, 2)]:
        assert result.probabilities[cell] == pytest.approx(0.2, abs=0.1)


def test_budget_scales_with_unknowns(one_mine_board: Board) -> None:
    result = sample_probabilities(
        one_mine_board, np.random.default_rng(0), samples_per_unknown=10
    )
    assert result.drawn_samples == 80


def test_uniform_fallback_when_nothing_is_consistent() -> None:
    board = Board.from_mines(3, 1, [(0, 0)])
    board.reveal(1, 0, cascade=False)
    # The board now claims two mines, but the "1" allows only one.
    board.mine_count = 2
    result = sample_probabilities(board, np.random.default_rng(5), max_samples=500)
    assert result.valid_samples == 0
    assert result.uniform
    assert result.probabilities == {(0, 0): 1.0, (2, 0): 1.0}


def test_expired_deadline_stops_sampling(one_mine_board: Board) -> None:
    result = sample_probabilities(
        one_mine_board, np.random.default_rng(0), deadline=Deadline(0)
    )
    assert result.drawn_samples == 0
    assert result.uniform
    assert all(p == pytest.approx(1 / 8) for p in result.probabilities.values())


def test_no_unknowns() -> None:
    board = Board.from_mines(2, 2, [])
    board.reveal(0, 0)
    result = sample_probabilities(board, np.random.default_rng(0))
    assert result.probabilities == {}
    assert not result.uniform


def test_contradicted_number_without_hidden_neighbors_skips_sampling() -> None:
    board = Board.from_mines(5, 1, [(0, 0)])
    board.reveal(1, 0, cascade=False)
    board.toggle_flag(0, 0)
    board.toggle_flag(2, 0)
    result = sample_probabilities(board, np.random.default_rng(0))
    assert result.drawn_samples == 0
    assert result.uniform
    assert result.probabilities == {(3, 0): 0.0, (4, 0): 0.0}


class CountingRng:
    def __init__(self, seed: int) -> None:
        self._rng = np.random.default_rng(seed)
        self.calls = 0

    def random(self, size):
        self.calls += 1
        return self._rng.random(size)


def test_batches_are_capped_by_work(one_mine_board: Board, monkeypatch) -> None:
    # 8 unknowns and one clue over 3 cells: 2 * 8 + 3 cells of work per sample
    monkeypatch.setattr(sampling, "WORK_PER_BATCH", 19 * 10)
    rng = CountingRng(3)
    result = sample_probabilities(one_mine_board, rng, max_samples=200)
    assert result.drawn_samples == 200
    assert rng.calls == 20


def test_large_board_respects_time_budget() -> None:
    board = Board(60, 60, 300, seed=1)
    board.reveal(30, 30)
    calc = ProbabilityCalculator(
        enumeration_threshold=0, use_propagation=False, timeout_ms=100, seed=1
    )
    start = time.perf_counter()
    snapshot = calc.calculate(board)
    elapsed = time.perf_counter() - start

    assert snapshot.method is Method.MONTE_CARLO
    assert len(snapshot) == count_unknowns(board)
    assert elapsed < 1.0
