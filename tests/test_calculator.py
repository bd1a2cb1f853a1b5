import logging
import pickle
from concurrent.futures import Executor, Future, ThreadPoolExecutor

import pytest

from mineassist.board import Board
from mineassist.calculator import (
    ParallelProbabilityCalculator,
    ProbabilityCalculator,
    SolverConfig,
)
from mineassist.inference import WorkerReply, WorkerRequest, solve_request, WORKER
from mineassist.models import Method, ProbabilitySnapshot


class PendingExecutor(Executor):
    """Accepts work and never runs it."""

    def __init__(self) -> None:
        self.futures = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.futures.append(future)
        return future


def test_single_mine_probabilities_sum_to_one(one_mine_board: Board) -> None:
    snapshot = ProbabilityCalculator().calculate(one_mine_board)
    assert snapshot.method is Method.EXACT
    assert snapshot.strategy == "enumeration"
    assert len(snapshot) == 8
    assert sum(snapshot.probabilities.values()) == pytest.approx(1.0)


def test_no_unknowns_gives_empty_snapshot() -> None:
    board = Board.from_mines(2, 2, [])
    board.reveal(0, 0)
    snapshot = ProbabilityCalculator().calculate(board)
    assert snapshot.is_empty()


def test_flagged_neighbor_gives_exact_zero(flagged_clue_board: Board) -> None:
    snapshot = ProbabilityCalculator().calculate(flagged_clue_board)
    assert snapshot.get(2, 0) == 0.0
    assert (0, 0) not in snapshot
    assert (1, 0) not in snapshot


def test_large_board_uses_propagation() -> None:
    board = Board(9, 9, 10, seed=3)
    board.reveal(0, 0)
    calc = ProbabilityCalculator(enumeration_threshold=0)
    snapshot = calc.calculate(board)
    assert snapshot.method is Method.EXACT
    assert snapshot.strategy == "propagation"
    assert all(0.0 <= p <= 1.0 for p in snapshot.probabilities.values())


def test_seeded_monte_carlo_is_deterministic(one_mine_board: Board) -> None:
    kwargs = dict(enumeration_threshold=0, use_propagation=False, seed=9)
    a = ProbabilityCalculator(**kwargs).calculate(one_mine_board)
    b = ProbabilityCalculator(**kwargs).calculate(one_mine_board)
    assert a.method is Method.MONTE_CARLO
    assert a.strategy == "sampling"
    assert a.probabilities == b.probabilities


def test_inconsistent_board_falls_back_to_uniform() -> None:
    board = Board.from_mines(3, 1, [(0, 0)])
    board.reveal(1, 0, cascade=False)
    board.mine_count = 2
    snapshot = ProbabilityCalculator(seed=1).calculate(board)
    assert snapshot.method is Method.MONTE_CARLO
    assert snapshot.strategy == "uniform"
    assert snapshot.probabilities == {(0, 0): 1.0, (2, 0): 1.0}


def test_timeout_falls_back_to_monte_carlo(one_mine_board: Board) -> None:
    calc = ProbabilityCalculator(timeout_ms=1e-6, seed=0)
    snapshot = calc.calculate(one_mine_board)
    assert snapshot.method is Method.MONTE_CARLO
    assert len(snapshot) == 8
    assert calc.last_method() is Method.MONTE_CARLO


def test_invalid_board_gives_empty_snapshot(caplog: pytest.LogCaptureFixture) -> None:
    calc = ProbabilityCalculator()
    with caplog.at_level(logging.WARNING, logger="mineassist"):
        snapshot = calc.calculate(None)  # type: ignore[arg-type]
    assert snapshot.is_empty()
    assert snapshot.method is Method.MONTE_CARLO
    assert "rejected" in caplog.text


def test_current_snapshot_and_generations(one_mine_board: Board) -> None:
    calc = ProbabilityCalculator()
    assert calc.current_snapshot is None
    assert calc.last_method() is Method.EXACT

    first = calc.calculate(one_mine_board)
    calc.update(one_mine_board)
    second = calc.current_snapshot
    assert second is not None
    assert second.generation == first.generation + 1

    # A slow calculation that finishes late must not replace a newer result.
    calc._store(ProbabilitySnapshot({}, Method.MONTE_CARLO, generation=first.generation))
    assert calc.current_snapshot is second


def test_set_timeout(caplog: pytest.LogCaptureFixture) -> None:
    calc = ProbabilityCalculator()
    assert calc.timeout_ms == 5000
    calc.set_timeout(250)
    assert calc.timeout_ms == 250
    with caplog.at_level(logging.WARNING, logger="mineassist"):
        calc.set_timeout(0)
        calc.set_timeout(-10)
    assert calc.timeout_ms == 250
    assert "Invalid timeout" in caplog.text


def test_point_probability(one_mine_board: Board) -> None:
    calc = ProbabilityCalculator()
    assert calc.point_probability(one_mine_board, 2, 2) == pytest.approx(0.2)
    assert calc.point_probability(one_mine_board, 1, 1) == 0.0
    assert calc.point_probability(one_mine_board, 0, 0) == 0.0
    assert calc.point_probability(one_mine_board, 7, 7) == 0.0


def test_invalid_config() -> None:
    with pytest.raises(ValueError):
        SolverConfig(timeout_ms=0)
    with pytest.raises(ValueError):
        SolverConfig(max_samples=0)


# -----------------------------------------------------------------------------
# Delegation
# -----------------------------------------------------------------------------


def big_board() -> Board:
    return Board.from_mines(11, 10, [(10, 9), (5, 5)])


def test_small_boards_are_not_delegated(one_mine_board: Board) -> None:
    executor = PendingExecutor()
    with ParallelProbabilityCalculator(executor=executor) as calc:
        assert not calc.should_delegate(one_mine_board)
        snapshot = calc.calculate(one_mine_board)
    assert snapshot.strategy == "enumeration"
    assert executor.futures == []


def test_worker_timeout_falls_back_in_process() -> None:
    executor = PendingExecutor()
    calc = ParallelProbabilityCalculator(executor=executor, timeout_ms=50)
    board = big_board()
    assert calc.should_delegate(board)

    snapshot = calc.calculate(board)
    assert len(executor.futures) == 1
    assert executor.futures[0].cancelled()
    assert calc.pending_count == 0
    assert snapshot.strategy == "propagation"
    assert len(snapshot) == 110


def test_delegated_calculation_uses_worker_reply() -> None:
    with ThreadPoolExecutor(max_workers=1) as executor:
        calc = ParallelProbabilityCalculator(executor=executor, seed=4)
        snapshot = calc.calculate(big_board())
    assert snapshot.method is Method.EXACT
    assert snapshot.strategy == "propagation"
    assert snapshot.generation == 1
    assert calc.pending_count == 0


class ShutDownExecutor(Executor):
    def submit(self, fn, /, *args, **kwargs):
        raise RuntimeError("cannot schedule new futures after shutdown")


def test_failed_submit_disables_delegation() -> None:
    calc = ParallelProbabilityCalculator(executor=ShutDownExecutor())
    board = big_board()
    assert calc.delegation_available

    snapshot = calc.calculate(board)
    assert snapshot.strategy == "propagation"
    assert not calc.delegation_available
    assert not calc.should_delegate(board)


def test_outstanding_limit_disables_delegation() -> None:
    calc = ParallelProbabilityCalculator(executor=PendingExecutor())
    calc._pending["a"] = Future()
    calc._pending["b"] = Future()
    assert not calc.should_delegate(big_board())


def test_unknown_reply_is_discarded(caplog: pytest.LogCaptureFixture) -> None:
    calc = ParallelProbabilityCalculator(executor=PendingExecutor())
    reply = WorkerReply("calc_missing", snapshot=ProbabilitySnapshot.empty())
    with caplog.at_level(logging.WARNING, logger="mineassist"):
        assert calc._accept_reply(reply) is None
    assert "unknown calculation" in caplog.text


def test_worker_context_never_exceeds_worker_limits() -> None:
    calc = ParallelProbabilityCalculator(executor=PendingExecutor(), enumeration_threshold=30)
    ctx = calc.worker_context()
    assert ctx.enumeration_threshold == WORKER.enumeration_threshold
    assert ctx.max_samples == WORKER.max_samples
    calc = ParallelProbabilityCalculator(executor=PendingExecutor(), enumeration_threshold=5)
    assert calc.worker_context().enumeration_threshold == 5


def test_solve_request_runs_on_snapshot(one_mine_board: Board) -> None:
    request = WorkerRequest(
        request_id="calc_1",
        board=one_mine_board.snapshot(),
        context=WORKER,
        timeout_ms=1000,
        seed=1,
        generation=7,
    )
    reply = solve_request(request)
    assert reply.success
    assert reply.request_id == "calc_1"
    assert reply.snapshot.generation == 7
    assert reply.snapshot.get(2, 2) == pytest.approx(0.2)


# -----------------------------------------------------------------------------
# Repeatability and snapshot values
# -----------------------------------------------------------------------------


def test_enumeration_is_repeatable(one_mine_board: Board) -> None:
    calc = ProbabilityCalculator()
    first = calc.calculate(one_mine_board)
    second = calc.calculate(one_mine_board)
    assert first.strategy == second.strategy == "enumeration"
    assert first.probabilities == second.probabilities
    assert ProbabilityCalculator().calculate(one_mine_board).probabilities == first.probabilities


def test_propagation_is_repeatable() -> None:
    board = big_board()
    board.reveal(0, 0, cascade=False)
    board.reveal(4, 4, cascade=False)
    calc = ProbabilityCalculator(enumeration_threshold=0)
    first = calc.calculate(board)
    second = calc.calculate(board)
    assert first.strategy == second.strategy == "propagation"
    assert first.probabilities == second.probabilities
    assert second.generation == first.generation + 1


def test_snapshot_probabilities_are_read_only(one_mine_board: Board) -> None:
    calc = ProbabilityCalculator()
    snapshot = calc.calculate(one_mine_board)
    with pytest.raises(TypeError):
        snapshot.probabilities[(2, 2)] = 1.0
    assert calc.current_snapshot.get(2, 2) == pytest.approx(0.2)


def test_snapshot_copies_its_input() -> None:
    values = {(0, 0): 0.5}
    snapshot = ProbabilitySnapshot(values, Method.EXACT)
    values[(0, 0)] = 1.0
    assert snapshot.get(0, 0) == 0.5


def test_snapshot_pickles(one_mine_board: Board) -> None:
    snapshot = ProbabilityCalculator().calculate(one_mine_board)
    restored = pickle.loads(pickle.dumps(snapshot))
    assert restored == snapshot
    with pytest.raises(TypeError):
        restored.probabilities[(0, 0)] = 1.0


# -----------------------------------------------------------------------------
# Performance stats
# -----------------------------------------------------------------------------


def test_performance_stats_start_empty() -> None:
    stats = ParallelProbabilityCalculator(executor=PendingExecutor()).performance_stats()
    assert stats["calculations"] == 0
    assert stats["last_route"] is None
    assert stats["average_calculation_ms"] == 0.0
    assert stats["delegation_available"]


def test_performance_stats_count_timeouts(one_mine_board: Board) -> None:
    calc = ParallelProbabilityCalculator(executor=PendingExecutor(), timeout_ms=50)
    calc.calculate(big_board())
    calc.calculate(one_mine_board)

    stats = calc.performance_stats()
    assert stats["calculations"] == 2
    assert stats["worker_timeouts"] == 1
    assert stats["worker_failures"] == 0
    assert stats["in_process"] == 2
    assert stats["delegated"] == 0
    assert stats["pending_calculations"] == 0
    assert stats["last_route"] == "in_process"
    assert stats["last_method"] == "exact"
    assert stats["average_calculation_ms"] > 0.0


def test_performance_stats_count_failures() -> None:
    calc = ParallelProbabilityCalculator(executor=ShutDownExecutor())
    calc.calculate(big_board())
    stats = calc.performance_stats()
    assert stats["worker_failures"] == 1
    assert stats["in_process"] == 1
    assert not stats["delegation_available"]


def test_performance_stats_count_delegation() -> None:
    with ThreadPoolExecutor(max_workers=1) as executor:
        calc = ParallelProbabilityCalculator(executor=executor, seed=4)
        calc.calculate(big_board())
        stats = calc.performance_stats()
    assert stats["delegated"] == 1
    assert stats["in_process"] == 0
    assert stats["last_route"] == "worker"
    assert stats["last_method"] == "exact"
