"""Analysis and benchmarking tools for the probability engine and hint selector."""

import time
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .board import Board, BoardView
from .calculator import ProbabilityCalculator, SolverConfig
from .constraints import extract_constraints
from .enumeration import enumerate_probabilities
from .hints import HintEngine
from .models import Action, MoveRecord, ProbabilitySnapshot
from .review import record_move
from .sampling import sample_probabilities


def format_probabilities(
    board: BoardView, snapshot: ProbabilitySnapshot, *, show_coords: bool = True
) -> str:
    """
    Format a probability snapshot as a human-readable grid.

    Args:
        board: Board the snapshot was computed for.
        snapshot: Probabilities to display.
        show_coords: If True, include coordinate labels and a header.

    Returns:
        A text grid with mine percentages for hidden cells, "F" for flags,
        revealed numbers as digits, and "?" for hidden cells missing from
        the snapshot.
    """
    w, h = board.width, board.height

    def cell_text(x: int, y: int) -> str:
        cell = board.cells[y][x]
        if cell.is_revealed:
            return "*" if cell.is_mine else str(cell.adjacent_mines)
        if cell.is_flagged:
            return "F"
        p = snapshot.probabilities.get((x, y))
        if p is None:
            return "?"
        return f"{round(p * 100):d}"

    lines: List[str] = []
    if show_coords:
        header = " ".join(f"{x:>3d}" for x in range(w))
        lines.append("    " + header)
        lines.append("    " + "-" * (4 * w - 1))

    for y in range(h):
        row = " ".join(f"{cell_text(x, y):>3s}" for x in range(w))
        lines.append(f"{y:2d} |" + row if show_coords else row)

    return "\n".join(lines)


def play_with_hints(
    board: Board,
    calculator: ProbabilityCalculator,
    engine: Optional[HintEngine] = None,
    *,
    max_moves: Optional[int] = None,
) -> Dict[str, object]:
    """
    Play a game by always following the hint engine's suggestion.

    The first move reveals the board center. Afterwards every turn runs a
    full calculation and applies the top hint.

    Args:
        board: Fresh board to play on.
        calculator: Calculator producing the snapshots.
        engine: Hint engine; a default one is created when omitted.
        max_moves: Optional cap on the number of hint moves.

    Returns:
        Payload with "status" (-1 loss, 0 unfinished, 1 win), move counts,
        per-method and per-strategy calculation counts, the moves sequence,
        one MoveRecord per move (for GameAnalyzer) and the total
        calculation time in seconds.
    """
    engine = engine or HintEngine()

    status, _ = board.reveal(board.width // 2, board.height // 2)
    moves_sequence: List[Tuple[int, int, str]] = [
        (board.width // 2, board.height // 2, Action.REVEAL.value)
    ]
    # The opening reveal has nothing to be compared against
    move_records: List[MoveRecord] = [
        MoveRecord((board.width // 2, board.height // 2), Action.REVEAL, was_optimal=True)
    ]
    methods: Counter = Counter()
    strategies: Counter = Counter()
    certain_moves = 0
    guesses = 0
    calc_seconds = 0.0

    while status == 0:
        if max_moves is not None and len(moves_sequence) > max_moves:
            break

        start = time.perf_counter()
        snapshot = calculator.calculate(board)
        calc_seconds += time.perf_counter() - start
        methods[snapshot.method.value] += 1
        strategies[snapshot.strategy] += 1

        hint = engine.generate_hint(board, snapshot)
        if hint is None:
            break

        if hint.confidence >= 1.0:
            certain_moves += 1
        else:
            guesses += 1

        moves_sequence.append((hint.x, hint.y, hint.action.value))
        move_records.append(
            record_move(board, snapshot, hint.cell, hint.action, engine, hint_used=True)
        )
        if hint.action is Action.FLAG:
            board.toggle_flag(hint.x, hint.y)
        else:
            status, _ = board.reveal(hint.x, hint.y)

    return {
        "status": status,
        "hint_moves_count": len(moves_sequence) - 1,
        "certain_moves_count": certain_moves,
        "guesses_count": guesses,
        "moves_sequence": moves_sequence,
        "move_records": move_records,
        "method_counts": dict(methods),
        "strategy_counts": dict(strategies),
        "calculation_seconds": calc_seconds,
    }


def run_hint_single_test(
    width: int,
    height: int,
    mine_count: int,
    mine_placement: str = "safe_neighborhood_rule",
    *,
    config: Optional[SolverConfig] = None,
    seed: Optional[int] = None,
    show_boards: bool = False,
) -> Dict[str, object]:
    """
    Run one end-to-end game on a fresh board, following hints.

    Args:
        width: Board width.
        height: Board height.
        mine_count: Total number of mines on the board.
        mine_placement: Mine placement rule.
        config: Calculator configuration.
        seed: Seeds both the board layout and the calculator.
        show_boards: If True, print the final board.

    Returns:
        The payload of :func:`play_with_hints`.
    """
    board = Board(width, height, mine_count, mine_placement, seed=seed)
    calculator = ProbabilityCalculator(config, seed=seed)
    payload = play_with_hints(board, calculator)

    if show_boards:
        print(f"Placement: {mine_placement}")
        print(board.format_board(reveal_all=True))
        print(f"Finished with status {payload['status']}.")

    return payload


def run_hint_many_tests(
    width: int,
    height: int,
    mine_count: int,
    runs: int,
    mine_placement: str = "safe_neighborhood_rule",
    *,
    config: Optional[SolverConfig] = None,
    seed: Optional[int] = None,
) -> Dict[str, float]:
    """
    Run many independent games and return averaged metrics plus win rate.

    Returns:
        - win_rate
        - avg_hint_moves_count, avg_certain_moves_count, avg_guesses_count
        - avg_calculation_seconds, avg_seconds_per_calculation
        - exact_share, monte_carlo_share: fraction of calculations per method
        - share_<strategy>: fraction of calculations per concrete tier

    Raises:
        ValueError: If runs is not positive.
    """
    if runs <= 0:
        raise ValueError("runs must be positive.")

    sums: Dict[str, float] = defaultdict(float)
    method_totals: Counter = Counter()
    strategy_totals: Counter = Counter()
    wins = 0

    for i in range(runs):
        run_seed = None if seed is None else seed + i
        payload = run_hint_single_test(
            width, height, mine_count, mine_placement, config=config, seed=run_seed
        )
        if payload["status"] == 1:
            wins += 1

        sums["avg_hint_moves_count"] += float(payload["hint_moves_count"])  # type: ignore[arg-type]
        sums["avg_certain_moves_count"] += float(payload["certain_moves_count"])  # type: ignore[arg-type]
        sums["avg_guesses_count"] += float(payload["guesses_count"])  # type: ignore[arg-type]
        sums["avg_calculation_seconds"] += float(payload["calculation_seconds"])  # type: ignore[arg-type]
        method_totals.update(payload["method_counts"])  # type: ignore[arg-type]
        strategy_totals.update(payload["strategy_counts"])  # type: ignore[arg-type]

    out: Dict[str, float] = {k: total / runs for k, total in sums.items()}
    out["win_rate"] = wins / runs

    calculations = sum(method_totals.values())
    out["avg_seconds_per_calculation"] = (
        out["avg_calculation_seconds"] * runs / calculations if calculations else 0.0
    )
    for method in ("exact", "monte_carlo"):
        out[f"{method}_share"] = (
            method_totals[method] / calculations if calculations else 0.0
        )
    for strategy, count in strategy_totals.items():
        out[f"share_{strategy}"] = count / calculations

    return out


def run_hint_level_analysis(
    runs: int,
    mine_placement: str = "safe_neighborhood_rule",
    *,
    config: Optional[SolverConfig] = None,
    seed: Optional[int] = None,
    show: bool = True,
) -> Dict[str, Dict[str, float]]:
    """
    Benchmark hint-following play on the standard levels and plot summaries.

    Standard difficulty levels:
        - Beginner: 9x9, 10 mines
        - Intermediate: 16x16, 40 mines
        - Expert: 30x16, 99 mines

    Returns:
        Mapping from level name to the statistics of run_hint_many_tests().
    """
    levels: Dict[str, Tuple[int, int, int]] = {
        "beginner": (9, 9, 10),
        "intermediate": (16, 16, 40),
        "expert": (30, 16, 99),
    }

    results: Dict[str, Dict[str, float]] = {}
    for level, (w, h, m) in levels.items():
        results[level] = run_hint_many_tests(
            w, h, m, runs, mine_placement, config=config, seed=seed
        )

    level_names = list(levels.keys())
    x = np.arange(len(level_names))
    bar_w = 0.35

    # 1) Calculation method mix
    exact_share = [results[n]["exact_share"] for n in level_names]
    mc_share = [results[n]["monte_carlo_share"] for n in level_names]

    plt.figure()  # type: ignore[misc]
    plt.bar(x - bar_w / 2, exact_share, width=bar_w, label="exact")  # type: ignore[misc]
    plt.bar(x + bar_w / 2, mc_share, width=bar_w, label="monte_carlo")  # type: ignore[misc]
    plt.xticks(x, level_names)  # type: ignore[misc]
    plt.ylabel("Share of calculations")  # type: ignore[misc]
    plt.ylim(0.0, 1.0)  # type: ignore[misc]
    plt.title("Probability method by difficulty level")  # type: ignore[misc]
    plt.legend()  # type: ignore[misc]
    plt.tight_layout()

    # 2) Certain moves vs. guesses
    certain = [results[n]["avg_certain_moves_count"] for n in level_names]
    guesses = [results[n]["avg_guesses_count"] for n in level_names]

    plt.figure()  # type: ignore[misc]
    plt.bar(x - bar_w / 2, certain, width=bar_w, label="certain")  # type: ignore[misc]
    plt.bar(x + bar_w / 2, guesses, width=bar_w, label="guesses")  # type: ignore[misc]
    plt.xticks(x, level_names)  # type: ignore[misc]
    plt.ylabel("Average moves per game")  # type: ignore[misc]
    plt.title("Hint moves by confidence")  # type: ignore[misc]
    plt.legend()  # type: ignore[misc]
    plt.tight_layout()

    # 3) Win rate and calculation time
    win_rates = [results[n]["win_rate"] for n in level_names]
    ms_per_calc = np.array(
        [results[n]["avg_seconds_per_calculation"] for n in level_names]
    ) * 1000.0

    fig, (ax_win, ax_time) = plt.subplots(1, 2)  # type: ignore[misc]
    ax_win.bar(x, win_rates)
    ax_win.set_xticks(x, level_names)
    ax_win.set_ylim(0.0, 1.0)
    ax_win.set_title("Win rate")
    ax_time.bar(x, ms_per_calc)
    ax_time.set_xticks(x, level_names)
    ax_time.set_title("ms per calculation")
    fig.tight_layout()

    if show:
        plt.show()  # type: ignore[misc]

    return results


def compare_methods(
    board: BoardView,
    *,
    max_samples: int = 10_000,
    seed: Optional[int] = None,
) -> Dict[str, float]:
    """
    Measure how far Monte Carlo estimates sit from the exact marginals.

    Args:
        board: Board small enough to enumerate.
        max_samples: Monte Carlo sample cap.
        seed: Seed for the sampler.

    Returns:
        Dict with max_abs_error, mean_abs_error, valid_samples and cells.

    Raises:
        ValueError: If the board has no consistent mine layout.
    """
    constraints, unknowns = extract_constraints(board)
    exact = enumerate_probabilities(constraints, unknowns, board.remaining_mines())
    if exact is None:
        raise ValueError("Board has no consistent mine layout.")
    if not exact:
        return {"max_abs_error": 0.0, "mean_abs_error": 0.0, "valid_samples": 0.0, "cells": 0.0}

    sampled = sample_probabilities(
        board,
        np.random.default_rng(seed),
        max_samples=max_samples,
        samples_per_unknown=max_samples,
    )
    errors = np.array([abs(exact[c] - sampled.probabilities[c]) for c in unknowns])
    return {
        "max_abs_error": float(errors.max()),
        "mean_abs_error": float(errors.mean()),
        "valid_samples": float(sampled.valid_samples),
        "cells": float(len(unknowns)),
    }
