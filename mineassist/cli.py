"""Terminal front-end: play with hints and probability overlays, or run benchmarks."""

import argparse
import logging
from typing import Callable, List, Optional

from .analysis import format_probabilities, run_hint_many_tests
from .board import Board
from .calculator import ProbabilityCalculator, SolverConfig
from .hints import HintEngine
from .models import Action, MoveRecord, MoveSuggestion
from .review import GameAnalyzer, record_move

HELP_TEXT = (
    "Commands: 'x y' reveal, 'f x y' toggle flag, 'h' hint, "
    "'p' probabilities, 'q' quit. Coordinates are 0-based."
)


def _parse_xy(parts: List[str]) -> Optional[tuple]:
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def print_review(
    moves: List[MoveRecord], board: Board, print_fn: Callable[..., None] = print
) -> None:
    """Print the efficiency line and improvement suggestions for a finished game."""
    analyzer = GameAnalyzer()
    analysis = analyzer.analyze_game(moves, board)
    print_fn(
        f"\nGame review: {analysis.optimal_moves}/{analysis.total_moves} optimal moves "
        f"({analysis.efficiency * 100:.0f}%), {analysis.hints_used} hints used."
    )
    for suggestion in analyzer.improvement_suggestions(analysis):
        print_fn(f"- {suggestion}")


def play_cli(
    board: Board,
    calculator: ProbabilityCalculator,
    engine: Optional[HintEngine] = None,
    *,
    input_fn: Callable[[str], str] = input,
    print_fn: Callable[..., None] = print,
) -> int:
    """
    Run a simple terminal UI for playing with hints.

    Every reveal or flag is recorded and judged against the hint engine;
    a short review is printed when the game ends.

    Returns:
        Final status: -1 loss, 0 quit, 1 win.
    """
    engine = engine or HintEngine()
    moves: List[MoveRecord] = []
    last_hint: Optional[MoveSuggestion] = None
    print_fn(f"Minesweeper with hints. {HELP_TEXT}\n")
    print_fn(board.format_board(reveal_all=False))

    while True:
        s = input_fn("\nMove: ").strip()
        if s.lower() in {"q", "quit", "exit"}:
            print_fn("Quit.")
            return 0

        if s.lower() in {"h", "hint"}:
            snapshot = calculator.calculate(board)
            hint = engine.generate_hint(board, snapshot)
            if hint is None:
                print_fn("No hint available.")
                continue
            print_fn(
                f"Hint ({snapshot.method.value}): {hint.action.value} "
                f"({hint.x}, {hint.y}) with {hint.confidence * 100:.1f}% confidence."
            )
            last_hint = hint
            print_fn(hint.reasoning)
            print_fn(board.format_board(marks={hint.cell: "?"}))
            continue

        if s.lower() in {"p", "probabilities"}:
            snapshot = calculator.calculate(board)
            print_fn(f"Mine probabilities in % ({snapshot.method.value}, {snapshot.strategy}):")
            print_fn(format_probabilities(board, snapshot))
            continue

        parts = s.replace(",", " ").split()
        flag = bool(parts) and parts[0].lower() in {"f", "flag"}
        xy = _parse_xy(parts[1:] if flag else parts)
        if xy is None:
            print_fn(f"Invalid input. {HELP_TEXT}")
            continue

        x, y = xy
        if not board.is_valid_position(x, y):
            print_fn("Coordinates are outside the board.")
            continue

        action = Action.FLAG if flag else Action.REVEAL
        hinted = last_hint is not None and (last_hint.cell, last_hint.action) == ((x, y), action)
        snapshot = calculator.calculate(board)
        moves.append(record_move(board, snapshot, (x, y), action, engine, hint_used=hinted))
        last_hint = None

        if flag:
            board.toggle_flag(x, y)
            print_fn(f"\nYou toggled the flag at ({x}, {y}).\n")
            print_fn(board.format_board(reveal_all=False))
            continue

        status, _ = board.reveal(x, y)
        print_fn(f"\nYou decided to reveal ({x}, {y}).\n")
        print_fn(board.format_board(reveal_all=False))

        if status == -1:
            print_fn("\nYou hit a mine. You lost.")
            print_fn("\nFull board:")
            print_fn(board.format_board(reveal_all=True))
            print_review(moves, board, print_fn)
            return -1

        if status == 1:
            print_fn("\nYou revealed all safe cells. You won!")
            print_fn("\nFull board:")
            print_fn(board.format_board(reveal_all=True))
            print_review(moves, board, print_fn)
            return 1


def configure_logging(level_name: str) -> None:
    """Attach a stderr handler to the package logger only."""
    level = getattr(logging, level_name)
    pkg_logger = logging.getLogger("mineassist")
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(logging.BASIC_FORMAT))
    for h in list(pkg_logger.handlers):
        pkg_logger.removeHandler(h)
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False
    pkg_logger.setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mineassist",
        description="Minesweeper mine probabilities and move hints",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level for mineassist messages",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--timeout-ms", type=float, default=5000, help="Calculation budget in ms"
    )
    parser.add_argument("--width", type=int, default=9)
    parser.add_argument("--height", type=int, default=9)
    parser.add_argument("--mines", type=int, default=10)
    parser.add_argument(
        "--placement",
        default="safe_neighborhood_rule",
        choices=["safe_neighborhood_rule", "safe_first_action_rule"],
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("play", help="Play interactively with hints (default)")
    bench = sub.add_parser("bench", help="Benchmark hint-following play")
    bench.add_argument("--runs", type=int, default=20)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    ns = build_parser().parse_args(argv)
    configure_logging(ns.log_level)

    try:
        config = SolverConfig(timeout_ms=ns.timeout_ms, seed=ns.seed)
    except ValueError as exc:
        print(f"error: {exc}")
        return 2

    if ns.command == "bench":
        results = run_hint_many_tests(
            ns.width, ns.height, ns.mines, ns.runs, ns.placement, config=config, seed=ns.seed
        )
        for key in sorted(results):
            print(f"{key:32s} {results[key]:.4f}")
        return 0

    board = Board(ns.width, ns.height, ns.mines, ns.placement, seed=ns.seed)
    with ProbabilityCalculator(config) as calculator:
        status = play_cli(board, calculator)
    return 0 if status >= 0 else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
