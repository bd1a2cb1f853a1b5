"""
Quickstart example for the Minesweeper AI assistant.

This script demonstrates probabilities, hints, hint-following play and a game review.
"""

from mineassist import Board, GameAnalyzer, HintEngine, ProbabilityCalculator
from mineassist.analysis import format_probabilities, play_with_hints, run_hint_many_tests


def main():
    print("=" * 60)
    print("Minesweeper AI Assistant - Quickstart Example")
    print("=" * 60)

    # Example 1: Probabilities after the first click
    print("\n1. Probabilities on a Beginner board (9x9, 10 mines)...")
    print("-" * 60)

    board = Board(width=9, height=9, mine_count=10, seed=7)
    board.reveal(4, 4)
    print(board.format_board())

    calculator = ProbabilityCalculator(seed=7)
    snapshot = calculator.calculate(board)
    print(f"\nMethod: {snapshot.method.value} ({snapshot.strategy})")
    print(format_probabilities(board, snapshot))

    # Example 2: Ask for a hint
    print("\n2. Hint for the current position:")
    print("-" * 60)

    hint = HintEngine().generate_hint(board, snapshot)
    if hint is None:
        print("No hint available.")
    else:
        print(f"{hint.action.value} ({hint.x}, {hint.y}), confidence {hint.confidence:.2f}")
        print(hint.reasoning)

    # Example 3: Follow hints for many games
    print("\n3. Following hints for 20 Beginner games...")
    print("-" * 60)

    results = run_hint_many_tests(9, 9, 10, runs=20, seed=1)
    print(f"Win rate: {results['win_rate']*100:.1f}%")
    print(f"Average certain moves per game: {results['avg_certain_moves_count']:.1f}")
    print(f"Average guesses per game: {results['avg_guesses_count']:.1f}")
    print(f"Exact share of calculations: {results['exact_share']*100:.1f}%")
    print(f"Average ms per calculation: {results['avg_seconds_per_calculation']*1000:.2f}")

    # Example 4: Review a hint-following game
    print("\n4. Reviewing one hint-following game...")
    print("-" * 60)

    board = Board(width=9, height=9, mine_count=10, seed=3)
    payload = play_with_hints(board, ProbabilityCalculator(seed=3))
    analyzer = GameAnalyzer()
    analysis = analyzer.analyze_game(payload["move_records"], board)
    print(f"Optimal moves: {analysis.optimal_moves}/{analysis.total_moves}")
    print(f"Skills: {', '.join(s.value for s in analysis.skills_demonstrated) or 'none'}")
    for line in analyzer.game_replay(payload["move_records"])[:5]:
        print(line)

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == "__main__":
    main()
