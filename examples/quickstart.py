"""
Quickstart example for the Voltorb Flip Solver.

This script demonstrates basic usage of the solver.
"""

from voltorb_flip import (
    VoltorbFlip,
    VoltorbFlipSolver,
    evaluate,
    format_evaluation,
    run_solver_many_tests,
)


def main():
    print("=" * 60)
    print("Voltorb Flip Solver - Quickstart Example")
    print("=" * 60)

    # Example 1: Evaluate a board typed in by hand
    print("\n1. Evaluating a board with one revealed row...")
    print("-" * 60)

    grid = [
        [3, 1, 1, 1, 1],
        ["?", "?", "?", "?", "?"],
        ["?", "?", "?", "?", "?"],
        ["?", "?", "?", "?", "?"],
        ["?", "?", "?", "?", "?"],
    ]
    row_clues = ["7:0", "5:0", "5:0", "1:4", "2:4"]
    col_clues = ["6:1", "5:1", "3:2", "3:2", "3:2"]

    result = evaluate(grid, row_clues, col_clues)
    print(format_evaluation(grid, result))

    # Example 2: Let the solver play a dealt board
    print("\n2. Solving a single level 3 board...")
    print("-" * 60)

    game = VoltorbFlip(level=3, seed=7)
    solver = VoltorbFlipSolver()
    status, payload = solver.play(game)

    outcome = "WON" if status == 1 else "LOST"
    print(f"Result: {outcome}")
    print(f"Flips: {payload['reveal_moves_count']}")
    print(f"Certain flips: {payload['certainty_moves_count']}")
    print(f"Probabilistic flips: {payload['probabilistic_moves_count']}")
    print(f"Coins: {payload['coins']}")
    print(game.format_board(reveal_all=True))

    # Example 3: Win rates by level
    print("\n3. Win rates by level (10 games each)...")
    print("-" * 60)

    for level in (1, 4, 8):
        results = run_solver_many_tests(level, runs=10, seed=0)
        print(f"Level {level}: {results['win_rate']*100:5.1f}% win rate")

    print("\n" + "=" * 60)
    print("Done! Run `python -m voltorb_flip --help` for the command line.")
    print("=" * 60)


if __name__ == "__main__":
    main()
