"""Command-line entrypoint: advise on a board, play a game, or benchmark."""

import argparse
import logging
from typing import List, Optional

from .analysis import (
    format_boards,
    format_evaluation,
    plot_risk_heatmap,
    run_solver_level_analysis,
    run_solver_many_tests,
)
from .engine import LEVEL_TABLE, VoltorbFlip, play_cli
from .logger import configure_logging
from .solver import VoltorbFlipSolver
from .utils import GRID_SIZE, MAX_VISITED, empty_grid, parse_grid_text


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voltorb-flip",
        description="Find the safest flips in Voltorb Flip",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--max-visited",
        type=int,
        default=MAX_VISITED,
        help="Search-node budget per evaluation",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    advise = subparsers.add_parser("advise", help="Evaluate a board typed in by hand")
    advise.add_argument(
        "--rows",
        nargs=GRID_SIZE,
        required=True,
        metavar="SUM:VOLTORBS",
        help="Row clues, top to bottom (e.g. 7:0 5:1 ...)",
    )
    advise.add_argument(
        "--cols",
        nargs=GRID_SIZE,
        required=True,
        metavar="SUM:VOLTORBS",
        help="Column clues, left to right",
    )
    advise.add_argument(
        "--grid",
        type=str,
        default=None,
        help="Revealed tiles as five '/'-separated rows of 1, 2, 3, v or ? (e.g. '??1??/?????/...')",
    )
    advise.add_argument(
        "--plot", action="store_true", help="Show a risk heatmap (requires a display)"
    )
    advise.add_argument(
        "--boards", action="store_true", help="Also list every consistent board"
    )

    play = subparsers.add_parser("play", help="Play a dealt board with hints")
    play.add_argument("--level", type=int, default=1, choices=sorted(LEVEL_TABLE))
    play.add_argument("--seed", type=int, default=None, help="Seed for dealing")
    play.add_argument("--no-hints", action="store_true", help="Hide solver hints")

    bench = subparsers.add_parser("bench", help="Let the solver play many boards")
    bench.add_argument("--level", type=int, default=1, choices=sorted(LEVEL_TABLE))
    bench.add_argument("--all", action="store_true", help="Benchmark every level")
    bench.add_argument("--runs", type=int, default=20, help="Games per level")
    bench.add_argument("--seed", type=int, default=None, help="Base seed")
    bench.add_argument("--plot", action="store_true", help="Show summary charts")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "advise":
        grid = parse_grid_text(args.grid) if args.grid else empty_grid()
        solver = VoltorbFlipSolver(max_visited=args.max_visited)
        result = solver.evaluate(grid, args.rows, args.cols)
        print(format_evaluation(grid, result))
        if args.boards:
            enumeration = solver.enumerate_boards(
                grid, args.rows, args.cols, keep_boards=True
            )
            print()
            print(format_boards(enumeration))
        if args.plot:
            plot_risk_heatmap(grid, result)
        return 0

    if args.command == "play":
        game = VoltorbFlip(level=args.level, seed=args.seed)
        solver = None if args.no_hints else VoltorbFlipSolver(max_visited=args.max_visited)
        play_cli(game, solver)
        return 0

    if args.all or args.plot:
        levels = sorted(LEVEL_TABLE) if args.all else [args.level]
        results = run_solver_level_analysis(
            args.runs,
            levels=levels,
            seed=args.seed,
            max_visited=args.max_visited,
            show=args.plot,
        )
    else:
        results = {
            args.level: run_solver_many_tests(
                args.level, args.runs, seed=args.seed, max_visited=args.max_visited
            )
        }

    for level, stats in results.items():
        print(
            f"Level {level}: {stats['win_rate'] * 100:5.1f}% win rate, "
            f"{stats['avg_reveal_moves_count']:.1f} flips/game, "
            f"{stats['avg_coins_won']:.0f} coins per win"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
