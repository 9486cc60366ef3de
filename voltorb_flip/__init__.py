"""
Voltorb Flip Solver

An exhaustive assistant for the 5x5 Voltorb Flip puzzle:
- Row filtering: candidate rows from a precomputed catalog of 1024 patterns
- Backtracking: column-pruned enumeration of every consistent board
- Statistics: per-tile voltorb probability and expected value
- Recommendation: provably safe tiles first, lowest-risk tiles otherwise
"""

from .engine import LEVEL_TABLE, VoltorbFlip, play_cli
from .models import Cell, Clue, EvaluationResult, RowPattern, TileProbability
from .solver import (
    VoltorbFlipSolver,
    evaluate,
    filter_row_patterns,
    has_points_left,
)
from .utils import get_row_patterns, parse_clue
from .analysis import (
    format_boards,
    format_evaluation,
    plot_risk_heatmap,
    run_solver_single_test,
    run_solver_many_tests,
    run_solver_level_analysis,
)

__version__ = "1.0.0"

__all__ = [
    # Core types
    "Cell",
    "Clue",
    "RowPattern",
    "TileProbability",
    "EvaluationResult",
    # Engine
    "evaluate",
    "filter_row_patterns",
    "get_row_patterns",
    "has_points_left",
    "parse_clue",
    "VoltorbFlipSolver",
    # Game
    "LEVEL_TABLE",
    "VoltorbFlip",
    "play_cli",
    # Analysis functions
    "format_boards",
    "format_evaluation",
    "plot_risk_heatmap",
    "run_solver_single_test",
    "run_solver_many_tests",
    "run_solver_level_analysis",
]
