"""Analysis, plotting and benchmarking tools for the Voltorb Flip solver."""

from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from .engine import LEVEL_TABLE, VoltorbFlip
from .models import Cell, EnumerationResult, EvaluationResult
from .solver import VoltorbFlipSolver
from .utils import GRID_SIZE, MAX_VISITED, normalize_grid


def risk_matrix(result: EvaluationResult) -> np.ndarray:
    """Return the 5x5 voltorb probabilities (NaN everywhere without statistics)."""
    if result.probabilities is None:
        return np.full((GRID_SIZE, GRID_SIZE), np.nan)
    return np.array(
        [[tile.voltorb_probability for tile in row] for row in result.probabilities],
        dtype=float,
    )


def expected_value_matrix(result: EvaluationResult) -> np.ndarray:
    """Return the 5x5 expected tile values (NaN everywhere without statistics)."""
    if result.probabilities is None:
        return np.full((GRID_SIZE, GRID_SIZE), np.nan)
    return np.array(
        [[tile.expected_value for tile in row] for row in result.probabilities],
        dtype=float,
    )


def format_evaluation(
    grid: Sequence[Sequence[Any]], result: EvaluationResult, *, show_coords: bool = True
) -> str:
    """
    Format an evaluation as a human-readable grid.

    Face-up tiles show their value. Face-down tiles show the voltorb risk in
    percent and the expected value; recommended tiles are marked with '*',
    detected voltorbs with '!!'.

    Args:
        grid: The board the result was computed from.
        result: Output of VoltorbFlipSolver.evaluate.
        show_coords: If True, include coordinate labels and a header.
    """
    cells = normalize_grid(grid)
    risks = risk_matrix(result)
    values = expected_value_matrix(result)
    detected = set(result.detected_voltorbs)

    def cell_str(r: int, c: int) -> str:
        cell = cells[r][c]
        if cell is not Cell.UNKNOWN:
            return f"{cell.symbol:^11}"
        if (r, c) in detected:
            return f"{'!! V':^11}"
        if np.isnan(risks[r, c]):
            return f"{'?':^11}"
        mark = "*" if result.is_recommended(r, c) else " "
        return f"{mark}{risks[r, c] * 100:4.0f}% {values[r, c]:.2f}"

    lines: List[str] = []
    if show_coords:
        lines.append("    " + " ".join(f"{c:^11d}" for c in range(GRID_SIZE)))
        lines.append("    " + "-" * (12 * GRID_SIZE - 1))

    for r in range(GRID_SIZE):
        row = " ".join(cell_str(r, c) for c in range(GRID_SIZE))
        lines.append(f"{r:2d} |" + row if show_coords else row)

    lines.append("")
    lines.append(f"Valid boards: {result.solution_count}")
    lines.append(f"Safest tiles: {len(result.recommended)} ({result.mode or 'n/a'})")
    for issue in result.issues:
        lines.append(f"! {issue}")
    lines.append(result.advice)

    return "\n".join(lines)


def format_boards(enumeration: EnumerationResult) -> str:
    """
    List the boards kept by an enumeration, one block per board.

    Args:
        enumeration: Output of VoltorbFlipSolver.enumerate_boards with
            keep_boards=True.
    """
    lines: List[str] = []
    for n, board in enumerate(enumeration.boards, start=1):
        lines.append(f"Board {n}:")
        for pattern in board:
            lines.append("  " + " ".join(cell.symbol for cell in pattern.cells))
    if enumeration.truncated:
        lines.append(
            f"Search stopped after {enumeration.visited} nodes; the list is partial."
        )
    lines.append(f"{len(enumeration.boards)} board(s) listed.")
    return "\n".join(lines)


def plot_risk_heatmap(
    grid: Sequence[Sequence[Any]],
    result: EvaluationResult,
    *,
    show: bool = True,
) -> Any:
    """
    Draw voltorb risk as a heatmap with expected values annotated.

    Args:
        grid: The board the result was computed from.
        result: Output of VoltorbFlipSolver.evaluate.
        show: If True, call plt.show() before returning.

    Returns:
        The matplotlib Figure.
    """
    cells = normalize_grid(grid)
    risks = risk_matrix(result)
    values = expected_value_matrix(result)

    fig, ax = plt.subplots()  # type: ignore[misc]
    image = ax.imshow(risks, cmap="RdYlGn_r", vmin=0.0, vmax=1.0)
    fig.colorbar(image, ax=ax, label="Voltorb probability")

    for r in range(GRID_SIZE):
        for c in range(GRID_SIZE):
            cell = cells[r][c]
            if cell is not Cell.UNKNOWN:
                label = cell.symbol
            elif np.isnan(risks[r, c]):
                label = "?"
            else:
                label = f"{risks[r, c]:.0%}\nEV {values[r, c]:.2f}"
            weight = "bold" if result.is_recommended(r, c) else "normal"
            ax.text(c, r, label, ha="center", va="center", fontsize=8, fontweight=weight)

    ax.set_xticks(np.arange(GRID_SIZE))
    ax.set_yticks(np.arange(GRID_SIZE))
    ax.set_title(f"Voltorb risk ({result.solution_count} valid boards)")
    fig.tight_layout()
    if show:
        plt.show()  # type: ignore[misc]
    return fig


def run_solver_single_test(
    level: int,
    *,
    seed: Optional[int] = None,
    show_boards: bool = False,
    max_visited: int = MAX_VISITED,
) -> Dict[str, object]:
    """
    Play one game end-to-end with VoltorbFlipSolver on a freshly dealt board.

    Args:
        level: Game level 1..8.
        seed: Seed for dealing the board.
        show_boards: If True, print the full board and the final visible board.
        max_visited: Search-node budget per evaluation.

    Returns:
        The solver's terminal payload augmented with "status" (-1 loss, 1 win).
    """
    game = VoltorbFlip(level=level, seed=seed)
    solver = VoltorbFlipSolver(max_visited=max_visited)

    status, payload = solver.play(game)

    if show_boards:
        print(f"Level {level}")
        print("Underlying board:")
        print(game.format_board(reveal_all=True))
        print()
        print("Board at the end of the game:")
        print(game.format_board(reveal_all=False))
        print()
        print(f"Finished with status {status} and {game.coins} coins.")

    out = dict(payload)
    out["status"] = status
    return out


def run_solver_many_tests(
    level: int,
    runs: int,
    *,
    seed: Optional[int] = None,
    max_visited: int = MAX_VISITED,
) -> Dict[str, float]:
    """
    Play many independent games and return averaged metrics plus win rate.

    Args:
        level: Game level 1..8.
        runs: Number of independent games.
        seed: Base seed; game i uses seed + i (None for random boards).
        max_visited: Search-node budget per evaluation.

    Returns:
        Averages of the numeric payload metrics (prefixed with "avg_"), plus:
        - win_rate
        - certainty_move_share
        - avg_coins_won (coins averaged over won games only)
    """
    if runs <= 0:
        raise ValueError("runs must be positive.")

    required_keys = {
        "reveal_moves_count",
        "certainty_moves_count",
        "probabilistic_moves_count",
        "fallback_moves_count",
        "truncated_evaluations_count",
        "coins",
    }

    sums: Dict[str, float] = defaultdict(float)
    wins = 0
    coins_won = 0.0
    total_moves = 0.0
    total_certainty = 0.0

    for i in range(runs):
        out = run_solver_single_test(
            level,
            seed=None if seed is None else seed + i,
            max_visited=max_visited,
        )

        missing = required_keys - set(out.keys())
        if missing:
            raise KeyError(f"Missing payload keys: {sorted(missing)}")

        status = out["status"]
        if status == 1:
            wins += 1
            coins_won += float(out["coins"])  # type: ignore[arg-type]
        elif status != -1:
            raise RuntimeError(f"Unexpected solver status: {status}")

        for key in required_keys:
            sums[f"avg_{key}"] += float(out[key])  # type: ignore[arg-type]

        total_moves += float(out["reveal_moves_count"])  # type: ignore[arg-type]
        total_certainty += float(out["certainty_moves_count"])  # type: ignore[arg-type]

    result: Dict[str, float] = {k: total / runs for k, total in sums.items()}
    result["win_rate"] = wins / runs
    result["certainty_move_share"] = (
        total_certainty / total_moves if total_moves > 0 else 0.0
    )
    result["avg_coins_won"] = coins_won / wins if wins > 0 else 0.0
    return result


def run_solver_level_analysis(
    runs: int,
    *,
    levels: Optional[Sequence[int]] = None,
    seed: Optional[int] = None,
    max_visited: int = MAX_VISITED,
    show: bool = True,
) -> Dict[int, Dict[str, float]]:
    """
    Benchmark the solver on every level and plot summaries.

    Args:
        runs: Number of games per level.
        levels: Levels to benchmark (all eight by default).
        seed: Base seed passed to run_solver_many_tests.
        max_visited: Search-node budget per evaluation.
        show: If True, display the charts.

    Returns:
        Mapping from level to the statistics of run_solver_many_tests().
    """
    level_list = list(levels) if levels is not None else sorted(LEVEL_TABLE)

    results: Dict[int, Dict[str, float]] = {}
    for level in level_list:
        results[level] = run_solver_many_tests(
            level, runs, seed=seed, max_visited=max_visited
        )

    x = np.arange(len(level_list))
    labels = [str(level) for level in level_list]

    # 1) Win rate by level
    win_rates = [results[level]["win_rate"] for level in level_list]

    plt.figure()  # type: ignore[misc]
    plt.bar(x, win_rates)  # type: ignore[misc]
    plt.xticks(x, labels)  # type: ignore[misc]
    plt.xlabel("Level")  # type: ignore[misc]
    plt.ylabel("Win rate")  # type: ignore[misc]
    plt.ylim(0.0, 1.0)  # type: ignore[misc]
    plt.title("Win rate by level")  # type: ignore[misc]
    plt.tight_layout()

    # 2) Flips by recommendation method
    certainty = [results[level]["avg_certainty_moves_count"] for level in level_list]
    probabilistic = [
        results[level]["avg_probabilistic_moves_count"] for level in level_list
    ]
    fallback = [results[level]["avg_fallback_moves_count"] for level in level_list]

    bar_w = 0.25
    plt.figure()  # type: ignore[misc]
    plt.bar(x - bar_w, certainty, width=bar_w, label="certainty")  # type: ignore[misc]
    plt.bar(x, probabilistic, width=bar_w, label="probabilistic")  # type: ignore[misc]
    plt.bar(x + bar_w, fallback, width=bar_w, label="fallback")  # type: ignore[misc]
    plt.xticks(x, labels)  # type: ignore[misc]
    plt.xlabel("Level")  # type: ignore[misc]
    plt.ylabel("Average flips")  # type: ignore[misc]
    plt.title("Average flips by recommendation method (per game)")  # type: ignore[misc]
    plt.legend()  # type: ignore[misc]
    plt.tight_layout()

    if show:
        plt.show()  # type: ignore[misc]

    return results
