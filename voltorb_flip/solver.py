"""Voltorb Flip solver using row-pattern enumeration and risk-based recommendation."""

import math
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    cast,
)

import numpy as np

from .engine import VoltorbFlip
from .logger import get_logger
from .models import (
    MODE_CERTAINTY,
    MODE_PROBABILISTIC,
    Cell,
    CellStats,
    Clue,
    EnumerationResult,
    EvaluationResult,
    RowPattern,
    TileProbability,
)
from .utils import (
    GRID_SIZE,
    MAX_LINE_SUM,
    MAX_VISITED,
    RISK_DECIMALS,
    get_column,
    get_row_patterns,
    normalize_clues,
    normalize_grid,
)

LOGGER = get_logger(__name__)

ISSUE_ADD_CLUES = "Add clues to start."
ISSUE_FILL_ALL_CLUES = "Please fill in all 10 row and column clues to start calculation."
ISSUE_INVALID_BOARD = "Invalid board configuration."
ISSUE_NO_SOLUTION = "No solution found."
ISSUE_TRUNCATED = "Complex board. Calculation approximated."


def filter_row_patterns(
    known_row: Sequence[Any],
    clue: Clue,
    patterns: Optional[Sequence[RowPattern]] = None,
) -> List[RowPattern]:
    """
    Narrow the pattern catalog to rows consistent with a clue and revealed tiles.

    Args:
        known_row: The five tiles of a board row, as Cells or raw tokens;
            face-down tiles match anything.
        clue: Row clue; absent targets place no constraint.
        patterns: Candidate patterns, the full catalog by default.

    Returns:
        Surviving patterns in catalog order. An empty list means the row is
        over-constrained.
    """
    if patterns is None:
        patterns = get_row_patterns()
    known = [Cell.parse(value) for value in known_row]

    survivors: List[RowPattern] = []
    for pattern in patterns:
        if clue.sum is not None and pattern.sum != clue.sum:
            continue
        if clue.voltorbs is not None and pattern.voltorbs != clue.voltorbs:
            continue
        if all(
            tile is Cell.UNKNOWN or tile is cell
            for tile, cell in zip(known, pattern.cells)
        ):
            survivors.append(pattern)
    return survivors


def has_points_left(line: Sequence[Any], clue: Clue) -> bool:
    """
    Decide whether a face-down tile of this line could still hold a 2 or 3.

    The sum still owed is compared with the number of face-down tiles that
    are not needed as voltorbs: if every such tile were a 1 and the sum is
    still not reached, a higher value must remain. A missing voltorb target
    reserves no voltorb tiles.

    Args:
        line: The five tiles of a row or column, as Cells or raw tokens.
        clue: Clue for that line.

    Returns:
        True if a multiplier may remain (always True without a sum target).
    """
    if clue.sum is None:
        return True

    current_sum = 0
    current_voltorbs = 0
    unknown_count = 0
    for cell in map(Cell.parse, line):
        if cell.is_value:
            current_sum += cell.points
        elif cell is Cell.VOLTORB:
            current_voltorbs += 1
        else:
            unknown_count += 1

    remaining_sum = clue.sum - current_sum

    remaining_voltorbs = 0
    if clue.voltorbs is not None:
        remaining_voltorbs = max(0, clue.voltorbs - current_voltorbs)

    value_slots = max(0, unknown_count - remaining_voltorbs)
    return remaining_sum > value_slots


class VoltorbFlipSolver:
    """
    Exhaustive Voltorb Flip assistant.

    Each evaluation works in four stages:
    1. Row filtering: candidate rows per board row from the pattern catalog
    2. Backtracking: combine rows, pruning on column clues
    3. Statistics: per-tile voltorb frequency and expected value
    4. Recommendation: provably safe tiles first, lowest risk otherwise
    """

    def __init__(
        self,
        max_visited: int = MAX_VISITED,
        risk_decimals: int = RISK_DECIMALS,
    ) -> None:
        """
        Initialize a solver.

        Args:
            max_visited: Search-node budget per enumeration; once exceeded the
                search stops and statistics are reported as approximate.
            risk_decimals: Decimal places voltorb probabilities are rounded to
                before looking for the lowest-risk tiles.
        """
        if max_visited < 1:
            raise ValueError("max_visited must be positive.")
        if risk_decimals < 0:
            raise ValueError("risk_decimals must be non-negative.")
        self.max_visited: int = max_visited
        self.risk_decimals: int = risk_decimals

    # -------------------------------------------------------------------------
    # Enumeration
    # -------------------------------------------------------------------------

    def enumerate_boards(
        self,
        grid: Sequence[Sequence[Any]],
        row_clues: Sequence[Any],
        col_clues: Sequence[Any],
        keep_boards: bool = False,
    ) -> EnumerationResult:
        """
        Enumerate every board consistent with the clues and revealed tiles.

        Args:
            grid: 5x5 raw tile values.
            row_clues: Five raw row clues.
            col_clues: Five raw column clues.
            keep_boards: If True, accepted boards are returned as tuples of
                row patterns; otherwise only the aggregates are kept.

        Returns:
            Solution count, per-tile aggregates, visited-node count and the
            truncation flag.
        """
        cells = normalize_grid(grid)
        rows = normalize_clues(row_clues, "row clues")
        cols = normalize_clues(col_clues, "column clues")
        return self._search(self._row_options(cells, rows), cols, keep_boards)

    def _row_options(
        self, grid: List[List[Cell]], row_clues: List[Clue]
    ) -> List[List[RowPattern]]:
        return [filter_row_patterns(grid[r], row_clues[r]) for r in range(GRID_SIZE)]

    def _search(
        self,
        row_options: List[List[RowPattern]],
        col_clues: List[Clue],
        keep_boards: bool = False,
    ) -> EnumerationResult:
        stats = [[CellStats() for _ in range(GRID_SIZE)] for _ in range(GRID_SIZE)]
        if any(not options for options in row_options):
            return EnumerationResult(solution_count=0, stats=stats)

        # A missing target becomes a cap no column can exceed.
        sum_targets = [clue.sum for clue in col_clues]
        voltorb_targets = [clue.voltorbs for clue in col_clues]
        sum_caps = np.array(
            [MAX_LINE_SUM if t is None else t for t in sum_targets], dtype=np.int64
        )
        voltorb_caps = np.array(
            [GRID_SIZE if t is None else t for t in voltorb_targets], dtype=np.int64
        )

        search_data: Dict[str, Any] = {
            "row_options": row_options,
            "point_tables": [
                np.array([p.points for p in options], dtype=np.int64)
                for options in row_options
            ],
            "voltorb_tables": [
                np.array([p.voltorb_mask for p in options], dtype=np.int64)
                for options in row_options
            ],
            "sum_caps": sum_caps,
            "voltorb_caps": voltorb_caps,
            "sum_known": np.array([t is not None for t in sum_targets]),
            "voltorb_known": np.array([t is not None for t in voltorb_targets]),
            "stats": stats,
            "boards": [],
            "keep_boards": keep_boards,
            "solution_count": 0,
            "visited": 0,
            "truncated": False,
        }

        zeros = np.zeros(GRID_SIZE, dtype=np.int64)
        self._backtrack(0, (), zeros, zeros, search_data)

        solution_count = cast(int, search_data["solution_count"])
        visited = cast(int, search_data["visited"])
        truncated = cast(bool, search_data["truncated"])

        if truncated:
            LOGGER.warning(
                "Search truncated after %d nodes with %d boards found.",
                visited,
                solution_count,
            )
        else:
            LOGGER.debug("Enumerated %d boards in %d nodes.", solution_count, visited)

        return EnumerationResult(
            solution_count=solution_count,
            stats=stats,
            visited=visited,
            truncated=truncated,
            boards=cast(List[Tuple[RowPattern, ...]], search_data["boards"]),
        )

    def _backtrack(
        self,
        row_index: int,
        board: Tuple[RowPattern, ...],
        col_sums: np.ndarray,
        col_voltorbs: np.ndarray,
        search_data: Dict[str, Any],
    ) -> None:
        """
        Assign one candidate pattern per row, depth first.

        Column totals only grow as rows are added, so a candidate is dropped
        as soon as it pushes any column past its target. The totals are never
        mutated; each child receives fresh arrays.
        """
        if search_data["truncated"]:
            return

        search_data["visited"] += 1
        if search_data["visited"] > self.max_visited:
            search_data["truncated"] = True
            return

        sum_caps = search_data["sum_caps"]
        voltorb_caps = search_data["voltorb_caps"]

        if row_index == GRID_SIZE:
            sum_known = search_data["sum_known"]
            voltorb_known = search_data["voltorb_known"]
            if np.any(sum_known & (col_sums != sum_caps)):
                return
            if np.any(voltorb_known & (col_voltorbs != voltorb_caps)):
                return

            search_data["solution_count"] += 1
            stats = cast(List[List[CellStats]], search_data["stats"])
            for r, pattern in enumerate(board):
                for tile, points, is_voltorb in zip(
                    stats[r], pattern.points, pattern.voltorb_mask
                ):
                    tile.voltorb_count += is_voltorb
                    tile.value_sum += points

            if search_data["keep_boards"]:
                search_data["boards"].append(board)
            return

        options = cast(List[RowPattern], search_data["row_options"][row_index])
        point_table = search_data["point_tables"][row_index]
        voltorb_table = search_data["voltorb_tables"][row_index]

        # Candidates that keep every column within its targets, in catalog order.
        fits = ((point_table + col_sums) <= sum_caps).all(axis=1) & (
            (voltorb_table + col_voltorbs) <= voltorb_caps
        ).all(axis=1)

        for i in np.flatnonzero(fits):
            self._backtrack(
                row_index + 1,
                board + (options[i],),
                col_sums + point_table[i],
                col_voltorbs + voltorb_table[i],
                search_data,
            )
            if search_data["truncated"]:
                return

    # -------------------------------------------------------------------------
    # Line heuristics
    # -------------------------------------------------------------------------

    def level_complete(
        self,
        grid: List[List[Cell]],
        row_clues: List[Clue],
        col_clues: List[Clue],
    ) -> bool:
        """
        Return True when no line with a sum clue can still hide a 2 or 3.

        Needs at least one sum clue; computed from clues and revealed tiles
        only, independently of the enumeration.
        """
        valid_clues_found = False

        for r in range(GRID_SIZE):
            if row_clues[r].sum is not None:
                valid_clues_found = True
                if has_points_left(grid[r], row_clues[r]):
                    return False

        for c in range(GRID_SIZE):
            if col_clues[c].sum is not None:
                valid_clues_found = True
                if has_points_left(get_column(grid, c), col_clues[c]):
                    return False

        return valid_clues_found

    def certainty_tiles(
        self,
        grid: List[List[Cell]],
        row_clues: List[Clue],
        col_clues: List[Clue],
    ) -> List[Tuple[int, int]]:
        """
        Collect face-down tiles that are provably safe and still worth flipping.

        A line with a voltorb clue of 0 holds no voltorb at all; its face-down
        tiles qualify while the line may still hide a multiplier.
        """
        safe_tiles: List[Tuple[int, int]] = []

        for r in range(GRID_SIZE):
            if row_clues[r].voltorbs == 0 and has_points_left(grid[r], row_clues[r]):
                for c in range(GRID_SIZE):
                    if grid[r][c] is Cell.UNKNOWN and (r, c) not in safe_tiles:
                        safe_tiles.append((r, c))

        for c in range(GRID_SIZE):
            column = get_column(grid, c)
            if col_clues[c].voltorbs == 0 and has_points_left(column, col_clues[c]):
                for r in range(GRID_SIZE):
                    if grid[r][c] is Cell.UNKNOWN and (r, c) not in safe_tiles:
                        safe_tiles.append((r, c))

        return safe_tiles

    def _is_useful(
        self,
        grid: List[List[Cell]],
        row_clues: List[Clue],
        col_clues: List[Clue],
        row: int,
        col: int,
    ) -> bool:
        return has_points_left(grid[row], row_clues[row]) or has_points_left(
            get_column(grid, col), col_clues[col]
        )

    def _rounded_risk(self, tile: TileProbability) -> float:
        # Halves round up.
        scale = 10 ** self.risk_decimals
        return math.floor(tile.voltorb_probability * scale + 0.5) / scale

    def lowest_risk_tiles(
        self,
        grid: List[List[Cell]],
        row_clues: List[Clue],
        col_clues: List[Clue],
        probabilities: List[List[TileProbability]],
    ) -> List[Tuple[int, int]]:
        """
        Return face-down tiles tied for the lowest voltorb probability.

        Probabilities are rounded before comparison so that ties are not
        missed to floating-point noise. Tiles whose row and column can no
        longer hold a multiplier are left out even when tied.
        """
        unknown_tiles = [
            (r, c)
            for r in range(GRID_SIZE)
            for c in range(GRID_SIZE)
            if grid[r][c] is Cell.UNKNOWN
        ]
        if not unknown_tiles:
            return []

        min_risk = min(self._rounded_risk(probabilities[r][c]) for r, c in unknown_tiles)

        return [
            (r, c)
            for r, c in unknown_tiles
            if self._rounded_risk(probabilities[r][c]) == min_risk
            and self._is_useful(grid, row_clues, col_clues, r, c)
        ]

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        grid: Sequence[Sequence[Any]],
        row_clues: Sequence[Any],
        col_clues: Sequence[Any],
    ) -> EvaluationResult:
        """
        Evaluate the current board and recommend the next flips.

        Args:
            grid: 5x5 raw tile values (1, 2, 3, voltorb or unknown markers).
            row_clues: Five raw row clues (Clue, mapping, pair or "sum:voltorbs").
            col_clues: Five raw column clues.

        Returns:
            The evaluation result. Domain problems (missing clues, impossible
            boards, truncated searches) are reported in ``issues``; they never
            raise.

        Raises:
            ValueError: If the grid or clue lists have the wrong shape.
        """
        cells = normalize_grid(grid)
        rows = normalize_clues(row_clues, "row clues")
        cols = normalize_clues(col_clues, "column clues")
        all_clues = rows + cols

        if all(clue.is_empty for clue in all_clues):
            return EvaluationResult(issues=[ISSUE_ADD_CLUES])

        if not all(clue.is_complete for clue in all_clues):
            return EvaluationResult(issues=[ISSUE_FILL_ALL_CLUES])

        level_complete = self.level_complete(cells, rows, cols)
        safe_tiles = self.certainty_tiles(cells, rows, cols)

        row_options = self._row_options(cells, rows)
        if any(not options for options in row_options):
            return EvaluationResult(issues=[ISSUE_INVALID_BOARD])

        enumeration = self._search(row_options, cols)
        solution_count = enumeration.solution_count

        if solution_count == 0:
            issues = [ISSUE_NO_SOLUTION]
            if enumeration.truncated:
                issues.append(ISSUE_TRUNCATED)
            return EvaluationResult(issues=issues, truncated=enumeration.truncated)

        probabilities = [
            [
                TileProbability(
                    voltorb_probability=tile.voltorb_count / solution_count,
                    expected_value=tile.value_sum / solution_count,
                )
                for tile in row
            ]
            for row in enumeration.stats
        ]

        if safe_tiles:
            recommended = safe_tiles
            mode = MODE_CERTAINTY
        else:
            recommended = self.lowest_risk_tiles(cells, rows, cols, probabilities)
            mode = MODE_PROBABILISTIC

        issues: List[str] = []
        if enumeration.truncated:
            issues.append(ISSUE_TRUNCATED)

        return EvaluationResult(
            solution_count=solution_count,
            probabilities=probabilities,
            recommended=recommended,
            issues=issues,
            mode=mode,
            level_complete=level_complete,
            truncated=enumeration.truncated,
        )

    # -------------------------------------------------------------------------
    # Automated play
    # -------------------------------------------------------------------------

    def choose_move(
        self,
        grid: Sequence[Sequence[Any]],
        row_clues: Sequence[Any],
        col_clues: Sequence[Any],
        result: EvaluationResult,
    ) -> Optional[Tuple[int, int]]:
        """
        Pick one tile to flip from an evaluation.

        The first recommended tile wins. Without recommendations, the
        lowest-risk face-down tile in a line that may still hold a multiplier
        is chosen, then the lowest-risk face-down tile anywhere.

        Returns:
            (row, col), or None when no tile is face down.
        """
        cells = normalize_grid(grid)
        rows = normalize_clues(row_clues, "row clues")
        cols = normalize_clues(col_clues, "column clues")

        unknown_tiles = [
            (r, c)
            for r in range(GRID_SIZE)
            for c in range(GRID_SIZE)
            if cells[r][c] is Cell.UNKNOWN
        ]
        if not unknown_tiles:
            return None

        if result.recommended:
            return result.recommended[0]

        useful_tiles = [
            (r, c)
            for r, c in unknown_tiles
            if self._is_useful(cells, rows, cols, r, c)
        ]

        probabilities = result.probabilities
        if probabilities is not None:
            for candidates in (useful_tiles, unknown_tiles):
                if candidates:
                    return min(
                        candidates,
                        key=lambda t: self._rounded_risk(probabilities[t[0]][t[1]]),
                    )

        if useful_tiles:
            return useful_tiles[0]
        return unknown_tiles[0]

    def play(self, game: VoltorbFlip) -> Tuple[int, Dict[str, Any]]:
        """
        Play a game to the end by repeatedly flipping the chosen tile.

        Returns:
            Tuple of (status, payload) where status is -1 (voltorb flipped) or
            1 (every multiplier found) and payload holds the move metrics.

        Raises:
            RuntimeError: If the game is still running but no tile is left.
        """
        moves_sequence: List[Tuple[int, int, str]] = []
        method_counts: Dict[str, int] = {
            MODE_CERTAINTY: 0,
            MODE_PROBABILISTIC: 0,
            "fallback": 0,
        }
        truncated_evaluations_count = 0

        def end_payload() -> Dict[str, Any]:
            return {
                "level": game.level,
                "reveal_moves_count": len(moves_sequence),
                "certainty_moves_count": method_counts[MODE_CERTAINTY],
                "probabilistic_moves_count": method_counts[MODE_PROBABILISTIC],
                "fallback_moves_count": method_counts["fallback"],
                "truncated_evaluations_count": truncated_evaluations_count,
                "coins": game.coins,
                "moves_sequence": moves_sequence,
            }

        if game.multipliers_left == 0:
            return 1, end_payload()

        while True:
            grid = game.visible_grid()
            result = self.evaluate(grid, game.row_clues, game.col_clues)
            if result.truncated:
                truncated_evaluations_count += 1

            move = self.choose_move(grid, game.row_clues, game.col_clues, result)
            if move is None:
                raise RuntimeError("No face-down tile left while the game is running.")

            if move in result.recommended and result.mode is not None:
                method = result.mode
            else:
                method = "fallback"
            method_counts[method] += 1

            row, col = move
            status, payload = game.reveal(row, col)
            moves_sequence.append((row, col, method))
            LOGGER.debug("Flipped (%d, %d) by %s -> status %d", row, col, method, status)

            if status in (-1, 1):
                LOGGER.info(
                    "Level %d %s after %d flips with %d coins.",
                    game.level,
                    "cleared" if status == 1 else "lost",
                    len(moves_sequence),
                    game.coins,
                )
                return status, end_payload()


_DEFAULT_SOLVER = VoltorbFlipSolver()


def evaluate(
    grid: Sequence[Sequence[Any]],
    row_clues: Sequence[Any],
    col_clues: Sequence[Any],
) -> EvaluationResult:
    """Evaluate a board with the default solver settings."""
    return _DEFAULT_SOLVER.evaluate(grid, row_clues, col_clues)
