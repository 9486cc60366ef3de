import itertools
import time
import unittest
from typing import List

from voltorb_flip.models import Cell, Clue, TileProbability
from voltorb_flip.solver import (
    ISSUE_ADD_CLUES,
    ISSUE_FILL_ALL_CLUES,
    ISSUE_INVALID_BOARD,
    ISSUE_NO_SOLUTION,
    ISSUE_TRUNCATED,
    VoltorbFlipSolver,
    evaluate,
    filter_row_patterns,
    has_points_left,
)
from voltorb_flip.utils import get_row_patterns

U = "?"
V = "v"

# 3 1 1 1 1 / 1 1 1 1 1 / 1 1 1 1 1 / 1 V V V V / V 2 V V V
# Face down, the clues admit exactly two boards; with the top row
# revealed only this one remains.
ROW_CLUES = ["7:0", "5:0", "5:0", "1:4", "2:4"]
COL_CLUES = ["6:1", "5:1", "3:2", "3:2", "3:2"]

# Rows 0-2 are all 1s; rows 3 and 4 each hold a single 1. The search visits
# exactly 8 nodes and finds 2 boards.
SMALL_ROW_CLUES = ["5:0", "5:0", "5:0", "1:4", "1:4"]
SMALL_COL_CLUES = ["4:1", "4:1", "3:2", "3:2", "3:2"]


def blank_grid() -> List[List[str]]:
    return [[U] * 5 for _ in range(5)]


def transpose(grid):
    return [list(col) for col in zip(*grid)]


def board_matches(rows, row_clues: List[Clue], col_clues: List[Clue]) -> bool:
    columns = list(zip(*rows))
    for line, clue in list(zip(rows, row_clues)) + list(zip(columns, col_clues)):
        if clue.sum is not None and sum(cell.points for cell in line) != clue.sum:
            return False
        voltorbs = sum(1 for cell in line if cell is Cell.VOLTORB)
        if clue.voltorbs is not None and voltorbs != clue.voltorbs:
            return False
    return True


class RowFilterTests(unittest.TestCase):
    def test_all_voltorb_row(self) -> None:
        patterns = filter_row_patterns([Cell.UNKNOWN] * 5, Clue(0, 5))
        self.assertEqual(len(patterns), 1)
        self.assertEqual(patterns[0].cells, (Cell.VOLTORB,) * 5)

    def test_impossible_clue_yields_no_rows(self) -> None:
        self.assertEqual(filter_row_patterns([Cell.UNKNOWN] * 5, Clue(5, 4)), [])

    def test_sum_seven_without_voltorbs(self) -> None:
        patterns = filter_row_patterns([Cell.UNKNOWN] * 5, Clue(7, 0))
        self.assertEqual(len(patterns), 15)

    def test_known_tiles_must_match(self) -> None:
        known = [Cell.THREE, Cell.UNKNOWN, Cell.UNKNOWN, Cell.UNKNOWN, Cell.UNKNOWN]
        patterns = filter_row_patterns(known, Clue(7, 0))
        self.assertEqual([p.cells for p in patterns], [(Cell.THREE,) + (Cell.ONE,) * 4])

    def test_unconstrained_clue_keeps_catalog(self) -> None:
        self.assertEqual(
            len(filter_row_patterns([Cell.UNKNOWN] * 5, Clue())), len(get_row_patterns())
        )

    def test_survivors_respect_clue_and_known_tiles(self) -> None:
        known_rows = [
            [Cell.UNKNOWN, Cell.VOLTORB, Cell.UNKNOWN, Cell.TWO, Cell.UNKNOWN],
            [Cell.ONE, Cell.UNKNOWN, Cell.UNKNOWN, Cell.UNKNOWN, Cell.THREE],
        ]
        clues = [Clue(6, 1), Clue(None, 2), Clue(8, None), Clue()]
        for known, clue in itertools.product(known_rows, clues):
            for pattern in filter_row_patterns(known, clue):
                for k, cell in zip(known, pattern.cells):
                    if k is not Cell.UNKNOWN:
                        self.assertIs(k, cell)
                if clue.sum is not None:
                    self.assertEqual(pattern.sum, clue.sum)
                if clue.voltorbs is not None:
                    self.assertEqual(pattern.voltorbs, clue.voltorbs)

    def test_raw_tokens_match_cells(self) -> None:
        self.assertEqual(
            filter_row_patterns([U] * 5, Clue(7, 0)),
            filter_row_patterns([Cell.UNKNOWN] * 5, Clue(7, 0)),
        )
        patterns = filter_row_patterns([3, U, U, U, U], Clue(7, 0))
        self.assertEqual([p.cells for p in patterns], [(Cell.THREE,) + (Cell.ONE,) * 4])


class PointsLeftTests(unittest.TestCase):
    def test_no_sum_target_is_always_open(self) -> None:
        self.assertTrue(has_points_left([Cell.ONE] * 5, Clue(None, 0)))

    def test_all_ones_leave_nothing(self) -> None:
        self.assertFalse(has_points_left([Cell.UNKNOWN] * 5, Clue(5, 0)))

    def test_sum_above_slots_leaves_points(self) -> None:
        self.assertTrue(has_points_left([Cell.UNKNOWN] * 5, Clue(7, 0)))

    def test_revealed_tiles_reduce_the_debt(self) -> None:
        line = [Cell.THREE, Cell.UNKNOWN, Cell.UNKNOWN, Cell.UNKNOWN, Cell.UNKNOWN]
        self.assertFalse(has_points_left(line, Clue(7, 0)))

    def test_reserved_voltorbs_shrink_slots(self) -> None:
        line = [Cell.UNKNOWN] * 5
        self.assertTrue(has_points_left(line, Clue(5, 1)))
        self.assertFalse(has_points_left(line, Clue(4, 1)))

    def test_missing_voltorb_target_reserves_nothing(self) -> None:
        self.assertFalse(has_points_left([Cell.UNKNOWN] * 5, Clue(5, None)))

    def test_revealed_voltorbs_count_against_target(self) -> None:
        line = [Cell.VOLTORB, Cell.UNKNOWN, Cell.UNKNOWN, Cell.UNKNOWN, Cell.UNKNOWN]
        self.assertTrue(has_points_left(line, Clue(5, 1)))

    def test_raw_tokens_are_parsed(self) -> None:
        self.assertFalse(has_points_left([3, U, U, U, U], Clue(7, 0)))
        self.assertTrue(has_points_left([V, 1, U, U, U], Clue(6, 1)))


class EnumerationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.solver = VoltorbFlipSolver()

    def test_two_boards_face_down(self) -> None:
        result = self.solver.enumerate_boards(
            blank_grid(), ROW_CLUES, COL_CLUES, keep_boards=True
        )
        self.assertEqual(result.solution_count, 2)
        self.assertEqual(len(result.boards), 2)
        self.assertFalse(result.truncated)
        self.assertEqual(result.stats[0][0].value_sum, 5)
        self.assertEqual(result.stats[3][0].voltorb_count, 1)
        self.assertEqual(result.stats[4][0].value_sum, 2)

    def test_every_board_satisfies_all_clues(self) -> None:
        rows = [Clue.parse(*clue.split(":")) for clue in ROW_CLUES]
        cols = [Clue.parse(*clue.split(":")) for clue in COL_CLUES]
        result = self.solver.enumerate_boards(blank_grid(), rows, cols, keep_boards=True)
        for board in result.boards:
            self.assertTrue(board_matches([p.cells for p in board], rows, cols))

    def test_boards_are_not_kept_by_default(self) -> None:
        result = self.solver.enumerate_boards(blank_grid(), ROW_CLUES, COL_CLUES)
        self.assertEqual(result.boards, [])

    def test_matches_brute_force(self) -> None:
        grid = [
            [U, U, 1, 1, 1],
            [1, 1, 1, 1, 1],
            [1, 1, 1, 1, 1],
            [U, U, V, V, V],
            [U, U, V, V, V],
        ]
        rows = [Clue.parse(*clue.split(":")) for clue in ROW_CLUES]
        cols = [Clue.parse(*clue.split(":")) for clue in COL_CLUES]
        hidden = [(0, 0), (0, 1), (3, 0), (3, 1), (4, 0), (4, 1)]
        alphabet = [Cell.ONE, Cell.TWO, Cell.THREE, Cell.VOLTORB]
        base = [[Cell.parse(value) for value in row] for row in grid]

        expected_count = 0
        expected_voltorbs = {tile: 0 for tile in hidden}
        for values in itertools.product(alphabet, repeat=len(hidden)):
            board = [row[:] for row in base]
            for (r, c), value in zip(hidden, values):
                board[r][c] = value
            if board_matches(board, rows, cols):
                expected_count += 1
                for (r, c), value in zip(hidden, values):
                    if value is Cell.VOLTORB:
                        expected_voltorbs[(r, c)] += 1

        result = self.solver.enumerate_boards(grid, rows, cols)
        self.assertGreater(expected_count, 0)
        self.assertEqual(result.solution_count, expected_count)
        for (r, c), count in expected_voltorbs.items():
            self.assertEqual(result.stats[r][c].voltorb_count, count)

    def test_small_board_node_count(self) -> None:
        result = self.solver.enumerate_boards(blank_grid(), SMALL_ROW_CLUES, SMALL_COL_CLUES)
        self.assertEqual(result.solution_count, 2)
        self.assertEqual(result.visited, 8)
        self.assertFalse(result.truncated)

    def test_node_budget_truncates_search(self) -> None:
        solver = VoltorbFlipSolver(max_visited=6)
        result = solver.enumerate_boards(blank_grid(), SMALL_ROW_CLUES, SMALL_COL_CLUES)
        self.assertTrue(result.truncated)
        self.assertEqual(result.solution_count, 1)

    def test_all_voltorb_row_adds_nothing_to_columns(self) -> None:
        rows = ["5:0", "5:0", "5:0", "5:0", "0:5"]
        cols = ["4:1"] * 5
        result = self.solver.enumerate_boards(blank_grid(), rows, cols, keep_boards=True)
        self.assertEqual(result.solution_count, 1)
        self.assertEqual(result.boards[0][4].cells, (Cell.VOLTORB,) * 5)
        self.assertEqual(result.boards[0][4].sum, 0)

    def test_invalid_settings(self) -> None:
        with self.assertRaises(ValueError):
            VoltorbFlipSolver(max_visited=0)
        with self.assertRaises(ValueError):
            VoltorbFlipSolver(risk_decimals=-1)


class EvaluationTests(unittest.TestCase):
    def test_no_clues_requests_input(self) -> None:
        result = evaluate(blank_grid(), [None] * 5, [{"sum": "", "voltorbs": ""}] * 5)
        self.assertEqual(result.solution_count, 0)
        self.assertEqual(result.issues, [ISSUE_ADD_CLUES])
        self.assertIsNone(result.probabilities)
        self.assertEqual(result.recommended, [])
        self.assertIsNone(result.mode)
        self.assertFalse(result.level_complete)

    def test_partial_clues_request_the_rest(self) -> None:
        cols = list(COL_CLUES)
        cols[2] = "3:"
        result = evaluate(blank_grid(), ROW_CLUES, cols)
        self.assertEqual(result.solution_count, 0)
        self.assertEqual(result.issues, [ISSUE_FILL_ALL_CLUES])

    def test_impossible_row_is_invalid(self) -> None:
        rows = list(ROW_CLUES)
        rows[1] = "5:4"
        result = evaluate(blank_grid(), rows, COL_CLUES)
        self.assertEqual(result.solution_count, 0)
        self.assertEqual(result.issues, [ISSUE_INVALID_BOARD])
        self.assertEqual(result.recommended, [])

    def test_inconsistent_columns_have_no_solution(self) -> None:
        cols = list(COL_CLUES)
        cols[0] = "7:1"
        result = evaluate(blank_grid(), ROW_CLUES, cols)
        self.assertEqual(result.solution_count, 0)
        self.assertEqual(result.issues, [ISSUE_NO_SOLUTION])
        self.assertIsNone(result.probabilities)
        self.assertFalse(result.level_complete)

    def test_zero_voltorb_row_gives_certainty(self) -> None:
        result = evaluate(blank_grid(), ROW_CLUES, COL_CLUES)
        self.assertEqual(result.solution_count, 2)
        self.assertEqual(result.mode, "certainty")
        self.assertEqual(result.recommended, [(0, c) for c in range(5)])
        self.assertEqual(result.issues, [])
        self.assertFalse(result.level_complete)

        tile = result.probabilities[0][0]
        self.assertEqual(tile.voltorb_probability, 0.0)
        self.assertAlmostEqual(tile.expected_value, 2.5)
        self.assertAlmostEqual(result.probabilities[3][0].voltorb_probability, 0.5)
        self.assertAlmostEqual(result.probabilities[4][0].expected_value, 1.0)

    def test_zero_voltorb_column_gives_certainty(self) -> None:
        result = evaluate(blank_grid(), COL_CLUES, ROW_CLUES)
        self.assertEqual(result.solution_count, 2)
        self.assertEqual(result.mode, "certainty")
        self.assertEqual(result.recommended, [(r, 0) for r in range(5)])

    def test_lowest_risk_tiles_in_open_lines(self) -> None:
        grid = blank_grid()
        grid[0] = [3, 1, 1, 1, 1]
        result = evaluate(grid, ROW_CLUES, COL_CLUES)
        self.assertEqual(result.solution_count, 1)
        self.assertEqual(result.mode, "probabilistic")
        self.assertEqual(result.recommended, [(1, 1), (2, 1), (4, 1)])
        self.assertFalse(result.level_complete)
        self.assertEqual(result.detected_voltorbs, [(3, 1), (3, 2), (3, 3), (3, 4), (4, 0), (4, 2), (4, 3), (4, 4)])

    def test_transposed_board_mirrors_recommendations(self) -> None:
        grid = blank_grid()
        grid[0] = [3, 1, 1, 1, 1]
        result = evaluate(transpose(grid), COL_CLUES, ROW_CLUES)
        self.assertEqual(sorted(result.recommended), [(1, 1), (1, 2), (1, 4)])

    def test_level_complete_when_only_ones_remain(self) -> None:
        result = evaluate(blank_grid(), SMALL_ROW_CLUES, SMALL_COL_CLUES)
        self.assertTrue(result.level_complete)
        self.assertEqual(result.recommended, [])
        self.assertEqual(result.solution_count, 2)

    def test_truncated_search_reports_partial_statistics(self) -> None:
        solver = VoltorbFlipSolver(max_visited=6)
        result = solver.evaluate(blank_grid(), SMALL_ROW_CLUES, SMALL_COL_CLUES)
        self.assertTrue(result.truncated)
        self.assertEqual(result.solution_count, 1)
        self.assertEqual(result.issues, [ISSUE_TRUNCATED])
        self.assertIsNotNone(result.probabilities)
        self.assertEqual(result.probabilities[3][0].voltorb_probability, 0.0)

    def test_truncated_search_without_boards(self) -> None:
        solver = VoltorbFlipSolver(max_visited=3)
        result = solver.evaluate(blank_grid(), SMALL_ROW_CLUES, SMALL_COL_CLUES)
        self.assertTrue(result.truncated)
        self.assertEqual(result.issues, [ISSUE_NO_SOLUTION, ISSUE_TRUNCATED])

    def test_wide_open_board_hits_node_budget(self) -> None:
        solver = VoltorbFlipSolver(max_visited=50)
        result = solver.evaluate(blank_grid(), ["8:1"] * 5, ["8:1"] * 5)
        self.assertTrue(result.truncated)
        self.assertIn(ISSUE_TRUNCATED, result.issues)

    def test_default_node_budget_finishes_in_time(self) -> None:
        start = time.perf_counter()
        result = evaluate(blank_grid(), ["8:1"] * 5, ["8:1"] * 5)
        elapsed = time.perf_counter() - start
        self.assertTrue(result.truncated)
        self.assertGreater(result.solution_count, 0)
        self.assertLess(elapsed, 60.0)

    def test_risk_rounds_half_up(self) -> None:
        solver = VoltorbFlipSolver()
        self.assertEqual(solver._rounded_risk(TileProbability(1 / 32, 0.0)), 0.0313)
        self.assertEqual(solver._rounded_risk(TileProbability(5 / 32, 0.0)), 0.1563)
        self.assertEqual(solver._rounded_risk(TileProbability(0.25, 0.0)), 0.25)

    def test_probability_bounds(self) -> None:
        result = evaluate(blank_grid(), ROW_CLUES, COL_CLUES)
        for row in result.probabilities:
            for tile in row:
                self.assertGreaterEqual(tile.voltorb_probability, 0.0)
                self.assertLessEqual(tile.voltorb_probability, 1.0)
                self.assertGreaterEqual(tile.expected_value, 0.0)
                self.assertLessEqual(tile.expected_value, 3.0)

    def test_evaluation_is_deterministic(self) -> None:
        solver = VoltorbFlipSolver(max_visited=5000)
        grid = blank_grid()
        grid[3][0] = 1
        first = solver.evaluate(grid, ["8:1"] * 5, ["8:1"] * 5)
        second = solver.evaluate(grid, ["8:1"] * 5, ["8:1"] * 5)
        self.assertEqual(first, second)
        self.assertEqual(
            evaluate(blank_grid(), ROW_CLUES, COL_CLUES),
            evaluate(blank_grid(), ROW_CLUES, COL_CLUES),
        )

    def test_wrong_shapes_raise(self) -> None:
        with self.assertRaises(ValueError):
            evaluate(blank_grid()[:4], ROW_CLUES, COL_CLUES)
        with self.assertRaises(ValueError):
            evaluate(blank_grid(), ROW_CLUES[:4], COL_CLUES)


if __name__ == "__main__":
    unittest.main()
