"""Voltorb Flip game engine dealing boards from the in-game level table."""

import random
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .logger import get_logger
from .models import Cell, Clue
from .utils import GRID_SIZE, get_column, normalize_grid

if TYPE_CHECKING:
    from .solver import VoltorbFlipSolver

LOGGER = get_logger(__name__)

# level -> possible (twos, threes, voltorbs) layouts; remaining tiles are 1s.
LEVEL_TABLE: Dict[int, Tuple[Tuple[int, int, int], ...]] = {
    1: ((3, 1, 6), (0, 3, 6), (5, 0, 6), (2, 2, 6), (4, 1, 6)),
    2: ((1, 3, 7), (6, 0, 7), (3, 2, 7), (0, 4, 7), (5, 1, 7)),
    3: ((2, 3, 8), (7, 0, 8), (4, 2, 8), (1, 4, 8), (6, 1, 8)),
    4: ((3, 3, 8), (0, 5, 8), (8, 0, 10), (5, 2, 10), (2, 4, 10)),
    5: ((7, 1, 10), (4, 3, 10), (1, 5, 10), (9, 0, 10), (6, 2, 10)),
    6: ((3, 4, 10), (0, 6, 10), (8, 1, 10), (5, 3, 10), (2, 5, 10)),
    7: ((7, 2, 10), (4, 4, 10), (1, 6, 13), (9, 1, 13), (6, 3, 10)),
    8: ((0, 7, 10), (8, 2, 10), (5, 4, 10), (2, 6, 10), (7, 3, 10)),
}


def line_clue(line: Sequence[Cell]) -> Clue:
    """Compute the exact clue printed next to a fully known line."""
    return Clue(
        sum=sum(cell.points for cell in line),
        voltorbs=sum(1 for cell in line if cell is Cell.VOLTORB),
    )


class VoltorbFlip:
    """Single Voltorb Flip board with clues, reveals and coin tracking."""

    def __init__(
        self,
        level: int = 1,
        seed: Optional[int] = None,
        board: Optional[Sequence[Sequence[object]]] = None,
    ) -> None:
        """
        Deal a board.

        Args:
            level: Game level 1..8; selects the tile mix.
            seed: Seed for the dealing RNG (None for a random board).
            board: Explicit 5x5 board of 1/2/3/voltorb tiles; skips dealing.

        Raises:
            ValueError: If the level is unknown or the board holds face-down
                or malformed tiles.
        """
        if level not in LEVEL_TABLE:
            raise ValueError(f"level must be one of {sorted(LEVEL_TABLE)}, got {level}.")

        self.level: int = level
        self.rng = random.Random(seed)

        if board is None:
            self.board: List[List[Cell]] = self._deal()
        else:
            self.board = normalize_grid(board)
            if any(cell is Cell.UNKNOWN for row in self.board for cell in row):
                raise ValueError("An explicit board cannot contain face-down tiles.")

        self.revealed: List[List[bool]] = [
            [False for _ in range(GRID_SIZE)] for _ in range(GRID_SIZE)
        ]
        self.coins: int = 0
        self.game_over: bool = False
        self.multipliers_left: int = sum(
            1 for row in self.board for cell in row if cell in (Cell.TWO, Cell.THREE)
        )

        self.row_clues: List[Clue] = [line_clue(row) for row in self.board]
        self.col_clues: List[Clue] = [
            line_clue(get_column(self.board, c)) for c in range(GRID_SIZE)
        ]

    def _deal(self) -> List[List[Cell]]:
        twos, threes, voltorbs = self.rng.choice(LEVEL_TABLE[self.level])
        ones = GRID_SIZE * GRID_SIZE - twos - threes - voltorbs

        tiles = (
            [Cell.TWO] * twos
            + [Cell.THREE] * threes
            + [Cell.VOLTORB] * voltorbs
            + [Cell.ONE] * ones
        )
        self.rng.shuffle(tiles)

        LOGGER.debug(
            "Dealt level %d board: %d twos, %d threes, %d voltorbs.",
            self.level,
            twos,
            threes,
            voltorbs,
        )
        return [tiles[r * GRID_SIZE:(r + 1) * GRID_SIZE] for r in range(GRID_SIZE)]

    def visible_grid(self) -> List[List[Cell]]:
        """Return the board as the player sees it, UNKNOWN for face-down tiles."""
        return [
            [
                self.board[r][c] if self.revealed[r][c] else Cell.UNKNOWN
                for c in range(GRID_SIZE)
            ]
            for r in range(GRID_SIZE)
        ]

    def reveal(self, row: int, col: int) -> Tuple[int, Dict[str, object]]:
        """
        Flip a single tile and return a status code plus payload.

        Returns:
            Tuple of (status, payload) where status is:
                - -1: Voltorb flipped (loss, coins reset to 0)
                - 0: Non-terminal flip (or no-op)
                - 1: Every 2 and 3 has been flipped (win)

            Payload contains:
                - For status 0 or 1: {"value": Cell, "coins": int}
                - For status -1: {"value": Cell, "all_voltorbs": FrozenSet}

        Raises:
            ValueError: If coordinates are out of bounds.
        """
        if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
            raise ValueError("Tile coordinates are outside the board.")

        if self.game_over or self.revealed[row][col]:
            return 0, {}

        self.revealed[row][col] = True
        value = self.board[row][col]

        if value is Cell.VOLTORB:
            self.game_over = True
            self.coins = 0
            all_voltorbs: FrozenSet[Tuple[int, int]] = frozenset(
                (r, c)
                for r in range(GRID_SIZE)
                for c in range(GRID_SIZE)
                if self.board[r][c] is Cell.VOLTORB
            )
            return -1, {"value": value, "all_voltorbs": all_voltorbs}

        self.coins = value.points if self.coins == 0 else self.coins * value.points

        if value in (Cell.TWO, Cell.THREE):
            self.multipliers_left -= 1
            if self.multipliers_left == 0:
                self.game_over = True
                return 1, {"value": value, "coins": self.coins}

        return 0, {"value": value, "coins": self.coins}

    # -------------------------------------------------------------------------
    # Display methods
    # -------------------------------------------------------------------------

    _ANSI_RESET = "\033[0m"
    _ANSI_CLUE = "\033[96m"
    _ANSI_VOLTORB = "\033[91m"

    def _c(self, s: str) -> str:
        """Wrap string in clue color."""
        return f"{self._ANSI_CLUE}{s}{self._ANSI_RESET}"

    def _v(self, s: str) -> str:
        """Wrap string in voltorb color (red)."""
        return f"{self._ANSI_VOLTORB}{s}{self._ANSI_RESET}"

    def format_board(self, reveal_all: bool = False) -> str:
        """
        Render the board with row clues on the right and column clues below.

        Args:
            reveal_all: If True, show every tile face up.
        """

        def cell_str(r: int, c: int) -> str:
            if reveal_all or self.revealed[r][c]:
                cell = self.board[r][c]
                return self._v("V") if cell is Cell.VOLTORB else cell.symbol
            return "."

        out = ["     " + " ".join(f"{c:2d}" for c in range(GRID_SIZE))]
        out.append("    " + "-" * (3 * GRID_SIZE))
        for r in range(GRID_SIZE):
            row_cells = " ".join(f" {cell_str(r, c)}" for c in range(GRID_SIZE))
            out.append(f"{r:2d} |" + row_cells + " | " + self._c(str(self.row_clues[r])))

        out.append("    " + "-" * (3 * GRID_SIZE))
        out.append("    " + self._c(" ".join(f"{str(clue):>2}" for clue in self.col_clues)))
        return "\n".join(out)


def play_cli(game: VoltorbFlip, solver: "Optional[VoltorbFlipSolver]" = None) -> None:
    """
    Run a simple terminal UI for playing Voltorb Flip.

    Args:
        game: A VoltorbFlip instance to play against.
        solver: If given, its recommendations are printed before every move.
    """
    print("Voltorb Flip CLI (enter: row col). Coordinates are 0-based. Type 'q' to quit.\n")
    print(game.format_board(reveal_all=False))

    while True:
        if solver is not None:
            result = solver.evaluate(game.visible_grid(), game.row_clues, game.col_clues)
            tiles = ", ".join(f"({r}, {c})" for r, c in result.recommended)
            print(f"\nHint [{result.mode}]: {tiles or 'none'} - {result.advice}")

        s = input("\nMove (row col): ").strip()
        if s.lower() in {"q", "quit", "exit"}:
            print(f"Quit with {game.coins} coins.")
            return

        parts = s.replace(",", " ").split()
        if len(parts) != 2:
            print("Invalid input. Example: 2 4")
            continue

        try:
            row = int(parts[0])
            col = int(parts[1])
        except ValueError:
            print("Invalid input. Coordinates must be integers.")
            continue

        try:
            status, _ = game.reveal(row, col)
        except ValueError as exc:
            print(f"Invalid input. {exc}")
            continue

        print(f"\nYou flipped ({row}, {col}). Coins: {game.coins}\n")
        print(game.format_board(reveal_all=False))

        if status == -1:
            print("\nYou flipped a voltorb. You lost your coins.")
            print("\nFull board:")
            print(game.format_board(reveal_all=True))
            return

        if status == 1:
            print(f"\nAll multipliers found. You won {game.coins} coins!")
            return
