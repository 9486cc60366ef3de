"""Value types shared by the catalog, the solver and the game engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

MODE_CERTAINTY = "certainty"
MODE_PROBABILISTIC = "probabilistic"

# Voltorb probability above which a tile is reported as a detected voltorb.
DETECTION_THRESHOLD = 0.999

_VOLTORB_TOKENS = {"v", "voltorb", "0", "x", "*"}
_UNKNOWN_TOKENS = {"", "?", ".", "-", "unknown"}


class Cell(Enum):
    """A tile as the solver sees it: a value, a voltorb, or still face down."""

    ONE = 1
    TWO = 2
    THREE = 3
    VOLTORB = "voltorb"
    UNKNOWN = "unknown"

    @property
    def is_value(self) -> bool:
        return self in (Cell.ONE, Cell.TWO, Cell.THREE)

    @property
    def points(self) -> int:
        """Numeric value of the tile; voltorbs and unknown tiles count as 0."""
        return self.value if self.is_value else 0

    @property
    def symbol(self) -> str:
        if self is Cell.VOLTORB:
            return "V"
        if self is Cell.UNKNOWN:
            return "?"
        return str(self.value)

    @classmethod
    def parse(cls, raw: Any) -> "Cell":
        """
        Convert raw caller input into a Cell.

        Accepts Cell members, the ints 0..3 (0 meaning voltorb), and the
        strings "1".."3", "v"/"voltorb"/"x"/"0" and "?"/"."/"unknown" (case
        insensitive). None and blank strings are UNKNOWN.

        Raises:
            ValueError: If the input does not name a tile.
        """
        if isinstance(raw, Cell):
            return raw
        if raw is None:
            return cls.UNKNOWN
        if isinstance(raw, bool):
            raise ValueError(f"Not a tile value: {raw!r}")
        if isinstance(raw, int):
            if raw == 0:
                return cls.VOLTORB
            if 1 <= raw <= 3:
                return cls(raw)
            raise ValueError(f"Tile values must be 1, 2 or 3, got {raw}.")
        if isinstance(raw, str):
            token = raw.strip().lower()
            if token in _UNKNOWN_TOKENS:
                return cls.UNKNOWN
            if token in _VOLTORB_TOKENS:
                return cls.VOLTORB
            if token in ("1", "2", "3"):
                return cls(int(token))
        raise ValueError(f"Not a tile value: {raw!r}")


@dataclass(frozen=True)
class RowPattern:
    """One concrete assignment of the five tiles of a row."""

    cells: Tuple[Cell, ...]
    sum: int
    voltorbs: int
    # Per-position column deltas, derived from cells.
    points: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    voltorb_mask: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(cell.points for cell in self.cells))
        object.__setattr__(
            self,
            "voltorb_mask",
            tuple(1 if cell is Cell.VOLTORB else 0 for cell in self.cells),
        )

    @classmethod
    def from_cells(cls, cells: Tuple[Cell, ...]) -> "RowPattern":
        return cls(
            cells=cells,
            sum=sum(cell.points for cell in cells),
            voltorbs=sum(1 for cell in cells if cell is Cell.VOLTORB),
        )


@dataclass(frozen=True)
class Clue:
    """
    Sum/voltorb targets printed next to a row or column.

    A target of None means the player has not entered it yet; it places no
    constraint on the line (it is not the same as zero).
    """

    sum: Optional[int] = None
    voltorbs: Optional[int] = None

    @classmethod
    def parse(cls, sum_raw: Any = None, voltorbs_raw: Any = None) -> "Clue":
        from .utils import parse_clue

        return cls(sum=parse_clue(sum_raw), voltorbs=parse_clue(voltorbs_raw))

    @property
    def is_complete(self) -> bool:
        return self.sum is not None and self.voltorbs is not None

    @property
    def is_empty(self) -> bool:
        return self.sum is None and self.voltorbs is None

    def __str__(self) -> str:
        s = "" if self.sum is None else str(self.sum)
        v = "" if self.voltorbs is None else str(self.voltorbs)
        return f"{s}:{v}"


@dataclass
class CellStats:
    """Running aggregate for one tile across accepted boards."""

    voltorb_count: int = 0
    value_sum: int = 0


@dataclass(frozen=True)
class TileProbability:
    voltorb_probability: float
    expected_value: float


@dataclass
class EnumerationResult:
    """Raw output of one backtracking enumeration."""

    solution_count: int
    stats: List[List[CellStats]]
    visited: int = 0
    truncated: bool = False
    boards: List[Tuple[RowPattern, ...]] = field(default_factory=list)


@dataclass
class EvaluationResult:
    """
    Everything a front end needs to render one board state.

    Attributes:
        solution_count: Number of boards consistent with clues and tiles.
        probabilities: 5x5 per-tile statistics, or None when no board fits.
        recommended: Tiles to flip next as (row, col), in board order.
        issues: Messages to show to the player, in order.
        mode: "certainty", "probabilistic", or None if nothing was ranked.
        level_complete: True when no 2 or 3 can remain face down.
        truncated: True when the search hit its node budget.
    """

    solution_count: int = 0
    probabilities: Optional[List[List[TileProbability]]] = None
    recommended: List[Tuple[int, int]] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    mode: Optional[str] = None
    level_complete: bool = False
    truncated: bool = False

    def is_recommended(self, row: int, col: int) -> bool:
        return (row, col) in self.recommended

    @property
    def detected_voltorbs(self) -> List[Tuple[int, int]]:
        """Tiles that hold a voltorb in (practically) every consistent board."""
        if self.probabilities is None:
            return []
        return [
            (r, c)
            for r, row in enumerate(self.probabilities)
            for c, tile in enumerate(row)
            if tile.voltorb_probability > DETECTION_THRESHOLD
        ]

    @property
    def advice(self) -> str:
        if self.level_complete:
            return "All point multipliers found. You can safely stop now."
        if self.mode == MODE_CERTAINTY:
            return "Zero-voltorb lines detected. The highlighted tiles are 100% safe."
        if self.recommended:
            return (
                "No definite safe spots. Highlighting tiles with the lowest "
                "statistical risk."
            )
        return "Enter clues to begin."
