"""Utility functions for the Voltorb Flip solver."""

import itertools
import re
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .models import Cell, Clue, RowPattern

GRID_SIZE = 5
MAX_VISITED = 200_000
MAX_LINE_SUM = 3 * GRID_SIZE
RISK_DECIMALS = 4

# Order in which tile values are enumerated when building the catalog.
VALUE_ALPHABET: Tuple[Cell, ...] = (Cell.ONE, Cell.TWO, Cell.THREE, Cell.VOLTORB)

# Module-level cache: built on first use, shared read-only afterwards.
_ROW_PATTERNS_CACHE: Optional[Tuple[RowPattern, ...]] = None

_LEADING_INT = re.compile(r"^[+-]?\d+")


def get_row_patterns() -> Tuple[RowPattern, ...]:
    """
    Return every possible row of five tiles over {1, 2, 3, voltorb}.

    The 1024 patterns are generated once per process, in lexicographic
    order of VALUE_ALPHABET, and the same tuple is returned on every call.

    Returns:
        Immutable tuple of RowPattern with precomputed sum and voltorb count.
    """
    global _ROW_PATTERNS_CACHE

    cached = _ROW_PATTERNS_CACHE
    if cached is not None:
        return cached

    patterns = tuple(
        RowPattern.from_cells(cells)
        for cells in itertools.product(VALUE_ALPHABET, repeat=GRID_SIZE)
    )
    _ROW_PATTERNS_CACHE = patterns
    return patterns


def parse_clue(raw: Any) -> Optional[int]:
    """
    Normalize one raw clue field into a non-negative integer target.

    Blank, missing, non-numeric and negative input all mean "no constraint"
    and yield None; this function never raises.

    Args:
        raw: Text or number typed by the player (may be None).

    Returns:
        The target, or None when the field places no constraint.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, float):
        if raw != raw or not raw.is_integer() or raw < 0:
            return None
        return int(raw)
    if not isinstance(raw, str):
        return None

    match = _LEADING_INT.match(raw.strip())
    if match is None:
        return None
    value = int(match.group(0))
    return value if value >= 0 else None


def coerce_clue(raw: Any) -> Clue:
    """
    Build a Clue from any of the shapes a front end may hand over.

    Accepts a Clue, a mapping with "sum"/"voltorbs" keys, a (sum, voltorbs)
    pair, a "sum:voltorbs" string, or None.

    Raises:
        ValueError: If the input has none of the supported shapes.
    """
    if isinstance(raw, Clue):
        return Clue(sum=parse_clue(raw.sum), voltorbs=parse_clue(raw.voltorbs))
    if raw is None:
        return Clue()
    if isinstance(raw, Mapping):
        return Clue.parse(raw.get("sum"), raw.get("voltorbs"))
    if isinstance(raw, str):
        sum_raw, _, voltorbs_raw = raw.partition(":")
        return Clue.parse(sum_raw, voltorbs_raw)
    if isinstance(raw, Sequence) and len(raw) == 2:
        return Clue.parse(raw[0], raw[1])
    raise ValueError(f"Cannot interpret {raw!r} as a clue.")


def normalize_clues(clues: Sequence[Any], label: str = "clues") -> List[Clue]:
    """Coerce a sequence of GRID_SIZE raw clues."""
    if len(clues) != GRID_SIZE:
        raise ValueError(f"Expected {GRID_SIZE} {label}, got {len(clues)}.")
    return [coerce_clue(clue) for clue in clues]


def normalize_grid(grid: Sequence[Sequence[Any]]) -> List[List[Cell]]:
    """
    Convert a 5x5 nested sequence of raw tile values into Cells.

    Raises:
        ValueError: If the grid is not 5x5 or holds an unknown token.
    """
    if len(grid) != GRID_SIZE or any(len(row) != GRID_SIZE for row in grid):
        raise ValueError(f"The board must be {GRID_SIZE}x{GRID_SIZE}.")
    return [[Cell.parse(value) for value in row] for row in grid]


def parse_grid_text(text: str) -> List[List[Cell]]:
    """
    Parse a board typed as five rows separated by "/" or newlines.

    Tokens inside a row may be space separated ("1 ? v 2 ?") or packed
    ("1?v2?").
    """
    rows = [row.strip() for row in re.split(r"[/\n]", text) if row.strip()]
    grid: List[List[Any]] = []
    for row in rows:
        tokens = row.replace(",", " ").split()
        if len(tokens) == 1 and len(tokens[0]) == GRID_SIZE:
            tokens = list(tokens[0])
        grid.append(tokens)
    return normalize_grid(grid)


def empty_grid() -> List[List[Cell]]:
    return [[Cell.UNKNOWN for _ in range(GRID_SIZE)] for _ in range(GRID_SIZE)]


def get_column(grid: Sequence[Sequence[Cell]], col: int) -> List[Cell]:
    return [row[col] for row in grid]
