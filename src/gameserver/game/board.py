"""
=============================================================================
BOARD MODEL
=============================================================================

A 3x3 grid of cell owners plus terminal-condition evaluation.

    col:   0   1   2
         ┌───┬───┬───┐
    row 0│ X │ X │ X │  ◄── a winning row
         ├───┼───┼───┤
    row 1│   │ O │   │
         ├───┼───┼───┤
    row 2│   │   │ O │
         └───┴───┴───┘

evaluate() checks all 8 lines (3 rows, 3 columns, 2 diagonals) for each
mark. A full board is only a draw when no line is complete, so a board
that is both full and has a winning line reports the win.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Optional, Tuple


BOARD_SIZE = 3


class Mark(IntEnum):
    """Owner of a cell. X is always the player who moves first."""
    EMPTY = 0
    X = 1
    O = 2

    @property
    def symbol(self) -> str:
        return {Mark.EMPTY: " ", Mark.X: "X", Mark.O: "O"}[self]

    @property
    def opponent(self) -> "Mark":
        if self is Mark.EMPTY:
            raise ValueError("EMPTY has no opponent")
        return Mark.O if self is Mark.X else Mark.X


def _lines() -> List[Tuple[Tuple[int, int], ...]]:
    rows = [tuple((r, c) for c in range(BOARD_SIZE)) for r in range(BOARD_SIZE)]
    cols = [tuple((r, c) for r in range(BOARD_SIZE)) for c in range(BOARD_SIZE)]
    diagonals = [
        tuple((i, i) for i in range(BOARD_SIZE)),
        tuple((i, BOARD_SIZE - 1 - i) for i in range(BOARD_SIZE)),
    ]
    return rows + cols + diagonals


# Every line that wins the game, computed once.
LINES = _lines()


class OutcomeKind(Enum):
    NONE = "none"
    WIN = "win"
    DRAW = "draw"


@dataclass(frozen=True)
class Outcome:
    """Result of evaluating a board. winner is only set for WIN."""
    kind: OutcomeKind
    winner: Optional[Mark] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not OutcomeKind.NONE


NO_RESULT = Outcome(OutcomeKind.NONE)
DRAW = Outcome(OutcomeKind.DRAW)


def in_bounds(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


class Board:
    """
    Mutable 3x3 grid.

    Cells only ever go EMPTY -> X/O. The only way back is clear(), which
    the session calls at match start/reset.
    """

    def __init__(self):
        self._cells: List[List[Mark]] = []
        self.clear()

    @classmethod
    def from_rows(cls, rows) -> "Board":
        """Build a board from nested rows of Marks (handy in tests)."""
        board = cls()
        for r, row in enumerate(rows):
            for c, mark in enumerate(row):
                board._cells[r][c] = Mark(mark)
        return board

    def clear(self):
        self._cells = [[Mark.EMPTY] * BOARD_SIZE for _ in range(BOARD_SIZE)]

    def get(self, row: int, col: int) -> Mark:
        return self._cells[row][col]

    def is_empty(self, row: int, col: int) -> bool:
        return in_bounds(row, col) and self._cells[row][col] is Mark.EMPTY

    def place(self, row: int, col: int, mark: Mark):
        """
        Claim an empty cell.

        Raises:
            ValueError: If the cell is out of range, already owned, or the
                        mark is EMPTY.
        """
        if mark is Mark.EMPTY:
            raise ValueError("Cannot place an EMPTY mark")
        if not in_bounds(row, col):
            raise ValueError(f"Cell ({row}, {col}) is off the board")
        if self._cells[row][col] is not Mark.EMPTY:
            raise ValueError(f"Cell ({row}, {col}) is already taken")
        self._cells[row][col] = mark

    @property
    def is_full(self) -> bool:
        return all(cell is not Mark.EMPTY for row in self._cells for cell in row)

    def rows(self) -> List[List[Mark]]:
        """Copy of the grid, row by row."""
        return [list(row) for row in self._cells]

    def evaluate(self) -> Outcome:
        for mark in (Mark.X, Mark.O):
            for line in LINES:
                if all(self._cells[r][c] is mark for r, c in line):
                    return Outcome(OutcomeKind.WIN, mark)
        if self.is_full:
            return DRAW
        return NO_RESULT

    def render(self) -> str:
        """
        Text rendering with coordinates, as the terminal client shows it:

               0 1 2
              ______
            0| X O
            1|   X
            2|     O
        """
        lines = ["   " + " ".join(str(c) for c in range(BOARD_SIZE))]
        lines.append("  " + "__" * BOARD_SIZE)
        for r, row in enumerate(self._cells):
            lines.append(f"{r}|" + "".join(f" {cell.symbol}" for cell in row))
        return "\n".join(lines)

    def __repr__(self):
        grid = "/".join("".join(cell.symbol if cell else "_" for cell in row) for row in self._cells)
        return f"Board({grid})"


def evaluate(board: Board) -> Outcome:
    """Module-level shorthand for board.evaluate()."""
    return board.evaluate()
