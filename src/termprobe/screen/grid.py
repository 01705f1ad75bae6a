"""Fixed-size character grid backing the screen state."""

from __future__ import annotations

from termprobe.domain.models import Cell
from termprobe.errors import InvalidDimensionsError


class Grid:
    """A width x height matrix of :class:`Cell`, stored row-major.

    The grid never grows or shrinks; a terminal resize replaces it with a
    fresh blank grid.
    """

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise InvalidDimensionsError(width, height)
        self._width = width
        self._height = height
        self._rows: list[list[Cell]] = [
            [Cell() for _ in range(width)] for _ in range(height)
        ]

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self._height and 0 <= col < self._width

    def cell(self, row: int, col: int) -> Cell | None:
        """Return the cell at (row, col), or None when out of bounds."""
        if not self.in_bounds(row, col):
            return None
        return self._rows[row][col]

    def row(self, row: int) -> list[Cell]:
        return self._rows[row]

    def row_text(self, row: int) -> str:
        """Characters of one row, or an empty string when out of bounds."""
        if not 0 <= row < self._height:
            return ""
        return "".join(cell.char for cell in self._rows[row])

    def text(self) -> str:
        return "\n".join(self.row_text(row) for row in range(self._height))

    def clear_row(self, row: int, start: int = 0, end: int | None = None) -> None:
        """Blank cells ``start`` up to (excluding) ``end`` of ``row``."""
        if not 0 <= row < self._height:
            return
        stop = self._width if end is None else min(end, self._width)
        for cell in self._rows[row][max(start, 0):stop]:
            cell.reset()

    def clear(self) -> None:
        for row in range(self._height):
            self.clear_row(row)
