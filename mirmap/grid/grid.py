"""Grid — the width x height map of cells plus its source format.

Cells live in one contiguous numpy structured array.  Position ``(x, y)``
is stored at flat index ``x * height + y``, which is the column-major
order every map format persists, so codecs can move whole buffers
without reordering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np
from numpy.typing import NDArray

from mirmap.grid.cell import CELL_DTYPE, Cell, is_fishing_zone

MIN_DIMENSION = 1
MAX_DIMENSION = 10000
BLANK_SIZE = 1000


class MapFormat(IntEnum):
    """Byte layout a map was read from (or will be written as)."""

    DEFAULT = 0
    WEMADE_2010 = 1
    SHANDA_OLD = 2
    SHANDA_2012 = 3
    ANTIHACK = 4
    WEMADE_MIR3 = 5
    SHANDA_MIR3 = 6
    HEROES = 7
    NATIVE = 100


@dataclass(eq=False)
class Grid:
    """A map grid.

    Attributes:
        width: Number of columns (1-10000).
        height: Number of rows (1-10000).
        format_tag: Layout the grid was decoded from.
        cells: Flat ``CELL_DTYPE`` array of ``width * height`` cells.
    """

    width: int
    height: int
    format_tag: MapFormat = MapFormat.NATIVE
    cells: NDArray[np.void] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Check dimensions and allocate blank cells if none were given."""
        for name, value in (("width", self.width), ("height", self.height)):
            if not MIN_DIMENSION <= value <= MAX_DIMENSION:
                msg = f"{name} must be in [{MIN_DIMENSION}, {MAX_DIMENSION}], got {value}"
                raise ValueError(msg)
        self.format_tag = MapFormat(self.format_tag)
        if self.cells is None:
            self.cells = np.zeros(self.width * self.height, dtype=CELL_DTYPE)
        elif self.cells.shape != (self.width * self.height,):
            msg = (
                f"cell array of shape {self.cells.shape} does not fit "
                f"{self.width}x{self.height}"
            )
            raise ValueError(msg)

    @classmethod
    def blank(cls) -> Grid:
        """Return the default empty 1000x1000 native grid."""
        return cls(width=BLANK_SIZE, height=BLANK_SIZE)

    def in_bounds(self, x: int, y: int) -> bool:
        """Return True if ``(x, y)`` lies inside the grid."""
        return 0 <= x < self.width and 0 <= y < self.height

    def _index(self, x: int, y: int) -> int:
        if not self.in_bounds(x, y):
            msg = f"({x}, {y}) out of bounds for {self.width}x{self.height}"
            raise IndexError(msg)
        return x * self.height + y

    def cell_at(self, x: int, y: int) -> Cell:
        """Return a copy of the cell at ``(x, y)``.

        Raises:
            IndexError: If coordinates are out of bounds.
        """
        return Cell.from_record(self.cells[self._index(x, y)])

    def get_cell(self, x: int, y: int) -> Cell | None:
        """Return the cell at ``(x, y)``, or None when out of bounds."""
        if not self.in_bounds(x, y):
            return None
        return self.cell_at(x, y)

    def set_cell(self, x: int, y: int, cell: Cell) -> None:
        """Overwrite the cell at ``(x, y)``.

        Raises:
            IndexError: If coordinates are out of bounds.
        """
        self.cells[self._index(x, y)] = cell.to_record()

    def layer(self, name: str) -> NDArray[np.generic]:
        """Return one cell field as a ``(width, height)`` view indexed ``[x, y]``."""
        return self.cells[name].reshape(self.width, self.height)

    def fishing_zones(self) -> NDArray[np.bool_]:
        """Return a ``(width, height)`` mask of fishing-zone cells."""
        return is_fishing_zone(self.layer("light"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.format_tag == other.format_tag
            and np.array_equal(self.cells, other.cells)
        )
