"""Pre-encode sanity check for grids."""

from __future__ import annotations

import numpy as np

from mirmap.grid.cell import CELL_DTYPE
from mirmap.grid.grid import MAX_DIMENSION, MIN_DIMENSION, Grid


def validate(grid: Grid | None) -> bool:
    """Return True if ``grid`` can be handed to an encoder.

    A grid is valid when it exists, both dimensions lie in
    ``[1, 10000]``, and its cell array is a ``CELL_DTYPE`` array holding
    exactly ``width * height`` cells.  Grids are checked on construction,
    but their attributes can be reassigned afterwards.
    """
    if grid is None:
        return False
    for value in (grid.width, grid.height):
        if not isinstance(value, (int, np.integer)):
            return False
        if not MIN_DIMENSION <= value <= MAX_DIMENSION:
            return False
    cells = grid.cells
    return (
        isinstance(cells, np.ndarray)
        and cells.dtype == CELL_DTYPE
        and cells.shape == (grid.width * grid.height,)
    )
