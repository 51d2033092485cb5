"""Shared fixtures for the mirmap test suite."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pytest
from numpy.random import Generator

from mirmap.grid.cell import CELL_DTYPE
from mirmap.grid.grid import Grid, MapFormat

# Light values at and around the fishing-zone boundaries.
BOUNDARY_LIGHTS = (0, 99, 100, 119, 120)

FULL_LIGHT_FORMATS = (
    MapFormat.DEFAULT,
    MapFormat.WEMADE_2010,
    MapFormat.SHANDA_OLD,
    MapFormat.SHANDA_2012,
    MapFormat.ANTIHACK,
    MapFormat.HEROES,
    MapFormat.NATIVE,
)


def _ints(rng: Generator, lo: int, hi: int, n: int) -> np.ndarray:
    return rng.integers(lo, hi, size=n, endpoint=True)


def _flagged_back(rng: Generator, n: int) -> np.ndarray:
    """15-bit back images, some carrying the blocked flag."""
    images = _ints(rng, 0, 0x7FFF, n)
    return np.where(rng.random(n) < 0.3, images | 0x20000000, images)


def _mir3_index(rng: Generator, lo: int, hi: int, n: int) -> np.ndarray:
    return np.where(rng.random(n) < 0.2, -1, _ints(rng, lo, hi, n))


def _mir2_cells(rng: Generator, cells: np.ndarray) -> None:
    n = len(cells)
    cells["middle_index"] = 1
    cells["back_image"] = _flagged_back(rng, n)
    cells["middle_image"] = _ints(rng, -0x8000, 0x7FFF, n)
    cells["front_image"] = _ints(rng, -0x8000, 0x7FFF, n)
    cells["front_index"] = _ints(rng, 2, 257, n)
    for name in ("door_index", "door_offset", "front_animation_frame", "front_animation_tick"):
        cells[name] = _ints(rng, 0, 255, n)
    cells["light"] = _ints(rng, 0, 255, n)


def _shanda_cells(rng: Generator, cells: np.ndarray) -> None:
    n = len(cells)
    _mir2_cells(rng, cells)
    cells["back_index"] = _ints(rng, 100, 355, n)
    cells["middle_index"] = _ints(rng, 110, 365, n)
    cells["front_index"] = _ints(rng, 120, 375, n)


def _wemade_mir3_cells(rng: Generator, cells: np.ndarray, width: int, height: int) -> None:
    n = len(cells)
    blocks_x, blocks_y = width // 2, height // 2
    back_index = np.zeros((width, height), dtype=np.int64)
    back_image = np.zeros((width, height), dtype=np.int64)
    block_index = _mir3_index(rng, 200, 454, blocks_x * blocks_y).reshape(blocks_x, blocks_y)
    block_image = _ints(rng, 0, 0x7FFF, blocks_x * blocks_y).reshape(blocks_x, blocks_y)
    back_index[: blocks_x * 2, : blocks_y * 2] = block_index.repeat(2, axis=0).repeat(2, axis=1)
    back_image[: blocks_x * 2, : blocks_y * 2] = block_image.repeat(2, axis=0).repeat(2, axis=1)
    back_image = back_image.ravel()

    cells["back_index"] = back_index.ravel()
    cells["back_image"] = np.where(rng.random(n) < 0.3, back_image | 0x20000000, back_image)
    cells["middle_index"] = _mir3_index(rng, 200, 454, n)
    cells["front_index"] = _mir3_index(rng, 201, 454, n)
    cells["middle_image"] = _ints(rng, -0x7FFF, 0x7FFF, n)
    cells["front_image"] = _ints(rng, -0x8000, 0x7FFF, n)
    cells["middle_animation_frame"] = _ints(rng, 0, 255, n)
    frames = _ints(rng, 0, 0x0F, n)
    cells["front_animation_frame"] = np.where(rng.random(n) < 0.5, frames | 0x80, frames)
    cells["light"] = _ints(rng, 0, 15, n) * 4


def _shanda_mir3_cells(rng: Generator, cells: np.ndarray) -> None:
    n = len(cells)
    cells["back_index"] = _mir3_index(rng, 300, 554, n)
    cells["middle_index"] = _mir3_index(rng, 300, 554, n)
    cells["front_index"] = _mir3_index(rng, 300, 554, n)
    cells["back_image"] = _flagged_back(rng, n)
    cells["middle_image"] = _ints(rng, -0x7FFF, 0x7FFF, n)
    cells["front_image"] = _ints(rng, -0x8000, 0x7FFF, n)
    cells["middle_animation_frame"] = _ints(rng, 0, 255, n)
    cells["front_animation_frame"] = _ints(rng, 0, 0x0F, n)
    cells["light"] = _ints(rng, 0, 15, n) * 4


def _native_cells(rng: Generator, cells: np.ndarray) -> None:
    n = len(cells)
    for name in CELL_DTYPE.names:
        if name == "unknown":
            continue
        info = np.iinfo(CELL_DTYPE.fields[name][0])
        cells[name] = _ints(rng, info.min, info.max, n)


def representable_grid(
    rng: Generator,
    tag: MapFormat,
    width: int = 6,
    height: int = 5,
) -> Grid:
    """Build a random grid holding only values ``tag`` can store."""
    tag = MapFormat(tag)
    cells = np.zeros(width * height, dtype=CELL_DTYPE)
    if tag in (MapFormat.DEFAULT, MapFormat.ANTIHACK):
        _mir2_cells(rng, cells)
    elif tag == MapFormat.WEMADE_2010:
        _mir2_cells(rng, cells)
        cells["back_image"] = _ints(rng, -0x80000000, 0x7FFFFFFF, len(cells))
        front = cells["front_index"]
        cells["front_index"] = np.where(front == 102, 90, front)
        cells["unknown"] = _ints(rng, 0, 255, len(cells))
    elif tag == MapFormat.HEROES:
        _mir2_cells(rng, cells)
        cells["unknown"] = _ints(rng, 0, 255, len(cells))
    elif tag == MapFormat.SHANDA_OLD:
        _shanda_cells(rng, cells)
    elif tag == MapFormat.SHANDA_2012:
        _shanda_cells(rng, cells)
        n = len(cells)
        cells["tile_animation_image"] = _ints(rng, -0x8000, 0x7FFF, n)
        cells["tile_animation_offset"] = _ints(rng, -0x8000, 0x7FFF, n)
        cells["tile_animation_frames"] = _ints(rng, 0, 255, n)
    elif tag == MapFormat.WEMADE_MIR3:
        _wemade_mir3_cells(rng, cells, width, height)
    elif tag == MapFormat.SHANDA_MIR3:
        _shanda_mir3_cells(rng, cells)
    else:
        _native_cells(rng, cells)

    if tag in FULL_LIGHT_FORMATS:
        count = min(len(cells), len(BOUNDARY_LIGHTS))
        cells["light"][:count] = BOUNDARY_LIGHTS[:count]
    return Grid(width, height, tag, cells)


@pytest.fixture
def rng() -> Generator:
    """A deterministic random generator for reproducible tests."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def small_grid() -> Grid:
    """A blank 4x3 native grid for fast tests."""
    return Grid(width=4, height=3)


@pytest.fixture
def make_grid(rng: Generator) -> Callable[..., Grid]:
    """Factory for random grids a given format can store without loss."""

    def factory(tag: MapFormat, width: int = 6, height: int = 5) -> Grid:
        return representable_grid(rng, tag, width, height)

    return factory
