"""Cell — one grid position's tile, door, animation and light attributes.

The grid stores cells in a single numpy structured array (``CELL_DTYPE``);
``Cell`` is the plain-Python view used when a caller reads or writes one
position at a time.
"""

from __future__ import annotations

from dataclasses import astuple, dataclass, replace
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

FISHING_LIGHT_MIN = 100
FISHING_LIGHT_MAX = 119

CELL_DTYPE = np.dtype(
    [
        ("back_index", "<i2"),
        ("back_image", "<i4"),
        ("middle_index", "<i2"),
        ("middle_image", "<i2"),
        ("front_index", "<i2"),
        ("front_image", "<i2"),
        ("door_index", "u1"),
        ("door_offset", "u1"),
        ("front_animation_frame", "u1"),
        ("front_animation_tick", "u1"),
        ("middle_animation_frame", "u1"),
        ("middle_animation_tick", "u1"),
        ("tile_animation_image", "<i2"),
        ("tile_animation_offset", "<i2"),
        ("tile_animation_frames", "u1"),
        ("light", "u1"),
        ("unknown", "u1"),
    ],
)


def is_fishing_zone(light: ArrayLike) -> bool | NDArray[np.bool_]:
    """Return whether a light value marks a fishing zone.

    Works on a single value or element-wise on an array of light values.
    """
    light = np.asarray(light)
    mask = (light >= FISHING_LIGHT_MIN) & (light <= FISHING_LIGHT_MAX)
    if mask.ndim == 0:
        return bool(mask)
    return mask


@dataclass
class Cell:
    """A single map position.

    Attributes:
        back_index: Tile library for the background layer.
        back_image: Image within the background library.  Bit
            ``0x20000000`` is the "blocked" flag carried over from the
            legacy formats.
        middle_index: Tile library for the middle layer.
        middle_image: Image within the middle library.
        front_index: Tile library for the front layer.
        front_image: Image within the front library.
        door_index: Door id (0 = no door).
        door_offset: Door animation phase.
        front_animation_frame: Frame count for front layer animation.
        front_animation_tick: Tick delay for front layer animation.
        middle_animation_frame: Frame count for middle layer animation.
        middle_animation_tick: Tick delay for middle layer animation.
        tile_animation_image: First image of a tile animation.
        tile_animation_offset: Offset applied to tile animation frames.
        tile_animation_frames: Number of tile animation frames.
        light: 0 = unlit, 1-99 = intensity, 100-119 = fishing zone.
        unknown: Reserved byte kept by some legacy formats.
    """

    back_index: int = 0
    back_image: int = 0
    middle_index: int = 0
    middle_image: int = 0
    front_index: int = 0
    front_image: int = 0
    door_index: int = 0
    door_offset: int = 0
    front_animation_frame: int = 0
    front_animation_tick: int = 0
    middle_animation_frame: int = 0
    middle_animation_tick: int = 0
    tile_animation_image: int = 0
    tile_animation_offset: int = 0
    tile_animation_frames: int = 0
    light: int = 0
    unknown: int = 0

    @property
    def is_fishing_zone(self) -> bool:
        """Return True if ``light`` falls in the fishing-zone range."""
        return FISHING_LIGHT_MIN <= self.light <= FISHING_LIGHT_MAX

    def clone(self) -> Cell:
        """Return an independent copy of this cell."""
        return replace(self)

    @classmethod
    def from_record(cls, record: np.void) -> Cell:
        """Build a Cell from one element of a ``CELL_DTYPE`` array."""
        return cls(*(int(record[name]) for name in CELL_DTYPE.names))

    def to_record(self) -> tuple[int, ...]:
        """Return the field values in ``CELL_DTYPE`` order."""
        return astuple(self)
