"""Mir2-family legacy map formats (tags 0, 1, 2, 3, 4 and 7).

All of them store one fixed-size record per cell, x outer and y inner,
after a fixed header.  They differ in header shape, which library indices
are stored at all, field widths, and how the back image's blocked bit and
the XOR obfuscation are applied.

=====  ======  =============================  ======
Tag    Header  Dimensions                     Record
=====  ======  =============================  ======
0      52      ``w, h`` at 0                  12
1      54      ``w^k`` 21, ``k`` 23, ``h^k`` 25  15
2      52      ``w, h`` at 0                  14
3      52      ``w, h`` at 0                  40
4      64      ``w^k`` 31, ``k`` 33, ``h^k`` 35  12
7      54      ``w`` 21, ``h`` 25             15
=====  ======  =============================  ======
"""

from __future__ import annotations

import struct

import numpy as np

from mirmap.codec.base import (
    DOOR_AND_ANIMATION,
    FormatCodec,
    cell_values,
    check_dimensions,
    copy_fields,
    ensure_range,
    header_with_title,
    new_cells,
    read_dimensions,
    read_records,
    record_dtype,
    require_length,
    store,
    widen,
)
from mirmap.codec.bits import (
    FRONT_INDEX_2010_STORED,
    add_bias,
    fold_blocked_flag,
    load_front_index_2010,
    remove_bias,
    store_front_index_2010,
    to_int16,
    to_uint16,
    unfold_blocked_flag,
    xor16,
    xor_back_image,
)
from mirmap.codec.errors import MalformedMapError
from mirmap.grid.grid import Grid, MapFormat

# Libraries implied by formats that only store the front index.
FIXED_BACK_INDEX = 0
FIXED_MIDDLE_INDEX = 1

FRONT_BIAS = 2
SHANDA_FRONT_BIAS = 120
SHANDA_BACK_BIAS = 100
SHANDA_MIDDLE_BIAS = 110

DEFAULT_HEADER_SIZE = 52
WEMADE_2010_HEADER_SIZE = 54
ANTIHACK_HEADER_SIZE = 64
HEROES_HEADER_SIZE = 54

WEMADE_2010_TITLE = b"\x10Map 2010 Ver 1.0"
SHANDA_TITLE = b"\x0fSNDA Map v1.0\r\n"
ANTIHACK_TITLE = b"\x15Mir2 AntiHack Ver 1.0"
HEROES_TITLE = b"\x0dLifCos Mirmap"

_DOOR_AND_ANIMATION_FIELDS = tuple((name, "u1") for name in DOOR_AND_ANIMATION)

DEFAULT_RECORD = record_dtype(
    [
        ("back_image", "<u2"),
        ("middle_image", "<i2"),
        ("front_image", "<i2"),
        *_DOOR_AND_ANIMATION_FIELDS,
        ("front_index", "u1"),
        ("light", "u1"),
    ],
)

WEMADE_2010_RECORD = record_dtype(
    [
        ("back_image", "<u4"),
        ("middle_image", "<u2"),
        ("front_image", "<u2"),
        *_DOOR_AND_ANIMATION_FIELDS,
        ("front_index", "u1"),
        ("light", "u1"),
        ("unknown", "u1"),
    ],
)

_SHANDA_FIELDS = [
    ("back_image", "<u2"),
    ("middle_image", "<i2"),
    ("front_image", "<i2"),
    *_DOOR_AND_ANIMATION_FIELDS,
    ("front_index", "u1"),
    ("light", "u1"),
    ("back_index", "u1"),
    ("middle_index", "u1"),
]
SHANDA_OLD_RECORD = record_dtype(_SHANDA_FIELDS)
SHANDA_2012_RECORD = record_dtype(
    [
        *_SHANDA_FIELDS,
        ("tile_animation_image", "<i2"),
        ("_reserved_tiles", "V7"),
        ("tile_animation_frames", "u1"),
        ("tile_animation_offset", "<i2"),
        ("_reserved_blend", "V14"),
    ],
)

ANTIHACK_RECORD = record_dtype(
    [
        ("back_image", "<u2"),
        ("middle_image", "<u2"),
        ("front_image", "<u2"),
        *_DOOR_AND_ANIMATION_FIELDS,
        ("front_index", "u1"),
        ("light", "u1"),
    ],
)

HEROES_RECORD = record_dtype(
    [
        ("back_image", "<i4"),
        ("middle_image", "<i2"),
        ("front_image", "<i2"),
        *_DOOR_AND_ANIMATION_FIELDS,
        ("front_index", "u1"),
        ("light", "u1"),
        ("unknown", "u1"),
    ],
)

TILE_ANIMATION_FIELDS = (
    "tile_animation_image",
    "tile_animation_frames",
    "tile_animation_offset",
)


# --------------------------------------------------------------------------
# Header helpers
# --------------------------------------------------------------------------


def _read_keyed_dimensions(
    data: bytes,
    tag: MapFormat,
    *,
    header_size: int,
    width_at: int,
) -> tuple[int, int, int]:
    """Read ``width ^ key``, ``key``, ``height ^ key`` stored back to back."""
    require_length(data, header_size, tag)
    width_x, key, height_x = struct.unpack_from("<HHH", data, width_at)
    width, height = width_x ^ key, height_x ^ key
    check_dimensions(width, height, tag)
    return width, height, key


def _keyed_header(size: int, title: bytes, width_at: int, grid: Grid, key: int) -> bytes:
    key &= 0xFFFF
    header = header_with_title(size, title)
    struct.pack_into("<HHH", header, width_at, grid.width ^ key, key, grid.height ^ key)
    return bytes(header)


def _plain_header(grid: Grid, title: bytes = b"", title_at: int = 4) -> bytes:
    header = bytearray(DEFAULT_HEADER_SIZE)
    struct.pack_into("<hh", header, 0, grid.width, grid.height)
    header[title_at : title_at + len(title)] = title
    return bytes(header)


def _fixed_indices(cells: np.ndarray) -> None:
    cells["back_index"] = FIXED_BACK_INDEX
    cells["middle_index"] = FIXED_MIDDLE_INDEX


def _reject(values: np.ndarray, bad: np.ndarray, label: str, tag: MapFormat) -> None:
    if bad.any():
        first = int(values[bad][0])
        msg = f"{label} value {first} cannot be stored in format {int(tag)}"
        raise MalformedMapError(msg, tag=int(tag))


def _stored_back_image(grid: Grid, tag: MapFormat) -> np.ndarray:
    """Return back images with the blocked flag moved back to bit 15.

    Only a 15-bit image, optionally flagged with ``0x20000000``, survives
    the trip; anything else would decode to a different value.

    Raises:
        MalformedMapError: Naming the first back image that would change.
    """
    back = cell_values(grid, "back_image")
    stored = unfold_blocked_flag(back)
    _reject(back, fold_blocked_flag(stored) != back, "back_image", tag)
    return stored


# --------------------------------------------------------------------------
# Tag 0: original Mir2 layout
# --------------------------------------------------------------------------


def decode_default(data: bytes) -> Grid:
    """Decode the original Mir2 layout (tag 0)."""
    tag = MapFormat.DEFAULT
    width, height = read_dimensions(
        data, tag, header_size=DEFAULT_HEADER_SIZE, width_at=0, height_at=2,
    )
    records = read_records(data, DEFAULT_RECORD, DEFAULT_HEADER_SIZE, width * height, tag)

    cells = new_cells(width * height)
    _fixed_indices(cells)
    cells["back_image"] = fold_blocked_flag(widen(records, "back_image"))
    copy_fields(records, cells, ("middle_image", "front_image", *DOOR_AND_ANIMATION, "light"))
    cells["front_index"] = add_bias(widen(records, "front_index"), FRONT_BIAS)
    return Grid(width, height, tag, cells)


def encode_default(grid: Grid, key: int | None = None) -> bytes:
    """Encode a grid in the original Mir2 layout (tag 0)."""
    tag = MapFormat.DEFAULT
    records = np.zeros(grid.width * grid.height, dtype=DEFAULT_RECORD)
    store(records, "back_image", _stored_back_image(grid, tag), tag)
    for name in ("middle_image", "front_image", *DOOR_AND_ANIMATION, "light"):
        store(records, name, cell_values(grid, name), tag)
    store(
        records,
        "front_index",
        remove_bias(cell_values(grid, "front_index"), FRONT_BIAS),
        tag,
    )
    return _plain_header(grid) + records.tobytes()


# --------------------------------------------------------------------------
# Tag 1: Wemade 2010
# --------------------------------------------------------------------------


def decode_wemade_2010(data: bytes) -> Grid:
    """Decode the Wemade "Map 2010 Ver 1.0" layout (tag 1)."""
    tag = MapFormat.WEMADE_2010
    width, height, key = _read_keyed_dimensions(
        data, tag, header_size=WEMADE_2010_HEADER_SIZE, width_at=21,
    )
    records = read_records(
        data, WEMADE_2010_RECORD, WEMADE_2010_HEADER_SIZE, width * height, tag,
    )

    cells = new_cells(width * height)
    _fixed_indices(cells)
    cells["back_image"] = xor_back_image(widen(records, "back_image"))
    cells["middle_image"] = to_int16(xor16(widen(records, "middle_image"), key))
    cells["front_image"] = to_int16(xor16(widen(records, "front_image"), key))
    copy_fields(records, cells, (*DOOR_AND_ANIMATION, "light", "unknown"))
    cells["front_index"] = load_front_index_2010(
        add_bias(widen(records, "front_index"), FRONT_BIAS),
    )
    return Grid(width, height, tag, cells)


def encode_wemade_2010(grid: Grid, key: int) -> bytes:
    """Encode a grid in the Wemade 2010 layout (tag 1) with XOR ``key``."""
    tag = MapFormat.WEMADE_2010
    records = np.zeros(grid.width * grid.height, dtype=WEMADE_2010_RECORD)

    back = ensure_range(cell_values(grid, "back_image"), -0x80000000, 0x7FFFFFFF, "back_image", tag)
    store(records, "back_image", xor_back_image(back) & 0xFFFFFFFF, tag)
    for name in ("middle_image", "front_image"):
        plain = ensure_range(cell_values(grid, name), -0x8000, 0x7FFF, name, tag)
        store(records, name, xor16(to_uint16(plain), key), tag)
    for name in (*DOOR_AND_ANIMATION, "light", "unknown"):
        store(records, name, cell_values(grid, name), tag)
    front_index = cell_values(grid, "front_index")
    # 102 is read back as 90.
    _reject(front_index, front_index == FRONT_INDEX_2010_STORED, "front_index", tag)
    front_index = store_front_index_2010(front_index)
    store(records, "front_index", remove_bias(front_index, FRONT_BIAS), tag)

    header = _keyed_header(WEMADE_2010_HEADER_SIZE, WEMADE_2010_TITLE, 21, grid, key)
    return header + records.tobytes()


# --------------------------------------------------------------------------
# Tags 2 and 3: Shanda
# --------------------------------------------------------------------------


def _decode_shanda(data: bytes, tag: MapFormat, dtype: np.dtype) -> tuple[Grid, np.ndarray]:
    width, height = read_dimensions(
        data, tag, header_size=DEFAULT_HEADER_SIZE, width_at=0, height_at=2,
    )
    records = read_records(data, dtype, DEFAULT_HEADER_SIZE, width * height, tag)

    cells = new_cells(width * height)
    cells["back_image"] = fold_blocked_flag(widen(records, "back_image"))
    copy_fields(records, cells, ("middle_image", "front_image", *DOOR_AND_ANIMATION, "light"))
    cells["front_index"] = add_bias(widen(records, "front_index"), SHANDA_FRONT_BIAS)
    cells["back_index"] = add_bias(widen(records, "back_index"), SHANDA_BACK_BIAS)
    cells["middle_index"] = add_bias(widen(records, "middle_index"), SHANDA_MIDDLE_BIAS)
    return Grid(width, height, tag, cells), records


def _encode_shanda(grid: Grid, tag: MapFormat, dtype: np.dtype) -> np.ndarray:
    records = np.zeros(grid.width * grid.height, dtype=dtype)
    store(records, "back_image", _stored_back_image(grid, tag), tag)
    for name in ("middle_image", "front_image", *DOOR_AND_ANIMATION, "light"):
        store(records, name, cell_values(grid, name), tag)
    for name, bias in (
        ("front_index", SHANDA_FRONT_BIAS),
        ("back_index", SHANDA_BACK_BIAS),
        ("middle_index", SHANDA_MIDDLE_BIAS),
    ):
        store(records, name, remove_bias(cell_values(grid, name), bias), tag)
    return records


def decode_shanda_old(data: bytes) -> Grid:
    """Decode the older Shanda layout (tag 2)."""
    grid, _ = _decode_shanda(data, MapFormat.SHANDA_OLD, SHANDA_OLD_RECORD)
    return grid


def encode_shanda_old(grid: Grid, key: int | None = None) -> bytes:
    """Encode a grid in the older Shanda layout (tag 2)."""
    records = _encode_shanda(grid, MapFormat.SHANDA_OLD, SHANDA_OLD_RECORD)
    return _plain_header(grid, SHANDA_TITLE) + records.tobytes()


def decode_shanda_2012(data: bytes) -> Grid:
    """Decode the 2012 Shanda layout (tag 3), which adds tile animation."""
    grid, records = _decode_shanda(data, MapFormat.SHANDA_2012, SHANDA_2012_RECORD)
    copy_fields(records, grid.cells, TILE_ANIMATION_FIELDS)
    return grid


def encode_shanda_2012(grid: Grid, key: int | None = None) -> bytes:
    """Encode a grid in the 2012 Shanda layout (tag 3)."""
    tag = MapFormat.SHANDA_2012
    records = _encode_shanda(grid, tag, SHANDA_2012_RECORD)
    for name in TILE_ANIMATION_FIELDS:
        store(records, name, cell_values(grid, name), tag)
    return _plain_header(grid, SHANDA_TITLE) + records.tobytes()


# --------------------------------------------------------------------------
# Tag 4: Wemade AntiHack
# --------------------------------------------------------------------------


def decode_antihack(data: bytes) -> Grid:
    """Decode the Wemade "Mir2 AntiHack" layout (tag 4)."""
    tag = MapFormat.ANTIHACK
    width, height, key = _read_keyed_dimensions(
        data, tag, header_size=ANTIHACK_HEADER_SIZE, width_at=31,
    )
    records = read_records(data, ANTIHACK_RECORD, ANTIHACK_HEADER_SIZE, width * height, tag)

    cells = new_cells(width * height)
    _fixed_indices(cells)
    cells["back_image"] = fold_blocked_flag(xor16(widen(records, "back_image"), key))
    cells["middle_image"] = to_int16(xor16(widen(records, "middle_image"), key))
    cells["front_image"] = to_int16(xor16(widen(records, "front_image"), key))
    copy_fields(records, cells, (*DOOR_AND_ANIMATION, "light"))
    cells["front_index"] = add_bias(widen(records, "front_index"), FRONT_BIAS)
    return Grid(width, height, tag, cells)


def encode_antihack(grid: Grid, key: int) -> bytes:
    """Encode a grid in the AntiHack layout (tag 4) with XOR ``key``."""
    tag = MapFormat.ANTIHACK
    records = np.zeros(grid.width * grid.height, dtype=ANTIHACK_RECORD)

    back = ensure_range(_stored_back_image(grid, tag), 0, 0xFFFF, "back_image", tag)
    store(records, "back_image", xor16(back, key), tag)
    for name in ("middle_image", "front_image"):
        plain = ensure_range(cell_values(grid, name), -0x8000, 0x7FFF, name, tag)
        store(records, name, xor16(to_uint16(plain), key), tag)
    for name in (*DOOR_AND_ANIMATION, "light"):
        store(records, name, cell_values(grid, name), tag)
    store(
        records,
        "front_index",
        remove_bias(cell_values(grid, "front_index"), FRONT_BIAS),
        tag,
    )

    header = _keyed_header(ANTIHACK_HEADER_SIZE, ANTIHACK_TITLE, 31, grid, key)
    return header + records.tobytes()


# --------------------------------------------------------------------------
# Tag 7: 3/4 Heroes
# --------------------------------------------------------------------------


def decode_heroes(data: bytes) -> Grid:
    """Decode the 3/4 Heroes layout (tag 7)."""
    tag = MapFormat.HEROES
    width, height = read_dimensions(
        data, tag, header_size=HEROES_HEADER_SIZE, width_at=21, height_at=25,
    )
    records = read_records(data, HEROES_RECORD, HEROES_HEADER_SIZE, width * height, tag)

    cells = new_cells(width * height)
    _fixed_indices(cells)
    cells["back_image"] = fold_blocked_flag(widen(records, "back_image"))
    copy_fields(
        records, cells, ("middle_image", "front_image", *DOOR_AND_ANIMATION, "light", "unknown"),
    )
    cells["front_index"] = add_bias(widen(records, "front_index"), FRONT_BIAS)
    return Grid(width, height, tag, cells)


def encode_heroes(grid: Grid, key: int | None = None) -> bytes:
    """Encode a grid in the 3/4 Heroes layout (tag 7)."""
    tag = MapFormat.HEROES
    records = np.zeros(grid.width * grid.height, dtype=HEROES_RECORD)
    store(records, "back_image", _stored_back_image(grid, tag), tag)
    for name in ("middle_image", "front_image", *DOOR_AND_ANIMATION, "light", "unknown"):
        store(records, name, cell_values(grid, name), tag)
    store(
        records,
        "front_index",
        remove_bias(cell_values(grid, "front_index"), FRONT_BIAS),
        tag,
    )

    header = header_with_title(HEROES_HEADER_SIZE, HEROES_TITLE)
    struct.pack_into("<h", header, 21, grid.width)
    struct.pack_into("<h", header, 25, grid.height)
    return bytes(header) + records.tobytes()


DEFAULT_CODEC = FormatCodec(MapFormat.DEFAULT, decode_default, encode_default)
WEMADE_2010_CODEC = FormatCodec(
    MapFormat.WEMADE_2010, decode_wemade_2010, encode_wemade_2010, uses_key=True,
)
SHANDA_OLD_CODEC = FormatCodec(MapFormat.SHANDA_OLD, decode_shanda_old, encode_shanda_old)
SHANDA_2012_CODEC = FormatCodec(MapFormat.SHANDA_2012, decode_shanda_2012, encode_shanda_2012)
ANTIHACK_CODEC = FormatCodec(MapFormat.ANTIHACK, decode_antihack, encode_antihack, uses_key=True)
HEROES_CODEC = FormatCodec(MapFormat.HEROES, decode_heroes, encode_heroes)
