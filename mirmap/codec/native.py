"""Native map format (tag 100), the lossless layout this package saves by default.

Layout::

    u16 version (= 1) | "C#" | i16 width | i16 height | width*height records

Each 26-byte record holds every cell field except ``unknown``, with the
back image as a full 32-bit value and no remapping.
"""

from __future__ import annotations

import struct

import numpy as np

from mirmap.codec.base import (
    FormatCodec,
    check_dimensions,
    copy_fields,
    new_cells,
    read_records,
    record_dtype,
    require_length,
)
from mirmap.codec.errors import UnsupportedVersionError
from mirmap.grid.grid import Grid, MapFormat

NATIVE_VERSION = 1
NATIVE_MAGIC = b"C#"
NATIVE_HEADER_SIZE = 8

NATIVE_CELL_FIELDS = (
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
)
NATIVE_RECORD = record_dtype(NATIVE_CELL_FIELDS)
NATIVE_FIELD_NAMES = tuple(name for name, _ in NATIVE_CELL_FIELDS)


def native_file_size(width: int, height: int) -> int:
    """Return the size in bytes of a native map of the given dimensions."""
    return NATIVE_HEADER_SIZE + width * height * NATIVE_RECORD.itemsize


def decode_native(data: bytes) -> Grid:
    """Decode a native (tag 100) map.

    Raises:
        UnsupportedVersionError: If the version is not 1.
        TruncatedMapError: If the buffer ends before the last cell.
    """
    tag = MapFormat.NATIVE
    require_length(data, NATIVE_HEADER_SIZE, tag)
    version, width, height = struct.unpack_from("<H2xhh", data, 0)
    if version != NATIVE_VERSION:
        msg = f"unsupported native map version {version}"
        raise UnsupportedVersionError(msg, tag=int(tag))
    check_dimensions(width, height, tag)

    records = read_records(data, NATIVE_RECORD, NATIVE_HEADER_SIZE, width * height, tag)
    cells = new_cells(width * height)
    copy_fields(records, cells, NATIVE_FIELD_NAMES)
    return Grid(width, height, tag, cells)


def encode_native(grid: Grid, key: int | None = None) -> bytes:
    """Encode a grid as a native (tag 100) map."""
    header = struct.pack("<H2shh", NATIVE_VERSION, NATIVE_MAGIC, grid.width, grid.height)
    records = np.zeros(grid.width * grid.height, dtype=NATIVE_RECORD)
    copy_fields(grid.cells, records, NATIVE_FIELD_NAMES)
    return header + records.tobytes()


NATIVE_CODEC = FormatCodec(MapFormat.NATIVE, decode_native, encode_native)
