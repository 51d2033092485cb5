"""Mir3-family map formats (tags 5 and 6).

Both store library indices as biased bytes where 255 means "none", images
minus one, a four-bit light level, and a flag byte whose cleared bits mark
a blocked back tile and a flipped front image.

The Wemade layout (tag 5) splits the map in two passes: background tiles
are stored once per 2x2 block, then every cell gets a 14-byte record for
the middle and front layers.  An odd width adds one unused 3-byte block
per block row before the cell records.  The Shanda layout (tag 6) keeps
all three layers in a single 20-byte record.
"""

from __future__ import annotations

import logging
import struct

import numpy as np

from mirmap.codec.base import (
    FormatCodec,
    cell_values,
    copy_fields,
    ensure_range,
    header_with_title,
    new_cells,
    read_dimensions,
    read_records,
    record_dtype,
    store,
    widen,
)
from mirmap.codec.bits import (
    MIR3_NO_FRONT,
    apply_mir3_flags,
    clear_empty_front,
    decode_mir3_image,
    decode_mir3_index,
    decode_mir3_light,
    encode_mir3_image,
    encode_mir3_index,
    encode_mir3_light,
    shanda_mir3_front_frame,
    split_mir3_flags,
    to_int16,
    to_uint16,
    wemade_mir3_front_frame,
)
from mirmap.grid.grid import Grid, MapFormat

logger = logging.getLogger(__name__)

WEMADE_MIR3_HEADER_SIZE = 28
WEMADE_MIR3_INDEX_BIAS = 200
SHANDA_MIR3_HEADER_SIZE = 40
SHANDA_MIR3_INDEX_BIAS = 300
SHANDA_MIR3_TITLE = b"\x0f(C) SNDA, MIR3."

BLOCK_RECORD = record_dtype(
    [
        ("back_index", "u1"),
        ("back_image", "<u2"),
    ],
)

WEMADE_MIR3_RECORD = record_dtype(
    [
        ("flag", "u1"),
        ("middle_animation_frame", "u1"),
        ("front_animation_frame", "u1"),
        ("front_index", "u1"),
        ("middle_index", "u1"),
        ("middle_image", "<u2"),
        ("front_image", "<u2"),
        ("_reserved", "V3"),
        ("light", "u1"),
        ("_padding", "V1"),
    ],
)

SHANDA_MIR3_RECORD = record_dtype(
    [
        ("flag", "u1"),
        ("back_index", "u1"),
        ("middle_index", "u1"),
        ("front_index", "u1"),
        ("back_image", "<u2"),
        ("middle_image", "<u2"),
        ("front_image", "<u2"),
        ("middle_animation_frame", "u1"),
        ("front_animation_frame", "u1"),
        ("light", "u1"),
        ("_reserved", "V7"),
    ],
)


def _store_index(
    records: np.ndarray,
    name: str,
    index: np.ndarray,
    bias: int,
    tag: MapFormat,
) -> None:
    raw = encode_mir3_index(index, bias)
    ensure_range(raw[index != MIR3_NO_FRONT], 0, 0xFE, name, tag)
    store(records, name, raw, tag)


def _store_image(records: np.ndarray, name: str, image: np.ndarray, tag: MapFormat) -> None:
    ensure_range(image - 1, -0x8000, 0x7FFF, name, tag)
    store(records, name, encode_mir3_image(image), tag)


def _store_light(records: np.ndarray, grid: Grid, tag: MapFormat) -> None:
    light = cell_values(grid, "light")
    quantised = encode_mir3_light(light)
    lossy = int(np.count_nonzero(quantised * 4 != light))
    if lossy:
        logger.debug("format %d keeps light in steps of 4; %d cells rounded", int(tag), lossy)
    store(records, "light", quantised, tag)


def _wemade_blocks(width: int, height: int) -> tuple[int, int, int]:
    """Return ``(blocks_x, blocks_y, cell_offset)`` for a tag 5 map."""
    blocks_x, blocks_y = width // 2, height // 2
    cell_offset = WEMADE_MIR3_HEADER_SIZE + 3 * (blocks_x + width % 2) * blocks_y
    return blocks_x, blocks_y, cell_offset


def _block_cells(width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
    """Map every cell covered by a 2x2 block to its block number.

    Returns:
        ``(cell_indices, block_indices)``, flat and aligned.
    """
    blocks_y = height // 2
    xs, ys = np.meshgrid(
        np.arange((width // 2) * 2),
        np.arange(blocks_y * 2),
        indexing="ij",
    )
    cell_indices = (xs * height + ys).ravel()
    block_indices = ((xs // 2) * blocks_y + ys // 2).ravel()
    return cell_indices, block_indices


# --------------------------------------------------------------------------
# Tag 5: Wemade Mir3
# --------------------------------------------------------------------------


def decode_wemade_mir3(data: bytes) -> Grid:
    """Decode a Wemade Mir3 map (tag 5)."""
    tag = MapFormat.WEMADE_MIR3
    width, height = read_dimensions(
        data, tag, header_size=WEMADE_MIR3_HEADER_SIZE, width_at=24, height_at=26,
    )
    blocks_x, blocks_y, cell_offset = _wemade_blocks(width, height)
    blocks = read_records(data, BLOCK_RECORD, WEMADE_MIR3_HEADER_SIZE, blocks_x * blocks_y, tag)
    records = read_records(data, WEMADE_MIR3_RECORD, cell_offset, width * height, tag)

    count = width * height
    back_index = np.zeros(count, dtype=np.int64)
    back_image = np.zeros(count, dtype=np.int64)
    cell_indices, block_indices = _block_cells(width, height)
    back_index[cell_indices] = decode_mir3_index(
        widen(blocks, "back_index")[block_indices], WEMADE_MIR3_INDEX_BIAS,
    )
    back_image[cell_indices] = to_int16(widen(blocks, "back_image")[block_indices]) + 1

    front_index = decode_mir3_index(widen(records, "front_index"), WEMADE_MIR3_INDEX_BIAS)
    front_image = decode_mir3_image(widen(records, "front_image"))
    front_index = clear_empty_front(front_index, front_image)
    back_image, front_image = apply_mir3_flags(widen(records, "flag"), back_image, front_image)

    cells = new_cells(count)
    cells["back_index"] = back_index
    cells["back_image"] = back_image
    cells["middle_index"] = decode_mir3_index(
        widen(records, "middle_index"), WEMADE_MIR3_INDEX_BIAS,
    )
    cells["middle_image"] = decode_mir3_image(widen(records, "middle_image"))
    cells["front_index"] = front_index
    cells["front_image"] = front_image
    copy_fields(records, cells, ("middle_animation_frame",))
    cells["front_animation_frame"] = wemade_mir3_front_frame(
        widen(records, "front_animation_frame"),
    )
    cells["light"] = decode_mir3_light(widen(records, "light"))
    return Grid(width, height, tag, cells)


def encode_wemade_mir3(grid: Grid, key: int | None = None) -> bytes:
    """Encode a grid as a Wemade Mir3 map (tag 5).

    Each 2x2 block takes its background from the block's top-left cell.
    """
    tag = MapFormat.WEMADE_MIR3
    width, height = grid.width, grid.height
    blocks_x, blocks_y, _ = _wemade_blocks(width, height)
    flag, back_image, front_image = split_mir3_flags(
        cell_values(grid, "back_image"), cell_values(grid, "front_image"),
    )

    corners = (
        np.arange(blocks_x)[:, None] * 2 * height + np.arange(blocks_y)[None, :] * 2
    ).ravel()
    blocks = np.zeros(blocks_x * blocks_y, dtype=BLOCK_RECORD)
    _store_index(
        blocks, "back_index", cell_values(grid, "back_index")[corners],
        WEMADE_MIR3_INDEX_BIAS, tag,
    )
    corner_images = ensure_range(
        back_image[corners] - 1, -0x8000, 0x7FFF, "back_image", tag,
    )
    store(blocks, "back_image", to_uint16(corner_images), tag)

    records = np.zeros(width * height, dtype=WEMADE_MIR3_RECORD)
    store(records, "flag", flag, tag)
    for name in ("middle_animation_frame", "front_animation_frame"):
        store(records, name, cell_values(grid, name), tag)
    for name in ("front_index", "middle_index"):
        _store_index(records, name, cell_values(grid, name), WEMADE_MIR3_INDEX_BIAS, tag)
    _store_image(records, "middle_image", cell_values(grid, "middle_image"), tag)
    _store_image(records, "front_image", front_image, tag)
    _store_light(records, grid, tag)

    header = bytearray(WEMADE_MIR3_HEADER_SIZE)
    struct.pack_into("<hh", header, 24, width, height)
    padding = bytes(3 * (width % 2) * blocks_y)
    return bytes(header) + blocks.tobytes() + padding + records.tobytes()


# --------------------------------------------------------------------------
# Tag 6: Shanda Mir3
# --------------------------------------------------------------------------


def decode_shanda_mir3(data: bytes) -> Grid:
    """Decode a Shanda "(C) SNDA, MIR3." map (tag 6)."""
    tag = MapFormat.SHANDA_MIR3
    width, height = read_dimensions(
        data, tag, header_size=SHANDA_MIR3_HEADER_SIZE, width_at=16, height_at=18,
    )
    records = read_records(
        data, SHANDA_MIR3_RECORD, SHANDA_MIR3_HEADER_SIZE, width * height, tag,
    )

    front_index = decode_mir3_index(widen(records, "front_index"), SHANDA_MIR3_INDEX_BIAS)
    front_image = decode_mir3_image(widen(records, "front_image"))
    front_index = clear_empty_front(front_index, front_image)
    back_image, front_image = apply_mir3_flags(
        widen(records, "flag"),
        decode_mir3_image(widen(records, "back_image")),
        front_image,
    )

    cells = new_cells(width * height)
    cells["back_index"] = decode_mir3_index(widen(records, "back_index"), SHANDA_MIR3_INDEX_BIAS)
    cells["back_image"] = back_image
    cells["middle_index"] = decode_mir3_index(
        widen(records, "middle_index"), SHANDA_MIR3_INDEX_BIAS,
    )
    cells["middle_image"] = decode_mir3_image(widen(records, "middle_image"))
    cells["front_index"] = front_index
    cells["front_image"] = front_image
    copy_fields(records, cells, ("middle_animation_frame",))
    cells["front_animation_frame"] = shanda_mir3_front_frame(
        widen(records, "front_animation_frame"),
    )
    cells["light"] = decode_mir3_light(widen(records, "light"))
    return Grid(width, height, tag, cells)


def encode_shanda_mir3(grid: Grid, key: int | None = None) -> bytes:
    """Encode a grid as a Shanda Mir3 map (tag 6)."""
    tag = MapFormat.SHANDA_MIR3
    flag, back_image, front_image = split_mir3_flags(
        cell_values(grid, "back_image"), cell_values(grid, "front_image"),
    )

    records = np.zeros(grid.width * grid.height, dtype=SHANDA_MIR3_RECORD)
    store(records, "flag", flag, tag)
    for name in ("back_index", "middle_index", "front_index"):
        _store_index(records, name, cell_values(grid, name), SHANDA_MIR3_INDEX_BIAS, tag)
    _store_image(records, "back_image", back_image, tag)
    _store_image(records, "middle_image", cell_values(grid, "middle_image"), tag)
    _store_image(records, "front_image", front_image, tag)
    for name in ("middle_animation_frame", "front_animation_frame"):
        store(records, name, cell_values(grid, name), tag)
    _store_light(records, grid, tag)

    header = header_with_title(SHANDA_MIR3_HEADER_SIZE, SHANDA_MIR3_TITLE)
    struct.pack_into("<hh", header, 16, grid.width, grid.height)
    return bytes(header) + records.tobytes()


WEMADE_MIR3_CODEC = FormatCodec(MapFormat.WEMADE_MIR3, decode_wemade_mir3, encode_wemade_mir3)
SHANDA_MIR3_CODEC = FormatCodec(MapFormat.SHANDA_MIR3, decode_shanda_mir3, encode_shanda_mir3)
