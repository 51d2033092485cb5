"""Shared plumbing for the per-format codecs.

Each format describes its cell record as a packed little-endian numpy
dtype.  Decoding views the buffer through that dtype in one step and
encoding fills a record array and dumps it with ``tobytes``.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from mirmap.codec.errors import MalformedMapError, TruncatedMapError
from mirmap.grid.cell import CELL_DTYPE
from mirmap.grid.grid import MAX_DIMENSION, MIN_DIMENSION, Grid, MapFormat

# Door, animation and light bytes that most Mir2 layouts store verbatim.
DOOR_AND_ANIMATION = (
    "door_index",
    "door_offset",
    "front_animation_frame",
    "front_animation_tick",
)

_FIELD_LIMITS = {
    "u1": (0, 0xFF),
    "<u2": (0, 0xFFFF),
    "<i2": (-0x8000, 0x7FFF),
    "<u4": (0, 0xFFFFFFFF),
    "<i4": (-0x80000000, 0x7FFFFFFF),
}


@dataclass(frozen=True)
class FormatCodec:
    """Decode/encode pair for one map format.

    Attributes:
        tag: Format this codec handles.
        decode: ``bytes -> Grid``.
        encode: ``(Grid, key) -> bytes``; ``key`` is the 16-bit XOR key
            and is ignored by formats without obfuscation.
        uses_key: True if ``encode`` consumes the XOR key.
    """

    tag: MapFormat
    decode: Callable[[bytes], Grid]
    encode: Callable[..., bytes]
    uses_key: bool = False


def record_dtype(fields: Iterable[tuple[str, str]]) -> np.dtype:
    """Build a packed record dtype from ``(name, format)`` pairs."""
    return np.dtype(list(fields))


def require_length(data: bytes, expected: int, tag: MapFormat) -> None:
    """Raise ``TruncatedMapError`` if ``data`` is shorter than ``expected``."""
    if len(data) < expected:
        raise TruncatedMapError(int(tag), expected, len(data))


def check_dimensions(width: int, height: int, tag: MapFormat) -> None:
    """Reject header dimensions a Grid cannot hold."""
    for name, value in (("width", width), ("height", height)):
        if not MIN_DIMENSION <= value <= MAX_DIMENSION:
            msg = f"format {int(tag)} header gives {name} {value}"
            raise MalformedMapError(msg, tag=int(tag))


def read_dimensions(
    data: bytes,
    tag: MapFormat,
    *,
    header_size: int,
    width_at: int,
    height_at: int,
) -> tuple[int, int]:
    """Read plain little-endian 16-bit width and height from the header."""
    require_length(data, header_size, tag)
    (width,) = struct.unpack_from("<h", data, width_at)
    (height,) = struct.unpack_from("<h", data, height_at)
    check_dimensions(width, height, tag)
    return width, height


def read_records(
    data: bytes,
    dtype: np.dtype,
    offset: int,
    count: int,
    tag: MapFormat,
) -> NDArray[np.void]:
    """View ``count`` records of ``dtype`` starting at ``offset``."""
    require_length(data, offset + count * dtype.itemsize, tag)
    return np.frombuffer(data, dtype=dtype, count=count, offset=offset)


def widen(records: NDArray[np.void], name: str) -> NDArray[np.int64]:
    """Return one record field widened to int64 for arithmetic."""
    return records[name].astype(np.int64)


def new_cells(count: int) -> NDArray[np.void]:
    """Allocate a zeroed cell array."""
    return np.zeros(count, dtype=CELL_DTYPE)


def copy_fields(
    source: NDArray[np.void],
    target: NDArray[np.void],
    names: Iterable[str],
) -> None:
    """Copy same-named fields between structured arrays."""
    for name in names:
        target[name] = source[name]


def store(
    records: NDArray[np.void],
    name: str,
    values: NDArray[np.int64],
    tag: MapFormat,
    *,
    cell_field: str | None = None,
) -> None:
    """Write ``values`` into a record field after checking they fit.

    Raises:
        MalformedMapError: If any value is outside the field's range.
    """
    lo, hi = _FIELD_LIMITS[records.dtype.fields[name][0].str.replace("|", "")]
    records[name] = ensure_range(values, lo, hi, cell_field or name, tag)


def ensure_range(
    values: NDArray[np.int64],
    lo: int,
    hi: int,
    label: str,
    tag: MapFormat,
) -> NDArray[np.int64]:
    """Return ``values`` as int64, or raise if any falls outside ``[lo, hi]``.

    Raises:
        MalformedMapError: Naming the first offending value.
    """
    values = np.asarray(values, dtype=np.int64)
    bad = (values < lo) | (values > hi)
    if bad.any():
        first = int(values[bad][0])
        msg = f"{label} value {first} cannot be stored in format {int(tag)}"
        raise MalformedMapError(msg, tag=int(tag))
    return values


def cell_values(grid: Grid, name: str) -> NDArray[np.int64]:
    """Return one cell field of ``grid`` widened to int64."""
    return grid.cells[name].astype(np.int64)


def header_with_title(size: int, title: bytes) -> bytearray:
    """Return a zeroed header of ``size`` bytes starting with ``title``."""
    header = bytearray(size)
    header[: len(title)] = title
    return header
