"""Object placement files.

An object file overlays cells at given positions::

    i32 count | count * (i32 x, i32 y, 26-byte native cell record)

Records use the native map's cell layout, so ``unknown`` is not kept.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np

from mirmap.codec.base import record_dtype
from mirmap.codec.errors import ObjectRecordError
from mirmap.codec.native import NATIVE_CELL_FIELDS, NATIVE_FIELD_NAMES
from mirmap.grid.cell import CELL_DTYPE, Cell

logger = logging.getLogger(__name__)

COUNT_SIZE = 4
OBJECT_RECORD = record_dtype([("x", "<i4"), ("y", "<i4"), *NATIVE_CELL_FIELDS])


@dataclass
class PlacementRecord:
    """One object placement.

    Attributes:
        x: Column the object is placed at.
        y: Row the object is placed at.
        cell: Cell contents to place there.
    """

    x: int
    y: int
    cell: Cell = field(default_factory=Cell)

    def __post_init__(self) -> None:
        """Keep a private copy of the placed cell."""
        self.cell = self.cell.clone()


def object_file_size(count: int) -> int:
    """Return the size in bytes of an object file holding ``count`` records."""
    return COUNT_SIZE + OBJECT_RECORD.itemsize * count


def encode_records(records: Sequence[PlacementRecord]) -> bytes:
    """Serialise placement records.

    Raises:
        ObjectRecordError: If a coordinate or cell value does not fit its
            field.
    """
    array = np.zeros(len(records), dtype=OBJECT_RECORD)
    if records:
        try:
            cells = np.array([r.cell.to_record() for r in records], dtype=CELL_DTYPE)
            array["x"] = np.array([r.x for r in records], dtype=np.int32)
            array["y"] = np.array([r.y for r in records], dtype=np.int32)
        except OverflowError as exc:
            msg = f"placement record value out of range: {exc}"
            raise ObjectRecordError(msg) from exc
        for name in NATIVE_FIELD_NAMES:
            array[name] = cells[name]
    return struct.pack("<i", len(records)) + array.tobytes()


def decode_records(data: bytes) -> list[PlacementRecord]:
    """Parse an object file.

    An empty buffer or a non-positive count yields no records.

    Raises:
        ObjectRecordError: If the count is cut short or the buffer ends
            before the last record.
    """
    if not data:
        return []
    if len(data) < COUNT_SIZE:
        msg = f"object file of {len(data)} bytes is too short for its record count"
        raise ObjectRecordError(msg)
    (count,) = struct.unpack_from("<i", data, 0)
    if count <= 0:
        return []
    expected = object_file_size(count)
    if len(data) < expected:
        msg = f"object file with {count} records needs {expected} bytes, got {len(data)}"
        raise ObjectRecordError(msg)

    array = np.frombuffer(data, dtype=OBJECT_RECORD, count=count, offset=COUNT_SIZE)
    logger.debug("decoded %d object records", count)
    return list(_placements(array))


def _placements(array: np.ndarray) -> Iterable[PlacementRecord]:
    for record in array:
        cell = Cell(**{name: int(record[name]) for name in NATIVE_FIELD_NAMES})
        yield PlacementRecord(int(record["x"]), int(record["y"]), cell)
