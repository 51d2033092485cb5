"""Read and write map and object files on disk.

Every function here is a thin wrapper: the whole file is read into memory
before decoding, and a map is fully encoded before its file is opened, so
a failed encode never leaves a partial file behind.  The ``*_async``
variants run the same calls on a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from mirmap.codec.errors import UnimplementedFormatError
from mirmap.codec.registry import decode_map, encode_map, is_missing
from mirmap.grid.grid import Grid, MapFormat
from mirmap.io.config import CodecConfig
from mirmap.objects.records import PlacementRecord, decode_records, encode_records

logger = logging.getLogger(__name__)


def read_map(path: str | Path, config: CodecConfig | None = None) -> Grid:
    """Load a map file.

    A missing, empty or all-zero file yields a blank native grid sized
    from ``config``.

    Raises:
        MapFormatError: If the file exists but cannot be decoded.
    """
    config = config or CodecConfig()
    path = Path(path)
    data = path.read_bytes() if path.exists() else b""
    if is_missing(data):
        logger.debug("no map data at %s, using blank grid", path)
        return Grid(config.blank_width, config.blank_height)
    return decode_map(data)


def write_map(
    grid: Grid,
    path: str | Path,
    fmt: int | None = None,
    config: CodecConfig | None = None,
) -> MapFormat:
    """Encode ``grid`` and write it to ``path``.

    Args:
        grid: Grid to save.
        path: Destination file.
        fmt: Target format; defaults to ``config.map_format()``.
        config: Codec settings; defaults to ``CodecConfig()``.

    Returns:
        The format actually written.

    Raises:
        UnimplementedFormatError: If ``fmt`` has no encoder and
            ``config.fallback_to_native`` is off.
        MapFormatError: If the grid cannot be stored in ``fmt``.
        InvalidGridError: If the grid fails validation.
    """
    config = config or CodecConfig()
    target = config.map_format() if fmt is None else fmt
    rng = config.key_rng()
    try:
        data = encode_map(grid, target, rng=rng)
    except UnimplementedFormatError:
        if not config.fallback_to_native:
            raise
        logger.warning("no encoder for map format %s, saving %s as native", target, path)
        target = MapFormat.NATIVE
        data = encode_map(grid, target)

    Path(path).write_bytes(data)
    logger.info("wrote %dx%d map to %s (%d bytes)", grid.width, grid.height, path, len(data))
    return MapFormat(target)


def read_objects(path: str | Path) -> list[PlacementRecord]:
    """Load an object placement file; a missing file has no records.

    Raises:
        ObjectRecordError: If the file is malformed.
    """
    path = Path(path)
    if not path.exists():
        return []
    return decode_records(path.read_bytes())


def write_objects(records: Sequence[PlacementRecord], path: str | Path) -> None:
    """Write placement records to ``path``."""
    data = encode_records(records)
    Path(path).write_bytes(data)
    logger.info("wrote %d object records to %s", len(records), path)


async def read_map_async(path: str | Path, config: CodecConfig | None = None) -> Grid:
    """``read_map`` on a worker thread."""
    return await asyncio.to_thread(read_map, path, config)


async def write_map_async(
    grid: Grid,
    path: str | Path,
    fmt: int | None = None,
    config: CodecConfig | None = None,
) -> MapFormat:
    """``write_map`` on a worker thread."""
    return await asyncio.to_thread(write_map, grid, path, fmt, config)


async def read_objects_async(path: str | Path) -> list[PlacementRecord]:
    """``read_objects`` on a worker thread."""
    return await asyncio.to_thread(read_objects, path)


async def write_objects_async(records: Sequence[PlacementRecord], path: str | Path) -> None:
    """``write_objects`` on a worker thread."""
    await asyncio.to_thread(write_objects, records, path)
