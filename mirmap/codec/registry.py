"""Entry points that pick a codec by tag and run it.

The set of formats is closed: ``CODECS`` maps each ``MapFormat`` to its
``FormatCodec`` and nothing registers new ones at runtime.
"""

from __future__ import annotations

import logging

import numpy as np

from mirmap.codec.base import FormatCodec
from mirmap.codec.detect import detect_format
from mirmap.codec.errors import (
    InvalidGridError,
    MalformedMapError,
    UnimplementedFormatError,
)
from mirmap.codec.legacy import (
    ANTIHACK_CODEC,
    DEFAULT_CODEC,
    HEROES_CODEC,
    SHANDA_2012_CODEC,
    SHANDA_OLD_CODEC,
    WEMADE_2010_CODEC,
)
from mirmap.codec.mir3 import SHANDA_MIR3_CODEC, WEMADE_MIR3_CODEC
from mirmap.codec.native import NATIVE_CODEC
from mirmap.codec.validate import validate
from mirmap.grid.grid import Grid, MapFormat

logger = logging.getLogger(__name__)

CODECS: dict[MapFormat, FormatCodec] = {
    codec.tag: codec
    for codec in (
        DEFAULT_CODEC,
        WEMADE_2010_CODEC,
        SHANDA_OLD_CODEC,
        SHANDA_2012_CODEC,
        ANTIHACK_CODEC,
        WEMADE_MIR3_CODEC,
        SHANDA_MIR3_CODEC,
        HEROES_CODEC,
        NATIVE_CODEC,
    )
}


def codec_for(tag: int) -> FormatCodec:
    """Return the codec for a format tag.

    Raises:
        UnimplementedFormatError: If no codec handles ``tag``.
    """
    try:
        return CODECS[MapFormat(tag)]
    except (KeyError, ValueError):
        raise UnimplementedFormatError(int(tag)) from None


def is_missing(data: bytes) -> bool:
    """Return True for buffers that stand for "no map file"."""
    return not data.strip(b"\0")


def decode_map(data: bytes) -> Grid:
    """Decode a map file of any supported format.

    An empty or all-zero buffer is treated as a missing file and yields
    ``Grid.blank()``.

    Raises:
        MapFormatError: If the buffer is present but cannot be decoded.
    """
    data = bytes(data)
    if is_missing(data):
        logger.debug("empty map buffer (%d bytes), using blank grid", len(data))
        return Grid.blank()
    codec = codec_for(detect_format(data))
    grid = codec.decode(data)
    logger.debug(
        "decoded %s map %dx%d from %d bytes",
        codec.tag.name, grid.width, grid.height, len(data),
    )
    return grid


def encode_map(
    grid: Grid,
    fmt: int | None = None,
    *,
    key: int | None = None,
    rng: np.random.Generator | None = None,
) -> bytes:
    """Encode a grid.

    Args:
        grid: Grid to encode.
        fmt: Target format; defaults to ``grid.format_tag``.
        key: 16-bit XOR key for formats 1 and 4.  When omitted one is
            drawn from ``rng``.
        rng: Random source for the key; defaults to a fresh
            ``np.random.default_rng()``.

    Raises:
        InvalidGridError: If ``validate(grid)`` fails.
        UnimplementedFormatError: If ``fmt`` has no codec.
        MalformedMapError: If a cell value does not fit the format, or the
            written header would be read back as a different format.
    """
    if not validate(grid):
        msg = f"refusing to encode invalid grid {grid!r:.80}"
        raise InvalidGridError(msg)
    codec = codec_for(grid.format_tag if fmt is None else fmt)
    if codec.uses_key and key is None:
        rng = np.random.default_rng() if rng is None else rng
        key = int(rng.integers(0, 0x10000))

    data = codec.encode(grid, key)
    detected = detect_format(data)
    if detected != codec.tag:
        msg = (
            f"{grid.width}x{grid.height} grid written as format {int(codec.tag)} "
            f"would read back as format {int(detected)}"
        )
        raise MalformedMapError(msg, tag=int(codec.tag))
    logger.debug("encoded %s map %dx%d into %d bytes", codec.tag.name, grid.width, grid.height, len(data))
    return data
