"""Format detection from a map file's leading bytes.

The checks run top to bottom and the first match wins.  Formats 2 and 3
share a 20-byte header; the only difference is record size, so the tie is
broken by comparing the buffer length against a 14-byte-per-cell layout.
"""

from __future__ import annotations

import logging
import struct

from mirmap.grid.grid import MapFormat

logger = logging.getLogger(__name__)

MIN_HEADER_LENGTH = 20
SHANDA_OLD_HEADER = 52
SHANDA_OLD_RECORD = 14


def _is_native(data: bytes) -> bool:
    return data[2] == 0x43 and data[3] == 0x23


def _is_wemade_mir3(data: bytes) -> bool:
    return data[0] == 0


def _is_shanda_mir3(data: bytes) -> bool:
    return data[0] == 0x0F and data[5] == 0x53 and data[14] == 0x33


def _is_antihack(data: bytes) -> bool:
    return data[0] == 0x15 and data[4] == 0x32 and data[6] == 0x41 and data[19] == 0x31


def _is_wemade_2010(data: bytes) -> bool:
    return data[0] == 0x10 and data[2] == 0x61 and data[7] == 0x31 and data[14] == 0x31


def _is_shanda_pair(data: bytes) -> bool:
    return data[4] == 0x0F and data[18] == 0x0D and data[19] == 0x0A


def _is_heroes(data: bytes) -> bool:
    return data[0] == 0x0D and data[1] == 0x4C and data[7] == 0x20 and data[11] == 0x6D


def _shanda_variant(data: bytes) -> MapFormat:
    width, height = struct.unpack_from("<HH", data, 0)
    if len(data) > SHANDA_OLD_HEADER + width * height * SHANDA_OLD_RECORD:
        return MapFormat.SHANDA_2012
    return MapFormat.SHANDA_OLD


_SIGNATURES = (
    (_is_native, MapFormat.NATIVE),
    (_is_wemade_mir3, MapFormat.WEMADE_MIR3),
    (_is_shanda_mir3, MapFormat.SHANDA_MIR3),
    (_is_antihack, MapFormat.ANTIHACK),
    (_is_wemade_2010, MapFormat.WEMADE_2010),
    (_is_shanda_pair, None),
    (_is_heroes, MapFormat.HEROES),
)


def detect_format(data: bytes) -> MapFormat:
    """Return the map format a buffer appears to use.

    Args:
        data: The whole map file.

    Returns:
        The matching format, or ``MapFormat.DEFAULT`` when nothing matches
        or the buffer is shorter than 20 bytes.
    """
    if len(data) < MIN_HEADER_LENGTH:
        return MapFormat.DEFAULT
    for matches, tag in _SIGNATURES:
        if matches(data):
            result = _shanda_variant(data) if tag is None else tag
            logger.debug("detected map format %s (%d bytes)", result.name, len(data))
            return result
    return MapFormat.DEFAULT
