"""Bit and byte transforms shared by the legacy map formats.

Every function accepts a plain int or a numpy integer array (use a wide
signed dtype such as int64 for arrays) and applies element-wise.  Decoders
and encoders are built from these so each quirk can be tested on its own.
"""

from __future__ import annotations

from typing import Union

import numpy as np
from numpy.typing import NDArray

BLOCKED_FLAG_16 = 0x8000
BLOCKED_FLAG_32 = 0x20000000
IMAGE_MASK_15 = 0x7FFF
BACK_IMAGE_XOR = 0xAA38AA38

MIR3_EMPTY_INDEX = 255
MIR3_NO_FRONT = -1
MIR3_LIGHT_SCALE = 4
MIR3_LIGHT_MASK = 0x0F

# Front library ids swapped by the 2010 format.
FRONT_INDEX_2010_STORED = 102
FRONT_INDEX_2010_LOADED = 90

IntArray = NDArray[np.int64]
IntLike = Union[int, IntArray]


def to_int16(value: IntLike) -> IntLike:
    """Reinterpret the low 16 bits as a signed value."""
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def to_uint16(value: IntLike) -> IntLike:
    """Reinterpret the low 16 bits as an unsigned value."""
    return value & 0xFFFF


def to_int32(value: IntLike) -> IntLike:
    """Reinterpret the low 32 bits as a signed value."""
    return ((value + 0x80000000) & 0xFFFFFFFF) - 0x80000000


def xor16(value: IntLike, key: int) -> IntLike:
    """XOR the low 16 bits of ``value`` with a 16-bit key."""
    return (value & 0xFFFF) ^ (key & 0xFFFF)


def xor_back_image(value: IntLike) -> IntLike:
    """Apply the fixed 2010-format back image mask; the transform is its own inverse."""
    return to_int32((value & 0xFFFFFFFF) ^ BACK_IMAGE_XOR)


def fold_blocked_flag(back_image: IntLike) -> IntLike:
    """Move the 16-bit blocked bit (0x8000) to the 32-bit flag (0x20000000)."""
    return np.where(
        (back_image & BLOCKED_FLAG_16) != 0,
        (back_image & IMAGE_MASK_15) | BLOCKED_FLAG_32,
        back_image,
    )


def unfold_blocked_flag(back_image: IntLike) -> IntLike:
    """Inverse of ``fold_blocked_flag``: 0x20000000 back to 0x8000."""
    return np.where(
        (back_image & BLOCKED_FLAG_32) != 0,
        (back_image & IMAGE_MASK_15) | BLOCKED_FLAG_16,
        back_image,
    )


def add_bias(raw: IntLike, bias: int) -> IntLike:
    """Turn a stored library byte into a library index."""
    return raw + bias


def remove_bias(index: IntLike, bias: int) -> IntLike:
    """Turn a library index into its stored byte."""
    return index - bias


def load_front_index_2010(front_index: IntLike) -> IntLike:
    """Swap library 102 to 90 after a 2010-format load."""
    return np.where(
        front_index == FRONT_INDEX_2010_STORED,
        FRONT_INDEX_2010_LOADED,
        front_index,
    )


def store_front_index_2010(front_index: IntLike) -> IntLike:
    """Swap library 90 back to 102 before a 2010-format save."""
    return np.where(
        front_index == FRONT_INDEX_2010_LOADED,
        FRONT_INDEX_2010_STORED,
        front_index,
    )


def decode_mir3_index(raw: IntLike, bias: int) -> IntLike:
    """Biased library byte where 255 means "no library" (-1)."""
    return np.where(raw == MIR3_EMPTY_INDEX, MIR3_NO_FRONT, raw + bias)


def encode_mir3_index(index: IntLike, bias: int) -> IntLike:
    """Inverse of ``decode_mir3_index``."""
    return np.where(index == MIR3_NO_FRONT, MIR3_EMPTY_INDEX, index - bias)


def decode_mir3_image(raw: IntLike) -> IntLike:
    """Mir3 images are stored minus one in 16 bits."""
    return to_int16(raw + 1)


def encode_mir3_image(image: IntLike) -> IntLike:
    """Inverse of ``decode_mir3_image``."""
    return to_uint16(image - 1)


def decode_mir3_light(raw: IntLike) -> IntLike:
    """Low nibble of the light byte, scaled by 4."""
    return (raw & MIR3_LIGHT_MASK) * MIR3_LIGHT_SCALE


def encode_mir3_light(light: IntLike) -> IntLike:
    """Quantise a light value into the Mir3 nibble (capped at 15)."""
    return np.minimum(light // MIR3_LIGHT_SCALE, MIR3_LIGHT_MASK)


def wemade_mir3_front_frame(raw: IntLike) -> IntLike:
    """255 means no animation; only bits 0-3 and 7 are kept."""
    return np.where(raw == 0xFF, 0, raw) & 0x8F


def shanda_mir3_front_frame(raw: IntLike) -> IntLike:
    """255 means no animation; frame counts above 15 keep their low nibble."""
    frame = np.where(raw == 0xFF, 0, raw)
    return np.where(frame > 0x0F, frame & 0x0F, frame)


def clear_empty_front(front_index: IntLike, front_image: IntLike) -> IntLike:
    """Front library 200 with image 1 is an empty front tile."""
    return np.where((front_image == 1) & (front_index == 200), MIR3_NO_FRONT, front_index)


def apply_mir3_flags(
    flag: IntLike,
    back_image: IntLike,
    front_image: IntLike,
) -> tuple[IntLike, IntLike]:
    """Fold the Mir3 cell flag byte into the back and front images.

    Bit 0 clear marks the back tile blocked (``0x20000000``), bit 1 clear
    sets bit 15 of the front image.

    Returns:
        ``(back_image, front_image)``.
    """
    back = np.where((flag & 0x01) == 0, back_image | BLOCKED_FLAG_32, back_image)
    front = np.where(
        (flag & 0x02) == 0,
        to_int16(to_uint16(front_image) | BLOCKED_FLAG_16),
        front_image,
    )
    return back, front


def split_mir3_flags(
    back_image: IntLike,
    front_image: IntLike,
) -> tuple[IntLike, IntLike, IntLike]:
    """Inverse of ``apply_mir3_flags``.

    Negative back images already carry bit 29, so they are written with
    bit 0 set and read back unchanged.

    Returns:
        ``(flag, back_image, front_image)`` with the flag bits removed
        from the images.
    """
    back_blocked = (back_image >= 0) & ((back_image & BLOCKED_FLAG_32) != 0)
    front_u16 = to_uint16(front_image)
    front_blocked = (front_u16 & BLOCKED_FLAG_16) != 0
    flag = np.where(back_blocked, 0, 0x01) | np.where(front_blocked, 0, 0x02)
    back = np.where(back_blocked, back_image & ~BLOCKED_FLAG_32, back_image)
    front = np.where(front_blocked, to_int16(front_u16 & IMAGE_MASK_15), front_image)
    return flag, back, front
