"""Tests for mirmap.codec.legacy (tags 0, 1, 2, 3, 4 and 7)."""

import struct
from collections.abc import Callable

import pytest

from mirmap.codec.base import FormatCodec
from mirmap.codec.errors import MalformedMapError, TruncatedMapError
from mirmap.codec.legacy import (
    ANTIHACK_CODEC,
    DEFAULT_CODEC,
    HEROES_CODEC,
    SHANDA_2012_CODEC,
    SHANDA_2012_RECORD,
    SHANDA_OLD_CODEC,
    SHANDA_OLD_RECORD,
    WEMADE_2010_CODEC,
    decode_antihack,
    decode_default,
    decode_heroes,
    decode_wemade_2010,
    encode_antihack,
    encode_default,
    encode_heroes,
    encode_shanda_2012,
    encode_shanda_old,
    encode_wemade_2010,
)
from mirmap.grid.cell import Cell
from mirmap.grid.grid import Grid, MapFormat

KEY = 0x5A3C

LEGACY_CODECS = [
    DEFAULT_CODEC,
    WEMADE_2010_CODEC,
    SHANDA_OLD_CODEC,
    SHANDA_2012_CODEC,
    ANTIHACK_CODEC,
    HEROES_CODEC,
]


def _one_cell(tag: MapFormat, **fields: int) -> Grid:
    grid = Grid(1, 1, tag)
    grid.set_cell(0, 0, Cell(**fields))
    return grid


class TestRoundTrip:
    """decode(encode(g)) == g for grids each format can hold."""

    @pytest.mark.parametrize("codec", LEGACY_CODECS, ids=lambda c: c.tag.name)
    def test_random_grid(self, codec: FormatCodec, make_grid: Callable[..., Grid]) -> None:
        grid = make_grid(codec.tag)
        assert codec.decode(codec.encode(grid, KEY)) == grid

    @pytest.mark.parametrize("codec", LEGACY_CODECS, ids=lambda c: c.tag.name)
    def test_boundary_lights(self, codec: FormatCodec, make_grid: Callable[..., Grid]) -> None:
        grid = make_grid(codec.tag, 3, 2)
        decoded = codec.decode(codec.encode(grid, KEY))
        assert decoded.cells["light"][:5].tolist() == [0, 99, 100, 119, 120]

    @pytest.mark.parametrize("codec", LEGACY_CODECS, ids=lambda c: c.tag.name)
    def test_single_cell(self, codec: FormatCodec, make_grid: Callable[..., Grid]) -> None:
        grid = make_grid(codec.tag, 1, 1)
        assert codec.decode(codec.encode(grid, KEY)) == grid


class TestDefaultFormat:
    """Tag 0: the original Mir2 layout."""

    def test_size(self) -> None:
        grid = _one_cell(MapFormat.DEFAULT, middle_index=1, front_index=2)
        assert len(encode_default(grid)) == 52 + 12

    def test_blocked_flag_is_bit_15_on_disk(self) -> None:
        grid = _one_cell(MapFormat.DEFAULT, back_image=0x20001234, middle_index=1, front_index=2)
        data = encode_default(grid)
        assert struct.unpack_from("<H", data, 52) == (0x9234,)
        assert decode_default(data).cell_at(0, 0).back_image == 0x20001234

    def test_front_index_bias(self) -> None:
        grid = _one_cell(MapFormat.DEFAULT, front_index=9)
        data = encode_default(grid)
        assert data[52 + 10] == 7

    def test_fixed_library_indices(self) -> None:
        grid = _one_cell(MapFormat.DEFAULT, back_index=4, middle_index=9, front_index=2)
        cell = decode_default(encode_default(grid)).cell_at(0, 0)
        assert cell.back_index == 0
        assert cell.middle_index == 1

    def test_unstorable_front_index(self) -> None:
        grid = _one_cell(MapFormat.DEFAULT, front_index=300)
        with pytest.raises(MalformedMapError, match="front_index value 298") as excinfo:
            encode_default(grid)
        assert excinfo.value.tag == 0

    def test_unstorable_back_image(self) -> None:
        grid = _one_cell(MapFormat.DEFAULT, back_image=0x10000, front_index=2)
        with pytest.raises(MalformedMapError, match="back_image"):
            encode_default(grid)

    @pytest.mark.parametrize("back_image", [0x20010005, -1, 0x20008000])
    def test_back_image_that_would_change_is_rejected(self, back_image: int) -> None:
        grid = _one_cell(MapFormat.DEFAULT, back_image=back_image, front_index=2)
        with pytest.raises(MalformedMapError, match=f"back_image value {back_image} "):
            encode_default(grid)

    def test_truncated(self) -> None:
        grid = Grid(4, 4, MapFormat.DEFAULT)
        grid.cells["front_index"] = 2
        data = encode_default(grid)[:-1]
        with pytest.raises(TruncatedMapError) as excinfo:
            decode_default(data)
        assert excinfo.value.tag == 0
        assert excinfo.value.expected == 52 + 16 * 12

    def test_zero_height(self) -> None:
        data = b"\x05\x00\x00\x00" + bytes(60)
        with pytest.raises(MalformedMapError, match="height 0"):
            decode_default(data)


class TestWemade2010:
    """Tag 1: XOR key, masked back image and the 90/102 front swap."""

    def test_header(self) -> None:
        grid = Grid(7, 9, MapFormat.WEMADE_2010)
        grid.cells["front_index"] = 2
        data = encode_wemade_2010(grid, KEY)
        assert data[0] == 0x10
        assert struct.unpack_from("<HHH", data, 21) == (7 ^ KEY, KEY, 9 ^ KEY)
        assert len(data) == 54 + 63 * 15

    def test_back_image_mask(self) -> None:
        grid = _one_cell(MapFormat.WEMADE_2010, back_image=0x00012345, front_index=2)
        data = encode_wemade_2010(grid, KEY)
        assert struct.unpack_from("<I", data, 54) == (0x00012345 ^ 0xAA38AA38,)

    def test_images_are_xored(self) -> None:
        grid = _one_cell(MapFormat.WEMADE_2010, middle_image=0x1111, front_image=-1, front_index=2)
        data = encode_wemade_2010(grid, KEY)
        assert struct.unpack_from("<HH", data, 58) == (0x1111 ^ KEY, 0xFFFF ^ KEY)

    def test_front_library_swap(self) -> None:
        grid = _one_cell(MapFormat.WEMADE_2010, front_index=90)
        data = encode_wemade_2010(grid, KEY)
        assert data[54 + 12] == 100
        assert decode_wemade_2010(data).cell_at(0, 0).front_index == 90

    def test_front_library_102_is_rejected(self) -> None:
        grid = _one_cell(MapFormat.WEMADE_2010, front_index=102)
        with pytest.raises(MalformedMapError, match="front_index value 102") as excinfo:
            encode_wemade_2010(grid, KEY)
        assert excinfo.value.tag == 1

    def test_key_changes_bytes_not_cells(self) -> None:
        grid = _one_cell(MapFormat.WEMADE_2010, middle_index=1, middle_image=77, front_index=5)
        a = encode_wemade_2010(grid, 1)
        b = encode_wemade_2010(grid, 2)
        assert a != b
        assert decode_wemade_2010(a) == decode_wemade_2010(b) == grid


class TestShanda:
    """Tags 2 and 3: biased library indices and the 2012 tile animation."""

    def test_record_sizes(self) -> None:
        assert SHANDA_OLD_RECORD.itemsize == 14
        assert SHANDA_2012_RECORD.itemsize == 40

    def test_title_follows_dimensions(self) -> None:
        grid = Grid(3, 2, MapFormat.SHANDA_OLD)
        grid.cells["back_index"] = 100
        grid.cells["middle_index"] = 110
        grid.cells["front_index"] = 120
        data = encode_shanda_old(grid)
        assert struct.unpack_from("<hh", data, 0) == (3, 2)
        assert data[4] == 0x0F
        assert data[18:20] == b"\r\n"
        assert len(data) == 52 + 6 * 14

    def test_index_biases(self) -> None:
        grid = _one_cell(MapFormat.SHANDA_OLD, back_index=101, middle_index=112, front_index=123)
        data = encode_shanda_old(grid)
        assert data[52 + 10] == 3
        assert data[52 + 12] == 1
        assert data[52 + 13] == 2

    def test_unstorable_back_index(self) -> None:
        grid = _one_cell(MapFormat.SHANDA_OLD, back_index=99, middle_index=110, front_index=120)
        with pytest.raises(MalformedMapError, match="back_index"):
            encode_shanda_old(grid)

    def test_unflagged_bit_15_is_rejected(self) -> None:
        grid = _one_cell(
            MapFormat.SHANDA_OLD, back_image=0x8000, back_index=100, middle_index=110, front_index=120,
        )
        with pytest.raises(MalformedMapError, match="back_image value 32768") as excinfo:
            encode_shanda_old(grid)
        assert excinfo.value.tag == 2

    def test_tile_animation_layout(self) -> None:
        grid = _one_cell(
            MapFormat.SHANDA_2012,
            back_index=100,
            middle_index=110,
            front_index=120,
            tile_animation_image=-3,
            tile_animation_frames=6,
            tile_animation_offset=300,
        )
        data = encode_shanda_2012(grid)
        assert struct.unpack_from("<h", data, 52 + 14) == (-3,)
        assert data[52 + 23] == 6
        assert struct.unpack_from("<h", data, 52 + 24) == (300,)
        assert data[52 + 26 :] == bytes(14)


class TestAntiHack:
    """Tag 4: every image XORed with the key."""

    def test_header(self) -> None:
        grid = Grid(2, 2, MapFormat.ANTIHACK)
        grid.cells["front_index"] = 2
        data = encode_antihack(grid, KEY)
        assert data[:22] == b"\x15Mir2 AntiHack Ver 1.0"
        assert struct.unpack_from("<HHH", data, 31) == (2 ^ KEY, KEY, 2 ^ KEY)
        assert len(data) == 64 + 4 * 12

    def test_blocked_back_image(self) -> None:
        grid = _one_cell(MapFormat.ANTIHACK, back_image=0x20000007, front_index=2)
        data = encode_antihack(grid, KEY)
        assert struct.unpack_from("<H", data, 64) == (0x8007 ^ KEY,)
        assert decode_antihack(data).cell_at(0, 0).back_image == 0x20000007

    def test_wide_back_image_is_rejected(self) -> None:
        grid = _one_cell(MapFormat.ANTIHACK, back_image=0x10000, front_index=2)
        with pytest.raises(MalformedMapError, match="back_image"):
            encode_antihack(grid, KEY)

    def test_unflagged_bit_15_is_rejected(self) -> None:
        grid = _one_cell(MapFormat.ANTIHACK, back_image=0x8001, front_index=2)
        with pytest.raises(MalformedMapError, match="back_image value 32769"):
            encode_antihack(grid, KEY)


class TestHeroes:
    """Tag 7: plain dimensions at 21 and 25 and a 32-bit back image."""

    def test_header(self) -> None:
        grid = Grid(5, 6, MapFormat.HEROES)
        grid.cells["front_index"] = 2
        data = encode_heroes(grid)
        assert data.startswith(b"\x0dLifCos Mirmap")
        assert struct.unpack_from("<h", data, 21) == (5,)
        assert struct.unpack_from("<h", data, 25) == (6,)

    def test_unknown_byte_kept(self) -> None:
        grid = _one_cell(MapFormat.HEROES, front_index=2, unknown=0xAB)
        data = encode_heroes(grid)
        assert data[54 + 14] == 0xAB
        assert decode_heroes(data).cell_at(0, 0).unknown == 0xAB

    def test_blocked_flag(self) -> None:
        grid = _one_cell(MapFormat.HEROES, back_image=0x20000100, front_index=2)
        data = encode_heroes(grid)
        assert struct.unpack_from("<i", data, 54) == (0x8100,)
        assert decode_heroes(data).cell_at(0, 0).back_image == 0x20000100

    def test_unflagged_bit_15_is_rejected(self) -> None:
        grid = _one_cell(MapFormat.HEROES, back_image=0x18000, front_index=2)
        with pytest.raises(MalformedMapError, match="back_image value 98304") as excinfo:
            encode_heroes(grid)
        assert excinfo.value.tag == 7
