import struct

import pytest

from assetpak.packing.constants import ENTRY_SIZE, HEADER_SIZE, NAME_SIZE, table_end
from assetpak.packing.errors import CapacityError, FormatError
from assetpak.packing.layout import normalize_name, pack_name_string
from assetpak.packing.packers import (
    PackEntry,
    pack_entry,
    pack_header,
    unpack_entry_table,
    unpack_header,
)


def test_header_and_entry_sizes():
    assert len(pack_header(3, 500)) == HEADER_SIZE
    assert len(pack_entry(PackEntry("a", 12, 4))) == ENTRY_SIZE
    assert table_end(0) == 12
    assert table_end(2) == 140


def test_header_is_little_endian():
    raw = pack_header(1, 0x01020304)
    assert raw[:4] == b"PACK"
    assert raw[4:8] == b"\x01\x00\x00\x00"
    assert raw[8:12] == b"\x04\x03\x02\x01"


def test_entry_fields_decode():
    raw = pack_entry(PackEntry("shaders/basic.vert", 76, 9))
    name, offset, size = struct.unpack("<56sII", raw)
    assert name.rstrip(b"\x00") == b"shaders/basic.vert"
    assert (offset, size) == (76, 9)


def test_truncated_header_rejected():
    with pytest.raises(FormatError):
        unpack_header(b"PACK\x01\x00")


def test_truncated_table_rejected():
    data = pack_header(2, 0) + pack_entry(PackEntry("a", 140, 0))
    with pytest.raises(FormatError):
        unpack_entry_table(data, 2, HEADER_SIZE)


def test_u32_overflow_rejected():
    with pytest.raises(CapacityError):
        pack_header(1, 2**32)
    with pytest.raises(CapacityError):
        pack_entry(PackEntry("a", 12, -1))


def test_long_name_truncated_to_slot():
    name = "x" * 80
    assert normalize_name(name) == "x" * (NAME_SIZE - 1)
    slot = pack_name_string(name)
    assert len(slot) == NAME_SIZE
    assert slot[-1:] == b"\x00"


def test_truncation_drops_partial_utf8():
    # 54 ASCII bytes + a 2-byte character straddling the limit.
    name = "a" * 54 + "é"
    assert normalize_name(name) == "a" * 54


def test_name_cut_at_nul():
    assert normalize_name("abc\x00def") == "abc"
