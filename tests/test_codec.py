"""Tests for ethercat_soem.codec."""

import struct

import pytest

from ethercat_soem import codec
from ethercat_soem.exceptions import (
    BufferTooSmallError,
    EmptyBufferError,
    UnsupportedDataTypeError,
    UnsupportedValueError,
)
from ethercat_soem.types import DataType, Value


# =============================================================================
# decode
# =============================================================================


class TestDecode:
    @pytest.mark.parametrize("data_type,bits,raw,expected", [
        (DataType.U8, 8, b"\xfe", 0xFE),
        (DataType.I8, 8, b"\xfe", -2),
        (DataType.U16, 16, b"\x34\x12", 0x1234),
        (DataType.I16, 16, b"\xff\xff", -1),
        (DataType.U32, 32, b"\x78\x56\x34\x12", 0x12345678),
        (DataType.I32, 32, b"\x00\x00\x00\x80", -2**31),
        (DataType.U64, 64, b"\x01" + bytes(7), 1),
        (DataType.I64, 64, b"\xff" * 8, -1),
        (DataType.BYTE, 8, b"\x5a", 0x5A),
    ])
    def test_integers_are_little_endian(self, data_type, bits, raw, expected):
        assert codec.decode(data_type, bits, raw) == Value(data_type, expected)

    def test_f32(self):
        value = codec.decode(DataType.F32, 32, struct.pack("<f", 7.7))
        assert value.data_type == DataType.F32
        assert value.value == pytest.approx(7.7)

    def test_f64(self):
        value = codec.decode(DataType.F64, 64, struct.pack("<d", -1.25))
        assert value == Value(DataType.F64, -1.25)

    def test_extra_bytes_are_ignored(self):
        assert codec.decode(DataType.U16, 16, b"\x01\x00\xff\xff").value == 1

    @pytest.mark.parametrize("offset,expected", [(0, False), (1, True), (7, True)])
    def test_bool_reads_bit_offset(self, offset, expected):
        assert codec.decode(DataType.BOOL, 1, b"\x82", offset) == Value(DataType.BOOL, expected)

    def test_string_is_utf8(self):
        assert codec.decode(DataType.STRING, 48, b"EL9999") == Value(DataType.STRING, "EL9999")

    def test_string_invalid_utf8_is_replaced(self):
        assert codec.decode(DataType.STRING, 16, b"A\xff").value == "A\ufffd"

    @pytest.mark.parametrize("data_type", [DataType.OCTET_STRING, DataType.DOMAIN])
    def test_raw_types_keep_bytes(self, data_type):
        assert codec.decode(data_type, 24, b"\x01\x02\x03") == Value(data_type, b"\x01\x02\x03")

    def test_empty_buffer(self):
        with pytest.raises(EmptyBufferError):
            codec.decode(DataType.U8, 8, b"")

    def test_short_buffer(self):
        with pytest.raises(BufferTooSmallError) as info:
            codec.decode(DataType.U32, 32, b"\x01\x02")
        assert info.value.expected == 4
        assert info.value.actual == 2

    @pytest.mark.parametrize("data_type", [None, DataType.UNICODE_STRING, DataType.I24,
                                           DataType.TIME_OF_DAY, DataType.BIT4])
    def test_unsupported_types(self, data_type):
        with pytest.raises(UnsupportedDataTypeError):
            codec.decode(data_type, 24, b"\x00\x00\x00")

    def test_zero_bit_length(self):
        with pytest.raises(UnsupportedDataTypeError):
            codec.decode(DataType.U8, 0, b"\x00")

    def test_sub_byte_non_bool_is_unsupported(self):
        with pytest.raises(UnsupportedDataTypeError):
            codec.decode(DataType.U8, 4, b"\x0f")

    def test_width_mismatch(self):
        with pytest.raises(UnsupportedDataTypeError):
            codec.decode(DataType.U16, 32, b"\x00\x00\x00\x00")


# =============================================================================
# encode
# =============================================================================


class TestEncode:
    def test_u16(self):
        assert codec.encode(Value(DataType.U16, 0x1234)) == b"\x34\x12"

    def test_i32_negative(self):
        assert codec.encode(Value(DataType.I32, -1)) == b"\xff\xff\xff\xff"

    def test_f32(self):
        assert codec.encode(Value(DataType.F32, 1.5)) == struct.pack("<f", 1.5)

    def test_f32_accepts_int(self):
        assert codec.encode(Value(DataType.F32, 2)) == struct.pack("<f", 2.0)

    @pytest.mark.parametrize("flag,offset,expected", [
        (True, 0, b"\x01"),
        (True, 5, b"\x20"),
        (False, 5, b"\x00"),
    ])
    def test_bool_sets_bit(self, flag, offset, expected):
        assert codec.encode(Value(DataType.BOOL, flag), offset) == expected

    def test_bool_round_trip_through_offset(self):
        raw = codec.encode(Value(DataType.BOOL, True), 3)
        assert codec.decode(DataType.BOOL, 1, raw, 3) == Value(DataType.BOOL, True)

    def test_string(self):
        assert codec.encode(Value(DataType.STRING, "ok")) == b"ok"

    def test_octet_string(self):
        assert codec.encode(Value(DataType.OCTET_STRING, bytearray(b"\x01"))) == b"\x01"

    def test_out_of_range(self):
        with pytest.raises(UnsupportedValueError):
            codec.encode(Value(DataType.U8, 256))

    def test_float_for_integer_type(self):
        with pytest.raises(UnsupportedValueError):
            codec.encode(Value(DataType.U16, 1.5))

    def test_bool_payload_for_integer_type(self):
        with pytest.raises(UnsupportedValueError):
            codec.encode(Value(DataType.U8, True))

    def test_bool_needs_bool(self):
        with pytest.raises(UnsupportedValueError):
            codec.encode(Value(DataType.BOOL, 1))

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedValueError):
            codec.encode(Value(DataType.UNICODE_STRING, "x"))


# =============================================================================
# Round trip
# =============================================================================


@pytest.mark.parametrize("value, bit_length", [
    (Value(DataType.BYTE, 0x00), 8),
    (Value(DataType.BYTE, 0xFF), 8),
    (Value(DataType.I8, -128), 8),
    (Value(DataType.I8, 127), 8),
    (Value(DataType.I16, -32768), 16),
    (Value(DataType.I16, 32767), 16),
    (Value(DataType.I32, -2**31), 32),
    (Value(DataType.I32, 2**31 - 1), 32),
    (Value(DataType.I64, -2**63), 64),
    (Value(DataType.I64, 2**63 - 1), 64),
    (Value(DataType.U8, 0), 8),
    (Value(DataType.U8, 255), 8),
    (Value(DataType.U16, 0), 16),
    (Value(DataType.U16, 0xFFFF), 16),
    (Value(DataType.U32, 0), 32),
    (Value(DataType.U32, 2**32 - 1), 32),
    (Value(DataType.U64, 0), 64),
    (Value(DataType.U64, 2**64 - 1), 64),
    (Value(DataType.F32, 1.5), 32),
    (Value(DataType.F32, -0.25), 32),
    (Value(DataType.F64, 0.1), 64),
    (Value(DataType.F64, -1e300), 64),
    (Value(DataType.STRING, "EL9999"), 48),
    (Value(DataType.OCTET_STRING, b"\x00\x01\xfe"), 24),
    (Value(DataType.DOMAIN, b"\xde\xad\xbe\xef"), 32),
], ids=str)
def test_decode_inverts_encode(value, bit_length):
    assert codec.decode(value.data_type, bit_length, codec.encode(value)) == value


@pytest.mark.parametrize("offset", range(8))
@pytest.mark.parametrize("flag", [True, False])
def test_bool_decode_inverts_encode(flag, offset):
    value = Value(DataType.BOOL, flag)
    assert codec.decode(DataType.BOOL, 1, codec.encode(value, offset), offset) == value


def test_byte_count():
    assert [codec.byte_count(b) for b in (1, 7, 8, 9, 16, 32)] == [1, 1, 1, 2, 2, 4]
