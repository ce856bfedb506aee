"""
EtherCAT SOEM — Value codec
============================

Conversion between raw CoE byte slices and tagged :class:`Value` objects.
Scalars use CoE byte order (little endian).  Only ``BOOL`` honours a bit
offset; every other type starts at the first byte of the slice.
"""

import struct

from .exceptions import (
    BufferTooSmallError,
    EmptyBufferError,
    UnsupportedDataTypeError,
    UnsupportedValueError,
)
from .types import DataType, Value


_SCALAR_FORMATS = {
    DataType.BYTE: "<B",
    DataType.I8: "<b",
    DataType.I16: "<h",
    DataType.I32: "<i",
    DataType.I64: "<q",
    DataType.U8: "<B",
    DataType.U16: "<H",
    DataType.U32: "<I",
    DataType.U64: "<Q",
    DataType.F32: "<f",
    DataType.F64: "<d",
}

_RAW_TYPES = (DataType.OCTET_STRING, DataType.DOMAIN)

SUPPORTED_TYPES = frozenset(
    list(_SCALAR_FORMATS) + list(_RAW_TYPES) + [DataType.BOOL, DataType.STRING]
)


def byte_count(bit_length):
    """Number of bytes that hold *bit_length* bits."""
    return (bit_length + 7) // 8


def decode(data_type, bit_length, raw, bit_offset=0):
    """Decode *raw* as a value of *data_type*.

    Args:
        data_type: :class:`DataType` of the entry, or ``None`` if unknown.
        bit_length: Entry size in bits.
        raw: Bytes starting at the entry's first byte.
        bit_offset: Bit position (0-7) inside the first byte, ``BOOL`` only.

    Raises:
        EmptyBufferError: *raw* is empty.
        BufferTooSmallError: *raw* is shorter than the entry.
        UnsupportedDataTypeError: no decoder for *data_type*.
    """
    if not raw:
        raise EmptyBufferError()
    if data_type is None or data_type not in SUPPORTED_TYPES:
        raise UnsupportedDataTypeError(data_type)
    if bit_length <= 0:
        raise UnsupportedDataTypeError(data_type, "bit length 0")
    if data_type != DataType.BOOL and bit_length % 8:
        raise UnsupportedDataTypeError(
            data_type, f"{bit_length} bit wide entries are not byte aligned"
        )

    size = byte_count(bit_length)
    if len(raw) < size:
        raise BufferTooSmallError(size, len(raw))
    data = bytes(raw[:size])

    if data_type == DataType.BOOL:
        if not 0 <= bit_offset <= 7:
            raise UnsupportedDataTypeError(data_type, f"bit offset {bit_offset}")
        return Value(DataType.BOOL, bool(data[0] & (1 << bit_offset)))

    if data_type == DataType.STRING:
        return Value(DataType.STRING, data.decode("utf-8", errors="replace"))

    if data_type in _RAW_TYPES:
        return Value(data_type, data)

    fmt = _SCALAR_FORMATS[data_type]
    if struct.calcsize(fmt) != size:
        raise UnsupportedDataTypeError(
            data_type, f"bit length {bit_length} does not match the type width"
        )
    return Value(data_type, struct.unpack(fmt, data)[0])


def encode(value, bit_offset=0):
    """Serialise *value* to its CoE byte representation.

    ``BOOL`` values encode to a single byte with bit *bit_offset* set or
    cleared, so ``decode(BOOL, 1, encode(v, n), n) == v``.

    Raises:
        UnsupportedValueError: the value cannot be represented.
    """
    data_type = value.data_type
    payload = value.value

    if data_type == DataType.BOOL:
        if not isinstance(payload, bool):
            raise UnsupportedValueError(value, "BOOL needs a bool")
        if not 0 <= bit_offset <= 7:
            raise UnsupportedValueError(value, f"bit offset {bit_offset}")
        return bytes([(1 << bit_offset) if payload else 0])

    if data_type == DataType.STRING:
        if not isinstance(payload, str):
            raise UnsupportedValueError(value, "STRING needs a str")
        return payload.encode("utf-8")

    if data_type in _RAW_TYPES:
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise UnsupportedValueError(value, f"{data_type.name} needs bytes")
        return bytes(payload)

    fmt = _SCALAR_FORMATS.get(data_type)
    if fmt is None:
        raise UnsupportedValueError(value, f"no encoding for {data_type.name}")
    if isinstance(payload, bool) or not isinstance(payload, (int, float)):
        raise UnsupportedValueError(value, f"{data_type.name} needs a number")
    if fmt[-1] not in "fd" and not isinstance(payload, int):
        raise UnsupportedValueError(value, f"{data_type.name} needs an int")
    try:
        return struct.pack(fmt, payload)
    except (struct.error, OverflowError) as exc:
        raise UnsupportedValueError(value, str(exc)) from exc
