"""
EtherCAT SOEM — Process-data access
=====================================

Decodes and patches mapped values inside a slave's input/output region of
the shared I/O image, using the slave's resolved PDO assignment.

Callers must not run these functions while the engine exchanges process
data on the same buffer; :class:`~ethercat_soem.bus.EtherCATBus` serialises
both behind one lock.
"""

import logging

from . import codec
from .exceptions import (
    CodecError,
    EntryNotFoundError,
    ValueMismatchError,
    WrongDirectionError,
)
from .types import DataType, EntryIndex, SyncManagerType


logger = logging.getLogger(__name__)


def find_pdo_entry(assignments, entry):
    """Return the first mapped :class:`PdoEntryInfo` for *entry*.

    An outputs mapping wins over an inputs mapping of the same entry.
    """
    found = None
    for assignment in assignments:
        for info in assignment.entries():
            if info.entry != entry:
                continue
            if info.sm_type == SyncManagerType.OUTPUTS:
                return info
            if found is None:
                found = info
    return found


def read_pdo_values(slave, assignments, inputs, outputs):
    """Decode every mapped entry of one slave.

    Args:
        slave: Slave position, used for log messages.
        assignments: The slave's tuple of :class:`PdoAssignment`.
        inputs: The slave's input bytes.
        outputs: The slave's output bytes.

    Returns:
        list[tuple[EntryIndex, Value]]: In assignment order.  Padding and
        zero-length entries are skipped; entries that fail to decode are
        logged and left out.
    """
    values = []
    for assignment in assignments:
        if assignment.sm_type == SyncManagerType.OUTPUTS:
            buf = outputs
        elif assignment.sm_type == SyncManagerType.INPUTS:
            buf = inputs
        else:
            continue
        for info in assignment.entries():
            if info.is_padding or info.bit_length == 0:
                continue
            raw = buf[info.byte_offset:info.byte_offset + info.byte_count]
            try:
                value = codec.decode(info.data_type, info.bit_length, raw, info.bit_offset)
            except CodecError as exc:
                logger.warning(f"Slave {slave}: skip PDO entry {info.entry}: {exc}")
                continue
            values.append((info.entry, value))
    return values


def check_pdo_write(slave, assignments, entry, value):
    """Validate a write of *value* to *entry* without touching any buffer.

    Returns:
        tuple[PdoEntryInfo, bytes]: The mapped entry and the encoded value.

    Raises:
        EntryNotFoundError: *entry* is not mapped.
        WrongDirectionError: *entry* is mapped as an input.
        ValueMismatchError: *value* has another data type or size.
        UnsupportedValueError: *value* cannot be encoded.
    """
    entry = EntryIndex(*entry)
    info = find_pdo_entry(assignments, entry)
    if info is None:
        raise EntryNotFoundError(slave, entry)
    if info.sm_type != SyncManagerType.OUTPUTS:
        raise WrongDirectionError(slave, entry, info.sm_type)
    if info.data_type is not None and value.data_type != info.data_type:
        raise ValueMismatchError(
            slave, entry,
            f"entry is {info.data_type.name}, value is {value.data_type.name}",
        )

    if value.data_type == DataType.BOOL:
        return info, codec.encode(value, info.bit_offset)

    data = codec.encode(value)
    if len(data) != info.byte_count:
        raise ValueMismatchError(
            slave, entry,
            f"encoded {len(data)} byte(s), entry holds {info.byte_count}",
        )
    return info, data


def write_pdo_value(slave, assignments, outputs, entry, value):
    """Patch one mapped output entry in *outputs* (a writable buffer).

    ``BOOL`` entries are written with a read-modify-write of their single
    bit; every other type overwrites exactly the entry's bytes.  Raises
    the errors of :func:`check_pdo_write`.
    """
    info, data = check_pdo_write(slave, assignments, entry, value)
    end = info.byte_offset + info.byte_count
    if end > len(outputs):
        raise ValueMismatchError(
            slave, info.entry, f"entry ends at byte {end}, outputs hold {len(outputs)}"
        )

    if value.data_type == DataType.BOOL:
        mask = 1 << info.bit_offset
        if value.value:
            outputs[info.byte_offset] |= mask
        else:
            outputs[info.byte_offset] &= ~mask & 0xFF
        return
    outputs[info.byte_offset:end] = data
